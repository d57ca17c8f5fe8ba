"""
Clarification/confidence gate for consolidated reservations.

Decides what happens to a consolidated reservation once its property has
been resolved:

    Reject              dates inverted, stay too long, amount implausible
    NeedsClarification  required field missing, property unresolved or
                        matched without enough confidence
    Accept              everything present and the match is confident

Lifecycle: Extracted → Normalized → Resolved → Gated → Accepted |
NeedsClarification | Rejected. A NeedsClarification re-enters at Resolved
once apply_answers() has filled the missing data.
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from app.models.reservation import ConsolidatedReservation
from app.utils.candidates import MatchCandidate
from app.utils.dates import parse_date
from app.utils.errors import AmbiguousMatch, ImplausibleAmount, InvalidDateRange
from app.utils.money import parse_amount

logger = logging.getLogger(__name__)

MAX_STAY_NIGHTS = 30
MAX_RESERVATION_AMOUNT = Decimal('50000')
CONFIDENT_MATCH_SCORE = 80

REQUIRED_FIELDS = ['guest_name', 'check_in_date', 'check_out_date', 'total_amount']

QUESTIONS = {
    'guest_name': "Qual é o nome do hóspede?",
    'property_name': "Qual é o nome da propriedade?",
    'check_in_date': "Qual é a data de check-in (DD/MM/AAAA)?",
    'check_out_date': "Qual é a data de check-out (DD/MM/AAAA)?",
    'total_amount': "Qual é o valor total da reserva (€)?",
}

INVERTED_DATES_REASON = "Data de check-out deve ser posterior ao check-in"


@dataclass
class ClarificationQuestion:
    """Follow-up question about one field."""
    field: str
    question: str

    def to_dict(self) -> dict:
        return {'field': self.field, 'question': self.question}


@dataclass
class Accept:
    reservation: ConsolidatedReservation
    match: MatchCandidate
    status = "accepted"

    def to_dict(self) -> dict:
        return {
            'status': self.status,
            'reservation': self.reservation.to_dict(),
            'match': self.match.to_dict()
        }


@dataclass
class NeedsClarification:
    questions: List[ClarificationQuestion]
    reservation: ConsolidatedReservation
    match: Optional[MatchCandidate] = None
    suggestions: List[MatchCandidate] = field(default_factory=list)
    status = "needs_clarification"

    def to_dict(self) -> dict:
        return {
            'status': self.status,
            'questions': [q.to_dict() for q in self.questions],
            'reservation': self.reservation.to_dict(),
            'match': self.match.to_dict() if self.match else None,
            'suggestions': [s.to_dict() for s in self.suggestions]
        }


@dataclass
class Reject:
    reason: str
    reservation: Optional[ConsolidatedReservation] = None
    status = "rejected"

    def to_dict(self) -> dict:
        return {
            'status': self.status,
            'reason': self.reason,
            'reservation': self.reservation.to_dict() if self.reservation else None
        }


GateDecision = Union[Accept, NeedsClarification, Reject]


def check_plausibility(
    reservation: ConsolidatedReservation,
    max_stay_nights: int = MAX_STAY_NIGHTS,
    max_amount: Decimal = MAX_RESERVATION_AMOUNT
) -> None:
    """
    Raise when dates or amount are internally inconsistent.

    Only present fields are checked; missing ones are a clarification
    matter, not a data-quality error.

    Raises:
        InvalidDateRange: check-out not after check-in, or stay too long
        ImplausibleAmount: total <= 0 or above max_amount
    """
    nights = reservation.nights
    if nights is not None:
        if nights <= 0:
            raise InvalidDateRange(INVERTED_DATES_REASON)
        if nights > max_stay_nights:
            raise InvalidDateRange(
                f"Estadia de {nights} noites excede o máximo de {max_stay_nights} noites"
            )

    amount = reservation.total_amount
    if amount is not None:
        if amount <= 0:
            raise ImplausibleAmount(f"Valor total inválido: {amount} (deve ser positivo)")
        if amount > max_amount:
            raise ImplausibleAmount(f"Valor total implausível: {amount} excede o limite de {max_amount}")


def check_match(
    reservation: ConsolidatedReservation,
    match: Optional[MatchCandidate],
    confident_score: int = CONFIDENT_MATCH_SCORE
) -> None:
    """
    Raise AmbiguousMatch when a match exists but is not confident.

    Confident means a strong match type (exact or partial name) or a score
    of at least confident_score.
    """
    if match is None:
        return
    if match.is_confident or match.score >= confident_score:
        return
    raise AmbiguousMatch(reservation.property_name or "", candidate=match)


def missing_fields(reservation: ConsolidatedReservation) -> List[str]:
    missing = []
    for name in REQUIRED_FIELDS:
        value = getattr(reservation, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def gate(
    reservation: ConsolidatedReservation,
    match: Optional[MatchCandidate],
    suggestions: Optional[List[MatchCandidate]] = None,
    max_stay_nights: int = MAX_STAY_NIGHTS,
    max_amount: Decimal = MAX_RESERVATION_AMOUNT,
    confident_score: int = CONFIDENT_MATCH_SCORE
) -> GateDecision:
    """
    Decide Accept, NeedsClarification or Reject for a reservation.

    Args:
        reservation: Consolidated reservation
        match: Resolver result for its property name (None if unresolved)
        suggestions: Ranked alternatives offered with clarification questions
        max_stay_nights: Longest plausible stay
        max_amount: Highest plausible total amount
        confident_score: Score from which any match type is accepted

    Returns:
        GateDecision
    """
    try:
        check_plausibility(reservation, max_stay_nights, max_amount)
    except (InvalidDateRange, ImplausibleAmount) as e:
        logger.info("Reservation rejected", extra={
            "guest_name": reservation.guest_name,
            "reason": str(e)
        })
        return Reject(reason=str(e), reservation=reservation)

    questions = []
    for name in missing_fields(reservation):
        questions.append(ClarificationQuestion(field=name, question=QUESTIONS[name]))

    if match is None:
        questions.append(ClarificationQuestion(
            field='property_name',
            question=QUESTIONS['property_name']
        ))
    else:
        try:
            check_match(reservation, match, confident_score)
        except AmbiguousMatch as e:
            questions.append(ClarificationQuestion(
                field='property_name',
                question=f"A propriedade é '{e.candidate.property_name}'?"
            ))

    if questions:
        logger.info("Reservation needs clarification", extra={
            "guest_name": reservation.guest_name,
            "fields": [q.field for q in questions],
            "match_score": match.score if match else None
        })
        return NeedsClarification(
            questions=questions,
            reservation=reservation,
            match=match,
            suggestions=list(suggestions or [])
        )

    return Accept(reservation=reservation, match=match)


ANSWER_PARSERS = {
    'guest_name': lambda value: str(value).strip() or None,
    'property_name': lambda value: str(value).strip() or None,
    'check_in_date': parse_date,
    'check_out_date': parse_date,
    'total_amount': parse_amount,
    'guest_count': lambda value: int(value) if str(value).strip().isdigit() else None,
}


def apply_answers(
    reservation: ConsolidatedReservation,
    answers: Dict[str, Any]
) -> ConsolidatedReservation:
    """
    Fill a reservation with answers to clarification questions.

    Unknown fields and answers that do not parse are ignored, so the next
    gate pass asks again. Each applied answer is recorded in the notes.

    Returns:
        New reservation; the input is not modified
    """
    updates = {}
    answered = []
    for name, value in answers.items():
        parser = ANSWER_PARSERS.get(name)
        if parser is None or value is None:
            continue
        parsed = parser(value)
        if parsed is None:
            continue
        updates[name] = parsed
        answered.append(f"{name}: {value}")

    if not updates:
        return reservation

    note = "Respostas: " + "; ".join(answered)
    updates['notes'] = f"{reservation.notes} | {note}" if reservation.notes else note

    return replace(reservation, **updates)
