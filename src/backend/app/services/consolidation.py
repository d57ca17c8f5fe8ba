"""
Consolidation of check-in and check-out records into reservations.

Booking platforms export arrivals and departures as separate control
sheets. A check-in and a check-out belong to the same stay when one
normalized guest name contains the other ("Maria Silva" and
"Maria Silva Santos"). Check-in data wins for stay details, check-out
data wins for money.
"""

import logging
from typing import List, Optional, Sequence

from app.models.reservation import (
    ConsolidatedReservation,
    ExtractedDocumentFields,
    ReservationSource,
)
from app.utils.normalizer import normalize

logger = logging.getLogger(__name__)


def guest_names_match(first: Optional[str], second: Optional[str]) -> bool:
    """True when one normalized guest name contains the other. Empty names never match."""
    a = normalize(first)
    b = normalize(second)
    if not a or not b:
        return False
    return a in b or b in a


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def _sources(*records: Optional[ExtractedDocumentFields]) -> List[str]:
    names = []
    for record in records:
        if record is not None and record.source_document and record.source_document not in names:
            names.append(record.source_document)
    return names


def merge_pair(
    check_in: ExtractedDocumentFields,
    check_out: ExtractedDocumentFields
) -> ConsolidatedReservation:
    """Merge a paired check-in and check-out into one reservation."""
    return ConsolidatedReservation(
        source=ReservationSource.CONSOLIDATED,
        guest_name=_first(check_in.guest_name, check_out.guest_name),
        property_name=_first(check_in.property_name_raw, check_out.property_name_raw),
        check_in_date=_first(check_in.check_in_date, check_out.check_in_date),
        check_out_date=_first(check_in.check_out_date, check_out.check_out_date),
        total_amount=_first(check_out.total_amount, check_in.total_amount),
        guest_count=_first(check_in.guest_count, check_out.guest_count),
        email=_first(check_in.email, check_out.email),
        phone=_first(check_in.phone, check_out.phone),
        notes=f"Check-in: {check_in.notes or 'N/A'} | Check-out: {check_out.notes or 'N/A'}",
        source_documents=_sources(check_in, check_out)
    )


def from_single(record: ExtractedDocumentFields, source: ReservationSource) -> ConsolidatedReservation:
    """Reservation built from one side only."""
    return ConsolidatedReservation(
        source=source,
        guest_name=record.guest_name,
        property_name=record.property_name_raw,
        check_in_date=record.check_in_date,
        check_out_date=record.check_out_date,
        total_amount=record.total_amount,
        guest_count=record.guest_count,
        email=record.email,
        phone=record.phone,
        notes=record.notes,
        source_documents=_sources(record)
    )


def consolidate(
    check_ins: Sequence[ExtractedDocumentFields],
    check_outs: Sequence[ExtractedDocumentFields]
) -> List[ConsolidatedReservation]:
    """
    Pair check-ins with check-outs by guest name and merge each pair.

    Args:
        check_ins: Check-in records, in document order
        check_outs: Check-out records, in document order

    Returns:
        Paired and check-in-only reservations in check-in order, followed
        by check-out-only reservations in check-out order
    """
    used = [False] * len(check_outs)
    results = []

    for check_in in check_ins:
        match_index = None
        for index, check_out in enumerate(check_outs):
            if not used[index] and guest_names_match(check_in.guest_name, check_out.guest_name):
                match_index = index
                break

        if match_index is None:
            results.append(from_single(check_in, ReservationSource.CHECK_IN_ONLY))
            continue

        used[match_index] = True
        results.append(merge_pair(check_in, check_outs[match_index]))

    for index, check_out in enumerate(check_outs):
        if not used[index]:
            results.append(from_single(check_out, ReservationSource.CHECK_OUT_ONLY))

    logger.info("Consolidated reservations", extra={
        "check_ins": len(check_ins),
        "check_outs": len(check_outs),
        "paired": sum(used),
        "total": len(results)
    })
    return results
