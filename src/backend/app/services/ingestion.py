"""
Reservation import pipeline.

Runs a batch of booking documents through extraction, consolidation,
property resolution and the confidence gate:

    document → text → classify → extract (concurrent) → consolidate
             → resolve property → gate → persist / ask / reject

Extraction is the only blocking step and runs on a thread pool. Results
are always consumed in document order, so the same batch yields the same
reservations whatever order the provider calls finish in.

Cancellation is cooperative: setting the cancel event stops documents
that have not started, interrupts provider retries, and keeps everything
that already completed. Pairs formed from completed documents are still
gated and emitted; unpaired records of a cancelled batch are set aside in
the report's skipped list, since their partner may be in a document that
never ran.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from app.config import settings as default_settings
from app.models.reservation import (
    ConsolidatedReservation,
    DocumentRole,
    ExtractedDocumentFields,
    ReservationSource,
)
from app.services.consolidation import consolidate
from app.services.gate import Accept, GateDecision, NeedsClarification, Reject, apply_answers, gate
from app.services.ocr import relevant_lines
from app.services.resolver import rank, resolve
from app.services.storage import calculate_file_hash
from app.utils.candidates import PropertyCatalogEntry

logger = logging.getLogger(__name__)

# Document outcome statuses
EXTRACTED = "extracted"
EXTRACTION_FAILED = "extraction_failed"
NO_TEXT = "no_text"
DUPLICATE = "duplicate"
CANCELLED = "cancelled"


@dataclass
class ImportDocument:
    """One document of a batch. `text` skips text extraction when given."""
    filename: str
    content: bytes = b""
    mime_type: str = "application/pdf"
    role: Optional[DocumentRole] = None
    text: Optional[str] = None


@dataclass
class DocumentOutcome:
    """What happened to one document."""
    filename: str
    status: str
    role: str = DocumentRole.UNKNOWN.value
    file_hash: Optional[str] = None
    reservations: int = 0
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'filename': self.filename,
            'status': self.status,
            'role': self.role,
            'file_hash': self.file_hash,
            'reservations': self.reservations,
            'message': self.message,
        }


@dataclass
class ReservationOutcome:
    """Gate decision for one consolidated reservation, plus its persisted id."""
    decision: GateDecision
    reservation_id: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = self.decision.to_dict()
        data['reservation_id'] = self.reservation_id
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class ImportReport:
    documents: List[DocumentOutcome] = field(default_factory=list)
    reservations: List[ReservationOutcome] = field(default_factory=list)
    skipped: List[ConsolidatedReservation] = field(default_factory=list)
    cancelled: bool = False

    def summary(self) -> Dict[str, int]:
        counts = {'accepted': 0, 'needs_clarification': 0, 'rejected': 0}
        for outcome in self.reservations:
            counts[outcome.decision.status] += 1
        counts['documents'] = len(self.documents)
        counts['skipped'] = len(self.skipped)
        return counts

    def to_dict(self) -> dict:
        return {
            'cancelled': self.cancelled,
            'summary': self.summary(),
            'documents': [d.to_dict() for d in self.documents],
            'reservations': [r.to_dict() for r in self.reservations],
            'skipped': [s.to_dict() for s in self.skipped],
        }


@dataclass
class _Extraction:
    status: str
    role: DocumentRole
    records: List[ExtractedDocumentFields] = field(default_factory=list)


class ImportPipeline:
    """Batch import of booking documents into reservations."""

    def __init__(self, extractor, repository, text_service=None, config=None):
        """
        Args:
            extractor: ReservationExtractor (or any object with classify/extract_all)
            repository: ReservationRepository
            text_service: DocumentTextService, only needed for binary documents
            config: Settings (defaults to app.config.settings)
        """
        self.extractor = extractor
        self.repository = repository
        self.text_service = text_service
        self.config = config or default_settings

    @property
    def _max_amount(self) -> Decimal:
        return Decimal(str(self.config.MAX_RESERVATION_AMOUNT))

    def _extract_document(
        self,
        document: ImportDocument,
        cancel_event: threading.Event
    ) -> _Extraction:
        """Text extraction, classification and field extraction for one document."""
        role = document.role or DocumentRole.UNKNOWN
        if cancel_event.is_set():
            return _Extraction(status=CANCELLED, role=role)

        text = document.text
        if text is None:
            if self.text_service is None:
                return _Extraction(status=NO_TEXT, role=role)
            text = self.text_service.extract_text(document.content, document.mime_type, document.filename)

        if not text or not text.strip():
            return _Extraction(status=NO_TEXT, role=role)

        role = document.role or self.extractor.classify(text, document.filename)
        prompt_text = relevant_lines(text) or text

        records = self.extractor.extract_all(
            prompt_text,
            role,
            source_document=document.filename,
            cancel_event=cancel_event
        )
        records = [record for record in records if not record.is_empty()]

        if not records:
            status = CANCELLED if cancel_event.is_set() else EXTRACTION_FAILED
            return _Extraction(status=status, role=role)

        return _Extraction(status=EXTRACTED, role=role, records=records)

    def _extract_batch(
        self,
        documents: Sequence[ImportDocument],
        cancel_event: threading.Event
    ) -> List[_Extraction]:
        """Extract documents concurrently; results come back in document order."""
        if not documents:
            return []

        workers = max(1, min(self.config.IMPORT_MAX_WORKERS, len(documents)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._extract_document, doc, cancel_event) for doc in documents]

            for _ in as_completed(futures):
                if cancel_event.is_set():
                    for future in futures:
                        future.cancel()
                    break

        results = []
        for document, future in zip(documents, futures):
            role = document.role or DocumentRole.UNKNOWN
            if future.cancelled():
                results.append(_Extraction(status=CANCELLED, role=role))
                continue
            try:
                results.append(future.result())
            except Exception:
                logger.error("Unexpected error extracting document", extra={
                    "document": document.filename
                }, exc_info=True)
                results.append(_Extraction(status=EXTRACTION_FAILED, role=role))
        return results

    def run(
        self,
        documents: Sequence[ImportDocument],
        cancel_event: Optional[threading.Event] = None
    ) -> ImportReport:
        """
        Import a batch of documents.

        Args:
            documents: Documents in upload order
            cancel_event: Set it to cancel the batch cooperatively

        Returns:
            ImportReport with one outcome per document and one decision per
            consolidated reservation

        Raises:
            CatalogUnavailable: the property catalog could not be read
        """
        cancel_event = cancel_event or threading.Event()
        report = ImportReport()

        catalog = self.repository.get_property_catalog()

        pending = []
        outcomes: Dict[int, DocumentOutcome] = {}
        hashes: Dict[int, str] = {}
        for index, document in enumerate(documents):
            file_hash = calculate_file_hash(document.content or (document.text or "").encode('utf-8'))
            hashes[index] = file_hash
            if self.repository.is_document_imported(file_hash):
                logger.info("Skipping already imported document", extra={
                    "document": document.filename,
                    "file_hash": file_hash
                })
                outcomes[index] = DocumentOutcome(
                    filename=document.filename,
                    status=DUPLICATE,
                    file_hash=file_hash,
                    message="Documento já importado"
                )
            else:
                pending.append(index)

        extractions = self._extract_batch([documents[i] for i in pending], cancel_event)

        check_ins: List[ExtractedDocumentFields] = []
        check_outs: List[ExtractedDocumentFields] = []
        for index, extraction in zip(pending, extractions):
            document = documents[index]
            outcomes[index] = DocumentOutcome(
                filename=document.filename,
                status=extraction.status,
                role=extraction.role.value,
                file_hash=hashes[index],
                reservations=len(extraction.records)
            )
            if extraction.role == DocumentRole.CHECK_OUT:
                check_outs.extend(extraction.records)
            else:
                check_ins.extend(extraction.records)

        report.documents = [outcomes[i] for i in range(len(documents))]
        report.cancelled = cancel_event.is_set()

        for reservation in consolidate(check_ins, check_outs):
            if report.cancelled and reservation.source != ReservationSource.CONSOLIDATED:
                report.skipped.append(reservation)
                continue
            decision = self.decide(reservation, catalog)
            report.reservations.append(self.persist(decision))

        if not report.cancelled:
            for index in pending:
                outcome = outcomes[index]
                if outcome.status == EXTRACTED:
                    self.repository.mark_document_imported(outcome.file_hash, outcome.filename, outcome.role)

        logger.info("Import batch finished", extra={
            "cancelled": report.cancelled,
            **report.summary()
        })
        return report

    def decide(
        self,
        reservation: ConsolidatedReservation,
        catalog: Sequence[PropertyCatalogEntry]
    ) -> GateDecision:
        """Resolve the reservation's property and gate it."""
        match = resolve(reservation.property_name, catalog, min_score=self.config.MATCH_MIN_SCORE)

        suggestions = []
        if match is None or not (match.is_confident or match.score >= self.config.CONFIDENT_MATCH_SCORE):
            suggestions = rank(reservation.property_name, catalog, limit=self.config.SUGGESTION_LIMIT)

        return gate(
            reservation,
            match,
            suggestions=suggestions,
            max_stay_nights=self.config.MAX_STAY_NIGHTS,
            max_amount=self._max_amount,
            confident_score=self.config.CONFIDENT_MATCH_SCORE
        )

    def persist(self, decision: GateDecision) -> ReservationOutcome:
        """Save accepted reservations and log every decision to the activity trail."""
        reservation = decision.reservation
        guest = (reservation.guest_name if reservation else None) or "hóspede desconhecido"

        if isinstance(decision, Accept):
            try:
                reservation_id = self.repository.save_reservation(reservation, decision.match.property_id)
            except Exception as e:
                logger.error("Error saving reservation", extra={
                    "guest_name": reservation.guest_name,
                    "error": str(e)
                }, exc_info=True)
                return ReservationOutcome(decision=decision, error=f"Failed to save reservation: {e}")

            self.repository.save_activity_log(
                'reservation_imported',
                f"Reserva importada para {guest} em {decision.match.property_name}",
                entity_id=reservation_id,
                entity_type='reservation',
                metadata={'match': decision.match.to_dict(), 'source': reservation.source.value}
            )
            return ReservationOutcome(decision=decision, reservation_id=reservation_id)

        if isinstance(decision, NeedsClarification):
            self.repository.save_activity_log(
                'reservation_needs_clarification',
                f"Reserva de {guest} precisa de esclarecimento",
                entity_type='reservation',
                metadata=decision.to_dict()
            )
        elif isinstance(decision, Reject):
            self.repository.save_activity_log(
                'reservation_rejected',
                f"Reserva de {guest} rejeitada: {decision.reason}",
                entity_type='reservation',
                metadata=decision.to_dict()
            )

        return ReservationOutcome(decision=decision)

    def resolve_clarification(
        self,
        reservation: ConsolidatedReservation,
        answers: Dict[str, Any]
    ) -> ReservationOutcome:
        """
        Re-enter the gate with answers to clarification questions.

        Raises:
            CatalogUnavailable: the property catalog could not be read
        """
        catalog = self.repository.get_property_catalog()
        updated = apply_answers(reservation, answers)
        return self.persist(self.decide(updated, catalog))
