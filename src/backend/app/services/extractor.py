"""
Reservation field extractor.

Classifies booking documents as check-in or check-out sheets and asks the
OCR/LLM provider chain for structured reservation fields. Provider output
is never trusted: it is parsed into a tagged result (ExtractionOk or
ExtractionParseError) and validated with pydantic before use.

Failure contract: extract_fields() and extract_all() never raise. A
provider error or unparseable answer yields one all-null record that
keeps the document role, which the pipeline reports as a failed
extraction.
"""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from app.models.reservation import (
    DocumentRole,
    ExtractedDocumentFields,
    ExtractionEnvelope,
    ReservationPayload,
)
from app.services.ai_providers import ExtractionRequest
from app.utils.dates import parse_date
from app.utils.errors import ExtractionFailure
from app.utils.money import parse_amount
from app.utils.normalizer import normalize

logger = logging.getLogger(__name__)

# Checked first: settlement documents are authoritative for amounts
CHECK_OUT_KEYWORDS = ['check-out', 'saída', 'total amount', 'total price', '€', 'eur', 'total:']
CHECK_OUT_PATTERNS = [
    re.compile(r'\d+[.,]\d{2}\s*€'),
    re.compile(r'total\D{0,5}\d+', re.IGNORECASE),
]
CHECK_IN_KEYWORDS = ['check-in', 'entrada']

FILENAME_HINTS = {
    DocumentRole.CHECK_OUT: ['check-out', 'checkout', 'check_out', 'saidas', 'saída', 'saida'],
    DocumentRole.CHECK_IN: ['check-in', 'checkin', 'check_in', 'entradas', 'entrada'],
}

# Values providers emit when a field is not really known
PLACEHOLDER_VALUES = frozenset(normalize(value) for value in [
    'Hóspede desconhecido',
    'Hóspede não identificado',
    'Unknown Guest',
    'Todos',
    'Propriedade Desconhecida',
    'N/A',
    'null',
])

RESERVATION_SCHEMA = {
    "reservations": [
        {
            "guestName": "string",
            "propertyName": "string",
            "checkInDate": "YYYY-MM-DD",
            "checkOutDate": "YYYY-MM-DD",
            "totalAmount": "number",
            "guestCount": "integer",
            "email": "string|null",
            "phone": "string|null",
            "notes": "string|null",
        }
    ]
}

CHECK_OUT_PROMPT = """
Você é um especialista em extração de dados de documentos de check-out de alojamento local.
Analise este documento de CHECK-OUT e extraia TODAS as reservas, especialmente os VALORES MONETÁRIOS.

INSTRUÇÕES PARA CHECK-OUT:
- Procure valores totais, preços finais e montantes pagos
- Identifique valores em €, EUR ou outros símbolos monetários
- Extraia valores mesmo em formatos como "123,45 €" ou "Total: 304.39"
- Se houver vários valores para a mesma reserva, use o total final
- Datas no formato YYYY-MM-DD
- Use null APENAS se realmente não encontrar

FORMATO JSON OBRIGATÓRIO:
```json
{schema}
```

DOCUMENTO DE CHECK-OUT:
{text}"""

CHECK_IN_PROMPT = """
Você é um especialista em extração de dados de documentos de check-in de alojamento local.
Analise este documento e extraia os dados de todas as reservas.

REGRAS:
- Retorne APENAS JSON válido
- Datas no formato YYYY-MM-DD
- Valores como números (se disponíveis)
- Use null se não encontrar

FORMATO:
```json
{schema}
```

DOCUMENTO:
{text}"""

_FENCED_JSON = re.compile(r'```(?:json)?\s*([\s\S]*?)\s*```')
_BARE_JSON = re.compile(r'\{[\s\S]*\}')


@dataclass
class ExtractionOk:
    """Provider output that parsed and validated."""
    records: List[ReservationPayload] = field(default_factory=list)


@dataclass
class ExtractionParseError:
    """Provider output that could not be used."""
    raw: str
    reason: str


ExtractionResult = Union[ExtractionOk, ExtractionParseError]


def classify(raw_text: Optional[str]) -> DocumentRole:
    """
    Classify a document as check-in, check-out or unknown.

    Check-out signals win when both are present.

    Examples:
        >>> classify("Lista de saídas - Total: 304,39 €")
        <DocumentRole.CHECK_OUT: 'check-out'>
        >>> classify("Mapa de entradas")
        <DocumentRole.CHECK_IN: 'check-in'>
    """
    if not raw_text:
        return DocumentRole.UNKNOWN

    text = raw_text.lower()

    if any(keyword in text for keyword in CHECK_OUT_KEYWORDS):
        return DocumentRole.CHECK_OUT
    if any(pattern.search(raw_text) for pattern in CHECK_OUT_PATTERNS):
        return DocumentRole.CHECK_OUT

    if any(keyword in text for keyword in CHECK_IN_KEYWORDS):
        return DocumentRole.CHECK_IN

    return DocumentRole.UNKNOWN


def classify_filename(filename: Optional[str]) -> DocumentRole:
    """Role hint from a filename such as 'Controlo_Entradas_Junho.pdf'."""
    if not filename:
        return DocumentRole.UNKNOWN

    name = filename.lower()
    for role in (DocumentRole.CHECK_OUT, DocumentRole.CHECK_IN):
        if any(hint in name for hint in FILENAME_HINTS[role]):
            return role
    return DocumentRole.UNKNOWN


def build_prompt(raw_text: str, role: DocumentRole) -> str:
    """Role-specific prompt; unknown documents get the check-in prompt."""
    template = CHECK_OUT_PROMPT if role == DocumentRole.CHECK_OUT else CHECK_IN_PROMPT
    schema = json.dumps(RESERVATION_SCHEMA, indent=2, ensure_ascii=False)
    return template.replace('{schema}', schema).replace('{text}', raw_text)


def _json_candidate(raw: str) -> Optional[str]:
    match = _FENCED_JSON.search(raw)
    if match:
        return match.group(1)
    match = _BARE_JSON.search(raw)
    if match:
        return match.group(0)
    return None


def parse_provider_response(raw: Optional[str]) -> ExtractionResult:
    """
    Parse and validate a provider answer.

    Accepts a ```json fenced block or the first {...} span, holding either
    {"reservations": [...]} or a single reservation object.
    """
    if raw is not None and not isinstance(raw, str):
        return ExtractionParseError(raw=str(raw), reason=f"non-text response {type(raw).__name__}")
    if not raw or not raw.strip():
        return ExtractionParseError(raw=raw or "", reason="empty response")

    candidate = _json_candidate(raw)
    if candidate is None:
        return ExtractionParseError(raw=raw, reason="no JSON object in response")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        return ExtractionParseError(raw=raw, reason=f"invalid JSON: {e.msg}")

    try:
        if isinstance(data, dict) and 'reservations' in data:
            envelope = ExtractionEnvelope.model_validate(data)
            return ExtractionOk(records=envelope.reservations)
        if isinstance(data, dict):
            return ExtractionOk(records=[ReservationPayload.model_validate(data)])
    except ValidationError as e:
        return ExtractionParseError(raw=raw, reason=f"unexpected shape: {e.error_count()} errors")

    return ExtractionParseError(raw=raw, reason=f"unexpected JSON type {type(data).__name__}")


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if normalize(value) in PLACEHOLDER_VALUES:
        return None
    return value


def to_document_fields(
    payload: ReservationPayload,
    role: DocumentRole,
    source_document: Optional[str] = None
) -> ExtractedDocumentFields:
    """Convert a validated payload into typed fields, dropping placeholders."""
    guest_count = payload.guest_count
    if guest_count is not None and guest_count <= 0:
        guest_count = None

    return ExtractedDocumentFields(
        document_role=role,
        guest_name=_clean_text(payload.guest_name),
        property_name_raw=_clean_text(payload.property_name),
        check_in_date=parse_date(payload.check_in_date),
        check_out_date=parse_date(payload.check_out_date),
        total_amount=parse_amount(payload.total_amount),
        guest_count=guest_count,
        email=payload.email,
        phone=payload.phone,
        notes=payload.notes,
        source_document=source_document
    )


class ReservationExtractor:
    """Extracts reservation fields through an injected provider client."""

    def __init__(self, client):
        """
        Args:
            client: Object with extract_structured(request, cancel_event=None) -> str
        """
        self.client = client

    def classify(self, raw_text: Optional[str], filename: Optional[str] = None) -> DocumentRole:
        """Classify by content, falling back to the filename."""
        role = classify(raw_text)
        if role == DocumentRole.UNKNOWN:
            role = classify_filename(filename)
        return role

    def request_extraction(
        self,
        raw_text: str,
        role: DocumentRole,
        cancel_event: Optional[threading.Event] = None
    ) -> ExtractionResult:
        """Call the provider chain and parse its answer into a tagged result."""
        request = ExtractionRequest(
            document_text=raw_text,
            role_hint=role.value,
            prompt=build_prompt(raw_text, role),
            expected_schema=RESERVATION_SCHEMA
        )

        try:
            raw = self.client.extract_structured(request, cancel_event=cancel_event)
        except ExtractionFailure as e:
            return ExtractionParseError(raw="", reason=str(e))
        except Exception as e:
            logger.warning("Unexpected provider client error", extra={
                "role": role.value,
                "error": str(e)
            }, exc_info=True)
            return ExtractionParseError(raw="", reason=f"provider client error: {e}")

        return parse_provider_response(raw)

    def extract_all(
        self,
        raw_text: str,
        role: DocumentRole,
        source_document: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> List[ExtractedDocumentFields]:
        """
        Extract every reservation listed in a document.

        Returns:
            One record per reservation; a single all-null record (role kept)
            when extraction failed or found nothing
        """
        result = self.request_extraction(raw_text, role, cancel_event=cancel_event)

        if isinstance(result, ExtractionParseError):
            logger.warning("Extraction failed", extra={
                "role": role.value,
                "source_document": source_document,
                "reason": result.reason
            })
            return [ExtractedDocumentFields(document_role=role, source_document=source_document)]

        records = [to_document_fields(payload, role, source_document) for payload in result.records]
        records = [record for record in records if not record.is_empty()]

        if not records:
            logger.warning("Extraction returned no reservations", extra={
                "role": role.value,
                "source_document": source_document
            })
            return [ExtractedDocumentFields(document_role=role, source_document=source_document)]

        logger.info("Extracted reservations", extra={
            "role": role.value,
            "source_document": source_document,
            "count": len(records)
        })
        return records

    def extract_fields(
        self,
        raw_text: str,
        role: DocumentRole,
        source_document: Optional[str] = None
    ) -> ExtractedDocumentFields:
        """First reservation of a single-reservation document."""
        return self.extract_all(raw_text, role, source_document=source_document)[0]
