"""
Reservation models.

Dataclasses carry records through the import pipeline; pydantic models
validate what the OCR/LLM providers return.
"""

from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Union
import math
import re

from pydantic import BaseModel, Field, field_validator


class DocumentRole(str, Enum):
    """Role of a booking document in a stay."""
    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"
    UNKNOWN = "unknown"


class ReservationSource(str, Enum):
    """Which documents a consolidated reservation was built from."""
    CONSOLIDATED = "consolidated"
    CHECK_IN_ONLY = "check-in-only"
    CHECK_OUT_ONLY = "check-out-only"


@dataclass
class ExtractedDocumentFields:
    """Fields extracted from one reservation row of one document. All optional."""
    document_role: DocumentRole = DocumentRole.UNKNOWN
    guest_name: Optional[str] = None
    property_name_raw: Optional[str] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    guest_count: Optional[int] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    source_document: Optional[str] = None

    def is_empty(self) -> bool:
        """True when the extraction produced no field at all."""
        return all(
            getattr(self, name) is None
            for name in (
                'guest_name', 'property_name_raw', 'check_in_date', 'check_out_date',
                'total_amount', 'guest_count', 'email', 'phone', 'notes'
            )
        )


@dataclass
class ConsolidatedReservation:
    """A single reservation merged from check-in and/or check-out records."""
    source: ReservationSource
    guest_name: Optional[str] = None
    property_name: Optional[str] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    guest_count: Optional[int] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    source_documents: List[str] = field(default_factory=list)

    @property
    def nights(self) -> Optional[int]:
        if self.check_in_date is None or self.check_out_date is None:
            return None
        return (self.check_out_date - self.check_in_date).days

    def to_dict(self) -> dict:
        """JSON-safe representation (dates as ISO strings, Decimal as string)."""
        data = asdict(self)
        data['source'] = self.source.value
        for key in ('check_in_date', 'check_out_date'):
            data[key] = data[key].isoformat() if data[key] is not None else None
        data['total_amount'] = str(self.total_amount) if self.total_amount is not None else None
        return data


def _coerce_text(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class ReservationPayload(BaseModel):
    """One reservation as returned by a provider (camelCase JSON keys)."""
    guest_name: Optional[str] = Field(default=None, alias="guestName")
    property_name: Optional[str] = Field(default=None, alias="propertyName")
    check_in_date: Optional[str] = Field(default=None, alias="checkInDate")
    check_out_date: Optional[str] = Field(default=None, alias="checkOutDate")
    total_amount: Optional[Union[float, int, str]] = Field(default=None, alias="totalAmount")
    guest_count: Optional[int] = Field(default=None, alias="guestCount")
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "ignore"

    @field_validator(
        'guest_name', 'property_name', 'check_in_date', 'check_out_date',
        'email', 'phone', 'notes', mode='before'
    )
    @classmethod
    def _text(cls, value):
        return _coerce_text(value)

    @field_validator('total_amount', mode='before')
    @classmethod
    def _amount(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator('guest_count', mode='before')
    @classmethod
    def _count(cls, value):
        # "2 adultos" -> 2, anything without digits -> None
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float) and not math.isfinite(value):
            return None
        if isinstance(value, (int, float)):
            return int(value)
        match = re.search(r'\d+', str(value))
        return int(match.group()) if match else None


class ExtractionEnvelope(BaseModel):
    """Provider response holding one or more reservations."""
    reservations: List[ReservationPayload] = []

    class Config:
        extra = "ignore"
