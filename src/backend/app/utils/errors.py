"""
Exceptions raised by the reservation import pipeline.

Only CatalogUnavailable is meant to reach API callers; the others are
caught inside the pipeline and turned into outcomes (all-null records,
clarification questions or rejections).
"""

from typing import Optional


class ReservationImportError(Exception):
    """Base class for import pipeline errors."""


class ExtractionFailure(ReservationImportError):
    """The OCR/LLM provider chain produced no usable response."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class AmbiguousMatch(ReservationImportError):
    """A property was matched, but not confidently enough to accept it."""

    def __init__(self, raw_name: str, candidate=None):
        super().__init__(f"Ambiguous property match for '{raw_name}'")
        self.raw_name = raw_name
        self.candidate = candidate


class InvalidDateRange(ReservationImportError):
    """Stay dates are inverted or implausibly long."""


class ImplausibleAmount(ReservationImportError):
    """Total amount is non-positive or above the configured ceiling."""


class CatalogUnavailable(ReservationImportError):
    """The property catalog could not be read."""
