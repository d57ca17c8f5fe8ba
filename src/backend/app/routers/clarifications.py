"""
Clarification API router.

When an import returns needs_clarification, the user answers the
questions and the reservation goes back through resolution and the gate.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import date
from decimal import Decimal

from app.dependencies import get_pipeline
from app.models.reservation import ConsolidatedReservation, ReservationSource
from app.services.ingestion import ImportPipeline
from app.utils.errors import CatalogUnavailable

router = APIRouter(prefix="/clarifications", tags=["clarifications"])


class PartialReservation(BaseModel):
    """Reservation data as returned in a needs_clarification decision."""
    source: ReservationSource = ReservationSource.CHECK_IN_ONLY
    guest_name: Optional[str] = None
    property_name: Optional[str] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    guest_count: Optional[int] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    source_documents: List[str] = []

    def to_reservation(self) -> ConsolidatedReservation:
        return ConsolidatedReservation(**self.model_dump())


class ResolveClarificationRequest(BaseModel):
    """Partial reservation plus answers keyed by field name."""
    reservation: PartialReservation
    answers: Dict[str, Any]


@router.post("/resolve")
async def resolve_clarification(
    request: ResolveClarificationRequest,
    pipeline: ImportPipeline = Depends(get_pipeline)
):
    """
    Apply answers to a partial reservation and gate it again.

    Returns:
        New decision (accepted reservations are saved)
    """
    if not request.answers:
        raise HTTPException(status_code=400, detail="No answers provided")

    try:
        outcome = await run_in_threadpool(
            pipeline.resolve_clarification,
            request.reservation.to_reservation(),
            request.answers
        )
        return outcome.to_dict()

    except CatalogUnavailable:
        raise HTTPException(
            status_code=503,
            detail="Catálogo de propriedades indisponível. Tente novamente mais tarde."
        )
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to resolve clarification: {str(e)}"
        )
