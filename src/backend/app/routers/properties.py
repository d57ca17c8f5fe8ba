"""
Property catalog diagnostics: resolver preview and catalog audit.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from app.config import settings
from app.dependencies import get_repository
from app.services.repository import ReservationRepository
from app.services.resolver import audit_catalog, rank, resolve
from app.utils.errors import CatalogUnavailable
from app.utils.normalizer import normalize

router = APIRouter(prefix="/properties", tags=["properties"])


def _load_catalog(repository: ReservationRepository):
    try:
        return repository.get_property_catalog()
    except CatalogUnavailable:
        raise HTTPException(
            status_code=503,
            detail="Catálogo de propriedades indisponível. Tente novamente mais tarde."
        )


@router.get("/resolve")
async def resolve_property(
    name: str = Query(..., min_length=1),
    limit: int = Query(settings.SUGGESTION_LIMIT, ge=1, le=20),
    repository: ReservationRepository = Depends(get_repository)
):
    """Show how a raw property name resolves against the catalog."""
    catalog = _load_catalog(repository)
    match = resolve(name, catalog, min_score=settings.MATCH_MIN_SCORE)

    return {
        "query": name,
        "normalized": normalize(name),
        "match": match.to_dict() if match else None,
        "candidates": [c.to_dict() for c in rank(name, catalog, limit=limit)]
    }


@router.get("/audit")
async def audit_properties(repository: ReservationRepository = Depends(get_repository)):
    """Report duplicate names, missing aliases and suspicious entries."""
    return audit_catalog(_load_catalog(repository))
