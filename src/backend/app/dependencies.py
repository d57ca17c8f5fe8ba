"""
FastAPI dependency providers.

Routers never build services themselves; tests swap any of these through
app.dependency_overrides.
"""

from functools import lru_cache

from app.config import settings
from app.services.ai_providers import build_extraction_client
from app.services.extractor import ReservationExtractor
from app.services.ingestion import ImportPipeline
from app.services.ocr import DocumentTextService
from app.services.repository import ReservationRepository
from app.services.storage import StorageService
from app.utils.supabase import get_supabase_client


@lru_cache
def _supabase():
    return get_supabase_client()


def get_repository() -> ReservationRepository:
    return ReservationRepository(_supabase())


def get_storage() -> StorageService:
    return StorageService(_supabase())


def get_extractor() -> ReservationExtractor:
    return ReservationExtractor(build_extraction_client(settings))


def get_pipeline() -> ImportPipeline:
    return ImportPipeline(
        extractor=get_extractor(),
        repository=get_repository(),
        text_service=DocumentTextService(),
        config=settings
    )
