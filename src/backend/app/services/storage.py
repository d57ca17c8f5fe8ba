"""
Storage service for imported booking documents.

Documents are kept in Supabase Storage under content-addressed paths, so
re-uploading the same PDF overwrites the same object.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import Optional, Tuple

from app.config import settings

logger = logging.getLogger(__name__)


def calculate_file_hash(file_data: bytes) -> str:
    """SHA-256 hex digest of a document, used for deduplication."""
    return hashlib.sha256(file_data).hexdigest()


class StorageService:
    """Service for storing imported documents in Supabase Storage."""

    def __init__(self, supabase, bucket_name: Optional[str] = None):
        """
        Args:
            supabase: Supabase client
            bucket_name: Storage bucket (defaults to DOCUMENT_BUCKET)
        """
        self.supabase = supabase
        self.bucket_name = bucket_name or settings.DOCUMENT_BUCKET

    def _sanitize_filename(self, filename: str) -> str:
        """Keep only the base name, with unsafe characters replaced by underscores."""
        safe_name = Path(filename).name
        safe_name = re.sub(r'[^\w\-\.]', '_', safe_name)
        safe_name = re.sub(r'_+', '_', safe_name)
        return safe_name or "document"

    def generate_file_path(self, file_hash: str, filename: str) -> str:
        """
        Deterministic storage path.

        Format: imports/{hash[:2]}/{hash}/{safe_filename}
        """
        safe_filename = self._sanitize_filename(filename)
        return f"imports/{file_hash[:2]}/{file_hash}/{safe_filename}"

    def store_document(
        self,
        filename: str,
        file_data: bytes,
        mime_type: str = "application/pdf"
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Upload a document with idempotent upsert.

        Returns:
            (file_hash, file_path), or (file_hash, None) if the upload failed
        """
        file_hash = calculate_file_hash(file_data)
        file_path = self.generate_file_path(file_hash, filename)

        try:
            self.supabase.storage.from_(self.bucket_name).upload(
                path=file_path,
                file=file_data,
                file_options={
                    "content-type": mime_type,
                    "upsert": "true"
                }
            )
        except Exception as e:
            logger.error("Error uploading document", extra={
                "file_path": file_path,
                "error": str(e)
            }, exc_info=True)
            return file_hash, None

        logger.debug("Stored document", extra={
            "file_path": file_path,
            "size_bytes": len(file_data),
            "mime_type": mime_type
        })
        return file_hash, file_path
