"""
Supabase persistence for the import pipeline.

Tables:
- properties(id, name, aliases)                  read only here
- reservations                                   accepted reservations
- activities                                     audit trail
- imported_documents(file_hash, filename, role)  content-hash idempotency
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.models.reservation import ConsolidatedReservation
from app.utils.candidates import PropertyCatalogEntry
from app.utils.dates import to_iso
from app.utils.errors import CatalogUnavailable

logger = logging.getLogger(__name__)


def _decimal_to_str(value) -> Optional[str]:
    """Supabase-py JSON encoder cannot serialize Decimal objects directly."""
    return str(value) if value is not None else None


class ReservationRepository:
    """Reads the property catalog and writes reservations and activity logs."""

    def __init__(self, supabase):
        """
        Args:
            supabase: Supabase client (see app.utils.supabase)
        """
        self.supabase = supabase

    def get_property_catalog(self) -> List[PropertyCatalogEntry]:
        """
        Load every property with its aliases, ordered by id.

        Raises:
            CatalogUnavailable: the table could not be read
        """
        try:
            response = self.supabase.table('properties').select(
                'id, name, aliases'
            ).order('id').execute()
        except Exception as e:
            logger.error("Error loading property catalog", extra={"error": str(e)}, exc_info=True)
            raise CatalogUnavailable(f"Property catalog unavailable: {e}") from e

        catalog = [PropertyCatalogEntry.from_row(row) for row in response.data or []]
        logger.debug("Loaded property catalog", extra={"properties": len(catalog)})
        return catalog

    def save_reservation(self, reservation: ConsolidatedReservation, property_id: int) -> Any:
        """
        Insert an accepted reservation.

        Returns:
            Id of the new reservation row
        """
        record = {
            'property_id': property_id,
            'guest_name': reservation.guest_name,
            'check_in_date': to_iso(reservation.check_in_date),
            'check_out_date': to_iso(reservation.check_out_date),
            'total_amount': _decimal_to_str(reservation.total_amount),
            'num_guests': reservation.guest_count,
            'guest_email': reservation.email,
            'guest_phone': reservation.phone,
            'notes': reservation.notes,
            'source': reservation.source.value,
            'status': 'confirmed',
        }
        response = self.supabase.table('reservations').insert(record).execute()
        reservation_id = response.data[0]['id']

        logger.info("Saved reservation", extra={
            "reservation_id": reservation_id,
            "property_id": property_id,
            "source": reservation.source.value
        })
        return reservation_id

    def save_activity_log(
        self,
        activity_type: str,
        description: str,
        entity_id: Any = None,
        entity_type: Optional[str] = None,
        metadata: Optional[Dict] = None
    ) -> None:
        """Append an audit trail entry. Failures are logged, never raised."""
        entry = {
            'type': activity_type,
            'description': description,
            'entity_id': entity_id,
            'entity_type': entity_type,
            'metadata': metadata or {},
            'created_at': datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.supabase.table('activities').insert(entry).execute()
        except Exception as e:
            logger.warning("Error saving activity log", extra={
                "activity_type": activity_type,
                "error": str(e)
            })

    def is_document_imported(self, file_hash: str) -> bool:
        """True when a document with this content hash was already imported."""
        try:
            response = self.supabase.table('imported_documents').select('file_hash').eq(
                'file_hash', file_hash
            ).limit(1).execute()
            return len(response.data) > 0
        except Exception as e:
            logger.warning("Error checking imported document", extra={
                "file_hash": file_hash,
                "error": str(e)
            })
            return False

    def mark_document_imported(self, file_hash: str, filename: str, role: str) -> None:
        """Record a processed document so re-uploads are skipped."""
        try:
            self.supabase.table('imported_documents').upsert({
                'file_hash': file_hash,
                'filename': filename,
                'role': role,
                'imported_at': datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            logger.warning("Error recording imported document", extra={
                "file_hash": file_hash,
                "error": str(e)
            })
