from typing import Optional

from supabase import create_client, Client
from app.config import settings


def get_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """
    Create a Supabase client.
    Uses the service role key unless another key is given, since the import
    pipeline writes reservations and activities for every property.
    """
    return create_client(
        url or settings.SUPABASE_URL,
        key or settings.SUPABASE_SERVICE_KEY
    )
