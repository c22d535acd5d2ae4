from supabase import create_client, Client
from functools import lru_cache
from whatsapp_bridge.config import get_settings


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get Supabase client instance (cached).

    The service role key is preferred when configured, since this backend
    writes messages on behalf of the provider rather than a signed-in user.

    Returns:
        Client: Supabase client instance
    """
    settings = get_settings()
    supabase: Client = create_client(
        supabase_url=settings.supabase_url,
        supabase_key=settings.supabase_service_key or settings.supabase_key
    )
    return supabase
