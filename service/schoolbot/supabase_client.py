from supabase import create_client, Client
from schoolbot.config import get_settings


def get_supabase_admin() -> Client:
    """Service role client: bypasses RLS, used for server-side lookups."""
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key
    )
