"""Service-role Supabase client."""

from typing import Optional

from supabase import create_client, Client

_client: Optional[Client] = None


def get_supabase(url: str, service_role_key: str) -> Client:
    """Get or create the Supabase client using the service role key."""
    global _client
    if _client is None:
        if not url or not service_role_key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        _client = create_client(url, service_role_key)
    return _client
