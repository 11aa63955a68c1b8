from supabase import create_client, Client
from coachgate.config import settings


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        """Client with the anon key; used for token checks and OAuth flows."""
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Used for account rows and admin auth calls."""
        if not settings.supabase_service_role_key:
            raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY must be set for the supabase auth backend")
        if cls._service_client is None:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_supabase_service() -> Client:
    return SupabaseClient.get_service_client()


def create_sign_in_client() -> Client:
    """Fresh anon client per password sign-in, so no user session is kept on a shared client."""
    return create_client(settings.supabase_url, settings.supabase_key)
