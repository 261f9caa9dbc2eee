from supabase import create_client, Client
from postgrest.exceptions import APIError
from app.config import settings

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class Tables:
    CIRCLES = "circles"
    MEMBERSHIPS = "circle_memberships"
    MESSAGES = "circle_messages"
    INVITATIONS = "circle_invitations"
    TAG_CONFIG = "circle_tag_config"
    SUBSCRIPTIONS = "notification_subscriptions"


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Use in the push worker and seed scripts."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or cls.get_client()

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def is_unique_violation(exc: Exception) -> bool:
    """True when a PostgREST error was caused by a primary key / unique constraint."""
    return isinstance(exc, APIError) and getattr(exc, "code", None) == UNIQUE_VIOLATION
