"""
Supabase client for the exam and question-bank tables.

The client is a process-wide singleton created lazily under a lock. The
service role key is preferred when configured so the backend can write exams
and question documents regardless of row level security policies.
"""

import threading

from supabase import Client, create_client

from app.config import get_settings

_client: Client | None = None
_lock = threading.Lock()


def get_supabase_client() -> Client:
    """
    Return the shared Supabase client, creating it on first use.

    Returns:
        Client: Shared Supabase client instance

    Raises:
        ValueError: If the client cannot be created from the configured
            SUPABASE_URL and key
    """
    global _client
    if _client is not None:
        return _client
    with _lock:
        if _client is None:
            settings = get_settings()
            key = settings.supabase_service_role_key or settings.supabase_key
            try:
                _client = create_client(settings.supabase_url, key)
            except Exception as e:
                raise ValueError(f"Failed to create Supabase client: {str(e)}") from e
        return _client


def reset_supabase_client() -> None:
    """Drop the cached client (used by tests and after settings changes)."""
    global _client
    with _lock:
        _client = None
