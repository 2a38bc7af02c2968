"""Shared fixtures: environment for Settings, clean caches and rate limits."""

import pytest

from app.config import get_settings
from app.db.supabase_client import reset_supabase_client
from app.middleware.rate_limit import get_limiter


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Provide the required environment variables for every test."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "test-supabase-key")
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    monkeypatch.delenv("TRUSTED_PROXIES", raising=False)
    get_settings.cache_clear()
    reset_supabase_client()
    yield
    get_settings.cache_clear()
    reset_supabase_client()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with empty rate limit counters."""
    get_limiter().reset()
