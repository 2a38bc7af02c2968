"""Tests for Supabase client initialization."""

from unittest.mock import MagicMock, patch

import pytest

from app.db.supabase_client import get_supabase_client, reset_supabase_client


class TestGetSupabaseClient:
    """Tests for get_supabase_client function."""

    @patch("app.db.supabase_client.create_client")
    def test_successful_client_creation(self, mock_create_client):
        """Test client creation with the anon key."""
        mock_client = MagicMock()
        mock_create_client.return_value = mock_client

        client = get_supabase_client()

        assert client is mock_client
        mock_create_client.assert_called_once_with("https://test.supabase.co", "test-supabase-key")

    @patch("app.db.supabase_client.create_client")
    def test_service_role_key_preferred(self, mock_create_client, monkeypatch):
        """Test the service role key is used when configured."""
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")

        get_supabase_client()

        mock_create_client.assert_called_once_with("https://test.supabase.co", "service-key")

    @patch("app.db.supabase_client.create_client")
    def test_client_is_singleton(self, mock_create_client):
        """Test the client is created once and reused."""
        assert get_supabase_client() is get_supabase_client()
        assert mock_create_client.call_count == 1

    @patch("app.db.supabase_client.create_client")
    def test_reset_creates_new_client(self, mock_create_client):
        mock_create_client.side_effect = [MagicMock(), MagicMock()]

        first = get_supabase_client()
        reset_supabase_client()
        second = get_supabase_client()

        assert first is not second

    @patch("app.db.supabase_client.create_client")
    def test_creation_failure(self, mock_create_client):
        """Test errors from create_client are wrapped in ValueError."""
        mock_create_client.side_effect = Exception("Invalid API key")

        with pytest.raises(ValueError, match="Failed to create Supabase client: Invalid API key"):
            get_supabase_client()
