"""Configuration management for the exam digitizer service.

This module uses Pydantic Settings to load configuration from environment
variables. All settings are validated at startup to catch configuration
errors early.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All sensitive values (API keys, database credentials) must be
    provided via environment variables or .env file.
    """

    # Gemini API Configuration
    gemini_api_key: str = Field(
        ...,
        description="Google Gemini API key for exam document extraction"
    )

    # Supabase Configuration
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anonymous key"
    )
    supabase_service_role_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key (bypasses RLS when set)"
    )

    # AI Model Configuration
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use for exam extraction"
    )
    extraction_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Timeout for a single Gemini extraction request (large PDFs are slow)"
    )
    gemini_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for overloaded / rate limited Gemini calls"
    )

    # Response repair tuning
    repair_lookahead_window: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Characters scanned after an in-string quote to decide if it closes the string"
    )

    # Submission checks
    max_empty_question_ratio: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Reject an extraction when more than this share of questions has no text"
    )
    duplicate_similarity_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Jaccard similarity at which an exam is reported as a duplicate"
    )
    duplicate_scan_limit: int = Field(
        default=50,
        ge=1,
        description="Number of recent exams compared during the duplicate check"
    )

    # Uploads / HTTP
    max_upload_size_mb: int = Field(
        default=20,
        ge=1,
        le=50,
        description="Maximum upload size in MB (Gemini inline data limit is ~20MB)"
    )
    trusted_proxies: Optional[str] = Field(
        default=None,
        description="Comma-separated proxy IPs whose X-Forwarded-For header is trusted"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    @field_validator("gemini_api_key")
    @classmethod
    def validate_gemini_api_key(cls, v: str) -> str:
        """Validate that GEMINI_API_KEY is present and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "GEMINI_API_KEY must be set in environment variables. "
                "Get your API key from https://ai.google.dev/"
            )
        return v.strip()

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate that Supabase URL is present and properly formatted."""
        if not v or not v.strip():
            raise ValueError("SUPABASE_URL must be set in environment variables")

        url = v.strip()
        if not url.startswith("https://"):
            raise ValueError(
                "SUPABASE_URL must start with https:// "
                f"(got: {url[:20]}...)"
            )

        return url

    @field_validator("supabase_key")
    @classmethod
    def validate_supabase_key(cls, v: str) -> str:
        """Validate that Supabase key is present and non-empty."""
        if not v or not v.strip():
            raise ValueError("SUPABASE_KEY must be set in environment variables")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL '{v}'")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance.

    Settings are loaded once and reused across the application lifetime.

    Returns:
        Settings: Validated application settings

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    return Settings()
