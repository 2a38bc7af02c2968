"""Gemini API client initialization with error handling.

This module provides the Gemini client used for exam extraction.
Uses the modern google-genai SDK (not google.generativeai).
"""

from google import genai
from google.genai import types

from app.config import get_settings


def get_gemini_client() -> genai.Client:
    """Initialize and return a Gemini API client.

    The client reads the API key and request timeout from the application
    settings. Large PDFs can take minutes, so the timeout is generous
    (EXTRACTION_TIMEOUT_SECONDS, default 300).

    Returns:
        genai.Client: Initialized Gemini client ready for API calls.

    Raises:
        ValueError: If GEMINI_API_KEY is not set in environment.

    Example:
        >>> client = get_gemini_client()
        >>> response = client.models.generate_content(
        ...     model="gemini-2.5-flash",
        ...     contents=["Hello world"]
        ... )
    """
    settings = get_settings()

    if not settings.gemini_api_key:
        raise ValueError(
            "GEMINI_API_KEY not set in environment. "
            "Please set this variable in your .env file or environment."
        )

    # HttpOptions timeout is in milliseconds
    return genai.Client(
        api_key=settings.gemini_api_key,
        http_options=types.HttpOptions(timeout=settings.extraction_timeout_seconds * 1000),
    )
