"""
File validation service for exam uploads.

Provides security checks including:
- File size limits
- MIME type validation (PDF or scanned image)
- Filename sanitization
"""

import re
from pathlib import Path
from typing import Dict, Tuple

import magic
from fastapi import HTTPException, UploadFile

# Media types Gemini accepts as inline document data, with the extension used
# when a sanitized filename has none
ALLOWED_MIME_TYPES: Dict[str, str] = {
    "application/pdf": ".pdf",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}
DEFAULT_MAX_FILE_SIZE = 20 * 1024 * 1024  # 20MB


async def validate_upload(
    file: UploadFile,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
) -> Tuple[bytes, str, str]:
    """
    Validate an uploaded exam file and return content, MIME type and filename.

    Args:
        file: FastAPI UploadFile instance from multipart/form-data
        max_file_size: Maximum accepted size in bytes

    Returns:
        Tuple of (file_content, mime_type, sanitized_filename)

    Raises:
        HTTPException: 400 for validation errors, 413 for file too large
    """
    content = await file.read()

    if len(content) == 0:
        raise HTTPException(status_code=400, detail="File is empty")

    if len(content) > max_file_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {max_file_size // (1024 * 1024)}MB"
        )

    # Sniff the real type; the client-declared content type is not trusted
    mime_type = magic.from_buffer(content, mime=True)
    if mime_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Invalid file type. Expected one of {', '.join(ALLOWED_MIME_TYPES)}, "
                f"got {mime_type}"
            )
        )

    sanitized_filename = sanitize_filename(file.filename or "", ALLOWED_MIME_TYPES[mime_type])

    return content, mime_type, sanitized_filename


def sanitize_filename(filename: str, extension: str = ".pdf") -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename from upload
        extension: Extension appended when the name lacks one

    Returns:
        Sanitized filename safe for storage

    Security:
        - Removes directory components and parent references (..)
        - Removes null bytes
        - Limits to alphanumeric, dash, underscore, dot
        - Limits length to 255 characters
    """
    filename = Path(filename).name
    filename = filename.replace("..", "").replace("/", "").replace("\\", "")
    filename = filename.replace("\0", "")
    filename = re.sub(r'[^a-zA-Z0-9._-]', '_', filename)

    stem = filename[:-len(extension)] if filename.lower().endswith(extension) else filename
    if not stem.strip("._"):
        return "upload" + extension

    if not filename.lower().endswith(extension):
        filename = filename + extension

    if len(filename) > 255:
        filename = filename[:-len(extension)][:250] + extension

    return filename
