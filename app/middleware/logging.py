"""Logging middleware for request tracking and structured logging."""

import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs one JSON line per request.

    Logs include:
    - Request ID (UUID, taken from X-Request-ID when the client sends one)
    - HTTP method and path
    - Status code and processing time
    - Client IP
    - Extraction outcome (question count) when the route reports it

    Does NOT log uploaded documents, model output or request bodies.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()

        log_data: Dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "user_ip": request.client.host if request.client else "unknown",
        }

        try:
            response = await call_next(request)
        except Exception as e:
            processing_time_ms = (time.time() - start_time) * 1000
            error_log = {
                **log_data,
                "status_code": 500,
                "processing_time_ms": round(processing_time_ms, 2),
                "error": str(e),
                "error_type": type(e).__name__,
                "message": f"Request failed: {request.method} {request.url.path}",
            }
            logger.error(json.dumps(error_log), exc_info=True)
            raise

        processing_time_ms = (time.time() - start_time) * 1000
        log_data.update({
            "status_code": response.status_code,
            "processing_time_ms": round(processing_time_ms, 2),
        })

        if "X-Question-Count" in response.headers:
            try:
                log_data["question_count"] = int(response.headers["X-Question-Count"])
            except ValueError:
                pass

        logger.info(json.dumps(log_data))

        response.headers["X-Request-ID"] = request_id
        return response


def get_request_id(request: Request) -> str:
    """Return the request ID assigned by RequestLoggingMiddleware."""
    return getattr(request.state, "request_id", "unknown")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging; messages are pre-formatted (JSON for requests)."""
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
