"""
HTTP middleware: request ids and access logging.
"""
import logging
import time
import uuid
from typing import Any, Callable, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from studyai.logging_config import request_id_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
API_PREFIX = "/api/ai/"


def operation_for_path(path: str) -> str:
    """Operation name for an API path (``/api/ai/study-plan`` -> ``study-plan``)."""
    if path.startswith(API_PREFIX):
        return path[len(API_PREFIX):].strip("/") or "unknown"
    return path.strip("/") or "root"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an id and log its outcome.

    The id comes from the ``X-Request-ID`` header when the client sends one
    and is generated otherwise. It is visible to every log call made while
    the request is served and is returned in the response headers. Request
    bodies are never logged since they carry the user's study material.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_context.set(request_id)
        started = time.perf_counter()
        fields: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "operation": operation_for_path(request.url.path),
        }
        logger.debug(f"{request.method} {request.url.path} started", extra=fields)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            fields["status_code"] = response.status_code
            fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            message = (
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"in {fields['duration_ms']}ms"
            )
            if response.status_code >= 500:
                logger.error(message, extra=fields)
            elif response.status_code >= 400:
                logger.warning(message, extra=fields)
            else:
                logger.info(message, extra=fields)
            return response
        finally:
            request_id_context.reset(token)
