"""
Request middleware and helpers.

- `CorrelationMiddleware`: Accepts or generates a correlation id per request,
  stores it in the logging context and echoes it in the response headers.
- `get_client_ip`: Extracts the client IP, honouring proxy headers. The
  location resolver uses it to resolve the caller's location.
- `create_error_response`: Standard JSON error envelope.
"""

import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging_config import get_logger, set_correlation_id

logger = get_logger("core.middleware")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering proxy headers"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def create_error_response(
    error_type: str,
    error_code: str,
    message: str,
    status_code: int = 400,
    correlation_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Create standardized error response"""

    error_data = {"error": {"type": error_type, "code": error_code, "message": message}}

    if correlation_id:
        error_data["error"]["correlation_id"] = correlation_id

    if details:
        error_data["error"]["details"] = details

    return JSONResponse(status_code=status_code, content=error_data)
