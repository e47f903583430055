"""HTTP middleware for the Taxonomy API.

Request correlation and the last-resort error handler. Both produce the
error body shape shared with the exception handlers in ``main``.
"""

import time
from typing import Any, Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Access lines for these paths are logged at debug level
QUIET_PATHS = frozenset({"/health", "/ready"})


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build an error response in the API's standard format.

    Args:
        request: Request being answered; supplies the correlation ID.
        status_code: HTTP status.
        error_code: Machine-readable code, e.g. ``NOT_FOUND``.
        message: Human-readable message.
        details: Structured context for the client.

    Returns:
        JSON response with ``error_code``, ``message``, ``details`` and
        ``request_id``.
    """
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details or {},
            "request_id": getattr(request.state, "request_id", None),
        },
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to the request, its log lines and its response.

    A caller-supplied ``X-Request-ID`` is reused; otherwise a UUID is
    generated. The ID, method and path are bound to structlog's context
    for the duration of the request.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            log = logger.debug if request.url.path in QUIET_PATHS else logger.info
            log(
                "Request handled",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """Turn exceptions that escaped every handler into a 500 response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )
            return error_response(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "INTERNAL_ERROR",
                "An internal error occurred",
            )


def setup_middleware(app: FastAPI) -> None:
    """Install the API middleware.

    Request context is added last so it runs outermost and the error
    handler already sees the request ID.
    """
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(RequestContextMiddleware)
