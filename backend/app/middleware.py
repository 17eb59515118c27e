import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("app.errors")


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Log unhandled exceptions with request and user context, then re-raise.

    Handled errors (HTTPException, IntakeError) never reach this layer. The
    exception is passed on unchanged so the server still produces its 500.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            user = getattr(request.state, "user", None)
            if user:
                logger.error(
                    "Unhandled error on %s %s: %s | user=%s (%s) role=%s permissions=%s",
                    request.method,
                    request.url.path,
                    exc,
                    user.get("name"),
                    user.get("id"),
                    user.get("role"),
                    user.get("permissions"),
                    exc_info=exc,
                )
            else:
                logger.error(
                    "Unhandled error on %s %s: %s | user=anonymous",
                    request.method,
                    request.url.path,
                    exc,
                    exc_info=exc,
                )
            raise
