"""
errors.py — Exception taxonomy and the handler that renders it.

Every error leaving the API uses the same envelope the mobile client
already parses:

    { "success": false, "error": "<reason>", "details": "<optional>" }

Routes and services raise the domain exceptions below; main.py registers
mood_map_error_handler so FastAPI turns them into responses. Validation
always happens before the store is queried.
"""

import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class MoodMapError(Exception):
    """Base class — carries the HTTP status and the client-facing message."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(MoodMapError):
    """Malformed or missing input (bad bounds, bad id, bad grid size)."""

    status_code = 400


class AuthenticationError(MoodMapError):
    """Missing, expired or invalid bearer token."""

    status_code = 401


class NotFoundError(MoodMapError):
    """A specific resource does not exist (or is not visible to the caller)."""

    status_code = 404


class InternalError(MoodMapError):
    """Store failure or unexpected exception during aggregation."""

    status_code = 500


def error_body(message: str, details: Optional[str] = None) -> dict:
    body = {"success": False, "error": message}
    if details:
        body["details"] = details
    return body


async def mood_map_error_handler(request: Request, exc: MoodMapError) -> JSONResponse:
    """Render a MoodMapError as the standard error envelope."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.details),
        headers=headers,
    )


async def rate_limit_error_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """slowapi's 429, rendered in the same envelope (with X-RateLimit headers)."""
    logger.warning("Rate limit hit on %s %s: %s", request.method, request.url.path, exc.detail)
    response = JSONResponse(
        status_code=429,
        content=error_body("Too many requests", f"Rate limit exceeded: {exc.detail}"),
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
