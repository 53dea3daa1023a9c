"""Domain errors and their HTTP translation"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

RELOGIN_HINT = (
    "Please log out, log back in, and approve all requested Discord permissions."
)


class DashboardError(Exception):
    """Base class for errors surfaced to the dashboard as ``{"error": ...}``"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(DashboardError):
    """A required secret or environment value is missing"""

    status_code = 500


class AuthenticationError(DashboardError):
    """No usable session or Discord credential; the user has to log in again"""

    status_code = 401


class TokenRefreshFailed(AuthenticationError):
    """Discord refused to exchange the refresh token"""


class CredentialNotFound(AuthenticationError):
    """No Discord credential is stored for the user"""


class CredentialStoreError(DashboardError):
    """The credential store is unreachable or returned a malformed row"""

    status_code = 503


class DiscordApiError(DashboardError):
    """Non-2xx (or timed out) response from the Discord API"""

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: str = "",
        endpoint: str = "",
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.endpoint = endpoint
        self.retry_after = retry_after


class DiscordUnauthorized(DiscordApiError):
    """Discord rejected the bearer token (401)"""


def _user_id(request: Request) -> str:
    return getattr(request.state, "user_id", None) or "-"


def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to JSON responses"""

    @app.exception_handler(AuthenticationError)
    async def handle_auth_error(request: Request, exc: AuthenticationError) -> JSONResponse:
        logger.warning(
            f"Authentication error on {request.url.path} (user={_user_id(request)}): {exc.message}"
        )
        return _error_response(exc.status_code, f"Authentication error: {exc.message}")

    @app.exception_handler(DiscordApiError)
    async def handle_discord_error(request: Request, exc: DiscordApiError) -> JSONResponse:
        logger.error(
            f"Discord API error on {request.url.path}: user={_user_id(request)} "
            f"endpoint={exc.endpoint} status={exc.status} {exc.message}"
        )
        extra = {}
        if exc.retry_after is not None:
            extra["retry_after"] = exc.retry_after
        return _error_response(exc.status_code, f"Discord API Error: {exc.message}", **extra)

    @app.exception_handler(DashboardError)
    async def handle_dashboard_error(request: Request, exc: DashboardError) -> JSONResponse:
        logger.error(
            f"{type(exc).__name__} on {request.url.path} (user={_user_id(request)}): {exc.message}"
        )
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        if field:
            message = f"{field}: {message}"
        return _error_response(400, message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return _error_response(500, "Internal server error")
