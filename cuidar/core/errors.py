"""Error taxonomy for the calendar bridge and its companion endpoints.

Every error carries the HTTP status it is surfaced with and a stable code.
The application-level exception handler turns them into
``{"error": message, "code": code}`` responses.
"""
from __future__ import annotations

from fastapi import status


class CuidarError(Exception):
    """Base error for all request-level failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class NotAuthenticated(CuidarError):
    """Not authenticated"""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"


class NotConnected(CuidarError):
    """Google not connected"""

    status_code = status.HTTP_409_CONFLICT
    code = "GOOGLE_NOT_CONNECTED"


class GoogleNotConfigured(CuidarError):
    """Google OAuth credentials are not fully configured"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "GOOGLE_NOT_CONFIGURED"


class TokenRefreshFailed(CuidarError):
    """Failed to refresh token"""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "TOKEN_REFRESH_FAILED"


class ProviderRequestFailed(CuidarError):
    """Google API request failed"""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "PROVIDER_REQUEST_FAILED"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ):
        if message is None and status_code is not None:
            message = f"{status_code} {body or ''}".strip()
        super().__init__(message)
        self.provider_status = status_code
        self.body = body


class MissingState(CuidarError):
    """Missing state"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "MISSING_STATE"


class InvalidState(CuidarError):
    """Invalid state/user"""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_STATE"


class OAuthDenied(CuidarError):
    """Google authorization was not granted"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "GOOGLE_OAUTH_ERROR"


class LocalWriteFailed(CuidarError):
    """Local write failed after the Google event was written"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "LOCAL_WRITE_FAILED"


class LocalRowNotFound(CuidarError):
    """Local meeting not found"""

    status_code = status.HTTP_404_NOT_FOUND
    code = "RESOURCE_NOT_FOUND"


class InvalidRequest(CuidarError):
    """Invalid request"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_REQUEST"
