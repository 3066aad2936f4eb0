"""Exceptions raised by the calendar sync client."""
from typing import Any, Optional


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""


class AuthError(CalendarSyncError):
    """Raised when an authorization round-trip does not yield a token."""


class AuthCancelled(AuthError):
    """Raised when the user closes the auth window before a token arrives."""


class AuthorizationDenied(AuthError):
    """Raised when the provider redirects back with an error parameter."""

    def __init__(self, error: str):
        super().__init__(f"Authorization denied by provider: {error}")
        self.error = error


class TokenExchangeFailed(AuthError):
    """Raised when the token endpoint rejects an authorization code."""

    def __init__(self, message: str, error: Optional[Exception] = None,
                 response: Any = None):
        super().__init__(message)
        self.error = error
        self.response = response


class ReauthFailed(AuthError):
    """Raised when silent reauthentication cannot produce an access token."""


class ApiCallError(CalendarSyncError):
    """Raised when a calendar API request does not succeed."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class SyncAborted(CalendarSyncError):
    """Raised when a sync run stops on an error it cannot recover from."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class InvalidDeltaToken(CalendarSyncError):
    """Raised internally when a delta link carries a malformed token."""
