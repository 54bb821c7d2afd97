"""
Centralized error handling for the EasyTable client.

Error Hierarchy:
- EasyTableError: base for every error the client raises on purpose
  - NetworkError: the backend could not be reached, no response exists
  - ApiError: the backend answered with a non-2xx status
  - DecodeError: a token could not be parsed (never escapes the codec)
  - AuthError: sign-in or session handling failed
    - SessionBusyError: another login/logout/register is still running
  - ReservationBlockedError: submission refused before any network call

Usage:
    from core.errors import safe_error_message, ApiError

    try:
        await manager.login(credentials)
    except EasyTableError as e:
        message, exit_code = safe_error_message(e, "login")
"""

import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================

class EasyTableError(Exception):
    """Base class for expected client errors. Messages are safe to show."""
    exit_code = 1


class NetworkError(EasyTableError):
    """No response was received from the backend."""

    def __init__(self, message: str = "Network error: Unable to connect to the server"):
        super().__init__(message)


class ApiError(EasyTableError):
    """Backend returned a non-2xx status."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None, payload: Optional[dict] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}


class DecodeError(EasyTableError):
    """Token payload could not be decoded."""
    pass


class AuthError(EasyTableError):
    """Authentication failed."""
    pass


class SessionBusyError(AuthError):
    """A session operation is already in flight."""
    pass


class ReservationBlockedError(EasyTableError):
    """Reservation submission is blocked on the client side."""
    exit_code = 2


# =============================================================================
# Safe Error Message Helper
# =============================================================================

def safe_error_message(e: Exception, operation: str) -> Tuple[str, int]:
    """
    Turn an exception into a user-facing message and a process exit code.

    For EasyTableError subclasses (expected errors):
        - Returns the error message unchanged
        - Uses the exception's exit_code
        - Logs at WARNING level

    For all other exceptions (unexpected errors):
        - Returns a generic message
        - Returns exit code 1
        - Logs the full exception at ERROR level

    Args:
        e: The exception that was caught
        operation: Human-readable description of what failed (e.g., "login")

    Returns:
        Tuple of (message, exit_code)
    """
    if isinstance(e, EasyTableError):
        logger.warning(f"{operation}: {e}")
        return str(e), e.exit_code

    logger.exception(f"{operation} failed")
    return f"{operation} failed", 1
