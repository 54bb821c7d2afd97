"""
Core shared utilities for the EasyTable client.

This module holds pieces that do not depend on the easytable package:
- errors: the client error hierarchy
- periodic: the asyncio ticker used by session countdown and display clocks
"""

from .errors import (
    EasyTableError,
    NetworkError,
    ApiError,
    DecodeError,
    AuthError,
    SessionBusyError,
    ReservationBlockedError,
    safe_error_message,
)

from .periodic import PeriodicTask
