"""
JWT token decoding and role checks.

Handles:
- Unverified payload decoding (the backend owns signature verification)
- Expiry checks against the local clock
- User identity extraction from claims
- Role normalization and matching

None of the public helpers raise: malformed input degrades to an empty
payload, an empty UserInfo, or an expired verdict.
"""
import json
import logging
import time
from typing import Any, Iterable, Mapping, Optional, Union

from jwt.utils import base64url_decode

from core.errors import DecodeError
from .types import TokenClaims, UserInfo

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


# =============================================================================
# Decoding
# =============================================================================

def _decode_payload(token: str) -> dict:
    """Decode the payload segment. Raises DecodeError on any malformation.

    Only the middle segment is read; header and signature are left to the backend.
    """
    if not isinstance(token, str) or not token:
        raise DecodeError("Token must be a non-empty string")
    parts = token.split(".")
    if len(parts) != 3:
        raise DecodeError("Token must have exactly three segments")
    try:
        payload = json.loads(base64url_decode(parts[1]))
    except ValueError as e:
        raise DecodeError(f"Invalid payload segment: {e}") from e
    if not isinstance(payload, dict):
        raise DecodeError("Invalid payload string: must be a json object")
    return payload


def decode(token: Optional[str]) -> dict:
    """Decode a JWT payload without verifying it.

    Returns:
        Payload dict, or {} if the token is malformed.
    """
    try:
        return _decode_payload(token)
    except DecodeError as e:
        logger.warning(f"Failed to decode token: {e}")
        return {}


def decode_claims(token: Optional[str]) -> TokenClaims:
    """Typed view of decode(); empty TokenClaims on failure."""
    payload = decode(token)
    if not payload:
        return TokenClaims()
    return TokenClaims.from_payload(payload)


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Strip a 'Bearer ' prefix from an Authorization header value."""
    if not header_value:
        return None
    if header_value.startswith(BEARER_PREFIX):
        return header_value[len(BEARER_PREFIX):] or None
    return header_value


# =============================================================================
# Expiry
# =============================================================================

def _now(now: Optional[float]) -> int:
    return int(time.time() if now is None else now)


def is_expired(token: Optional[str], now: Optional[float] = None) -> bool:
    """True if the token is undecodable, has no numeric exp, or exp < now."""
    exp = decode(token).get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return True
    return exp < _now(now)


def is_valid(token: Optional[str], now: Optional[float] = None) -> bool:
    """Token is present and not expired."""
    return bool(token) and not is_expired(token, now)


def remaining_seconds(token: Optional[str], now: Optional[float] = None) -> int:
    """Seconds until expiry, clamped at zero."""
    exp = decode(token).get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return 0
    return max(int(exp) - _now(now), 0)


def extract_user_info(token: Optional[str]) -> UserInfo:
    """Canonical user shape from token claims; empty UserInfo on failure."""
    payload = decode(token)
    if not payload:
        return UserInfo.empty()
    return UserInfo.from_mapping(payload)


# =============================================================================
# Roles
# =============================================================================

def normalize_role(role: Any) -> Any:
    """Upper-case a role string. Non-strings pass through; None becomes ''."""
    if role is None:
        return ""
    if isinstance(role, str):
        return role.upper()
    return role


def user_role(user: Union[UserInfo, Mapping[str, Any], None]) -> Any:
    """Role of a user object, checking memberType before role."""
    if user is None:
        return None
    if isinstance(user, UserInfo):
        return user.role
    return user.get("memberType") or user.get("role")


def has_role(
    user: Union[UserInfo, Mapping[str, Any], None],
    required_roles: Union[str, Iterable[str]],
) -> bool:
    """Exact case-insensitive role match. No ROLE_ prefix stripping.

    Args:
        user: UserInfo or backend user mapping
        required_roles: One role or any-of list

    Returns:
        True if the user's role equals one of required_roles, ignoring case.
    """
    role = user_role(user)
    if not isinstance(role, str) or not role:
        return False
    role = normalize_role(role)
    if isinstance(required_roles, str):
        required_roles = [required_roles]
    return any(role == normalize_role(r) for r in required_roles)
