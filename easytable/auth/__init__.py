"""
Client authentication module.

Public API:
- Tokens: decode, is_expired, is_valid, extract_user_info, normalize_role, has_role
- Storage: SessionStore, MemoryStorage, FileStorage, create_storage
- Session: AuthSessionManager, format_remaining
- Guards: RouteGuard, Navigator, Decision, Action, policies

External callers should use this facade.
Internal auth modules import from submodules directly.
"""

# =============================================================================
# Types
# =============================================================================
from .types import (
    TokenClaims,
    UserInfo,
    Session,
    SessionState,
    SessionEvent,
    LoadingFlags,
)

# =============================================================================
# Tokens
# =============================================================================
from .tokens import (
    decode,
    decode_claims,
    is_expired,
    is_valid,
    extract_user_info,
    normalize_role,
    has_role,
)

# =============================================================================
# Storage
# =============================================================================
from .storage import (
    SessionStore,
    MemoryStorage,
    FileStorage,
    create_storage,
)

# =============================================================================
# Session lifecycle
# =============================================================================
from .session import AuthSessionManager, format_remaining

# =============================================================================
# Guards
# =============================================================================
from .guards import (
    Action,
    Decision,
    Navigator,
    RouteGuard,
    Public,
    AnonymousOnly,
    AuthenticatedOnly,
    RoleRequired,
    default_policies,
)

__all__ = [
    "TokenClaims",
    "UserInfo",
    "Session",
    "SessionState",
    "SessionEvent",
    "LoadingFlags",
    "decode",
    "decode_claims",
    "is_expired",
    "is_valid",
    "extract_user_info",
    "normalize_role",
    "has_role",
    "SessionStore",
    "MemoryStorage",
    "FileStorage",
    "create_storage",
    "AuthSessionManager",
    "format_remaining",
    "Action",
    "Decision",
    "Navigator",
    "RouteGuard",
    "Public",
    "AnonymousOnly",
    "AuthenticatedOnly",
    "RoleRequired",
    "default_policies",
]
