"""
Auth domain types - no dependencies on other auth modules.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    """First truthy value among keys, else None."""
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class TokenClaims:
    """Decoded JWT payload (immutable). Never signature-verified."""
    subject: Optional[str] = None
    role: Any = None  # raw: casing varies, may carry ROLE_ prefix or be a list
    expires_at: Optional[int] = None  # epoch seconds
    issued_at: Optional[int] = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.raw

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenClaims":
        return cls(
            subject=_first(payload, "sub", "email", "id", "user_id"),
            role=_first(payload, "role", "memberType", "permissions"),
            expires_at=payload.get("exp"),
            issued_at=payload.get("iat"),
            raw=dict(payload),
        )


@dataclass(frozen=True)
class UserInfo:
    """Canonical user identity, from the backend or from token claims."""
    id: Any = None
    email: Optional[str] = None
    name: Optional[str] = None
    role: Any = None
    exp: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not any(v not in (None, "") for v in (self.id, self.email, self.name, self.role))

    @classmethod
    def empty(cls) -> "UserInfo":
        return cls()

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "UserInfo":
        """Build from a backend user object or token payload.

        Aliases: id <- id|sub|user_id, email <- email|sub,
        name <- name or the local part of the email, role <- role|memberType|permissions.
        """
        if not data:
            return cls.empty()
        email = _first(data, "email", "sub")
        name = data.get("name")
        if not name and isinstance(email, str):
            name = email.split("@")[0]
        return cls(
            id=_first(data, "id", "sub", "user_id"),
            email=email,
            name=name or None,
            role=_first(data, "role", "memberType", "permissions"),
            exp=data.get("exp"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "exp": self.exp,
        }


class SessionState(str, Enum):
    """Auth session lifecycle."""
    UNKNOWN = "unknown"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    EXPIRING = "expiring"


class SessionEvent(str, Enum):
    """Notifications delivered to session subscribers."""
    CHANGED = "changed"
    TICK = "tick"
    EXPIRING = "expiring"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Session:
    """Immutable snapshot of the auth session."""
    state: SessionState = SessionState.UNKNOWN
    user: Optional[UserInfo] = None
    raw_token: Optional[str] = None
    expires_at: Optional[int] = None
    remaining_seconds: Optional[int] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state in (SessionState.AUTHENTICATED, SessionState.EXPIRING)


@dataclass
class LoadingFlags:
    """In-flight markers for session operations."""
    initial: bool = False
    login: bool = False
    register: bool = False
    logout: bool = False
