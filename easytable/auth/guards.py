"""
Route guarding for navigable sections.

Each path prefix maps to a policy. evaluate() is a pure function of the
current session; enforce() applies the resulting decision through a
Navigator exactly once per (path, session state, decision).

Usage:
    guard = RouteGuard(manager, Navigator("/"))
    decision = guard.navigate("/owner/restaurants/new")
    if decision.action is Action.DENY:
        ...  # render access denied
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional, Union

from .tokens import has_role
from .types import Session, SessionEvent

logger = logging.getLogger(__name__)

OWNER_ROLES = ("OWNER", "ROLE_OWNER")


class Action(str, Enum):
    RENDER = "render"
    REDIRECT = "redirect"
    DENY = "deny"
    WAIT = "wait"


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating a path.

    `remember` is the path to restore after login. `resume` marks a redirect
    that should prefer a remembered path over `target`.
    """
    action: Action
    target: Optional[str] = None
    remember: Optional[str] = None
    resume: bool = False


RENDER = Decision(Action.RENDER)
WAIT = Decision(Action.WAIT)
DENY = Decision(Action.DENY)


@dataclass(frozen=True)
class GuardPaths:
    home: str = "/"
    login: str = "/auth/login"


# =============================================================================
# Policies
# =============================================================================

class Public:
    """Always rendered."""

    def check(self, path: str, session: Session, ready: bool, paths: GuardPaths) -> Decision:
        return RENDER


class AnonymousOnly:
    """Sign-in and sign-up pages; signed-in users go home."""

    def check(self, path: str, session: Session, ready: bool, paths: GuardPaths) -> Decision:
        if not ready:
            return WAIT
        if session.is_authenticated:
            return Decision(Action.REDIRECT, paths.home, resume=True)
        return RENDER


class AuthenticatedOnly:
    """Requires a session; anonymous visitors are sent to login."""

    def check(self, path: str, session: Session, ready: bool, paths: GuardPaths) -> Decision:
        if not ready:
            return WAIT
        if not session.is_authenticated:
            return Decision(Action.REDIRECT, paths.login, remember=path)
        return RENDER


class RoleRequired(AuthenticatedOnly):
    """Requires a session and one of `roles` (exact, case-insensitive)."""

    def __init__(self, roles: Union[str, Iterable[str]]):
        self.roles = (roles,) if isinstance(roles, str) else tuple(roles)

    def check(self, path: str, session: Session, ready: bool, paths: GuardPaths) -> Decision:
        decision = super().check(path, session, ready, paths)
        if decision.action is not Action.RENDER:
            return decision
        if not has_role(session.user, self.roles):
            return DENY
        return RENDER


def default_policies() -> dict:
    """Section table for the EasyTable client."""
    return {
        "/auth": AnonymousOnly(),
        "/restaurants": AuthenticatedOnly(),
        "/reservation": AuthenticatedOnly(),
        "/owner": RoleRequired(OWNER_ROLES),
    }


# =============================================================================
# Navigation
# =============================================================================

class Navigator:
    """Current location plus history of pushed paths."""

    def __init__(self, location: str = "/"):
        self.location = location
        self.history = [location]

    def push(self, path: str) -> None:
        self.location = path
        self.history.append(path)


class RouteGuard:
    """Applies section policies whenever the session or location changes."""

    def __init__(
        self,
        manager,
        navigator: Optional[Navigator] = None,
        policies: Optional[Mapping[str, object]] = None,
        home_path: Optional[str] = None,
        login_path: Optional[str] = None,
    ):
        settings = getattr(manager, "settings", None)
        self.manager = manager
        self.navigator = navigator or Navigator()
        self.policies = dict(policies if policies is not None else default_policies())
        self.paths = GuardPaths(
            home=home_path or getattr(settings, "home_path", "/"),
            login=login_path or getattr(settings, "login_path", "/auth/login"),
        )
        self._redirect_after_login: Optional[str] = None
        self._last_applied = None
        self._unsubscribe = manager.subscribe(self._on_session_event)

    def policy_for(self, path: str):
        """Longest matching prefix wins; unmatched paths are public."""
        best, best_len = None, -1
        for prefix, policy in self.policies.items():
            base = prefix.rstrip("/")
            if path == prefix or path == base or path.startswith(base + "/"):
                if len(base) > best_len:
                    best, best_len = policy, len(base)
        return best or Public()

    def evaluate(self, path: Optional[str] = None) -> Decision:
        """Decide what to do with `path` (default: current location). No side effects."""
        path = path or self.navigator.location
        return self.policy_for(path).check(
            path, self.manager.session, self.manager.initialized, self.paths
        )

    def enforce(self, path: Optional[str] = None) -> Decision:
        """Evaluate and apply. Repeated calls with unchanged inputs do nothing."""
        path = path or self.navigator.location
        decision = self.evaluate(path)
        key = (path, self.manager.state, decision)
        if key == self._last_applied:
            return decision
        self._last_applied = key

        if decision.remember and decision.remember != self.paths.login:
            self._redirect_after_login = decision.remember
        if decision.action is Action.REDIRECT:
            target = decision.target
            if decision.resume:
                target = self.consume_redirect() or target
            if target != self.navigator.location:
                logger.info(f"Redirecting {path} -> {target}")
                self.navigator.push(target)
        elif decision.action is Action.DENY:
            logger.warning(f"Access denied to {path}")
        return decision

    def navigate(self, path: str) -> Decision:
        """Move to `path` and enforce its policy."""
        if path != self.navigator.location:
            self.navigator.push(path)
        return self.enforce(path)

    def consume_redirect(self) -> Optional[str]:
        """Path remembered before a login redirect; returned once."""
        path, self._redirect_after_login = self._redirect_after_login, None
        return path

    def post_login_destination(self) -> str:
        return self.consume_redirect() or self.paths.home

    def close(self) -> None:
        self._unsubscribe()

    def _on_session_event(self, event: SessionEvent, session: Session) -> None:
        if event in (SessionEvent.CHANGED, SessionEvent.EXPIRED):
            self.enforce()
