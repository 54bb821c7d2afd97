"""
Auth session lifecycle.

AuthSessionManager is the single owner of the in-memory Session snapshot.
It restores and validates the stored token on startup, performs login,
registration and logout against the backend, and runs a one-second
countdown that downgrades the session to EXPIRING near expiry and clears
it locally once the token runs out.

Subscribers receive (SessionEvent, Session) for every change.

Usage:
    manager = AuthSessionManager(api, store)
    await manager.initialize()
    unsubscribe = manager.subscribe(lambda event, session: ...)
    await manager.login({"email": "a@b.co", "password": "secret123"})
"""
import logging
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional, Union

from core.errors import AuthError, EasyTableError, SessionBusyError
from core.periodic import PeriodicTask
from easytable.schemas import LoginRequest, SignupRequest
from . import tokens
from .storage import SessionStore
from .types import LoadingFlags, Session, SessionEvent, SessionState, UserInfo

logger = logging.getLogger(__name__)

SIGNIN_PATH = "/api/auth/signin"
SIGNUP_PATH = "/api/auth/signup"
ME_PATH = "/api/auth/me"
LOGOUT_PATH = "/api/auth/logout"

Listener = Callable[[SessionEvent, Session], Any]

ANONYMOUS = Session(state=SessionState.ANONYMOUS)


def _with_expiry(user: UserInfo, token: str) -> UserInfo:
    """Fill in exp from the token when the user object lacks it."""
    if user.exp is None:
        expires_at = tokens.decode_claims(token).expires_at
        if expires_at is not None:
            return replace(user, exp=expires_at)
    return user


def format_remaining(seconds: Optional[int]) -> str:
    """Human countdown: '1h 0m 1s', '1m 5s', '42s', or 'expired'."""
    if seconds is None or seconds <= 0:
        return "expired"
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class AuthSessionManager:
    """
    Owns the auth session state machine.

    States: UNKNOWN -> ANONYMOUS | AUTHENTICATED <-> EXPIRING.

    Attributes:
        api: ApiClient (or compatible) used for auth endpoints
        store: SessionStore persisting token, user and remembered email
        loading: Per-operation in-flight flags
        initialized: True once the first validation has finished
    """

    def __init__(self, api, store: SessionStore, settings=None, clock: Callable[[], float] = time.time):
        if settings is None:
            from config.settings import get_settings
            settings = get_settings().session
        self.api = api
        self.store = store
        self.settings = settings
        self.loading = LoadingFlags()
        self.initialized = False
        self._clock = clock
        self._session = Session()
        self._listeners: list[Listener] = []
        self._busy: Optional[str] = None
        self._ticker = PeriodicTask(
            "session-countdown", self.tick, interval=settings.tick_interval_seconds
        )

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def user(self) -> Optional[UserInfo]:
        return self._session.user

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def busy(self) -> bool:
        return self._busy is not None

    @property
    def countdown_running(self) -> bool:
        return self._ticker.running

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self._session)
            except Exception:
                logger.exception(f"Session listener failed on {event.value}")

    def _set_session(self, session: Session, notify: bool = True) -> None:
        changed = session != self._session
        self._session = session
        if changed and notify:
            self._emit(SessionEvent.CHANGED)

    # =========================================================================
    # Transitions
    # =========================================================================

    def _authenticate(self, token: str, user: UserInfo) -> None:
        claims = tokens.decode_claims(token)
        remaining = tokens.remaining_seconds(token, self._clock())
        state = (
            SessionState.EXPIRING
            if remaining <= self.settings.expiry_warning_seconds
            else SessionState.AUTHENTICATED
        )
        self._set_session(Session(
            state=state,
            user=user,
            raw_token=token,
            expires_at=claims.expires_at,
            remaining_seconds=remaining,
        ))
        self._ticker.start()

    def _clear_local(self, notify: bool = True) -> None:
        self._ticker.stop()
        self.store.clear()
        self._set_session(ANONYMOUS, notify=notify)

    @contextmanager
    def _operation(self, name: str):
        if self._busy is not None:
            raise SessionBusyError(f"Cannot {name} while {self._busy} is in progress")
        self._busy = name
        setattr(self.loading, name, True)
        try:
            yield
        finally:
            self._busy = None
            setattr(self.loading, name, False)

    # =========================================================================
    # Countdown
    # =========================================================================

    def tick(self) -> None:
        """Recompute remaining time; runs every tick_interval_seconds."""
        current = self._session
        if not current.is_authenticated:
            self._ticker.stop()
            return

        remaining = tokens.remaining_seconds(current.raw_token, self._clock())
        if remaining <= 0:
            logger.warning("Session expired, clearing local session")
            self._clear_local(notify=False)
            self._emit(SessionEvent.EXPIRED)
            self._emit(SessionEvent.CHANGED)
            return

        expiring = remaining <= self.settings.expiry_warning_seconds
        self._session = replace(
            current,
            remaining_seconds=remaining,
            state=SessionState.EXPIRING if expiring else SessionState.AUTHENTICATED,
        )
        if expiring and current.state is not SessionState.EXPIRING:
            logger.warning(f"Session expires in {format_remaining(remaining)}")
            self._emit(SessionEvent.EXPIRING)
        self._emit(SessionEvent.TICK)

    # =========================================================================
    # Operations
    # =========================================================================

    async def initialize(self) -> Optional[UserInfo]:
        """Restore the stored session on startup."""
        self.loading.initial = True
        try:
            return await self.validate()
        finally:
            self.loading.initial = False
            self.initialized = True

    async def validate(self) -> Optional[UserInfo]:
        """Re-check the stored token locally and against /api/auth/me.

        Returns:
            The authenticated user, or None when the session is anonymous.
        """
        if self._busy is not None:
            return self.user

        token = self.store.load()
        if not token:
            self._clear_local()
            return None

        if tokens.is_expired(token, self._clock()):
            logger.info("Stored token expired, clearing session")
            self._clear_local()
            return None

        try:
            data = await self.api.get(ME_PATH, token=token)
        except EasyTableError as e:
            logger.warning(f"Session validation failed: {e}")
            if self.store.load() == token:
                self._clear_local()
            return self.user

        if self.store.load() != token:
            # a login or logout replaced the token while /me was in flight
            return self.user

        payload = data.get("user") if isinstance(data.get("user"), dict) else data
        user = UserInfo.from_mapping(payload)
        if user.is_empty:
            user = self.store.load_user() or tokens.extract_user_info(token)

        user = _with_expiry(user, token)
        self.store.save_user(user)
        self._authenticate(token, user)
        return self.user

    async def login(
        self,
        credentials: Union[LoginRequest, Mapping[str, Any]],
        remember: bool = False,
    ) -> UserInfo:
        """Sign in and persist the session.

        Raises:
            pydantic.ValidationError: Invalid credentials shape
            SessionBusyError: Another session operation is running
            AuthError: Backend accepted the request but sent no token
            ApiError, NetworkError: Propagated from the gateway
        """
        if not isinstance(credentials, LoginRequest):
            credentials = LoginRequest.model_validate(credentials)

        with self._operation("login"):
            data = await self.api.post(SIGNIN_PATH, credentials.model_dump())

            token = data.get("token")
            if not token:
                raise AuthError("Authentication failed: No token received")

            raw_user = data.get("user")
            user = UserInfo.from_mapping(raw_user) if isinstance(raw_user, dict) else UserInfo.empty()
            if user.is_empty:
                user = tokens.extract_user_info(token)
            if user.is_empty:
                user = UserInfo.from_mapping({"email": credentials.email})

            user = _with_expiry(user, token)
            self.store.save(token)
            self.store.save_user(user)
            if remember:
                self.store.remember_email(credentials.email)

            self._authenticate(token, user)
            logger.info(f"Logged in as {user.email}")
            return self.user

    async def register(self, data: Union[SignupRequest, Mapping[str, Any]]) -> dict:
        """Create an account. Does not sign in; backend errors propagate."""
        if not isinstance(data, SignupRequest):
            data = SignupRequest.model_validate(data)

        with self._operation("register"):
            result = await self.api.post(SIGNUP_PATH, data.to_payload())
            logger.info(f"Registered {data.email} as {data.role}")
            return result

    async def logout(self) -> None:
        """Notify the backend (best effort) and always clear the local session."""
        with self._operation("logout"):
            token = self.store.load() or self._session.raw_token
            try:
                if token:
                    await self.api.post(LOGOUT_PATH, token=token)
            except EasyTableError as e:
                logger.warning(f"Logout request failed: {e}")
            finally:
                self._clear_local()
            logger.info("Logged out")

    async def aclose(self) -> None:
        """Stop the countdown. Session data is left as is."""
        await self._ticker.aclose()
