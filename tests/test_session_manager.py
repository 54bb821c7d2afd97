"""Tests for the auth session lifecycle."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from core.errors import ApiError, AuthError, NetworkError, SessionBusyError
from easytable.auth.session import (
    LOGOUT_PATH,
    ME_PATH,
    SIGNIN_PATH,
    SIGNUP_PATH,
    AuthSessionManager,
    format_remaining,
)
from easytable.auth.types import SessionEvent, SessionState, UserInfo


@pytest.fixture
def api():
    api = MagicMock()
    api.get = AsyncMock(return_value={})
    api.post = AsyncMock(return_value={})
    return api


@pytest.fixture
def manager(api, store, session_settings, clock):
    return AuthSessionManager(api, store, settings=session_settings, clock=clock)


@pytest.fixture
def events(manager):
    received = []
    manager.subscribe(lambda event, session: received.append((event, session.state)))
    return received


CREDENTIALS = {"email": "owner@example.com", "password": "secret123"}


# =============================================================================
# format_remaining
# =============================================================================

class TestFormatRemaining:
    @pytest.mark.parametrize("seconds,expected", [
        (0, "expired"),
        (-5, "expired"),
        (None, "expired"),
        (42, "42s"),
        (65, "1m 5s"),
        (3600, "1h 0m 0s"),
        (3661, "1h 0m 1s"),
    ])
    def test_formats(self, seconds, expected):
        assert format_remaining(seconds) == expected


# =============================================================================
# initialize / validate
# =============================================================================

class TestInitialize:
    def test_starts_unknown(self, manager):
        assert manager.state is SessionState.UNKNOWN
        assert manager.initialized is False

    @pytest.mark.asyncio
    async def test_no_token_is_anonymous(self, manager, api):
        assert await manager.initialize() is None
        assert manager.state is SessionState.ANONYMOUS
        assert manager.initialized is True
        api.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_token_cleared_without_network(self, manager, api, store, valid_token, clock):
        store.save(valid_token)
        store.save_user(UserInfo(email="owner@example.com"))
        clock.advance(3601)

        assert await manager.initialize() is None

        assert manager.state is SessionState.ANONYMOUS
        assert store.load() is None
        assert store.load_user() is None
        api.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_token_confirmed_by_backend(self, manager, api, store, valid_token):
        store.save(valid_token)
        api.get.return_value = {"id": 7, "email": "owner@example.com", "memberType": "OWNER"}

        user = await manager.initialize()

        api.get.assert_awaited_once_with(ME_PATH, token=valid_token)
        assert user.email == "owner@example.com"
        assert user.role == "OWNER"
        assert manager.state is SessionState.AUTHENTICATED
        assert manager.session.remaining_seconds == 3600
        assert manager.session.raw_token == valid_token
        assert store.load_user() == user
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_user_nested_under_user_key(self, manager, api, store, valid_token):
        store.save(valid_token)
        api.get.return_value = {"user": {"email": "nested@example.com"}}

        user = await manager.initialize()

        assert user.email == "nested@example.com"
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_empty_me_falls_back_to_stored_user(self, manager, api, store, valid_token):
        store.save(valid_token)
        store.save_user(UserInfo(id=1, email="stored@example.com", name="stored", role="USER"))

        user = await manager.initialize()

        assert user.email == "stored@example.com"
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_empty_me_and_no_stored_user_uses_claims(self, manager, api, store, valid_token):
        store.save(valid_token)

        user = await manager.initialize()

        assert user.email == "owner@example.com"
        assert user.role == "owner"
        await manager.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ApiError("Unauthorized", status_code=401),
        NetworkError(),
    ])
    async def test_backend_rejection_clears_session(self, manager, api, store, valid_token, error):
        store.save(valid_token)
        api.get.side_effect = error

        assert await manager.initialize() is None

        assert manager.state is SessionState.ANONYMOUS
        assert store.load() is None
        assert not manager.countdown_running

    @pytest.mark.asyncio
    async def test_loading_flag_cleared(self, manager, api, store, valid_token):
        store.save(valid_token)
        seen = []

        async def me(*args, **kwargs):
            seen.append(manager.loading.initial)
            return {"email": "owner@example.com"}

        api.get.side_effect = me
        await manager.initialize()

        assert seen == [True]
        assert manager.loading.initial is False
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_validate_skipped_during_login(self, manager, api):
        manager._busy = "login"
        assert await manager.validate() is None
        api.get.assert_not_called()


# =============================================================================
# login
# =============================================================================

class TestLogin:
    @pytest.mark.asyncio
    async def test_success_persists_and_authenticates(self, manager, api, store, valid_token, events):
        api.post.return_value = {"token": valid_token, "user": {"id": 7, "email": "owner@example.com", "role": "OWNER"}}

        user = await manager.login(CREDENTIALS, remember=True)

        api.post.assert_awaited_once_with(SIGNIN_PATH, CREDENTIALS)
        assert user.email == "owner@example.com"
        assert user.exp is not None
        assert manager.state is SessionState.AUTHENTICATED
        assert store.load() == valid_token
        assert store.load_user() == user
        assert store.recall_email() == "owner@example.com"
        assert (SessionEvent.CHANGED, SessionState.AUTHENTICATED) in events
        assert manager.countdown_running
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_without_remember_keeps_previous_email(self, manager, api, store, valid_token):
        store.remember_email("old@example.com")
        api.post.return_value = {"token": valid_token}

        await manager.login(CREDENTIALS)

        assert store.recall_email() == "old@example.com"
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_user_derived_from_token(self, manager, api, valid_token):
        api.post.return_value = {"token": valid_token}

        user = await manager.login(CREDENTIALS)

        assert user.id == 7
        assert user.name == "owner"
        assert user.role == "owner"
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_user_falls_back_to_email(self, manager, api, token_factory, now):
        api.post.return_value = {"token": token_factory(exp=now + 3600)}

        user = await manager.login(CREDENTIALS)

        assert user.email == "owner@example.com"
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_missing_token_leaves_state_untouched(self, manager, api, store, events):
        api.post.return_value = {"user": {"email": "owner@example.com"}}

        with pytest.raises(AuthError, match="Authentication failed: No token received"):
            await manager.login(CREDENTIALS)

        assert manager.state is SessionState.UNKNOWN
        assert store.load() is None
        assert store.load_user() is None
        assert events == []
        assert manager.loading.login is False

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self, manager, api, store):
        api.post.side_effect = ApiError("Invalid credentials", status_code=401)

        with pytest.raises(ApiError, match="Invalid credentials"):
            await manager.login(CREDENTIALS)

        assert store.load() is None
        assert manager.busy is False

    @pytest.mark.asyncio
    async def test_invalid_credentials_shape(self, manager, api):
        with pytest.raises(ValidationError):
            await manager.login({"email": "", "password": "x"})
        api.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_login_rejected(self, manager, api, valid_token):
        release = asyncio.Event()

        async def slow_signin(*args, **kwargs):
            await release.wait()
            return {"token": valid_token}

        api.post.side_effect = slow_signin
        first = asyncio.ensure_future(manager.login(CREDENTIALS))
        await asyncio.sleep(0)

        assert manager.loading.login is True
        with pytest.raises(SessionBusyError):
            await manager.login(CREDENTIALS)
        with pytest.raises(SessionBusyError):
            await manager.logout()

        release.set()
        await first
        assert api.post.await_count == 1
        assert manager.loading.login is False
        await manager.aclose()


# =============================================================================
# register
# =============================================================================

class TestRegister:
    SIGNUP = {
        "email": "new@example.com",
        "password": "longenough",
        "confirmPassword": "longenough",
        "role": "owner",
        "agreeTerms": True,
    }

    @pytest.mark.asyncio
    async def test_posts_member_type(self, manager, api):
        api.post.return_value = {"id": 1}

        result = await manager.register(self.SIGNUP)

        api.post.assert_awaited_once_with(
            SIGNUP_PATH,
            {"email": "new@example.com", "password": "longenough", "memberType": "OWNER"},
        )
        assert result == {"id": 1}
        assert manager.state is SessionState.UNKNOWN

    @pytest.mark.asyncio
    async def test_backend_error_propagates_unchanged(self, manager, api):
        error = ApiError("Email already exists", status_code=409)
        api.post.side_effect = error

        with pytest.raises(ApiError) as exc_info:
            await manager.register(self.SIGNUP)

        assert exc_info.value is error
        assert manager.loading.register is False


# =============================================================================
# logout
# =============================================================================

class TestLogout:
    @pytest.mark.asyncio
    async def test_notifies_backend_and_clears(self, manager, api, store, valid_token):
        api.post.return_value = {"token": valid_token}
        await manager.login(CREDENTIALS, remember=True)
        api.post.reset_mock()

        await manager.logout()

        api.post.assert_awaited_once_with(LOGOUT_PATH, token=valid_token)
        assert manager.state is SessionState.ANONYMOUS
        assert manager.user is None
        assert store.load() is None
        assert store.recall_email() == "owner@example.com"
        assert not manager.countdown_running

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ApiError("gone", status_code=500), NetworkError()])
    async def test_backend_failure_still_clears(self, manager, api, store, valid_token, error):
        api.post.return_value = {"token": valid_token}
        await manager.login(CREDENTIALS)
        api.post.side_effect = error

        await manager.logout()

        assert manager.state is SessionState.ANONYMOUS
        assert store.load() is None
        assert manager.loading.logout is False

    @pytest.mark.asyncio
    async def test_without_token_skips_backend(self, manager, api):
        await manager.logout()
        api.post.assert_not_called()
        assert manager.state is SessionState.ANONYMOUS


# =============================================================================
# Countdown
# =============================================================================

class TestCountdown:
    @pytest.mark.asyncio
    async def test_tick_updates_remaining(self, manager, api, valid_token, clock, events):
        api.post.return_value = {"token": valid_token}
        await manager.login(CREDENTIALS)
        await manager.aclose()

        clock.advance(100)
        manager.tick()

        assert manager.session.remaining_seconds == 3500
        assert manager.state is SessionState.AUTHENTICATED
        assert events[-1] == (SessionEvent.TICK, SessionState.AUTHENTICATED)

    @pytest.mark.asyncio
    async def test_expiring_emitted_once(self, manager, api, valid_token, clock, events):
        api.post.return_value = {"token": valid_token}
        await manager.login(CREDENTIALS)
        await manager.aclose()

        clock.advance(3540)
        manager.tick()
        clock.advance(1)
        manager.tick()

        assert manager.state is SessionState.EXPIRING
        assert manager.session.remaining_seconds == 59
        assert [e for e, _ in events].count(SessionEvent.EXPIRING) == 1

    @pytest.mark.asyncio
    async def test_expiry_clears_local_session(self, manager, api, store, valid_token, clock, events):
        api.post.return_value = {"token": valid_token}
        await manager.login(CREDENTIALS)
        await manager.aclose()
        api.post.reset_mock()

        clock.advance(3600)
        manager.tick()

        assert manager.state is SessionState.ANONYMOUS
        assert store.load() is None
        assert events[-2:] == [
            (SessionEvent.EXPIRED, SessionState.ANONYMOUS),
            (SessionEvent.CHANGED, SessionState.ANONYMOUS),
        ]
        api.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_background_ticker_expires_session(self, manager, api, valid_token, clock, events):
        api.post.return_value = {"token": valid_token}
        await manager.login(CREDENTIALS)
        assert manager.countdown_running

        clock.advance(3600)
        for _ in range(100):
            if manager.state is SessionState.ANONYMOUS:
                break
            await asyncio.sleep(0.01)
        for _ in range(100):
            if not manager.countdown_running:
                break
            await asyncio.sleep(0.01)

        assert manager.state is SessionState.ANONYMOUS
        assert (SessionEvent.EXPIRED, SessionState.ANONYMOUS) in events
        assert not manager.countdown_running

    @pytest.mark.asyncio
    async def test_login_near_expiry_starts_expiring(self, manager, api, token_factory, now):
        api.post.return_value = {"token": token_factory(sub="a@b.co", exp=now + 30)}

        await manager.login(CREDENTIALS)

        assert manager.state is SessionState.EXPIRING
        await manager.aclose()

    def test_tick_when_anonymous_is_noop(self, manager, events):
        manager.tick()
        assert events == []


# =============================================================================
# Subscribers
# =============================================================================

class TestSubscribers:
    @pytest.mark.asyncio
    async def test_unsubscribe(self, manager):
        received = []
        unsubscribe = manager.subscribe(lambda e, s: received.append(e))
        unsubscribe()
        unsubscribe()

        await manager.initialize()
        assert received == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_others(self, manager):
        received = []

        def broken(event, session):
            raise RuntimeError("listener bug")

        manager.subscribe(broken)
        manager.subscribe(lambda e, s: received.append(e))

        await manager.initialize()
        assert received == [SessionEvent.CHANGED]

    @pytest.mark.asyncio
    async def test_no_event_when_nothing_changes(self, manager, events):
        await manager.initialize()
        await manager.validate()
        assert events == [(SessionEvent.CHANGED, SessionState.ANONYMOUS)]
