"""Shared pytest fixtures for EasyTable client tests."""
import os
import sys
import time
from contextlib import asynccontextmanager

import jwt
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

# Add project root to path
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _PROJECT_ROOT)

from config.settings import SessionSettings, get_settings
from easytable.auth.storage import MemoryStorage, SessionStore

TEST_SECRET = "test-jwt-secret-for-pytest-32chars!"
NOW = 1_700_000_000


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture(autouse=True)
def _reset_settings():
    """Settings singleton is rebuilt per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def session_settings():
    """Fast countdown for tests."""
    return SessionSettings(tick_interval_seconds=0.01, expiry_warning_seconds=60)


# =============================================================================
# Tokens and Clock
# =============================================================================

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_token(secret: str = TEST_SECRET, **claims) -> str:
    """Signed HS256 token with the given claims."""
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def now():
    """Epoch seconds the fake clock starts at."""
    return NOW


@pytest.fixture
def valid_token():
    """Token for an owner, valid for an hour past NOW."""
    return make_token(
        sub="owner@example.com",
        email="owner@example.com",
        id=7,
        role="owner",
        iat=NOW,
        exp=NOW + 3600,
    )


@pytest.fixture
def live_token():
    """Token valid relative to the real clock."""
    now = int(time.time())
    return make_token(sub="diner@example.com", role="USER", iat=now, exp=now + 3600)


# =============================================================================
# Storage
# =============================================================================

@pytest.fixture
def store():
    return SessionStore(MemoryStorage())


# =============================================================================
# In-process Backend
# =============================================================================

@pytest.fixture
def backend():
    """Factory for an aiohttp test server.

    Usage:
        async with backend([web.get("/api/auth/me", handler)]) as base_url:
            ...
    """
    @asynccontextmanager
    async def _serve(routes):
        app = web.Application()
        app.add_routes(routes)
        server = TestServer(app)
        await server.start_server()
        try:
            yield f"http://{server.host}:{server.port}"
        finally:
            await server.close()

    return _serve
