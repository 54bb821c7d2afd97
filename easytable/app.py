"""
Application factory.

Wires settings, storage, the API gateway, the session manager and the
route guard together. Every component takes its collaborators explicitly,
so tests can build any of them in isolation.
"""

import logging
from typing import Optional

from dotenv import load_dotenv

from config.settings import AppSettings, get_settings
from easytable.api_client import ApiClient
from easytable.auth.guards import Navigator, RouteGuard
from easytable.auth.session import AuthSessionManager
from easytable.auth.storage import SessionStore, create_storage
from easytable.reservations import ReservationFlow, ReservationService
from easytable.restaurants import RestaurantService

logger = logging.getLogger(__name__)


class EasyTableApp:
    """Component container. Shared pieces are created lazily, once."""

    def __init__(self, settings: AppSettings, store: Optional[SessionStore] = None, api=None):
        self.settings = settings
        self._store = store
        self._api = api
        self._manager: Optional[AuthSessionManager] = None
        self._guard: Optional[RouteGuard] = None
        self._restaurants: Optional[RestaurantService] = None
        self._reservations: Optional[ReservationFlow] = None

    @property
    def store(self) -> SessionStore:
        if self._store is None:
            self._store = SessionStore(create_storage(self.settings))
        return self._store

    @property
    def api(self) -> ApiClient:
        if self._api is None:
            self._api = ApiClient(self.settings.api.url, store=self.store)
        return self._api

    @property
    def manager(self) -> AuthSessionManager:
        if self._manager is None:
            self._manager = AuthSessionManager(self.api, self.store, settings=self.settings.session)
        return self._manager

    @property
    def guard(self) -> RouteGuard:
        if self._guard is None:
            self._guard = RouteGuard(self.manager, Navigator(self.settings.session.home_path))
        return self._guard

    @property
    def restaurants(self) -> RestaurantService:
        if self._restaurants is None:
            self._restaurants = RestaurantService(self.api)
        return self._restaurants

    @property
    def reservations(self) -> ReservationFlow:
        if self._reservations is None:
            self._reservations = ReservationFlow(
                ReservationService(self.api),
                offset_minutes=self.settings.reservation.offset_minutes,
            )
        return self._reservations

    async def aclose(self) -> None:
        if self._guard is not None:
            self._guard.close()
        if self._manager is not None:
            await self._manager.aclose()
        if self._api is not None and hasattr(self._api, "close"):
            await self._api.close()


def create_app(settings: Optional[AppSettings] = None, **overrides) -> EasyTableApp:
    """Create the client application.

    Args:
        settings: Optional settings; defaults to get_settings() after loading .env.
        overrides: store= or api= replacements for tests.
    """
    if settings is None:
        load_dotenv()
        settings = get_settings()

    from easytable.logging_config import configure_logging
    configure_logging(settings)

    logger.debug(f"EasyTable client for {settings.api.url}")
    return EasyTableApp(settings, **overrides)
