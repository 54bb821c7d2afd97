"""
Reservation submission.

The backend is the only capacity authority. The client refuses to submit
when a request for the same restaurant is already in flight or when the
last snapshot it saw had no tables left; otherwise it posts once, without
retrying, and reports the backend's answer verbatim.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from core.errors import ReservationBlockedError
from core.periodic import PeriodicTask
from easytable.schemas import ReservationResult, RestaurantSnapshot

logger = logging.getLogger(__name__)

RESERVATION_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def reservation_path(restaurant_id: int) -> str:
    return f"/api/v3/reservations/{restaurant_id}"


def build_reservation_time(now: Optional[datetime] = None, offset_minutes: int = 10) -> str:
    """Local wall-clock time `offset_minutes` from now, no timezone marker."""
    now = now or datetime.now()
    return (now + timedelta(minutes=offset_minutes)).strftime(RESERVATION_TIME_FORMAT)


class ReservationService:
    """POSTs reservations; errors propagate unchanged."""

    def __init__(self, api):
        self.api = api

    async def create_reservation(self, restaurant_id: int, reservation_time: str) -> ReservationResult:
        data = await self.api.post(
            reservation_path(restaurant_id),
            {"reservationTime": reservation_time},
        )
        result = ReservationResult.model_validate(data)
        logger.info(
            f"Reservation {result.reservation_id} for restaurant {restaurant_id}: {result.status}"
        )
        return result


class ReservationFlow:
    """Guards the submit trigger for each restaurant."""

    def __init__(self, service: ReservationService, offset_minutes: int = 10,
                 clock: Callable[[], datetime] = datetime.now):
        self.service = service
        self.offset_minutes = offset_minutes
        self._clock = clock
        self._in_flight: set[int] = set()

    def in_flight(self, restaurant_id: int) -> bool:
        return restaurant_id in self._in_flight

    def can_submit(self, restaurant_id: int, snapshot: Optional[RestaurantSnapshot] = None) -> bool:
        if restaurant_id in self._in_flight:
            return False
        if snapshot is not None and snapshot.remaining_table_count == 0:
            return False
        return True

    async def submit(
        self,
        restaurant_id: int,
        snapshot: Optional[RestaurantSnapshot] = None,
        now: Optional[datetime] = None,
    ) -> ReservationResult:
        """Reserve a table `offset_minutes` from now.

        Raises:
            ReservationBlockedError: Already submitting, or no tables left
            ApiError, NetworkError: Propagated from the gateway
        """
        if restaurant_id in self._in_flight:
            raise ReservationBlockedError(
                f"A reservation for restaurant {restaurant_id} is already being submitted"
            )
        if snapshot is not None and snapshot.remaining_table_count == 0:
            raise ReservationBlockedError(f"Restaurant {restaurant_id} has no tables left")

        self._in_flight.add(restaurant_id)
        try:
            reservation_time = build_reservation_time(now or self._clock(), self.offset_minutes)
            return await self.service.create_reservation(restaurant_id, reservation_time)
        finally:
            self._in_flight.discard(restaurant_id)


class ReservationClock:
    """Display clock: current time and the reservation time a submit would use."""

    def __init__(self, offset_minutes: int = 10, interval: float = 1.0,
                 clock: Callable[[], datetime] = datetime.now,
                 on_tick: Optional[Callable[["ReservationClock"], None]] = None):
        self.offset_minutes = offset_minutes
        self._clock = clock
        self._on_tick = on_tick
        self.now = clock()
        self._task = PeriodicTask("reservation-clock", self.refresh, interval=interval)

    @property
    def running(self) -> bool:
        return self._task.running

    @property
    def current_time(self) -> str:
        return self.now.strftime(RESERVATION_TIME_FORMAT)

    @property
    def preview(self) -> str:
        return build_reservation_time(self.now, self.offset_minutes)

    def refresh(self) -> None:
        self.now = self._clock()
        if self._on_tick is not None:
            self._on_tick(self)

    def start(self) -> bool:
        return self._task.start()

    def stop(self) -> None:
        self._task.stop()

    async def aclose(self) -> None:
        await self._task.aclose()
