"""
Restaurant browsing and owner listing.
"""
import logging
from typing import Any, Iterable, Mapping, Optional, Union

from easytable.schemas import CreateRestaurantRequest, RestaurantSnapshot

logger = logging.getLogger(__name__)

RESTAURANTS_PATH = "/api/restaurants"


class RestaurantService:
    """Thin wrapper over the restaurant endpoints."""

    def __init__(self, api):
        self.api = api

    async def search(
        self,
        name: Optional[str] = None,
        category: Optional[str] = None,
        address: Optional[str] = None,
    ) -> list[RestaurantSnapshot]:
        """List restaurants, filtered by any non-empty criteria."""
        params = {"name": name, "category": category, "address": address}
        data = await self.api.get(RESTAURANTS_PATH, params=params)
        items = data.get("content") or []
        logger.debug(f"Restaurant search returned {len(items)} results")
        return [RestaurantSnapshot.model_validate(item) for item in items]

    async def get(self, restaurant_id: int) -> RestaurantSnapshot:
        data = await self.api.get(f"{RESTAURANTS_PATH}/{restaurant_id}")
        return RestaurantSnapshot.model_validate(data)

    async def add(self, request: Union[CreateRestaurantRequest, Mapping[str, Any]]) -> dict:
        """Create a restaurant (owner only; the backend enforces the role)."""
        if not isinstance(request, CreateRestaurantRequest):
            request = CreateRestaurantRequest.model_validate(request)
        result = await self.api.post(RESTAURANTS_PATH, request.to_payload())
        logger.info(f"Added restaurant {request.name}")
        return result


def only_available(restaurants: Iterable[RestaurantSnapshot]) -> list[RestaurantSnapshot]:
    return [r for r in restaurants if r.remaining_table_count > 0]


def unique_categories(restaurants: Iterable[RestaurantSnapshot]) -> list[str]:
    """Categories in first-seen order."""
    seen: list[str] = []
    for r in restaurants:
        if r.category and r.category not in seen:
            seen.append(r.category)
    return seen
