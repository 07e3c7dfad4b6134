"""Weather service that builds per-city snapshots from a single provider."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from backend.core.abstractions import (
    CityLookup,
    CityRecord,
    CityWeatherResult,
    WeatherProvider,
    WeatherService,
    WeatherSnapshot,
)


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class WeatherSnapshotService(WeatherService):
    """Fetch current weather for each resolved city, tolerating per-city failures."""

    def __init__(
        self,
        cities: CityLookup,
        provider: WeatherProvider,
        clock: Clock = utc_now,
    ) -> None:
        self._cities = cities
        self._provider = provider
        self._clock = clock

    def get_weather_snapshot(self, city_ids: Optional[Sequence[int]] = None) -> WeatherSnapshot:
        resolved = self.resolve_cities(city_ids)
        generated_at = self._clock()
        results = tuple(self._fetch_city(city) for city in resolved)
        logger.debug(
            "Built weather snapshot for %s cities (%s failed)",
            len(results),
            sum(1 for result in results if not result.is_ok),
        )
        return WeatherSnapshot(generated_at=generated_at, cities=results)

    def resolve_cities(self, city_ids: Optional[Sequence[int]] = None) -> List[CityRecord]:
        """Map requested ids to cities, keeping the caller's order.

        No ids means every city ordered by id. Ids without a matching city
        are dropped.
        """
        if not city_ids:
            return list(self._cities.find_all())
        by_id: Dict[int, CityRecord] = {city.id: city for city in self._cities.find_by_ids(city_ids)}
        return [by_id[city_id] for city_id in city_ids if city_id in by_id]

    def _fetch_city(self, city: CityRecord) -> CityWeatherResult:
        try:
            reading = self._provider.fetch_current_weather(city.latitude, city.longitude)
        except Exception as exc:  # noqa: BLE001 - one city must not fail the snapshot
            logger.error("Failed to retrieve weather for %s: %s", city.name, exc, exc_info=exc)
            return CityWeatherResult.error(city, str(exc))
        return CityWeatherResult.ok(city, reading)


__all__ = ["WeatherSnapshotService", "utc_now"]
