"""Core abstractions for the weather dashboard domain."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple


DEFAULT_ERROR_MESSAGE = "Unable to fetch weather"


@dataclass(frozen=True, slots=True)
class CityRecord:
    """A configured city the dashboard can report on."""

    id: int
    name: str
    latitude: float
    longitude: float
    timezone: str = "UTC"


@dataclass(frozen=True, slots=True)
class WeatherReading:
    """Normalized current weather for a pair of coordinates."""

    temperature_c: float
    observed_at: datetime


class WeatherStatus(str, enum.Enum):
    OK = "OK"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class CityWeatherResult:
    """Outcome of fetching the weather for one city.

    Use :meth:`ok` and :meth:`error` rather than the constructor so that an
    ``OK`` entry always carries a temperature and timestamp and an ``ERROR``
    entry always carries a message.
    """

    city_id: int
    city_name: str
    timezone: str
    status: WeatherStatus
    temperature_c: Optional[float] = None
    data_timestamp: Optional[datetime] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, city: CityRecord, reading: WeatherReading) -> "CityWeatherResult":
        return cls(
            city_id=city.id,
            city_name=city.name,
            timezone=city.timezone,
            status=WeatherStatus.OK,
            temperature_c=reading.temperature_c,
            data_timestamp=reading.observed_at,
        )

    @classmethod
    def error(cls, city: CityRecord, message: Optional[str]) -> "CityWeatherResult":
        return cls(
            city_id=city.id,
            city_name=city.name,
            timezone=city.timezone,
            status=WeatherStatus.ERROR,
            message=message or DEFAULT_ERROR_MESSAGE,
        )

    @property
    def is_ok(self) -> bool:
        return self.status is WeatherStatus.OK


@dataclass(frozen=True, slots=True)
class WeatherSnapshot:
    """One aggregation pass over the resolved cities."""

    generated_at: datetime
    cities: Tuple[CityWeatherResult, ...]


class WeatherProvider(Protocol):
    """A data source capable of returning current weather for coordinates."""

    name: str

    def fetch_current_weather(self, latitude: float, longitude: float) -> WeatherReading:
        ...


class CityLookup(Protocol):
    """Read access to the configured cities."""

    def find_all(self) -> List[CityRecord]:
        """Return every city ordered by ascending id."""
        ...

    def find_by_ids(self, ids: Iterable[int]) -> List[CityRecord]:
        """Return the cities matching ``ids``; unknown ids are ignored."""
        ...


class WeatherService(Protocol):
    """High level service that exposes weather snapshots to the API layer."""

    def get_weather_snapshot(self, city_ids: Optional[Sequence[int]] = None) -> WeatherSnapshot:
        ...


__all__ = [
    "CityLookup",
    "CityRecord",
    "CityWeatherResult",
    "DEFAULT_ERROR_MESSAGE",
    "WeatherProvider",
    "WeatherReading",
    "WeatherService",
    "WeatherSnapshot",
    "WeatherStatus",
]
