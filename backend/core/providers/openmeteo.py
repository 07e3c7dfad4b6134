"""Open-Meteo current weather provider."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from backend.core.abstractions import WeatherReading
from backend.core.providers.base import HttpWeatherProvider, ProviderError


DEFAULT_BASE_URL = "https://api.open-meteo.com/v1"


class CurrentWeather(BaseModel):
    temperature: float
    time: Optional[str] = None


class ForecastResponse(BaseModel):
    current_weather: Optional[CurrentWeather] = None


@dataclass(frozen=True)
class TimestampParseFailure:
    """Returned by :func:`parse_observation_time` when no format matches."""

    value: str
    reason: str = "expected YYYY-MM-DDTHH:MM[:SS] with an optional offset"


_LOCAL_DATE_TIME = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d{3}|\.\d{6})?)?"
_OFFSET_DATE_TIME_RE = re.compile(_LOCAL_DATE_TIME + r"(?:[Zz]|[+-]\d{2}:\d{2})")
_LOCAL_DATE_TIME_RE = re.compile(_LOCAL_DATE_TIME)


def _parse_offset_datetime(value: str) -> Optional[datetime]:
    """Parse ISO-8601 carrying an offset, e.g. ``2024-05-01T11:00Z``."""
    if not _OFFSET_DATE_TIME_RE.fullmatch(value):
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(timezone.utc)


def _parse_local_datetime_as_utc(value: str) -> Optional[datetime]:
    """Parse a bare local date-time such as ``2024-05-01T11:00`` as UTC."""
    if not _LOCAL_DATE_TIME_RE.fullmatch(value):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        return None
    return parsed.replace(tzinfo=timezone.utc)


TIMESTAMP_PARSERS: Sequence[Callable[[str], Optional[datetime]]] = (
    _parse_offset_datetime,
    _parse_local_datetime_as_utc,
)


def parse_observation_time(value: str) -> Union[datetime, TimestampParseFailure]:
    """Try each accepted timestamp format in order and return the first match."""
    candidate = value.strip()
    for parser in TIMESTAMP_PARSERS:
        parsed = parser(candidate)
        if parsed is not None:
            return parsed
    return TimestampParseFailure(value=value)


class OpenMeteoProvider(HttpWeatherProvider):
    """Integration with the Open-Meteo ``/forecast`` endpoint."""

    name = "Open-Meteo"

    def __init__(self, base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(base_url or DEFAULT_BASE_URL, **kwargs)

    def fetch_current_weather(self, latitude: float, longitude: float) -> WeatherReading:
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current_weather": "true",
        }
        response = self._get("forecast", params=params, latitude=latitude, longitude=longitude)
        payload = self._parse_payload(self._json(response))

        current = payload.current_weather
        if current is None:
            raise ProviderError("Missing current weather in response")
        if not current.time:
            raise ProviderError("Missing observation timestamp")

        observed_at = parse_observation_time(current.time)
        if isinstance(observed_at, TimestampParseFailure):
            raise ProviderError(
                f"Unparseable observation timestamp {observed_at.value!r}: {observed_at.reason}"
            )

        return WeatherReading(temperature_c=current.temperature, observed_at=observed_at)

    # helpers ------------------------------------------------------------
    def _parse_payload(self, data: object) -> ForecastResponse:
        try:
            return ForecastResponse.model_validate(data)
        except ValidationError as exc:
            raise ProviderError(f"Malformed response from {self.name}") from exc


__all__ = [
    "DEFAULT_BASE_URL",
    "OpenMeteoProvider",
    "TimestampParseFailure",
    "parse_observation_time",
]
