"""REST API views for the weather dashboard."""
from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.core.abstractions import CityRecord, CityWeatherResult, WeatherSnapshot
from backend.core.models import CityRepository
from backend.core.providers.base import RequestConfig
from backend.core.providers.openmeteo import OpenMeteoProvider
from backend.core.services.weather_service import WeatherSnapshotService


@lru_cache(maxsize=1)
def get_weather_service() -> WeatherSnapshotService:
    provider = OpenMeteoProvider(
        base_url=settings.OPEN_METEO_BASE_URL,
        request_config=RequestConfig(timeout=settings.OPEN_METEO_TIMEOUT_SECONDS),
    )
    return WeatherSnapshotService(cities=CityRepository(), provider=provider)


def get_city_repository() -> CityRepository:
    return CityRepository()


def format_instant(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(settings.DEFAULT_TIMEZONE).isoformat().replace("+00:00", "Z")


def serialize_city_weather(result: CityWeatherResult) -> Dict[str, Any]:
    return {
        "cityId": result.city_id,
        "cityName": result.city_name,
        "temperatureCelsius": result.temperature_c,
        "status": result.status.value,
        "dataTimestamp": format_instant(result.data_timestamp),
        "message": result.message,
        "timezone": result.timezone,
    }


def serialize_snapshot(snapshot: WeatherSnapshot) -> Dict[str, Any]:
    return {
        "generatedAt": format_instant(snapshot.generated_at),
        "cities": [serialize_city_weather(result) for result in snapshot.cities],
    }


def serialize_city_summary(city: CityRecord) -> Dict[str, Any]:
    return {"id": city.id, "name": city.name, "timezone": city.timezone}


def parse_city_ids(raw_values: Iterable[str]) -> List[int]:
    """Parse repeated and/or comma separated ``cityIds`` values.

    Raises ValueError for anything that is not an integer.
    """
    city_ids: List[int] = []
    for raw in raw_values:
        for part in raw.split(","):
            part = part.strip()
            if part:
                city_ids.append(int(part))
    return city_ids


class WeatherView(APIView):
    """Return current weather for all cities or the requested subset."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        """Return the weather snapshot for the requested cities."""
        try:
            city_ids = parse_city_ids(request.query_params.getlist("cityIds"))
        except ValueError:
            return Response({"detail": "cityIds must be integers"}, status=status.HTTP_400_BAD_REQUEST)

        snapshot = get_weather_service().get_weather_snapshot(city_ids or None)
        return Response(serialize_snapshot(snapshot), status=status.HTTP_200_OK)


class CityListView(APIView):
    """List the configured cities ordered by name."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        cities = get_city_repository().list_by_name()
        return Response([serialize_city_summary(city) for city in cities], status=status.HTTP_200_OK)
