from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Tuple

import pytest

from backend.core.abstractions import (
    DEFAULT_ERROR_MESSAGE,
    CityRecord,
    WeatherReading,
    WeatherStatus,
)
from backend.core.providers.base import ProviderError
from backend.core.services.weather_service import WeatherSnapshotService


GENERATED_AT = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

KYIV = CityRecord(id=1, name="Kyiv", latitude=50.45, longitude=30.52, timezone="Europe/Kyiv")
LONDON = CityRecord(id=2, name="London", latitude=51.50, longitude=-0.12, timezone="Europe/London")
BERLIN = CityRecord(id=3, name="Berlin", latitude=52.52, longitude=13.40, timezone="Europe/Berlin")


class _InMemoryCities:
    def __init__(self, cities: Iterable[CityRecord]) -> None:
        self._cities = {city.id: city for city in cities}
        self.find_all_calls = 0
        self.find_by_ids_calls: List[Tuple[int, ...]] = []

    def find_all(self) -> List[CityRecord]:
        self.find_all_calls += 1
        return sorted(self._cities.values(), key=lambda city: city.id)

    def find_by_ids(self, ids: Iterable[int]) -> List[CityRecord]:
        ids = tuple(ids)
        self.find_by_ids_calls.append(ids)
        # storage order, not request order
        return [city for city_id, city in sorted(self._cities.items()) if city_id in ids]


class _ScriptedProvider:
    name = "scripted"

    def __init__(self, outcomes: Dict[Tuple[float, float], object]) -> None:
        self._outcomes = outcomes
        self.calls: List[Tuple[float, float]] = []

    def fetch_current_weather(self, latitude: float, longitude: float) -> WeatherReading:
        self.calls.append((latitude, longitude))
        outcome = self._outcomes[(latitude, longitude)]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class _CountingClock:
    def __init__(self, now: datetime) -> None:
        self.now = now
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        return self.now


def _reading(temperature: float, minute: int) -> WeatherReading:
    return WeatherReading(
        temperature_c=temperature,
        observed_at=datetime(2024, 5, 1, 9, minute, tzinfo=timezone.utc),
    )


def _assert_entry_invariant(entry) -> None:
    if entry.status is WeatherStatus.OK:
        assert entry.temperature_c is not None
        assert entry.data_timestamp is not None
        assert entry.message is None
    else:
        assert entry.status is WeatherStatus.ERROR
        assert entry.temperature_c is None
        assert entry.data_timestamp is None
        assert entry.message


def test_snapshot_for_all_cities_ordered_by_id() -> None:
    cities = _InMemoryCities([LONDON, KYIV])
    provider = _ScriptedProvider(
        {
            (50.45, 30.52): _reading(12.3, 55),
            (51.50, -0.12): _reading(9.8, 50),
        }
    )
    service = WeatherSnapshotService(cities, provider, clock=lambda: GENERATED_AT)

    snapshot = service.get_weather_snapshot()

    assert snapshot.generated_at == GENERATED_AT
    assert [entry.city_name for entry in snapshot.cities] == ["Kyiv", "London"]

    kyiv, london = snapshot.cities
    assert kyiv.city_id == 1
    assert kyiv.temperature_c == 12.3
    assert kyiv.status is WeatherStatus.OK
    assert kyiv.data_timestamp == datetime(2024, 5, 1, 9, 55, tzinfo=timezone.utc)
    assert kyiv.message is None
    assert kyiv.timezone == "Europe/Kyiv"
    assert london.temperature_c == 9.8
    assert london.status is WeatherStatus.OK
    assert provider.calls == [(50.45, 30.52), (51.50, -0.12)]
    assert cities.find_all_calls == 1


@pytest.mark.parametrize("city_ids", [None, [], ()])
def test_no_ids_means_all_cities(city_ids) -> None:
    cities = _InMemoryCities([KYIV, LONDON, BERLIN])
    provider = _ScriptedProvider(
        {
            (50.45, 30.52): _reading(1.0, 0),
            (51.50, -0.12): _reading(2.0, 0),
            (52.52, 13.40): _reading(3.0, 0),
        }
    )
    service = WeatherSnapshotService(cities, provider, clock=lambda: GENERATED_AT)

    snapshot = service.get_weather_snapshot(city_ids)

    assert [entry.city_id for entry in snapshot.cities] == [1, 2, 3]
    assert cities.find_by_ids_calls == []


def test_marks_city_as_error_when_provider_fails() -> None:
    cities = _InMemoryCities([KYIV])
    provider = _ScriptedProvider({(50.45, 30.52): RuntimeError("boom")})
    service = WeatherSnapshotService(cities, provider, clock=lambda: GENERATED_AT)

    snapshot = service.get_weather_snapshot()

    assert snapshot.generated_at == GENERATED_AT
    assert len(snapshot.cities) == 1
    kyiv = snapshot.cities[0]
    assert kyiv.city_name == "Kyiv"
    assert kyiv.temperature_c is None
    assert kyiv.status is WeatherStatus.ERROR
    assert kyiv.data_timestamp is None
    assert kyiv.message == "boom"


def test_one_failure_does_not_affect_siblings(caplog) -> None:
    cities = _InMemoryCities([KYIV, LONDON, BERLIN])
    provider = _ScriptedProvider(
        {
            (50.45, 30.52): _reading(12.3, 55),
            (51.50, -0.12): ProviderError("Open-Meteo error 500", status_code=500),
            (52.52, 13.40): _reading(15.0, 40),
        }
    )
    clock = _CountingClock(GENERATED_AT)
    service = WeatherSnapshotService(cities, provider, clock=clock)

    snapshot = service.get_weather_snapshot()

    statuses = [entry.status for entry in snapshot.cities]
    assert statuses == [WeatherStatus.OK, WeatherStatus.ERROR, WeatherStatus.OK]
    assert snapshot.cities[1].message == "Open-Meteo error 500"
    assert clock.calls == 1
    for entry in snapshot.cities:
        _assert_entry_invariant(entry)
    assert any("London" in record.getMessage() for record in caplog.records if record.levelname == "ERROR")


def test_error_without_description_uses_default_message() -> None:
    cities = _InMemoryCities([KYIV])
    provider = _ScriptedProvider({(50.45, 30.52): RuntimeError()})
    service = WeatherSnapshotService(cities, provider, clock=lambda: GENERATED_AT)

    snapshot = service.get_weather_snapshot()

    assert snapshot.cities[0].message == DEFAULT_ERROR_MESSAGE


def test_subset_keeps_request_order_and_drops_unknown_ids() -> None:
    cities = _InMemoryCities([KYIV, LONDON, BERLIN])
    provider = _ScriptedProvider(
        {
            (50.45, 30.52): _reading(1.0, 0),
            (51.50, -0.12): _reading(2.0, 0),
            (52.52, 13.40): _reading(3.0, 0),
        }
    )
    service = WeatherSnapshotService(cities, provider, clock=lambda: GENERATED_AT)

    snapshot = service.get_weather_snapshot([3, 99, 1])

    assert [entry.city_id for entry in snapshot.cities] == [3, 1]
    assert all(entry.status is WeatherStatus.OK for entry in snapshot.cities)
    assert provider.calls == [(52.52, 13.40), (50.45, 30.52)]
    assert cities.find_all_calls == 0


def test_only_unknown_ids_gives_empty_snapshot() -> None:
    cities = _InMemoryCities([KYIV])
    provider = _ScriptedProvider({})
    service = WeatherSnapshotService(cities, provider, clock=lambda: GENERATED_AT)

    snapshot = service.get_weather_snapshot([41, 42])

    assert snapshot.cities == ()
    assert snapshot.generated_at == GENERATED_AT
    assert provider.calls == []


def test_generated_at_is_shared_by_ok_and_error_entries() -> None:
    cities = _InMemoryCities([KYIV, LONDON])
    provider = _ScriptedProvider(
        {
            (50.45, 30.52): _reading(12.3, 55),
            (51.50, -0.12): ValueError("unexpected payload"),
        }
    )
    clock = _CountingClock(GENERATED_AT)
    service = WeatherSnapshotService(cities, provider, clock=clock)

    snapshot = service.get_weather_snapshot()

    assert len(snapshot.cities) == 2
    assert snapshot.cities[0].status is WeatherStatus.OK
    assert snapshot.cities[1].status is WeatherStatus.ERROR
    assert snapshot.cities[1].message == "unexpected payload"
    assert clock.calls == 1
