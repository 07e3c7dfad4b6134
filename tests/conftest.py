from __future__ import annotations

from typing import List

import pytest

from requests_mock import Mocker

from backend.core import models
from backend.core.abstractions import CityRecord


@pytest.fixture
def requests_mock():
    with Mocker() as mock:
        yield mock


@pytest.fixture
def city_db(tmp_path) -> str:
    db_url = f"sqlite:///{tmp_path / 'cities.db'}"
    models.configure_engine(db_url)
    return db_url


@pytest.fixture
def seeded_cities(city_db) -> List[CityRecord]:
    repository = models.CityRepository()
    return [
        repository.save(name="Kyiv", latitude=50.45, longitude=30.52, timezone="Europe/Kyiv"),
        repository.save(name="London", latitude=51.50, longitude=-0.12, timezone="Europe/London"),
        repository.save(name="Berlin", latitude=52.52, longitude=13.40, timezone="Europe/Berlin"),
    ]
