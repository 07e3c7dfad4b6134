"""Lightweight database helpers for the configured cities."""
from __future__ import annotations

import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Sequence
from urllib.parse import unquote, urlparse

try:  # Optional import for MySQL support
    import pymysql
    from pymysql.cursors import DictCursor
except ImportError:  # pragma: no cover - pymysql is optional
    pymysql = None  # type: ignore
    DictCursor = None  # type: ignore

from backend.core.abstractions import CityLookup, CityRecord


DEFAULT_CITIES: Sequence[dict] = (
    {"name": "Kyiv", "latitude": 50.45, "longitude": 30.52, "timezone": "Europe/Kyiv"},
    {"name": "London", "latitude": 51.50, "longitude": -0.12, "timezone": "Europe/London"},
    {"name": "Berlin", "latitude": 52.52, "longitude": 13.40, "timezone": "Europe/Berlin"},
    {"name": "New York", "latitude": 40.71, "longitude": -74.01, "timezone": "America/New_York"},
    {"name": "Tokyo", "latitude": 35.68, "longitude": 139.69, "timezone": "Asia/Tokyo"},
    {"name": "Sydney", "latitude": -33.87, "longitude": 151.21, "timezone": "Australia/Sydney"},
)


class DatabaseSession:
    """Minimal DB-API session wrapper with context aware placeholders."""

    def __init__(self, connection, placeholder: str, driver: str):
        self.connection = connection
        self.placeholder = placeholder
        self.driver = driver

    # -- DB-API compatibility -------------------------------------------------
    def _prepare_sql(self, sql: str) -> str:
        if self.placeholder == "?":
            return sql
        return sql.replace("?", self.placeholder)

    def execute(self, sql: str, params: tuple = ()):
        cursor = self.connection.cursor()
        cursor.execute(self._prepare_sql(sql), params)
        return cursor

    def fetchone(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        cursor.close()
        return row

    def fetchall(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        rows = cursor.fetchall()
        cursor.close()
        return rows

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        self.connection.close()


class SessionFactory:
    def __init__(self, url: str, placeholder: str, driver: str):
        self.url = url
        self.placeholder = placeholder
        self.driver = driver

    def __call__(self) -> DatabaseSession:
        connection = create_connection(self.url, self.driver)
        return DatabaseSession(connection, self.placeholder, self.driver)


# signed 64-bit range of the cities.id column
MIN_CITY_ID = -(2**63)
MAX_CITY_ID = 2**63 - 1

_engine_lock = threading.Lock()
_session_factory: Optional[SessionFactory] = None


# ---------------------------------------------------------------------------

def _default_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./weather_dashboard.db")


def configure_engine(url: Optional[str] = None) -> str:
    """Configure database access using the provided URL and create the schema."""

    global _session_factory
    database_url = url or _default_database_url()
    driver, placeholder = detect_driver(database_url)
    with _engine_lock:
        _session_factory = SessionFactory(database_url, placeholder, driver)
    run_migrations()
    return database_url


def detect_driver(url: str) -> tuple[str, str]:
    parsed = urlparse(url)
    if parsed.scheme.startswith("mysql"):
        if pymysql is None:
            raise RuntimeError("PyMySQL is required for MySQL connections")
        return "mysql", "%s"
    if parsed.scheme.startswith("sqlite") or parsed.scheme == "":
        return "sqlite", "?"
    raise ValueError(f"Unsupported database scheme: {parsed.scheme}")


def create_connection(url: str, driver: str):
    parsed = urlparse(url)
    if driver == "sqlite":
        # sqlite:///relative.db and sqlite:////absolute/path.db
        path = unquote(parsed.path or parsed.netloc or ":memory:")
        if path.startswith("/"):
            path = path[1:]
        db_path = path if path == ":memory:" else os.path.abspath(path)
        connection = sqlite3.connect(db_path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        return connection

    if driver == "mysql":
        if pymysql is None or DictCursor is None:
            raise RuntimeError("PyMySQL is required for MySQL connections")
        params = {
            "host": parsed.hostname or "localhost",
            "user": parsed.username,
            "password": parsed.password,
            "database": parsed.path.lstrip("/") or None,
            "port": parsed.port or 3306,
            "cursorclass": DictCursor,
            "autocommit": False,
        }
        return pymysql.connect(**params)

    raise ValueError(f"Unsupported driver: {driver}")


def get_session_factory() -> SessionFactory:
    if _session_factory is None:
        configure_engine()
    if _session_factory is None:
        raise RuntimeError("Database engine is not configured")
    return _session_factory


@contextmanager
def session_scope(session_factory: Optional[SessionFactory] = None) -> Iterator[DatabaseSession]:
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------

_ID_COLUMN = {
    "sqlite": "id INTEGER PRIMARY KEY AUTOINCREMENT",
    "mysql": "id BIGINT PRIMARY KEY AUTO_INCREMENT",
}


def run_migrations() -> None:
    factory = get_session_factory()
    session = factory()
    try:
        session.execute(
            f"""
            CREATE TABLE IF NOT EXISTS cities (
                {_ID_COLUMN[session.driver]},
                name VARCHAR(255) NOT NULL UNIQUE,
                latitude DOUBLE PRECISION NOT NULL,
                longitude DOUBLE PRECISION NOT NULL,
                timezone VARCHAR(64) NOT NULL DEFAULT 'UTC'
            )
            """
        )
        session.commit()
    finally:
        session.close()


# ---------------------------------------------------------------------------

def _city_from_row(row) -> CityRecord:
    return CityRecord(
        id=int(row["id"]),
        name=row["name"],
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        timezone=row["timezone"],
    )


def fetch_all_cities(session: DatabaseSession) -> List[CityRecord]:
    rows = session.fetchall("SELECT * FROM cities ORDER BY id")
    return [_city_from_row(row) for row in rows]


def fetch_cities_by_name(session: DatabaseSession) -> List[CityRecord]:
    rows = session.fetchall("SELECT * FROM cities ORDER BY name, id")
    return [_city_from_row(row) for row in rows]


def fetch_cities_by_ids(session: DatabaseSession, ids: Iterable[int]) -> List[CityRecord]:
    # ids outside the INTEGER column range cannot match a row
    unique_ids = tuple(
        city_id for city_id in dict.fromkeys(int(value) for value in ids) if MIN_CITY_ID <= city_id <= MAX_CITY_ID
    )
    if not unique_ids:
        return []
    placeholders = ", ".join("?" for _ in unique_ids)
    rows = session.fetchall(
        f"SELECT * FROM cities WHERE id IN ({placeholders}) ORDER BY id",
        unique_ids,
    )
    return [_city_from_row(row) for row in rows]


def upsert_city(
    session: DatabaseSession,
    *,
    name: str,
    latitude: float,
    longitude: float,
    timezone: str = "UTC",
) -> CityRecord:
    row = session.fetchone("SELECT * FROM cities WHERE name = ?", (name,))
    if row:
        city = _city_from_row(row)
        if (city.latitude, city.longitude, city.timezone) != (latitude, longitude, timezone):
            session.execute(
                "UPDATE cities SET latitude = ?, longitude = ?, timezone = ? WHERE id = ?",
                (latitude, longitude, timezone, city.id),
            )
        return CityRecord(id=city.id, name=name, latitude=latitude, longitude=longitude, timezone=timezone)

    cursor = session.execute(
        "INSERT INTO cities (name, latitude, longitude, timezone) VALUES (?, ?, ?, ?)",
        (name, latitude, longitude, timezone),
    )
    return CityRecord(id=int(cursor.lastrowid), name=name, latitude=latitude, longitude=longitude, timezone=timezone)


def count_cities(session: DatabaseSession) -> int:
    row = session.fetchone("SELECT COUNT(*) AS cnt FROM cities")
    if isinstance(row, dict):
        return int(row["cnt"])
    return int(row[0])


class CityRepository(CityLookup):
    """City lookups backed by the configured database, one session per call."""

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self._session_factory = session_factory

    def find_all(self) -> List[CityRecord]:
        with session_scope(self._session_factory) as session:
            return fetch_all_cities(session)

    def find_by_ids(self, ids: Iterable[int]) -> List[CityRecord]:
        with session_scope(self._session_factory) as session:
            return fetch_cities_by_ids(session, ids)

    def list_by_name(self) -> List[CityRecord]:
        with session_scope(self._session_factory) as session:
            return fetch_cities_by_name(session)

    def save(self, *, name: str, latitude: float, longitude: float, timezone: str = "UTC") -> CityRecord:
        with session_scope(self._session_factory) as session:
            return upsert_city(session, name=name, latitude=latitude, longitude=longitude, timezone=timezone)


def seed_default_cities(repository: Optional[CityRepository] = None) -> List[CityRecord]:
    repository = repository or CityRepository()
    return [repository.save(**city) for city in DEFAULT_CITIES]


__all__ = [
    "CityRepository",
    "DEFAULT_CITIES",
    "DatabaseSession",
    "SessionFactory",
    "configure_engine",
    "count_cities",
    "fetch_all_cities",
    "fetch_cities_by_ids",
    "fetch_cities_by_name",
    "get_session_factory",
    "run_migrations",
    "seed_default_cities",
    "session_scope",
    "upsert_city",
]
