"""Management command to build a weather snapshot using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import get_weather_service, serialize_snapshot


class Command(BaseCommand):
    help = "Print the current weather snapshot for all or selected cities"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument(
            "--city-id",
            dest="city_ids",
            type=int,
            action="append",
            help="City id to include; repeat for several cities (default: all)",
        )
        parser.add_argument("--indent", type=int, default=None, help="Pretty-print the JSON output")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        city_ids = options.get("city_ids") or None
        if city_ids and any(city_id <= 0 for city_id in city_ids):
            raise CommandError("--city-id values must be positive integers")

        snapshot = get_weather_service().get_weather_snapshot(city_ids)
        if city_ids and not snapshot.cities:
            raise CommandError(f"No configured city matches ids {city_ids}")

        self.stdout.write(json.dumps(serialize_snapshot(snapshot), indent=options.get("indent")))
