"""Management command that loads the default dashboard cities."""
from __future__ import annotations

from typing import Any

from django.core.management.base import BaseCommand

from backend.core import models


class Command(BaseCommand):
    help = "Create or update the default set of dashboard cities"

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        repository = models.CityRepository()
        seeded = models.seed_default_cities(repository)
        with models.session_scope() as session:
            total = models.count_cities(session)
        self.stdout.write(f"Seeded {len(seeded)} cities ({total} configured)")
