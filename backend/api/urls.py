"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from backend.api.views import CityListView, WeatherView

urlpatterns = [
    path("weather", WeatherView.as_view(), name="weather"),
    path("cities", CityListView.as_view(), name="cities"),
]
