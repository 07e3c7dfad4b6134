"""Shared HTTP plumbing for weather providers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests
from requests import Response


MIN_TIMEOUT_SECONDS = 1.0
DEFAULT_TIMEOUT_SECONDS = 5.0


class ProviderError(RuntimeError):
    """Raised when a provider cannot produce a reading."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RequestConfig:
    """Connect/read timeout applied to every provider call."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        self.timeout = max(float(self.timeout), MIN_TIMEOUT_SECONDS)


class HttpWeatherProvider:
    """Base class for providers that talk to a JSON HTTP API.

    A single attempt is made per call; there is no retry or backoff.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.request_config = request_config or RequestConfig()
        self.session = session or requests.Session()
        self._log = logging.getLogger(self.__class__.__name__)

    def _get(self, path: str, *, params: dict, latitude: float, longitude: float) -> Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.get(url, params=params, timeout=self.request_config.timeout)
        except requests.Timeout as exc:
            self._log.warning("%s request timed out for lat=%s, lon=%s", self.name, latitude, longitude, exc_info=exc)
            raise ProviderError(f"{self.name} request timed out") from exc
        except requests.RequestException as exc:
            self._log.warning("%s request failed for lat=%s, lon=%s", self.name, latitude, longitude, exc_info=exc)
            raise ProviderError(f"{self.name} request failed: {exc}") from exc
        return self._handle_response(response, latitude=latitude, longitude=longitude)

    def _handle_response(self, response: Response, *, latitude: float, longitude: float) -> Response:
        if not response.ok:
            status_code = response.status_code
            self._log.warning(
                "%s returned error status %s for lat=%s, lon=%s", self.name, status_code, latitude, longitude
            )
            raise ProviderError(f"{self.name} error {status_code}", status_code=status_code)
        return response

    def _json(self, response: Response) -> Any:
        if not response.content:
            raise ProviderError(f"Empty response from {self.name}")
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON from %s", self.name, exc_info=exc)
            raise ProviderError(f"Invalid JSON from {self.name}") from exc


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "HttpWeatherProvider",
    "MIN_TIMEOUT_SECONDS",
    "ProviderError",
    "RequestConfig",
]
