"""
HTTP client for the GeoNames JSON web service.
"""
import logging
from typing import Any, Dict, Optional

import requests

from .errors import (
    UpstreamError,
    UpstreamPayloadError,
    UpstreamServiceError,
    UpstreamStatusError,
)

logger = logging.getLogger("geonames.client")

GEONAMES_BASE_URL = "http://api.geonames.org"
DEFAULT_TIMEOUT = 8.0


class GeoNamesClient:
    """
    Thin wrapper around a requests.Session for per-country GeoNames calls.

    One request per fetch() call, bounded by the timeout. No retries:
    a failed country simply keeps its previous data until the next cycle.
    """

    def __init__(
        self,
        username: Optional[str],
        base_url: str = GEONAMES_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.username = username or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()

    @property
    def enabled(self) -> bool:
        """False when no GeoNames username is configured."""
        return bool(self.username)

    def fetch(self, endpoint: str, country: str) -> Dict[str, Any]:
        """
        GET {base_url}/{endpoint}?country=..&username=.. and decode the body.

        Raises:
            UpstreamStatusError: non-2xx status
            UpstreamPayloadError: body is not a JSON object
            UpstreamServiceError: GeoNames returned an error status object
            UpstreamError: network failure or timeout
        """
        url = f"{self.base_url}/{endpoint}"
        params = {"country": country, "username": self.username}

        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"request failed: {e}", endpoint, country) from e

        if not 200 <= response.status_code < 300:
            raise UpstreamStatusError(response.status_code, endpoint, country)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamPayloadError(f"invalid JSON: {e}", endpoint, country) from e

        if not isinstance(payload, dict):
            raise UpstreamPayloadError(
                f"expected JSON object, got {type(payload).__name__}", endpoint, country
            )

        status = payload.get("status")
        if isinstance(status, dict) and status.get("message"):
            raise UpstreamServiceError(
                str(status.get("message")),
                code=status.get("value"),
                endpoint=endpoint,
                country=country,
            )

        return payload

    def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._owns_session:
            self._session.close()
