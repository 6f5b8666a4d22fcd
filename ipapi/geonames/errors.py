"""
Errors raised while talking to the GeoNames web service.

These never leave the refresh cycle: the store catches them per country
and logs them.
"""
from typing import Optional


class UpstreamError(Exception):
    """A GeoNames request for one country failed."""

    def __init__(self, message: str, endpoint: str = "", country: str = ""):
        super().__init__(message)
        self.endpoint = endpoint
        self.country = country


class UpstreamStatusError(UpstreamError):
    """GeoNames answered with a non-success HTTP status."""

    def __init__(self, status_code: int, endpoint: str = "", country: str = ""):
        super().__init__(f"geonames status {status_code}", endpoint, country)
        self.status_code = status_code


class UpstreamPayloadError(UpstreamError):
    """The response body was not the JSON object we expected."""


class UpstreamServiceError(UpstreamError):
    """
    GeoNames reported an error inside a 200 response.

    This is how it signals bad credentials and exhausted hourly or daily
    credit, e.g. {"status": {"message": "...", "value": 19}}.
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        endpoint: str = "",
        country: str = "",
    ):
        super().__init__(f"geonames error {code}: {message}", endpoint, country)
        self.code = code
