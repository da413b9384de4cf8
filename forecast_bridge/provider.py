"""Client for the external forecast provider (Dark Sky style `GET <base>/<key>/<lat>,<lon>`)."""
from __future__ import annotations

from typing import Dict, Iterable, Optional

import requests
from retry_requests import retry

from forecast_bridge.errors import ProviderError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="forecast_provider")

DEFAULT_BASE_URL = "https://api.forecast.io/forecast"


def build_session(retries: int = 3, backoff_factor: float = 0.2) -> requests.Session:
    """A requests session that retries transient 5xx responses and connection errors."""
    return retry(requests.Session(), retries=retries, backoff_factor=backoff_factor)


class ForecastProviderClient:
    """Fetches one provider document per coordinate pair and extracts per-category summaries."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or build_session()

    def _url(self, latitude: str, longitude: str) -> str:
        if self.api_key:
            return f"{self.base_url}/{self.api_key}/{latitude},{longitude}"
        return f"{self.base_url}/{latitude},{longitude}"

    def fetch(self, latitude: str, longitude: str) -> dict:
        """Return the decoded provider document; raises ProviderError on transport or decode failure."""
        try:
            resp = self.session.get(self._url(latitude, longitude), timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"forecast lookup for {latitude},{longitude} failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(f"forecast provider returned non-JSON for {latitude},{longitude}") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"forecast provider returned {type(data).__name__}, expected an object")
        return data

    def lookup(self, latitude: str, longitude: str, categories: Iterable[str]) -> Dict[str, str]:
        """Return {category: summary} for the requested categories.

        Categories missing from the document, or without a string `summary`,
        are left out of the result rather than reported as errors.
        """
        data = self.fetch(latitude, longitude)
        summaries: Dict[str, str] = {}
        for category in categories:
            block = data.get(category)
            summary = block.get("summary") if isinstance(block, dict) else None
            if isinstance(summary, str):
                summaries[category] = summary
            else:
                logger.debug("No summary for category '%s' at %s,%s", category, latitude, longitude)
        return summaries
