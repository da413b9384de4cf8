"""Correlation cache: where workers leave results for the dispatch bridge to find.

Two key families are written for every completed result:

- coordinate keys ``<scope>:<lat>:<lon>:<category>:response`` let any caller
  asking for the same location reuse a result;
- id keys ``<scope>:<requestID>:<category>:response`` plus the id index
  ``<scope>:<requestID>:response`` (a JSON map of every category) let one
  caller poll for its own outstanding request.

Writes are plain overwrites, so concurrent or repeated writes of the same
result converge on the same entries.
"""

import json
from typing import Dict, Iterable, Optional

from forecast_bridge.cache.base import CacheBackend, CacheValue
from forecast_bridge.errors import CacheError
from forecast_bridge.models import ForecastRequest, ForecastResult
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/correlation_cache")

DEFAULT_SCOPE = "weatherService:Cache"
DEFAULT_TTL_SECONDS = 1800


class CorrelationCache:
    """Read and write forecast results under the id and coordinate key families."""

    def __init__(self, backend: CacheBackend, *, scope: str = DEFAULT_SCOPE,
                 ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        logger.debug("Initializing CorrelationCache (scope=%s, ttl=%ss)", scope, ttl_seconds)
        self.backend = backend
        self.scope = scope
        self.ttl = ttl_seconds

    # -- keys ---------------------------------------------------------------

    def coordinate_key(self, latitude: str, longitude: str, category: str) -> str:
        return f"{self.scope}:{latitude}:{longitude}:{category}:response"

    def id_key(self, request_id: str, category: str) -> str:
        return f"{self.scope}:{request_id}:{category}:response"

    def index_key(self, request_id: str) -> str:
        return f"{self.scope}:{request_id}:response"

    # -- reads --------------------------------------------------------------

    def lookup(self, request: ForecastRequest) -> Optional[Dict[str, str]]:
        """Return the cached category->summary map for request, or None on a miss.

        A request carrying an id is resolved by id keys, otherwise by coordinate
        keys. Every requested category must be present for a hit. Backend
        failures are logged and reported as a miss.
        """
        try:
            if request.request_id:
                if request.categories:
                    return self._read_all(
                        request.categories,
                        lambda category: self.id_key(request.request_id, category),
                    )
                return self._read_index(request.request_id)
            if request.has_coordinates and request.categories:
                return self._read_all(
                    request.categories,
                    lambda category: self.coordinate_key(request.latitude, request.longitude, category),
                )
        except Exception as exc:
            logger.warning("Cache lookup failed; treating as miss: %s", exc)
        return None

    def _read_all(self, categories: Iterable[str], key_for) -> Optional[Dict[str, str]]:
        found: Dict[str, str] = {}
        for category in sorted(categories):
            raw = self.backend.get(key_for(category))
            if raw is None:
                return None
            found[category] = _decode(raw)
        return found

    def _read_index(self, request_id: str) -> Optional[Dict[str, str]]:
        raw = self.backend.get(self.index_key(request_id))
        if raw is None:
            return None
        try:
            data = json.loads(_decode(raw))
        except ValueError:
            logger.warning("Corrupt id index for request %s", request_id)
            return None
        if not isinstance(data, dict):
            return None
        return {str(k): str(v) for k, v in data.items()}

    # -- writes -------------------------------------------------------------

    def write_result(self, result: ForecastResult) -> None:
        """Write every entry for result; raises CacheError on the first failed write.

        Entries written before the failure stay in place; rewriting the whole
        result later overwrites them with identical values.
        """
        if not result.request_id:
            raise CacheError("cannot cache a result without a request id")
        for category, summary in sorted(result.forecasts.items()):
            self._set(self.id_key(result.request_id, category), summary)
            if result.latitude and result.longitude:
                self._set(self.coordinate_key(result.latitude, result.longitude, category), summary)
        self._set(self.index_key(result.request_id), json.dumps(dict(sorted(result.forecasts.items()))))

    def _set(self, key: str, value: str) -> None:
        try:
            self.backend.setex(key, self.ttl, value)
        except Exception as exc:
            raise CacheError(f"failed to write {key}: {exc}") from exc

    def ping(self) -> bool:
        return bool(self.backend.ping())


def _decode(raw: CacheValue) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return str(raw)
