"""Synchronous dispatch bridge: cache check, queue publish, bounded wait, one re-check."""

import socket
import time
from typing import Callable, Optional

from forecast_bridge.cache import CorrelationCache
from forecast_bridge.config import Settings
from forecast_bridge.errors import QueueError
from forecast_bridge.models import ForecastRequest, ForecastResult
from forecast_bridge.queues import MessageQueue
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="dispatch_bridge")


class DispatchBridge:
    """Turn one synchronous forecast call into at most one request-queue publish.

    The bridge only reads the cache and only produces queue messages; results
    are written to the cache by the response-side cache writer.
    """

    def __init__(
        self,
        settings: Settings,
        cache: CorrelationCache,
        request_queue: MessageQueue,
        *,
        sleep: Callable[[float], None] = time.sleep,
        server_name: Optional[str] = None,
    ) -> None:
        self.cache = cache
        self.request_queue = request_queue
        self.wait_seconds = settings.wait_time_seconds
        self._sleep = sleep
        # hostname on every response makes load balancing visible to callers
        self.server_name = server_name or socket.gethostname()

    def dispatch(self, request: ForecastRequest) -> ForecastResult:
        """Return a READY, PENDING or ERROR result for request."""
        cached = self.cache.lookup(request)
        if cached is not None:
            logger.debug("Cache hit for %s", _describe(request))
            return ForecastResult.ready(request, cached, server=self.server_name)

        if not request.has_coordinates or not request.categories:
            if request.request_id:
                # polling by id: nothing to publish, keep the caller waiting
                return ForecastResult.pending(request, server=self.server_name)
            return ForecastResult.error(
                request, "Require GPS lat/lon and at least one forecast summary", server=self.server_name
            )

        try:
            message_id = self.request_queue.send(request.to_body())
        except QueueError as exc:
            logger.error("Failed to publish forecast request for %s: %s", _describe(request), exc)
            return ForecastResult.error(request, str(exc), server=self.server_name)

        submitted = request.with_request_id(request.request_id or message_id)
        logger.info("Queued forecast request %s for %s", submitted.request_id, _describe(request))

        self._sleep(self.wait_seconds)

        cached = self.cache.lookup(request)
        if cached is not None:
            return ForecastResult.ready(submitted, cached, server=self.server_name)
        return ForecastResult.pending(submitted, server=self.server_name)


def _describe(request: ForecastRequest) -> str:
    if request.request_id:
        return f"request {request.request_id}"
    return f"{request.latitude},{request.longitude} [{', '.join(sorted(request.categories))}]"
