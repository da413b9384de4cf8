"""Worker pool: drain the request queue, look up forecasts, hand results to the committer."""

import queue
import time
from typing import Optional

from forecast_bridge.committer import CompletedForecast, ResponseCommitter, make_result_channel
from forecast_bridge.config import Settings
from forecast_bridge.consumer import QueueConsumer
from forecast_bridge.errors import MalformedMessageError, ProviderError
from forecast_bridge.models import ForecastRequest, ForecastResult, QueueMessage
from forecast_bridge.provider import ForecastProviderClient
from forecast_bridge.queues import MessageQueue
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="worker_pool")


class WorkerPool(QueueConsumer):
    """Request-queue consumer feeding a single ResponseCommitter through a bounded channel.

    A message that cannot be decoded, or whose provider lookup fails, is
    dropped without acknowledgment; the queue redelivers it after its
    visibility timeout.
    """

    def __init__(
        self,
        settings: Settings,
        request_queue: MessageQueue,
        response_queue: MessageQueue,
        provider: ForecastProviderClient,
        *,
        channel: Optional["queue.Queue"] = None,
    ) -> None:
        super().__init__(
            request_queue,
            name="worker-pool",
            concurrency=settings.worker_concurrency,
            max_messages=settings.max_messages,
            wait_seconds=settings.receive_wait_seconds,
            visibility_timeout=settings.visibility_timeout_seconds,
        )
        self.provider = provider
        self.process_wait_seconds = settings.worker_process_wait_ms / 1000.0
        self.channel = channel if channel is not None else make_result_channel(settings.result_channel_size)
        self.committer = ResponseCommitter(self.channel, response_queue, request_queue)

    def process(self, message: QueueMessage) -> Optional[ForecastResult]:
        """Turn one request delivery into a result, or None when it has to be dropped."""
        try:
            request = ForecastRequest.from_body(message.body)
        except MalformedMessageError as exc:
            logger.warning("Dropping malformed request %s: %s", message.message_id, exc)
            return None

        try:
            forecasts = self.provider.lookup(request.latitude, request.longitude, request.categories)
        except ProviderError as exc:
            logger.warning("Provider lookup failed for request %s: %s", message.message_id, exc)
            return None

        missing = set(request.categories) - set(forecasts)
        if missing:
            logger.info("Provider had no summary for %s (request %s)", sorted(missing), message.message_id)

        if self.process_wait_seconds:
            time.sleep(self.process_wait_seconds)

        return ForecastResult.ready(request.with_request_id(request.request_id or message.message_id), forecasts)

    def handle(self, message: QueueMessage) -> None:
        result = self.process(message)
        if result is None:
            return
        # blocks while the committer is behind
        self.channel.put(CompletedForecast(result=result, receipt_handle=message.receipt_handle,
                                           message_id=message.message_id))

    def start(self):
        self.committer.start()
        return super().start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop receiving, finish in-flight lookups, then let the committer drain the channel."""
        super().stop(timeout)
        self.committer.stop(timeout)
