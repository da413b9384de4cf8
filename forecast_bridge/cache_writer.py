"""Response-side consumer: copy published results into the correlation cache."""

from forecast_bridge.cache import CorrelationCache
from forecast_bridge.config import Settings
from forecast_bridge.consumer import QueueConsumer
from forecast_bridge.errors import CacheError, MalformedMessageError, QueueError
from forecast_bridge.models import ForecastResult, QueueMessage
from forecast_bridge.queues import MessageQueue
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_writer")


class CacheWriter(QueueConsumer):
    """Long-polls the response queue and acknowledges a result only once it is fully cached."""

    def __init__(self, settings: Settings, response_queue: MessageQueue, cache: CorrelationCache) -> None:
        super().__init__(
            response_queue,
            name="cache-writer",
            concurrency=settings.worker_concurrency,
            max_messages=settings.max_messages,
            wait_seconds=settings.receive_wait_seconds,
            visibility_timeout=settings.visibility_timeout_seconds,
        )
        self.cache = cache

    def handle(self, message: QueueMessage) -> bool:
        try:
            result = ForecastResult.from_body(message.body)
        except MalformedMessageError as exc:
            logger.warning("Dropping malformed result %s: %s", message.message_id, exc)
            return False

        try:
            self.cache.write_result(result)
        except CacheError as exc:
            logger.error("Caching result %s failed; leaving it for redelivery: %s", result.request_id, exc)
            return False

        try:
            self.queue.delete(message.receipt_handle)
        except QueueError as exc:
            logger.error("Cached result %s but failed to acknowledge it: %s", result.request_id, exc)
            return False

        logger.info("Cached forecast %s (%d categories)", result.request_id, len(result.forecasts))
        return True
