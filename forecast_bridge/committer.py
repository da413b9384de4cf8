"""Response committer: publish each completed forecast, then acknowledge its request."""

import queue
import threading
from dataclasses import dataclass
from typing import Optional

from forecast_bridge.errors import QueueError
from forecast_bridge.models import ForecastResult
from forecast_bridge.queues import MessageQueue
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="response_committer")

_STOP = object()


@dataclass(frozen=True)
class CompletedForecast:
    """A worker's result together with the delivery it answers."""
    result: ForecastResult
    receipt_handle: str
    message_id: str


def make_result_channel(capacity: int = 100) -> "queue.Queue":
    """Bounded channel between worker handlers and the committer; producers block when full."""
    return queue.Queue(maxsize=capacity)


class ResponseCommitter:
    """Single consumer of the result channel, in arrival order."""

    def __init__(self, channel: "queue.Queue", response_queue: MessageQueue, request_queue: MessageQueue) -> None:
        self.channel = channel
        self.response_queue = response_queue
        self.request_queue = request_queue
        self._thread: Optional[threading.Thread] = None

    def commit(self, item: CompletedForecast) -> bool:
        """Publish item.result; delete the inbound request only if the publish succeeded."""
        try:
            self.response_queue.send(item.result.to_body())
        except QueueError as exc:
            logger.error("Failed to publish result %s; request left for redelivery: %s",
                         item.result.request_id, exc)
            return False

        try:
            self.request_queue.delete(item.receipt_handle)
        except QueueError as exc:
            logger.error("Published result %s but failed to acknowledge request %s: %s",
                         item.result.request_id, item.message_id, exc)
            return False

        logger.info("Committed forecast %s", item.result.request_id)
        return True

    def run(self) -> None:
        """Drain the channel until the stop marker; items queued before it are still committed."""
        while True:
            item = self.channel.get()
            try:
                if item is _STOP:
                    return
                self.commit(item)
            except Exception:
                logger.exception("Unexpected error committing forecast")
            finally:
                self.channel.task_done()

    def start(self) -> threading.Thread:
        if self._thread and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self.run, name="response-committer", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Commit everything already on the channel, then exit."""
        if self._thread is None or not self._thread.is_alive():
            return
        self.channel.put(_STOP)
        self._thread.join(timeout)
        logger.info("Response committer stopped")
