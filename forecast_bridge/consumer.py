"""Long-poll consumer loop with bounded fan-out and a graceful stop.

Both the worker pool (request queue) and the cache writer (response queue)
are built on this loop. One daemon thread long-polls the queue and hands each
delivery to a thread pool; a semaphore caps the number of deliveries being
handled at once, so a queue backlog cannot spawn unbounded work.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from forecast_bridge.errors import QueueError
from forecast_bridge.models import QueueMessage
from forecast_bridge.queues import MessageQueue
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="queue_consumer")


class QueueConsumer:
    """Base class: subclasses implement `handle(message)`.

    `handle` owns the delivery's receipt handle. Returning without deleting the
    message leaves it to the queue's visibility timeout, which redelivers it.
    """

    def __init__(
        self,
        queue: MessageQueue,
        *,
        name: str,
        concurrency: int = 16,
        max_messages: int = 1,
        wait_seconds: int = 20,
        visibility_timeout: int = 20,
        error_backoff_seconds: float = 1.0,
    ) -> None:
        self.queue = queue
        self.name = name
        self.concurrency = concurrency
        self.max_messages = max_messages
        self.wait_seconds = wait_seconds
        self.visibility_timeout = visibility_timeout
        self.error_backoff_seconds = error_backoff_seconds
        self._stop_event = threading.Event()
        self._slots = threading.BoundedSemaphore(concurrency)
        self._executor = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix=f"{name}-handler")
        self._thread: Optional[threading.Thread] = None

    def handle(self, message: QueueMessage) -> None:
        raise NotImplementedError

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def poll_once(self) -> List[Future]:
        """Receive one batch and schedule a handler per delivery.

        Blocks only on the queue's long poll, and on a free handler slot when
        `concurrency` deliveries are already in flight.
        """
        messages = self.queue.receive(
            max_messages=self.max_messages,
            wait_seconds=self.wait_seconds,
            visibility_timeout=self.visibility_timeout,
        )
        futures = []
        for message in messages:
            self._slots.acquire()
            try:
                futures.append(self._executor.submit(self._run_handler, message))
            except RuntimeError:
                # executor already shut down; the delivery will be redelivered
                self._slots.release()
                logger.warning("%s is shut down; leaving message %s for redelivery", self.name, message.message_id)
        return futures

    def _run_handler(self, message: QueueMessage) -> None:
        try:
            self.handle(message)
        except Exception:
            logger.exception("Unhandled error processing message %s on %s", message.message_id, self.name)
        finally:
            self._slots.release()

    def run_forever(self) -> None:
        """Poll until stop() is called; receive errors are logged and retried."""
        logger.info("%s consuming from %s", self.name, self.queue.name)
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except QueueError as exc:
                logger.error("%s receive failed: %s", self.name, exc)
                self._stop_event.wait(self.error_backoff_seconds)
        logger.info("%s receive loop stopped", self.name)

    def start(self) -> threading.Thread:
        if self._thread and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name=f"{self.name}-receiver", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop receiving, then wait for in-flight handlers to finish.

        The receive loop exits after its current long poll returns, so this can
        take up to `wait_seconds` when the queue is idle.
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._executor.shutdown(wait=True)
        logger.info("%s stopped", self.name)
