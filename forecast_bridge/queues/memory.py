"""In-memory queue with visibility timeouts, intended for development and tests."""

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from forecast_bridge.errors import QueueError
from forecast_bridge.models import QueueMessage
from forecast_bridge.queues.base import MessageQueue
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="queues/in_memory_queue")


@dataclass
class _Entry:
    body: str
    visible_at: float
    receipt_handle: Optional[str] = None
    receive_count: int = 0


class InMemoryQueue(MessageQueue):
    """Thread-safe queue mimicking SQS delivery semantics in a single process.

    Received messages stay stored but invisible until deleted or until their
    visibility timeout lapses; each delivery gets a fresh receipt handle, and
    only the latest handle can delete the message.
    """

    def __init__(self, name: str = "queue", *, delay_seconds: float = 0) -> None:
        logger.debug("Initializing InMemoryQueue %s", name)
        self.name = name
        self.delay_seconds = delay_seconds
        self._entries: Dict[str, _Entry] = {}
        self._cond = threading.Condition()

    def send(self, body: str) -> str:
        message_id = str(uuid.uuid4())
        with self._cond:
            self._entries[message_id] = _Entry(body=body, visible_at=time.monotonic() + self.delay_seconds)
            self._cond.notify_all()
        return message_id

    def receive(self, *, max_messages: int = 1, wait_seconds: float = 20,
                visibility_timeout: float = 20) -> List[QueueMessage]:
        deadline = time.monotonic() + wait_seconds
        with self._cond:
            while True:
                now = time.monotonic()
                batch = self._take_visible(now, max_messages, visibility_timeout)
                if batch or now >= deadline:
                    return batch
                # wake up for new sends, or when the next delayed/in-flight entry turns visible
                next_visible = min((e.visible_at for e in self._entries.values() if e.visible_at > now),
                                   default=deadline)
                self._cond.wait(timeout=max(0.0, min(deadline, next_visible) - now))

    def _take_visible(self, now: float, max_messages: int, visibility_timeout: float) -> List[QueueMessage]:
        batch: List[QueueMessage] = []
        for message_id, entry in self._entries.items():
            if len(batch) >= max_messages:
                break
            if entry.visible_at > now:
                continue
            entry.receipt_handle = str(uuid.uuid4())
            entry.visible_at = now + visibility_timeout
            entry.receive_count += 1
            batch.append(QueueMessage(body=entry.body, receipt_handle=entry.receipt_handle, message_id=message_id))
        return batch

    def delete(self, receipt_handle: str) -> None:
        with self._cond:
            for message_id, entry in self._entries.items():
                if entry.receipt_handle == receipt_handle:
                    del self._entries[message_id]
                    return
        raise QueueError(f"receipt handle is not valid for {self.name}")

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._cond:
            return len(self._entries)

    def receive_count(self, message_id: str) -> int:
        """How many times message_id has been delivered (0 if unknown)."""
        with self._cond:
            entry = self._entries.get(message_id)
            return entry.receive_count if entry else 0
