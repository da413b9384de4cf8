"""Shared protocol for durable queue backends."""

from typing import List, Protocol

from forecast_bridge.models import QueueMessage


class MessageQueue(Protocol):
    """At-least-once queue with explicit, delivery-scoped acknowledgment."""

    name: str

    def send(self, body: str) -> str:
        """Publish body and return the provider-assigned message id."""

    def receive(self, *, max_messages: int = 1, wait_seconds: int = 20,
                visibility_timeout: int = 20) -> List[QueueMessage]:
        """Long-poll for up to max_messages deliveries; may return an empty list."""

    def delete(self, receipt_handle: str) -> None:
        """Acknowledge one delivery so the queue never redelivers it."""

    def ping(self) -> bool:
        """Return True if the queue is reachable; raise otherwise."""
