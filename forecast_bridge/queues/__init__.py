"""Durable queue backends for the request and response queues."""

from .base import MessageQueue
from .memory import InMemoryQueue
from .sqs import SqsQueue

__all__ = [
    "MessageQueue",
    "InMemoryQueue",
    "SqsQueue",
]
