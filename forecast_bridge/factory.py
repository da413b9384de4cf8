"""Factory helpers for building the cache, queues and provider client at startup."""

from __future__ import annotations

from dataclasses import dataclass

import boto3
import redis

from forecast_bridge.cache import CorrelationCache, InMemoryCacheBackend
from forecast_bridge.config import Settings
from forecast_bridge.provider import ForecastProviderClient, build_session
from forecast_bridge.queues import InMemoryQueue, MessageQueue, SqsQueue
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="factory")


@dataclass(frozen=True)
class Services:
    """Shared collaborators, built once per process from Settings."""
    cache: CorrelationCache
    request_queue: MessageQueue
    response_queue: MessageQueue
    provider: ForecastProviderClient


def build_cache(settings: Settings) -> CorrelationCache:
    """Redis-backed cache when redis_url is set, in-memory otherwise."""
    if settings.redis_url:
        logger.info("Using Redis correlation cache", extra={"redis_url": mask_url(settings.redis_url)})
        backend = redis.Redis.from_url(settings.redis_url)
    else:
        logger.warning("No redis_url configured; using in-memory correlation cache (single process only)")
        backend = InMemoryCacheBackend()
    return CorrelationCache(backend, scope=settings.cache_scope, ttl_seconds=settings.cache_ttl_seconds)


def build_queues(settings: Settings) -> tuple[MessageQueue, MessageQueue]:
    """Return (request_queue, response_queue) for the configured backend."""
    backend = settings.queue_backend.lower()

    if backend == "sqs":
        logger.info("Using SQS queues", extra={"region": settings.aws_region})
        client = boto3.client("sqs", region_name=settings.aws_region, endpoint_url=settings.sqs_endpoint_url)
        return (
            SqsQueue(client, settings.request_queue_url, name="request-queue",
                     delay_seconds=settings.send_delay_seconds),
            SqsQueue(client, settings.response_queue_url, name="response-queue",
                     delay_seconds=settings.send_delay_seconds),
        )

    if backend == "memory":
        logger.warning("Using in-memory queues (single process only)")
        return InMemoryQueue("request-queue"), InMemoryQueue("response-queue")

    raise ValueError(f"Unknown queue backend '{settings.queue_backend}'")


def build_provider(settings: Settings) -> ForecastProviderClient:
    return ForecastProviderClient(
        settings.provider_base_url,
        settings.provider_api_key,
        timeout=settings.provider_timeout_seconds,
        session=build_session(retries=settings.provider_retries),
    )


def build_services(settings: Settings) -> Services:
    request_queue, response_queue = build_queues(settings)
    return Services(
        cache=build_cache(settings),
        request_queue=request_queue,
        response_queue=response_queue,
        provider=build_provider(settings),
    )
