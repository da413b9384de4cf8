"""Startup reachability checks for the cache and queues."""

import sys
from typing import Any, Dict

from forecast_bridge.factory import Services
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="preflight")


def _probe(name: str, backend) -> Dict[str, Any]:
    try:
        ok = bool(backend.ping())
    except Exception as e:
        return {"name": name, "reachable": False, "error": str(e)}
    return {"name": name, "reachable": ok, "error": None if ok else "ping returned false"}


def get_backend_status(services: Services) -> Dict[str, Any]:
    """
    Non-fatal probe of the cache and both queues.

    Returns a dict like:
    {
      "ok": bool,
      "cache": {"name": "cache", "reachable": bool, "error": str | None},
      "request_queue": {...},
      "response_queue": {...},
    }

    This NEVER sys.exit(). Suitable for health checks.
    """
    status: Dict[str, Any] = {
        "cache": _probe("cache", services.cache),
        "request_queue": _probe(services.request_queue.name, services.request_queue),
        "response_queue": _probe(services.response_queue.name, services.response_queue),
    }
    status["ok"] = all(part["reachable"] for part in status.values())
    return status


def check_backends(services: Services) -> None:
    """
    "Hard" check for startup.

    Exits the process with status 1 if the cache or either queue is
    unreachable; a bridge that cannot publish or read results is not worth
    serving traffic with.
    """
    status = get_backend_status(services)
    if status["ok"]:
        logger.info("Cache and queues reachable")
        return

    for key in ("cache", "request_queue", "response_queue"):
        part = status[key]
        if not part["reachable"]:
            logger.error("Startup check failed: %s unreachable (%s)", part["name"], part["error"])
    logger.error("Refusing to start; set FORECAST_SKIP_PREFLIGHT=true to bypass during dev/tests.")
    sys.exit(1)
