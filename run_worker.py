import os
import signal
import threading

from forecast_bridge.config import get_settings
from forecast_bridge.factory import build_services
from forecast_bridge.preflight import check_backends
from forecast_bridge.worker import WorkerPool
from utils.logging_utils import get_tagged_logger, setup_logging

setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="forecast_worker")
logger = get_tagged_logger(__name__, tag="worker")


def main() -> None:
    """Run the worker pool until SIGINT/SIGTERM, then drain in-flight work."""
    settings = get_settings()
    services = build_services(settings)
    if not settings.skip_preflight:
        check_backends(services)

    shutdown = threading.Event()

    def _request_shutdown(signum, _frame):
        logger.info("Received %s; draining worker pool", signal.Signals(signum).name)
        shutdown.set()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    pool = WorkerPool(settings, services.request_queue, services.response_queue, services.provider)
    pool.start()
    shutdown.wait()
    pool.stop()
    logger.info("Worker pool drained; exiting")


if __name__ == "__main__":
    main()
