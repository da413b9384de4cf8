"""FastAPI application setup and background consumer wiring for the forecast bridge."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from .api import router as api_router
from .bridge import DispatchBridge
from .cache_writer import CacheWriter
from .config import Settings, get_settings
from .factory import Services, build_services
from .preflight import check_backends
from .worker import WorkerPool
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="main")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """Build the app; collaborators are created on startup unless injected."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or get_settings()
        svc = services or build_services(cfg)
        if not cfg.skip_preflight:
            check_backends(svc)

        app.state.settings = cfg
        app.state.services = svc
        app.state.bridge = DispatchBridge(cfg, svc.cache, svc.request_queue)

        # the API process owns the response side: results land in the cache it reads
        cache_writer = CacheWriter(cfg, svc.response_queue, svc.cache)
        cache_writer.start()
        worker_pool = None
        if cfg.embedded_workers:
            logger.info("Running embedded worker pool in the API process")
            worker_pool = WorkerPool(cfg, svc.request_queue, svc.response_queue, svc.provider)
            worker_pool.start()
        try:
            yield
        finally:
            if worker_pool is not None:
                worker_pool.stop()
            cache_writer.stop()

    app = FastAPI(title="Forecast Bridge", lifespan=lifespan)

    @app.get("/", response_class=PlainTextResponse)
    def health_check():
        """Load balancer health check."""
        return "healthy!\n"

    app.include_router(api_router, prefix="/v1")
    return app


app = create_app()
