import os

import uvicorn

from utils.logging_utils import get_tagged_logger, setup_logging

setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="forecast_api")
logger = get_tagged_logger(__name__, tag="server")


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8080))
    logger.info("Starting forecast API on port %d", port)
    uvicorn.run(
        "forecast_bridge.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_config=None,
    )
