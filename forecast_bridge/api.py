"""HTTP API for the forecast dispatch bridge."""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from .bridge import DispatchBridge
from .models import ForecastRequest, ForecastResult
from .preflight import get_backend_status
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")

router = APIRouter()


class ForecastResponse(BaseModel):
    """Multi-category forecast response; `status` is 0 ready, 1 pending, 2 error."""
    forecasts: Optional[Dict[str, str]] = None
    err: Optional[str] = None
    status: int
    requestID: Optional[str] = None
    server: Optional[str] = None


class SingleForecastResponse(BaseModel):
    """Single-category forecast response, as served on /forecast/{forecast_type}."""
    summary: Optional[str] = None
    err: Optional[str] = None
    status: int
    requestID: Optional[str] = None
    server: Optional[str] = None


def get_bridge(request: Request) -> DispatchBridge:
    """Return the bridge built at application startup."""
    return request.app.state.bridge


def _common_fields(result: ForecastResult) -> dict:
    return {
        "err": result.error_detail,
        "status": int(result.status),
        "requestID": result.request_id or None,
        "server": result.server,
    }


@router.post("/forecast", response_model=ForecastResponse, response_model_exclude_none=True)
def forecast(req: ForecastRequest, bridge: DispatchBridge = Depends(get_bridge)):
    """Return cached forecasts, or queue the lookup and return a requestID to poll with."""
    result = bridge.dispatch(req)
    logger.debug("Dispatch result: %s", result)
    return ForecastResponse(forecasts=result.forecasts if result.is_ready else None, **_common_fields(result))


@router.post("/forecast/{forecast_type}", response_model=SingleForecastResponse, response_model_exclude_none=True)
def forecast_single(forecast_type: str, req: ForecastRequest, bridge: DispatchBridge = Depends(get_bridge)):
    """Single-category variant: the category comes from the path."""
    req = req.model_copy(update={"categories": frozenset({forecast_type})})
    result = bridge.dispatch(req)
    summary = result.forecasts.get(forecast_type) if result.is_ready else None
    return SingleForecastResponse(summary=summary, **_common_fields(result))


@router.get("/health")
def health(request: Request):
    """Non-fatal reachability probe of the cache and queues."""
    return get_backend_status(request.app.state.services)
