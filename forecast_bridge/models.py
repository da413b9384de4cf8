"""Request/result models shared by the API, the queues and the cache."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import MalformedMessageError


class ForecastStatus(IntEnum):
    """Status of a dispatched forecast; the integer value is what goes over the wire."""
    READY = 0
    PENDING = 1
    ERROR = 2


def _coerce_coordinate(value: Any) -> Any:
    """Accept numeric coordinates but keep them as the caller spelled them."""
    if value is None:
        return ""
    if isinstance(value, bool):
        raise ValueError("coordinate must be a string or number")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


class ForecastRequest(BaseModel):
    """A forecast lookup, addressed by coordinates + categories or by request id."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    latitude: str = Field(default="", alias="lat")
    longitude: str = Field(default="", alias="lon")
    categories: FrozenSet[str] = Field(default_factory=frozenset, alias="summaries")
    request_id: str = Field(default="", alias="requestID")

    @model_validator(mode="before")
    @classmethod
    def fold_single_category(cls, data: Any) -> Any:
        """Fold the single-category `forecastType` form into `summaries`."""
        if isinstance(data, dict) and data.get("forecastType"):
            data = dict(data)
            single = data.pop("forecastType")
            existing = data.get("summaries") or data.get("categories") or []
            if isinstance(existing, str):
                existing = [existing]
            data["summaries"] = [*existing, single]
        return data

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def normalize_coordinate(cls, v: Any) -> Any:
        return _coerce_coordinate(v)

    @field_validator("request_id", mode="before")
    @classmethod
    def normalize_request_id(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("categories", mode="before")
    @classmethod
    def normalize_categories(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple, set, frozenset)):
            raise ValueError("summaries must be a string or list of strings")
        return frozenset(c.strip() for c in v if isinstance(c, str) and c.strip())

    @property
    def has_coordinates(self) -> bool:
        return bool(self.latitude) and bool(self.longitude)

    def with_request_id(self, request_id: str) -> "ForecastRequest":
        """Return a copy carrying the queue-assigned correlation id."""
        return self.model_copy(update={"request_id": request_id})

    def to_body(self) -> str:
        """Serialize to the request-queue message body."""
        return json.dumps({
            "lat": self.latitude,
            "lon": self.longitude,
            "summaries": sorted(self.categories),
            "requestID": self.request_id,
        })

    @classmethod
    def from_body(cls, body: str | bytes) -> "ForecastRequest":
        """Parse a request-queue body; raises MalformedMessageError on bad input."""
        request = _parse_body(cls, body)
        if not request.has_coordinates or not request.categories:
            raise MalformedMessageError("request body needs lat, lon and at least one summary")
        return request


class ForecastResult(BaseModel):
    """Outcome of a dispatch or of a provider lookup done by a worker."""
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(default="", alias="requestID")
    latitude: str = Field(default="", alias="lat")
    longitude: str = Field(default="", alias="lon")
    forecasts: Dict[str, str] = Field(default_factory=dict)
    status: ForecastStatus = ForecastStatus.PENDING
    error_detail: Optional[str] = Field(default=None, alias="err")
    server: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fold_single_forecast(cls, data: Any) -> Any:
        """Accept the legacy `forecast` + `forecastType` pair as a one-entry `forecasts` map."""
        if isinstance(data, dict) and "forecast" in data and data.get("forecastType"):
            data = dict(data)
            forecasts = dict(data.get("forecasts") or {})
            forecasts[data.pop("forecastType")] = data.pop("forecast")
            data["forecasts"] = forecasts
        return data

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def normalize_coordinate(cls, v: Any) -> Any:
        return _coerce_coordinate(v)

    @property
    def is_ready(self) -> bool:
        return self.status is ForecastStatus.READY

    def to_body(self) -> str:
        """Serialize to the response-queue message body."""
        return json.dumps({
            "lat": self.latitude,
            "lon": self.longitude,
            "requestID": self.request_id,
            "forecasts": dict(sorted(self.forecasts.items())),
        })

    @classmethod
    def from_body(cls, body: str | bytes) -> "ForecastResult":
        """Parse a response-queue body; raises MalformedMessageError on bad input."""
        result = _parse_body(cls, body)
        if not result.request_id:
            raise MalformedMessageError("result body has no requestID")
        return result.model_copy(update={"status": ForecastStatus.READY})

    @classmethod
    def ready(cls, request: ForecastRequest, forecasts: Dict[str, str], **extra) -> "ForecastResult":
        return cls(
            request_id=request.request_id,
            latitude=request.latitude,
            longitude=request.longitude,
            forecasts=forecasts,
            status=ForecastStatus.READY,
            **extra,
        )

    @classmethod
    def pending(cls, request: ForecastRequest, **extra) -> "ForecastResult":
        return cls(
            request_id=request.request_id,
            latitude=request.latitude,
            longitude=request.longitude,
            status=ForecastStatus.PENDING,
            **extra,
        )

    @classmethod
    def error(cls, request: ForecastRequest, detail: str, **extra) -> "ForecastResult":
        return cls(
            request_id=request.request_id,
            latitude=request.latitude,
            longitude=request.longitude,
            status=ForecastStatus.ERROR,
            error_detail=detail,
            **extra,
        )


@dataclass(frozen=True)
class QueueMessage:
    """One delivery of a queue message.

    `receipt_handle` authorizes deleting this delivery only; a redelivery of the
    same `message_id` comes with a new handle.
    """
    body: str
    receipt_handle: str
    message_id: str


def _parse_body(model, body: str | bytes):
    """Decode a JSON queue body into `model`, normalizing every failure to MalformedMessageError."""
    try:
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        data = json.loads(body)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedMessageError(f"body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedMessageError(f"body must be a JSON object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedMessageError(f"body does not match {model.__name__}: {exc}") from exc
