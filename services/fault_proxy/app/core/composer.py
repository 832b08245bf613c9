from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel

from .delay import AppliedDelays
from .errors import SerializationError, TransportError
from .faults import SyntheticFailure
from .forwarder import ProxyOutcome, serialize


@dataclass(frozen=True)
class ComposedResponse:
    status_code: int
    body: Any


class AppliedDelaysOut(BaseModel):
    constant_delay_ms: Optional[int] = None
    random_delay_ms: Optional[str] = None


class DelayEnvelope(BaseModel):
    status: str = "success"
    applied_delays: AppliedDelaysOut
    target_url: str
    response: Any = None


class SuccessEnvelope(BaseModel):
    status: str = "success"
    target_url: str
    response: Any = None


class FailureEnvelope(BaseModel):
    error: str = "Simulated failure"
    target_url: str
    failure_rate: float
    status_code: int
    request_body: Any = None


class ErrorEnvelope(BaseModel):
    error: str
    details: str
    target_url: Optional[str] = None


class HealthEnvelope(BaseModel):
    status: str = "healthy"
    timestamp: str


def delay_response(delays: AppliedDelays, target_url: str, outcome: ProxyOutcome) -> ComposedResponse:
    random_range = None
    if delays.max_random_delay_ms is not None:
        random_range = f"0-{delays.max_random_delay_ms}"
    env = DelayEnvelope(
        applied_delays=AppliedDelaysOut(
            constant_delay_ms=delays.constant_delay_ms,
            random_delay_ms=random_range,
        ),
        target_url=target_url,
        response=outcome.body,
    )
    return ComposedResponse(outcome.status_code, env.model_dump())


def success_response(target_url: str, outcome: ProxyOutcome, *, return_original: bool) -> ComposedResponse:
    if return_original:
        return ComposedResponse(outcome.status_code, outcome.body)
    env = SuccessEnvelope(target_url=target_url, response=outcome.body)
    return ComposedResponse(outcome.status_code, env.model_dump())


def failure_response(failure: SyntheticFailure) -> ComposedResponse:
    # the payload is echoed back, so it has to be encodable like a forwarded one
    serialize(failure.request_body)
    env = FailureEnvelope(
        target_url=failure.target_url,
        failure_rate=failure.failure_rate,
        status_code=failure.status_code,
        request_body=failure.request_body,
    )
    return ComposedResponse(failure.status_code, env.model_dump())


def serialization_error_response(err: SerializationError) -> ComposedResponse:
    env = ErrorEnvelope(error="Failed to serialize request body", details=err.details)
    return ComposedResponse(400, env.model_dump(exclude_none=True))


def transport_error_response(err: TransportError) -> ComposedResponse:
    env = ErrorEnvelope(
        error="Failed to forward request",
        details=err.details,
        target_url=err.target_url,
    )
    return ComposedResponse(502, env.model_dump())


def health_response(now: datetime | None = None) -> ComposedResponse:
    now = now or datetime.now(timezone.utc)
    env = HealthEnvelope(timestamp=now.astimezone(timezone.utc).isoformat())
    return ComposedResponse(200, env.model_dump())
