from __future__ import annotations

import logging
import math
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import ProxyConfig

logger = logging.getLogger(__name__)

HDR_CONSTANT_DELAY = "x-constant-delay-ms"
HDR_MAX_RANDOM_DELAY = "x-max-random-delay-ms"
HDR_FAILURE_RATE = "x-failure-rate"
HDR_FAILURE_STATUS = "x-failure-status-code"
HDR_RETURN_ORIGINAL = "x-return-original"
HDR_PROXY_URL = "x-proxy-url"

DEFAULT_FAILURE_STATUS = 500
MAX_UINT = 2**64 - 1
# informational codes cannot carry a final response, and these never carry a body
BODYLESS_STATUSES = frozenset({204, 205, 304})


class FaultPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    constant_delay_ms: Optional[int] = Field(None, ge=0)
    max_random_delay_ms: Optional[int] = Field(None, ge=0)
    failure_rate: float = Field(..., ge=0.0, le=1.0)
    failure_status_code: int = Field(DEFAULT_FAILURE_STATUS, ge=200, le=999)
    return_original: bool = False
    target_url: str


def decode(headers: Mapping[str, str], config: ProxyConfig) -> FaultPlan:
    """
    Build the per-request FaultPlan from override headers and config.

    Header lookup is case-insensitive. A header that is present but does not
    parse (or is out of range) is ignored and its default used, so this never
    fails.
    """
    lowered = {k.lower(): v for k, v in headers.items()}

    plan = FaultPlan(
        constant_delay_ms=_parse_uint(lowered.get(HDR_CONSTANT_DELAY)),
        max_random_delay_ms=_parse_uint(lowered.get(HDR_MAX_RANDOM_DELAY)),
        failure_rate=_parse_rate(lowered.get(HDR_FAILURE_RATE), config.default_failure_rate),
        failure_status_code=_parse_status(lowered.get(HDR_FAILURE_STATUS)),
        return_original=_parse_bool(lowered.get(HDR_RETURN_ORIGINAL)),
        target_url=_parse_url(lowered.get(HDR_PROXY_URL), config.target_url),
    )
    logger.debug("Fault plan: %s", plan)
    return plan


def _parse_uint(raw: str | None) -> int | None:
    if raw is None:
        return None
    raw = raw.strip()
    # isdecimal rejects signs, underscores and whitespace that int() would accept
    if not (raw.isascii() and raw.isdecimal()) or len(raw) > 20:
        return None
    value = int(raw)
    if value > MAX_UINT:
        return None
    return value


def _parse_rate(raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if math.isnan(value) or not (0.0 <= value <= 1.0):
        return default
    return value


def _parse_status(raw: str | None) -> int:
    code = _parse_uint(raw)
    if code is None or not (200 <= code <= 999) or code in BODYLESS_STATUSES:
        return DEFAULT_FAILURE_STATUS
    return code


def _parse_bool(raw: str | None) -> bool:
    if raw is None:
        return False
    return raw.strip().lower() == "true"


def _parse_url(raw: str | None, default: str) -> str:
    if raw is None or not raw.strip():
        return default
    return raw.strip()
