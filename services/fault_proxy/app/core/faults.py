from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .plan import FaultPlan
from .randomness import RandomSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyntheticFailure:
    status_code: int
    failure_rate: float
    target_url: str
    request_body: Any


class FailureInjector:
    def __init__(self, rng: RandomSource):
        self._rng = rng

    def should_succeed(self, failure_rate: float) -> bool:
        # single Bernoulli trial, p(success) = 1 - failure_rate.
        # random() is in [0, 1) so rate 0 always passes and rate 1 always fails.
        return self._rng.random() < 1.0 - failure_rate

    def gate(self, plan: FaultPlan, payload: Any) -> SyntheticFailure | None:
        """
        Run the trial for this request. Returns None when the request may be
        forwarded, otherwise the synthetic failure to send back instead.
        Must be called before any awaited work so scheduling cannot affect it.
        """
        if self.should_succeed(plan.failure_rate):
            logger.debug("Failure gate passed (rate=%s)", plan.failure_rate)
            return None

        logger.info(
            "Simulated failure: status=%s rate=%s target=%s",
            plan.failure_status_code,
            plan.failure_rate,
            plan.target_url,
        )
        return SyntheticFailure(
            status_code=plan.failure_status_code,
            failure_rate=plan.failure_rate,
            target_url=plan.target_url,
            request_body=payload,
        )
