from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .plan import FaultPlan
from .randomness import RandomSource

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class AppliedDelays:
    constant_delay_ms: Optional[int] = None
    max_random_delay_ms: Optional[int] = None
    random_delay_ms: Optional[int] = None   # the actual draw

    @property
    def total_ms(self) -> int:
        return (self.constant_delay_ms or 0) + (self.random_delay_ms or 0)


class DelayInjector:
    def __init__(self, rng: RandomSource, sleep: Sleep = asyncio.sleep):
        self._rng = rng
        self._sleep = sleep

    async def apply(self, plan: FaultPlan) -> AppliedDelays:
        # sequential waits; only this request's task is suspended.
        # nothing cancels these early if the caller goes away.
        if plan.constant_delay_ms is not None:
            await self._sleep(plan.constant_delay_ms / 1000.0)

        random_delay_ms = None
        if plan.max_random_delay_ms is not None:
            random_delay_ms = self._rng.randint(0, plan.max_random_delay_ms)
            await self._sleep(random_delay_ms / 1000.0)

        if plan.constant_delay_ms is not None or random_delay_ms is not None:
            logger.debug(
                "Applied delays: constant=%sms random=%sms (max %s)",
                plan.constant_delay_ms,
                random_delay_ms,
                plan.max_random_delay_ms,
            )

        return AppliedDelays(
            constant_delay_ms=plan.constant_delay_ms,
            max_random_delay_ms=plan.max_random_delay_ms,
            random_delay_ms=random_delay_ms,
        )
