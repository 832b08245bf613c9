from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from . import composer
from .config import ProxyConfig
from .delay import DelayInjector, Sleep
from .errors import SerializationError, TransportError
from .faults import FailureInjector
from .forwarder import ProxyForwarder
from .plan import decode
from .protocol import RequestLifecycle
from .randomness import RandomSource, default_source

logger = logging.getLogger(__name__)


class ProxyEngine:
    """
    The two proxy modes over one set of components.

    Holds only read-only collaborators (config, pooled client, random source),
    so a single instance serves every concurrent request.
    """

    def __init__(
        self,
        config: ProxyConfig,
        client: httpx.AsyncClient,
        rng: RandomSource | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        rng = rng or default_source()
        self._delays = DelayInjector(rng, sleep=sleep)
        self._failures = FailureInjector(rng)
        self._forwarder = ProxyForwarder(client)

    async def handle_delay(
        self,
        headers: Mapping[str, str],
        payload: Any,
        lifecycle: RequestLifecycle | None = None,
    ) -> composer.ComposedResponse:
        lc = lifecycle or RequestLifecycle()
        plan = decode(headers, self.config)
        lc.plan_built()
        # no gate on this endpoint
        lc.gate(passed=True)

        applied = await self._delays.apply(plan)
        try:
            outcome = await self._forwarder.forward(payload, plan.target_url)
        except SerializationError as e:
            return self._error(lc, composer.serialization_error_response(e))
        except TransportError as e:
            return self._error(lc, composer.transport_error_response(e))

        lc.forwarded()
        resp = composer.delay_response(applied, plan.target_url, outcome)
        lc.composed()
        return resp

    async def handle_failure(
        self,
        headers: Mapping[str, str],
        payload: Any,
        lifecycle: RequestLifecycle | None = None,
    ) -> composer.ComposedResponse:
        lc = lifecycle or RequestLifecycle()
        plan = decode(headers, self.config)
        lc.plan_built()

        # the trial runs before the first await in this handler
        failure = self._failures.gate(plan, payload)
        lc.gate(passed=failure is None)

        if failure is not None:
            try:
                resp = composer.failure_response(failure)
            except SerializationError as e:
                return self._error(lc, composer.serialization_error_response(e))
            lc.composed()
            return resp

        try:
            outcome = await self._forwarder.forward(payload, plan.target_url)
        except SerializationError as e:
            return self._error(lc, composer.serialization_error_response(e))
        except TransportError as e:
            return self._error(lc, composer.transport_error_response(e))

        lc.forwarded()
        resp = composer.success_response(
            plan.target_url, outcome, return_original=plan.return_original
        )
        lc.composed()
        return resp

    @staticmethod
    def _error(lc: RequestLifecycle, resp: composer.ComposedResponse) -> composer.ComposedResponse:
        if resp.status_code == 400:
            logger.warning("Rejected request: %s", resp.body.get("details"))
        lc.forward_error()
        lc.composed()
        return resp
