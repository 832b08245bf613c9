from __future__ import annotations
from typing import Any
import httpx

from faultproxy.utils.retry import RetryPolicy, with_retries


def _fault_headers(**values: Any) -> dict[str, str]:
    names = {
        "constant_delay_ms": "X-Constant-Delay-Ms",
        "max_random_delay_ms": "X-Max-Random-Delay-Ms",
        "failure_rate": "X-Failure-Rate",
        "failure_status_code": "X-Failure-Status-Code",
        "return_original": "X-Return-Original",
        "proxy_url": "X-Proxy-Url",
    }
    headers = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        headers[names[key]] = str(value)
    return headers


class ProxyApiClient:
    def __init__(self, base_url: str, timeout_s: float = 10.0, client: httpx.Client | None = None):
        # an existing client (e.g. fastapi's TestClient) can be passed in
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout_s)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def health(self) -> dict:
        r = self._client.get("/healthcheck")
        r.raise_for_status()
        return r.json()

    def delay(
        self,
        payload: Any,
        *,
        constant_delay_ms: int | None = None,
        max_random_delay_ms: int | None = None,
        proxy_url: str | None = None,
    ) -> httpx.Response:
        headers = _fault_headers(
            constant_delay_ms=constant_delay_ms,
            max_random_delay_ms=max_random_delay_ms,
            proxy_url=proxy_url,
        )
        return self._client.post("/delay", json=payload, headers=headers)

    def failure(
        self,
        payload: Any,
        *,
        failure_rate: float | None = None,
        failure_status_code: int | None = None,
        return_original: bool | None = None,
        proxy_url: str | None = None,
    ) -> httpx.Response:
        headers = _fault_headers(
            failure_rate=failure_rate,
            failure_status_code=failure_status_code,
            return_original=return_original,
            proxy_url=proxy_url,
        )
        return self._client.post("/failure", json=payload, headers=headers)

    def failure_with_retries(self, payload: Any, policy: RetryPolicy, **fault_headers: Any) -> dict:
        """POST /failure until a non-error status comes back or the policy gives up."""
        def attempt() -> dict:
            r = self.failure(payload, **fault_headers)
            r.raise_for_status()
            return r.json()

        return with_retries(attempt, policy)
