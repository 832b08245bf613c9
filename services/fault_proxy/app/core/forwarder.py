from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import DecodeError, SerializationError, TransportError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class ProxyOutcome:
    status_code: int
    body: Any   # decoded JSON, or None when the downstream body was not JSON


def serialize(payload: Any) -> bytes:
    try:
        # strict JSON: NaN/Infinity have no JSON encoding
        return json.dumps(payload, allow_nan=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(str(e)) from e


def decode_body(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(str(e)) from e


class ProxyForwarder:
    """
    Sends one POST per request over the shared pooled client.
    No retries: a failed attempt is reported to the caller as is.
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def forward(self, payload: Any, target_url: str) -> ProxyOutcome:
        body = serialize(payload)

        try:
            resp = await self._client.post(
                target_url,
                content=body,
                headers={"content-type": JSON_CONTENT_TYPE},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            details = str(e) or type(e).__name__
            logger.warning("Failed to forward request to %s: %s", target_url, details)
            raise TransportError(target_url, details) from e

        # client.post() has already buffered the whole body
        try:
            decoded = decode_body(resp.content)
        except DecodeError as e:
            logger.warning(
                "Downstream %s returned non-JSON body (status %s), using null: %s",
                target_url,
                resp.status_code,
                e,
            )
            decoded = None

        return ProxyOutcome(status_code=resp.status_code, body=decoded)
