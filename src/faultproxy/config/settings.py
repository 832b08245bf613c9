from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class Settings:
    proxy_http: str
    timeout_s: float


def get_settings() -> Settings:
    """
    Where tests and scripts find a running proxy.
    Values come from environment variables with safe defaults.
    """
    return Settings(
        proxy_http=os.getenv("PROXY_HTTP", "http://127.0.0.1:3000"),
        timeout_s=float(os.getenv("PROXY_CLIENT_TIMEOUT_S", "10.0")),
    )
