from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SUCCESS_PROBABILITY = 0.8
DEFAULT_FORWARD_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class ProxyConfig:
    target_url: str
    success_probability: float = DEFAULT_SUCCESS_PROBABILITY
    forward_timeout_s: float = DEFAULT_FORWARD_TIMEOUT_S

    def __post_init__(self) -> None:
        if not self.target_url or not self.target_url.strip():
            raise ConfigError("TARGET_URL must be set")
        if not (0.0 <= self.success_probability <= 1.0):
            raise ConfigError(
                f"SUCCESS_PROBABILITY must be a float between 0.0 and 1.0, got {self.success_probability}"
            )
        if not (self.forward_timeout_s > 0) or math.isinf(self.forward_timeout_s):
            raise ConfigError(f"FORWARD_TIMEOUT_S must be a positive number, got {self.forward_timeout_s}")

    @property
    def default_failure_rate(self) -> float:
        return 1.0 - self.success_probability

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ProxyConfig":
        """
        Build the process-wide config from environment variables.
        A .env file in the working directory is loaded first when reading
        the real environment; it never overrides variables already set.
        """
        if environ is None:
            load_dotenv(override=False)
            environ = os.environ

        target_url = environ.get("TARGET_URL")
        if target_url is None:
            raise ConfigError("TARGET_URL must be set")

        config = cls(
            target_url=target_url.strip(),
            success_probability=_parse_float(
                environ, "SUCCESS_PROBABILITY", DEFAULT_SUCCESS_PROBABILITY
            ),
            forward_timeout_s=_parse_float(
                environ, "FORWARD_TIMEOUT_S", DEFAULT_FORWARD_TIMEOUT_S
            ),
        )
        logger.info(
            "Loaded config: target_url=%s success_probability=%s forward_timeout_s=%s",
            config.target_url,
            config.success_probability,
            config.forward_timeout_s,
        )
        return config


def _parse_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a float, got {raw!r}") from None
    if math.isnan(value):
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    return value
