from __future__ import annotations


class ProxyError(Exception):
    pass


class ConfigError(ProxyError):
    """Missing or invalid environment configuration. Fatal at startup."""


class SerializationError(ProxyError):
    def __init__(self, details: str):
        super().__init__(details)
        self.details = details


class TransportError(ProxyError):
    """Forwarding to the downstream target failed before a response was read."""

    def __init__(self, target_url: str, details: str):
        super().__init__(f"{target_url}: {details}")
        self.target_url = target_url
        self.details = details


class DecodeError(ProxyError):
    # handled inside the forwarder; never reaches a caller
    pass
