import json
import os
import socket
import subprocess
import sys
import time
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from faultproxy.api.client import ProxyApiClient
from faultproxy.config.settings import get_settings
from services.fault_proxy.app.core.config import ProxyConfig
from services.fault_proxy.app.main import create_app

REPO_ROOT = Path(__file__).resolve().parents[1]
DOWNSTREAM_URL = "http://downstream.test/hook"


class FixedRandom:
    """
    Deterministic stand-in for the proxy's random source.
    random() and randint() pop from their queues; every call is recorded.
    """

    def __init__(self, floats=(), ints=()):
        self._floats = list(floats)
        self._ints = list(ints)
        self.calls = []

    def random(self) -> float:
        self.calls.append("random")
        return self._floats.pop(0)

    def randint(self, a: int, b: int) -> int:
        self.calls.append(("randint", a, b))
        value = self._ints.pop(0)
        assert a <= value <= b
        return value


class Downstream:
    """Records what the proxy sent and answers with a canned response."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.content: bytes = b'{"ok": true}'
        self.error: Exception | None = None
        self.on_request = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, content=self.content)

    def reply_json(self, body, status_code: int = 200) -> None:
        self.content = json.dumps(body).encode()
        self.status_code = status_code

    def sent_json(self, i: int = -1):
        return json.loads(self.requests[i].content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def downstream():
    return Downstream()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def config():
    return ProxyConfig(target_url=DOWNSTREAM_URL, success_probability=0.8)


@pytest.fixture
def make_proxy(config, downstream, sleeps):
    """
    Factory for an in-process proxy wired to the fake downstream.
    Yields TestClients that are closed at teardown.
    """
    opened = []

    def _make(rng=None, cfg=None):
        app = create_app(config=cfg or config, client=downstream.client(), rng=rng, sleep=sleeps)
        tc = TestClient(app)
        tc.__enter__()
        opened.append(tc)
        return tc

    try:
        yield _make
    finally:
        for tc in opened:
            tc.__exit__(None, None, None)


@pytest.fixture
def proxy_api(make_proxy):
    def _make(rng=None, cfg=None):
        return ProxyApiClient("http://testserver", client=make_proxy(rng=rng, cfg=cfg))
    return _make


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def proxy_env(**overrides) -> dict:
    env = os.environ.copy()
    for name in ("TARGET_URL", "SUCCESS_PROBABILITY", "FORWARD_TIMEOUT_S"):
        env.pop(name, None)
    env["PYTHONPATH"] = os.pathsep.join([str(REPO_ROOT / "src"), str(REPO_ROOT)])
    env.update(overrides)
    return env


def _wait_for_http_ready(url: str, proc: subprocess.Popen, timeout_s: float = 15.0) -> None:
    """
    Wait for the proxy to respond at url. If the process exits, surface logs.
    """
    deadline = time.time() + timeout_s

    while time.time() < deadline:
        if proc.poll() is not None:
            out = proc.stdout.read() if proc.stdout else ""
            raise RuntimeError(
                f"Proxy exited early (code={proc.returncode}).\n"
                f"--- proxy output ---\n{out}"
            )
        try:
            r = httpx.get(url, timeout=1.0)
            if r.status_code == 200:
                return
        except httpx.HTTPError:
            pass
        time.sleep(0.2)

    raise RuntimeError(f"Proxy did not become ready at {url} within {timeout_s}s.")


@pytest.fixture(scope="session")
def proxy_process():
    """
    Starts a real proxy under uvicorn for the smoke tests.
    The target points at a closed port so forwarding fails fast with 502.
    """
    port = free_port()
    base = f"http://127.0.0.1:{port}"
    env = proxy_env(
        TARGET_URL=f"http://127.0.0.1:{free_port()}/hook",
        SUCCESS_PROBABILITY="0.8",
        FORWARD_TIMEOUT_S="2",
    )
    cmd = [
        sys.executable, "-m", "uvicorn",
        "services.fault_proxy.app.main:app",
        "--host", "127.0.0.1",
        "--port", str(port),
        "--log-level", "info",
    ]
    p = subprocess.Popen(
        cmd,
        cwd=str(REPO_ROOT),
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )
    try:
        _wait_for_http_ready(f"{base}/healthcheck", p, timeout_s=15.0)
        yield base
    finally:
        p.terminate()
        try:
            p.wait(timeout=5)
        except subprocess.TimeoutExpired:
            p.kill()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def live_api(proxy_process, settings):
    client = ProxyApiClient(proxy_process, timeout_s=settings.timeout_s)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def fixed_random():
    return FixedRandom
