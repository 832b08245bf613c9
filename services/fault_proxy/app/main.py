import logging
import os
import sys
from typing import Any

import httpx
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from services.fault_proxy.app.core import composer
from services.fault_proxy.app.core.config import ProxyConfig
from services.fault_proxy.app.core.delay import Sleep
from services.fault_proxy.app.core.engine import ProxyEngine
from services.fault_proxy.app.core.errors import ConfigError
from services.fault_proxy.app.core.plan import BODYLESS_STATUSES
from services.fault_proxy.app.core.protocol import RequestLifecycle
from services.fault_proxy.app.core.randomness import RandomSource

HTTP_HOST = os.getenv("PROXY_HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.getenv("PROXY_HTTP_PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger("services.fault_proxy")


def _send(resp: composer.ComposedResponse, lifecycle: RequestLifecycle | None = None) -> Response:
    if resp.status_code in BODYLESS_STATUSES:
        # a relayed 204/205/304 must go out without a body
        out = Response(status_code=resp.status_code)
    else:
        out = JSONResponse(status_code=resp.status_code, content=resp.body)
    if lifecycle is not None:
        lifecycle.sent()
    return out


def create_app(
    config: ProxyConfig | None = None,
    client: httpx.AsyncClient | None = None,
    rng: RandomSource | None = None,
    sleep: Sleep | None = None,
) -> FastAPI:
    """
    Build the proxy app. Anything not passed in is created at startup:
    config from the environment, and one pooled client for all requests.
    """
    app = FastAPI(title="Fault Proxy", version="0.1.0")

    @app.on_event("startup")
    async def start_engine():
        # ConfigError here aborts uvicorn before it binds the socket
        cfg = config or ProxyConfig.from_env()
        http = client or httpx.AsyncClient(timeout=cfg.forward_timeout_s)
        app.state.owns_client = client is None
        app.state.http_client = http
        kwargs = {"rng": rng}
        if sleep is not None:
            kwargs["sleep"] = sleep
        app.state.engine = ProxyEngine(cfg, http, **kwargs)
        logger.info("Proxying to %s", cfg.target_url)

    @app.on_event("shutdown")
    async def stop_engine():
        if getattr(app.state, "owns_client", False):
            await app.state.http_client.aclose()

    @app.post("/delay")
    async def delay(request: Request, payload: Any = Body(...)):
        lc = RequestLifecycle()
        resp = await request.app.state.engine.handle_delay(request.headers, payload, lc)
        return _send(resp, lc)

    @app.post("/failure")
    async def failure(request: Request, payload: Any = Body(...)):
        lc = RequestLifecycle()
        resp = await request.app.state.engine.handle_failure(request.headers, payload, lc)
        return _send(resp, lc)

    @app.get("/healthcheck")
    def healthcheck():
        return _send(composer.health_response())

    return app


app = create_app()


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = ProxyConfig.from_env()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    uvicorn.run(
        create_app(config=config),
        host=HTTP_HOST,
        port=HTTP_PORT,
        log_level=LOG_LEVEL.lower(),
        reload=False)


if __name__ == "__main__":
    main()
