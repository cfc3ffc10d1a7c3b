"""
Subscription payments service.
FastAPI backend over the PhonePe Checkout API (initiate, status, callback) plus the
storefront pages that select a plan, redirect to hosted checkout and show the result.
"""
from __future__ import annotations

import errno
import socket
import time
import uuid as uuid_lib
from urllib.parse import urlsplit

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response

from app.api import pages, payment
from app.config import Settings, get_settings
from app.core.logging import get_logger, request_id_ctx

MAX_PORT = 65535

settings = get_settings()
logger = get_logger("app", settings.log_level)

# Sentry (configurable via SENTRY_DSN)
if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=0.1,
        integrations=[FastApiIntegration()],
    )

app = FastAPI(
    title="Subscription Payments API",
    description="Plan checkout through the PhonePe hosted payment page, with status polling and callbacks.",
    version="1.0.0",
    openapi_tags=[
        {"name": "payment", "description": "Initiate payments, check status, receive gateway callbacks"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
REQUEST_COUNT = Counter("http_requests_total", "Total requests", ["method", "path", "status"])
REQUEST_LATENCY = Histogram("http_request_duration_seconds", "Request latency", ["method", "path"])


@app.middleware("http")
async def request_id_and_metrics(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid_lib.uuid4())
    request_id_ctx.set(request_id)
    start = time.perf_counter()
    path = request.scope.get("path", "")
    method = request.scope.get("method", "")
    response = await call_next(request)
    duration = time.perf_counter() - start
    REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(duration)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(payment.router, prefix=settings.api_prefix)
app.include_router(pages.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type="text/plain")


def find_free_port(host: str, port: int) -> int:
    """First port >= `port` that can be bound on `host`. Busy ports are skipped one by one."""
    candidate = port
    while candidate <= MAX_PORT:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, candidate))
            except OSError as e:
                if e.errno != errno.EADDRINUSE:
                    raise
                logger.warning("port_busy", extra={"port": candidate})
                candidate += 1
                continue
        return candidate
    raise RuntimeError(f"No free port between {port} and {MAX_PORT}")


def warn_if_port_changed(configured: Settings, port: int) -> list[str]:
    """
    Log a port_changed warning when the server starts on another port than configured.
    Returns the BACKEND_URL/FRONTEND_URL values still naming the configured port; the
    storefront's API calls and the gateway redirect/callback URLs will miss this server.
    """
    if port == configured.port:
        return []
    stale = []
    for url in (configured.backend_url, configured.frontend_url):
        try:
            url_port = urlsplit(url).port
        except ValueError:
            continue
        if url_port == configured.port and url not in stale:
            stale.append(url)
    logger.warning(
        "port_changed",
        extra={"configured_port": configured.port, "port": port, "stale_urls": stale},
    )
    return stale


def run() -> None:
    import uvicorn

    port = find_free_port(settings.host, settings.port)
    warn_if_port_changed(settings, port)
    logger.info("server_starting", extra={"port": port})
    uvicorn.run(app, host=settings.host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
