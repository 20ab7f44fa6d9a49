"""
myip web application
FastAPI app serving the client's address and what we can find out about it
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from . import __version__
from .composer import handle_request
from .config import Settings
from .enrichment.builtins import default_registry
from .enrichment.service import EnrichmentRegistry
from .models import RequestInfo
from .render import ClientKind, classify, render_json, render_text

logger = logging.getLogger(__name__)

CONTENT_SECURITY_POLICY = (
    "default-src 'self';"
    " connect-src *;"
    " script-src 'self' www.google-analytics.com;"
    " img-src data: 'self' www.google-analytics.com maps.googleapis.com;"
)


def request_info(request: Request) -> RequestInfo:
    """Snapshot the parts of a Starlette request the pipeline uses."""
    params = request.query_params
    query = {k: params.getlist(k)[0] for k in params.keys()}
    headers = [(k.decode("latin-1"), v.decode("latin-1")) for k, v in request.headers.raw]

    url = request.url.path
    if request.url.query:
        url += "?" + request.url.query

    return RequestInfo(
        method=request.method,
        url=url,
        proto=f"HTTP/{request.scope.get('http_version', '1.1')}",
        headers=headers,
        query=query,
        peer_addr=request.client.host if request.client else "",
        tls=request.url.scheme in ("https", "wss"),
    )


def config_js(settings: Settings) -> str:
    cfg = {
        "host": settings.host,
        "debug": settings.debug,
        "analyticsId": settings.analytics_id or None,
        "mapsKey": settings.maps_key or None,
    }
    return f"window.MYIP_CONFIG = {json.dumps(cfg)};\n"


def create_app(
    settings: Optional[Settings] = None, registry: Optional[EnrichmentRegistry] = None
) -> FastAPI:
    settings = settings or Settings()
    registry = registry or default_registry(settings)

    app = FastAPI(
        title="myip",
        description="Client IP address, reverse DNS, WHOIS, location and user agent",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.registry = registry

    # Middleware added last runs first: access log -> security headers -> script clients.

    @app.middleware("http")
    async def script_clients(request: Request, call_next):
        """Command line tools get the text report on every path."""
        if classify(request.headers.get("user-agent")) is ClientKind.SCRIPT:
            outcome = await run_in_threadpool(
                handle_request, request_info(request), settings, registry
            )
            return render_text(outcome)
        return await call_next(request)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        if not settings.debug:
            response.headers.setdefault("X-Frame-Options", "DENY")
            response.headers.setdefault("X-Content-Type-Options", "nosniff")
            response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
            response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
        return response

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "request_completed method=%s path=%s status=%s duration_ms=%.2f client_ip=%s user_agent=%r",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request.client.host if request.client else "-",
            request.headers.get("user-agent", ""),
        )
        return response

    @app.get("/json")
    def json_endpoint(request: Request) -> Response:
        info = request_info(request)
        outcome = handle_request(info, settings, registry)
        return render_json(outcome, tls=info.tls, host=settings.host)

    @app.get("/config.js")
    def config_js_endpoint() -> Response:
        return Response(config_js(settings), media_type="application/javascript")

    @app.get("/healthz")
    def health():
        """Health check endpoint"""
        return {"status": "ok"}

    # Serve static files
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app
