"""Starlette application: routes, response policy and error serialisation.

Routes:
  GET /           liveness probe
  GET /proxy-es5  ?url=<script url> → ES5 script

Every failure leaves this module as a structured response. ProxyError maps
to its own status; anything else becomes a generic 500 that only carries
diagnostic detail outside production.
"""

from __future__ import annotations

import traceback
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

import es5proxy.handler as proxy_handler
from es5proxy.cache import TieredCache
from es5proxy.config import Settings
from es5proxy.errors import ProxyError
from es5proxy.fetcher import Fetcher, build_http_client
from es5proxy.state import AppState
from es5proxy.transform import BabelTransformer
from es5proxy.transport import RequestContextMiddleware
from es5proxy.validator import normalise_hosts

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.exceptions import HTTPException
    from starlette.requests import Request

log = structlog.get_logger()

SCRIPT_MEDIA_TYPE = "application/javascript; charset=utf-8"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
LIVENESS_BODY = "ES5 proxy is running"


# ---------------------------------------------------------------------------
# Content negotiation
# ---------------------------------------------------------------------------


def _accept_quality(accept: str, media_type: str) -> float:
    """Return the q-value the Accept header grants ``media_type`` (0 if none)."""
    main_type = media_type.split("/", 1)[0]
    best_specificity, best_q = -1, 0.0
    for item in accept.split(","):
        parts = [p.strip() for p in item.split(";")]
        pattern = parts[0].lower()
        q = 1.0
        for param in parts[1:]:
            name, _, value = param.partition("=")
            if name.strip() == "q":
                try:
                    q = float(value)
                except ValueError:
                    q = 0.0
        if pattern == media_type:
            specificity = 2
        elif pattern == f"{main_type}/*":
            specificity = 1
        elif pattern == "*/*":
            specificity = 0
        else:
            continue
        if specificity > best_specificity:
            best_specificity, best_q = specificity, q
    return best_q


def wants_json(request: Request) -> bool:
    """True when the caller prefers application/json over text/plain."""
    accept = request.headers.get("accept", "")
    if not accept:
        return False
    return _accept_quality(accept, "application/json") > _accept_quality(accept, "text/plain")


def _error_response(request: Request, status_code: int, body: dict, message: str) -> Response:
    if wants_json(request):
        return JSONResponse(body, status_code=status_code)
    return PlainTextResponse(message, status_code=status_code)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


async def liveness(request: Request) -> Response:
    return PlainTextResponse(LIVENESS_BODY)


async def proxy_es5(request: Request) -> Response:
    state: AppState = request.app.state.proxy
    try:
        content = await proxy_handler.handle(request.query_params.get("url"), state)
    except ProxyError as exc:
        log.warning(
            "request_error",
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _error_response(request, exc.status_code, exc.to_dict(), exc.message)
    except Exception:
        log.error("request_unexpected_error", exc_info=True)
        raise

    return Response(
        content,
        media_type=SCRIPT_MEDIA_TYPE,
        headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL},
    )


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


async def not_found(request: Request, exc: HTTPException) -> Response:
    message = f"Not found: {request.url.path}"
    body = {"error": {"code": "NOT_FOUND", "message": message}}
    return _error_response(request, 404, body, message)


async def method_not_allowed(request: Request, exc: HTTPException) -> Response:
    message = f"Method {request.method} not allowed for {request.url.path}"
    body = {"error": {"code": "METHOD_NOT_ALLOWED", "message": message}}
    response = _error_response(request, 405, body, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def server_error(request: Request, exc: Exception) -> Response:
    settings: Settings = request.app.state.settings
    message = "Internal server error"
    error: dict[str, object] = {"code": "INTERNAL_ERROR", "message": message}

    if settings.server.is_production:
        return _error_response(request, 500, {"error": error}, message)

    chain = traceback.format_exception(exc)
    error["detail"] = {
        "exception": chain,
        "request": {
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query,
        },
    }
    text = f"{message}\n\n{request.method} {request.url}\n\n{''.join(chain)}"
    return _error_response(request, 500, {"error": error}, text)


# ---------------------------------------------------------------------------
# State lifecycle
# ---------------------------------------------------------------------------


@asynccontextmanager
async def open_state(settings: Settings) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    cache = TieredCache.from_settings(settings.cache)
    cache.disk.ensure_directory()
    cached_urls = cache.disk.cached_urls()
    log.debug("disk_cache_contents", entries=len(cached_urls), urls=cached_urls)

    http_client = build_http_client(settings.fetcher)
    state = AppState(
        settings=settings,
        cache=cache,
        fetcher=Fetcher(http_client, settings.fetcher),
        transformer=BabelTransformer(settings.transform),
        allowlist=normalise_hosts(settings.proxy.allowed_hosts),
        http_client=http_client,
    )
    log.info(
        "proxy_state_ready",
        allowed_hosts=sorted(state.allowlist),
        **cache.stats(),
    )
    try:
        yield state
    finally:
        await http_client.aclose()


def create_app(settings: Settings | None = None, state: AppState | None = None) -> Starlette:
    """Build the ASGI app.

    With ``state`` given (tests), the app serves from it directly and the
    lifespan creates nothing. Otherwise the lifespan builds an AppState from
    ``settings`` on startup and closes it on shutdown.
    """
    if settings is None:
        settings = state.settings if state is not None else Settings()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        if state is not None:
            yield
            return
        async with open_state(settings) as opened:
            app.state.proxy = opened
            yield
        log.info("server_stopping")

    app = Starlette(
        routes=[
            Route("/", liveness, methods=["GET"]),
            Route("/proxy-es5", proxy_es5, methods=["GET"]),
        ],
        middleware=[
            Middleware(RequestContextMiddleware),
            Middleware(
                CORSMiddleware,
                allow_origins=settings.server.allowed_origins,
                allow_methods=["GET"],
            ),
        ],
        exception_handlers={
            404: not_found,
            405: method_not_allowed,
            Exception: server_error,
        },
        lifespan=lifespan,
    )
    app.state.settings = settings
    if state is not None:
        app.state.proxy = state
    return app
