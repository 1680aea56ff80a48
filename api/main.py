"""
api/main.py -- FastAPI application for the Devices API.

Serves the Customer -> Site -> Device inventory behind cookie sessions, plus
the admin-secret token endpoints that hand those sessions out.

Run with:      python main.py serve
               uvicorn asgi:app --reload   (development, no TLS)

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- binds api.limiter; route limits run in @limiter.limit

Lifespan opens the store (creating missing tables) and builds the token
service on startup; shutdown disposes the store and logs the uptime.

Every response, success or failure, uses the envelope from api/responses.py.
The exception handlers below are the only place failures are rendered.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.responses import envelope, error_response
from api.routes.v1.admin import router as admin_router
from api.routes.v1.authenticate import router as authenticate_router
from api.routes.v1.customers import router as customers_router
from api.routes.v1.devices import router as devices_router
from api.routes.v1.sites import router as sites_router
from auth.tokens import TokenService
from core.config import VERSION, get_settings
from inventory.store import InventoryStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("devicesapi.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The store comes first: the schema must exist before the first
    request, and the tables it had to create are reported here.
    """
    # Startup
    started = time.monotonic()
    logger.info("%s %s starting up", settings.app_name, VERSION)
    store = InventoryStore()
    if store.created_tables:
        logger.info("Created tables: %s", ", ".join(store.created_tables))
    if store.existing_tables:
        logger.info("Tables already present: %s", ", ".join(store.existing_tables))
    app.state.store = store
    app.state.tokens = TokenService.from_settings()
    app.state.admin_secret = settings.admin_secret
    logger.info("Token service initialized (actions=%s)", ", ".join(sorted(app.state.tokens.allowed_actions)))

    yield

    # Shutdown
    app.state.store.close()
    logger.info("%s stopped after %.1fs", settings.app_name, time.monotonic() - started)


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    description="Customers, sites and devices inventory with cookie sessions and admin-issued tokens.",
    version=VERSION,
    lifespan=lifespan,
    # The API is consumed by provisioned clients only; no schema or UI is served.
    openapi_url=None,
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() calls are applied outermost-first from the caller's
# perspective. Register in the order you want the request to encounter
# them: TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Admin-Secret"],
        max_age=3600,
    )

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
limiter.enabled = settings.rate_limit_enabled
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Failures are logged at WARNING so they stand out from traffic.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    level = logging.WARNING if response.status_code >= 400 else logging.INFO
    logger.log(
        level,
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(admin_router, tags=["Admin"])
app.include_router(authenticate_router, tags=["Auth"])
app.include_router(customers_router, tags=["Customers"])
app.include_router(sites_router, tags=["Sites"])
app.include_router(devices_router, tags=["Devices"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same envelope so API clients can parse errors
# uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _log_failure(request: Request, status: int, message: object) -> None:
    level = logging.ERROR if status >= 500 else logging.WARNING
    logger.log(level, "%s %s failed (%d): %s", request.method, request.url.path, status, message)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Synchronous on purpose: SlowAPIMiddleware calls this handler directly
    for sync endpoints without awaiting it.
    """
    _log_failure(request, 429, exc.detail)
    retry_after = int(getattr(exc, "retry_after", 60))
    response = envelope(429, message="Too many requests.", error=str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the body, path or query fails validation."""
    errors = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    _log_failure(request, 400, errors)
    return envelope(400, message="Invalid request body", error=errors or None)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException details, including the router's own 404/405.

    Route code raises detail=ErrorDetail(...).model_dump() (a dict). A bare
    string detail on 404/405 comes from routing itself: no path matched, or
    the path matched with the wrong method.
    """
    if isinstance(exc.detail, dict):
        response = error_response(exc.status_code, exc.detail)
    elif exc.status_code == 404:
        response = envelope(
            404,
            message=f"Route Not Found: ({request.method}) - '{request.url.path}'",
            error="(404) Route not found",
        )
    elif exc.status_code == 405:
        response = envelope(
            405,
            message=f"Method Not Allowed: ({request.method}) - '{request.url.path}'",
            error="(405) Method not allowed",
        )
    else:
        response = error_response(exc.status_code, exc.detail)
    _log_failure(request, exc.status_code, exc.detail)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """The driver message stays in the log; clients only learn that the database failed."""
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return envelope(500, message="Database error")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return envelope(500, message="An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers and monitoring systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> JSONResponse:
    """Return liveness and the configured application name."""
    return envelope(200, message="OK", data=f"Service is running: {settings.app_name}")
