import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import links
from .config import Settings, settings as default_settings
from .exceptions import ShortLinkError
from .observability import PrometheusMiddleware, metrics_endpoint
from .services.qr_encoder import Encoder, QRCodeEncoder
from .services.rate_limiter import AdmissionController, AdmissionControlMiddleware
from .services.shortener import ShortenerService
from .stores.base import MappingStore
from .stores.factory import build_store

logger = logging.getLogger(__name__)


def reserved_aliases(app: FastAPI) -> set:
    """Single-segment GET routes (/health, /metrics, /docs, ...) that shadow GET /{alias}."""
    reserved = set()
    for route in app.routes:
        path = getattr(route, "path", "")
        methods = getattr(route, "methods", None)
        if "{" in path or path.count("/") != 1 or path == "/":
            continue
        if methods is None or "GET" in methods:
            reserved.add(path[1:])
    return reserved


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[MappingStore] = None,
    encoder: Optional[Encoder] = None,
    admission: Optional[AdmissionController] = None,
) -> FastAPI:
    """Build the application with its collaborators.

    Anything not passed in is constructed from ``settings``: the mapping store
    from ``STORE_BACKEND``, the QR encoder at ``QR_CODE_SIZE`` and the admission
    controller from the ``RATE_LIMIT_*`` values.
    """
    if settings is None:
        settings = default_settings
    if store is None:
        store = build_store(settings)
    if encoder is None:
        encoder = QRCodeEncoder(size=settings.QR_CODE_SIZE)
    if admission is None:
        admission = AdmissionController(
            capacity=settings.RATE_LIMIT_CAPACITY,
            refill_rate=settings.RATE_LIMIT_REFILL_RATE,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup logic
        await store.connect()
        logger.info(f"Mapping store connected ({type(store).__name__})")
        yield
        # Shutdown logic
        await store.close()

    app = FastAPI(
        title="shortlink",
        description="URL shortener with QR codes and click counting",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.admission = admission
    app.state.redirect_status_code = settings.REDIRECT_STATUS_CODE

    # Last added runs first: CORS, then metrics, then admission control.
    app.add_middleware(
        AdmissionControlMiddleware,
        controller=admission,
        exempt_paths=settings.RATE_LIMIT_EXEMPT_PATHS,
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(ShortLinkError)
    async def shortlink_error_handler(request: Request, exc: ShortLinkError):
        # Server-side failures keep their generic message; the cause is in the logs.
        detail = type(exc).detail if exc.status_code >= 500 else exc.detail
        return JSONResponse(status_code=exc.status_code, content={"detail": detail})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.add_route("/metrics", metrics_endpoint)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # Registered last: GET /{alias} would otherwise shadow the routes above.
    app.include_router(links.router)

    app.state.shortener = ShortenerService(
        store, encoder, settings.BASE_URL,
        reserved_aliases=reserved_aliases(app),
    )

    return app
