from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.trustedhost import TrustedHostMiddleware

from smart_garden.api.router import api_router
from smart_garden.clients.webpush import WebPushTransport
from smart_garden.core.config import Settings, load_settings
from smart_garden.core.errors import (
    GardenError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
    UpstreamReadError,
)
from smart_garden.core.logging import configure_logging
from smart_garden.db.influx import create_influx_client
from smart_garden.db.sql import create_session_factory, create_sql_engine, init_db
from smart_garden.repositories.devices import DeviceRegistry
from smart_garden.repositories.subscriptions import SubscriptionStore
from smart_garden.repositories.telemetry_influx import InfluxTelemetryRepository
from smart_garden.services.alerts import AlertService
from smart_garden.services.garden import GardenService
from smart_garden.services.images import UPLOADS_URL_PREFIX, ImageTooLargeError
from smart_garden.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


def _build_alert_service(app: FastAPI, settings: Settings) -> AlertService:
    garden = GardenService(
        telemetry=InfluxTelemetryRepository(
            client=app.state.influx_client,
            org=settings.influx_org,
            bucket=settings.influx_bucket,
        ),
        registry=app.state.device_registry,
        api_domain=settings.api_domain,
        alert_floor=settings.moisture_alert_floor,
        max_workers=settings.fanout_workers,
    )
    dispatcher = NotificationDispatcher(
        store=SubscriptionStore(session_factory=app.state.session_factory),
        transport=app.state.push_transport,
        min_interval=timedelta(seconds=settings.notify_min_interval_seconds),
        max_workers=settings.fanout_workers,
    )
    return AlertService(garden=garden, dispatcher=dispatcher)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        ]
        return _error_response(status.HTTP_400_BAD_REQUEST, "; ".join(errors) or "Invalid request")

    @app.exception_handler(InvalidInputError)
    async def invalid_input(request: Request, exc: InvalidInputError):
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(ImageTooLargeError)
    async def image_too_large(request: Request, exc: ImageTooLargeError):
        return _error_response(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(UpstreamReadError)
    async def upstream_unavailable(request: Request, exc: UpstreamReadError):
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "InfluxDB unavailable")

    @app.exception_handler(PersistenceError)
    async def persistence_failed(request: Request, exc: PersistenceError):
        logger.error("Persistence failure on %s: %s", request.url.path, exc, exc_info=exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    @app.exception_handler(GardenError)
    async def garden_error(request: Request, exc: GardenError):
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event: threading.Event | None = None
        sweep_thread: threading.Thread | None = None

        app.state.settings = settings
        app.state.influx_client = create_influx_client(settings)
        app.state.sql_engine = create_sql_engine(settings)
        init_db(app.state.sql_engine)
        app.state.session_factory = create_session_factory(app.state.sql_engine)
        app.state.device_registry = DeviceRegistry(session_factory=app.state.session_factory)
        app.state.push_transport = WebPushTransport(
            vapid_private_key=settings.vapid_private_key,
            vapid_subject=settings.vapid_subject,
            timeout_seconds=settings.push_timeout_seconds,
            ttl_seconds=settings.push_ttl_seconds,
        )

        if settings.alert_sweep_enabled:
            stop_event = threading.Event()
            alerts = _build_alert_service(app, settings)

            def _loop() -> None:
                while stop_event is not None and not stop_event.is_set():
                    try:
                        alerts.sweep()
                    except Exception:  # noqa: BLE001 - keep the loop alive
                        logger.exception("Alert sweep failed")
                    stop_event.wait(settings.alert_sweep_interval_seconds)

            sweep_thread = threading.Thread(target=_loop, name="alert-sweep", daemon=True)
            sweep_thread.start()

        logger.info("Smart Garden API started (bucket %s)", settings.influx_bucket)
        yield
        if stop_event is not None:
            stop_event.set()
        if sweep_thread is not None and sweep_thread.is_alive():
            sweep_thread.join(timeout=2.0)
        app.state.push_transport.close()
        app.state.influx_client.close()
        app.state.sql_engine.dispose()
        logger.info("Smart Garden API stopped")

    docs_enabled = settings.docs_enabled and not settings.is_production
    app = FastAPI(
        title="Smart Garden API",
        version="0.1.0",
        debug=settings.debug,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    if settings.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)

    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if settings.is_production:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response

    _install_error_handlers(app)

    @app.get("/", tags=["meta"])
    def root():
        return {"name": "smart-garden-api", "status": "ok"}

    app.include_router(api_router)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount(UPLOADS_URL_PREFIX, StaticFiles(directory=upload_dir), name="uploads")
    return app
