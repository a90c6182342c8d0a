from __future__ import annotations

from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Query, Request
from sqlalchemy import Engine

from smart_garden.clients.webpush import PushTransport
from smart_garden.core.config import Settings
from smart_garden.core.errors import InvalidInputError
from smart_garden.repositories.devices import DeviceRegistry
from smart_garden.repositories.subscriptions import SubscriptionStore
from smart_garden.repositories.telemetry import TelemetryRepository
from smart_garden.repositories.telemetry_influx import InfluxTelemetryRepository
from smart_garden.services.alerts import AlertService
from smart_garden.services.garden import GardenService
from smart_garden.services.images import ImageStore
from smart_garden.services.notifications import NotificationDispatcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_sql_engine(request: Request) -> Engine:
    return request.app.state.sql_engine


def get_telemetry_repository(
    request: Request, settings: Annotated[Settings, Depends(get_settings)]
) -> TelemetryRepository:
    return InfluxTelemetryRepository(
        client=request.app.state.influx_client,
        org=settings.influx_org,
        bucket=settings.influx_bucket,
    )


def get_device_registry(request: Request) -> DeviceRegistry:
    return request.app.state.device_registry


def get_subscription_store(request: Request) -> SubscriptionStore:
    return SubscriptionStore(session_factory=request.app.state.session_factory)


def get_push_transport(request: Request) -> PushTransport:
    return request.app.state.push_transport


def get_image_store(settings: Annotated[Settings, Depends(get_settings)]) -> ImageStore:
    return ImageStore(directory=settings.upload_dir, max_bytes=settings.upload_max_bytes)


def get_garden_service(
    telemetry: Annotated[TelemetryRepository, Depends(get_telemetry_repository)],
    registry: Annotated[DeviceRegistry, Depends(get_device_registry)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> GardenService:
    return GardenService(
        telemetry=telemetry,
        registry=registry,
        api_domain=settings.api_domain,
        alert_floor=settings.moisture_alert_floor,
        max_workers=settings.fanout_workers,
    )


def get_dispatcher(
    store: Annotated[SubscriptionStore, Depends(get_subscription_store)],
    transport: Annotated[PushTransport, Depends(get_push_transport)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> NotificationDispatcher:
    return NotificationDispatcher(
        store=store,
        transport=transport,
        min_interval=timedelta(seconds=settings.notify_min_interval_seconds),
        max_workers=settings.fanout_workers,
    )


def get_alert_service(
    garden: Annotated[GardenService, Depends(get_garden_service)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> AlertService:
    return AlertService(garden=garden, dispatcher=dispatcher)


def require_id(id: Annotated[str | None, Query(max_length=128)] = None) -> str:
    if id is None or not id.strip():
        raise InvalidInputError("Invalid or missing id parameter")
    return id.strip()


RequiredId = Annotated[str, Depends(require_id)]
