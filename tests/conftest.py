from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from smart_garden.api import deps
from smart_garden.core.config import Settings
from smart_garden.db.sql import create_session_factory, create_sql_engine, init_db
from smart_garden.factory import create_app
from smart_garden.repositories.devices import DeviceRegistry
from smart_garden.repositories.subscriptions import SubscriptionStore
from tests.fakes import FakePushTransport, FakeTelemetryRepository


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        debug=True,
        docs_enabled=False,
        cors_origins=["http://localhost"],
        trusted_hosts=["testserver", "localhost"],
        influx_url="http://example.com:8086",
        influx_token="test-token-1234567890",
        influx_org="test",
        influx_bucket="garden",
        influx_timeout_ms=5000,
        database_url=f"sqlite:///{tmp_path / 'garden.sqlite'}",
        api_domain="https://api.example.com",
        upload_dir=str(tmp_path / "uploads"),
        upload_max_bytes=16 * 1024,
        vapid_private_key="",
        notify_min_interval_seconds=3 * 60 * 60,
        alert_sweep_enabled=False,
    )


@pytest.fixture()
def session_factory(settings: Settings) -> sessionmaker[Session]:
    engine = create_sql_engine(settings)
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def registry(session_factory: sessionmaker[Session]) -> DeviceRegistry:
    return DeviceRegistry(session_factory=session_factory)


@pytest.fixture()
def subscription_store(session_factory: sessionmaker[Session]) -> SubscriptionStore:
    return SubscriptionStore(session_factory=session_factory)


@pytest.fixture()
def telemetry() -> FakeTelemetryRepository:
    return FakeTelemetryRepository()


@pytest.fixture()
def transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture()
def client(
    settings: Settings,
    telemetry: FakeTelemetryRepository,
    transport: FakePushTransport,
) -> TestClient:
    app = create_app(settings)
    app.dependency_overrides[deps.get_telemetry_repository] = lambda: telemetry
    app.dependency_overrides[deps.get_push_transport] = lambda: transport
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def now() -> datetime:
    return datetime.now(tz=timezone.utc)
