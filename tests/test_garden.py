from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from smart_garden.core.errors import NotFoundError, UpstreamReadError
from smart_garden.models.device import DeviceConfigUpdate
from smart_garden.repositories.devices import DeviceRegistry
from smart_garden.repositories.subscriptions import SubscriptionStore
from smart_garden.services.alerts import AlertService
from smart_garden.services.garden import GardenService
from smart_garden.services.notifications import NotificationDispatcher
from tests.fakes import FakePushTransport, FakeTelemetryRepository

# Raw sensor values for a given moisture percentage: pct = 200 - raw / 15.
RAW_3_PCT = 2955
RAW_15_PCT = 2775
RAW_50_PCT = 2250


@pytest.fixture()
def garden(telemetry: FakeTelemetryRepository, registry: DeviceRegistry) -> GardenService:
    return GardenService(
        telemetry=telemetry, registry=registry, api_domain="https://api.example.com"
    )


def _configure(registry: DeviceRegistry, device_id: str, name: str, threshold: int | None) -> None:
    registry.upsert(
        device_id,
        DeviceConfigUpdate(name=name, interval=60, led_state=False, threshold=threshold),
    )


def test_online_node_is_fused_with_config(
    garden: GardenService, telemetry: FakeTelemetryRepository, registry: DeviceRegistry
) -> None:
    telemetry.add_latest("potA", moisture=1000, temperature=19.5)
    _configure(registry, "potA", "Basil", threshold=50)

    nodes = garden.online_nodes()

    assert len(nodes) == 1
    node = nodes[0]
    assert node.id == "potA"
    assert node.name == "Basil"
    assert node.reading.as_fields() == {"moisture": 100, "temperature": 19.5}
    assert node.show_warning is False
    assert node.image_url is None


def test_warning_when_moisture_at_or_below_threshold(
    garden: GardenService, telemetry: FakeTelemetryRepository, registry: DeviceRegistry
) -> None:
    telemetry.add_latest("potA", moisture=1000)
    telemetry.add_latest("potB", moisture=RAW_50_PCT)
    _configure(registry, "potA", "Basil", threshold=100)
    _configure(registry, "potB", "Mint", threshold=50)

    warnings = {node.id: node.show_warning for node in garden.online_nodes()}
    assert warnings == {"potA": True, "potB": True}


def test_no_warning_without_threshold_or_moisture(
    garden: GardenService, telemetry: FakeTelemetryRepository, registry: DeviceRegistry
) -> None:
    telemetry.add_latest("potA", moisture=RAW_3_PCT)
    telemetry.add_latest("potB", temperature=22.0)
    _configure(registry, "potA", "Basil", threshold=None)
    _configure(registry, "potB", "Mint", threshold=80)

    assert [node.show_warning for node in garden.online_nodes()] == [False, False]


def test_image_url_uses_api_domain(
    garden: GardenService, telemetry: FakeTelemetryRepository, registry: DeviceRegistry
) -> None:
    telemetry.add_latest("potA", moisture=1000)
    _configure(registry, "potA", "Basil", threshold=None)
    registry.set_image_reference("potA", "/uploads/123.png")

    assert garden.online_nodes()[0].image_url == "https://api.example.com/uploads/123.png"


def test_unconfigured_offline_and_broken_devices_are_left_out(
    garden: GardenService,
    telemetry: FakeTelemetryRepository,
    registry: DeviceRegistry,
    caplog: pytest.LogCaptureFixture,
) -> None:
    telemetry.add_latest("potA", moisture=1000)
    telemetry.add_latest("stray", moisture=1000)
    telemetry.add_latest("broken", moisture=1000)
    telemetry.names.append("offline")
    telemetry.names.append("http_requests")
    telemetry.broken.add("broken")
    for device_id in ("potA", "broken", "offline"):
        _configure(registry, device_id, device_id.title(), threshold=None)

    with caplog.at_level(logging.ERROR, logger="smart_garden.services.garden"):
        nodes = garden.online_nodes()

    assert [node.id for node in nodes] == ["potA"]
    assert "stray" in caplog.text


def test_discovery_failure_propagates(
    garden: GardenService, telemetry: FakeTelemetryRepository
) -> None:
    telemetry.discovery_error = ConnectionError("refused")
    with pytest.raises(UpstreamReadError):
        garden.online_nodes()


def test_current_measurements(garden: GardenService, telemetry: FakeTelemetryRepository) -> None:
    telemetry.add_latest("potA", moisture=RAW_50_PCT, battery=3.9)
    assert garden.current_measurements("potA").as_fields() == {"moisture": 50, "battery": 3.9}

    with pytest.raises(NotFoundError):
        garden.current_measurements("ghost")


def test_history_normalizes_each_point(
    garden: GardenService, telemetry: FakeTelemetryRepository
) -> None:
    t0 = datetime(2026, 5, 1, tzinfo=timezone.utc)
    telemetry.add_history(
        "potA",
        day=[
            (t0, {"moisture": 1000.0, "temperature": 18.0}),
            (t0 + timedelta(hours=1), {"moisture": RAW_50_PCT}),
        ],
        week=[(t0, {"moisture": 3100.0})],
    )

    history = garden.history("potA")

    assert [p.timestamp for p in history.day] == [t0, t0 + timedelta(hours=1)]
    assert [p.reading.moisture for p in history.day] == [100, 50]
    assert history.day[0].reading.temperature == 18.0
    assert history.week[0].reading.moisture == 0
    assert history.month == []


@pytest.mark.parametrize(
    ("threshold", "raw", "reached"),
    [
        (20, RAW_15_PCT, True),
        (20, RAW_3_PCT, False),
        (None, RAW_15_PCT, False),
        (None, RAW_3_PCT, False),
        (15, RAW_15_PCT, True),
        (10, RAW_15_PCT, False),
    ],
)
def test_evaluate_threshold(
    garden: GardenService,
    telemetry: FakeTelemetryRepository,
    registry: DeviceRegistry,
    threshold: int | None,
    raw: int,
    reached: bool,
) -> None:
    telemetry.add_latest("potA", moisture=raw)
    _configure(registry, "potA", "Basil", threshold=threshold)

    evaluation = garden.evaluate_threshold("potA")

    assert evaluation.thresholds_reached is reached
    if reached:
        assert "Basil" in evaluation.message.body
    else:
        assert evaluation.message.body == ""


def test_evaluate_threshold_without_readings_or_config(
    garden: GardenService, registry: DeviceRegistry
) -> None:
    _configure(registry, "potA", "Basil", threshold=50)
    assert garden.evaluate_threshold("potA").thresholds_reached is False
    with pytest.raises(NotFoundError):
        garden.evaluate_threshold("ghost")


def test_alert_check_notifies_subscribers_once_per_window(
    garden: GardenService,
    telemetry: FakeTelemetryRepository,
    registry: DeviceRegistry,
    subscription_store: SubscriptionStore,
    transport: FakePushTransport,
    now: datetime,
) -> None:
    telemetry.add_latest("potA", moisture=RAW_15_PCT)
    telemetry.add_latest("potB", moisture=1000)
    _configure(registry, "potA", "Basil", threshold=20)
    _configure(registry, "potB", "Mint", threshold=20)
    dispatcher = NotificationDispatcher(store=subscription_store, transport=transport)
    dispatcher.register("browser", {"endpoint": "https://push/browser"})
    alerts = AlertService(garden=garden, dispatcher=dispatcher)

    results = alerts.sweep(now=now)
    alerts.sweep(now=now + timedelta(minutes=10))

    assert [r.evaluation.thresholds_reached for r in results] == [True, False]
    assert transport.sent_to("https://push/browser") == 1
    assert "Basil" in transport.sent[0][1]["body"]
