from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from smart_garden.core.errors import GardenError, NotFoundError
from smart_garden.models.device import (
    DeviceConfig,
    FusedNode,
    NotificationMessage,
    ThresholdEvaluation,
)
from smart_garden.models.telemetry import History, HistoryPoint, RawPoint, Reading
from smart_garden.repositories.devices import DeviceRegistry
from smart_garden.repositories.telemetry import TelemetryRepository
from smart_garden.services.metrics import build_reading

logger = logging.getLogger(__name__)

ALERT_TITLE = "Smart Garden"
DEFAULT_ALERT_FLOOR = 5


def alert_message(name: str, moisture: int) -> NotificationMessage:
    return NotificationMessage(
        title=ALERT_TITLE,
        body=f"{name} needs watering: soil moisture is at {moisture}%.",
    )


class GardenService:
    """Joins live telemetry with stored device configuration."""

    def __init__(
        self,
        *,
        telemetry: TelemetryRepository,
        registry: DeviceRegistry,
        api_domain: str = "",
        alert_floor: int = DEFAULT_ALERT_FLOOR,
        max_workers: int = 8,
    ) -> None:
        self._telemetry = telemetry
        self._registry = registry
        self._api_domain = api_domain
        self._alert_floor = alert_floor
        self._max_workers = max_workers

    def image_url(self, config: DeviceConfig) -> str | None:
        if not config.image_path:
            return None
        return f"{self._api_domain}{config.image_path}"

    def online_nodes(self) -> list[FusedNode]:
        names = self._telemetry.list_measurement_names()
        if not names:
            return []

        workers = min(self._max_workers, len(names))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="online-nodes") as pool:
            results = list(pool.map(self._fuse_node, names))

        nodes = [node for node in results if node is not None]
        nodes.sort(key=lambda n: n.id)
        return nodes

    def _fuse_node(self, measurement: str) -> FusedNode | None:
        try:
            raw = self._telemetry.latest_sample(measurement)
            if not raw:
                return None
            reading = build_reading(raw)
            config = self._registry.find(measurement)
        except GardenError:
            logger.exception("Skipping %s: could not load its state", measurement)
            return None

        if config is None:
            logger.error(
                "Config not found for reporting measurement %s (fields: %s)",
                measurement,
                sorted(reading.as_fields()),
            )
            return None

        return FusedNode(
            id=config.id,
            name=config.name,
            image_url=self.image_url(config),
            show_warning=_below_threshold(reading.moisture, config.threshold),
            reading=reading,
        )

    def current_measurements(self, device_id: str) -> Reading:
        raw = self._telemetry.latest_sample(device_id)
        if not raw:
            raise NotFoundError(f"No measurements found for the specified ID: {device_id}")
        return build_reading(raw)

    def history(self, device_id: str) -> History:
        raw = self._telemetry.historical_aggregates(device_id)
        return History(
            day=_normalize_points(raw.day),
            week=_normalize_points(raw.week),
            month=_normalize_points(raw.month),
        )

    def evaluate_threshold(self, device_id: str) -> ThresholdEvaluation:
        config = self._registry.get(device_id)
        moisture = build_reading(self._telemetry.latest_sample(device_id)).moisture

        reached = (
            config.threshold is not None
            and moisture is not None
            and moisture > self._alert_floor
            and moisture <= config.threshold
        )
        if reached:
            message = alert_message(config.name, moisture)
        else:
            message = NotificationMessage(title=ALERT_TITLE, body="")
        return ThresholdEvaluation(
            device_id=device_id,
            thresholds_reached=reached,
            moisture=moisture,
            threshold=config.threshold,
            message=message,
        )


def _below_threshold(moisture: int | None, threshold: int | None) -> bool:
    if threshold is None or moisture is None:
        return False
    return moisture <= threshold


def _normalize_points(points: list[RawPoint]) -> list[HistoryPoint]:
    return [HistoryPoint(timestamp=p.timestamp, reading=build_reading(p.values)) for p in points]
