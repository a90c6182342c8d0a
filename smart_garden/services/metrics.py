from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from smart_garden.models.telemetry import FieldValue, Reading

# Measurements InfluxDB writes about itself when self-monitoring is enabled.
INFRASTRUCTURE_PREFIXES = (
    "go_",
    "http_",
    "influxdb_",
    "qc_",
    "service_",
    "storage_",
    "task_",
    "boltdb_",
    "query_",
)

MOISTURE_RAW_WET = 1500
MOISTURE_RAW_DRY = 3000

_FLOAT_FIELDS = ("temperature", "humidity", "battery", "light")


def normalize_moisture(raw: float) -> int:
    """Map a capacitive sensor reading to a 0-100 moisture percentage.

    The sensor reports lower values for wetter soil: at or below 1500 the soil
    is saturated, at or above 3000 it is bone dry, linear in between. Halves
    round up.
    """
    if raw <= MOISTURE_RAW_WET:
        return 100
    if raw >= MOISTURE_RAW_DRY:
        return 0
    return math.floor(200 - raw / 15 + 0.5)


def is_infrastructure_metric(name: str) -> bool:
    return name.startswith(INFRASTRUCTURE_PREFIXES)


def build_reading(raw: Mapping[str, Any]) -> Reading:
    moisture: int | None = None
    floats: dict[str, float | None] = {name: None for name in _FLOAT_FIELDS}
    extra: dict[str, FieldValue] = {}

    for name, value in raw.items():
        if value is None:
            continue
        if name == "moisture" and _is_number(value):
            moisture = normalize_moisture(float(value))
        elif name in floats and _is_number(value):
            floats[name] = float(value)
        else:
            extra[name] = value

    return Reading(moisture=moisture, extra=extra, **floats)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
