from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from smart_garden.models.telemetry import FieldValue, RawHistory

LATEST_SAMPLE_WINDOW = timedelta(hours=48)


@dataclass(frozen=True)
class AggregateWindow:
    name: str
    span: timedelta
    every: timedelta


HISTORY_WINDOWS = (
    AggregateWindow("day", span=timedelta(hours=24), every=timedelta(hours=1)),
    AggregateWindow("week", span=timedelta(days=7), every=timedelta(hours=6)),
    AggregateWindow("month", span=timedelta(days=30), every=timedelta(hours=6)),
)


class TelemetryRepository(Protocol):
    def ping(self) -> None: ...

    def list_measurement_names(self) -> list[str]: ...

    def latest_sample(self, measurement: str) -> dict[str, FieldValue]: ...

    def historical_aggregates(self, measurement: str) -> RawHistory: ...
