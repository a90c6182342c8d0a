from __future__ import annotations

import threading
from datetime import datetime
from typing import Any

from influxdb_client.client.flux_table import FluxRecord

from smart_garden.core.errors import DeliveryError, UpstreamReadError
from smart_garden.models.telemetry import RawHistory, RawPoint
from smart_garden.services.metrics import is_infrastructure_metric


class FakeTelemetryRepository:
    def __init__(self) -> None:
        self._latest: dict[str, dict[str, Any]] = {}
        self._history: dict[str, RawHistory] = {}
        self.names: list[str] = []
        self.broken: set[str] = set()
        self.discovery_error: Exception | None = None

    def add_latest(self, measurement: str, **fields: Any) -> None:
        if measurement not in self.names:
            self.names.append(measurement)
        self._latest.setdefault(measurement, {}).update(fields)

    def add_history(
        self,
        measurement: str,
        *,
        day: list[tuple[datetime, dict[str, Any]]] = (),
        week: list[tuple[datetime, dict[str, Any]]] = (),
        month: list[tuple[datetime, dict[str, Any]]] = (),
    ) -> None:
        def points(rows):
            return [RawPoint(timestamp=ts, values=dict(values)) for ts, values in rows]

        self._history[measurement] = RawHistory(
            day=points(day), week=points(week), month=points(month)
        )

    def ping(self) -> None:
        return None

    def list_measurement_names(self) -> list[str]:
        if self.discovery_error is not None:
            raise UpstreamReadError("discovery failed") from self.discovery_error
        return [n for n in self.names if not is_infrastructure_metric(n)]

    def latest_sample(self, measurement: str) -> dict[str, Any]:
        if measurement in self.broken:
            raise UpstreamReadError(f"latest sample of {measurement} failed")
        return dict(self._latest.get(measurement, {}))

    def historical_aggregates(self, measurement: str) -> RawHistory:
        return self._history.get(measurement, RawHistory(day=[], week=[], month=[]))


class FakeQueryApi:
    """Stands in for ``InfluxDBClient.query_api()``; answers by query substring."""

    def __init__(self) -> None:
        self.queries: list[str] = []
        self._answers: list[tuple[str, list[dict[str, Any]]]] = []
        self.error: Exception | None = None

    def answer(self, needle: str, rows: list[dict[str, Any]]) -> None:
        self._answers.append((needle, rows))

    def query_stream(self, query: str, org: str | None = None, params=None):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        for needle, rows in self._answers:
            if needle in query:
                return iter([FluxRecord(table=0, values=dict(row)) for row in rows])
        return iter([])


class FakeInfluxClient:
    def __init__(self) -> None:
        self.api = FakeQueryApi()
        self.healthy = True

    def query_api(self) -> FakeQueryApi:
        return self.api

    def ping(self) -> bool:
        return self.healthy

    def close(self) -> None:
        return None


class FakePushTransport:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sent: list[tuple[dict[str, Any], dict[str, Any]]] = []
        self.failing_endpoints: set[str] = set()

    def send(self, subscription_info: dict[str, Any], payload: dict[str, Any]) -> None:
        endpoint = subscription_info.get("endpoint")
        if endpoint in self.failing_endpoints:
            raise DeliveryError(f"endpoint {endpoint} is gone")
        with self._lock:
            self.sent.append((subscription_info, payload))

    def sent_to(self, endpoint: str) -> int:
        with self._lock:
            return sum(1 for info, _ in self.sent if info.get("endpoint") == endpoint)

    def close(self) -> None:
        return None
