from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime

from influxdb_client import InfluxDBClient
from influxdb_client.client.flux_table import FluxRecord

from smart_garden.core.errors import UpstreamReadError
from smart_garden.models.telemetry import FieldValue, RawHistory, RawPoint
from smart_garden.repositories.flux import flux_duration, flux_str
from smart_garden.repositories.telemetry import (
    HISTORY_WINDOWS,
    LATEST_SAMPLE_WINDOW,
    AggregateWindow,
)
from smart_garden.services.metrics import is_infrastructure_metric

logger = logging.getLogger(__name__)


class InfluxTelemetryRepository:
    def __init__(self, *, client: InfluxDBClient, org: str, bucket: str) -> None:
        self._client = client
        self._org = org
        self._bucket = bucket

    def ping(self) -> None:
        if not self._client.ping():
            raise UpstreamReadError("InfluxDB did not answer the ping")

    def list_measurement_names(self) -> list[str]:
        query = f"""
import "influxdata/influxdb/schema"

schema.measurements(bucket: {flux_str(self._bucket)})
"""
        names: list[str] = []
        seen: set[str] = set()
        for record in self._stream(query, purpose="measurement discovery"):
            name = record.get_value()
            if not isinstance(name, str) or name in seen:
                continue
            seen.add(name)
            if is_infrastructure_metric(name):
                continue
            names.append(name)
        return names

    def latest_sample(self, measurement: str) -> dict[str, FieldValue]:
        query = f"""
from(bucket: {flux_str(self._bucket)})
  |> range(start: -{flux_duration(LATEST_SAMPLE_WINDOW)})
  |> filter(fn: (r) => r["_measurement"] == {flux_str(measurement)})
  |> last()
"""
        newest: dict[str, tuple[datetime | None, FieldValue]] = {}
        for record in self._stream(query, purpose=f"latest sample of {measurement}"):
            field = record.get_field()
            value = record.get_value()
            if not isinstance(field, str) or value is None:
                continue
            ts = record.get_time()
            current = newest.get(field)
            # Several tag series can report the same field; keep the newest value.
            if current is None or (ts is not None and (current[0] is None or ts > current[0])):
                newest[field] = (ts, value)
        return {field: value for field, (_, value) in newest.items()}

    def historical_aggregates(self, measurement: str) -> RawHistory:
        series = {
            window.name: self._aggregate(measurement, window) for window in HISTORY_WINDOWS
        }
        return RawHistory(day=series["day"], week=series["week"], month=series["month"])

    def _aggregate(self, measurement: str, window: AggregateWindow) -> list[RawPoint]:
        query = f"""
import "types"

from(bucket: {flux_str(self._bucket)})
  |> range(start: -{flux_duration(window.span)})
  |> filter(fn: (r) => r["_measurement"] == {flux_str(measurement)})
  |> filter(fn: (r) => types.isType(v: r._value, type: "float") or types.isType(v: r._value, type: "int"))
  |> aggregateWindow(every: {flux_duration(window.every)}, fn: median, createEmpty: false)
  |> keep(columns: ["_time", "_field", "_value"])
"""
        by_time: dict[datetime, dict[str, FieldValue]] = {}
        for record in self._stream(query, purpose=f"{window.name} history of {measurement}"):
            ts = record.get_time()
            field = record.get_field()
            value = record.get_value()
            if ts is None or not isinstance(field, str) or value is None:
                continue
            by_time.setdefault(ts, {})[field] = value
        return [RawPoint(timestamp=ts, values=by_time[ts]) for ts in sorted(by_time)]

    def _stream(self, query: str, *, purpose: str) -> Iterator[FluxRecord]:
        query_api = self._client.query_api()
        try:
            # Materialized so mid-stream transport errors surface here too.
            records = list(query_api.query_stream(query=query, org=self._org))
        except Exception as e:  # noqa: BLE001 - normalize store failures
            logger.error("InfluxDB query for %s failed: %s", purpose, e)
            raise UpstreamReadError(f"InfluxDB query for {purpose} failed") from e
        return iter(records)
