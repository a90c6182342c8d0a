from __future__ import annotations

from influxdb_client import InfluxDBClient

from smart_garden.core.config import Settings


def create_influx_client(settings: Settings) -> InfluxDBClient:
    # ``timeout`` bounds every query; expiry surfaces as an upstream read error.
    return InfluxDBClient(
        url=str(settings.influx_url),
        token=settings.influx_token,
        org=settings.influx_org,
        timeout=settings.influx_timeout_ms,
        enable_gzip=True,
    )
