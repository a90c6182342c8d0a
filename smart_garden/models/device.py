from __future__ import annotations

from dataclasses import dataclass

from smart_garden.models.telemetry import Reading


@dataclass(frozen=True)
class DeviceConfig:
    id: str
    name: str
    version: int
    interval: int
    led_state: bool
    threshold: int | None = None
    image_path: str | None = None


@dataclass(frozen=True)
class DeviceConfigUpdate:
    name: str
    interval: int
    led_state: bool
    threshold: int | None = None


@dataclass(frozen=True)
class FusedNode:
    id: str
    name: str
    image_url: str | None
    show_warning: bool
    reading: Reading


@dataclass(frozen=True)
class NotificationMessage:
    title: str
    body: str

    def to_payload(self) -> dict[str, str]:
        return {"title": self.title, "body": self.body}


@dataclass(frozen=True)
class ThresholdEvaluation:
    device_id: str
    thresholds_reached: bool
    moisture: int | None
    threshold: int | None
    message: NotificationMessage
