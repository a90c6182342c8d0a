from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

FieldValue = float | int | str | bool


@dataclass(frozen=True)
class Reading:
    """One device's values at a point in time, with moisture already normalized.

    Fields the firmware is known to report are typed attributes; anything else
    is carried through untouched in ``extra``.
    """

    moisture: int | None = None
    temperature: float | None = None
    humidity: float | None = None
    battery: float | None = None
    light: float | None = None
    extra: dict[str, FieldValue] = field(default_factory=dict)

    def as_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for name in ("moisture", "temperature", "humidity", "battery", "light"):
            value = getattr(self, name)
            if value is not None:
                fields[name] = value
        fields.update(self.extra)
        return fields

    def is_empty(self) -> bool:
        return not self.as_fields()


@dataclass(frozen=True)
class RawPoint:
    timestamp: datetime
    values: dict[str, FieldValue]


@dataclass(frozen=True)
class RawHistory:
    day: list[RawPoint]
    week: list[RawPoint]
    month: list[RawPoint]


@dataclass(frozen=True)
class HistoryPoint:
    timestamp: datetime
    reading: Reading


@dataclass(frozen=True)
class History:
    day: list[HistoryPoint]
    week: list[HistoryPoint]
    month: list[HistoryPoint]
