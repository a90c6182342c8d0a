from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Subscription:
    id: str
    payload: str
    last_notified_at: datetime | None = None


@dataclass
class NotifyReport:
    attempted: list[str] = field(default_factory=list)
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    # Could not be claimed because the store failed; nothing was sent.
    unclaimed: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
