from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any

from smart_garden.clients.webpush import PushTransport
from smart_garden.core.errors import DeliveryError, GardenError, NotFoundError
from smart_garden.models.device import NotificationMessage
from smart_garden.models.subscription import NotifyReport, Subscription
from smart_garden.repositories.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = timedelta(hours=3)

_THROTTLED = "throttled"
_UNCLAIMED = "unclaimed"

TEST_MESSAGE = NotificationMessage(
    title="Smart Garden",
    body="Moisture threshold reached! One of your plants needs watering.",
)


class NotificationDispatcher:
    def __init__(
        self,
        *,
        store: SubscriptionStore,
        transport: PushTransport,
        min_interval: timedelta = DEFAULT_MIN_INTERVAL,
        max_workers: int = 8,
    ) -> None:
        self._store = store
        self._transport = transport
        self._min_interval = min_interval
        self._max_workers = max_workers

    def register(self, subscription_id: str, descriptor: dict[str, Any]) -> bool:
        return self._store.put(subscription_id, json.dumps(descriptor, separators=(",", ":")))

    def remove(self, subscription_id: str) -> bool:
        return self._store.delete(subscription_id)

    def notify_one(self, subscription_id: str) -> bool:
        """Send the test message right away, ignoring and not touching the throttle."""
        subscription = self._store.get(subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        return self._deliver(subscription, TEST_MESSAGE)

    def notify_many(
        self,
        subscription_ids: list[str] | None,
        message: NotificationMessage,
        *,
        now: datetime | None = None,
    ) -> NotifyReport:
        """Push ``message`` to every targeted subscription not notified recently.

        No explicit targets means every stored subscription. A subscription is
        attempted at most once per ``min_interval``; its timestamp is stamped
        when it is claimed, before delivery, so a failed attempt still counts.
        """
        now = now or datetime.now(tz=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        targets = self._store.find_many(subscription_ids or None)
        report = NotifyReport()
        if subscription_ids:
            found = {s.id for s in targets}
            report.missing = [i for i in dict.fromkeys(subscription_ids) if i not in found]
            for missing_id in report.missing:
                logger.warning("Cannot notify unknown subscription %s", missing_id)
        if not targets:
            return report

        workers = min(self._max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") as pool:
            outcomes = list(pool.map(lambda s: self._claim_and_deliver(s, message, now), targets))

        for subscription, outcome in zip(targets, outcomes):
            if outcome == _THROTTLED:
                report.skipped.append(subscription.id)
            elif outcome == _UNCLAIMED:
                report.unclaimed.append(subscription.id)
            else:
                report.attempted.append(subscription.id)
                (report.delivered if outcome else report.failed).append(subscription.id)

        logger.info(
            "Notified %d/%d subscriptions (%d failed, %d throttled, %d unclaimed)",
            len(report.delivered),
            len(targets),
            len(report.failed),
            len(report.skipped),
            len(report.unclaimed),
        )
        return report

    def _claim_and_deliver(
        self, subscription: Subscription, message: NotificationMessage, now: datetime
    ) -> bool | str:
        try:
            claimed = self._store.claim(subscription.id, now=now, min_interval=self._min_interval)
        except GardenError:
            logger.exception("Could not claim subscription %s", subscription.id)
            return _UNCLAIMED
        if not claimed:
            logger.debug("Subscription %s was notified recently, skipping", subscription.id)
            return _THROTTLED
        return self._deliver(subscription, message)

    def _deliver(self, subscription: Subscription, message: NotificationMessage) -> bool:
        try:
            descriptor = json.loads(subscription.payload)
            if not isinstance(descriptor, dict):
                raise DeliveryError("Subscription payload is not a JSON object")
            self._transport.send(descriptor, message.to_payload())
        except (DeliveryError, ValueError) as e:
            logger.warning("Push to subscription %s failed: %s", subscription.id, e)
            return False
        except Exception:  # noqa: BLE001 - one bad endpoint must not break the batch
            logger.exception("Unexpected error pushing to subscription %s", subscription.id)
            return False
        return True
