from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from smart_garden.core.errors import GardenError
from smart_garden.models.device import ThresholdEvaluation
from smart_garden.models.subscription import NotifyReport
from smart_garden.services.garden import GardenService
from smart_garden.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertCheckResult:
    evaluation: ThresholdEvaluation
    report: NotifyReport | None


class AlertService:
    def __init__(self, *, garden: GardenService, dispatcher: NotificationDispatcher) -> None:
        self._garden = garden
        self._dispatcher = dispatcher

    def check(self, device_id: str, *, now: datetime | None = None) -> AlertCheckResult:
        evaluation = self._garden.evaluate_threshold(device_id)
        if not evaluation.thresholds_reached:
            return AlertCheckResult(evaluation=evaluation, report=None)

        logger.info(
            "Moisture of %s is %s%% (threshold %s%%), notifying subscribers",
            device_id,
            evaluation.moisture,
            evaluation.threshold,
        )
        report = self._dispatcher.notify_many(None, evaluation.message, now=now)
        return AlertCheckResult(evaluation=evaluation, report=report)

    def sweep(self, *, now: datetime | None = None) -> list[AlertCheckResult]:
        results: list[AlertCheckResult] = []
        for node in self._garden.online_nodes():
            try:
                results.append(self.check(node.id, now=now))
            except GardenError:
                logger.exception("Alert check for %s failed", node.id)
        return results
