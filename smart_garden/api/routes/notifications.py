from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Response, status

from smart_garden.api.deps import (
    RequiredId,
    get_alert_service,
    get_dispatcher,
    get_garden_service,
)
from smart_garden.core.errors import InvalidInputError, NotFoundError
from smart_garden.models.device import ThresholdEvaluation
from smart_garden.schemas.notifications import (
    AlertCheckRead,
    MessageRead,
    NotifyTestRead,
    ThresholdRead,
)
from smart_garden.services.alerts import AlertService
from smart_garden.services.garden import GardenService
from smart_garden.services.notifications import NotificationDispatcher

router = APIRouter()

Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]


def _threshold_fields(evaluation: ThresholdEvaluation) -> dict[str, Any]:
    return {
        "id": evaluation.device_id,
        "thresholds_reached": evaluation.thresholds_reached,
        "moisture": evaluation.moisture,
        "threshold": evaluation.threshold,
        "message": MessageRead(**evaluation.message.to_payload()),
    }


@router.get("/thresholds", response_model=ThresholdRead)
def read_threshold(
    device_id: RequiredId,
    garden: Annotated[GardenService, Depends(get_garden_service)],
) -> ThresholdRead:
    return ThresholdRead(**_threshold_fields(garden.evaluate_threshold(device_id)))


@router.post("/notifications/check", response_model=AlertCheckRead)
def check_and_notify(
    device_id: RequiredId,
    alerts: Annotated[AlertService, Depends(get_alert_service)],
) -> AlertCheckRead:
    result = alerts.check(device_id)
    report = result.report
    return AlertCheckRead(
        **_threshold_fields(result.evaluation),
        notified=report.delivered if report else [],
        failed=report.failed if report else [],
        throttled=report.skipped if report else [],
    )


@router.post("/notifications/test", response_model=NotifyTestRead)
def send_test_notification(device_id: RequiredId, dispatcher: Dispatcher) -> NotifyTestRead:
    return NotifyTestRead(success=dispatcher.notify_one(device_id))


@router.put(
    "/subscriptions",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={201: {"description": "Subscription created"}},
)
def put_subscription(
    subscription_id: RequiredId,
    descriptor: Annotated[dict[str, Any], Body()],
    dispatcher: Dispatcher,
) -> Response:
    if not descriptor:
        raise InvalidInputError("Subscription in body must be a non-empty JSON object")
    created = dispatcher.register(subscription_id, descriptor)
    if created:
        return Response(status_code=status.HTTP_201_CREATED)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/subscriptions", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscription(subscription_id: RequiredId, dispatcher: Dispatcher) -> Response:
    if not dispatcher.remove(subscription_id):
        raise NotFoundError(f"Subscription not found: {subscription_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
