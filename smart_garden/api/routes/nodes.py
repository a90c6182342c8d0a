from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from smart_garden.api.deps import RequiredId, get_garden_service
from smart_garden.models.device import FusedNode
from smart_garden.models.telemetry import HistoryPoint
from smart_garden.schemas.telemetry import HistoryPointRead, HistoryRead, NodeRead
from smart_garden.services.garden import GardenService

router = APIRouter()

Garden = Annotated[GardenService, Depends(get_garden_service)]

# Field names that would clash with the point's own time key.
_RESERVED_POINT_KEYS = frozenset({"timestamp", "datetime"})


def _node_payload(node: FusedNode) -> NodeRead:
    return NodeRead(
        id=node.id,
        name=node.name,
        image_url=node.image_url,
        show_warning=node.show_warning,
        fields=node.reading.as_fields(),
    )


def _point_payload(point: HistoryPoint) -> HistoryPointRead:
    fields = {
        name: value
        for name, value in point.reading.as_fields().items()
        if name not in _RESERVED_POINT_KEYS
    }
    return HistoryPointRead(timestamp=point.timestamp, **fields)


@router.get("/online-nodes", response_model=list[NodeRead])
def online_nodes(service: Garden) -> list[NodeRead]:
    return [_node_payload(node) for node in service.online_nodes()]


@router.get("/current-measurements")
def current_measurements(device_id: RequiredId, service: Garden) -> dict[str, Any]:
    return service.current_measurements(device_id).as_fields()


@router.get("/history-measurements", response_model=HistoryRead)
def history_measurements(device_id: RequiredId, service: Garden) -> HistoryRead:
    history = service.history(device_id)
    return HistoryRead(
        day=[_point_payload(p) for p in history.day],
        week=[_point_payload(p) for p in history.week],
        month=[_point_payload(p) for p in history.month],
    )
