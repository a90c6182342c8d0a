from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from smart_garden.api.deps import (
    RequiredId,
    get_device_registry,
    get_garden_service,
    get_image_store,
)
from smart_garden.core.errors import GardenError, InvalidInputError
from smart_garden.models.device import DeviceConfigUpdate
from smart_garden.repositories.devices import DeviceRegistry
from smart_garden.schemas.config import ConfigRead, ConfigWrite, ImageUploadResponse
from smart_garden.services.garden import GardenService
from smart_garden.services.images import ImageStore

logger = logging.getLogger(__name__)

router = APIRouter()

Registry = Annotated[DeviceRegistry, Depends(get_device_registry)]


@router.get("/config", response_model=ConfigRead)
def read_config(
    device_id: RequiredId,
    registry: Registry,
    garden: Annotated[GardenService, Depends(get_garden_service)],
) -> ConfigRead:
    config = registry.get(device_id)
    return ConfigRead(
        id=config.id,
        name=config.name,
        version=config.version,
        interval=config.interval,
        led_state=config.led_state,
        threshold=config.threshold,
        image_url=garden.image_url(config),
    )


@router.put(
    "/config",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={201: {"description": "Config created"}},
)
def write_config(device_id: RequiredId, payload: ConfigWrite, registry: Registry) -> Response:
    _, created = registry.upsert(
        device_id,
        DeviceConfigUpdate(
            name=payload.name,
            interval=payload.interval,
            led_state=payload.led_state,
            threshold=payload.threshold,
        ),
    )
    if created:
        return Response(status_code=status.HTTP_201_CREATED)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/upload-image", response_model=ImageUploadResponse)
def upload_image(
    image: Annotated[UploadFile, File()],
    id: Annotated[str, Form(max_length=128)],
    registry: Registry,
    images: Annotated[ImageStore, Depends(get_image_store)],
) -> ImageUploadResponse:
    device_id = id.strip()
    if not device_id:
        raise InvalidInputError("No file uploaded or no id provided")

    image_path = images.save(image.file, image.filename)
    try:
        registry.set_image_reference(device_id, image_path)
    except GardenError:
        images.discard(image_path)
        raise
    logger.info("Stored image %s for %s", image_path, device_id)
    return ImageUploadResponse(image_path=image_path)
