from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ConfigWrite(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    interval: int = Field(ge=1, le=60 * 60 * 24)
    led_state: bool
    threshold: int | None = Field(default=None, ge=0, le=100)


class ConfigRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    version: int = Field(ge=1)
    interval: int
    led_state: bool
    threshold: int | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")


class ImageUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_path: str = Field(alias="imagePath")
