from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MessageRead(BaseModel):
    title: str
    body: str


class ThresholdRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    thresholds_reached: bool = Field(alias="thresholdsReached")
    moisture: int | None = None
    threshold: int | None = None
    message: MessageRead


class AlertCheckRead(ThresholdRead):
    notified: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    throttled: list[str] = Field(default_factory=list)


class NotifyTestRead(BaseModel):
    success: bool
