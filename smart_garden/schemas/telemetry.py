from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NodeRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    image_url: str | None = Field(default=None, alias="imageUrl")
    show_warning: bool = Field(alias="showWarning")
    fields: dict[str, Any] = Field(default_factory=dict)


class HistoryPointRead(BaseModel):
    # Field values ride along as extra keys next to the timestamp.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    timestamp: datetime = Field(alias="datetime")


class HistoryRead(BaseModel):
    day: list[HistoryPointRead] = Field(default_factory=list)
    week: list[HistoryPointRead] = Field(default_factory=list)
    month: list[HistoryPointRead] = Field(default_factory=list)
