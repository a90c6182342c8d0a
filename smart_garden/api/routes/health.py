from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from smart_garden.api.deps import get_sql_engine, get_telemetry_repository
from smart_garden.core.errors import UpstreamReadError
from smart_garden.db.sql import ping_db
from smart_garden.repositories.telemetry import TelemetryRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", tags=["meta"])
def health(
    repo: Annotated[TelemetryRepository, Depends(get_telemetry_repository)],
    engine: Annotated[Engine, Depends(get_sql_engine)],
) -> dict[str, str]:
    try:
        repo.ping()
    except Exception as e:  # noqa: BLE001 - expose as 503 without leaking internals
        raise UpstreamReadError("InfluxDB unavailable") from e
    try:
        ping_db(engine)
    except SQLAlchemyError as e:
        logger.error("Database health check failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e
    return {"status": "ok"}
