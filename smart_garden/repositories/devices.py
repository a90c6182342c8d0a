from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from smart_garden.core.errors import NotFoundError, PersistenceError
from smart_garden.db.tables import DeviceConfigRow
from smart_garden.models.device import DeviceConfig, DeviceConfigUpdate

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Lazily created lock per key; used to serialize writes to a single row."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


class DeviceRegistry:
    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session],
        locks: KeyedLocks | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks or KeyedLocks()

    def find(self, device_id: str) -> DeviceConfig | None:
        try:
            with self._session_factory() as session:
                row = session.get(DeviceConfigRow, device_id)
                return _to_config(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load config {device_id!r}") from e

    def get(self, device_id: str) -> DeviceConfig:
        config = self.find(device_id)
        if config is None:
            raise NotFoundError(f"Config not found: {device_id}")
        return config

    def upsert(
        self, device_id: str, update: DeviceConfigUpdate
    ) -> tuple[DeviceConfig, bool]:
        """Create the config on first push, otherwise overwrite it in place.

        The version moves by one only when ``interval`` or ``led_state`` change,
        so replaying an identical push never bumps it twice.
        """
        with self._locks.hold(device_id):
            try:
                return self._upsert_once(device_id, update)
            except IntegrityError:
                # Another process inserted the row between our read and insert.
                logger.info("Config %s was created concurrently, retrying as update", device_id)
                try:
                    return self._upsert_once(device_id, update)
                except SQLAlchemyError as e:
                    raise PersistenceError(f"Could not save config {device_id!r}") from e
            except SQLAlchemyError as e:
                raise PersistenceError(f"Could not save config {device_id!r}") from e

    def _upsert_once(
        self, device_id: str, update: DeviceConfigUpdate
    ) -> tuple[DeviceConfig, bool]:
        with self._session_factory() as session, session.begin():
            row = session.scalars(
                select(DeviceConfigRow)
                .where(DeviceConfigRow.id == device_id)
                .with_for_update()
            ).one_or_none()

            if row is None:
                row = DeviceConfigRow(
                    id=device_id,
                    name=update.name,
                    version=1,
                    interval=update.interval,
                    led_state=update.led_state,
                    threshold=update.threshold,
                    image_path=None,
                )
                session.add(row)
                session.flush()
                logger.info("Created config %s", device_id)
                return _to_config(row), True

            if row.interval != update.interval or row.led_state != update.led_state:
                row.version += 1
                logger.info("Config %s changed, version is now %d", device_id, row.version)
            row.name = update.name
            row.interval = update.interval
            row.led_state = update.led_state
            row.threshold = update.threshold
            session.flush()
            return _to_config(row), False

    def set_image_reference(self, device_id: str, image_path: str) -> DeviceConfig:
        with self._locks.hold(device_id):
            try:
                with self._session_factory() as session, session.begin():
                    row = session.get(DeviceConfigRow, device_id)
                    if row is None:
                        raise NotFoundError(f"Config not found: {device_id}")
                    row.image_path = image_path
                    session.flush()
                    return _to_config(row)
            except SQLAlchemyError as e:
                raise PersistenceError(f"Could not save image for {device_id!r}") from e


def _to_config(row: DeviceConfigRow) -> DeviceConfig:
    return DeviceConfig(
        id=row.id,
        name=row.name,
        version=row.version,
        interval=row.interval,
        led_state=row.led_state,
        threshold=row.threshold,
        image_path=row.image_path,
    )
