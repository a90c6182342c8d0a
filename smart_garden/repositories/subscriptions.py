from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from smart_garden.core.errors import PersistenceError
from smart_garden.db.tables import SubscriptionRow
from smart_garden.models.subscription import Subscription


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _aware_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SubscriptionStore:
    def __init__(self, *, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def put(self, subscription_id: str, payload: str) -> bool:
        """Store ``payload`` under ``subscription_id``; True when newly created."""
        try:
            with self._session_factory() as session, session.begin():
                row = session.get(SubscriptionRow, subscription_id)
                if row is None:
                    session.add(SubscriptionRow(id=subscription_id, payload=payload))
                    return True
                row.payload = payload
                return False
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save subscription {subscription_id!r}") from e

    def delete(self, subscription_id: str) -> bool:
        try:
            with self._session_factory() as session, session.begin():
                result = session.execute(
                    delete(SubscriptionRow).where(SubscriptionRow.id == subscription_id)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not delete subscription {subscription_id!r}") from e

    def get(self, subscription_id: str) -> Subscription | None:
        try:
            with self._session_factory() as session:
                row = session.get(SubscriptionRow, subscription_id)
                return _to_subscription(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load subscription {subscription_id!r}") from e

    def find_many(self, subscription_ids: list[str] | None = None) -> list[Subscription]:
        stmt = select(SubscriptionRow).order_by(SubscriptionRow.id)
        if subscription_ids:
            stmt = stmt.where(SubscriptionRow.id.in_(subscription_ids))
        try:
            with self._session_factory() as session:
                return [_to_subscription(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise PersistenceError("Could not list subscriptions") from e

    def claim(self, subscription_id: str, *, now: datetime, min_interval: timedelta) -> bool:
        """Stamp ``last_notified_at = now`` unless it was stamped within ``min_interval``.

        The check and the write are a single conditional UPDATE, so two
        dispatchers racing for the same subscription cannot both win.
        """
        now_naive = _naive_utc(now)
        cutoff = now_naive - min_interval
        stmt = (
            update(SubscriptionRow)
            .where(SubscriptionRow.id == subscription_id)
            .where(
                or_(
                    SubscriptionRow.last_notified_at.is_(None),
                    SubscriptionRow.last_notified_at <= cutoff,
                )
            )
            .values(last_notified_at=now_naive)
            .execution_options(synchronize_session=False)
        )
        try:
            with self._session_factory() as session, session.begin():
                return session.execute(stmt).rowcount == 1
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not update subscription {subscription_id!r}") from e


def _to_subscription(row: SubscriptionRow) -> Subscription:
    return Subscription(
        id=row.id,
        payload=row.payload,
        last_notified_at=_aware_utc(row.last_notified_at),
    )
