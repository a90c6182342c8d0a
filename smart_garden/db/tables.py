from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class DeviceConfigRow(Base):
    __tablename__ = "configs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    interval: Mapped[int] = mapped_column(Integer, nullable=False)
    led_state: Mapped[bool] = mapped_column(Boolean, nullable=False)
    threshold: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class SubscriptionRow(Base):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    # Naive UTC; SQLite drops tzinfo on the way in.
    last_notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
