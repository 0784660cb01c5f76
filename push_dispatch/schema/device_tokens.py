"""SQLAlchemy model for registered device push endpoints."""

from __future__ import annotations

import datetime
import uuid
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from push_dispatch.core.database import Base


class Platform(str, Enum):
  ANDROID = "android"
  IOS = "ios"
  WEB = "web"


class DevicePushToken(Base):
  """One push endpoint for one device: an FCM registration token or a serialized Web Push subscription."""

  __tablename__ = "device_push_tokens"
  __table_args__ = (Index("ix_device_push_tokens_platform_enabled", "platform", "enabled"),)

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  token: Mapped[str] = mapped_column(Text, nullable=False)
  platform: Mapped[str] = mapped_column(String, nullable=False)
  device_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
  enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
  last_seen_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
