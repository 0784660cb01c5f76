"""SQLAlchemy model for broadcast notifications."""

from __future__ import annotations

import datetime
import uuid
from enum import Enum

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from push_dispatch.core.database import Base


class NotificationStatus(str, Enum):
  DRAFT = "draft"
  SCHEDULED = "scheduled"
  SENT = "sent"
  FAILED = "failed"


class Notification(Base):
  """A message authored by an admin for broadcast to registered devices."""

  __tablename__ = "notifications"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  deep_link: Mapped[str | None] = mapped_column(Text, nullable=True)
  target_platform: Mapped[str] = mapped_column(String, nullable=False, default="all", server_default="all")
  status: Mapped[str] = mapped_column(String, nullable=False, default=NotificationStatus.DRAFT.value, server_default=NotificationStatus.DRAFT.value)
  created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  scheduled_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  sent_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
