"""SQLAlchemy model for the append-only push delivery audit log."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from push_dispatch.core.database import Base


class NotificationDelivery(Base):
  """One row per (notification, token) send attempt. Rows are never updated."""

  __tablename__ = "notification_deliveries"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  notification_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("notifications.id", ondelete="CASCADE"), index=True, nullable=False)
  token_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("device_push_tokens.id", ondelete="SET NULL"), index=True, nullable=True)
  subscription_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
  platform: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False)
  stage: Mapped[str | None] = mapped_column(String, nullable=True)
  provider_message_id: Mapped[str | None] = mapped_column(Text, nullable=True)
  error_code: Mapped[str | None] = mapped_column(String, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  subscription_endpoint: Mapped[str | None] = mapped_column(Text, nullable=True)
  endpoint_host: Mapped[str | None] = mapped_column(String, nullable=True)
  browser: Mapped[str | None] = mapped_column(String, nullable=True)
  delivered_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
