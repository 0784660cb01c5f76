"""Repository helpers for notification rows."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from push_dispatch.core.database import require_session_factory
from push_dispatch.schema.notifications import Notification


@dataclass(frozen=True)
class NotificationRecord:
  """The fields of a notification the dispatch pipeline reads."""

  id: str
  title: str
  body: str
  image_url: str | None
  deep_link: str | None
  target_platform: str | None
  status: str


def coerce_uuid(value: str) -> uuid.UUID | None:
  """Parse a UUID-like identifier, returning None when it cannot match any row."""
  try:
    return uuid.UUID(value.strip())
  except (AttributeError, ValueError):
    return None


class NotificationRepository:
  """Read notifications and persist dispatch outcomes."""

  async def get(self, notification_id: str) -> NotificationRecord | None:
    """Return a notification by id, or None when absent."""
    row_id = coerce_uuid(notification_id)
    if row_id is None:
      return None

    async with require_session_factory()() as session:
      return await self._get_with_session(session=session, row_id=row_id)

  async def _get_with_session(self, *, session: AsyncSession, row_id: uuid.UUID) -> NotificationRecord | None:
    result = await session.execute(select(Notification).where(Notification.id == row_id))
    row = result.scalar_one_or_none()
    if row is None:
      return None

    return NotificationRecord(id=str(row.id), title=row.title, body=row.body, image_url=row.image_url, deep_link=row.deep_link, target_platform=row.target_platform, status=row.status)

  async def mark_dispatched(self, notification_id: str, *, status: str, sent_at: datetime.datetime) -> None:
    """Overwrite status and sent timestamp with the outcome of the latest run."""
    row_id = coerce_uuid(notification_id)
    if row_id is None:
      return

    async with require_session_factory()() as session:
      await self._mark_dispatched_with_session(session=session, row_id=row_id, status=status, sent_at=sent_at)

  async def _mark_dispatched_with_session(self, *, session: AsyncSession, row_id: uuid.UUID, status: str, sent_at: datetime.datetime) -> None:
    await session.execute(update(Notification).where(Notification.id == row_id).values(status=status, sent_at=sent_at))
    await session.commit()
