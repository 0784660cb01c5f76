"""Repository helpers for the notification delivery audit log."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from push_dispatch.core.database import require_session_factory
from push_dispatch.notifications.notification_repo import coerce_uuid
from push_dispatch.schema.deliveries import NotificationDelivery


@dataclass(frozen=True)
class DeliveryLogEntry:
  """One immutable audit row for one send attempt against one token."""

  notification_id: str
  token_id: str
  platform: str
  status: str
  stage: str
  provider_message_id: str | None = None
  error_code: str | None = None
  error_message: str | None = None
  subscription_endpoint: str | None = None
  endpoint_host: str | None = None
  browser: str | None = None


class DeliveryLogRepository:
  """Append delivery rows. There is no update or delete path."""

  async def insert(self, entry: DeliveryLogEntry) -> None:
    async with require_session_factory()() as session:
      await self._insert_with_session(session=session, entry=entry)

  async def _insert_with_session(self, *, session: AsyncSession, entry: DeliveryLogEntry) -> None:
    stmt = insert(NotificationDelivery).values(
      notification_id=coerce_uuid(entry.notification_id),
      token_id=coerce_uuid(entry.token_id),
      platform=entry.platform,
      status=entry.status,
      stage=entry.stage,
      provider_message_id=entry.provider_message_id,
      error_code=entry.error_code,
      error_message=entry.error_message,
      subscription_endpoint=entry.subscription_endpoint,
      endpoint_host=entry.endpoint_host,
      browser=entry.browser,
    )
    await session.execute(stmt)
    await session.commit()
