"""Repository helpers for device push token rows."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from push_dispatch.core.database import require_session_factory
from push_dispatch.notifications.notification_repo import coerce_uuid
from push_dispatch.schema.device_tokens import DevicePushToken


@dataclass(frozen=True)
class DeviceTokenEntry:
  """A dispatch target: one enabled token on one platform."""

  id: str
  token: str
  platform: str
  device_id: str | None = None


class DeviceTokenRepository:
  """Select dispatch targets and disable dead tokens. Tokens are never created or deleted here."""

  async def list_targets(self, *, platforms: Sequence[str], device_id: str | None = None, token_id: str | None = None) -> list[DeviceTokenEntry]:
    """List enabled tokens on the given platforms, optionally scoped to one device or one row."""
    if not platforms:
      return []

    token_uuid: uuid.UUID | None = None
    if token_id is not None:
      token_uuid = coerce_uuid(token_id)
      if token_uuid is None:
        return []

    async with require_session_factory()() as session:
      return await self._list_targets_with_session(session=session, platforms=list(platforms), device_id=device_id, token_uuid=token_uuid)

  async def _list_targets_with_session(self, *, session: AsyncSession, platforms: list[str], device_id: str | None, token_uuid: uuid.UUID | None) -> list[DeviceTokenEntry]:
    stmt = select(DevicePushToken).where(DevicePushToken.enabled.is_(True), DevicePushToken.platform.in_(platforms))
    if device_id is not None:
      stmt = stmt.where(DevicePushToken.device_id == device_id)
    if token_uuid is not None:
      stmt = stmt.where(DevicePushToken.id == token_uuid)

    # Stable ordering keeps the delivery log in a reproducible sequence.
    result = await session.execute(stmt.order_by(DevicePushToken.created_at, DevicePushToken.id))
    rows = result.scalars().all()
    return [DeviceTokenEntry(id=str(row.id), token=row.token, platform=row.platform, device_id=row.device_id) for row in rows]

  async def disable(self, token_id: str) -> None:
    """Set ``enabled = false``; repeated calls are harmless."""
    token_uuid = coerce_uuid(token_id)
    if token_uuid is None:
      return

    async with require_session_factory()() as session:
      await self._disable_with_session(session=session, token_uuid=token_uuid)

  async def _disable_with_session(self, *, session: AsyncSession, token_uuid: uuid.UUID) -> None:
    await session.execute(update(DevicePushToken).where(DevicePushToken.id == token_uuid).values(enabled=False))
    await session.commit()
