"""Wire shapes for the push dispatch endpoints."""

from __future__ import annotations

from typing import Literal

import msgspec

from push_dispatch.notifications.dispatch import DispatchResult, DryRunResult

TargetPlatform = Literal["all", "android", "ios", "web"]


class SendPushRequest(msgspec.Struct, rename="camel", kw_only=True):
  """Body of ``POST /send-push``; field checks beyond types happen in the route."""

  notification_id: str | None = None
  platform: TargetPlatform | None = None
  device_id: str | None = None
  token_id: str | None = None
  dry_run: bool = False
  action: str | None = None


class PlatformCounts(msgspec.Struct):
  sent: int
  failed: int


class Totals(msgspec.Struct):
  sent: int
  failed: int
  targets: int


class DispatchResponse(msgspec.Struct, rename="camel", kw_only=True):
  ok: bool
  notification_id: str
  status: str
  totals: Totals
  per_platform: dict[str, PlatformCounts]

  @classmethod
  def from_result(cls, result: DispatchResult) -> DispatchResponse:
    per_platform = {platform: PlatformCounts(sent=totals.sent, failed=totals.failed) for platform, totals in result.per_platform.items()}
    return cls(ok=True, notification_id=result.notification_id, status=result.status, totals=Totals(sent=result.sent, failed=result.failed, targets=result.targets), per_platform=per_platform)


class DryRunResponse(msgspec.Struct, rename="camel", kw_only=True):
  ok: bool
  dry_run: bool
  notification_id: str
  target_platform: str = msgspec.field(name="target_platform")
  targets: int

  @classmethod
  def from_result(cls, result: DryRunResult) -> DryRunResponse:
    return cls(ok=True, dry_run=True, notification_id=result.notification_id, target_platform=result.target_platform, targets=result.targets)


class HealthResponse(msgspec.Struct):
  ok: bool


class PublicKeyResponse(msgspec.Struct, rename="camel"):
  public_key: str
