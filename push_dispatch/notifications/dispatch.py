"""Dispatch orchestration: resolve targets, fan out per token, aggregate outcomes.

Tokens are processed strictly one after another. This bounds the burst rate seen by
providers, keeps the counters and the delivery log free of interleaving, and makes
the in-place FCM token refresh safe. Do not parallelize without a concurrency cap.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
from google.auth.transport import Request as GoogleAuthRequest

from push_dispatch.notifications.contracts import PushMessage, PushSender, classify_error, is_dead_token_code
from push_dispatch.notifications.delivery import DeadTokenReaper, DeliveryLogger
from push_dispatch.notifications.device_token_repo import DeviceTokenEntry, DeviceTokenRepository
from push_dispatch.notifications.fcm_credentials import FcmCredentialProvider, parse_service_account
from push_dispatch.notifications.fcm_sender import FcmSender
from push_dispatch.notifications.notification_repo import NotificationRecord, NotificationRepository
from push_dispatch.schema.device_tokens import Platform
from push_dispatch.schema.notifications import NotificationStatus
from push_dispatch.utils.backoff import DEFAULT_BASE_DELAY_MS, DEFAULT_RETRIES, retry_with_backoff

logger = logging.getLogger(__name__)

TARGET_ALL = "all"
_FCM_PLATFORMS = frozenset({Platform.ANDROID.value, Platform.IOS.value})


class NotificationNotFoundError(Exception):
  """The requested notification row does not exist."""


class TokenQueryError(Exception):
  """The device token query failed."""


@dataclass(frozen=True)
class DispatchRequest:
  notification_id: str
  platform: str | None = None
  device_id: str | None = None
  token_id: str | None = None
  dry_run: bool = False


@dataclass
class PlatformTotals:
  sent: int = 0
  failed: int = 0


@dataclass
class DispatchResult:
  """Aggregate and per-platform counts for one dispatch run."""

  notification_id: str
  targets: int
  sent: int = 0
  failed: int = 0
  status: str = NotificationStatus.SENT.value
  per_platform: dict[str, PlatformTotals] = field(default_factory=lambda: {platform.value: PlatformTotals() for platform in Platform})

  def record(self, platform: str, *, ok: bool) -> None:
    totals = self.per_platform.setdefault(platform, PlatformTotals())
    if ok:
      self.sent += 1
      totals.sent += 1
    else:
      self.failed += 1
      totals.failed += 1


@dataclass(frozen=True)
class DryRunResult:
  notification_id: str
  target_platform: str
  targets: int


def resolve_platforms(target: str | None) -> tuple[str, ...]:
  """Expand a target selector into concrete platforms; ``all`` and unknown values mean every platform."""
  match target:
    case Platform.ANDROID.value | Platform.IOS.value | Platform.WEB.value:
      return (target,)
    case _:
      return tuple(platform.value for platform in Platform)


def final_status(*, sent: int, failed: int) -> str:
  """``failed`` only when nothing was delivered and something failed; partial success counts as sent."""
  if failed > 0 and sent == 0:
    return NotificationStatus.FAILED.value
  return NotificationStatus.SENT.value


class PushDispatcher:
  """Deliver one notification to every matching enabled device token."""

  def __init__(
    self,
    *,
    notifications: NotificationRepository,
    tokens: DeviceTokenRepository,
    delivery_logger: DeliveryLogger,
    reaper: DeadTokenReaper,
    webpush_sender: PushSender,
    fcm_service_account_json: str | None,
    client_factory: Callable[[], httpx.AsyncClient] = httpx.AsyncClient,
    token_request: GoogleAuthRequest | None = None,
    retries: int = DEFAULT_RETRIES,
    retry_base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
  ) -> None:
    self._notifications = notifications
    self._tokens = tokens
    self._delivery_logger = delivery_logger
    self._reaper = reaper
    self._webpush_sender = webpush_sender
    self._fcm_service_account_json = fcm_service_account_json
    self._client_factory = client_factory
    self._token_request = token_request
    self._retries = retries
    self._retry_base_delay_ms = retry_base_delay_ms

  async def dispatch(self, request: DispatchRequest) -> DispatchResult | DryRunResult:
    """Run the pipeline; a dry run counts targets without sending or writing anything."""
    notification = await self._notifications.get(request.notification_id)
    if notification is None:
      raise NotificationNotFoundError("Notification not found")

    effective_target = request.platform or notification.target_platform or TARGET_ALL
    platforms = resolve_platforms(effective_target)

    try:
      targets = await self._tokens.list_targets(platforms=platforms, device_id=request.device_id, token_id=request.token_id)
    except Exception as exc:
      logger.error("Token fetch failed notification_id=%s error=%s", notification.id, exc, exc_info=True)
      raise TokenQueryError("Failed to fetch tokens") from exc

    if request.dry_run:
      logger.info("Dry run notification_id=%s target_platform=%s targets=%d", notification.id, effective_target, len(targets))
      return DryRunResult(notification_id=notification.id, target_platform=effective_target, targets=len(targets))

    logger.info("Dispatch started notification_id=%s platforms=%s targets=%d", notification.id, ",".join(platforms), len(targets))
    result = DispatchResult(notification_id=notification.id, targets=len(targets))
    message = PushMessage(title=notification.title, body=notification.body, image_url=notification.image_url, deep_link=notification.deep_link)

    async with self._client_factory() as client:
      fcm_sender = await self._prepare_fcm(targets, client)
      for token in targets:
        sender = self._sender_for(token, fcm_sender)
        await self._deliver(notification, message, token, sender, result)

    result.status = final_status(sent=result.sent, failed=result.failed)
    await self._persist_status(notification, result.status)
    logger.info("Dispatch finished notification_id=%s status=%s sent=%d failed=%d targets=%d", notification.id, result.status, result.sent, result.failed, result.targets)
    return result

  async def _prepare_fcm(self, targets: list[DeviceTokenEntry], client: httpx.AsyncClient) -> FcmSender | None:
    """Fetch one shared access token up front; any failure aborts the run before the first send.

    Gated on the resolved targets, not on the requested platforms: a run whose android/ios
    selection matches no tokens (web-only or zero targets) needs no FCM credentials.
    """
    if not any(token.platform in _FCM_PLATFORMS for token in targets):
      return None

    account = parse_service_account(self._fcm_service_account_json)
    credentials = FcmCredentialProvider(account=account, token_request=self._token_request)
    await credentials.access_token()
    return FcmSender(credentials=credentials, client=client)

  def _sender_for(self, token: DeviceTokenEntry, fcm_sender: FcmSender | None) -> PushSender:
    match Platform(token.platform):
      case Platform.WEB:
        return self._webpush_sender
      case Platform.ANDROID | Platform.IOS:
        if fcm_sender is None:
          raise RuntimeError("FCM sender was not prepared for a mobile token")
        return fcm_sender

  async def _deliver(self, notification: NotificationRecord, message: PushMessage, token: DeviceTokenEntry, sender: PushSender, result: DispatchResult) -> None:
    """Send to one token; every failure stays local to this token."""
    try:
      provider_message_id = await retry_with_backoff(
        lambda attempt: sender.send(token.token, message, attempt=attempt), retries=self._retries, base_delay_ms=self._retry_base_delay_ms, should_retry=sender.should_retry, operation_name=sender.stage.value
      )
    except Exception as exc:  # noqa: BLE001
      error_code = classify_error(exc)
      result.record(token.platform, ok=False)
      logger.warning("Push send failed notification_id=%s token_id=%s platform=%s error_code=%s error=%s", notification.id, token.id, token.platform, error_code, exc)
      await self._delivery_logger.record(notification_id=notification.id, token=token, stage=sender.stage.value, error_code=error_code, error_message=str(exc))
      if is_dead_token_code(error_code):
        await self._reaper.disable(token.id, error_code=error_code)
      return

    result.record(token.platform, ok=True)
    await self._delivery_logger.record(notification_id=notification.id, token=token, stage=sender.stage.value, provider_message_id=provider_message_id)

  async def _persist_status(self, notification: NotificationRecord, status: str) -> None:
    # Status write failures never fail a run whose sends already happened.
    try:
      await self._notifications.mark_dispatched(notification.id, status=status, sent_at=datetime.datetime.now(datetime.UTC))
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification status update failed notification_id=%s status=%s error=%s", notification.id, status, exc, exc_info=True)
