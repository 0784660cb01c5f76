"""Factory helpers for the dispatch pipeline."""

from __future__ import annotations

from functools import lru_cache

from push_dispatch.config import Settings, get_settings
from push_dispatch.notifications.delivery import DeadTokenReaper, DeliveryLogger
from push_dispatch.notifications.delivery_log_repo import DeliveryLogRepository
from push_dispatch.notifications.device_token_repo import DeviceTokenRepository
from push_dispatch.notifications.dispatch import PushDispatcher
from push_dispatch.notifications.notification_repo import NotificationRepository
from push_dispatch.notifications.webpush_sender import WebPushSender


@lru_cache(maxsize=1)
def get_webpush_sender() -> WebPushSender:
  """Build the process-wide Web Push sender; the library transport is selected only here."""
  settings = get_settings()
  sender = WebPushSender(public_key=settings.webpush_vapid_public_key, private_key=settings.webpush_vapid_private_key, subject=settings.webpush_subject, ttl_seconds=settings.webpush_ttl_seconds)
  sender.log_diagnostics()
  return sender


def build_push_dispatcher(settings: Settings) -> PushDispatcher:
  """Construct a dispatcher for one request from environment configuration."""
  token_repo = DeviceTokenRepository()
  return PushDispatcher(
    notifications=NotificationRepository(),
    tokens=token_repo,
    delivery_logger=DeliveryLogger(DeliveryLogRepository()),
    reaper=DeadTokenReaper(token_repo),
    webpush_sender=get_webpush_sender(),
    fcm_service_account_json=settings.fcm_service_account_json,
    retries=settings.retries,
    retry_base_delay_ms=settings.retry_base_delay_ms,
  )
