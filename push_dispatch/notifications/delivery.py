"""Best-effort side effects of a send attempt: the audit row and dead-token disablement."""

from __future__ import annotations

import logging

from push_dispatch.notifications.delivery_log_repo import DeliveryLogEntry, DeliveryLogRepository
from push_dispatch.notifications.device_token_repo import DeviceTokenEntry, DeviceTokenRepository
from push_dispatch.notifications.subscriptions import endpoint_host, guess_browser, subscription_endpoint
from push_dispatch.schema.device_tokens import Platform

logger = logging.getLogger(__name__)

_MAX_ERROR_MESSAGE_CHARS = 2000


class DeliveryLogger:
  """Write exactly one delivery row per attempt; write failures never abort dispatch."""

  def __init__(self, repository: DeliveryLogRepository) -> None:
    self._repository = repository

  async def record(self, *, notification_id: str, token: DeviceTokenEntry, stage: str, provider_message_id: str | None = None, error_code: str | None = None, error_message: str | None = None) -> None:
    """Record a ``sent`` row when no error code is given, otherwise a ``failed`` row."""
    endpoint = subscription_endpoint(token.token) if token.platform == Platform.WEB.value else None
    host = endpoint_host(endpoint)
    entry = DeliveryLogEntry(
      notification_id=notification_id,
      token_id=token.id,
      platform=token.platform,
      status="failed" if error_code else "sent",
      stage=stage,
      provider_message_id=provider_message_id,
      error_code=error_code,
      error_message=error_message[:_MAX_ERROR_MESSAGE_CHARS] if error_message else None,
      subscription_endpoint=endpoint,
      endpoint_host=host,
      browser=guess_browser(host),
    )

    try:
      await self._repository.insert(entry)
    except Exception as exc:  # noqa: BLE001
      logger.error("Delivery log insert failed notification_id=%s token_id=%s error=%s", notification_id, token.id, exc, exc_info=True)


class DeadTokenReaper:
  """Disable tokens that a provider reported as permanently gone."""

  def __init__(self, repository: DeviceTokenRepository) -> None:
    self._repository = repository

  async def disable(self, token_id: str, *, error_code: str) -> bool:
    """Return True when the token was disabled; failures are only logged."""
    try:
      await self._repository.disable(token_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed disabling dead push token token_id=%s error=%s", token_id, exc, exc_info=True)
      return False

    logger.info("Disabled dead push token token_id=%s error_code=%s", token_id, error_code)
    return True
