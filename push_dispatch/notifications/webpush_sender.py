"""Web Push protocol sender for browser subscriptions."""

from __future__ import annotations

import json
import logging

from starlette.concurrency import run_in_threadpool

from push_dispatch.notifications.contracts import DeliveryStage, PushIntegrationError, PushMessage, is_retryable
from push_dispatch.notifications.subscriptions import parse_subscription
from push_dispatch.notifications.vapid import VapidCredentials
from push_dispatch.notifications.webpush_transport import WebPushTransport, select_transport

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


def build_webpush_payload(message: PushMessage) -> str:
  """Serialize the payload the service worker renders."""
  return json.dumps({"title": message.title, "body": message.body, "image_url": message.image_url, "deep_link": message.deep_link})


class WebPushSender:
  """VAPID-signed sender that delegates the library call to the selected transport."""

  stage = DeliveryStage.WEBPUSH_SEND

  def __init__(self, *, public_key: str | None, private_key: str | None, subject: str | None, ttl_seconds: int = DEFAULT_TTL_SECONDS, transport: WebPushTransport | None = None) -> None:
    self._public_key = public_key
    self._private_key = private_key
    self._subject = subject
    self._ttl_seconds = ttl_seconds
    self._transport = transport if transport is not None else select_transport()
    self._vapid: VapidCredentials | None = None
    self._diagnostics_logged = False

  @property
  def transport_name(self) -> str | None:
    return self._transport.name if self._transport is not None else None

  def log_diagnostics(self) -> None:
    """Log the selected transport once per sender."""
    if self._diagnostics_logged:
      return

    self._diagnostics_logged = True
    if self._transport is None:
      logger.warning("No supported Web Push calling convention found in pywebpush; web sends will fail")
    else:
      logger.info("Web Push transport selected: %s", self._transport.name)

  def _credentials(self) -> VapidCredentials:
    # Decode once; configuration errors are raised again on every send until fixed.
    if self._vapid is None:
      self._vapid = VapidCredentials.from_config(public_key=self._public_key, private_key=self._private_key, subject=self._subject)
    return self._vapid

  async def send(self, token: str, message: PushMessage, *, attempt: int = 0) -> str:
    """Deliver one payload to one subscription and return the push service status."""
    vapid = self._credentials()
    if self._transport is None:
      raise PushIntegrationError("webpush_library_missing_send_fn")

    subscription = parse_subscription(token)
    # pywebpush is blocking (requests); keep the event loop free while it runs.
    status_code = await run_in_threadpool(self._transport.send, subscription_info=subscription.as_subscription_info(), payload=build_webpush_payload(message), vapid=vapid, ttl=self._ttl_seconds)
    return str(status_code)

  def should_retry(self, exc: BaseException) -> bool:
    return is_retryable(exc)
