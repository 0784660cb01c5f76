"""Adapters over the calling conventions pywebpush has exposed across releases.

The function style is ``webpush(subscription_info, data, vapid_private_key, vapid_claims)``
which signs and raises ``WebPushException`` on failure. The class style is
``WebPusher(subscription_info).send(data, headers)`` which returns the raw response and
leaves VAPID signing to the caller. One adapter is selected per process by probing.
"""

from __future__ import annotations

import logging
import time
import urllib.parse
from types import ModuleType
from typing import Any, Protocol

import pywebpush
import requests

from push_dispatch.notifications.contracts import InvalidSubscriptionError, PushProviderError, PushSendError, PushTransportError
from push_dispatch.notifications.vapid import VapidCredentials

logger = logging.getLogger(__name__)

VAPID_CLAIM_LIFETIME_SECONDS = 12 * 60 * 60


class WebPushTransport(Protocol):
  """One delivery attempt against a push service; returns the HTTP status on success."""

  name: str

  def send(self, *, subscription_info: dict[str, Any], payload: str, vapid: VapidCredentials, ttl: int) -> int:
    """Encrypt, sign, and POST one payload."""


def _extract_status_code(exc: BaseException) -> int | None:
  """Extract an HTTP status code from a pywebpush exception when available."""
  response = getattr(exc, "response", None)
  if response is None:
    return None

  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status

  return None


def _response_text(response: Any) -> str:
  text = getattr(response, "text", "")
  return text if isinstance(text, str) else ""


class FunctionWebPushTransport:
  """Adapter for the module-level ``webpush()`` helper."""

  name = "pywebpush.webpush"

  def __init__(self, send_fn: Any, exception_type: type[BaseException]) -> None:
    self._send_fn = send_fn
    self._exception_type = exception_type

  def send(self, *, subscription_info: dict[str, Any], payload: str, vapid: VapidCredentials, ttl: int) -> int:
    # pywebpush fills in ``aud`` and ``exp`` on the claims dict it is given, so pass a fresh one.
    claims = {"sub": vapid.subject}
    try:
      response = self._send_fn(subscription_info=subscription_info, data=payload, vapid_private_key=vapid.signer(), vapid_claims=claims, ttl=ttl)
    except requests.RequestException as exc:
      raise PushTransportError(f"webpush_request_error: {exc}") from exc
    except self._exception_type as exc:
      status_code = _extract_status_code(exc)
      if status_code is None:
        raise PushSendError(f"webpush_error: {exc}") from exc
      raise PushProviderError(f"webpush_failed_{status_code}: {_response_text(exc.response)}", status_code=status_code, provider="webpush") from exc  # type: ignore[attr-defined]

    status_code = getattr(response, "status_code", None)
    return status_code if isinstance(status_code, int) else 201


class ClassWebPushTransport:
  """Adapter for ``WebPusher``, which needs VAPID headers supplied by the caller."""

  name = "pywebpush.WebPusher"

  def __init__(self, pusher_cls: Any, exception_type: type[BaseException]) -> None:
    self._pusher_cls = pusher_cls
    self._exception_type = exception_type

  def send(self, *, subscription_info: dict[str, Any], payload: str, vapid: VapidCredentials, ttl: int) -> int:
    endpoint = urllib.parse.urlparse(str(subscription_info["endpoint"]))
    claims = {"sub": vapid.subject, "aud": f"{endpoint.scheme}://{endpoint.netloc}", "exp": int(time.time()) + VAPID_CLAIM_LIFETIME_SECONDS}
    headers = vapid.signer().sign(claims)

    try:
      pusher = self._pusher_cls(subscription_info)
    except self._exception_type as exc:
      raise InvalidSubscriptionError(f"Invalid web push subscription: {exc}") from exc

    try:
      response = pusher.send(data=payload, headers=headers, ttl=ttl, content_encoding="aes128gcm")
    except requests.RequestException as exc:
      raise PushTransportError(f"webpush_request_error: {exc}") from exc

    status_code = int(response.status_code)
    if not 200 <= status_code < 300:
      raise PushProviderError(f"webpush_failed_{status_code}: {_response_text(response)}", status_code=status_code, provider="webpush")

    return status_code


def select_transport(module: ModuleType = pywebpush) -> WebPushTransport | None:
  """Select the first calling convention the installed library supports."""
  exception_type = getattr(module, "WebPushException", None)
  if not (isinstance(exception_type, type) and issubclass(exception_type, BaseException)):
    exception_type = PushSendError

  send_fn = getattr(module, "webpush", None)
  if callable(send_fn):
    return FunctionWebPushTransport(send_fn, exception_type)

  pusher_cls = getattr(module, "WebPusher", None)
  if pusher_cls is not None:
    return ClassWebPushTransport(pusher_cls, exception_type)

  return None
