"""Contracts shared by the push providers and the dispatch orchestrator."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

_EMBEDDED_STATUS_RE = re.compile(r"(?:fcm|webpush)_failed_(\d{3})")
_PERMANENT_STATUSES = frozenset({404, 410})


class DeliveryStage(str, Enum):
  FCM_SEND = "fcm_send"
  WEBPUSH_SEND = "webpush_send"


@dataclass(frozen=True)
class PushMessage:
  """Provider-neutral notification content delivered to one device."""

  title: str
  body: str
  image_url: str | None = None
  deep_link: str | None = None


class PushSendError(Exception):
  """Base class for a failed send attempt against a single token."""

  code = "unknown_error"
  retryable = False

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code

  @property
  def permanent(self) -> bool:
    """Whether the provider reported the endpoint as gone for good."""
    return self.status_code in _PERMANENT_STATUSES


class PushProviderError(PushSendError):
  """A provider (FCM or a browser push service) answered with a non-2xx status."""

  def __init__(self, message: str, *, status_code: int, provider: str) -> None:
    super().__init__(message, status_code=status_code)
    self.provider = provider

  @property
  def code(self) -> str:  # type: ignore[override]
    return f"http_{self.status_code}"

  @property
  def retryable(self) -> bool:  # type: ignore[override]
    return self.status_code == 429 or 500 <= int(self.status_code or 0) < 600

  @property
  def auth_rejected(self) -> bool:
    """401/403 mean the bearer credential should be refreshed before retrying."""
    return self.status_code in {401, 403}


class PushTransportError(PushSendError):
  """The request never produced an HTTP status (DNS, connect, read failures)."""

  code = "network_error"
  retryable = True


class PushConfigurationError(PushSendError):
  """Provider credentials are missing or malformed."""

  code = "config_error"


class PushIntegrationError(PushSendError):
  """No supported calling convention was found in the Web Push library."""

  code = "integration_error"


class InvalidSubscriptionError(PushSendError):
  """The stored web token is not a usable subscription object."""

  code = "invalid_subscription"


class PushSender(Protocol):
  """Delivery contract implemented by each provider sender."""

  stage: DeliveryStage

  async def send(self, token: str, message: PushMessage, *, attempt: int = 0) -> str:
    """Perform exactly one push attempt and return the provider message identifier."""

  def should_retry(self, exc: BaseException) -> bool:
    """Decide whether a failed attempt is worth another try."""


def is_retryable(exc: BaseException) -> bool:
  """Default retry predicate: only transient provider and network failures."""
  return isinstance(exc, PushSendError) and bool(exc.retryable)


def classify_error(exc: BaseException) -> str:
  """Map any send failure to a stable error code such as ``http_410``."""
  if isinstance(exc, PushSendError):
    return exc.code

  # Foreign exceptions may still carry a provider status in their message.
  match = _EMBEDDED_STATUS_RE.search(str(exc))
  if match:
    return f"http_{match.group(1)}"

  return "unknown_error"


def is_dead_token_code(error_code: str | None) -> bool:
  """Return True when the classified error means the endpoint will never accept delivery again."""
  return error_code in {"http_404", "http_410"}
