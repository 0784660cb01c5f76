"""Parsing helpers for serialized browser push subscriptions."""

from __future__ import annotations

import urllib.parse

import msgspec

from push_dispatch.notifications.contracts import InvalidSubscriptionError

_BROWSER_HOSTS = (
  ("fcm.googleapis.com", "chrome"),
  ("android.googleapis.com", "chrome"),
  ("push.services.mozilla.com", "firefox"),
  ("web.push.apple.com", "safari"),
  ("notify.windows.com", "edge"),
)


class SubscriptionKeys(msgspec.Struct, frozen=True):
  p256dh: str
  auth: str


class WebPushSubscription(msgspec.Struct, frozen=True):
  """The ``PushSubscription.toJSON()`` shape stored as a web token."""

  endpoint: str
  keys: SubscriptionKeys
  expirationTime: int | float | None = None  # noqa: N815

  def as_subscription_info(self) -> dict[str, object]:
    """Return the dict shape pywebpush expects."""
    return {"endpoint": self.endpoint, "keys": {"p256dh": self.keys.p256dh, "auth": self.keys.auth}}


def parse_subscription(token: str) -> WebPushSubscription:
  """Decode a stored web token, rejecting anything that cannot be pushed to."""
  try:
    subscription = msgspec.json.decode(token.encode("utf-8"), type=WebPushSubscription)
  except msgspec.DecodeError as exc:
    raise InvalidSubscriptionError(f"Invalid web push subscription: {exc}") from exc

  parsed = urllib.parse.urlparse(subscription.endpoint.strip())
  if parsed.scheme.lower() != "https" or not parsed.hostname:
    raise InvalidSubscriptionError("Invalid web push subscription: endpoint must be an https URL")

  return subscription


def subscription_endpoint(token: str) -> str | None:
  """Best-effort endpoint extraction for audit rows; never raises."""
  try:
    decoded = msgspec.json.decode(token.encode("utf-8"))
  except msgspec.DecodeError:
    return None

  if not isinstance(decoded, dict):
    return None

  endpoint = decoded.get("endpoint")
  return endpoint.strip() if isinstance(endpoint, str) and endpoint.strip() else None


def endpoint_host(endpoint: str | None) -> str | None:
  if not endpoint:
    return None
  host = urllib.parse.urlparse(endpoint).hostname
  return host.lower() if host else None


def guess_browser(host: str | None) -> str | None:
  """Infer the browser family from the push service host."""
  if not host:
    return None

  for suffix, browser in _BROWSER_HOSTS:
    if host == suffix or host.endswith(f".{suffix}"):
      return browser

  return "unknown"
