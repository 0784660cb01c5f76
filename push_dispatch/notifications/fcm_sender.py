"""FCM HTTP v1 sender for Android and iOS device tokens."""

from __future__ import annotations

import logging

import httpx

from push_dispatch.notifications.contracts import DeliveryStage, PushMessage, PushProviderError, PushSendError, PushTransportError, is_retryable
from push_dispatch.notifications.fcm_credentials import CredentialExchangeError, FcmCredentialProvider

logger = logging.getLogger(__name__)

FCM_API_BASE = "https://fcm.googleapis.com/v1"


class CredentialRefreshError(PushSendError):
  """A mid-run token refresh failed; the current token fails but the run continues."""

  code = "credential_refresh_failed"


def build_fcm_message(token: str, message: PushMessage) -> dict[str, object]:
  """Build the v1 ``message`` object with a display block and a routing data block."""
  notification: dict[str, str] = {"title": message.title, "body": message.body}
  data: dict[str, str] = {}
  if message.image_url:
    notification["image"] = message.image_url
    data["image_url"] = message.image_url
  if message.deep_link:
    data["deep_link"] = message.deep_link

  return {"token": token, "notification": notification, "data": data}


class FcmSender:
  """Send one message to one registration token via ``projects/{id}/messages:send``."""

  stage = DeliveryStage.FCM_SEND

  def __init__(self, *, credentials: FcmCredentialProvider, client: httpx.AsyncClient, api_base: str = FCM_API_BASE) -> None:
    self._credentials = credentials
    self._client = client
    self._api_base = api_base.rstrip("/")
    self._credentials_rejected = False

  async def send(self, token: str, message: PushMessage, *, attempt: int = 0) -> str:
    """Perform one send; on a retry after 401/403 the access token is refreshed first."""
    if attempt > 0 and self._credentials_rejected:
      try:
        await self._credentials.refresh()
      except CredentialExchangeError as exc:
        raise CredentialRefreshError(str(exc)) from exc
      self._credentials_rejected = False

    access_token = await self._credentials.access_token()
    url = f"{self._api_base}/projects/{self._credentials.project_id}/messages:send"

    try:
      response = await self._client.post(url, json={"message": build_fcm_message(token, message)}, headers={"Authorization": f"Bearer {access_token}"})
    except httpx.RequestError as exc:
      raise PushTransportError(f"fcm_request_error: {exc}") from exc

    if not response.is_success:
      error = PushProviderError(f"fcm_failed_{response.status_code}: {response.text}", status_code=response.status_code, provider="fcm")
      if error.auth_rejected:
        self._credentials_rejected = True
      raise error

    # Response body is {"name": "projects/<id>/messages/<message-id>"}.
    try:
      name = response.json().get("name")
    except ValueError:
      name = None

    return str(name) if name else "fcm"

  def should_retry(self, exc: BaseException) -> bool:
    """Retry transient failures, plus 401/403 so the next attempt can refresh the token."""
    if isinstance(exc, PushProviderError) and exc.auth_rejected:
      return True
    return is_retryable(exc)
