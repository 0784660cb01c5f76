from __future__ import annotations

import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from push_dispatch.notifications.contracts import PushMessage, PushProviderError, PushTransportError
from push_dispatch.notifications.fcm_credentials import CredentialExchangeError, DispatchConfigurationError, FcmCredentialProvider, parse_service_account
from push_dispatch.notifications.fcm_sender import CredentialRefreshError, FcmSender, build_fcm_message
from push_dispatch.utils import backoff
from push_dispatch.utils.backoff import retry_with_backoff

_TOKEN_URL = "https://oauth2.googleapis.com/token"
_SEND_URL = "https://fcm.googleapis.com/v1/projects/demo-project/messages:send"


def _jwt_claims(assertion: str) -> dict:
  payload = assertion.split(".")[1]
  return json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))


class _FakeMessagesApi:
  """``messages:send`` scripted by a status sequence."""

  def __init__(self, statuses=(200,)) -> None:
    self.statuses = list(statuses)
    self.requests: list[httpx.Request] = []

  def __call__(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    status_code = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
    if status_code != 200:
      return httpx.Response(status_code, text='{"error": {"status": "UNREGISTERED"}}')
    return httpx.Response(200, json={"name": "projects/demo-project/messages/0:12345"})


@pytest.fixture(autouse=True)
def _no_delay(monkeypatch):
  monkeypatch.setattr(backoff, "backoff_delay_ms", lambda attempt, **kwargs: 0)


def _provider(service_account_json, token_endpoint) -> FcmCredentialProvider:
  return FcmCredentialProvider(account=parse_service_account(service_account_json), token_request=token_endpoint)


def test_build_message_only_carries_present_fields():
  assert build_fcm_message("tok", PushMessage(title="t", body="b")) == {"token": "tok", "notification": {"title": "t", "body": "b"}, "data": {}}

  with_media = build_fcm_message("tok", PushMessage(title="t", body="b", image_url="https://cdn.example.com/i.png", deep_link="app://prayers"))
  assert with_media["notification"]["image"] == "https://cdn.example.com/i.png"
  assert with_media["data"] == {"image_url": "https://cdn.example.com/i.png", "deep_link": "app://prayers"}


@pytest.mark.parametrize(
  ("raw", "message"),
  [
    (None, "Missing FCM_SERVICE_ACCOUNT_JSON"),
    ("{not json", "invalid"),
    (json.dumps({"project_id": "p"}), "client_email/private_key"),
    (json.dumps({"client_email": "a@b", "private_key": "pem"}), "project_id"),
  ],
)
def test_parse_service_account_rejects_incomplete_input(raw, message):
  with pytest.raises(DispatchConfigurationError, match=message):
    parse_service_account(raw)


def test_unusable_private_key_is_configuration_error(google_token_endpoint):
  account = parse_service_account(json.dumps({"client_email": "a@b", "private_key": "not a pem", "project_id": "p"}))
  with pytest.raises(DispatchConfigurationError, match="private_key"):
    FcmCredentialProvider(account=account, token_request=google_token_endpoint())


@pytest.mark.anyio
async def test_access_token_is_exchanged_once_with_signed_assertion(service_account_json, google_token_endpoint):
  endpoint = google_token_endpoint()
  provider = _provider(service_account_json, endpoint)

  assert await provider.access_token() == "ya29.token-1"
  assert await provider.access_token() == "ya29.token-1"

  assert len(endpoint.requests) == 1
  request = endpoint.requests[0]
  assert request["url"] == _TOKEN_URL
  form = parse_qs(request["body"].decode())
  assert form["grant_type"] == ["urn:ietf:params:oauth:grant-type:jwt-bearer"]
  claims = _jwt_claims(form["assertion"][0])
  assert claims["iss"] == "push@demo-project.iam.gserviceaccount.com"
  assert claims["scope"] == "https://www.googleapis.com/auth/firebase.messaging"
  assert claims["aud"] == _TOKEN_URL


@pytest.mark.anyio
async def test_token_endpoint_failure_raises_exchange_error(service_account_json, google_token_endpoint):
  provider = _provider(service_account_json, google_token_endpoint(statuses=(400,)))
  with pytest.raises(CredentialExchangeError):
    await provider.access_token()


@pytest.mark.anyio
async def test_send_posts_message_and_returns_name(service_account_json, google_token_endpoint):
  api = _FakeMessagesApi()
  async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
    sender = FcmSender(credentials=_provider(service_account_json, google_token_endpoint()), client=client)
    message_id = await sender.send("device-token", PushMessage(title="Fajr", body="It's time"))

  assert message_id == "projects/demo-project/messages/0:12345"
  request = api.requests[0]
  assert str(request.url) == _SEND_URL
  assert request.headers["Authorization"] == "Bearer ya29.token-1"
  assert json.loads(request.content)["message"]["token"] == "device-token"


@pytest.mark.anyio
async def test_unauthorized_send_refreshes_token_before_retry(service_account_json, google_token_endpoint):
  endpoint = google_token_endpoint()
  api = _FakeMessagesApi(statuses=(401, 200))
  async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
    sender = FcmSender(credentials=_provider(service_account_json, endpoint), client=client)
    message_id = await retry_with_backoff(lambda attempt: sender.send("device-token", PushMessage(title="t", body="b"), attempt=attempt), should_retry=sender.should_retry)

  assert message_id.endswith("0:12345")
  assert len(endpoint.requests) == 2
  assert api.requests[1].headers["Authorization"] == "Bearer ya29.token-2"


@pytest.mark.anyio
async def test_failed_refresh_fails_only_the_current_token(service_account_json, google_token_endpoint):
  provider = _provider(service_account_json, google_token_endpoint(statuses=(200, 400)))
  async with httpx.AsyncClient(transport=httpx.MockTransport(_FakeMessagesApi(statuses=(403,)))) as client:
    sender = FcmSender(credentials=provider, client=client)
    await provider.access_token()
    with pytest.raises(CredentialRefreshError):
      await retry_with_backoff(lambda attempt: sender.send("device-token", PushMessage(title="t", body="b"), attempt=attempt), should_retry=sender.should_retry)


@pytest.mark.anyio
async def test_unregistered_token_is_not_retried(service_account_json, google_token_endpoint):
  api = _FakeMessagesApi(statuses=(404,))
  async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
    sender = FcmSender(credentials=_provider(service_account_json, google_token_endpoint()), client=client)
    with pytest.raises(PushProviderError) as exc_info:
      await retry_with_backoff(lambda attempt: sender.send("device-token", PushMessage(title="t", body="b"), attempt=attempt), should_retry=sender.should_retry)

  assert exc_info.value.code == "http_404"
  assert len(api.requests) == 1


@pytest.mark.anyio
async def test_network_failure_is_transport_error(service_account_json, google_token_endpoint):
  def _handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
    with pytest.raises(PushTransportError):
      await FcmSender(credentials=_provider(service_account_json, google_token_endpoint()), client=client).send("device-token", PushMessage(title="t", body="b"))
