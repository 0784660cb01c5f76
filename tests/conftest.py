"""Shared fixtures for the push dispatch test suite."""

from __future__ import annotations

import base64
import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from push_dispatch.config import get_settings


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture(autouse=True)
def _reset_settings_cache():
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def _b64url(data: bytes) -> str:
  return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@pytest.fixture(scope="session")
def vapid_keys() -> dict[str, str]:
  """A fresh P-256 VAPID key pair encoded the way it is configured in the environment."""
  key = ec.generate_private_key(ec.SECP256R1())
  private_bytes = key.private_numbers().private_value.to_bytes(32, "big")
  public_bytes = key.public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)
  return {"public_key": _b64url(public_bytes), "private_key": _b64url(private_bytes), "subject": "mailto:ops@example.com"}


@pytest.fixture(scope="session")
def service_account_json() -> str:
  key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
  pem = key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()).decode("ascii")
  return json.dumps({"type": "service_account", "project_id": "demo-project", "client_email": "push@demo-project.iam.gserviceaccount.com", "private_key": pem})


class _TokenResponse:
  def __init__(self, status: int, body: dict) -> None:
    self.status = status
    self.headers = {"content-type": "application/json"}
    self.data = json.dumps(body).encode("utf-8")


class FakeGoogleTokenEndpoint:
  """Stand-in for the google-auth HTTP transport; answers token requests from a status script."""

  def __init__(self, statuses=(200,)) -> None:
    self.statuses = list(statuses)
    self.requests: list[dict] = []

  def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
    self.requests.append({"url": url, "method": method, "body": body, "headers": headers})
    status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
    if status != 200:
      return _TokenResponse(status, {"error": "invalid_grant", "error_description": "Invalid JWT Signature."})
    return _TokenResponse(200, {"access_token": f"ya29.token-{len(self.requests)}", "expires_in": 3599, "token_type": "Bearer"})


@pytest.fixture
def google_token_endpoint():
  return FakeGoogleTokenEndpoint
