"""Google OAuth2 access tokens for the FCM HTTP v1 API.

google-auth signs the service-account JWT assertion and exchanges it at the token
endpoint. Tokens live only in memory for one dispatch run.
"""

from __future__ import annotations

import logging

import msgspec
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import Request as GoogleAuthRequest
from google.auth.transport.requests import Request as RequestsTransport
from google.oauth2 import service_account
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"


class DispatchConfigurationError(Exception):
  """Raised when provider configuration needed by the whole run is missing or invalid."""


class CredentialExchangeError(Exception):
  """Raised when the token endpoint does not issue an access token."""


class ServiceAccount(msgspec.Struct, frozen=True):
  """The subset of a Google service-account key file used for FCM."""

  client_email: str = ""
  private_key: str = ""
  private_key_id: str | None = None
  project_id: str | None = None
  token_uri: str | None = None

  def as_info(self) -> dict[str, str]:
    """Key-file dict accepted by ``Credentials.from_service_account_info``."""
    info = {
      "type": "service_account",
      "client_email": self.client_email,
      # Key files copied through env vars often carry literal "\n" sequences.
      "private_key": self.private_key.replace("\\n", "\n"),
      "token_uri": self.token_uri or DEFAULT_TOKEN_URI,
      "project_id": self.project_id or "",
    }
    if self.private_key_id:
      info["private_key_id"] = self.private_key_id
    return info


def parse_service_account(raw: str | None) -> ServiceAccount:
  """Decode and validate a service-account JSON blob."""
  if not raw:
    raise DispatchConfigurationError("Missing FCM_SERVICE_ACCOUNT_JSON")

  try:
    account = msgspec.json.decode(raw.encode("utf-8"), type=ServiceAccount)
  except msgspec.DecodeError as exc:
    raise DispatchConfigurationError(f"FCM service account JSON is invalid: {exc}") from exc

  if not account.client_email or not account.private_key:
    raise DispatchConfigurationError("FCM service account JSON missing client_email/private_key")

  if not account.project_id:
    raise DispatchConfigurationError("FCM service account JSON missing project_id")

  return account


def build_google_credentials(account: ServiceAccount) -> service_account.Credentials:
  """Create scoped service-account credentials; an unusable private key is a configuration error."""
  try:
    return service_account.Credentials.from_service_account_info(account.as_info(), scopes=[FCM_SCOPE])
  except ValueError as exc:
    raise DispatchConfigurationError(f"FCM service account private_key is not usable: {exc}") from exc


class FcmCredentialProvider:
  """Exchange a service account for an FCM bearer token and cache it for the run."""

  def __init__(self, *, account: ServiceAccount, token_request: GoogleAuthRequest | None = None) -> None:
    self._account = account
    self._credentials = build_google_credentials(account)
    self._token_request = token_request if token_request is not None else RequestsTransport()
    self._access_token: str | None = None

  @property
  def project_id(self) -> str:
    return self._account.project_id or ""

  @property
  def token_uri(self) -> str:
    return self._account.token_uri or DEFAULT_TOKEN_URI

  async def access_token(self) -> str:
    """Return the cached access token, fetching one on first use."""
    if self._access_token is None:
      self._access_token = await self._fetch()
    return self._access_token

  async def refresh(self) -> str:
    """Replace the cached token after the API rejected it."""
    logger.info("Refreshing FCM access token for project=%s", self.project_id)
    self._access_token = await self._fetch()
    return self._access_token

  async def _fetch(self) -> str:
    # google-auth's refresh is blocking (requests); keep the event loop free while it runs.
    try:
      await run_in_threadpool(self._credentials.refresh, self._token_request)
    except google_auth_exceptions.RefreshError as exc:
      raise CredentialExchangeError(f"Failed to get Google access token: {exc}") from exc
    except google_auth_exceptions.TransportError as exc:
      raise CredentialExchangeError(f"Failed to reach Google token endpoint: {exc}") from exc

    if not self._credentials.token:
      raise CredentialExchangeError("No access_token in Google token response")

    return str(self._credentials.token)
