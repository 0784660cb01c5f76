"""Caller authentication and admin authorization against the hosted backend."""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "


def bearer_token(authorization: str | None) -> str:
  """Extract the raw JWT from an ``Authorization: Bearer <jwt>`` header."""
  if not authorization or not authorization.startswith(_BEARER_PREFIX):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})

  jwt = authorization[len(_BEARER_PREFIX) :].strip()
  if not jwt:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})

  return jwt


class SupabaseAuthClient:
  """Resolve the caller's subject and ask the datastore whether it is an administrator."""

  def __init__(self, *, base_url: str | None, anon_key: str | None, client_factory: Callable[[], httpx.AsyncClient] = httpx.AsyncClient) -> None:
    self._base_url = base_url.rstrip("/") if base_url else None
    self._anon_key = anon_key
    self._client_factory = client_factory

  def _endpoint(self, path: str) -> str:
    # Unauthenticated routes (health, public key) must work without auth configuration.
    if not self._base_url or not self._anon_key:
      raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set to authorize callers.")
    return f"{self._base_url}{path}"

  def _headers(self, jwt: str) -> dict[str, str]:
    return {"apikey": self._anon_key or "", "Authorization": f"Bearer {jwt}"}

  async def resolve_subject(self, jwt: str) -> str | None:
    """Return the user id the auth server vouches for, or None for an invalid token."""
    async with self._client_factory() as client:
      try:
        response = await client.get(self._endpoint("/auth/v1/user"), headers=self._headers(jwt))
      except httpx.RequestError as exc:
        logger.warning("Auth server request failed: %s", exc)
        return None

    if not response.is_success:
      return None

    try:
      subject = response.json().get("id")
    except ValueError:
      return None

    return str(subject) if subject else None

  async def is_admin(self, jwt: str, user_id: str) -> bool:
    """Call the ``is_admin`` RPC under the caller's own credential."""
    async with self._client_factory() as client:
      try:
        response = await client.post(self._endpoint("/rest/v1/rpc/is_admin"), json={"_user_id": user_id}, headers=self._headers(jwt))
      except httpx.RequestError as exc:
        logger.warning("is_admin RPC request failed user_id=%s error=%s", user_id, exc)
        return False

    if not response.is_success:
      logger.warning("is_admin RPC rejected user_id=%s status=%s", user_id, response.status_code)
      return False

    try:
      return response.json() is True
    except ValueError:
      return False


async def authorize_admin(auth_client: SupabaseAuthClient, jwt: str) -> str:
  """Return the admin's user id, raising 401 for unknown callers and 403 for non-admins."""
  user_id = await auth_client.resolve_subject(jwt)
  if not user_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})

  if not await auth_client.is_admin(jwt, user_id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

  return user_id
