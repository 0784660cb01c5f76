from __future__ import annotations

import json

import httpx
import pytest
from fastapi import HTTPException

from push_dispatch.core.security import SupabaseAuthClient, authorize_admin, bearer_token

_BASE_URL = "https://project.supabase.co"


def _auth_client(handler) -> SupabaseAuthClient:
  return SupabaseAuthClient(base_url=f"{_BASE_URL}/", anon_key="anon-key", client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_bearer_token_extraction():
  assert bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
  for header in (None, "", "Token abc", "Bearer    "):
    with pytest.raises(HTTPException) as exc_info:
      bearer_token(header)
    assert exc_info.value.status_code == 401


@pytest.mark.anyio
async def test_admin_is_resolved_through_user_and_rpc():
  requests: list[httpx.Request] = []

  def _handler(request: httpx.Request) -> httpx.Response:
    requests.append(request)
    if request.url.path == "/auth/v1/user":
      return httpx.Response(200, json={"id": "user-1", "email": "admin@example.com"})
    return httpx.Response(200, json=True)

  assert await authorize_admin(_auth_client(_handler), "caller-jwt") == "user-1"

  user_request, rpc_request = requests
  assert user_request.headers["apikey"] == "anon-key"
  assert user_request.headers["Authorization"] == "Bearer caller-jwt"
  assert rpc_request.url.path == "/rest/v1/rpc/is_admin"
  assert json.loads(rpc_request.content) == {"_user_id": "user-1"}


@pytest.mark.anyio
async def test_rejected_jwt_is_unauthorized():
  def _handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(401, json={"msg": "invalid JWT"})

  with pytest.raises(HTTPException) as exc_info:
    await authorize_admin(_auth_client(_handler), "expired-jwt")
  assert exc_info.value.status_code == 401


@pytest.mark.anyio
@pytest.mark.parametrize(("rpc_status", "rpc_body"), [(200, False), (200, None), (500, {"message": "boom"})])
async def test_non_admin_or_rpc_error_is_forbidden(rpc_status, rpc_body):
  def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/auth/v1/user":
      return httpx.Response(200, json={"id": "user-1"})
    return httpx.Response(rpc_status, json=rpc_body)

  with pytest.raises(HTTPException) as exc_info:
    await authorize_admin(_auth_client(_handler), "caller-jwt")
  assert exc_info.value.status_code == 403


@pytest.mark.anyio
async def test_unconfigured_client_fails_on_use():
  client = SupabaseAuthClient(base_url=None, anon_key=None)
  with pytest.raises(RuntimeError):
    await client.resolve_subject("caller-jwt")
