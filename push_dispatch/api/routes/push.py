"""Routes for dispatching push notifications to registered devices."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from starlette.responses import Response

from push_dispatch.api.deps import get_auth_client, get_push_dispatcher
from push_dispatch.api.models import DispatchResponse, DryRunResponse, HealthResponse, PublicKeyResponse, SendPushRequest
from push_dispatch.api.msgspec_utils import decode_msgspec_request, encode_msgspec_response
from push_dispatch.config import Settings, get_settings
from push_dispatch.core.security import SupabaseAuthClient, authorize_admin, bearer_token
from push_dispatch.notifications.dispatch import DispatchRequest, DryRunResult, NotificationNotFoundError, PushDispatcher
from push_dispatch.notifications.vapid import normalize_base64url

logger = logging.getLogger(__name__)

_IDENTIFIER_MIN_LENGTH = 8
_IDENTIFIER_MAX_LENGTH = 128

router = APIRouter()


def _optional_identifier(value: str | None, *, label: str) -> str | None:
  """Trim an optional device or token filter and reject implausible lengths."""
  if value is None:
    return None

  trimmed = value.strip()
  if not _IDENTIFIER_MIN_LENGTH <= len(trimmed) <= _IDENTIFIER_MAX_LENGTH:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label}")

  return trimmed


def _build_dispatch_request(payload: SendPushRequest) -> DispatchRequest:
  notification_id = (payload.notification_id or "").strip()
  if not notification_id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="notificationId is required")

  device_id = _optional_identifier(payload.device_id, label="deviceId")
  token_id = _optional_identifier(payload.token_id, label="tokenId")
  return DispatchRequest(notification_id=notification_id, platform=payload.platform, device_id=device_id, token_id=token_id, dry_run=payload.dry_run)


@router.post("/send-push")
async def send_push(
  request: Request,
  authorization: str | None = Header(default=None),
  dispatcher: PushDispatcher = Depends(get_push_dispatcher),  # noqa: B008
  auth_client: SupabaseAuthClient = Depends(get_auth_client),  # noqa: B008
) -> Response:
  """Deliver a stored notification to every matching enabled device token."""
  payload = await decode_msgspec_request(request, SendPushRequest)

  # Health check short-circuits before any authentication.
  if payload.action == "health":
    return encode_msgspec_response(HealthResponse(ok=True))

  jwt = bearer_token(authorization)
  dispatch_request = _build_dispatch_request(payload)
  user_id = await authorize_admin(auth_client, jwt)
  logger.info("Dispatch requested notification_id=%s user_id=%s dry_run=%s", dispatch_request.notification_id, user_id, dispatch_request.dry_run)

  try:
    result = await dispatcher.dispatch(dispatch_request)
  except NotificationNotFoundError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found") from exc

  if isinstance(result, DryRunResult):
    return encode_msgspec_response(DryRunResponse.from_result(result))

  return encode_msgspec_response(DispatchResponse.from_result(result))


@router.get("/webpush-public-key")
async def webpush_public_key(settings: Settings = Depends(get_settings)) -> Response:  # noqa: B008
  """Expose the VAPID application server key browsers need to subscribe."""
  raw_key = settings.webpush_vapid_public_key
  public_key = normalize_base64url(raw_key, strip_invalid=True) if raw_key else ""
  if not public_key:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="WEBPUSH_VAPID_PUBLIC_KEY is not configured")

  return encode_msgspec_response(PublicKeyResponse(public_key=public_key))
