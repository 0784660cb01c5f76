import logging
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("push_dispatch.core.middleware")

# Health checks hit these every few seconds; they are logged at DEBUG only.
_QUIET_PATHS = frozenset({"/health"})


def _client_host(scope: Scope) -> str:
  client = scope.get("client")
  return client[0] if client else "-"


class RequestLoggingMiddleware:
  """Tag each HTTP exchange with a request id and log method, path, status and latency.

  Bodies and query strings are never logged: they carry bearer tokens, device tokens
  and subscription keys.
  """

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id
    path = scope.get("path", "")
    level = logging.DEBUG if path in _QUIET_PATHS else logging.INFO
    started = time.perf_counter()
    response_status = 0

    async def send_with_request_id(message: dict[str, Any]) -> None:
      nonlocal response_status
      if message.get("type") == "http.response.start":
        response_status = message.get("status", 0)
        headers = MutableHeaders(scope=message)
        headers.setdefault("x-request-id", request_id)
      await send(message)

    try:
      await self.app(scope, receive, send_with_request_id)
    finally:
      elapsed_ms = (time.perf_counter() - started) * 1000
      logger.log(level, "request_id=%s client=%s %s %s status=%s (took %.2fms)", request_id, _client_host(scope), scope.get("method", "UNKNOWN"), path, response_status or 500, elapsed_ms)
