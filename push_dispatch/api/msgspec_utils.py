"""msgspec request decoding and response encoding for the dispatch routes."""

from __future__ import annotations

import msgspec
from fastapi import HTTPException, Request, status
from starlette.responses import Response

_EMPTY_OBJECT = b"{}"


async def decode_msgspec_request[T: msgspec.Struct](request: Request, struct_type: type[T]) -> T:
  """Decode a JSON body into ``struct_type``; an empty body decodes as ``{}`` so field checks report what is missing."""
  payload_bytes = (await request.body()).strip() or _EMPTY_OBJECT
  try:
    return msgspec.json.decode(payload_bytes, type=struct_type)
  except msgspec.ValidationError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid request payload: {exc}") from exc
  except msgspec.DecodeError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid request payload: body is not valid JSON") from exc


def encode_msgspec_response(payload: msgspec.Struct, *, status_code: int = status.HTTP_200_OK, headers: dict[str, str] | None = None) -> Response:
  return Response(content=msgspec.json.encode(payload), status_code=status_code, media_type="application/json", headers=headers)
