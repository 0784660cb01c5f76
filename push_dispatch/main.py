from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from push_dispatch import __version__
from push_dispatch.api.routes import push
from push_dispatch.config import get_settings
from push_dispatch.core.exceptions import dispatch_exception_handler, global_exception_handler, http_exception_handler, request_validation_exception_handler
from push_dispatch.core.lifespan import lifespan
from push_dispatch.core.middleware import RequestLoggingMiddleware
from push_dispatch.notifications.dispatch import TokenQueryError
from push_dispatch.notifications.fcm_credentials import CredentialExchangeError, DispatchConfigurationError

settings = get_settings()

app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

# Credentialed CORS is invalid with a wildcard origin.
allow_credentials = "*" not in settings.allowed_origins
app.add_middleware(
  CORSMiddleware,
  allow_origins=list(settings.allowed_origins),
  allow_credentials=allow_credentials,
  allow_methods=["GET", "POST", "OPTIONS"],
  allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
  expose_headers=["x-request-id"],
)

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(DispatchConfigurationError, dispatch_exception_handler)
app.add_exception_handler(CredentialExchangeError, dispatch_exception_handler)
app.add_exception_handler(TokenQueryError, dispatch_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(push.router, prefix="/functions/v1", tags=["push"])
