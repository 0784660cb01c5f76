import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from push_dispatch.config import get_settings
from push_dispatch.core.database import dispose_engine
from push_dispatch.core.logging import _initialize_logging
from push_dispatch.notifications.factory import get_webpush_sender


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and select the Web Push transport before serving requests."""
  settings = get_settings()
  logger = logging.getLogger("push_dispatch.core.lifespan")

  try:
    _initialize_logging(settings)
  except Exception:
    # Fall back to the server's default logging rather than refusing to start.
    logger.warning("Initial logging setup failed.", exc_info=True)

  # Inspects the library shape once and logs the selected transport.
  get_webpush_sender()
  logger.info("Startup complete environment=%s", settings.environment)

  yield

  await dispose_engine()
  logger.info("Shutdown complete.")
