"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from push_dispatch.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the push dispatch service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_level: str
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  supabase_url: str | None
  supabase_anon_key: str | None
  pg_dsn: str | None
  fcm_service_account_json: str | None
  webpush_vapid_public_key: str | None
  webpush_vapid_private_key: str | None
  webpush_subject: str | None
  webpush_ttl_seconds: int
  retries: int
  retry_base_delay_ms: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("*",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("PUSH_DISPATCH_ALLOWED_ORIGINS must include at least one origin.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("PUSH_DISPATCH_ENV", "development").lower()
  debug = _parse_bool(os.getenv("PUSH_DISPATCH_DEBUG"))
  log_level = (os.getenv("PUSH_DISPATCH_LOG_LEVEL") or ("DEBUG" if debug else "INFO")).strip().upper()

  log_max_bytes = int(os.getenv("PUSH_DISPATCH_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("PUSH_DISPATCH_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("PUSH_DISPATCH_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("PUSH_DISPATCH_LOG_BACKUP_COUNT must be zero or a positive integer.")

  retries = int(os.getenv("PUSH_DISPATCH_RETRIES", "2"))
  if retries < 0:
    raise ValueError("PUSH_DISPATCH_RETRIES must be zero or a positive integer.")

  retry_base_delay_ms = int(os.getenv("PUSH_DISPATCH_RETRY_BASE_DELAY_MS", "250"))
  if retry_base_delay_ms < 0:
    raise ValueError("PUSH_DISPATCH_RETRY_BASE_DELAY_MS must be zero or a positive integer.")

  webpush_ttl_seconds = int(os.getenv("PUSH_DISPATCH_WEBPUSH_TTL_SECONDS", "86400"))
  if webpush_ttl_seconds < 0:
    raise ValueError("PUSH_DISPATCH_WEBPUSH_TTL_SECONDS must be zero or a positive integer.")

  # Provider credentials are validated lazily by the branch that needs them, so a
  # web-only deployment does not have to carry an FCM service account.
  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("PUSH_DISPATCH_ALLOWED_ORIGINS")),
    log_level=log_level,
    log_dir=_optional_str(os.getenv("PUSH_DISPATCH_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("PUSH_DISPATCH_LOG_HTTP_4XX")),
    supabase_url=_optional_str(os.getenv("SUPABASE_URL")),
    supabase_anon_key=_optional_str(os.getenv("SUPABASE_ANON_KEY")),
    pg_dsn=_optional_str(os.getenv("PUSH_DISPATCH_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")),
    fcm_service_account_json=_optional_str(os.getenv("FCM_SERVICE_ACCOUNT_JSON")),
    webpush_vapid_public_key=_optional_str(os.getenv("WEBPUSH_VAPID_PUBLIC_KEY")),
    webpush_vapid_private_key=_optional_str(os.getenv("WEBPUSH_VAPID_PRIVATE_KEY")),
    webpush_subject=_optional_str(os.getenv("WEBPUSH_SUBJECT")),
    webpush_ttl_seconds=webpush_ttl_seconds,
    retries=retries,
    retry_base_delay_ms=retry_base_delay_ms,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  debug = _parse_bool(os.getenv("PUSH_DISPATCH_DEBUG"))
  pg_dsn = _optional_str(os.getenv("PUSH_DISPATCH_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn)
