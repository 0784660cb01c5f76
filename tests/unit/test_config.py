from __future__ import annotations

import pytest

from push_dispatch.config import get_settings


def test_defaults(monkeypatch):
  for name in ("PUSH_DISPATCH_ALLOWED_ORIGINS", "PUSH_DISPATCH_RETRIES", "PUSH_DISPATCH_RETRY_BASE_DELAY_MS", "PUSH_DISPATCH_WEBPUSH_TTL_SECONDS", "PUSH_DISPATCH_LOG_DIR"):
    monkeypatch.delenv(name, raising=False)

  settings = get_settings()

  assert settings.allowed_origins == ("*",)
  assert settings.retries == 2
  assert settings.retry_base_delay_ms == 250
  assert settings.webpush_ttl_seconds == 86400
  assert settings.log_dir is None


def test_dsn_falls_back_to_database_url(monkeypatch):
  monkeypatch.delenv("PUSH_DISPATCH_PG_DSN", raising=False)
  monkeypatch.setenv("DATABASE_URL", "postgresql://user:pass@db:5432/app")
  assert get_settings().pg_dsn == "postgresql://user:pass@db:5432/app"


def test_blank_credentials_are_treated_as_missing(monkeypatch):
  monkeypatch.setenv("FCM_SERVICE_ACCOUNT_JSON", "   ")
  monkeypatch.setenv("PUSH_DISPATCH_ALLOWED_ORIGINS", "https://admin.example.com, https://ops.example.com")

  settings = get_settings()

  assert settings.fcm_service_account_json is None
  assert settings.allowed_origins == ("https://admin.example.com", "https://ops.example.com")


@pytest.mark.parametrize("name", ["PUSH_DISPATCH_RETRIES", "PUSH_DISPATCH_RETRY_BASE_DELAY_MS", "PUSH_DISPATCH_WEBPUSH_TTL_SECONDS"])
def test_negative_numbers_are_rejected(monkeypatch, name):
  monkeypatch.setenv(name, "-1")
  with pytest.raises(ValueError, match=name):
    get_settings()
