"""Shared FastAPI dependencies for the dispatch endpoints."""

from __future__ import annotations

from push_dispatch.config import get_settings
from push_dispatch.core.security import SupabaseAuthClient
from push_dispatch.notifications.dispatch import PushDispatcher
from push_dispatch.notifications.factory import build_push_dispatcher


def get_push_dispatcher() -> PushDispatcher:
  """Build a dispatcher bound to the current configuration."""
  return build_push_dispatcher(get_settings())


def get_auth_client() -> SupabaseAuthClient:
  """Build the client used to authenticate and authorize callers."""
  settings = get_settings()
  return SupabaseAuthClient(base_url=settings.supabase_url, anon_key=settings.supabase_anon_key)
