"""Local ``.env`` support for development runs."""

from __future__ import annotations

import os
from pathlib import Path

_QUOTES = ('"', "'")


def default_env_path() -> Path:
  return Path(__file__).resolve().parents[2] / ".env"


def _parse_value(raw: str) -> str:
  value = raw.strip()
  if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
    quote = value[0]
    value = value[1:-1]
    # Double-quoted values keep the service-account PEM on one line via "\n" escapes.
    if quote == '"':
      value = value.replace("\\n", "\n")
    return value

  # Unquoted values may carry a trailing " # comment".
  comment_at = value.find(" #")
  return value[:comment_at].rstrip() if comment_at >= 0 else value


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Export ``KEY=value`` lines into the environment and return the keys that were set.

  Variables already present in the process environment win unless ``override`` is set.
  """
  if not path.is_file():
    return []

  loaded: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue
    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
      continue
    if not override and key in os.environ:
      continue
    os.environ[key] = _parse_value(value)
    loaded.append(key)

  return loaded
