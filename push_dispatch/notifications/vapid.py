"""VAPID key normalization and signing material for Web Push."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from py_vapid import Vapid02

from push_dispatch.notifications.contracts import PushConfigurationError

_WHITESPACE_RE = re.compile(r"[\s\u00a0]+")
_NON_ALPHABET_RE = re.compile(r"[^A-Za-z0-9\-_]")
_PUBLIC_KEY_LENGTH = 65
_PRIVATE_KEY_LENGTH = 32


def normalize_base64url(value: str, *, strip_invalid: bool = False) -> str:
  """Convert padded or standard base64 into unpadded URL-safe base64."""
  cleaned = _WHITESPACE_RE.sub("", value.strip()).replace("+", "-").replace("/", "_").rstrip("=")
  if strip_invalid:
    cleaned = _NON_ALPHABET_RE.sub("", cleaned)
  return cleaned


def base64url_to_bytes(value: str) -> bytes:
  """Decode any base64 flavour used for VAPID keys into raw bytes."""
  cleaned = normalize_base64url(value)
  return base64.urlsafe_b64decode(cleaned + "=" * (-len(cleaned) % 4))


@dataclass(frozen=True)
class VapidCredentials:
  """Decoded VAPID identity: raw P-256 key bytes plus the ``sub`` claim."""

  subject: str
  public_key: str
  public_key_bytes: bytes
  private_key_bytes: bytes

  @classmethod
  def from_config(cls, *, public_key: str | None, private_key: str | None, subject: str | None) -> VapidCredentials:
    """Validate and decode configured keys, raising a configuration error on any defect."""
    if not public_key or not private_key or not subject:
      raise PushConfigurationError("Missing WEBPUSH_VAPID_* keys or WEBPUSH_SUBJECT")

    try:
      public_key_bytes = base64url_to_bytes(public_key)
      private_key_bytes = base64url_to_bytes(private_key)
    except (binascii.Error, ValueError) as exc:
      raise PushConfigurationError(f"VAPID keys are not valid base64: {exc}") from exc

    if len(public_key_bytes) != _PUBLIC_KEY_LENGTH or public_key_bytes[0] != 0x04:
      raise PushConfigurationError("WEBPUSH_VAPID_PUBLIC_KEY must be an uncompressed P-256 point")

    if len(private_key_bytes) != _PRIVATE_KEY_LENGTH:
      raise PushConfigurationError("WEBPUSH_VAPID_PRIVATE_KEY must be a raw 32-byte P-256 scalar")

    credentials = cls(subject=subject.strip(), public_key=normalize_base64url(public_key), public_key_bytes=public_key_bytes, private_key_bytes=private_key_bytes)
    derived = credentials.private_key().public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)
    if derived != public_key_bytes:
      raise PushConfigurationError("WEBPUSH_VAPID_PUBLIC_KEY does not match WEBPUSH_VAPID_PRIVATE_KEY")

    return credentials

  def private_key(self) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(int.from_bytes(self.private_key_bytes, "big"), ec.SECP256R1())

  def signer(self) -> Vapid02:
    """Build a fresh RFC 8292 signer; ``Vapid02.sign`` yields the ``vapid t=...,k=...`` header."""
    return Vapid02(private_key=self.private_key())
