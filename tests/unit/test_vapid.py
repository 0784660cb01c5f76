from __future__ import annotations

import base64

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from push_dispatch.notifications.contracts import PushConfigurationError
from push_dispatch.notifications.vapid import VapidCredentials, base64url_to_bytes, normalize_base64url


def test_normalize_base64url_converts_standard_alphabet():
  assert normalize_base64url(" ab+c/d== \n") == "ab-c_d"


def test_normalize_base64url_strips_invalid_characters():
  assert normalize_base64url("ab c*d.e", strip_invalid=True) == "abcde"


def test_base64url_to_bytes_accepts_padded_and_unpadded():
  raw = bytes(range(10))
  padded = base64.b64encode(raw).decode()
  assert base64url_to_bytes(padded) == raw
  assert base64url_to_bytes(padded.rstrip("=")) == raw


def test_from_config_accepts_padded_standard_base64(vapid_keys):
  public_std = base64.b64encode(base64url_to_bytes(vapid_keys["public_key"])).decode()
  credentials = VapidCredentials.from_config(public_key=public_std, private_key=vapid_keys["private_key"], subject=vapid_keys["subject"])

  assert credentials.public_key == vapid_keys["public_key"]
  assert len(credentials.private_key_bytes) == 32
  assert credentials.signer() is not None


@pytest.mark.parametrize("missing", ["public_key", "private_key", "subject"])
def test_from_config_requires_every_value(vapid_keys, missing):
  values = {**vapid_keys, missing: ""}
  with pytest.raises(PushConfigurationError):
    VapidCredentials.from_config(**values)


def test_from_config_rejects_mismatched_pair(vapid_keys):
  other = ec.generate_private_key(ec.SECP256R1()).public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)
  other_b64 = base64.urlsafe_b64encode(other).rstrip(b"=").decode()

  with pytest.raises(PushConfigurationError):
    VapidCredentials.from_config(public_key=other_b64, private_key=vapid_keys["private_key"], subject=vapid_keys["subject"])


def test_from_config_rejects_wrong_lengths(vapid_keys):
  with pytest.raises(PushConfigurationError):
    VapidCredentials.from_config(public_key="AAAA", private_key=vapid_keys["private_key"], subject=vapid_keys["subject"])
