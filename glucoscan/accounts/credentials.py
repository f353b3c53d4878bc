# -*- coding: utf-8 -*-
"""Credential storage strategies.

The directory stores whatever `encode` returns as an opaque string and only
asks the policy whether a presented secret matches it.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os

_PBKDF2_ALG = "sha256"
_PBKDF2_ITERATIONS = 200_000


class PlainCredentials:
    """Stores the secret as given and compares exactly."""

    scheme = "plain"

    def encode(self, secret: str) -> str:
        return secret

    def verify(self, secret: str, stored: str) -> bool:
        return hmac.compare_digest(secret.encode("utf-8"), (stored or "").encode("utf-8"))


class Pbkdf2Credentials:
    scheme = "pbkdf2"

    def __init__(self, iterations: int = _PBKDF2_ITERATIONS) -> None:
        self.iterations = iterations

    def encode(self, secret: str) -> str:
        salt = os.urandom(16)
        dk = hashlib.pbkdf2_hmac(_PBKDF2_ALG, secret.encode("utf-8"), salt, self.iterations)
        return f"pbkdf2_{_PBKDF2_ALG}${self.iterations}${_b64url_encode(salt)}${_b64url_encode(dk)}"

    def verify(self, secret: str, stored: str) -> bool:
        try:
            scheme, iter_s, salt_b64, dk_b64 = stored.split("$", 3)
            if not scheme.startswith("pbkdf2_"):
                return False
            alg = scheme.split("_", 1)[1]
            salt = _b64url_decode(salt_b64)
            expected = _b64url_decode(dk_b64)
            actual = hashlib.pbkdf2_hmac(alg, secret.encode("utf-8"), salt, int(iter_s))
            return hmac.compare_digest(actual, expected)
        except (ValueError, TypeError):
            return False


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    pad = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode((data + pad).encode("ascii"))


def credential_policy(scheme: str):
    if scheme == Pbkdf2Credentials.scheme:
        return Pbkdf2Credentials()
    if scheme == PlainCredentials.scheme:
        return PlainCredentials()
    raise ValueError(f"Unknown credential scheme: {scheme}")
