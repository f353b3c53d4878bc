# -*- coding: utf-8 -*-
"""Two-phase password reset.

Phase 1 hands the email to a verifier (`begin`, `is_verified`); phase 2 writes the new
credential once the verifier reports the email as verified. The default
verifier only checks that the account exists and sends nothing, so a
code or link channel can be plugged in without touching the session layer.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..accounts.models import normalize_email
from ..accounts.storage import AccountDirectory
from ..errors import AccountNotFound, EmptyCredential, ResetNotStarted

logger = logging.getLogger(__name__)


class DirectoryEmailVerifier:
    def __init__(self, directory: AccountDirectory) -> None:
        self.directory = directory

    def begin(self, email_key: str) -> None:
        if not self.directory.exists(email_key):
            raise AccountNotFound()

    def is_verified(self, email_key: str) -> bool:
        return True


class PasswordResetFlow:
    def __init__(self, directory: AccountDirectory, verifier=None) -> None:
        self.directory = directory
        self.verifier = verifier or DirectoryEmailVerifier(directory)
        self.phase = 1
        self.email_key: Optional[str] = None

    def request(self, email: str) -> None:
        key = normalize_email(email)
        self.cancel()
        if not key:
            raise AccountNotFound()
        self.verifier.begin(key)
        self.email_key = key
        self.phase = 2

    def complete(self, new_credential: str) -> None:
        if self.phase != 2 or not self.email_key:
            raise ResetNotStarted()
        if not new_credential:
            raise EmptyCredential()
        if not self.verifier.is_verified(self.email_key):
            raise ResetNotStarted()
        self.directory.reset_credential(self.email_key, new_credential)
        logger.info("Password reset completed for %s", self.email_key)
        self.cancel()

    def cancel(self) -> None:
        self.phase = 1
        self.email_key = None
