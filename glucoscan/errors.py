# -*- coding: utf-8 -*-
"""Error taxonomy for the account/session store."""

from __future__ import annotations


class GlucoscanError(Exception):
    """Base class for every failure surfaced to the caller."""

    message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class DuplicateAccount(GlucoscanError):
    message = "User already exists"


class InvalidCredential(GlucoscanError):
    message = "Invalid email or password"


class PasswordMismatch(GlucoscanError):
    message = "Passwords do not match"


class AccountNotFound(GlucoscanError):
    message = "No account registered for this email"


class EmptyCredential(GlucoscanError):
    message = "Please enter a new password"


class ResetNotStarted(GlucoscanError):
    message = "Verify the account email before setting a new password"


class NotSignedIn(GlucoscanError):
    message = "No active session"


class ActionInProgress(GlucoscanError):
    """Raised when the same action class is already running."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Action already in progress: {action}")


class ExternalCapabilityFailure(GlucoscanError):
    """The AI service (analysis, recommendation or translation) failed."""

    def __init__(self, capability: str, detail: str) -> None:
        self.capability = capability
        self.detail = detail
        super().__init__(f"{capability} failed: {detail}")


class PersistedDataCorrupt(GlucoscanError):
    """Internal only: a stored value could not be decoded. Never surfaced."""

    def __init__(self, key: str, detail: str) -> None:
        self.key = key
        super().__init__(f"Corrupt value under {key!r}: {detail}")


class UnsupportedLanguage(GlucoscanError):
    def __init__(self, language: str) -> None:
        self.language = language
        super().__init__(f"Unsupported language: {language}")


class UnknownCondition(GlucoscanError):
    def __init__(self, condition_id: str) -> None:
        self.condition_id = condition_id
        super().__init__(f"Unknown condition: {condition_id}")
