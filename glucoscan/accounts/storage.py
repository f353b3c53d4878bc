# -*- coding: utf-8 -*-
"""Account directory: every registered user in one persisted JSON object.

Layout under ``accounts-directory``::

    {"<email key>": {"credential": "...", "profile": {...}, "history": [...]}}

Each mutating call is a full read-modify-write of that object.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..config import settings
from ..errors import AccountNotFound, DuplicateAccount, InvalidCredential
from ..history.ledger import dump_history, load_history
from ..history.models import ScanRecord
from ..kv_store import ACCOUNTS_KEY, KeyValueStore
from .credentials import credential_policy
from .models import GUEST_EMAIL_KEY, Account, UserProfile, is_account_key, normalize_email

logger = logging.getLogger(__name__)


def _decode_profile(raw: Any) -> Optional[UserProfile]:
    if not isinstance(raw, dict):
        return None
    try:
        return UserProfile.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Ignoring unreadable profile: %s", exc.errors()[:1])
        return None


def _decode_entry(email_key: str, raw: Any) -> Optional[Account]:
    if not isinstance(raw, dict):
        return None
    credential = raw.get("credential")
    if credential is None:
        # Entries written by older builds used "password".
        credential = raw.get("password")
    return Account(
        email_key=email_key,
        credential=str(credential or ""),
        profile=_decode_profile(raw.get("profile")),
        history=load_history(raw.get("history")),
    )


def _encode_entry(account: Account) -> Dict[str, Any]:
    return {
        "credential": account.credential,
        "profile": account.profile.model_dump(mode="json") if account.profile else None,
        "history": dump_history(account.history),
    }


class AccountDirectory:
    """Source of truth for registered accounts, keyed by normalized email."""

    def __init__(self, store: KeyValueStore, credentials=None) -> None:
        self.store = store
        self.credentials = credentials or credential_policy(settings.credential_scheme)

    def load(self) -> Dict[str, Account]:
        raw = self.store.get(ACCOUNTS_KEY, {})
        if not isinstance(raw, dict):
            logger.warning("Account directory is not an object; treating as empty")
            return {}
        accounts: Dict[str, Account] = {}
        for key, entry in raw.items():
            if not is_account_key(str(key)):
                logger.warning("Ignoring directory entry with unusable key %r", key)
                continue
            account = _decode_entry(str(key), entry)
            if account is not None:
                accounts[account.email_key] = account
        return accounts

    def _save(self, accounts: Dict[str, Account]) -> None:
        self.store.set(ACCOUNTS_KEY, {k: _encode_entry(a) for k, a in accounts.items()})

    def get(self, email: str) -> Optional[Account]:
        return self.load().get(normalize_email(email))

    def exists(self, email: str) -> bool:
        return self.get(email) is not None

    def register(self, email: str, credential: str) -> Account:
        key = normalize_email(email)
        if not is_account_key(key) or not credential:
            raise InvalidCredential()
        accounts = self.load()
        if key in accounts:
            raise DuplicateAccount()
        account = Account(
            email_key=key,
            credential=self.credentials.encode(credential),
            profile=UserProfile(),
            history=[],
        )
        accounts[key] = account
        self._save(accounts)
        logger.info("Registered account %s", key)
        return account

    def authenticate(self, email: str, credential: str) -> Account:
        key = normalize_email(email)
        if not is_account_key(key) or not credential:
            raise InvalidCredential()
        account = self.load().get(key)
        # Unknown email and wrong credential are indistinguishable to the caller.
        if account is None or not self.credentials.verify(credential, account.credential):
            raise InvalidCredential()
        return account

    def reset_credential(self, email: str, new_credential: str) -> None:
        key = normalize_email(email)
        accounts = self.load()
        account = accounts.get(key)
        if account is None:
            raise AccountNotFound()
        accounts[key] = account.model_copy(update={"credential": self.credentials.encode(new_credential)})
        self._save(accounts)
        logger.info("Credential reset for %s", key)

    def upsert_profile(self, email_key: str, profile: UserProfile) -> None:
        self._update(email_key, profile=profile)

    def upsert_history(self, email_key: str, history: List[ScanRecord]) -> None:
        self._update(email_key, history=list(history))

    def _update(self, email_key: str, **fields: Any) -> None:
        if email_key == GUEST_EMAIL_KEY:
            return
        accounts = self.load()
        account = accounts.get(email_key)
        if account is None:
            logger.warning("Skipping write for unknown account %s", email_key)
            return
        accounts[email_key] = account.model_copy(update=fields)
        self._save(accounts)
