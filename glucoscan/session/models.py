# -*- coding: utf-8 -*-
"""Session: models and snapshot encoding."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..accounts.models import GUEST_EMAIL_KEY, UserProfile, normalize_email
from ..history.ledger import dump_history, load_history
from ..history.models import FoodImpact, ScanRecord


class SessionState(str, Enum):
    logged_out = "logged_out"
    authenticating = "authenticating"
    active_account = "active_account"
    active_guest = "active_guest"


class Session(BaseModel):
    """Working copy of the active identity; the directory is the merge target."""

    email_key: str
    profile: UserProfile = Field(default_factory=UserProfile)
    history: List[ScanRecord] = Field(default_factory=list)
    # False when the user opted out of staying signed in and that choice is honored.
    persist: bool = True

    @property
    def is_guest(self) -> bool:
        return self.email_key == GUEST_EMAIL_KEY


def encode_snapshot(session: Session) -> Dict[str, Any]:
    return {
        "email": session.email_key,
        "profile": session.profile.model_dump(mode="json"),
        "history": dump_history(session.history),
    }


def decode_snapshot(raw: Any) -> Session:
    """Raises ValueError when the snapshot has no usable identity."""
    if not isinstance(raw, dict):
        raise ValueError("session snapshot is not an object")
    email_key = normalize_email(str(raw.get("email") or ""))
    if not email_key:
        raise ValueError("session snapshot has no email")
    try:
        profile = UserProfile.model_validate(raw.get("profile") or {})
    except ValidationError:
        profile = UserProfile()
    return Session(email_key=email_key, profile=profile, history=load_history(raw.get("history")))


# ---- API payloads ----


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., max_length=128)
    stay_signed_in: bool = True


class SignupRequest(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., max_length=128)
    confirm_password: str = Field(..., max_length=128)
    stay_signed_in: bool = True


class ResetRequest(BaseModel):
    email: str = Field(..., max_length=254)


class ResetCompleteRequest(BaseModel):
    new_password: str = Field("", max_length=128)


class LanguageRequest(BaseModel):
    language: str = Field(..., min_length=2, max_length=8)


class SessionView(BaseModel):
    state: SessionState
    email: Optional[str] = None
    is_guest: bool = False
    profile: Optional[UserProfile] = None
    history_count: int = 0
    language: str
    busy: Dict[str, bool] = Field(default_factory=dict)
    current_result: Optional[FoodImpact] = None
    reset_phase: int = 1
