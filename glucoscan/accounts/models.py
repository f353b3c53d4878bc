# -*- coding: utf-8 -*-
"""Accounts: Pydantic models."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..history.models import ScanRecord

GUEST_EMAIL_KEY = "guest"

CONDITION_IDS = (
    "diabetes_t1",
    "diabetes_t2",
    "prediabetes",
    "gestational",
    "hypertension",
    "obesity",
    "pcos",
    "fatty_liver",
    "hyperlipidemia",
    "cardio",
    "metabolic",
    "kidney",
)


def normalize_email(raw: str) -> str:
    return (raw or "").strip().lower()


def is_account_key(email_key: str) -> bool:
    """True for a normalized key a registered account may use."""
    if not email_key or email_key == GUEST_EMAIL_KEY:
        return False
    local, _, domain = email_key.partition("@")
    return bool(local and domain)


def _dedupe(values: List[str]) -> List[str]:
    seen: List[str] = []
    for v in values:
        s = str(v).strip()
        if s and s not in seen:
            seen.append(s)
    return seen


class UserProfile(BaseModel):
    hba1c_percent: float = Field(6.5, ge=4, le=14)
    fasting_glucose_mg_dl: float = Field(110, ge=60, le=300)
    post_meal_target_mg_dl: float = Field(160, ge=120, le=250)
    conditions: List[str] = Field(default_factory=list, description="Condition ids, display order")

    @field_validator("conditions")
    @classmethod
    def _unique_conditions(cls, value: List[str]) -> List[str]:
        # Stored profiles may carry ids a later build no longer knows; drop them.
        return [c for c in _dedupe(value) if c in CONDITION_IDS]


class ProfileUpdate(BaseModel):
    """Partial profile; unset fields leave the current value in place."""

    hba1c_percent: Optional[float] = Field(None, ge=4, le=14)
    fasting_glucose_mg_dl: Optional[float] = Field(None, ge=60, le=300)
    post_meal_target_mg_dl: Optional[float] = Field(None, ge=120, le=250)
    conditions: Optional[List[str]] = None

    @field_validator("conditions")
    @classmethod
    def _known_conditions(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        unknown = [c for c in value if c not in CONDITION_IDS]
        if unknown:
            raise ValueError(f"Unknown condition id: {unknown[0]}")
        return _dedupe(value)


def merge_profile(profile: UserProfile, update: ProfileUpdate) -> UserProfile:
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    return UserProfile.model_validate({**profile.model_dump(), **changes})


class Account(BaseModel):
    email_key: str
    credential: str = ""
    # None when the stored entry carries no readable profile.
    profile: Optional[UserProfile] = None
    history: List[ScanRecord] = Field(default_factory=list)
