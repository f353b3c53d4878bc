# -*- coding: utf-8 -*-
"""Plan cache: last generated plan per registered account."""

from __future__ import annotations

import logging
from typing import Iterable, List

from pydantic import ValidationError

from ..accounts.models import GUEST_EMAIL_KEY
from ..kv_store import KeyValueStore, plan_cache_key
from .models import MealRecommendation

logger = logging.getLogger(__name__)


class PlanCache:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def load(self, email_key: str) -> List[MealRecommendation]:
        if email_key == GUEST_EMAIL_KEY:
            return []
        raw = self.store.get(plan_cache_key(email_key), [])
        if not isinstance(raw, list):
            return []
        plans: List[MealRecommendation] = []
        for item in raw:
            try:
                plans.append(MealRecommendation.model_validate(item))
            except ValidationError:
                logger.warning("Dropping unreadable cached plan for %s", email_key)
        return plans

    def save(self, email_key: str, plans: Iterable[MealRecommendation]) -> None:
        if email_key == GUEST_EMAIL_KEY:
            return
        self.store.set(plan_cache_key(email_key), [p.model_dump(mode="json") for p in plans])
