# -*- coding: utf-8 -*-
"""Preferred display language."""

from __future__ import annotations

from ..config import settings
from ..inference.prompts import LANGUAGE_NAMES
from ..errors import UnsupportedLanguage
from ..kv_store import LANGUAGE_KEY, KeyValueStore

SUPPORTED_LANGUAGES = tuple(LANGUAGE_NAMES)


def load_language(store: KeyValueStore, default: str | None = None) -> str:
    fallback = default or settings.default_language
    value = store.get(LANGUAGE_KEY)
    if isinstance(value, str) and value in SUPPORTED_LANGUAGES:
        return value
    return fallback


def save_language(store: KeyValueStore, language: str) -> None:
    if language not in SUPPORTED_LANGUAGES:
        raise UnsupportedLanguage(language)
    store.set(LANGUAGE_KEY, language)
