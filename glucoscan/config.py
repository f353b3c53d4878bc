# -*- coding: utf-8 -*-
"""Centralized configuration, read from environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

HISTORY_CAP = 50


def _flag(value: str | None) -> bool:
    return (value or "").strip() in {"1", "true", "True", "yes"}


class Settings:
    """Settings for the local store, the AI service and the local API."""

    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent
        repo_root = base_dir.parent
        data_root_default = repo_root / "data"

        # ---- Local key-value store ----
        self.data_root: Path = Path(
            os.environ.get("GLUCOSCAN_DATA_ROOT") or data_root_default
        ).expanduser()
        self.db_path: Path = Path(
            os.environ.get("GLUCOSCAN_DB_PATH") or (self.data_root / "glucoscan.db")
        ).expanduser()
        # May lower the ledger cap, never raise it.
        self.history_limit: int = min(int(os.environ.get("GLUCOSCAN_HISTORY_LIMIT") or HISTORY_CAP), HISTORY_CAP)
        self.default_language: str = os.environ.get("GLUCOSCAN_DEFAULT_LANGUAGE") or "ko"
        # Off keeps the snapshot persisted on every login whatever the user picked.
        self.honor_stay_signed_in: bool = _flag(os.environ.get("GLUCOSCAN_HONOR_STAY_SIGNED_IN"))
        self.credential_scheme: str = (os.environ.get("GLUCOSCAN_CREDENTIAL_SCHEME") or "plain").strip().lower()

        # ---- AI service (OpenAI-compatible chat completions) ----
        self.llm_api_key: str | None = os.environ.get("GLUCOSCAN_LLM_API_KEY")
        self.llm_base_url: str = os.environ.get(
            "GLUCOSCAN_LLM_BASE_URL", "https://dashscope.aliyuncs.com/compatible-mode/v1"
        )
        self.llm_model: str = os.environ.get("GLUCOSCAN_LLM_MODEL", "qwen-vl-plus")
        self.llm_timeout: float = float(os.environ.get("GLUCOSCAN_LLM_TIMEOUT", "30"))
        self.llm_temperature: float = float(os.environ.get("GLUCOSCAN_LLM_TEMPERATURE", "0.2"))
        self.llm_max_tokens: int = int(os.environ.get("GLUCOSCAN_LLM_MAX_TOKENS", "2048"))

        # ---- Local API ----
        self.max_image_bytes: int = int(os.environ.get("GLUCOSCAN_MAX_IMAGE_BYTES") or "1500000")
        cors = os.environ.get("GLUCOSCAN_CORS_ORIGINS", "*")
        if cors.strip() == "*":
            self.cors_origins: List[str] = ["*"]
        else:
            self.cors_origins = [
                origin.strip() for origin in cors.split(",") if origin.strip()
            ]


settings = Settings()
