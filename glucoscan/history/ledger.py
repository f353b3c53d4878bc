# -*- coding: utf-8 -*-
"""History ledger: newest-first scan records, capped per account or guest."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Iterable, List, Optional
from uuid import uuid4

from pydantic import ValidationError

from ..config import HISTORY_CAP, settings
from .models import FoodImpact, ScanRecord

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "https://img.icons8.com/ios-filled/100/3b82f6/restaurant.png"


def image_data_url(mime: str, image_bytes: bytes) -> str:
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime};base64,{b64}"


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_scan_record(impact: FoodImpact, image: Optional[str], *, now_ms: Optional[int] = None) -> ScanRecord:
    ts = now_ms if now_ms is not None else _now_ms()
    return ScanRecord(
        id=f"{ts}-{uuid4().hex[:8]}",
        timestamp=ts,
        image=image or PLACEHOLDER_IMAGE,
        data=impact,
    )


def prepend(history: Iterable[ScanRecord], record: ScanRecord, limit: Optional[int] = None) -> List[ScanRecord]:
    cap = min(settings.history_limit if limit is None else limit, HISTORY_CAP)
    return [record, *history][:cap]


def load_history(raw: Any) -> List[ScanRecord]:
    """Decode a persisted history list; undecodable entries are dropped."""
    if not isinstance(raw, list):
        return []
    records: List[ScanRecord] = []
    for item in raw:
        try:
            records.append(ScanRecord.model_validate(item))
        except ValidationError as exc:
            logger.warning("Dropping unreadable scan record: %s", exc.errors()[:1])
    return records


def dump_history(history: Iterable[ScanRecord]) -> List[dict]:
    return [r.model_dump(mode="json") for r in history]


def matching(history: Iterable[ScanRecord], term: str) -> List[ScanRecord]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(history)
    return [r for r in history if needle in r.data.name.lower()]
