# -*- coding: utf-8 -*-
"""Turn loosely formatted model output into validated models."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

_NUM_RE = re.compile(r"-?\d+(?:\.\d+)?")

_IMPACT_ALIASES = {
    "estimatedSpike": "estimated_spike",
    "spike": "estimated_spike",
    "riskLevel": "risk_level",
    "risk": "risk_level",
    "glucoseCurve": "glucose_curve",
    "curve": "glucose_curve",
    "scanType": "scan_type",
    "glycemicIndex": "gi",
    "glycemic_index": "gi",
}

_RECOMMENDATION_ALIASES = {
    "whyGood": "why_good",
    "why": "why_good",
    "mealType": "type",
    "meal_type": "type",
}


def _remove_trailing_commas(text: str) -> str:
    """Remove trailing commas while preserving string literals."""
    out: list[str] = []
    in_str = False
    escaped = False
    i = 0
    while i < len(text):
        ch = text[i]
        if in_str:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == "\"":
                in_str = False
            i += 1
            continue

        if ch == "\"":
            in_str = True
            out.append(ch)
            i += 1
            continue

        if ch == ",":
            j = i + 1
            while j < len(text) and text[j] in " \t\r\n":
                j += 1
            if j < len(text) and text[j] in "}]":
                i += 1
                continue

        out.append(ch)
        i += 1
    return "".join(out)


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned, flags=re.IGNORECASE)
    return re.sub(r"\s*```$", "", cleaned)


def _iter_candidates(text: str, opener: str) -> list[str]:
    """Balanced ``{...}`` or ``[...]`` spans, respecting string literals."""
    closer = "}" if opener == "{" else "]"
    cleaned = _strip_fences(text)
    candidates: list[str] = []
    in_str = False
    escaped = False
    depth = 0
    start_idx: int | None = None

    for i, ch in enumerate(cleaned):
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == "\"":
                in_str = False
            continue
        if ch == "\"":
            in_str = True
            continue
        if ch == opener:
            if depth == 0:
                start_idx = i
            depth += 1
        elif ch == closer and depth > 0:
            depth -= 1
            if depth == 0 and start_idx is not None:
                candidates.append(cleaned[start_idx : i + 1])
                start_idx = None
    return candidates


def _sanitize_json_like(text: str) -> str:
    cleaned = text.replace("“", "\"").replace("”", "\"")
    cleaned = _remove_trailing_commas(cleaned)
    cleaned = re.sub(r"\bNaN\b", "null", cleaned, flags=re.IGNORECASE)
    return re.sub(r"\b-?Infinity\b", "null", cleaned, flags=re.IGNORECASE)


def parse_json_output(content: str, *, expect: type = dict) -> Any:
    """Find the first JSON object (or array) in model output."""
    opener = "[" if expect is list else "{"
    last_error: Exception | None = None
    for candidate in _iter_candidates(content or "", opener):
        for attempt in (candidate, _sanitize_json_like(candidate)):
            try:
                parsed = json.loads(attempt)
            except ValueError as exc:
                last_error = exc
                continue
            if isinstance(parsed, expect):
                return parsed
    if expect is list:
        # Some models wrap the array: {"recommendations": [...]}.
        for obj in _iter_candidates(content or "", "{"):
            try:
                parsed = json.loads(_sanitize_json_like(obj))
            except ValueError as exc:
                last_error = exc
                continue
            if isinstance(parsed, dict):
                for value in parsed.values():
                    if isinstance(value, list):
                        return value
    raise ValueError(f"Failed to parse model JSON: {last_error or 'no JSON found'}")


def coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUM_RE.search(value.replace(",", ""))
        if match:
            return float(match.group(0))
    return None


def _rename(raw: Dict[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        target = aliases.get(key, key)
        if target not in out or key == target:
            out[target] = value
    return out


def _risk_level(value: Any) -> Any:
    if isinstance(value, str):
        v = value.strip().capitalize()
        if v in {"Low", "Medium", "High"}:
            return v
    return value


def normalize_impact(raw: Dict[str, Any], scan_type: str) -> Dict[str, Any]:
    data = _rename(raw, _IMPACT_ALIASES)
    for key in ("calories", "carbs", "gi", "estimated_spike"):
        data[key] = coerce_float(data.get(key))
    data["risk_level"] = _risk_level(data.get("risk_level"))
    raw_curve = data.get("glucose_curve")
    curve: List[Dict[str, float]] = []
    for point in raw_curve if isinstance(raw_curve, list) else []:
        if not isinstance(point, dict):
            continue
        t = coerce_float(point.get("time"))
        v = coerce_float(point.get("value"))
        if t is None or v is None or t < 0:
            continue
        curve.append({"time": t, "value": v})
    data["glucose_curve"] = curve
    data["scan_type"] = scan_type
    for key in ("name", "portion", "summary"):
        if data.get(key) is not None:
            data[key] = str(data[key]).strip()
    return data


def normalize_recommendations(raw: List[Any]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    if not isinstance(raw, list):
        return out
    for item in raw:
        if not isinstance(item, dict):
            continue
        data = _rename(item, _RECOMMENDATION_ALIASES)
        if isinstance(data.get("type"), str):
            data["type"] = data["type"].strip().capitalize()
        nutrients = data.get("nutrients") if isinstance(data.get("nutrients"), dict) else {}
        data["nutrients"] = {
            k: max(0.0, coerce_float(nutrients.get(k)) or 0.0)
            for k in ("carbs", "protein", "fat", "calories")
        }
        out.append(data)
    return out
