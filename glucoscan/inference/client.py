# -*- coding: utf-8 -*-
"""OpenAI-compatible chat completions client (async, bounded timeout)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings


@dataclass(frozen=True)
class LLMSettings:
    base_url: str
    api_key: Optional[str]
    model: str
    timeout: float
    temperature: float
    max_tokens: int


def resolve_llm_settings() -> LLMSettings:
    return LLMSettings(
        base_url=settings.llm_base_url.rstrip("/"),
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        timeout=settings.llm_timeout,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )


def _completions_url(base_url: str) -> str:
    base = base_url.rstrip("/")
    if base.endswith("/chat/completions"):
        return base
    return f"{base}/chat/completions"


def extract_message_text(data: object) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list):
        return ""
    out: list[str] = []
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        msg = choice.get("message")
        if isinstance(msg, dict):
            content = msg.get("content")
            if isinstance(content, str):
                out.append(content)
            elif isinstance(content, list):
                out.extend(
                    part.get("text", "")
                    for part in content
                    if isinstance(part, dict) and isinstance(part.get("text"), str)
                )
    return "".join(out).strip()


class ChatClient:
    """Sends one chat completion request per call; no retries."""

    def __init__(
        self,
        cfg: LLMSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cfg = cfg or resolve_llm_settings()
        self._transport = transport

    async def complete(self, messages: List[Dict[str, Any]], *, json_mode: bool = True) -> str:
        payload: Dict[str, Any] = {
            "model": self.cfg.model,
            "messages": messages,
            "temperature": self.cfg.temperature,
            "max_tokens": self.cfg.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        headers = {"Content-Type": "application/json"}
        if self.cfg.api_key:
            headers["Authorization"] = f"Bearer {self.cfg.api_key}"

        async with httpx.AsyncClient(timeout=self.cfg.timeout, transport=self._transport) as client:
            resp = await client.post(_completions_url(self.cfg.base_url), headers=headers, json=payload)
            resp.raise_for_status()
            data = resp.json()
        return extract_message_text(data)
