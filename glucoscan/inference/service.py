# -*- coding: utf-8 -*-
"""The three AI capabilities the session layer consumes.

Any transport, output-parsing or validation failure is raised as
`ExternalCapabilityFailure`; nothing here touches local state.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..accounts.models import UserProfile
from ..errors import ExternalCapabilityFailure
from ..history.ledger import image_data_url
from ..history.models import FoodImpact, TranslatedText
from ..plans.models import MealRecommendation
from .client import ChatClient
from .parsing import normalize_impact, normalize_recommendations, parse_json_output
from .prompts import SYSTEM_PROMPT, analysis_prompt, recommendation_prompt, translation_prompt

logger = logging.getLogger(__name__)


class GlucoseInference:
    def __init__(self, client: ChatClient | None = None) -> None:
        self.client = client or ChatClient()

    async def _ask(self, capability: str, user_content: Any, *, expect: type = dict) -> Any:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]
        try:
            content = await self.client.complete(messages)
        except httpx.HTTPError as exc:
            logger.warning("%s call failed: %s", capability, exc)
            raise ExternalCapabilityFailure(capability, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise ExternalCapabilityFailure(capability, f"unreadable response: {exc}") from exc
        if not content:
            raise ExternalCapabilityFailure(capability, "empty model output")
        try:
            return parse_json_output(content, expect=expect)
        except ValueError as exc:
            logger.warning("%s output parse failed: %s", capability, exc)
            raise ExternalCapabilityFailure(capability, str(exc)) from exc

    async def analyze(
        self,
        *,
        language: str,
        mode: str = "food",
        profile: Optional[UserProfile] = None,
        image: Optional[bytes] = None,
        image_mime: str = "image/jpeg",
        text: Optional[str] = None,
    ) -> FoodImpact:
        parts: List[Dict[str, Any]] = [
            {"type": "text", "text": analysis_prompt(mode=mode, profile=profile, language=language)}
        ]
        if image:
            parts.append({"type": "image_url", "image_url": {"url": image_data_url(image_mime, image)}})
        if text:
            parts.append({"type": "text", "text": f"Target Recipe/Text Content:\n{text}"})

        parsed = await self._ask("analysis", parts)
        try:
            return FoodImpact.model_validate(normalize_impact(parsed, mode))
        except (TypeError, ValueError) as exc:
            raise ExternalCapabilityFailure("analysis", f"invalid result: {exc}") from exc

    async def recommend(
        self,
        *,
        profile: UserProfile,
        language: str,
        current_glucose: Optional[float] = None,
    ) -> List[MealRecommendation]:
        prompt = recommendation_prompt(profile=profile, language=language, current_glucose=current_glucose)
        parsed = await self._ask("recommendation", prompt, expect=list)
        try:
            return [MealRecommendation.model_validate(r) for r in normalize_recommendations(parsed)]
        except (TypeError, ValueError) as exc:
            raise ExternalCapabilityFailure("recommendation", f"invalid result: {exc}") from exc

    async def translate(self, *, impact: FoodImpact, language: str) -> TranslatedText:
        parsed = await self._ask("translation", translation_prompt(impact=impact, language=language))
        try:
            return TranslatedText.model_validate(parsed)
        except (TypeError, ValueError) as exc:
            raise ExternalCapabilityFailure("translation", f"invalid result: {exc}") from exc
