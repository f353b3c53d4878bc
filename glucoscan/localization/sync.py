# -*- coding: utf-8 -*-
"""Re-translate the displayed result when the display language changes.

Only the live view changes: name, portion and summary are replaced on the
shown result, while the stored scan record keeps the text it was analyzed in.
"""

from __future__ import annotations

import logging

from ..errors import ExternalCapabilityFailure
from ..session.activity import ActionKind
from ..session.manager import SessionManager

logger = logging.getLogger(__name__)


class ContentLocalizationSynchronizer:
    def __init__(self, manager: SessionManager, translator=None) -> None:
        self.manager = manager
        self.translator = translator or manager.inference

    async def change_language(self, language: str) -> bool:
        """Returns True when the displayed result was re-translated."""
        manager = self.manager
        changed = manager.set_language(language)
        shown = manager.current_result
        if not changed or shown is None:
            return False
        if manager.activity.is_busy(ActionKind.translating):
            logger.info("Translation already running; %s result left as is", language)
            return False

        with manager.activity.track(ActionKind.translating):
            epoch = manager.epoch
            try:
                text = await self.translator.translate(impact=shown, language=language)
            except ExternalCapabilityFailure as exc:
                logger.warning("Keeping untranslated result: %s", exc)
                return False

        if epoch != manager.epoch or manager.current_result is not shown or manager.language != language:
            logger.info("Dropping translation: displayed result changed while it was running")
            return False
        manager.replace_displayed_result(
            shown.model_copy(update={"name": text.name, "portion": text.portion, "summary": text.summary})
        )
        return True
