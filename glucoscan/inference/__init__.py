# -*- coding: utf-8 -*-
"""External AI capabilities: food analysis, meal recommendation, translation."""

from .client import ChatClient, resolve_llm_settings
from .service import GlucoseInference

__all__ = ["ChatClient", "GlucoseInference", "resolve_llm_settings"]
