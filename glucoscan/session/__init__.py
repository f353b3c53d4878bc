# -*- coding: utf-8 -*-
"""Session: the single active identity and everything that mutates it."""

from .manager import SessionManager
from .models import Session, SessionState

__all__ = ["Session", "SessionManager", "SessionState"]
