# -*- coding: utf-8 -*-
"""Session manager: the one controller that owns the active identity.

Every mutation goes through a method here that also performs the paired
persistence write. Registered users write through to the account directory and
the ``current-session`` snapshot; guests only touch ``guest-history``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union

from ..accounts.models import (
    CONDITION_IDS,
    GUEST_EMAIL_KEY,
    ProfileUpdate,
    UserProfile,
    merge_profile,
)
from ..accounts.storage import AccountDirectory
from ..config import settings
from ..errors import NotSignedIn, PasswordMismatch, UnknownCondition
from ..history import ledger
from ..history.models import FoodImpact, ScanRecord
from ..kv_store import GUEST_HISTORY_KEY, SESSION_KEY, KeyValueStore
from ..localization.storage import load_language, save_language
from ..plans.models import MealRecommendation
from ..plans.storage import PlanCache
from .activity import ActionKind, ActionTracker
from .models import Session, SessionState, decode_snapshot, encode_snapshot
from .reset import PasswordResetFlow

logger = logging.getLogger(__name__)

SEARCH_PREFIX = "Food Search: "


class SessionManager:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        directory: AccountDirectory | None = None,
        plan_cache: PlanCache | None = None,
        inference=None,
        verifier=None,
        honor_stay_signed_in: bool | None = None,
        history_limit: int | None = None,
    ) -> None:
        self.store = store
        self.directory = directory or AccountDirectory(store)
        self.plan_cache = plan_cache or PlanCache(store)
        self.inference = inference
        self.password_reset = PasswordResetFlow(self.directory, verifier)
        self.honor_stay_signed_in = (
            settings.honor_stay_signed_in if honor_stay_signed_in is None else honor_stay_signed_in
        )
        self.history_limit = settings.history_limit if history_limit is None else history_limit
        self.activity = ActionTracker()

        self.state = SessionState.logged_out
        self.session: Optional[Session] = None
        self.plan: List[MealRecommendation] = []
        self.current_result: Optional[FoodImpact] = None
        self.language = load_language(store)
        # Bumped on every identity switch; results from calls started under an
        # older epoch are dropped.
        self.epoch = 0
        self._preloaded_history: List[ScanRecord] = []

    # ---- read-side ----

    @property
    def profile(self) -> Optional[UserProfile]:
        return self.session.profile if self.session else None

    @property
    def history(self) -> List[ScanRecord]:
        if self.session:
            return self.session.history
        return self._preloaded_history

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.active_account, SessionState.active_guest)

    def history_matching(self, term: str) -> List[ScanRecord]:
        return ledger.matching(self.history, term)

    def _require_session(self) -> Session:
        if self.session is None or not self.is_active:
            raise NotSignedIn()
        return self.session

    # ---- persistence helpers ----

    def _load_guest_history(self) -> List[ScanRecord]:
        return ledger.load_history(self.store.get(GUEST_HISTORY_KEY, []))

    def _write_snapshot(self) -> None:
        session = self.session
        if session is None or session.is_guest or not session.persist:
            return
        self.store.set(SESSION_KEY, encode_snapshot(session))

    def _clear_memory(self) -> None:
        self.epoch += 1
        self.session = None
        self.plan = []
        self.current_result = None
        self._preloaded_history = []

    def _activate(self, session: Session) -> Session:
        self._clear_memory()
        self.session = session
        if session.is_guest:
            self.state = SessionState.active_guest
            return session
        self.state = SessionState.active_account
        self.plan = self.plan_cache.load(session.email_key)
        if session.persist:
            self._write_snapshot()
        else:
            self.store.remove(SESSION_KEY)
        return session

    # ---- startup ----

    def restore(self) -> SessionState:
        self._clear_memory()
        self.state = SessionState.logged_out
        raw = self.store.get_raw(SESSION_KEY)
        if raw is None:
            self._preloaded_history = self._load_guest_history()
            return self.state

        try:
            snapshot = decode_snapshot(json.loads(raw))
        except ValueError as exc:
            logger.warning("Discarding unreadable session snapshot: %s", exc)
            self.store.remove(SESSION_KEY)
            return self.state

        if snapshot.is_guest:
            if not snapshot.history:
                snapshot = snapshot.model_copy(update={"history": self._load_guest_history()})
            self._activate(snapshot)
            return self.state

        account = self.directory.load().get(snapshot.email_key)
        if account is None:
            logger.warning("Session snapshot for %s has no directory entry; signing out", snapshot.email_key)
            self.store.remove(SESSION_KEY)
            return self.state

        synced = Session(
            email_key=account.email_key,
            profile=account.profile or snapshot.profile,
            history=account.history or snapshot.history,
        )
        self._activate(synced)
        logger.info("Restored session for %s", synced.email_key)
        return self.state

    # ---- identity ----

    def login(self, email: str, credential: str, stay_signed_in: bool = True) -> Session:
        previous = self.state
        self.state = SessionState.authenticating
        try:
            account = self.directory.authenticate(email, credential)
        except Exception:
            self.state = previous
            raise
        persist = stay_signed_in if self.honor_stay_signed_in else True
        return self._activate(
            Session(
                email_key=account.email_key,
                profile=account.profile or UserProfile(),
                history=account.history,
                persist=persist,
            )
        )

    def signup(self, email: str, credential: str, confirm_credential: str, stay_signed_in: bool = True) -> Session:
        if credential != confirm_credential:
            raise PasswordMismatch()
        previous = self.state
        self.state = SessionState.authenticating
        try:
            account = self.directory.register(email, credential)
        except Exception:
            self.state = previous
            raise
        persist = stay_signed_in if self.honor_stay_signed_in else True
        return self._activate(
            Session(email_key=account.email_key, profile=UserProfile(), history=[], persist=persist)
        )

    def guest_login(self) -> Session:
        # A registered snapshot must not resurrect a different identity at next start.
        self.store.remove(SESSION_KEY)
        return self._activate(
            Session(email_key=GUEST_EMAIL_KEY, profile=UserProfile(), history=self._load_guest_history())
        )

    def logout(self) -> None:
        if self.session:
            logger.info("Signing out %s", self.session.email_key)
        self._clear_memory()
        self.state = SessionState.logged_out
        self.password_reset.cancel()
        self.store.remove(SESSION_KEY)

    def begin_password_reset(self, email: str) -> None:
        self.password_reset.request(email)

    def complete_password_reset(self, new_credential: str) -> None:
        self.password_reset.complete(new_credential)

    # ---- profile ----

    def update_profile(self, update: Union[ProfileUpdate, Dict[str, Any]]) -> UserProfile:
        session = self._require_session()
        if not isinstance(update, ProfileUpdate):
            update = ProfileUpdate.model_validate(update)
        profile = merge_profile(session.profile, update)
        self.session = session.model_copy(update={"profile": profile})
        if not self.session.is_guest:
            self.directory.upsert_profile(self.session.email_key, profile)
            self._write_snapshot()
        return profile

    def toggle_condition(self, condition_id: str) -> UserProfile:
        session = self._require_session()
        if condition_id not in CONDITION_IDS:
            raise UnknownCondition(condition_id)
        current = list(session.profile.conditions)
        if condition_id in current:
            current.remove(condition_id)
        else:
            current.append(condition_id)
        return self.update_profile(ProfileUpdate(conditions=current))

    # ---- history ----

    def record_scan(self, impact: FoodImpact, image: Optional[str] = None) -> ScanRecord:
        session = self._require_session()
        record = ledger.new_scan_record(impact, image)
        history = ledger.prepend(session.history, record, self.history_limit)
        self.session = session.model_copy(update={"history": history})
        if self.session.is_guest:
            self.store.set(GUEST_HISTORY_KEY, ledger.dump_history(history))
        else:
            self.directory.upsert_history(self.session.email_key, history)
            self._write_snapshot()
        return record

    async def _analyze(
        self,
        *,
        mode: str,
        record_image: Optional[str],
        image: Optional[bytes] = None,
        image_mime: str = "image/jpeg",
        text: Optional[str] = None,
    ) -> Optional[FoodImpact]:
        session = self._require_session()
        with self.activity.track(ActionKind.analyzing):
            epoch = self.epoch
            self.current_result = None
            impact = await self.inference.analyze(
                language=self.language,
                mode=mode,
                profile=session.profile,
                image=image,
                image_mime=image_mime,
                text=text,
            )
            if epoch != self.epoch:
                logger.info("Dropping analysis result: session changed while it was running")
                return None
            self.current_result = impact
            self.record_scan(impact, record_image)
            return impact

    async def analyze_image(self, image: bytes, image_mime: str = "image/jpeg") -> Optional[FoodImpact]:
        return await self._analyze(
            mode="food",
            image=image,
            image_mime=image_mime,
            record_image=ledger.image_data_url(image_mime, image),
        )

    async def analyze_text(self, text: str) -> Optional[FoodImpact]:
        if not (text or "").strip():
            return None
        return await self._analyze(mode="recipe", text=text, record_image=ledger.PLACEHOLDER_IMAGE)

    async def search_food(self, term: str) -> Optional[FoodImpact]:
        if not (term or "").strip():
            return None
        return await self._analyze(
            mode="food",
            text=f"{SEARCH_PREFIX}{term.strip()}",
            record_image=ledger.PLACEHOLDER_IMAGE,
        )

    # ---- plan ----

    async def refresh_plan(self, current_glucose: Optional[float] = None) -> Optional[List[MealRecommendation]]:
        session = self._require_session()
        with self.activity.track(ActionKind.generating_plan):
            epoch = self.epoch
            plans = await self.inference.recommend(
                profile=session.profile,
                language=self.language,
                current_glucose=current_glucose,
            )
            if epoch != self.epoch:
                logger.info("Dropping meal plan: session changed while it was generating")
                return None
            self.plan = list(plans)
            if not session.is_guest:
                self.plan_cache.save(session.email_key, self.plan)
            return self.plan

    # ---- display ----

    def set_language(self, language: str) -> bool:
        """Persist the display language; returns True when it changed."""
        save_language(self.store, language)
        changed = language != self.language
        self.language = language
        return changed

    def replace_displayed_result(self, impact: FoodImpact) -> None:
        self.current_result = impact
