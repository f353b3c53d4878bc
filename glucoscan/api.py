# -*- coding: utf-8 -*-
"""Local API for the UI layer.

One running instance serves exactly one active session, so the manager lives
on ``app.state`` rather than being looked up per request.
"""

from __future__ import annotations

import base64
import binascii
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .accounts.models import ProfileUpdate, UserProfile
from .config import settings
from .errors import (
    AccountNotFound,
    ActionInProgress,
    DuplicateAccount,
    EmptyCredential,
    ExternalCapabilityFailure,
    GlucoscanError,
    InvalidCredential,
    NotSignedIn,
    PasswordMismatch,
    ResetNotStarted,
    UnknownCondition,
    UnsupportedLanguage,
)
from .history.models import (
    FoodImpact,
    HistoryResponse,
    ImageScanRequest,
    SearchRequest,
    TextScanRequest,
)
from .inference import GlucoseInference
from .kv_store import KeyValueStore
from .localization.sync import ContentLocalizationSynchronizer
from .plans.models import PlanRefreshRequest, PlanResponse
from .session.manager import SessionManager
from .session.models import (
    LanguageRequest,
    LoginRequest,
    ResetCompleteRequest,
    ResetRequest,
    SessionView,
    SignupRequest,
)

logger = logging.getLogger(__name__)

_STATUS = {
    DuplicateAccount: 400,
    PasswordMismatch: 400,
    EmptyCredential: 400,
    UnsupportedLanguage: 400,
    UnknownCondition: 400,
    InvalidCredential: 401,
    NotSignedIn: 401,
    AccountNotFound: 404,
    ResetNotStarted: 409,
    ActionInProgress: 409,
    ExternalCapabilityFailure: 502,
}

router = APIRouter(prefix="/api")


def get_manager(request: Request) -> SessionManager:
    return request.app.state.manager


def get_synchronizer(request: Request) -> ContentLocalizationSynchronizer:
    return request.app.state.synchronizer


def _session_view(manager: SessionManager) -> SessionView:
    session = manager.session
    return SessionView(
        state=manager.state,
        email=session.email_key if session else None,
        is_guest=bool(session and session.is_guest),
        profile=session.profile if session else None,
        history_count=len(manager.history),
        language=manager.language,
        busy=manager.activity.snapshot(),
        current_result=manager.current_result,
        reset_phase=manager.password_reset.phase,
    )


def _decode_image_or_400(image_base64: str, max_bytes: int) -> bytes:
    try:
        data = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid base64 image: {exc}") from exc
    if len(data) > max_bytes:
        raise HTTPException(status_code=400, detail=f"Image too large: {len(data)} bytes > {max_bytes}")
    return data


# ---- auth ----


@router.get("/session", response_model=SessionView, summary="Current session state")
def session_state(manager: SessionManager = Depends(get_manager)):
    return _session_view(manager)


@router.post("/auth/signup", response_model=SessionView, summary="Register and sign in")
def signup(request: SignupRequest, manager: SessionManager = Depends(get_manager)):
    manager.signup(request.email, request.password, request.confirm_password, request.stay_signed_in)
    return _session_view(manager)


@router.post("/auth/login", response_model=SessionView, summary="Sign in")
def login(request: LoginRequest, manager: SessionManager = Depends(get_manager)):
    manager.login(request.email, request.password, request.stay_signed_in)
    return _session_view(manager)


@router.post("/auth/guest", response_model=SessionView, summary="Continue as guest")
def guest(manager: SessionManager = Depends(get_manager)):
    manager.guest_login()
    return _session_view(manager)


@router.post("/auth/logout", response_model=SessionView, summary="Sign out")
def logout(manager: SessionManager = Depends(get_manager)):
    manager.logout()
    return _session_view(manager)


@router.post("/auth/reset/request", summary="Password reset, step 1: verify email")
def reset_request(request: ResetRequest, manager: SessionManager = Depends(get_manager)):
    manager.begin_password_reset(request.email)
    return {"status": "verified", "phase": manager.password_reset.phase}


@router.post("/auth/reset/complete", summary="Password reset, step 2: set new password")
def reset_complete(request: ResetCompleteRequest, manager: SessionManager = Depends(get_manager)):
    manager.complete_password_reset(request.new_password)
    return {"status": "ok", "phase": manager.password_reset.phase}


# ---- profile ----


@router.patch("/profile", response_model=UserProfile, summary="Update health profile fields")
def update_profile(request: ProfileUpdate, manager: SessionManager = Depends(get_manager)):
    return manager.update_profile(request)


@router.post("/profile/conditions/{condition_id}", response_model=UserProfile, summary="Toggle a condition")
def toggle_condition(condition_id: str, manager: SessionManager = Depends(get_manager)):
    return manager.toggle_condition(condition_id)


# ---- scans ----


@router.post("/scan/image", response_model=Optional[FoodImpact], summary="Analyze a food photo")
async def scan_image(request: ImageScanRequest, manager: SessionManager = Depends(get_manager)):
    image_bytes = _decode_image_or_400(request.image_base64, max_bytes=settings.max_image_bytes)
    return await manager.analyze_image(image_bytes, request.image_mime)


@router.post("/scan/text", response_model=Optional[FoodImpact], summary="Analyze a recipe text")
async def scan_text(request: TextScanRequest, manager: SessionManager = Depends(get_manager)):
    return await manager.analyze_text(request.text)


@router.post("/scan/search", response_model=Optional[FoodImpact], summary="Look up a food by name")
async def scan_search(request: SearchRequest, manager: SessionManager = Depends(get_manager)):
    return await manager.search_food(request.term)


@router.get("/history", response_model=HistoryResponse, summary="Scan history, newest first")
def history(q: Optional[str] = Query(None), manager: SessionManager = Depends(get_manager)):
    records = manager.history_matching(q) if q else manager.history
    return HistoryResponse(count=len(records), records=records)


# ---- plan ----


@router.get("/plan", response_model=PlanResponse, summary="Current meal plan")
def plan(manager: SessionManager = Depends(get_manager)):
    return PlanResponse(items=manager.plan)


@router.post("/plan/refresh", response_model=PlanResponse, summary="Generate a new meal plan")
async def refresh_plan(request: PlanRefreshRequest, manager: SessionManager = Depends(get_manager)):
    await manager.refresh_plan(request.current_glucose)
    return PlanResponse(items=manager.plan)


# ---- language ----


@router.put("/language", response_model=SessionView, summary="Change display language")
async def change_language(
    request: LanguageRequest,
    manager: SessionManager = Depends(get_manager),
    synchronizer: ContentLocalizationSynchronizer = Depends(get_synchronizer),
):
    await synchronizer.change_language(request.language)
    return _session_view(manager)


async def _glucoscan_error_handler(request: Request, exc: GlucoscanError) -> JSONResponse:
    status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def build_manager() -> SessionManager:
    manager = SessionManager(KeyValueStore(settings.db_path), inference=GlucoseInference())
    manager.restore()
    return manager


def create_app(manager: SessionManager | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.manager is None:
            app.state.manager = build_manager()
            app.state.synchronizer = ContentLocalizationSynchronizer(app.state.manager)
            logger.info("Session restored: %s", app.state.manager.state.value)
        yield

    app = FastAPI(
        title="GlucoScan local API",
        description="Accounts, sessions, scan history and meal plans for the glucose impact scanner.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.manager = manager
    app.state.synchronizer = ContentLocalizationSynchronizer(manager) if manager else None
    app.add_exception_handler(GlucoscanError, _glucoscan_error_handler)
    app.include_router(router)
    return app


app = create_app()
