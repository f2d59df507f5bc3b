"""REST endpoints for the hold-over session and user preferences.

Paths:
    POST /api/session            start (explicit thresholds or reference lookup)
    POST /api/session/pause      pause
    POST /api/session/resume     resume
    POST /api/session/end        end, with optional dismissal override
    POST /api/session/reset      discard an ended session
    GET  /api/session            local status
    GET  /api/preferences        read preferences
    PUT  /api/preferences        update preferences (writable only)

Errors map to status codes: ConfigurationError → 422, StateError → 409.
Every response carries the local truth, even while publication to the
remote surface is degraded.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from holdover.core.controller import HoldoverController
from holdover.core.timer import StateError
from holdover.domain.preferences import HoldoverConfiguration, MutableConfiguration
from holdover.domain.thresholds import ConfigurationError
from holdover.models import EndSessionRequest, PreferencesUpdate, StartSessionRequest
from holdover.publish.channel import DismissalPolicy

logger = logging.getLogger(__name__)


def create_session_router(controller: HoldoverController) -> APIRouter:
    """Factory that wires the session endpoints to a controller."""

    router = APIRouter(prefix="/api/session", tags=["session"])

    @router.post("")
    async def start_session(body: StartSessionRequest) -> dict[str, Any]:
        try:
            metadata = body.to_metadata(controller.preferences)
            if body.use_reference:
                snapshot = await controller.start_from_reference(metadata)
            else:
                snapshot = await controller.start_session(
                    body.assured_seconds, body.limit_seconds, metadata
                )
        except (ConfigurationError, ValidationError) as exc:
            logger.warning("Session start rejected: %s", exc)
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except StateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"status": "started", "snapshot": snapshot.to_wire()}

    @router.post("/pause")
    async def pause_session() -> dict[str, Any]:
        try:
            snapshot = controller.pause()
        except StateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"status": "paused", "snapshot": snapshot.to_wire()}

    @router.post("/resume")
    async def resume_session() -> dict[str, Any]:
        try:
            snapshot = controller.resume()
        except StateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"status": "running", "snapshot": snapshot.to_wire()}

    @router.post("/end")
    async def end_session(body: EndSessionRequest | None = None) -> dict[str, Any]:
        policy = None
        if body is not None:
            if body.immediate:
                policy = DismissalPolicy.immediate()
            elif body.grace_seconds is not None:
                policy = DismissalPolicy.after(body.grace_seconds)
        try:
            snapshot = await controller.end_session(policy)
        except StateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"status": "ended", "snapshot": snapshot.to_wire()}

    @router.post("/reset")
    async def reset_session() -> dict[str, Any]:
        try:
            controller.reset()
        except StateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"status": "idle"}

    @router.get("")
    async def session_status() -> dict[str, Any]:
        return controller.status()

    return router


def create_preferences_router(
    preferences: HoldoverConfiguration,
    writer: MutableConfiguration | None = None,
) -> APIRouter:
    """Factory for the preferences endpoints.

    Updates go through ``writer``.  Without one the preferences are
    read-only and PUT answers 405.
    """

    router = APIRouter(prefix="/api/preferences", tags=["preferences"])

    def _as_dict() -> dict[str, Any]:
        return {**preferences.to_dict(), "writable": writer is not None}

    @router.get("")
    async def read_preferences() -> dict[str, Any]:
        return _as_dict()

    @router.put("")
    async def update_preferences(body: PreferencesUpdate) -> dict[str, Any]:
        if writer is None:
            raise HTTPException(status_code=405, detail="preferences are read-only")
        if body.data_source is not None:
            writer.set_data_source(body.data_source)
        if body.temperature_unit is not None:
            writer.set_temperature_unit(body.temperature_unit)
        return _as_dict()

    return router
