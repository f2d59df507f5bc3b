"""Remote surface WebSocket — the production DisplayChannel.

Architecture:
    TickLoop → controller → scheduler → WebSocketDisplayChannel
                                              ↓
    surface  ←  /ws/surface  ←  SurfaceConnectionManager.broadcast

Messages sent to surfaces:
    {"type": "snapshot", "snapshot": {...camelCase...}}
    {"type": "end", "snapshot": {...} | null, "graceSeconds": n}
    {"type": "dismiss"}

A surface that connects mid-session is sent the last snapshot straight
away.  The channel enforces its own push budget; the scheduler is expected
to stay inside it, so a RateLimited here means the two disagree.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from holdover.domain.snapshot import HoldoverSnapshot, SessionAttributes
from holdover.foundation.identifiers import new_handle
from holdover.publish.channel import (
    DismissalPolicy,
    DisplayChannel,
    PushBudget,
    RateLimited,
    SessionEnded,
)
from holdover.publish.window import RollingWindow, TimeFn

logger = logging.getLogger(__name__)


class SurfaceConnectionManager:
    """Tracks connected surfaces and broadcasts channel messages."""

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._last_message: dict[str, Any] | None = None

    # ── Client management ────────────────────────────────────────────

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._lock:
            self._clients.add(ws)
            replay = self._last_message
        logger.info("Surface connected (%d total)", len(self._clients))
        if replay is not None:
            await ws.send_text(json.dumps(replay))

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(ws)
        logger.info("Surface disconnected (%d remaining)", len(self._clients))

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def last_message(self) -> dict[str, Any] | None:
        return self._last_message

    # ── Broadcast ────────────────────────────────────────────────────

    async def broadcast(self, payload: dict[str, Any], *, retain: bool = True) -> int:
        """Send ``payload`` to every surface; returns how many received it.

        A retained payload is replayed to surfaces that connect later.
        """
        message = json.dumps(payload)
        dead: set[WebSocket] = set()

        async with self._lock:
            self._last_message = payload if retain else None
            clients = set(self._clients)

        delivered = 0
        for ws in clients:
            try:
                await ws.send_text(message)
                delivered += 1
            except Exception:
                dead.add(ws)

        if dead:
            async with self._lock:
                self._clients -= dead
            logger.info("Removed %d dead surface client(s)", len(dead))
        return delivered


class WebSocketDisplayChannel(DisplayChannel):
    """DisplayChannel that fans snapshots out over ``/ws/surface``."""

    def __init__(
        self,
        manager: SurfaceConnectionManager,
        budget: PushBudget,
        *,
        now_fn: TimeFn | None = None,
    ) -> None:
        self._manager = manager
        self._budget = budget
        self._window = RollingWindow(
            limit=budget.pushes,
            window_seconds=budget.window_seconds,
            now_fn=now_fn,
        )
        self._handle: str | None = None
        self._dismissal: asyncio.Task | None = None

    @property
    def budget(self) -> PushBudget:
        return self._budget

    @property
    def manager(self) -> SurfaceConnectionManager:
        return self._manager

    async def open_session(self, attributes: SessionAttributes) -> str:
        self._cancel_dismissal()
        self._handle = new_handle()
        logger.info(
            "Surface session %s opened for %s (%d surface(s) connected)",
            self._handle,
            attributes.session_id,
            self._manager.client_count,
        )
        return self._handle

    async def push(self, handle: str, snapshot: HoldoverSnapshot) -> None:
        self._require(handle)
        self._consume()
        delivered = await self._manager.broadcast(
            {"type": "snapshot", "snapshot": snapshot.to_wire()}
        )
        logger.debug("Broadcast v%d to %d surface(s)", snapshot.version, delivered)

    async def end_session(
        self,
        handle: str,
        final_snapshot: HoldoverSnapshot | None,
        policy: DismissalPolicy,
    ) -> None:
        self._require(handle)
        if final_snapshot is not None:
            self._consume()
        self._handle = None
        await self._manager.broadcast({
            "type": "end",
            "snapshot": final_snapshot.to_wire() if final_snapshot else None,
            "graceSeconds": policy.grace_seconds,
        })
        if policy.grace_seconds <= 0:
            await self._dismiss()
        else:
            self._dismissal = asyncio.create_task(self._dismiss_after(policy.grace_seconds))

    async def close(self) -> None:
        """Cancel a pending dismissal; used at shutdown."""
        task = self._cancel_dismissal()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Internals ────────────────────────────────────────────────────

    def _require(self, handle: str) -> None:
        if handle != self._handle:
            raise SessionEnded(f"surface session {handle} is not open")

    def _consume(self) -> None:
        if not self._window.has_capacity():
            raise RateLimited(self._window.retry_in())
        self._window.record()

    async def _dismiss_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        await self._dismiss()

    async def _dismiss(self) -> None:
        await self._manager.broadcast({"type": "dismiss"}, retain=False)
        logger.info("Surface dismissed")

    def _cancel_dismissal(self) -> asyncio.Task | None:
        task, self._dismissal = self._dismissal, None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None


# ── WebSocket endpoint ───────────────────────────────────────────────────


def create_surface_router(manager: SurfaceConnectionManager) -> APIRouter:
    """Factory that creates the remote surface WebSocket endpoint."""

    router = APIRouter()

    @router.websocket("/ws/surface")
    async def surface_ws(websocket: WebSocket) -> None:
        await manager.connect(websocket)
        try:
            # Surfaces only listen; anything they send is a keep-alive
            while True:
                data = await websocket.receive_text()
                if data.strip().lower() == "ping":
                    await websocket.send_text("pong")
        except WebSocketDisconnect:
            await manager.disconnect(websocket)

    return router
