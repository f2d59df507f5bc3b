"""holdover-timer — Hold-Over Time countdown with remote surface publication.

This is the application entry point.  It wires the controller, the tick
loop, the remote surface channel and the HTTP/WebSocket endpoints together.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from holdover.api.session import create_preferences_router, create_session_router
from holdover.api.ws_surface import (
    SurfaceConnectionManager,
    WebSocketDisplayChannel,
    create_surface_router,
)
from holdover.config import Settings, settings as default_settings
from holdover.core.controller import HoldoverController
from holdover.core.tick_loop import TickLoop
from holdover.domain.preferences import UserPreferences
from holdover.publish.channel import DisplayChannel, PushBudget
from holdover.reference.base import ThresholdSource
from holdover.reference.table import TableThresholdSource

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=default_settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    channel: DisplayChannel | None = None,
    threshold_source: ThresholdSource | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Configuration; defaults to the environment-loaded settings.
        channel: Display channel; defaults to the /ws/surface broadcast channel.
        threshold_source: Reference lookup; defaults to the table at
            ``settings.threshold_table_path`` when one is configured.
    """
    settings = settings or default_settings

    # ── Preferences ──────────────────────────────────────────────────────
    preferences = UserPreferences(
        data_source=settings.default_data_source,
        temperature_unit=settings.default_temperature_unit,
    )

    # ── Reference tables ─────────────────────────────────────────────────
    if threshold_source is None and settings.threshold_table_path:
        threshold_source = TableThresholdSource.from_json(
            settings.threshold_table_path, preferences.data_source
        )

    # ── Remote surface ───────────────────────────────────────────────────
    surface_manager = SurfaceConnectionManager()
    if channel is None:
        channel = WebSocketDisplayChannel(
            surface_manager,
            PushBudget(
                pushes=settings.publication_budget_pushes,
                window_seconds=settings.publication_window_seconds,
            ),
        )

    # ── Controller ───────────────────────────────────────────────────────
    controller = HoldoverController(
        channel,
        settings,
        threshold_source=threshold_source,
        preferences=preferences,
    )
    tick_loop = TickLoop(controller, settings.tick_period_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tick_loop.start()
        try:
            yield
        finally:
            await tick_loop.stop()
            if isinstance(channel, WebSocketDisplayChannel):
                await channel.close()

    app = FastAPI(
        title=settings.app_name,
        description="Hold-over time countdown with rate-limited remote surface publication",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.controller = controller
    app.state.tick_loop = tick_loop
    app.state.preferences = preferences

    # ── Routes ───────────────────────────────────────────────────────────
    app.include_router(create_session_router(controller))
    app.include_router(create_preferences_router(preferences, preferences))
    app.include_router(create_surface_router(surface_manager))

    # ── Health ───────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict:
        status = controller.status()
        return {
            "status": "ok",
            "phase": status["phase"],
            "zone": status["zone"],
            "degraded": bool(status["publication"] and status["publication"]["degraded"]),
            "tick_loop_running": tick_loop.running,
            "tick_failures": tick_loop.failures,
            "surfaces_connected": surface_manager.client_count,
            "reference": threshold_source.source_name if threshold_source else None,
        }

    return app


app = create_app()
