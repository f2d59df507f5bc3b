"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "holdover-timer"
    debug: bool = False
    log_level: str = "INFO"

    # Timer
    tick_period_seconds: float = 1.0
    suspension_threshold_seconds: float = 10.0
    progress_ceiling: float = 1.2
    max_session_seconds: float = 4 * 3600.0

    # Publication budget (supplied by the remote channel)
    publication_budget_pushes: int = 60
    publication_window_seconds: float = 3600.0
    minimum_push_interval_seconds: float = 15.0
    forced_push_reserve: int = 6
    dismissal_grace_seconds: float = 120.0

    # Preferences
    default_data_source: str = "FAA"
    default_temperature_unit: str = "C"

    # Reference tables
    threshold_table_path: str | None = None

    model_config = {"env_prefix": "HOT_"}


settings = Settings()
