"""Tests for environment-driven Settings."""

from holdover.config import Settings


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.progress_ceiling == 1.2
        assert s.publication_budget_pushes == 60
        assert s.max_session_seconds == 14400.0
        assert s.threshold_table_path is None

    def test_env_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("HOT_TICK_PERIOD_SECONDS", "0.5")
        monkeypatch.setenv("HOT_DEFAULT_DATA_SOURCE", "TCA")
        s = Settings()
        assert s.tick_period_seconds == 0.5
        assert s.default_data_source == "TCA"
