"""Tests for zone classification and progress capping."""

import pytest

from holdover.core.zone_engine import (
    cap_progress,
    classify,
    escalate,
    zone_for_progress,
)
from holdover.domain.enums import Zone
from holdover.domain.thresholds import ThresholdSet

from tests.test_thresholds import _valid_thresholds


def _thresholds(**kw) -> ThresholdSet:
    return ThresholdSet.model_validate(_valid_thresholds(**kw))


class TestClassify:
    def test_scenario_a_safe(self) -> None:
        reading = classify(480.0, _thresholds())
        assert reading.zone is Zone.SAFE
        assert reading.progress == pytest.approx(0.31, abs=0.005)

    def test_scenario_b_caution(self) -> None:
        reading = classify(1200.0, _thresholds())
        assert reading.zone is Zone.CAUTION
        assert reading.progress == pytest.approx(0.77, abs=0.005)

    def test_scenario_c_expired_and_capped(self) -> None:
        t = _thresholds(assured_seconds=900.0, limit_seconds=1320.0)
        reading = classify(1620.0, t)
        assert reading.zone is Zone.EXPIRED
        assert reading.raw_progress == pytest.approx(1620 / 1320)
        assert reading.progress == pytest.approx(1.2)

    def test_equal_to_assured_is_caution(self) -> None:
        assert classify(1080.0, _thresholds()).zone is Zone.CAUTION

    def test_just_below_assured_is_safe(self) -> None:
        assert classify(1079.999, _thresholds()).zone is Zone.SAFE

    def test_equal_to_limit_is_expired(self) -> None:
        reading = classify(1560.0, _thresholds())
        assert reading.zone is Zone.EXPIRED
        assert reading.progress == pytest.approx(1.0)

    def test_progress_capped_at_ceiling(self) -> None:
        reading = classify(10_000.0, _thresholds())
        assert reading.progress == pytest.approx(1.2)
        assert reading.raw_progress > 6
        assert reading.zone is Zone.EXPIRED

    def test_custom_ceiling(self) -> None:
        reading = classify(3000.0, _thresholds(), ceiling=1.0)
        assert reading.progress == 1.0

    def test_zero_elapsed(self) -> None:
        reading = classify(0.0, _thresholds())
        assert reading.zone is Zone.SAFE
        assert reading.progress == 0.0

    def test_progress_non_decreasing(self) -> None:
        t = _thresholds()
        readings = [classify(float(s), t).progress for s in range(0, 2500, 37)]
        assert readings == sorted(readings)


class TestHelpers:
    def test_cap_progress_floor(self) -> None:
        assert cap_progress(-0.5) == 0.0

    def test_zone_for_progress_uses_ratio(self) -> None:
        ratio = 1080 / 1560
        assert zone_for_progress(ratio - 0.01, ratio) is Zone.SAFE
        assert zone_for_progress(ratio, ratio) is Zone.CAUTION
        assert zone_for_progress(1.0, ratio) is Zone.EXPIRED

    def test_escalate_never_regresses(self) -> None:
        assert escalate(Zone.CAUTION, Zone.SAFE) is Zone.CAUTION
        assert escalate(Zone.EXPIRED, Zone.CAUTION) is Zone.EXPIRED

    def test_escalate_moves_forward(self) -> None:
        assert escalate(Zone.SAFE, Zone.CAUTION) is Zone.CAUTION

    def test_escalate_from_nothing(self) -> None:
        assert escalate(None, Zone.SAFE) is Zone.SAFE
