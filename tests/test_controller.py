"""Tests for HoldoverController and the HoldoverSession context."""

import pytest

from holdover.config import Settings
from holdover.core.controller import HoldoverController
from holdover.core.timer import AlreadyRunning, NoSession, NotPaused, NotRunning, SessionActive
from holdover.domain.enums import DataSource, PushReason, TimerPhase, Zone
from holdover.domain.thresholds import ConfigurationError, HoldoverMetadata
from holdover.publish.channel import DismissalPolicy, PushBudget, Unavailable
from holdover.publish.memory import InMemoryDisplayChannel
from holdover.reference.table import HoldoverTableEntry, TableThresholdSource

from tests.test_reference import _valid_entry
from tests.test_thresholds import _valid_metadata
from tests.test_timer import FakeClock


def _metadata(**kw) -> HoldoverMetadata:
    return HoldoverMetadata.model_validate(_valid_metadata(**kw))


class _Rig:
    """Controller on an in-memory channel, driven by a fake clock."""

    def __init__(self, pushes: int = 60, window_seconds: float = 3600.0, **settings_kw) -> None:
        self.clock = FakeClock()
        self.settings = Settings(**settings_kw)
        self.channel = InMemoryDisplayChannel(
            PushBudget(pushes=pushes, window_seconds=window_seconds),
            now_fn=self.clock.monotonic,
        )
        source = TableThresholdSource([HoldoverTableEntry.model_validate(_valid_entry())])
        self.controller = HoldoverController(
            self.channel,
            self.settings,
            clock=self.clock,
            now_fn=self.clock.monotonic,
            threshold_source=source,
        )

    async def start(self, assured: float = 1080.0, limit: float = 1560.0):
        snap = await self.controller.start_session(assured, limit, _metadata())
        await self.flush()
        return snap

    async def tick(self, seconds: float = 1.0):
        self.clock.advance(seconds)
        snap = self.controller.tick()
        await self.flush()
        return snap

    async def flush(self) -> None:
        session = self.controller.session
        if session is not None:
            await session.scheduler.flush()


class TestStart:
    @pytest.mark.asyncio
    async def test_start_publishes_initial_snapshot(self) -> None:
        rig = _Rig()
        snap = await rig.start()
        assert snap.version == 1
        assert snap.zone is Zone.SAFE
        assert rig.controller.phase is TimerPhase.RUNNING
        assert rig.channel.adapter.snapshot == snap

    @pytest.mark.asyncio
    async def test_invalid_thresholds_create_nothing(self) -> None:
        rig = _Rig()
        with pytest.raises(ConfigurationError):
            await rig.controller.start_session(1560.0, 1080.0, _metadata())
        assert rig.controller.session is None
        assert rig.controller.phase is TimerPhase.IDLE
        assert rig.channel.opened == []

    @pytest.mark.asyncio
    async def test_limit_above_max_session_rejected(self) -> None:
        rig = _Rig(max_session_seconds=3600.0)
        with pytest.raises(ConfigurationError):
            await rig.controller.start_session(1080.0, 7200.0, _metadata())
        assert rig.controller.session is None

    @pytest.mark.asyncio
    async def test_start_while_running(self) -> None:
        rig = _Rig()
        first = await rig.start()
        with pytest.raises(AlreadyRunning):
            await rig.controller.start_session(900.0, 1320.0, _metadata())
        assert rig.controller.session.latest.session_id == first.session_id

    @pytest.mark.asyncio
    async def test_start_from_reference(self) -> None:
        rig = _Rig()
        snap = await rig.controller.start_from_reference(_metadata())
        assert snap.assured_time_seconds == 1080.0
        assert snap.limit_time_seconds == 1560.0

    @pytest.mark.asyncio
    async def test_start_from_reference_without_table(self) -> None:
        rig = _Rig()
        with pytest.raises(ConfigurationError):
            await rig.controller.start_from_reference(_metadata(precipitation_type="Freezing Fog"))
        assert rig.controller.session is None

    @pytest.mark.asyncio
    async def test_unexpected_open_failure_stops_timer(self) -> None:
        rig = _Rig()

        async def broken(attributes):
            raise KeyError("surface bug")

        rig.channel.open_session = broken  # type: ignore[method-assign]
        with pytest.raises(KeyError):
            await rig.controller.start_session(1080.0, 1560.0, _metadata())
        assert rig.controller.session is None
        assert rig.controller.phase is TimerPhase.IDLE

        del rig.channel.open_session
        snap = await rig.start()
        assert snap.zone is Zone.SAFE

    @pytest.mark.asyncio
    async def test_channel_refusal_keeps_local_timing(self) -> None:
        rig = _Rig()
        rig.channel.fail_open(Unavailable("no surface"))
        await rig.start()
        snap = await rig.tick(1200.0)
        assert snap.zone is Zone.CAUTION
        assert rig.controller.status()["publication"]["degraded"] is True


class TestScenarios:
    @pytest.mark.asyncio
    async def test_scenario_a(self) -> None:
        rig = _Rig()
        await rig.start()
        snap = await rig.tick(480.0)
        assert snap.zone is Zone.SAFE
        assert snap.progress == pytest.approx(0.31, abs=0.005)

    @pytest.mark.asyncio
    async def test_scenario_b(self) -> None:
        rig = _Rig()
        await rig.start()
        for _ in range(4):
            snap = await rig.tick(300.0)
        assert snap.zone is Zone.CAUTION
        assert snap.progress == pytest.approx(0.77, abs=0.005)

    @pytest.mark.asyncio
    async def test_scenario_c_forced_push_on_crossing_limit(self) -> None:
        rig = _Rig()
        await rig.start(900.0, 1320.0)
        await rig.tick(1319.0)
        before = len(rig.channel.pushes)
        snap = await rig.tick(1.0)
        assert snap.zone is Zone.EXPIRED
        assert len(rig.channel.pushes) == before + 1
        assert rig.channel.pushes[-1].version == snap.version
        snap = await rig.tick(300.0)
        assert snap.progress == pytest.approx(1.2)
        assert snap.zone is Zone.EXPIRED

    @pytest.mark.asyncio
    async def test_scenario_d_paused(self) -> None:
        rig = _Rig()
        await rig.start(900.0, 1320.0)
        await rig.tick(900.0)
        paused = rig.controller.pause()
        assert paused.is_running is False
        for _ in range(20):
            snap = await rig.tick(30.0)
            assert snap.elapsed_seconds == pytest.approx(900.0)
            assert snap.progress == pytest.approx(paused.progress)

    @pytest.mark.asyncio
    async def test_resume_continues(self) -> None:
        rig = _Rig()
        await rig.start()
        await rig.tick(100.0)
        rig.controller.pause()
        await rig.tick(500.0)
        resumed = rig.controller.resume()
        assert resumed.elapsed_seconds == pytest.approx(100.0)
        snap = await rig.tick(10.0)
        assert snap.elapsed_seconds == pytest.approx(110.0)

    @pytest.mark.asyncio
    async def test_backward_clock_forces_push(self) -> None:
        rig = _Rig()
        await rig.start()
        await rig.tick(5.0)
        before = len(rig.channel.pushes)
        rig.clock.step_wall(-60.0)
        snap = rig.controller.tick()
        await rig.flush()
        assert snap.elapsed_seconds == pytest.approx(5.0)
        assert len(rig.channel.pushes) == before + 1

    @pytest.mark.asyncio
    async def test_suspension_forces_push(self) -> None:
        rig = _Rig()
        await rig.start()
        await rig.tick(1.0)
        before = len(rig.channel.pushes)
        snap = await rig.tick(120.0)
        assert snap.elapsed_seconds == pytest.approx(121.0)
        assert len(rig.channel.pushes) == before + 1


class TestStateErrors:
    def test_pause_without_session(self) -> None:
        with pytest.raises(NotRunning):
            _Rig().controller.pause()

    @pytest.mark.asyncio
    async def test_resume_while_running(self) -> None:
        rig = _Rig()
        await rig.start()
        with pytest.raises(NotPaused):
            rig.controller.resume()

    @pytest.mark.asyncio
    async def test_end_without_session(self) -> None:
        with pytest.raises(NoSession):
            await _Rig().controller.end_session()

    @pytest.mark.asyncio
    async def test_reset_while_live(self) -> None:
        rig = _Rig()
        await rig.start()
        with pytest.raises(SessionActive):
            rig.controller.reset()
        assert rig.controller.session is not None

    def test_tick_without_session(self) -> None:
        assert _Rig().controller.tick() is None


class TestEnd:
    @pytest.mark.asyncio
    async def test_end_sends_final_snapshot(self) -> None:
        rig = _Rig()
        await rig.start()
        await rig.tick(60.0)
        final = await rig.controller.end_session(DismissalPolicy.after(30.0))
        assert final.is_final is True
        assert final.is_running is False
        assert rig.channel.ended[0].final_snapshot == final
        assert rig.controller.phase is TimerPhase.ENDED

    @pytest.mark.asyncio
    async def test_default_policy_uses_grace_setting(self) -> None:
        rig = _Rig(dismissal_grace_seconds=45.0)
        await rig.start()
        await rig.controller.end_session()
        assert rig.channel.ended[0].policy.grace_seconds == 45.0

    @pytest.mark.asyncio
    async def test_end_from_paused(self) -> None:
        rig = _Rig()
        await rig.start()
        await rig.tick(50.0)
        rig.controller.pause()
        await rig.tick(50.0)
        final = await rig.controller.end_session(DismissalPolicy.immediate())
        assert final.elapsed_seconds == pytest.approx(50.0)
        assert not rig.channel.adapter.visible

    @pytest.mark.asyncio
    async def test_reset_then_new_session(self) -> None:
        rig = _Rig()
        first = await rig.start()
        await rig.controller.end_session(DismissalPolicy.immediate())
        rig.controller.reset()
        assert rig.controller.session is None
        assert rig.controller.status()["phase"] == "idle"
        second = await rig.start(900.0, 1320.0)
        assert second.session_id != first.session_id
        assert second.version == 1

    @pytest.mark.asyncio
    async def test_start_again_without_reset(self) -> None:
        rig = _Rig()
        await rig.start()
        await rig.controller.end_session(DismissalPolicy.immediate())
        snap = await rig.start()
        assert snap.version == 1


class TestBudget:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("assured, limit", [(1080.0, 1560.0), (900.0, 1320.0), (6000.0, 14400.0)])
    async def test_budget_never_exceeded_over_full_session(self, assured, limit) -> None:
        rig = _Rig()
        await rig.start(assured, limit)
        elapsed = 0.0
        while elapsed < limit * 1.3:
            await rig.tick(5.0)
            elapsed += 5.0
            if int(elapsed) % 1800 == 0:
                rig.controller.pause()
                await rig.flush()
                await rig.tick(5.0)
                rig.controller.resume()
                await rig.flush()
        await rig.controller.end_session(DismissalPolicy.immediate())
        assert rig.channel.peak_window_count <= 60
        assert rig.controller.window.count() <= 60

    @pytest.mark.asyncio
    async def test_budget_not_exceeded_and_not_degraded(self) -> None:
        rig = _Rig()
        await rig.start(6000.0, 14400.0)
        for _ in range(14400 // 10):
            await rig.tick(10.0)
        assert rig.controller.session.scheduler.degraded is False
        assert rig.channel.peak_window_count <= 60

    @pytest.mark.asyncio
    async def test_transitions_always_reach_surface(self) -> None:
        rig = _Rig()
        await rig.start()
        zones = []
        for _ in range(2000 // 5):
            await rig.tick(5.0)
            zones.append(rig.channel.adapter.snapshot.zone)
        assert Zone.CAUTION in zones
        assert zones[-1] is Zone.EXPIRED

    @pytest.mark.asyncio
    async def test_back_to_back_sessions_share_budget(self) -> None:
        rig = _Rig(pushes=4, forced_push_reserve=0)
        await rig.start()
        await rig.controller.end_session(DismissalPolicy.immediate())
        rig.controller.reset()
        await rig.start()
        await rig.controller.end_session(DismissalPolicy.immediate())
        rig.controller.reset()
        await rig.start()
        # 4 used by two start + two final pushes; the third start defers
        assert rig.channel.peak_window_count <= 4
        assert rig.controller.session.scheduler.pending is PushReason.START
        assert rig.controller.session.scheduler.degraded is False


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_reports_local_truth(self) -> None:
        rig = _Rig()
        await rig.start()
        await rig.tick(1200.0)
        status = rig.controller.status()
        assert status["phase"] == "running"
        assert status["zone"] == "caution"
        assert status["snapshot"]["zone"] == "caution"
        assert status["publication"]["budget"] == {"pushes": 60, "window_seconds": 3600.0}

    def test_idle_status(self) -> None:
        status = _Rig().controller.status()
        assert status["phase"] == "idle"
        assert status["publication"] is None

    @pytest.mark.asyncio
    async def test_metadata_data_source_echoed(self) -> None:
        rig = _Rig()
        snap = await rig.controller.start_session(1080.0, 1560.0, _metadata(data_source="TCA"))
        assert snap.data_source is DataSource.TCA
