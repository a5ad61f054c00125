"""Tests for the Session Orchestrator."""

import asyncio
from datetime import date, datetime, timedelta

import pytest

from canine_kernel.catalog.breeds import BreedDatabase
from canine_kernel.catalog.library import ContentLibrary
from canine_kernel.errors import ScheduleBuildError
from canine_kernel.models.behavior import BehaviorState, Trend
from canine_kernel.models.breed import BreedCategory, BreedProfile, EnergyLevel
from canine_kernel.models.config import OrchestratorConfig
from canine_kernel.models.content import ContentCategory, ContentItem, DirectiveType
from canine_kernel.models.session import SessionPhase, TerminationReason
from canine_kernel.orchestrator.loop import SessionOrchestrator, planned_duration
from canine_kernel.output.emitter import PlaybackEmitter

START = datetime(2026, 3, 10, 7, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeFusion:
    """Stands in for the fusion engine; returns whatever state the test sets."""

    def __init__(self, state: BehaviorState):
        self.state = state

    def snapshot(self, now=None) -> BehaviorState:
        return self.state


def _state(stress=0.1, engagement=0.5, stress_trend=Trend.STABLE,
           engagement_trend=Trend.STABLE, stale=False) -> BehaviorState:
    return BehaviorState(
        stress_level=stress,
        engagement_level=engagement,
        confidence=0.9,
        stress_trend=stress_trend,
        engagement_trend=engagement_trend,
        last_updated=START,
        observation_count=10,
        stale=stale,
    )


def _make_orchestrator(state=None, library=None, breed="labrador", config=None,
                       breeds=None, clock=None):
    clock = clock or FakeClock(START)
    fusion = FakeFusion(state or _state())
    orchestrator = SessionOrchestrator(
        fusion=fusion,
        breed_database=breeds or BreedDatabase(),
        content_library=library if library is not None else ContentLibrary(),
        emitter=PlaybackEmitter(default_sinks=False),
        breed=breed,
        config=config,
        clock=clock,
    )
    return orchestrator, fusion, clock


def _broken_profile() -> BreedProfile:
    return BreedProfile.model_construct(
        name="Broken",
        attention_span_minutes=0,
        energy_level=EnergyLevel.MEDIUM,
        category=BreedCategory.COMPANION,
    )


class TestPlannedDuration:
    def _item(self):
        return ContentItem(
            id="x",
            category=ContentCategory.PLAY,
            intensity=0.5,
            min_duration_seconds=300,
            max_duration_seconds=900,
        )

    def test_higher_intensity_means_shorter(self):
        item = self._item()
        assert planned_duration(item, 0.9) < planned_duration(item, 0.2)

    def test_midpoint_scaled(self):
        assert planned_duration(self._item(), 0.8) == pytest.approx(510)

    def test_clamped_to_bounds(self):
        item = self._item()
        assert planned_duration(item, 1.0) >= 300
        assert planned_duration(item, 0.0) <= 900

    def test_limit_caps_duration(self):
        assert planned_duration(self._item(), 0.8, limit_seconds=200) == pytest.approx(200)
        assert planned_duration(self._item(), 0.8, limit_seconds=1200) == pytest.approx(510)


class TestSessionLifecycle:
    def test_first_tick_starts_playing(self):
        orch, _, _ = _make_orchestrator()
        assert orch.phase == SessionPhase.IDLE

        phase = orch.tick()

        assert phase == SessionPhase.PLAYING
        session = orch.session
        assert session.id.startswith("sess_")
        assert session.active_item.id == "engage_squirrels"
        assert session.slot.category == ContentCategory.ENGAGEMENT
        assert session.planned_duration_seconds == pytest.approx(510)
        assert session.desired_intensity == pytest.approx(0.8)

        directive = orch.emitter.last_directive
        assert directive.directive_type == DirectiveType.PLAY
        assert directive.content_item_id == "engage_squirrels"
        assert directive.session_id == session.id
        assert orch.rotation.last_played("engage_squirrels") == START

    def test_keeps_playing_before_expiry(self):
        orch, _, clock = _make_orchestrator()
        orch.tick()
        first = orch.session.id
        clock.advance(300)
        assert orch.tick() == SessionPhase.PLAYING
        assert orch.session.id == first
        assert len(orch.emitter.history) == 1

    def test_expiry_archives_and_rotates(self):
        orch, _, clock = _make_orchestrator()
        orch.tick()
        clock.advance(511)
        orch.tick()

        archived = orch.archived_sessions
        assert len(archived) == 1
        assert archived[0].termination_reason == TerminationReason.EXPIRED
        assert archived[0].ended_at == clock.now
        # The just-played item is penalized, so the next session rotates
        assert orch.phase == SessionPhase.PLAYING
        assert orch.session.active_item.id == "engage_birds"

    def test_session_ends_with_its_slot(self):
        orch, _, clock = _make_orchestrator(clock=FakeClock(datetime(2026, 3, 10, 9, 50)))
        orch.tick()
        session = orch.session
        assert session.slot.category == ContentCategory.RELAXATION
        assert session.slot.end == datetime(2026, 3, 10, 10, 0)
        assert session.planned_duration_seconds == pytest.approx(600)

        clock.advance(600)
        orch.tick()
        assert orch.archived_sessions[0].termination_reason == TerminationReason.EXPIRED
        assert orch.session.slot.start == datetime(2026, 3, 10, 10, 0)

    def test_manual_stop(self):
        orch, _, _ = _make_orchestrator()
        orch.tick()
        stopped = orch.stop_session()
        assert stopped.termination_reason == TerminationReason.MANUAL_STOP
        assert orch.phase == SessionPhase.IDLE
        assert orch.session is None
        assert orch.stop_session() is None


class TestUrgentPreemption:
    def test_stress_switches_to_calming_within_same_session(self):
        orch, fusion, clock = _make_orchestrator()
        orch.tick()
        session_id = orch.session.id

        fusion.state = _state(stress=0.9, engagement=0.1, stress_trend=Trend.RISING)
        clock.advance(30)
        assert orch.tick() == SessionPhase.PLAYING

        session = orch.session
        assert session.id == session_id
        assert session.active_item.category == ContentCategory.RELAXATION
        assert session.calming_override is True
        assert session.item_started_at == clock.now
        assert [e.reason for e in session.adjustment_log] == ["stress-interrupt", "calming-override"]
        assert orch.archived_sessions == []
        assert len(orch.emitter.history) == 2

    def test_preempts_before_planned_duration(self):
        orch, fusion, clock = _make_orchestrator()
        orch.tick()
        planned = orch.session.planned_duration_seconds
        fusion.state = _state(stress=0.95, stress_trend=Trend.RISING)
        clock.advance(5)
        orch.tick()
        assert orch.session.calming_override is True
        assert 5 < planned

    def test_no_repeated_preemption_under_calming_override(self):
        orch, fusion, clock = _make_orchestrator()
        orch.tick()
        fusion.state = _state(stress=0.9, stress_trend=Trend.RISING)
        clock.advance(10)
        orch.tick()
        calming_item = orch.session.active_item.id
        clock.advance(10)
        orch.tick()
        assert orch.session.active_item.id == calming_item
        assert len(orch.emitter.history) == 2

    def test_stable_high_stress_does_not_preempt(self):
        orch, fusion, clock = _make_orchestrator()
        orch.tick()
        fusion.state = _state(stress=0.9, stress_trend=Trend.STABLE)
        clock.advance(10)
        orch.tick()
        assert orch.session.calming_override is False

    def test_no_calming_content_terminates(self):
        library = ContentLibrary([
            ContentItem(
                id="play_only",
                category=ContentCategory.PLAY,
                intensity=0.6,
                min_duration_seconds=300,
                max_duration_seconds=900,
            )
        ])
        orch, fusion, clock = _make_orchestrator(library=library)
        orch.tick()
        assert orch.session.active_item.id == "play_only"

        fusion.state = _state(stress=0.9, stress_trend=Trend.RISING)
        clock.advance(10)
        orch.tick()

        archived = orch.archived_sessions
        assert archived[0].termination_reason == TerminationReason.STRESS_PREEMPTED
        assert archived[0].adjustment_log[0].reason == "stress-interrupt"

    def test_calming_never_falls_back_to_active_content(self):
        library = ContentLibrary([
            ContentItem(
                id="engage_only",
                category=ContentCategory.ENGAGEMENT,
                intensity=0.2,
                min_duration_seconds=300,
                max_duration_seconds=900,
            )
        ])
        orch, fusion, clock = _make_orchestrator(library=library)
        orch.tick()

        fusion.state = _state(stress=0.9, stress_trend=Trend.RISING)
        clock.advance(10)
        orch.tick()

        archived = orch.archived_sessions[0]
        assert archived.termination_reason == TerminationReason.STRESS_PREEMPTED
        assert [e.reason for e in archived.adjustment_log] == ["stress-interrupt"]
        assert orch.session.calming_override is False

    def test_stale_behavior_is_neutral(self):
        state = _state(stress=0.95, stress_trend=Trend.RISING, stale=True)
        orch, _, clock = _make_orchestrator(state=state)
        orch.tick()
        # Desired intensity falls back to the slot's own intensity
        assert orch.session.desired_intensity == pytest.approx(0.7)
        clock.advance(10)
        orch.tick()
        assert orch.session.calming_override is False


class TestBoredomEscalation:
    def test_low_falling_engagement_ends_session(self):
        orch, fusion, clock = _make_orchestrator()
        orch.tick()
        fusion.state = _state(engagement=0.1, engagement_trend=Trend.FALLING)

        clock.advance(30)
        orch.tick()
        assert orch.archived_sessions == []

        clock.advance(60)
        orch.tick()
        archived = orch.archived_sessions
        assert archived[0].termination_reason == TerminationReason.BOREDOM_ESCALATED
        assert archived[0].adjustment_log[-1].reason == "boredom-escalation"
        # Fresh content is picked on the same tick
        assert orch.session.active_item.id == "engage_birds"


class TestNoContent:
    def test_signals_no_content_once(self):
        orch, _, _ = _make_orchestrator(library=ContentLibrary([]))

        assert orch.tick() == SessionPhase.IDLE
        assert orch.emitter.history == []

        orch.tick()
        history = orch.emitter.history
        assert len(history) == 1
        assert history[0].directive_type == DirectiveType.NO_CONTENT
        assert history[0].category == ContentCategory.ENGAGEMENT

        orch.tick()
        assert len(orch.emitter.history) == 1
        assert orch.snapshot().consecutive_no_content == 3

    def test_holds_previous_item(self):
        orch, _, _ = _make_orchestrator()
        orch.tick()
        orch.library.refresh([])
        orch.stop_session()

        assert orch.tick() == SessionPhase.IDLE
        assert orch.tick() == SessionPhase.PLAYING

        session = orch.session
        assert session.active_item.id == "engage_squirrels"
        assert session.adjustment_log[0].reason == "held-previous"


class TestShutdown:
    def test_shutdown_archives_and_is_idempotent(self):
        orch, _, _ = _make_orchestrator()
        orch.tick()
        orch.shutdown()
        orch.shutdown()

        assert orch.phase == SessionPhase.TERMINATED
        archived = orch.archived_sessions
        assert len(archived) == 1
        assert archived[0].termination_reason == TerminationReason.SHUTDOWN

    def test_terminated_is_absorbing(self):
        orch, _, _ = _make_orchestrator()
        orch.shutdown()
        assert orch.tick() == SessionPhase.TERMINATED
        assert orch.stop_session() is None
        assert orch.emitter.history == []


class TestScheduleManagement:
    def test_schedule_built_on_first_tick(self):
        orch, _, _ = _make_orchestrator()
        assert orch.schedule is None
        orch.tick()
        assert orch.schedule.day == date(2026, 3, 10)
        assert orch.schedule.breed_profile.name == "Labrador"

    def test_rolls_over_to_next_day(self):
        orch, _, clock = _make_orchestrator()
        orch.tick()
        clock.now = START + timedelta(days=1)
        orch.tick()
        assert orch.schedule.day == date(2026, 3, 11)

    def test_cron_boundary_triggers_rebuild(self):
        config = OrchestratorConfig(rebuild_cron="0 12 * * *")
        orch, _, clock = _make_orchestrator(config=config)
        orch.tick()
        assert orch.schedule.built_at == datetime(2026, 3, 10, 6, 0)

        clock.now = datetime(2026, 3, 10, 12, 30)
        orch.tick()
        assert orch.schedule.built_at == clock.now

        clock.advance(60)
        orch.tick()
        assert orch.schedule.built_at == datetime(2026, 3, 10, 12, 30)

    def test_failed_automatic_rebuild_keeps_last_good(self):
        orch, _, clock = _make_orchestrator()
        orch.tick()
        orch.profile = _broken_profile()
        clock.now = START + timedelta(days=1)

        assert orch.tick() == SessionPhase.IDLE
        assert orch.schedule.day == date(2026, 3, 10)

    def test_change_breed(self):
        orch, _, clock = _make_orchestrator()
        orch.tick()
        clock.advance(60)
        schedule = orch.change_breed("border collie")
        assert orch.profile.name == "Border Collie"
        assert orch.selector.profile.name == "Border Collie"
        assert schedule.built_at == clock.now
        assert orch.schedule is schedule

    def test_failed_breed_change_keeps_profile(self):
        breeds = BreedDatabase({
            "labrador": BreedDatabase().get_profile("labrador"),
            "broken": _broken_profile(),
        })
        orch, _, _ = _make_orchestrator(breeds=breeds)
        orch.tick()
        previous = orch.schedule
        with pytest.raises(ScheduleBuildError):
            orch.change_breed("broken")
        assert orch.profile.name == "Labrador"
        assert orch.schedule is previous


class TestSnapshots:
    def test_subscribers_receive_snapshots(self):
        orch, _, _ = _make_orchestrator()
        received = []
        orch.subscribe(received.append)
        orch.tick()
        assert received[0].phase == SessionPhase.PLAYING
        assert received[0].session.active_item.id == "engage_squirrels"
        assert received[0].current_slot.period == "morning"
        assert received[0].schedule_day == "2026-03-10"

    def test_failing_subscriber_is_isolated(self):
        orch, _, _ = _make_orchestrator()
        received = []

        def broken(snapshot):
            raise RuntimeError("ui crashed")

        orch.subscribe(broken)
        orch.subscribe(received.append)
        assert orch.tick() == SessionPhase.PLAYING
        assert len(received) == 1

    def test_unsubscribe(self):
        orch, _, _ = _make_orchestrator()
        received = []
        unsubscribe = orch.subscribe(received.append)
        unsubscribe()
        orch.tick()
        assert received == []

    def test_snapshot_is_detached(self):
        orch, _, _ = _make_orchestrator()
        orch.tick()
        snap = orch.snapshot()
        orch.stop_session()
        assert snap.session.termination_reason is None


class TestDecisionLoop:
    @pytest.mark.asyncio
    async def test_run_until_stopped(self):
        config = OrchestratorConfig(tick_interval_seconds=0.01)
        orch, _, _ = _make_orchestrator(config=config)
        stop = asyncio.Event()

        task = asyncio.ensure_future(orch.run_async(stop))
        await asyncio.sleep(0.05)
        assert orch.status == "running"
        assert orch.phase == SessionPhase.PLAYING

        stop.set()
        await asyncio.wait_for(task, timeout=1)
        assert orch.status == "stopped"
        assert orch.phase == SessionPhase.TERMINATED
        assert orch.archived_sessions[0].termination_reason == TerminationReason.SHUTDOWN

    @pytest.mark.asyncio
    async def test_urgent_wake_preempts_immediately(self):
        config = OrchestratorConfig(tick_interval_seconds=60)
        orch, fusion, _ = _make_orchestrator(config=config)
        stop = asyncio.Event()

        task = asyncio.ensure_future(orch.run_async(stop))
        await asyncio.sleep(0.01)
        assert orch.phase == SessionPhase.PLAYING

        fusion.state = _state(stress=0.92, stress_trend=Trend.RISING)
        orch.handle_state(fusion.state)
        await asyncio.sleep(0.01)
        assert orch.session.calming_override is True

        stop.set()
        await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_shutdown_stops_loop(self):
        config = OrchestratorConfig(tick_interval_seconds=60)
        orch, _, _ = _make_orchestrator(config=config)

        task = asyncio.ensure_future(orch.run_async())
        await asyncio.sleep(0.01)
        orch.shutdown()
        await asyncio.wait_for(task, timeout=1)
        assert orch.phase == SessionPhase.TERMINATED
