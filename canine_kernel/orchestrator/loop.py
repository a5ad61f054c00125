"""
Session Orchestrator — the decision loop of the Canine Kernel.

States:
  IDLE → SCHEDULED → PLAYING → ADAPTING → TERMINATING → IDLE
  TERMINATED is absorbing and only reached through shutdown().

On every tick the orchestrator makes sure a valid schedule is active, reads
a behavior snapshot (stale sensing counts as neutral), and then either checks
the playing session for interrupts or schedules the next item.

Interrupts while PLAYING:
  - stress at/above the critical threshold with a rising trend: the session
    continues on forced calming content (or ends as "stress-preempted")
  - planned duration reached: the session ends as "expired"
  - low and falling engagement: the session ends as "boredom-escalated"

The decision loop is the only writer of the Session and the only caller of
the schedule/selector/rotation mutation paths.
"""

import asyncio
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional
from uuid import uuid4

from croniter import croniter
from loguru import logger

from canine_kernel.behavior.fusion import BehaviorFusionEngine
from canine_kernel.behavior.pump import ObservationPump
from canine_kernel.catalog.breeds import BreedDatabase
from canine_kernel.catalog.library import ContentLibrary
from canine_kernel.errors import NoEligibleContentError, ScheduleBuildError, StaleBehaviorState
from canine_kernel.models.behavior import NEUTRAL_BEHAVIOR, BehaviorState, Trend
from canine_kernel.models.config import OrchestratorConfig
from canine_kernel.models.content import (
    ContentItem,
    DirectiveType,
    PlaybackDirective,
)
from canine_kernel.models.schedule import RotationPolicy, Schedule, TimeSlot
from canine_kernel.models.session import (
    AdjustmentEvent,
    OrchestratorSnapshot,
    Session,
    SessionPhase,
    TerminationReason,
)
from canine_kernel.output.emitter import PlaybackEmitter
from canine_kernel.rotation.tracker import RotationTracker
from canine_kernel.schedule.builder import ScheduleBuilder
from canine_kernel.selection.selector import ContentSelector

INTERRUPT_STRESS = "stress"
INTERRUPT_EXPIRED = "expired"
INTERRUPT_BOREDOM = "boredom"

NO_CONTENT_LIMIT = 2


def planned_duration(
    item: ContentItem,
    desired_intensity: float,
    limit_seconds: Optional[float] = None,
) -> float:
    """
    Midpoint of the item's duration range, shortened for intense content
    and lengthened for gentle content, clamped to the item's bounds.
    `limit_seconds` caps the result (attention span, time left in the slot).
    """
    midpoint = (item.min_duration_seconds + item.max_duration_seconds) / 2.0
    scaled = midpoint * (1.25 - 0.5 * desired_intensity)
    planned = max(item.min_duration_seconds, min(item.max_duration_seconds, scaled))
    if limit_seconds is not None:
        planned = min(planned, limit_seconds)
    return planned


class SessionOrchestrator:
    """
    Owns the current Session and coordinates reads of the behavior state,
    the active schedule and the rotation history.
    """

    def __init__(
        self,
        fusion: BehaviorFusionEngine,
        breed_database: BreedDatabase,
        content_library: ContentLibrary,
        emitter: Optional[PlaybackEmitter] = None,
        breed: str = "default",
        rotation_policy: Optional[RotationPolicy] = None,
        config: Optional[OrchestratorConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.fusion = fusion
        self.breeds = breed_database
        self.library = content_library
        self.emitter = emitter or PlaybackEmitter()
        self.rotation_policy = rotation_policy or RotationPolicy()
        self.config = config or OrchestratorConfig()
        self._clock = clock

        self.profile = breed_database.get_profile(breed)
        self.schedule_builder = ScheduleBuilder(clock)
        self.rotation = RotationTracker(self.rotation_policy, clock)
        self.selector = ContentSelector(self.rotation, self.profile)

        self._phase = SessionPhase.IDLE
        self._session: Optional[Session] = None
        self._archive: Deque[Session] = deque(maxlen=self.config.archive_size)
        self._last_item: Optional[ContentItem] = None

        self._no_content_slot: Optional[datetime] = None
        self._no_content_count = 0
        self._no_content_signalled = False
        self._stale_reported = False

        self._subscribers: List[Callable[[OrchestratorSnapshot], None]] = []
        self._running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake: Optional[asyncio.Event] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._urgent_pending = False

    # --- Read-only accessors ---

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def status(self) -> str:
        """Current decision loop status."""
        return "running" if self._running else "stopped"

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def archived_sessions(self) -> List[Session]:
        return list(self._archive)

    @property
    def schedule(self) -> Optional[Schedule]:
        return self.schedule_builder.active

    def snapshot(self, now: Optional[datetime] = None) -> OrchestratorSnapshot:
        """An immutable picture of the orchestrator for subscribers and the API."""
        if now is None:
            now = self._clock()
        schedule = self.schedule_builder.active
        return OrchestratorSnapshot(
            phase=self._phase,
            session=self._session.model_copy(deep=True) if self._session else None,
            behavior=self.fusion.snapshot(now),
            current_slot=schedule.slot_at(now) if schedule else None,
            schedule_day=schedule.day.isoformat() if schedule else None,
            archived_sessions=len(self._archive),
            consecutive_no_content=self._no_content_count,
            taken_at=now,
        )

    def subscribe(self, callback: Callable[[OrchestratorSnapshot], None]) -> Callable[[], None]:
        """Receive a snapshot after every tick. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, now: datetime) -> None:
        if not self._subscribers:
            return
        snap = self.snapshot(now)
        for callback in list(self._subscribers):
            try:
                callback(snap)
            except Exception as e:
                logger.warning(f"Snapshot subscriber failed: {e}")

    # --- Schedule management ---

    def _rebuild_due(self, schedule: Schedule, now: datetime) -> bool:
        """Has the configured daily boundary fired since the schedule was built?"""
        last_boundary = croniter(self.config.rebuild_cron, now).get_prev(datetime)
        return last_boundary > schedule.built_at

    def _ensure_schedule(self, now: datetime) -> Optional[Schedule]:
        schedule = self.schedule_builder.active
        try:
            if schedule is None or not schedule.covers(now):
                self.schedule_builder.activate(self.profile, self.rotation_policy, now)
            elif self._rebuild_due(schedule, now):
                self.schedule_builder.rebuild(self.profile, self.rotation_policy, now)
        except ScheduleBuildError as e:
            logger.error(f"Schedule build failed, keeping last known-good schedule: {e}")
        return self.schedule_builder.active

    def rebuild_schedule(self, now: Optional[datetime] = None) -> Schedule:
        """
        Explicit rebuild request. Raises ScheduleBuildError, in which case
        the previous schedule stays active.
        """
        if now is None:
            now = self._clock()
        return self.schedule_builder.rebuild(self.profile, self.rotation_policy, now)

    def change_breed(self, breed: str, now: Optional[datetime] = None) -> Schedule:
        """
        Switch to another breed profile and rebuild the remaining schedule.
        On ScheduleBuildError the previous profile and schedule are kept.
        """
        if now is None:
            now = self._clock()
        profile = self.breeds.get_profile(breed)
        schedule = self.schedule_builder.rebuild(profile, self.rotation_policy, now)
        self.profile = profile
        self.selector.profile = profile
        logger.info(f"Breed profile changed to {profile.name}")
        return schedule

    # --- Behavior ---

    def _effective_behavior(self, now: datetime) -> BehaviorState:
        """Behavior as the decision loop should act on it; stale sensing is neutral."""
        state = self.fusion.snapshot(now)
        if not state.stale:
            self._stale_reported = False
            return state

        if state.last_updated is not None and not self._stale_reported:
            silence = (now - state.last_updated).total_seconds()
            logger.warning(str(StaleBehaviorState(silence)))
            self._stale_reported = True
        return NEUTRAL_BEHAVIOR

    def _is_urgent(self, state: BehaviorState) -> bool:
        return (
            not state.stale
            and state.stress_level >= self.config.critical_stress_threshold
            and state.stress_trend == Trend.RISING
        )

    def handle_state(self, state: BehaviorState) -> None:
        """
        Called with every freshly fused state. Wakes the decision loop
        immediately when stress crosses the critical threshold mid-session.
        """
        session = self._session
        if self._phase != SessionPhase.PLAYING or session is None:
            return
        if session.calming_override:
            return
        if self._is_urgent(state):
            logger.warning(
                f"Urgent interrupt: stress {state.stress_level:.2f} rising above "
                f"{self.config.critical_stress_threshold:.2f}"
            )
            self.request_urgent_wake()

    def request_urgent_wake(self) -> None:
        """Wake the decision loop now instead of at the next normal tick."""
        self._urgent_pending = True
        if self._wake is None or self._loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._wake.set()
        else:
            self._loop.call_soon_threadsafe(self._wake.set)

    # --- Decision loop ---

    def tick(self, now: Optional[datetime] = None, urgent: bool = False) -> SessionPhase:
        """
        Run one decision-loop step.
        Returns the phase the orchestrator rests in afterwards.
        """
        if self._phase == SessionPhase.TERMINATED:
            return self._phase
        if now is None:
            now = self._clock()
        if urgent or self._urgent_pending:
            logger.debug(f"Decision loop woken early at {now.isoformat()}")
        self._urgent_pending = False

        schedule = self._ensure_schedule(now)
        behavior = self._effective_behavior(now)

        if self._phase == SessionPhase.PLAYING:
            reason = self._interrupt_reason(behavior, now)
            if reason is not None:
                self._phase = SessionPhase.ADAPTING
                self._adapt(reason, behavior, now)

        if self._phase == SessionPhase.IDLE:
            self._schedule_next(schedule, behavior, now)

        self._publish(now)
        return self._phase

    def _interrupt_reason(self, behavior: BehaviorState, now: datetime) -> Optional[str]:
        session = self._session
        if session is None:
            return None

        if not session.calming_override and self._is_urgent(behavior):
            return INTERRUPT_STRESS

        elapsed = session.elapsed_seconds(now)
        if elapsed >= session.planned_duration_seconds:
            return INTERRUPT_EXPIRED

        if (
            not behavior.stale
            and behavior.engagement_level <= self.config.boredom_threshold
            and behavior.engagement_trend == Trend.FALLING
            and elapsed >= self.config.min_play_seconds_before_escalation
        ):
            return INTERRUPT_BOREDOM

        return None

    def _adapt(self, reason: str, behavior: BehaviorState, now: datetime) -> None:
        session = self._session

        if reason == INTERRUPT_STRESS:
            self._log_adjustment(
                session, now, "stress-interrupt",
                f"stress {behavior.stress_level:.2f} rising above "
                f"{self.config.critical_stress_threshold:.2f}",
            )
            try:
                item = self.selector.select_next(
                    session.slot,
                    behavior,
                    self.library.items(),
                    category_override=self.config.calming_category,
                    now=now,
                )
            except NoEligibleContentError as e:
                logger.warning(f"No calming content available: {e}")
                self._terminate(TerminationReason.STRESS_PREEMPTED, now)
                return
            self._continue_calming(session, item, behavior, now)
            return

        if reason == INTERRUPT_BOREDOM:
            self._log_adjustment(
                session, now, "boredom-escalation",
                f"engagement {behavior.engagement_level:.2f} falling below "
                f"{self.config.boredom_threshold:.2f}",
            )
            self._terminate(TerminationReason.BOREDOM_ESCALATED, now)
            return

        self._terminate(TerminationReason.EXPIRED, now)

    def _schedule_next(
        self, schedule: Optional[Schedule], behavior: BehaviorState, now: datetime
    ) -> None:
        slot = schedule.slot_at(now) if schedule else None
        if slot is None:
            return

        self._phase = SessionPhase.SCHEDULED
        try:
            item = self.selector.select_next(slot, behavior, self.library.items(), now=now)
        except NoEligibleContentError as e:
            self._handle_no_content(slot, behavior, e, now)
            return

        self._no_content_slot = None
        self._no_content_count = 0
        self._no_content_signalled = False
        self._start_session(slot, item, behavior, now)

    def _handle_no_content(
        self,
        slot: TimeSlot,
        behavior: BehaviorState,
        error: NoEligibleContentError,
        now: datetime,
    ) -> None:
        if self._no_content_slot == slot.start:
            self._no_content_count += 1
        else:
            self._no_content_slot = slot.start
            self._no_content_count = 1
            self._no_content_signalled = False
        logger.warning(f"{error} (attempt {self._no_content_count} for this slot)")

        if self._no_content_count < NO_CONTENT_LIMIT:
            self._phase = SessionPhase.IDLE
            return

        if self._last_item is not None:
            session = self._start_session(slot, self._last_item, behavior, now)
            self._log_adjustment(session, now, "held-previous", str(error))
            return

        if not self._no_content_signalled:
            self.emitter.emit(PlaybackDirective(
                directive_type=DirectiveType.NO_CONTENT,
                category=slot.category,
                intensity=0.0,
                planned_duration_seconds=0.0,
                issued_at=now,
            ))
            self._no_content_signalled = True
        self._phase = SessionPhase.IDLE

    # --- Session lifecycle ---

    def _duration_limit(self, now: datetime, slot: Optional[TimeSlot] = None) -> float:
        """A session never outlasts the dog's attention span or, when given, its slot."""
        limit = self.profile.attention_span_minutes * 60
        if slot is not None:
            limit = min(limit, (slot.end - now).total_seconds())
        return limit

    def _start_session(
        self,
        slot: TimeSlot,
        item: ContentItem,
        behavior: BehaviorState,
        now: datetime,
    ) -> Session:
        desired = self.selector.desired_intensity(slot, behavior)
        session = Session(
            id=f"sess_{uuid4().hex[:12]}",
            active_item=item,
            slot=slot,
            started_at=now,
            item_started_at=now,
            planned_duration_seconds=planned_duration(
                item, desired, self._duration_limit(now, slot)
            ),
            desired_intensity=desired,
        )
        self._session = session
        self._play(session, item, now)
        logger.info(
            f"Session {session.id} started: {item.id} for "
            f"{session.planned_duration_seconds:.0f}s in {slot.period} slot"
        )
        return session

    def _continue_calming(
        self,
        session: Session,
        item: ContentItem,
        behavior: BehaviorState,
        now: datetime,
    ) -> None:
        """Adapting → Playing on the same session, with calming content forced."""
        desired = self.selector.desired_intensity(session.slot, behavior)
        session.active_item = item
        session.item_started_at = now
        session.desired_intensity = desired
        session.planned_duration_seconds = planned_duration(
            item, desired, self._duration_limit(now)
        )
        session.calming_override = True
        self._log_adjustment(
            session, now, "calming-override",
            f"switched to {item.id} ({item.category.value})",
        )
        self._play(session, item, now)
        logger.info(f"Session {session.id} adapted to calming content {item.id}")

    def _play(self, session: Session, item: ContentItem, now: datetime) -> None:
        self.emitter.emit(PlaybackDirective(
            content_item_id=item.id,
            category=item.category,
            intensity=item.intensity,
            planned_duration_seconds=session.planned_duration_seconds,
            issued_at=now,
            session_id=session.id,
        ))
        self.rotation.record_play(item.id, now)
        self._last_item = item
        self._phase = SessionPhase.PLAYING

    def _log_adjustment(self, session: Session, now: datetime, reason: str, detail: str) -> None:
        session.adjustment_log.append(AdjustmentEvent(
            timestamp=now,
            reason=reason,
            detail=detail,
            item_id=session.active_item.id,
        ))

    def _terminate(self, reason: TerminationReason, now: datetime) -> Optional[Session]:
        session = self._session
        self._phase = SessionPhase.TERMINATING
        if session is not None:
            session.ended_at = now
            session.termination_reason = reason
            self._archive.append(session)
            logger.info(f"Session {session.id} ended: {reason.value}")
        self._session = None
        self._phase = SessionPhase.IDLE
        return session

    def stop_session(self, now: Optional[datetime] = None) -> Optional[Session]:
        """Manually stop the playing session. Returns the archived session."""
        if self._session is None or self._phase == SessionPhase.TERMINATED:
            return None
        if now is None:
            now = self._clock()
        return self._terminate(TerminationReason.MANUAL_STOP, now)

    def shutdown(self) -> None:
        """Move to TERMINATED from any state. Safe to call more than once."""
        if self._phase == SessionPhase.TERMINATED:
            return
        if self._session is not None:
            self._terminate(TerminationReason.SHUTDOWN, self._clock())
        self._phase = SessionPhase.TERMINATED

        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
        if self._wake is not None and self._loop is not None:
            self.request_urgent_wake()
        logger.info("Orchestrator shut down")

    # --- Async runtime ---

    async def _sleep_until_woken(self, stop_event: asyncio.Event) -> None:
        waiters = [
            asyncio.ensure_future(self._wake.wait()),
            asyncio.ensure_future(stop_event.wait()),
        ]
        try:
            await asyncio.wait(
                waiters,
                timeout=self.config.tick_interval_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def run_async(
        self,
        stop_event: Optional[asyncio.Event] = None,
        pump: Optional[ObservationPump] = None,
    ) -> None:
        """
        Run the decision loop until `stop_event` is set or shutdown() is called.
        When a pump is given it is started alongside and wired for urgent wakes.
        """
        self._running = True
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        if stop_event is None:
            stop_event = asyncio.Event()

        if pump is not None:
            pump.on_state = self.handle_state
            self._pump_task = asyncio.ensure_future(pump.run())

        try:
            while not stop_event.is_set() and self._phase != SessionPhase.TERMINATED:
                self.tick(urgent=self._urgent_pending)
                await self._sleep_until_woken(stop_event)
                self._wake.clear()
        finally:
            self._running = False
            if stop_event.is_set():
                self.shutdown()
            if self._pump_task is not None and not self._pump_task.done():
                self._pump_task.cancel()
            self._pump_task = None
            self._wake = None
            self._loop = None
