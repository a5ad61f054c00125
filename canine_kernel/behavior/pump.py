"""
Observation Pump — bounded hand-off between the vision producer and the
Behavior Fusion Engine.

The producer runs at a higher cadence than the decision loop. Observations
are queued (bounded, oldest dropped when full) and folded into the engine
by a single consumer task. Every resulting state is passed to `on_state`,
which is how urgent interrupts reach the decision loop.
"""

import asyncio
from typing import Callable, Optional

from loguru import logger

from canine_kernel.behavior.fusion import BehaviorFusionEngine
from canine_kernel.models.behavior import BehaviorObservation, BehaviorState


class ObservationPump:

    def __init__(
        self,
        engine: BehaviorFusionEngine,
        queue_size: int = 64,
        on_state: Optional[Callable[[BehaviorState], None]] = None,
    ):
        self.engine = engine
        self.on_state = on_state
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.dropped_count = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, observation: BehaviorObservation) -> None:
        """Enqueue without blocking; the oldest observation gives way when full."""
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped_count += 1
            logger.warning(
                f"Observation queue full ({self._queue.maxsize} pending); "
                f"dropped oldest observation"
            )
        self._queue.put_nowait(observation)

    def process_pending(self) -> int:
        """Drain everything currently queued. Returns the number processed."""
        processed = 0
        while not self._queue.empty():
            observation = self._queue.get_nowait()
            try:
                self._deliver(observation)
            finally:
                self._queue.task_done()
            processed += 1
        return processed

    def _deliver(self, observation: BehaviorObservation) -> None:
        state = self.engine.ingest(observation)
        if self.on_state is not None:
            self.on_state(state)

    async def run(self) -> None:
        """Consume observations until cancelled."""
        while True:
            observation = await self._queue.get()
            try:
                self._deliver(observation)
            finally:
                self._queue.task_done()
