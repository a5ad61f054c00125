"""
Playback Emitter — hands playback directives to the rendering and audio
collaborators.

Behavioral Contract:
- Dispatches every directive to every registered sink, fire-and-forget
- Coroutine sinks are scheduled on the running event loop, never awaited
- A failing sink is logged and reported; it never stops the other sinks
  or the orchestrator's own state transitions
- Does not track whether playback actually started
"""

import asyncio
import inspect
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from loguru import logger

from canine_kernel.models.content import DirectiveType, PlaybackDirective

Sink = Callable[[PlaybackDirective], Any]


class PlaybackEmitter:
    """
    Fan-out of directives to named sinks. The default sinks only log;
    real deployments register the renderer and audio engine.
    """

    def __init__(self, history_size: int = 100, default_sinks: bool = True):
        self._sinks: Dict[str, Sink] = {}
        self._history: Deque[PlaybackDirective] = deque(maxlen=history_size)
        self._pending: set = set()
        if default_sinks:
            self._register_default_sinks()

    def _register_default_sinks(self) -> None:
        self._sinks["renderer"] = self._log_renderer
        self._sinks["audio"] = self._log_audio

    def register_sink(self, name: str, sink: Sink) -> None:
        """Register (or replace) a sink."""
        self._sinks[name] = sink

    def unregister_sink(self, name: str) -> None:
        self._sinks.pop(name, None)

    @property
    def sink_names(self) -> List[str]:
        return sorted(self._sinks)

    @property
    def history(self) -> List[PlaybackDirective]:
        """Directives emitted so far, oldest first."""
        return list(self._history)

    @property
    def last_directive(self) -> Optional[PlaybackDirective]:
        return self._history[-1] if self._history else None

    def emit(self, directive: PlaybackDirective) -> List[dict]:
        """Dispatch a directive to all sinks. Returns one result per sink."""
        self._history.append(directive)
        return [self._dispatch(name, sink, directive) for name, sink in list(self._sinks.items())]

    def _dispatch(self, name: str, sink: Sink, directive: PlaybackDirective) -> dict:
        start = time.monotonic()
        try:
            if inspect.iscoroutinefunction(sink):
                self._schedule(name, sink(directive))
                status = "scheduled"
            else:
                sink(directive)
                status = "delivered"
            return {
                "sink": name,
                "success": True,
                "status": status,
                "duration": round(time.monotonic() - start, 3),
            }
        except Exception as e:
            logger.warning(f"Playback sink '{name}' failed: {e}")
            return {
                "sink": name,
                "success": False,
                "error": str(e),
                "duration": round(time.monotonic() - start, 3),
            }

    def _schedule(self, name: str, coroutine) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coroutine.close()
            raise RuntimeError(f"sink '{name}' is async but no event loop is running")

        task = loop.create_task(coroutine)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_done(name, t))

    def _on_done(self, name: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Playback sink '{name}' failed: {error}")

    # --- Default Sinks ---

    def _log_renderer(self, directive: PlaybackDirective) -> None:
        if directive.directive_type == DirectiveType.NO_CONTENT:
            logger.info(f"Renderer: no content available for {directive.category.value}")
            return
        logger.debug(
            f"Renderer: {directive.content_item_id} ({directive.category.value}, "
            f"intensity {directive.intensity:.2f}) for {directive.planned_duration_seconds:.0f}s"
        )

    def _log_audio(self, directive: PlaybackDirective) -> None:
        logger.debug(
            f"Audio: {directive.content_item_id or 'silence'} at intensity {directive.intensity:.2f}"
        )
