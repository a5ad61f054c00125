"""
Canine Kernel API — FastAPI endpoints.

Exposes the kernel's functionality via a REST API for:
- Behavior observation intake and inspection
- Schedule inspection and rebuilds
- Orchestrator control
- Session history
- Breed and content reference data
"""

from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from canine_kernel.behavior.fusion import BehaviorFusionEngine
from canine_kernel.catalog.breeds import BreedDatabase
from canine_kernel.catalog.library import ContentLibrary
from canine_kernel.errors import ScheduleBuildError
from canine_kernel.models.behavior import BehaviorObservation
from canine_kernel.models.config import FusionConfig, OrchestratorConfig
from canine_kernel.models.content import ContentCategory
from canine_kernel.models.schedule import RotationPolicy
from canine_kernel.orchestrator.loop import SessionOrchestrator
from canine_kernel.output.emitter import PlaybackEmitter


# --- Request/Response Models ---

class RebuildRequest(BaseModel):
    breed: Optional[str] = None


class TickResponse(BaseModel):
    phase: str
    snapshot: dict


# --- Application Factory ---

def create_app(
    orchestrator: Optional[SessionOrchestrator] = None,
    breed: str = "default",
    fusion_config: Optional[FusionConfig] = None,
    orchestrator_config: Optional[OrchestratorConfig] = None,
    rotation_policy: Optional[RotationPolicy] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Canine Kernel API",
        description="Behavior-adaptive content scheduling for dogs",
        version="0.1.0",
    )

    if orchestrator is None:
        orchestrator = SessionOrchestrator(
            fusion=BehaviorFusionEngine(fusion_config),
            breed_database=BreedDatabase(),
            content_library=ContentLibrary(),
            emitter=PlaybackEmitter(),
            breed=breed,
            rotation_policy=rotation_policy,
            config=orchestrator_config,
        )

    fusion = orchestrator.fusion
    breeds = orchestrator.breeds
    library = orchestrator.library

    # Store components on app state for access in endpoints
    app.state.orchestrator = orchestrator
    app.state.fusion = fusion
    app.state.breeds = breeds
    app.state.library = library
    app.state.emitter = orchestrator.emitter

    # === STATUS ===

    @app.get("/status")
    def get_status():
        """Current orchestrator status and snapshot."""
        return {
            "status": orchestrator.status,
            "breed": orchestrator.profile.name,
            "config": orchestrator.config.model_dump(mode="json"),
            "snapshot": orchestrator.snapshot().model_dump(mode="json"),
            "rejected_observations": fusion.rejected_count,
        }

    # === BEHAVIOR ===

    @app.get("/behavior")
    def get_behavior():
        """Current fused behavior state."""
        return fusion.snapshot().model_dump(mode="json")

    @app.post("/observations")
    def ingest_observation(observation: BehaviorObservation):
        """Fold one classified observation into the behavior state."""
        accepted = observation.confidence >= fusion.config.min_confidence
        state = fusion.ingest(observation)
        if accepted:
            orchestrator.handle_state(state)
        return {"accepted": accepted, "state": state.model_dump(mode="json")}

    # === SCHEDULE ===

    @app.get("/schedule")
    def get_schedule():
        """The active schedule."""
        schedule = orchestrator.schedule
        if schedule is None:
            raise HTTPException(404, "No active schedule")
        return schedule.model_dump(mode="json")

    @app.get("/schedule/current")
    def get_current_slot():
        """The slot active right now."""
        slot = orchestrator.schedule_builder.current_slot()
        if slot is None:
            raise HTTPException(404, "No active slot")
        return slot.model_dump(mode="json")

    @app.post("/schedule/rebuild")
    def rebuild_schedule(req: RebuildRequest):
        """Rebuild the remaining schedule, optionally for another breed."""
        try:
            if req.breed:
                schedule = orchestrator.change_breed(req.breed)
            else:
                schedule = orchestrator.rebuild_schedule()
        except ScheduleBuildError as e:
            raise HTTPException(422, str(e))
        return schedule.model_dump(mode="json")

    # === ORCHESTRATOR ===

    @app.post("/orchestrator/tick")
    def trigger_tick():
        """Force a decision-loop step (for testing)."""
        phase = orchestrator.tick()
        return TickResponse(
            phase=phase.value,
            snapshot=orchestrator.snapshot().model_dump(mode="json"),
        )

    @app.post("/session/stop")
    def stop_session():
        """Manually stop the playing session."""
        session = orchestrator.stop_session()
        if session is None:
            raise HTTPException(409, "No session is playing")
        return session.model_dump(mode="json")

    @app.post("/shutdown")
    def shutdown():
        """Terminate the orchestrator. Idempotent."""
        orchestrator.shutdown()
        return {"phase": orchestrator.phase.value}

    @app.get("/sessions")
    def get_sessions(limit: int = 50):
        """Archived sessions, most recent first."""
        sessions = list(reversed(orchestrator.archived_sessions))[:limit]
        return [s.model_dump(mode="json") for s in sessions]

    @app.get("/directives")
    def get_directives():
        """Directives emitted so far, oldest first."""
        return [d.model_dump(mode="json") for d in orchestrator.emitter.history]

    # === REFERENCE DATA ===

    @app.get("/breeds")
    def list_breeds():
        """All known breed names."""
        return breeds.all_breeds()

    @app.get("/breeds/{name}")
    def get_breed(name: str):
        """A breed profile; unknown breeds resolve to the default profile."""
        return {
            "known": breeds.knows(name),
            "profile": breeds.get_profile(name).model_dump(mode="json"),
            "suggestions": [] if breeds.knows(name) else breeds.suggest(name),
        }

    @app.get("/content")
    def list_content(category: Optional[ContentCategory] = None):
        """The content catalog, optionally filtered by category."""
        items = library.by_category(category) if category else library.items()
        return [i.model_dump(mode="json") for i in items]

    return app


# Default application instance
app = create_app()
