from .context import RunContext
from .events import EventSink, EventType, make_event
from .report import RunReport
from .stage import FunctionStage, Stage, StageFn, StageResult, run_stage
from .state import (
    PRECONDITION,
    RESUMABLE_MIDPOINT,
    STEP_ORDER,
    RunState,
    StateMachine,
    Step,
)
from .types import ArtifactRef, Event

__all__ = [
    "RunContext",
    "EventSink",
    "EventType",
    "make_event",
    "RunReport",
    "FunctionStage",
    "Stage",
    "StageFn",
    "StageResult",
    "run_stage",
    "PRECONDITION",
    "RESUMABLE_MIDPOINT",
    "STEP_ORDER",
    "RunState",
    "StateMachine",
    "Step",
    "ArtifactRef",
    "Event",
]
