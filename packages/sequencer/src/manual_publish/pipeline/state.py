from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

from manual_publish.core import InternalError


class RunState(StrEnum):
    INIT = "init"
    MANUAL_BUILT = "manual_built"
    MANUAL_PUBLISHED = "manual_published"
    VERSION_PROBED = "version_probed"
    REDIRECT_BUILT = "redirect_built"
    DONE = "done"
    FAILED = "failed"


class Step(StrEnum):
    MANUAL_BUILD = "manual-build"
    MANUAL_DEPLOY = "manual-deploy"
    VERSION_PROBE = "version-probe"
    REDIRECT_BUILD = "redirect-build"
    REDIRECT_DEPLOY = "redirect-deploy"


PRECONDITION = "precondition"

# state -> (step to run next, state reached when it succeeds)
TRANSITIONS: dict[RunState, tuple[Step, RunState]] = {
    RunState.INIT: (Step.MANUAL_BUILD, RunState.MANUAL_BUILT),
    RunState.MANUAL_BUILT: (Step.MANUAL_DEPLOY, RunState.MANUAL_PUBLISHED),
    RunState.MANUAL_PUBLISHED: (Step.VERSION_PROBE, RunState.VERSION_PROBED),
    RunState.VERSION_PROBED: (Step.REDIRECT_BUILD, RunState.REDIRECT_BUILT),
    RunState.REDIRECT_BUILT: (Step.REDIRECT_DEPLOY, RunState.DONE),
}

# Manual deployed, redirect farm not yet touched.
RESUMABLE_MIDPOINT = RunState.MANUAL_PUBLISHED

STEP_ORDER: tuple[Step, ...] = tuple(step for step, _ in TRANSITIONS.values())


@dataclass(slots=True)
class StateMachine:
    """
    Tracks how far a run has progressed through the fixed step order.

    `last_good` keeps the furthest state reached before a failure, so a failed
    run still reports whether the manual made it out.
    """

    state: RunState = RunState.INIT
    last_good: RunState = RunState.INIT
    failed_step: Optional[str] = None
    history: list[RunState] = field(default_factory=lambda: [RunState.INIT])

    @property
    def terminal(self) -> bool:
        return self.state in (RunState.DONE, RunState.FAILED)

    def next_step(self) -> Step | None:
        if self.terminal:
            return None
        return TRANSITIONS[self.state][0]

    def advance(self, step: Step) -> RunState:
        expected = self.next_step()
        if expected is None or step != expected:
            raise InternalError(
                f"Step {step} is out of order in state {self.state} (expected {expected})"
            )
        self.state = TRANSITIONS[self.state][1]
        self.last_good = self.state
        self.history.append(self.state)
        return self.state

    def fail(self, step: Step | str) -> RunState:
        if self.terminal:
            raise InternalError(f"Cannot fail {step}: run already {self.state}")
        self.failed_step = str(step)
        self.state = RunState.FAILED
        self.history.append(self.state)
        return self.state

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "last_good": self.last_good.value,
            "failed_step": self.failed_step,
            "history": [s.value for s in self.history],
        }
