from __future__ import annotations

import traceback
from dataclasses import dataclass


class SequencerError(RuntimeError):
    """Base error"""

    kind: str = "internal"


@dataclass(frozen=True, slots=True)
class StageError:
    """
    A normalized error record for stage failures.
    """

    exc_type: str
    kind: str
    message: str
    traceback: str


def error_kind(exc: BaseException) -> str:
    return exc.kind if isinstance(exc, SequencerError) else InternalError.kind


def stage_error_from_exc(exc: BaseException) -> StageError:
    return StageError(
        exc_type=type(exc).__name__,
        kind=error_kind(exc),
        message=str(exc),
        traceback=traceback.format_exc(),
    )


class PreconditionFailed(SequencerError):
    """
    The trigger does not carry the upstream guarantees the sequencer relies on
    (upstream success on the canonical branch of the expected workflow).
    """

    kind = "precondition"


class BuildError(SequencerError):
    """An artifact failed to build"""

    kind = "build"


class ProbeError(SequencerError):
    """Version query failed or returned an unusable value"""

    kind = "probe"


class DeployError(SequencerError):
    """
    The publish collaborator could not complete the merge-replace
    (authentication, network, git failure, invalid target).
    """

    kind = "deploy"


class InternalError(SequencerError):
    """Bugs or invariant violation in our code"""

    kind = "internal"


class CommandError(SequencerError):
    """An external command exited non-zero or could not be started"""

    def __init__(
        self,
        *,
        argv: list[str],
        returncode: int | None,
        output_tail: str = "",
    ) -> None:
        shown = " ".join(argv)
        if returncode is None:
            msg = f"Command could not be started: {shown}"
        else:
            msg = f"Command failed with exit code {returncode}: {shown}"
        if output_tail:
            msg += f"\n{output_tail}"
        super().__init__(msg)
        self.argv = argv
        self.returncode = returncode
        self.output_tail = output_tail
