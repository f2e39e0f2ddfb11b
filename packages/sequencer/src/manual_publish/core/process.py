from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import structlog

from .errors import CommandError
from .logging import redact
from .provenance import Timer

log = structlog.get_logger(__name__)

_TAIL_LINES = 20


@dataclass(frozen=True, slots=True)
class CommandResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str
    duration_ms: int


def _tail(text: str | None) -> str:
    if not text:
        return ""
    lines = text.rstrip().splitlines()
    return "\n".join(lines[-_TAIL_LINES:])


def run_command(
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
) -> CommandResult:
    """
    Run an external command to completion.

    With `capture=False` the child's output goes straight to our stdout/stderr,
    which is what long builds want (live logs). Raises CommandError on a
    non-zero exit or when the executable cannot be started. Argv and output are
    passed through the secret redactor before they reach logs or exceptions.
    """
    args = [str(a) for a in argv]
    shown = [redact(a) for a in args]

    log.debug("command.start", argv=shown, cwd=str(cwd) if cwd else None)

    with Timer() as t:
        try:
            proc = subprocess.run(
                args,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                capture_output=capture,
                text=True,
                check=False,
            )
        except OSError as e:
            raise CommandError(argv=shown, returncode=None, output_tail=str(e)) from e

    duration = int(t.duration_ms or 0)
    stdout = proc.stdout or ""
    stderr = proc.stderr or ""

    if proc.returncode != 0:
        log.debug(
            "command.failed", argv=shown, returncode=proc.returncode, duration_ms=duration
        )
        raise CommandError(
            argv=shown,
            returncode=proc.returncode,
            output_tail=redact(_tail(stderr) or _tail(stdout)),
        )

    log.debug("command.finish", argv=shown, duration_ms=duration)
    return CommandResult(
        argv=shown,
        returncode=proc.returncode,
        stdout=stdout,
        stderr=stderr,
        duration_ms=duration,
    )
