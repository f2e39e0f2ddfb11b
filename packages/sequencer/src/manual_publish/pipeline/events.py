from __future__ import annotations

import json
import os
import socket
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from manual_publish.core import utc_now_iso

from .types import Event


class EventType(str, Enum):
    RUN_ENV = "run.env"
    RUN_START = "run.start"
    RUN_FINISH = "run.finish"

    GATE_SKIPPED = "gate.skipped"
    GATE_REJECTED = "gate.rejected"
    GATE_PASSED = "gate.passed"

    STAGE_START = "stage.start"
    STAGE_METRICS = "stage.metrics"
    STAGE_SUCCESS = "stage.success"
    STAGE_FAILED = "stage.failed"

    STATE_CHANGED = "state.changed"

    ARTIFACT_BUILT = "artifact.built"
    ARTIFACT_CONSUMED = "artifact.consumed"

    VERSION_PROBED = "version.probed"
    ENV_EXPORTED = "env.exported"

    DEPLOY_START = "deploy.start"
    DEPLOY_FINISH = "deploy.finish"


class EventSink:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        self.emit(
            Event(
                type=EventType.RUN_ENV.value,
                ts_utc=utc_now_iso(),
                run_id="__init__",
                data={
                    "hostname": socket.gethostname(),
                    "pid": os.getpid(),
                    "cwd": str(Path.cwd()),
                },
            )
        )

    def emit(self, event: Event) -> None:
        line = json.dumps(asdict(event), ensure_ascii=False, default=str)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line)
            f.write("\n")


def make_event(
    *,
    event_type: EventType | str,
    run_id: str,
    stage: Optional[str] = None,
    **data: Any,
) -> Event:
    type_value = (
        event_type.value if isinstance(event_type, EventType) else str(event_type)
    )
    return Event(
        type=type_value,
        ts_utc=utc_now_iso(),
        run_id=run_id,
        stage=stage,
        data=dict(data),
    )
