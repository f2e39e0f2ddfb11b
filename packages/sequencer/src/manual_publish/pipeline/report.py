from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from manual_publish.core import atomic_write_json

from .stage import StageResult


@dataclass(slots=True)
class RunReport:
    run_id: str
    started_at_utc: str
    finished_at_utc: str
    status: str  # "published" | "skipped" | "failed"
    duration_ms: int

    outcome: dict[str, Any] = field(default_factory=dict)
    trigger: dict[str, Any] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)
    stages: list[StageResult] = field(default_factory=list)
    deploys: list[dict[str, Any]] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    events_jsonl: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def write_json(self, path: Path) -> None:
        atomic_write_json(Path(path), self.to_dict())


def collect_deploys(stage_results: list[StageResult]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for s in stage_results:
        ack = s.outputs.get("deploy")
        if isinstance(ack, dict):
            out.append({"stage": s.stage, **ack})
    return out
