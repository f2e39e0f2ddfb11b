from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from manual_publish.core import read_json

from .models import TriggerEvent


def event_from_workflow_run(
    payload: Mapping[str, Any], *, repository: str | None = None
) -> TriggerEvent:
    """
    Build a TriggerEvent from a GitHub `workflow_run` webhook payload.

    `repository` overrides `payload.repository.full_name` (GitHub also exposes
    it as GITHUB_REPOSITORY).
    """
    run = payload.get("workflow_run")
    if not isinstance(run, Mapping):
        raise ValueError("payload has no 'workflow_run' object")

    repo = repository
    if not repo:
        r = payload.get("repository")
        if isinstance(r, Mapping):
            repo = r.get("full_name")
    if not repo:
        raise ValueError("payload does not name a repository")

    return TriggerEvent(
        source_workflow=str(run.get("name") or ""),
        source_branch=str(run.get("head_branch") or ""),
        conclusion=run.get("conclusion"),
        repository_identifier=str(repo),
        head_sha=(str(run["head_sha"]) if run.get("head_sha") else None),
    )


def load_event_file(path: Path, *, repository: str | None = None) -> TriggerEvent:
    return event_from_workflow_run(read_json(Path(path)), repository=repository)


def event_from_github_env(environ: Mapping[str, str] | None = None) -> TriggerEvent:
    """
    Resolve the trigger from the Actions runtime (GITHUB_EVENT_PATH,
    GITHUB_REPOSITORY).
    """
    env = os.environ if environ is None else environ
    event_path = env.get("GITHUB_EVENT_PATH")
    if not event_path:
        raise ValueError(
            "GITHUB_EVENT_PATH is not set; pass --event or the explicit trigger flags."
        )
    return load_event_file(Path(event_path), repository=env.get("GITHUB_REPOSITORY"))
