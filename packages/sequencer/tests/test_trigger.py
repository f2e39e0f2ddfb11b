from __future__ import annotations

import json
from pathlib import Path

import pytest

from manual_publish.models import Conclusion
from manual_publish.trigger import (
    event_from_github_env,
    event_from_workflow_run,
    load_event_file,
)


def _payload(**run: object) -> dict[str, object]:
    workflow_run: dict[str, object] = {
        "name": "Build",
        "head_branch": "main",
        "conclusion": "success",
        "head_sha": "0123abcd",
    }
    workflow_run.update(run)
    return {
        "action": "completed",
        "workflow_run": workflow_run,
        "repository": {"full_name": "zhaofengli/colmena"},
    }


def test_workflow_run_payload_maps_to_trigger() -> None:
    ev = event_from_workflow_run(_payload())

    assert ev.source_workflow == "Build"
    assert ev.source_branch == "main"
    assert ev.conclusion == Conclusion.success
    assert ev.repository_identifier == "zhaofengli/colmena"
    assert ev.head_sha == "0123abcd"


@pytest.mark.parametrize("raw", ["cancelled", "skipped", "timed_out", None])
def test_other_conclusions_collapse(raw: object) -> None:
    assert event_from_workflow_run(_payload(conclusion=raw)).conclusion == Conclusion.other


def test_repository_override_wins() -> None:
    ev = event_from_workflow_run(_payload(), repository="someone/colmena")
    assert ev.repository_identifier == "someone/colmena"


def test_payload_without_workflow_run_is_rejected() -> None:
    with pytest.raises(ValueError, match="workflow_run"):
        event_from_workflow_run({"repository": {"full_name": "a/b"}})


def test_payload_without_repository_is_rejected() -> None:
    payload = _payload()
    del payload["repository"]
    with pytest.raises(ValueError, match="repository"):
        event_from_workflow_run(payload)


def test_github_env_resolution(tmp_path: Path) -> None:
    path = tmp_path / "event.json"
    path.write_text(json.dumps(_payload(head_branch="release-0.4")))

    ev = event_from_github_env(
        {"GITHUB_EVENT_PATH": str(path), "GITHUB_REPOSITORY": "fork/colmena"}
    )
    assert ev.source_branch == "release-0.4"
    assert ev.repository_identifier == "fork/colmena"
    assert load_event_file(path).repository_identifier == "zhaofengli/colmena"


def test_github_env_without_event_path_is_rejected() -> None:
    with pytest.raises(ValueError, match="GITHUB_EVENT_PATH"):
        event_from_github_env({})
