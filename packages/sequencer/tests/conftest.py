from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from manual_publish.core import (
    BuildError,
    DeployError,
    Settings,
    get_logger,
    load_settings,
)
from manual_publish.models import ArtifactKind, DeployAck, TriggerEvent
from manual_publish.pipeline import EventSink, RunContext
from manual_publish.pipeline.runner import PublishSequencer


class FakeBuilder:
    def __init__(
        self,
        calls: list[tuple[Any, ...]],
        outputs: dict[ArtifactKind, Path],
        *,
        fail: set[ArtifactKind] | None = None,
    ) -> None:
        self.calls = calls
        self.outputs = outputs
        self.fail = fail or set()

    def build(self, kind: ArtifactKind) -> Path:
        self.calls.append(("build", kind.value))
        if kind in self.fail:
            raise BuildError(f"{kind} failed to build")
        return self.outputs[kind]


class FakeProbe:
    def __init__(
        self,
        calls: list[tuple[Any, ...]],
        value: str = "v2",
        *,
        error: Exception | None = None,
    ) -> None:
        self.calls = calls
        self.value = value
        self.error = error

    def query_project_version(self) -> str:
        self.calls.append(("probe",))
        if self.error is not None:
            raise self.error
        return self.value


class InMemoryPages:
    """
    Merge-replace over branch -> folder -> {relative path: bytes}.
    """

    def __init__(
        self, calls: list[tuple[Any, ...]], *, fail_on: set[str] | None = None
    ) -> None:
        self.calls = calls
        self.fail_on = fail_on or set()
        self.branches: dict[str, dict[str, dict[str, bytes]]] = {}
        self.commits = 0

    def deploy(self, content_root: Path, branch: str, target_folder: str) -> DeployAck:
        self.calls.append(("deploy", Path(content_root), branch, target_folder))
        if target_folder in self.fail_on:
            raise DeployError(f"push to {branch}/{target_folder} rejected")

        root = Path(content_root)
        snapshot = {
            p.relative_to(root).as_posix(): p.read_bytes()
            for p in sorted(root.rglob("*"))
            if p.is_file()
        }
        folders = self.branches.setdefault(branch, {})
        changed = folders.get(target_folder) != snapshot
        folders[target_folder] = snapshot
        if changed:
            self.commits += 1
        return DeployAck(
            branch=branch,
            target_folder=target_folder,
            changed=changed,
            commit=f"c{self.commits}" if changed else None,
            files=len(snapshot),
        )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "GITHUB_ENV",
        "GITHUB_TOKEN",
        "GITHUB_EVENT_PATH",
        "GITHUB_REPOSITORY",
        "MANUAL_PUBLISH_DEPLOY_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        work_root=tmp_path / "work",
        run_root=tmp_path / "runs",
        github_env=None,
    )


@pytest.fixture
def calls() -> list[tuple[Any, ...]]:
    return []


@pytest.fixture
def content(tmp_path: Path) -> dict[ArtifactKind, Path]:
    manual = tmp_path / "build" / "manual"
    (manual / "reference").mkdir(parents=True)
    (manual / "index.html").write_text("<h1>Colmena</h1>\n")
    (manual / "reference" / "cli.html").write_text("<p>apply</p>\n")

    redirect = tmp_path / "build" / "redirect-farm"
    redirect.mkdir(parents=True)
    (redirect / "index.html").write_text(
        '<meta http-equiv="refresh" content="0; url=../unstable/">\n'
    )
    return {ArtifactKind.manual: manual, ArtifactKind.redirect_farm: redirect}


def canonical_event(**overrides: Any) -> TriggerEvent:
    fields: dict[str, Any] = {
        "source_workflow": "Build",
        "source_branch": "main",
        "conclusion": "success",
        "repository_identifier": "zhaofengli/colmena",
        "head_sha": "0123abcd",
    }
    fields.update(overrides)
    return TriggerEvent(**fields)


@pytest.fixture
def make_sequencer(
    settings: Settings,
    calls: list[tuple[Any, ...]],
    content: dict[ArtifactKind, Path],
) -> Callable[..., tuple[PublishSequencer, FakeBuilder, FakeProbe, InMemoryPages]]:
    def _make(
        *,
        build_fail: set[ArtifactKind] | None = None,
        version: str = "v2",
        probe_error: Exception | None = None,
        deploy_fail_on: set[str] | None = None,
        cfg: Settings | None = None,
    ) -> tuple[PublishSequencer, FakeBuilder, FakeProbe, InMemoryPages]:
        builder = FakeBuilder(calls, content, fail=build_fail)
        probe = FakeProbe(calls, version, error=probe_error)
        pages = InMemoryPages(calls, fail_on=deploy_fail_on)
        seq = PublishSequencer(
            settings=cfg or settings, builder=builder, probe=probe, publisher=pages
        )
        return seq, builder, probe, pages

    return _make


@pytest.fixture
def trigger() -> Callable[..., TriggerEvent]:
    return canonical_event


@pytest.fixture
def ctx(
    tmp_path: Path,
    settings: Settings,
    calls: list[tuple[Any, ...]],
    content: dict[ArtifactKind, Path],
) -> RunContext:
    return RunContext(
        run_id="r1",
        run_root=tmp_path / "run",
        event=canonical_event(),
        settings=settings,
        builder=FakeBuilder(calls, content),
        probe=FakeProbe(calls),
        publisher=InMemoryPages(calls),
        logger=get_logger("test"),
        events=EventSink(tmp_path / "run" / "events.jsonl"),
    )
