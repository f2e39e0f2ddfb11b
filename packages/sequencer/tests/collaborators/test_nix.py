from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from manual_publish.collaborators import nix
from manual_publish.collaborators.nix import NixBuilder, NixVersionProbe
from manual_publish.core import BuildError, CommandError, CommandResult, ProbeError, Settings
from manual_publish.models import ArtifactKind


class FakeNix:
    """
    Stands in for `run_command`; `nix build` creates the out-link it is asked for.
    """

    def __init__(self, tmp_path: Path, *, stdout: str = "", fail: bool = False) -> None:
        self.tmp_path = tmp_path
        self.stdout = stdout
        self.fail = fail
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self.make_link = True

    def __call__(self, argv: list[str], **kw: Any) -> CommandResult:
        argv = list(argv)
        self.calls.append((argv, kw))
        if self.fail:
            raise CommandError(argv=argv, returncode=1, output_tail="error: boom")
        if argv[1] == "build" and self.make_link:
            store = self.tmp_path / "store" / argv[2].split("#", 1)[1]
            store.mkdir(parents=True)
            (store / "index.html").write_text("ok\n")
            Path(argv[argv.index("--out-link") + 1]).symlink_to(store)
        return CommandResult(argv=argv, returncode=0, stdout=self.stdout, stderr="", duration_ms=1)


@pytest.fixture
def fake_nix(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> FakeNix:
    fake = FakeNix(tmp_path)
    monkeypatch.setattr(nix, "run_command", fake)
    return fake


def test_build_runs_flake_attribute_and_returns_store_path(
    settings: Settings, fake_nix: FakeNix, tmp_path: Path
) -> None:
    root = NixBuilder(settings).build(ArtifactKind.manual)

    argv, kw = fake_nix.calls[0]
    out_link = Path(settings.work_root) / "result"
    assert argv == ["nix", "build", ".#manual", "-L", "--out-link", str(out_link)]
    assert kw == {"capture": False}
    assert root == (tmp_path / "store" / "manual").resolve()
    assert (root / "index.html").read_text() == "ok\n"


def test_redirect_farm_uses_its_own_attribute_and_out_link(
    settings: Settings, fake_nix: FakeNix
) -> None:
    NixBuilder(settings).build(ArtifactKind.redirect_farm)

    argv, _ = fake_nix.calls[0]
    assert argv[2] == ".#manual.redirectFarm"
    assert argv[-1] == str(Path(settings.work_root) / "result-redirectFarm")


def test_build_failure_is_a_build_error(settings: Settings, fake_nix: FakeNix) -> None:
    fake_nix.fail = True
    with pytest.raises(BuildError, match="exit code 1"):
        NixBuilder(settings).build(ArtifactKind.manual)


def test_build_without_out_link_is_a_build_error(
    settings: Settings, fake_nix: FakeNix
) -> None:
    fake_nix.make_link = False
    with pytest.raises(BuildError, match="no output"):
        NixBuilder(settings).build(ArtifactKind.manual)


def test_probe_returns_stripped_raw_value(settings: Settings, fake_nix: FakeNix) -> None:
    fake_nix.stdout = "0.5\n"

    assert NixVersionProbe(settings).query_project_version() == "0.5"
    argv, _ = fake_nix.calls[0]
    assert argv == ["nix", "eval", "--raw", ".#colmena.apiVersion"]


def test_probe_honours_configured_flake(tmp_path: Path, fake_nix: FakeNix) -> None:
    cfg = Settings(
        _env_file=None,
        work_root=tmp_path / "work",
        flake_ref="github:zhaofengli/colmena",
        nix_bin="/run/current-system/sw/bin/nix",
    )
    fake_nix.stdout = "0.4"

    NixVersionProbe(cfg).query_project_version()
    argv, _ = fake_nix.calls[0]
    assert argv[0] == "/run/current-system/sw/bin/nix"
    assert argv[-1] == "github:zhaofengli/colmena#colmena.apiVersion"


def test_probe_empty_value_is_a_probe_error(settings: Settings, fake_nix: FakeNix) -> None:
    fake_nix.stdout = "  \n"
    with pytest.raises(ProbeError, match="empty"):
        NixVersionProbe(settings).query_project_version()


def test_probe_command_failure_is_a_probe_error(settings: Settings, fake_nix: FakeNix) -> None:
    fake_nix.fail = True
    with pytest.raises(ProbeError):
        NixVersionProbe(settings).query_project_version()
