from __future__ import annotations

from pathlib import Path

import structlog

from manual_publish.core import (
    BuildError,
    CommandError,
    ProbeError,
    Settings,
    WorkLayout,
    run_command,
)
from manual_publish.models import ArtifactKind

log = structlog.get_logger(__name__)

# Out-link names match what `nix build` produces for these attributes.
OUT_LINKS: dict[ArtifactKind, str] = {
    ArtifactKind.manual: "result",
    ArtifactKind.redirect_farm: "result-redirectFarm",
}


class NixBuilder:
    """
    Builds artifacts with `nix build <flake>#<attr> -L`.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.layout = WorkLayout(root=Path(settings.work_root))

    def attr_for(self, kind: ArtifactKind) -> str:
        if kind == ArtifactKind.manual:
            return self.settings.manual_attr
        return self.settings.redirect_farm_attr

    def build(self, kind: ArtifactKind) -> Path:
        kind = ArtifactKind(kind)
        installable = f"{self.settings.flake_ref}#{self.attr_for(kind)}"
        out_link = self.layout.out_link(OUT_LINKS[kind])
        out_link.parent.mkdir(parents=True, exist_ok=True)

        log.info("nix.build", installable=installable, out_link=str(out_link))
        try:
            run_command(
                [
                    self.settings.nix_bin,
                    "build",
                    installable,
                    "-L",
                    "--out-link",
                    str(out_link),
                ],
                capture=False,
            )
        except CommandError as e:
            raise BuildError(f"nix build {installable} failed: {e}") from e

        if not out_link.exists():
            raise BuildError(f"nix build {installable} produced no output at {out_link}")
        root = out_link.resolve()
        if not root.is_dir():
            raise BuildError(f"build output is not a directory: {root}")
        return root


class NixVersionProbe:
    """
    Evaluates the future API version with `nix eval --raw <flake>#<attr>`.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def query_project_version(self) -> str:
        installable = f"{self.settings.flake_ref}#{self.settings.api_version_attr}"
        try:
            res = run_command([self.settings.nix_bin, "eval", "--raw", installable])
        except CommandError as e:
            raise ProbeError(f"nix eval {installable} failed: {e}") from e

        value = res.stdout.strip()
        if not value:
            raise ProbeError(f"nix eval {installable} returned an empty value")
        log.info("nix.eval", installable=installable, value=value)
        return value
