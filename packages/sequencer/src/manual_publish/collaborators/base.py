from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from manual_publish.models import ArtifactKind, DeployAck


@runtime_checkable
class Builder(Protocol):
    """
    Produces the content directory for an artifact kind.

    Must be deterministic for a given source state and have no side effects
    beyond local output. Raises BuildError.
    """

    def build(self, kind: ArtifactKind) -> Path: ...


@runtime_checkable
class VersionProbe(Protocol):
    """Reads the declared future API version. Raises ProbeError."""

    def query_project_version(self) -> str: ...


@runtime_checkable
class Publisher(Protocol):
    """
    Merge-replace `content_root` into `target_folder` on `branch`.

    Contents of the target folder are fully replaced; sibling folders are
    left untouched. Deploying unchanged content again must succeed and
    report `changed=False`. Raises DeployError.
    """

    def deploy(self, content_root: Path, branch: str, target_folder: str) -> DeployAck: ...
