from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

# Any non-empty identifier reaches the gate; non-canonical ones are skipped there.
RepoId = Annotated[
    str,
    StringConstraints(min_length=1),
]

_RESERVED_FOLDERS = frozenset({".", "..", ".git"})


class Conclusion(StrEnum):
    success = "success"
    failure = "failure"
    other = "other"


class ArtifactKind(StrEnum):
    manual = "manual"
    redirect_farm = "redirect-farm"


class TriggerEvent(BaseModel):
    """
    The upstream pipeline completion that started this run.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    source_workflow: str = Field(..., min_length=1, examples=["Build"])
    source_branch: str = Field(..., min_length=1, examples=["main"])
    conclusion: Conclusion
    repository_identifier: RepoId = Field(..., examples=["zhaofengli/colmena"])
    head_sha: Optional[str] = None

    @field_validator("conclusion", mode="before")
    @classmethod
    def _coerce_conclusion(cls, v: Any) -> Any:
        # cancelled, skipped, timed_out, neutral, ... all collapse to "other"
        if isinstance(v, Conclusion):
            return v
        s = str(v or "").strip().lower()
        return s if s in Conclusion.__members__ else Conclusion.other


def validate_target_folder(value: str) -> str:
    """
    Check that `value` is a single path segment that can safely be replaced
    under the pages branch root. Returns it unchanged.
    """
    if not isinstance(value, str) or not value:
        raise ValueError("target folder must be a non-empty string")
    if any(c.isspace() or not c.isprintable() for c in value):
        raise ValueError(f"target folder contains whitespace or control characters: {value!r}")
    if "/" in value or "\\" in value:
        raise ValueError(f"target folder must be a single path segment: {value!r}")
    if value in _RESERVED_FOLDERS:
        raise ValueError(f"target folder is reserved: {value!r}")
    return value


class PublishTarget(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    branch: str = Field(..., min_length=1, examples=["gh-pages"])
    target_folder: str = Field(..., examples=["unstable", "0.5"])

    @field_validator("target_folder")
    @classmethod
    def _check_folder(cls, v: str) -> str:
        return validate_target_folder(v)


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """
    A directory produced by a build step, consumed once by its deploy step.
    """

    kind: ArtifactKind
    content_root: Path

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "content_root": str(self.content_root)}


@dataclass(frozen=True, slots=True)
class DeployAck:
    """
    Acknowledgement from the publish collaborator.

    `changed` is False when the target folder already held identical content
    and nothing was committed.
    """

    branch: str
    target_folder: str
    changed: bool
    commit: Optional[str] = None
    files: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "branch": self.branch,
            "target_folder": self.target_folder,
            "changed": self.changed,
            "commit": self.commit,
            "files": self.files,
        }


class OutcomeStatus(StrEnum):
    published = "published"
    skipped = "skipped"
    failed = "failed"


@dataclass(frozen=True, slots=True)
class Outcome:
    status: OutcomeStatus
    stage: Optional[str] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def published(cls) -> "Outcome":
        return cls(status=OutcomeStatus.published)

    @classmethod
    def skipped(cls, reason: str) -> "Outcome":
        return cls(status=OutcomeStatus.skipped, message=reason)

    @classmethod
    def failed(cls, stage: str, *, error_kind: str, message: str) -> "Outcome":
        return cls(
            status=OutcomeStatus.failed,
            stage=stage,
            error_kind=error_kind,
            message=message,
        )

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.failed

    def __str__(self) -> str:
        if self.status == OutcomeStatus.failed:
            return f"Failed({self.stage})"
        return self.status.value.capitalize()

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "stage": self.stage,
            "error_kind": self.error_kind,
            "message": self.message,
        }
