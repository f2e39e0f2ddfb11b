from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from manual_publish.core import BuildError, DeployError, SequencerError
from manual_publish.models import ArtifactKind, BuildArtifact, PublishTarget
from manual_publish.pipeline.context import RunContext
from manual_publish.pipeline.events import EventType


@contextmanager
def collaborator_errors(error_cls: type[SequencerError], what: str) -> Iterator[None]:
    """
    Re-raise anything a collaborator throws as `error_cls`, unless it is
    already one of our own errors.
    """
    try:
        yield
    except SequencerError:
        raise
    except Exception as e:
        raise error_cls(f"{what} failed: {type(e).__name__}: {e}") from e


def build_artifact(ctx: RunContext, *, stage: str, kind: ArtifactKind) -> dict[str, Any]:
    with collaborator_errors(BuildError, f"{kind} build"):
        content_root = ctx.builder.build(kind)
    if content_root is None or not Path(content_root).is_dir():
        raise BuildError(f"{kind} build did not produce a directory: {content_root}")

    artifact = BuildArtifact(kind=kind, content_root=Path(content_root))
    ref = ctx.record_artifact(stage=stage, artifact=artifact)
    return {
        "artifact": artifact.to_dict(),
        "_artifacts": [ref],
        "_metrics": {"files": ref.files, "bytes": ref.bytes},
    }


def deploy_artifact(
    ctx: RunContext, *, stage: str, kind: ArtifactKind, target: PublishTarget
) -> dict[str, Any]:
    artifact = ctx.take_artifact(stage=stage, kind=kind)

    ctx.emit(
        EventType.DEPLOY_START,
        stage=stage,
        kind=kind.value,
        branch=target.branch,
        target_folder=target.target_folder,
    )
    with collaborator_errors(DeployError, f"deploy to {target.branch}/{target.target_folder}"):
        ack = ctx.publisher.deploy(
            artifact.content_root, target.branch, target.target_folder
        )
    if ack.branch != target.branch or ack.target_folder != target.target_folder:
        raise DeployError(
            f"publisher acknowledged {ack.branch}/{ack.target_folder}, "
            f"expected {target.branch}/{target.target_folder}"
        )
    ctx.emit(
        EventType.DEPLOY_FINISH,
        stage=stage,
        kind=kind.value,
        branch=ack.branch,
        target_folder=ack.target_folder,
        changed=ack.changed,
        commit=ack.commit,
    )
    return {
        "deploy": ack.to_dict(),
        "_metrics": {"changed": int(ack.changed), "files": ack.files},
    }
