from __future__ import annotations

from typing import Any

from manual_publish.models import ArtifactKind, PublishTarget
from manual_publish.pipeline.context import RunContext
from manual_publish.pipeline.state import Step

from .common import build_artifact, deploy_artifact


def manual_target(ctx: RunContext) -> PublishTarget:
    return PublishTarget(
        branch=ctx.settings.pages_branch,
        target_folder=ctx.settings.manual_folder,
    )


def stage_manual_build(ctx: RunContext) -> dict[str, Any]:
    return build_artifact(ctx, stage=Step.MANUAL_BUILD.value, kind=ArtifactKind.manual)


def stage_manual_deploy(ctx: RunContext) -> dict[str, Any]:
    return deploy_artifact(
        ctx,
        stage=Step.MANUAL_DEPLOY.value,
        kind=ArtifactKind.manual,
        target=manual_target(ctx),
    )
