from __future__ import annotations

from typing import Any

from manual_publish.core import ProbeError
from manual_publish.models import ArtifactKind, PublishTarget, validate_target_folder
from manual_publish.pipeline.context import RunContext
from manual_publish.pipeline.events import EventType
from manual_publish.pipeline.state import Step

from .common import build_artifact, collaborator_errors, deploy_artifact

API_VERSION_ENV = "api_version"


def stage_version_probe(ctx: RunContext) -> dict[str, Any]:
    """
    Query the future API version and export it for the redirect deploy.

    The value is used verbatim as the redirect farm's folder, so it must be
    a usable folder name and must not collide with the manual's folder.
    """
    stage = Step.VERSION_PROBE.value
    with collaborator_errors(ProbeError, "version query"):
        value = ctx.probe.query_project_version()

    if not isinstance(value, str) or not value:
        raise ProbeError(f"version query returned an empty value: {value!r}")
    try:
        validate_target_folder(value)
    except ValueError as e:
        raise ProbeError(f"version query returned an unusable value: {e}") from e
    if value == ctx.settings.manual_folder:
        raise ProbeError(
            f"version {value!r} collides with the manual folder {ctx.settings.manual_folder!r}"
        )

    ctx.emit(EventType.VERSION_PROBED, stage=stage, value=value)
    ctx.export_env(stage=stage, name=API_VERSION_ENV, value=value)
    return {"api_version": value}


def stage_redirect_build(ctx: RunContext) -> dict[str, Any]:
    return build_artifact(
        ctx, stage=Step.REDIRECT_BUILD.value, kind=ArtifactKind.redirect_farm
    )


def stage_redirect_deploy(ctx: RunContext) -> dict[str, Any]:
    target = PublishTarget(
        branch=ctx.settings.pages_branch,
        target_folder=ctx.require_env(API_VERSION_ENV),
    )
    return deploy_artifact(
        ctx,
        stage=Step.REDIRECT_DEPLOY.value,
        kind=ArtifactKind.redirect_farm,
        target=target,
    )
