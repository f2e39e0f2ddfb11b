from __future__ import annotations

from manual_publish.core import BuildError
from manual_publish.pipeline import FunctionStage, RunContext, run_stage


def test_run_stage_collects_outputs_and_metrics(ctx: RunContext) -> None:
    stage = FunctionStage(
        stage_id="demo", fn=lambda _: {"answer": 42, "_metrics": {"files": 3}}
    )

    res = run_stage(ctx=ctx, stage=stage, index=1, total=1)

    assert res.status == "success"
    assert res.outputs == {"answer": 42}
    assert res.metrics == {"files": 3}
    assert res.error is None


def test_run_stage_records_typed_failure(ctx: RunContext) -> None:
    def boom(_: RunContext) -> None:
        raise BuildError("nix build exited 1")

    res = run_stage(ctx=ctx, stage=FunctionStage(stage_id="demo", fn=boom))

    assert res.status == "failed"
    assert res.error is not None
    assert res.error.kind == "build"
    assert res.error.exc_type == "BuildError"
    assert "nix build exited 1" in res.error.message
    assert "BuildError" in res.error.traceback


def test_run_stage_treats_unexpected_errors_as_internal(ctx: RunContext) -> None:
    res = run_stage(ctx=ctx, stage=FunctionStage(stage_id="demo", fn=lambda _: [1]))

    assert res.status == "failed"
    assert res.error is not None
    assert res.error.kind == "internal"
    assert res.error.exc_type == "TypeError"


def test_export_env_holds_value_for_the_run(ctx: RunContext) -> None:
    ctx.export_env(stage="version-probe", name="api_version", value="0.5")

    assert ctx.require_env("api_version") == "0.5"
