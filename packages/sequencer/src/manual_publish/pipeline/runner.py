from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from manual_publish.collaborators import Builder, Publisher, VersionProbe
from manual_publish.core import (
    ILogger,
    PreconditionFailed,
    RunProvenance,
    Settings,
    configure_logging,
    format_duration_ms,
    get_logger,
    monotonic_ms,
    new_run_id,
    utc_now_iso,
)
from manual_publish.models import Conclusion, Outcome, TriggerEvent
from manual_publish.stages import (
    stage_manual_build,
    stage_manual_deploy,
    stage_redirect_build,
    stage_redirect_deploy,
    stage_version_probe,
)

from .context import RunContext
from .events import EventSink, EventType, make_event
from .report import RunReport, collect_deploys
from .stage import FunctionStage, Stage, StageFn, StageResult, run_stage
from .state import PRECONDITION, STEP_ORDER, StateMachine, Step

STEP_FNS: Mapping[Step, StageFn] = {
    Step.MANUAL_BUILD: stage_manual_build,
    Step.MANUAL_DEPLOY: stage_manual_deploy,
    Step.VERSION_PROBE: stage_version_probe,
    Step.REDIRECT_BUILD: stage_redirect_build,
    Step.REDIRECT_DEPLOY: stage_redirect_deploy,
}


def default_logger() -> ILogger:
    """
    Provide a structlog BoundLogger that satisfies ILogger.
    """
    configure_logging()
    return get_logger("sequencer")


def is_canonical(event: TriggerEvent, settings: Settings) -> bool:
    return event.repository_identifier == settings.canonical_repository


def check_preconditions(event: TriggerEvent, settings: Settings) -> None:
    """
    Re-check what the scheduler is trusted to filter on, so a direct
    invocation can never publish from a failed or off-branch build.
    """
    problems: list[str] = []
    if event.conclusion != Conclusion.success:
        problems.append(f"upstream conclusion is {event.conclusion.value!r}, not 'success'")
    if event.source_branch != settings.canonical_branch:
        problems.append(
            f"source branch is {event.source_branch!r}, not {settings.canonical_branch!r}"
        )
    if event.source_workflow != settings.upstream_workflow:
        problems.append(
            f"source workflow is {event.source_workflow!r}, not {settings.upstream_workflow!r}"
        )
    if problems:
        raise PreconditionFailed("; ".join(problems))


@dataclass(frozen=True, slots=True)
class SequencerRun:
    outcome: Outcome
    report: RunReport
    report_path: Path


class PublishSequencer:
    """
    Gates a trigger, then builds and deploys the manual followed by the
    redirect farm, one step at a time.

    The first failing step ends the run. Whatever was already deployed stays
    deployed.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        builder: Builder,
        probe: VersionProbe,
        publisher: Publisher,
        logger: ILogger | None = None,
    ) -> None:
        self.settings = settings
        self.builder = builder
        self.probe = probe
        self.publisher = publisher
        self.logger: ILogger = logger or default_logger()
        self.stages: dict[Step, Stage] = {
            step: FunctionStage(stage_id=step.value, fn=STEP_FNS[step])
            for step in STEP_ORDER
        }

    def run(self, event: TriggerEvent) -> Outcome:
        return self.run_with_report(event).outcome

    def _gate(self, ctx: RunContext, machine: StateMachine) -> Outcome | None:
        event = ctx.event
        if not is_canonical(event, self.settings):
            reason = (
                f"repository {event.repository_identifier!r} is not "
                f"{self.settings.canonical_repository!r}"
            )
            ctx.emit(EventType.GATE_SKIPPED, reason=reason)
            self.logger.info("Skipping run", reason=reason)
            return Outcome.skipped(reason)

        try:
            check_preconditions(event, self.settings)
        except PreconditionFailed as e:
            machine.fail(PRECONDITION)
            ctx.emit(EventType.GATE_REJECTED, stage=PRECONDITION, message=str(e))
            self.logger.error("Precondition failed", error=str(e))
            return Outcome.failed(PRECONDITION, error_kind=e.kind, message=str(e))

        ctx.emit(EventType.GATE_PASSED)
        return None

    def run_with_report(
        self, event: TriggerEvent, *, run_id: str | None = None
    ) -> SequencerRun:
        """
        Execute the sequence and write:
          - events.jsonl
          - run_report.json
        """
        rid = run_id or new_run_id()
        run_root = Path(self.settings.run_root) / rid
        run_root.mkdir(parents=True, exist_ok=True)

        events_path = run_root / "events.jsonl"
        sink = EventSink(events_path)

        ctx = RunContext(
            run_id=rid,
            run_root=run_root,
            event=event,
            settings=self.settings,
            builder=self.builder,
            probe=self.probe,
            publisher=self.publisher,
            logger=self.logger,
            events=sink,
        )
        machine = StateMachine()

        started_at = utc_now_iso()
        t0 = monotonic_ms()
        provenance = RunProvenance(run_id=rid, started_at_utc=started_at)

        self.logger.info(
            "Sequencer starting",
            run_id=rid,
            repository=event.repository_identifier,
            branch=event.source_branch,
            workflow=event.source_workflow,
            conclusion=event.conclusion.value,
            run_root=str(run_root),
        )
        sink.emit(
            make_event(
                event_type=EventType.RUN_START,
                run_id=rid,
                trigger=event.model_dump(mode="json"),
            )
        )

        results: list[StageResult] = []
        outcome = self._gate(ctx, machine)

        if outcome is None:
            total = len(STEP_ORDER)
            index = 0
            while (step := machine.next_step()) is not None:
                index += 1
                res = run_stage(ctx=ctx, stage=self.stages[step], index=index, total=total)
                results.append(res)

                if res.status == "failed":
                    machine.fail(step)
                    err = res.error
                    outcome = Outcome.failed(
                        step.value,
                        error_kind=err.kind if err else "internal",
                        message=err.message if err else "stage failed",
                    )
                    self.logger.error(
                        "Stopping on first failure",
                        stage=step.value,
                        last_good=machine.last_good.value,
                    )
                    break

                prev = machine.state
                machine.advance(step)
                ctx.emit(
                    EventType.STATE_CHANGED,
                    stage=step.value,
                    previous=prev.value,
                    state=machine.state.value,
                )

            if outcome is None:
                outcome = Outcome.published()

        finished_at = utc_now_iso()
        duration = monotonic_ms() - t0

        report = RunReport(
            run_id=rid,
            started_at_utc=started_at,
            finished_at_utc=finished_at,
            status=outcome.status.value,
            duration_ms=duration,
            outcome=outcome.to_dict(),
            trigger=event.model_dump(mode="json"),
            state=machine.to_dict(),
            stages=results,
            deploys=collect_deploys(results),
            env=dict(ctx.env),
            events_jsonl=str(events_path),
            meta={"provenance": provenance.to_dict()},
        )

        report_json = run_root / "run_report.json"
        report.write_json(report_json)

        sink.emit(
            make_event(
                event_type=EventType.RUN_FINISH,
                run_id=rid,
                status=report.status,
                outcome=str(outcome),
                duration_ms=duration,
                report_json=str(report_json),
            )
        )

        self.logger.info(
            "Run complete",
            outcome=str(outcome),
            duration_ms=duration,
            duration=format_duration_ms(duration),
            report=str(report_json),
            events=str(events_path),
        )

        return SequencerRun(outcome=outcome, report=report, report_path=report_json)
