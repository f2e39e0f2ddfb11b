from __future__ import annotations

import argparse
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from manual_publish.collaborators import GitPagesPublisher, NixBuilder, NixVersionProbe
from manual_publish.core import (
    ProbeError,
    Settings,
    bind,
    configure_logging,
    get_logger,
    load_settings,
    new_run_id,
    register_secret,
)
from manual_publish.models import OutcomeStatus, TriggerEvent
from manual_publish.pipeline.runner import PublishSequencer
from manual_publish.trigger import event_from_github_env, load_event_file

console = Console()

_STATUS_STYLE = {
    OutcomeStatus.published: "[green]published[/green]",
    OutcomeStatus.skipped: "[yellow]skipped[/yellow]",
    OutcomeStatus.failed: "[red]failed[/red]",
}


def _add_trigger_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--event",
        default=None,
        help=(
            "Path to a workflow_run event payload (JSON). "
            "If omitted and no --repository is given: uses GITHUB_EVENT_PATH."
        ),
    )
    p.add_argument(
        "--repository",
        default=None,
        help="owner/name of the repository that ran the upstream workflow.",
    )
    p.add_argument("--workflow", default=None, help="Upstream workflow name.")
    p.add_argument("--branch", default=None, help="Upstream head branch.")
    p.add_argument(
        "--conclusion",
        default=None,
        help="Upstream conclusion (success, failure, ...).",
    )
    p.add_argument("--head-sha", default=None, help="Upstream head commit.")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="manual-publish")
    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser(
        "run", help="Build and deploy the manual and the redirect farm"
    )
    _add_trigger_args(run)

    sub.add_parser("probe", help="Print the future API version the redirect farm targets")
    return p


def _trigger_from_args(args: argparse.Namespace, settings: Settings) -> TriggerEvent:
    if args.event:
        return load_event_file(Path(args.event), repository=args.repository)

    if args.repository:
        return TriggerEvent(
            source_workflow=args.workflow or settings.upstream_workflow,
            source_branch=args.branch or settings.canonical_branch,
            conclusion=args.conclusion or "success",
            repository_identifier=args.repository,
            head_sha=args.head_sha,
        )

    return event_from_github_env()


def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    log = get_logger("manual_publish")
    try:
        event = _trigger_from_args(args, settings)
    except (ValueError, OSError) as e:
        log.error("Could not resolve trigger event", error=str(e))
        console.print(f"[red]invalid trigger:[/red] {e}")
        return 2

    run_id = new_run_id()
    bind(run_id=run_id, command="run")

    sequencer = PublishSequencer(
        settings=settings,
        builder=NixBuilder(settings),
        probe=NixVersionProbe(settings),
        publisher=GitPagesPublisher(settings, source_ref=event.head_sha),
        logger=log,
    )

    console.print(
        Panel.fit(
            Text(
                f"manual-publish - run\nrun_id={run_id}\n"
                f"repository={event.repository_identifier}\n"
                f"branch={event.source_branch} conclusion={event.conclusion.value}",
                style="bold",
            ),
            title="Run",
        )
    )

    result = sequencer.run_with_report(event, run_id=run_id)
    outcome = result.outcome

    tbl = Table(title="Result", show_header=True, box=None)
    tbl.add_row("status", _STATUS_STYLE[outcome.status])
    tbl.add_row("outcome", str(outcome))
    if outcome.error_kind:
        tbl.add_row("error", f"{outcome.error_kind}: {outcome.message}")
    elif outcome.message:
        tbl.add_row("reason", outcome.message)
    for d in result.report.deploys:
        state = "updated" if d.get("changed") else "unchanged"
        tbl.add_row(str(d["stage"]), f"{d['branch']}/{d['target_folder']} ({state})")
    tbl.add_row("report", str(result.report_path))
    console.print(tbl)

    return 0 if outcome.ok else 1


def _cmd_probe(_: argparse.Namespace, settings: Settings) -> int:
    try:
        value = NixVersionProbe(settings).query_project_version()
    except ProbeError as e:
        console.print(f"[red]probe failed:[/red] {e}")
        return 1
    console.print(value, markup=False, highlight=False)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    s = load_settings()
    for secret in s.secrets():
        register_secret(secret)
    configure_logging(level=s.log_level, fmt=s.log_format)

    if args.cmd == "probe":
        return _cmd_probe(args, s)
    return _cmd_run(args, s)


if __name__ == "__main__":
    raise SystemExit(main())
