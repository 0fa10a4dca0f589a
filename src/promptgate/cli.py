"""Command-line interface for promptgate."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.logging import RichHandler
from rich.table import Table

from promptgate import __version__
from promptgate.config import load_config
from promptgate.console import console, err_console
from promptgate.drafts import InvalidTransitionError, PreconditionFailedError
from promptgate.evaluation import (
    DatasetSourceError,
    NoValidSamplesError,
    Scheduler,
    load_source_records,
    run_now,
    threshold_recommendations,
)
from promptgate.pipeline import Pipeline, build_pipeline
from promptgate.store import (
    DraftContent,
    EvaluationReport,
    NotFoundError,
    Report,
    ReportDraft,
    ReportIdea,
)
from promptgate.store.models import DRAFT_STATUSES

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    "draft": "dim",
    "review": "yellow",
    "approved": "cyan",
    "published": "green",
    "rejected": "red",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _pipeline() -> Pipeline:
    config = load_config()
    logger.debug("Loaded config: %s", config.to_dict())
    return build_pipeline(config)


def _parse_params(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    params: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{value}'")
        params[key.strip()] = item
    return params


def _percent(value: float | None) -> str:
    return "-" if value is None else f"{value * 100:.1f}%"


def _print_evaluation(report: EvaluationReport) -> None:
    """Render an evaluation report: candidates table, gate and recommendations."""
    aggregate = report.aggregate
    chosen = str(report.chosen_template) if report.chosen_template else "none"
    console.print(
        f"[bold]Evaluation {report.id}[/bold] [dim]{report.timestamp[:19]}[/dim]"
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Task", style="cyan")
    table.add_column("Template")
    table.add_column("Samples", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Consistency", justify="right")
    for candidate in report.candidates:
        table.add_row(
            candidate.task,
            str(candidate.template) if candidate.template else "-",
            str(candidate.sample_count),
            str(candidate.error_count),
            _percent(candidate.mean_accuracy),
            _percent(candidate.mean_consistency),
        )
    if report.candidates:
        console.print(table)

    console.print(f"Chosen template: [cyan]{chosen}[/cyan]")
    console.print(
        f"Samples: {aggregate.sample_count} | "
        f"Accuracy: {_percent(aggregate.mean_accuracy)} | "
        f"Consistency: {_percent(aggregate.mean_consistency)}"
    )
    if aggregate.passed:
        console.print("[green]Quality gates passed[/green]")
    else:
        console.print("[red]Quality gates failed[/red]")

    if report.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for recommendation in report.recommendations:
            console.print(f"  - {recommendation}")
    if report.report_ideas:
        console.print("\n[bold]Report ideas:[/bold]")
        for idea in report.report_ideas:
            console.print(
                f"  - {idea.title} [dim]({idea.category}, "
                f"demand {idea.estimated_demand}/10)[/dim]"
            )


def _print_content(content: DraftContent) -> None:
    console.print(f"[bold]{content.title}[/bold]")
    console.print(f"[dim]{content.category} | audience: {content.audience}[/dim]")
    console.print(f"[dim]Estimated demand: {content.estimated_demand}/10[/dim]")
    if content.description:
        console.print(f"\n{content.description}")
    if content.insights:
        console.print("\n[bold]Key insights:[/bold]")
        for insight in content.insights:
            console.print(f"  - {insight}")
    if content.sources:
        console.print(f"\n[dim]Sources: {', '.join(content.sources)}[/dim]")
    if content.body:
        console.print(f"\n{content.body}")


def _status_label(status: str) -> str:
    style = STATUS_STYLES.get(status, "")
    return f"[{style}]{status}[/{style}]" if style else status


def _print_draft(draft: ReportDraft) -> None:
    console.print(
        f"Draft [cyan]{draft.id}[/cyan] | {_status_label(draft.status)} | "
        f"created by {draft.created_by} at {draft.created_at[:19]}"
    )
    if draft.evaluation_id:
        console.print(f"[dim]Evaluation: {draft.evaluation_id}[/dim]")
    if draft.reviewed_at:
        reviewer = draft.reviewer or "unknown"
        console.print(f"[dim]Reviewed by {reviewer} at {draft.reviewed_at[:19]}[/dim]")
    if draft.comment:
        console.print(f"[dim]Comment: {draft.comment}[/dim]")
    if draft.published_at:
        console.print(
            f"[dim]Published by {draft.published_by} at {draft.published_at[:19]}[/dim]"
        )
    console.print()
    _print_content(draft.content)


def _print_report(report: Report) -> None:
    console.print(
        f"Report [cyan]{report.id}[/cyan] | draft {report.draft_id} | "
        f"published by {report.published_by} at {report.published_at[:19]}"
    )
    console.print()
    _print_content(report.content)


def version_callback(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console.print(f"promptgate [bold cyan]{__version__}[/bold cyan]")
    ctx.exit()


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """promptgate - prompt regression gating and report publication."""
    _configure_logging(verbose)

    if ctx.invoked_subcommand is None:
        console.print("[bold]promptgate[/bold] - gate prompt changes on a golden set")
        console.print("\nRun [cyan]promptgate --help[/cyan] for available commands.")


# Templates


@main.group(invoke_without_command=True)
@click.pass_context
def template(ctx: click.Context) -> None:
    """Manage versioned prompt templates."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@template.command("create")
@click.argument("name")
@click.option("--task", "-t", required=True, help="Task category of the template.")
@click.option("--body", "-b", default=None, help="Template body text.")
@click.option(
    "--file",
    "-f",
    "body_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the template body from a file.",
)
@click.option(
    "--param", "-p", "params", multiple=True, help="Default parameter KEY=VALUE."
)
def template_create(
    name: str,
    task: str,
    body: str | None,
    body_file: Path | None,
    params: tuple[str, ...],
) -> None:
    """Create a new active version of template NAME."""
    if (body is None) == (body_file is None):
        console.print("[red]Provide exactly one of --body or --file[/red]")
        raise SystemExit(1)
    if body_file is not None:
        body = body_file.read_text()

    created = _pipeline().templates.create_version(
        name, task, body or "", _parse_params(params)
    )
    console.print(
        f"[green]Created {created.ref}[/green] [dim]({created.id}, task {task})[/dim]"
    )


@template.command("list")
def template_list() -> None:
    """List active templates."""
    templates = _pipeline().templates.list_active()
    if not templates:
        console.print("[yellow]No templates found.[/yellow]")
        console.print("[dim]Run 'promptgate template seed' to add the defaults.[/dim]")
        return

    console.print(f"[bold]Active templates ({len(templates)}):[/bold]\n")
    for item in templates:
        console.print(
            f"  [cyan]{item.name}[/cyan] v{item.version} | task: {item.task} "
            f"[dim]({item.id}, {item.created_at[:19]})[/dim]"
        )


@template.command("show")
@click.argument("name")
def template_show(name: str) -> None:
    """Show every version of template NAME, newest first."""
    versions = _pipeline().templates.versions(name)
    if not versions:
        console.print(f"[red]Template not found: {name}[/red]")
        raise SystemExit(1)

    for item in versions:
        marker = "[green]active[/green]" if item.active else "[dim]inactive[/dim]"
        console.print(
            f"[bold]{item.ref}[/bold] {marker} "
            f"[dim]{item.id} | task: {item.task} | {item.created_at[:19]}[/dim]"
        )
    active = next((item for item in versions if item.active), None)
    if active is not None:
        console.print(f"\n{active.body}")
        if active.default_parameters:
            console.print(f"\n[dim]Defaults: {active.default_parameters}[/dim]")


@template.command("activate")
@click.argument("template_id")
def template_activate(template_id: str) -> None:
    """Make TEMPLATE_ID the active version of its name."""
    try:
        activated = _pipeline().templates.activate(template_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None
    console.print(f"[green]Activated {activated.ref}[/green]")


@template.command("render")
@click.argument("task")
@click.option("--param", "-p", "params", multiple=True, help="Parameter KEY=VALUE.")
def template_render(task: str, params: tuple[str, ...]) -> None:
    """Render the active template of TASK."""
    pipeline = _pipeline()
    try:
        active = pipeline.templates.get_active(task)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None
    click.echo(pipeline.templates.render(active, _parse_params(params)))


@template.command("seed")
def template_seed() -> None:
    """Create the bundled default templates that do not exist yet."""
    created = _pipeline().templates.seed_defaults()
    if not created:
        console.print("[dim]All default templates already exist.[/dim]")
        return
    for item in created:
        console.print(
            f"[green]Created {item.ref}[/green] [dim](task {item.task})[/dim]"
        )


# Golden dataset


@main.group(invoke_without_command=True)
@click.pass_context
def dataset(ctx: click.Context) -> None:
    """Build and inspect the golden dataset."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@dataset.command("build")
@click.argument(
    "source", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--size", "-n", type=int, default=None, help="Maximum number of samples."
)
def dataset_build(source: Path, size: int | None) -> None:
    """Replace the golden dataset with verified records from SOURCE."""
    pipeline = _pipeline()
    sample_size = size if size is not None else pipeline.config.dataset_size or 0
    try:
        records = load_source_records(source)
    except DatasetSourceError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None

    samples = pipeline.datasets.build(records, sample_size)
    skipped = sum(1 for record in records if record.ratings is None)
    console.print(
        f"[green]Golden dataset rebuilt with {len(samples)} samples[/green] "
        f"[dim]({len(records)} records read, {skipped} without ratings)[/dim]"
    )


@dataset.command("show")
@click.option("--limit", "-n", type=int, default=None, help="Number of samples.")
def dataset_show(limit: int | None) -> None:
    """Show the current golden dataset."""
    samples = _pipeline().datasets.load(limit)
    if not samples:
        console.print("[yellow]Golden dataset is empty.[/yellow]")
        console.print("[dim]Run 'promptgate dataset build SOURCE' first.[/dim]")
        return

    table = Table(title=f"Golden samples ({len(samples)})", header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Difficulty", justify="right")
    table.add_column("Prospects", justify="right")
    table.add_column("Fun", justify="right")
    for sample in samples:
        table.add_row(
            sample.id,
            sample.input.title,
            f"{sample.expected.difficulty:g}",
            f"{sample.expected.prospects:g}",
            f"{sample.expected.fun:g}",
        )
    console.print(table)


# Evaluation


@main.command()
@click.option("--task", "-t", required=True, help="Task whose template to replay.")
@click.option("--limit", "-n", type=int, default=None, help="Number of samples.")
def playback(task: str, limit: int | None) -> None:
    """Replay the active template of a task over the golden dataset."""
    pipeline = _pipeline()
    try:
        active = pipeline.templates.get_active(task)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None

    samples = pipeline.datasets.load(
        limit if limit is not None else pipeline.config.playback_limit
    )
    console.print(f"[dim]Replaying {active.ref} over {len(samples)} samples[/dim]")
    try:
        summary = pipeline.evaluator.evaluate(active, samples)
    except NoValidSamplesError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None

    for error in summary.errors:
        console.print(f"[yellow]{error.sample_id}: {error.kind}[/yellow]")
    console.print(
        f"[bold]{summary.template}[/bold]: {summary.sample_count} samples | "
        f"Accuracy: {_percent(summary.mean_accuracy)} | "
        f"Consistency: {_percent(summary.mean_consistency)}"
    )
    for recommendation in threshold_recommendations(summary):
        console.print(f"  - {recommendation}")


@main.group(invoke_without_command=True)
@click.pass_context
def evaluate(ctx: click.Context) -> None:
    """Run and inspect full evaluation runs."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@evaluate.command("run")
@click.option(
    "--idea", "ideas", multiple=True, help="Report idea title to attach to the run."
)
def evaluate_run(ideas: tuple[str, ...]) -> None:
    """Evaluate every active template. Exits 1 if the quality gates fail."""
    pipeline = _pipeline()
    report = run_now(
        pipeline.orchestrator, [ReportIdea(title=title) for title in ideas]
    )
    _print_evaluation(report)
    if not pipeline.orchestrator.passes_quality_gates(report):
        raise SystemExit(1)


@evaluate.command("latest")
def evaluate_latest() -> None:
    """Show the most recent evaluation report."""
    report = _pipeline().orchestrator.get_latest_report()
    if report is None:
        console.print("[yellow]No evaluation reports yet.[/yellow]")
        console.print("[dim]Run 'promptgate evaluate run' first.[/dim]")
        return
    _print_evaluation(report)


@evaluate.command("schedule")
@click.option(
    "--interval-hours",
    type=float,
    default=None,
    help="Hours between runs (default from config).",
)
@click.option("--now", "run_immediately", is_flag=True, help="Run once at start.")
@click.option("--max-runs", type=int, default=None, help="Stop after N runs.")
def evaluate_schedule(
    interval_hours: float | None, run_immediately: bool, max_runs: int | None
) -> None:
    """Run evaluations on a fixed interval until interrupted."""
    pipeline = _pipeline()
    hours = interval_hours or pipeline.config.schedule_interval_hours or 168.0
    if hours <= 0:
        console.print("[red]--interval-hours must be positive[/red]")
        raise SystemExit(1)

    scheduler = Scheduler(
        pipeline.orchestrator, hours * 3600, on_report=_print_evaluation
    )
    console.print(f"[dim]Evaluating every {hours:g}h. Press Ctrl+C to stop.[/dim]")
    try:
        runs = scheduler.run_forever(run_immediately=run_immediately, max_runs=max_runs)
    except KeyboardInterrupt:
        scheduler.stop()
        console.print("\n[yellow]Scheduler interrupted.[/yellow]")
        return
    console.print(f"[dim]Scheduler finished after {runs} runs.[/dim]")


# Drafts and reports


@main.group(invoke_without_command=True)
@click.pass_context
def drafts(ctx: click.Context) -> None:
    """Generate and review report drafts."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@drafts.command("generate")
@click.argument("evaluation_id", required=False)
def drafts_generate(evaluation_id: str | None) -> None:
    """Create drafts from the report ideas of an evaluation (default: latest)."""
    pipeline = _pipeline()
    if evaluation_id is None:
        latest = pipeline.orchestrator.get_latest_report()
        if latest is None:
            console.print("[red]No evaluation reports yet.[/red]")
            raise SystemExit(1)
        evaluation_id = latest.id

    try:
        created = pipeline.drafts.generate_from_evaluation(evaluation_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None

    if not created:
        console.print(f"[yellow]No drafts generated for {evaluation_id}.[/yellow]")
        return
    console.print(f"[green]Generated {len(created)} drafts:[/green]")
    for draft in created:
        console.print(f"  [cyan]{draft.id}[/cyan] {draft.content.title}")


@drafts.command("list")
@click.option(
    "--status",
    "-s",
    type=click.Choice(DRAFT_STATUSES),
    default=None,
    help="Only show drafts with this status.",
)
def drafts_list(status: str | None) -> None:
    """List report drafts, newest first."""
    items = _pipeline().drafts.list_drafts(status)
    if not items:
        console.print("[dim]No drafts found.[/dim]")
        return

    console.print(f"[bold]Drafts ({len(items)}):[/bold]\n")
    for draft in items:
        console.print(
            f"  [cyan]{draft.id}[/cyan] {_status_label(draft.status)} "
            f"{draft.content.title} [dim]({draft.created_by}, "
            f"{draft.created_at[:19]})[/dim]"
        )


@drafts.command("show")
@click.argument("draft_id")
def drafts_show(draft_id: str) -> None:
    """Show a draft with its content."""
    try:
        draft = _pipeline().drafts.get_draft(draft_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None
    _print_draft(draft)


@drafts.command("transition")
@click.argument("draft_id")
@click.argument("status", type=click.Choice(("review", "approved", "rejected")))
@click.option("--comment", "-c", default=None, help="Review comment.")
@click.option("--reviewer", "-r", default=None, help="Reviewer name.")
def drafts_transition(
    draft_id: str, status: str, comment: str | None, reviewer: str | None
) -> None:
    """Move a draft to STATUS."""
    try:
        draft = _pipeline().drafts.transition(draft_id, status, comment, reviewer)
    except (NotFoundError, InvalidTransitionError) as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None
    console.print(
        f"[green]Draft {draft.id} is now[/green] {_status_label(draft.status)}"
    )


@drafts.command("publish")
@click.argument("draft_id")
@click.option("--by", "published_by", required=True, help="Publisher name.")
def drafts_publish(draft_id: str, published_by: str) -> None:
    """Publish an approved draft as a report."""
    try:
        report = _pipeline().drafts.publish(draft_id, published_by)
    except (NotFoundError, PreconditionFailedError) as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None
    console.print(f"[green]Published report {report.id}[/green] from {draft_id}")


@main.group(invoke_without_command=True)
@click.pass_context
def reports(ctx: click.Context) -> None:
    """Browse published reports."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@reports.command("list")
@click.option("--limit", "-n", type=int, default=20, help="Number of reports.")
def reports_list(limit: int) -> None:
    """List published reports, newest first."""
    items = _pipeline().drafts.list_reports(limit)
    if not items:
        console.print("[dim]No published reports.[/dim]")
        return

    console.print(f"[bold]Published reports ({len(items)}):[/bold]\n")
    for item in items:
        console.print(
            f"  [cyan]{item.id}[/cyan] {item.content.title} "
            f"[dim]({item.published_by}, {item.published_at[:19]})[/dim]"
        )


@reports.command("show")
@click.argument("report_id")
def reports_show(report_id: str) -> None:
    """Show a published report."""
    try:
        item = _pipeline().drafts.get_report(report_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None
    _print_report(item)


if __name__ == "__main__":
    main()
