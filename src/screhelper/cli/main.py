"""CLI application using Typer for AI-assisted article screening."""

import asyncio
import signal
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..async_queue.error_handler import RecordFailure
from ..async_queue.progress import ProgressTracker
from ..async_queue.task_queue import BatchState
from ..config.settings import settings
from ..core.errors import ImportFailure, ScreeningError
from ..core.models import CriteriaSet
from ..io.importer import classify_import
from ..io.session_store import JsonFileSessionStore
from ..io.tabular import read_table
from ..llm.router import Provider, list_available_models
from ..screening import aggregator
from ..screening.models import ALL_CRITERIA, ClassificationFilter, ScreeningSummary
from ..screening.session import ScreeningSession
from ..utils.logging import get_logger

app = typer.Typer(
    name="screhelper",
    help="Screen scientific articles against inclusion/exclusion criteria with an LLM",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


def _store() -> JsonFileSessionStore:
    return JsonFileSessionStore(settings.resolved_session_file())


def load_criteria_file(path: Path) -> CriteriaSet:
    """Read ``inclusion``/``exclusion`` lists from a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain 'inclusion' and 'exclusion' lists")
    return CriteriaSet.from_dict(data)


def _print_criteria(criteria: CriteriaSet) -> None:
    table = Table(title="Screening Criteria")
    table.add_column("Type", style="cyan")
    table.add_column("Criterion")
    for line in criteria.numbered_inclusion():
        table.add_row("[green]Include[/green]", line)
    for line in criteria.numbered_exclusion():
        table.add_row("[red]Exclude[/red]", line)
    console.print(table)


def _print_summary(summary: ScreeningSummary) -> None:
    counts = summary.counts
    table = Table(title="Screening Results")
    table.add_column("Decision", style="cyan")
    table.add_column("Count", style="yellow", justify="right")
    table.add_column("Percentage", style="magenta", justify="right")
    total = counts.total or 1
    table.add_row("Include", str(counts.included), f"{counts.included / total * 100:.1f}%")
    table.add_row("Exclude", str(counts.excluded), f"{counts.excluded / total * 100:.1f}%")
    table.add_row("[bold]Total[/bold]", f"[bold]{counts.total}[/bold]", "")
    console.print(table)

    if summary.criteria:
        crit_table = Table(title="By Criterion")
        crit_table.add_column("Criterion", style="cyan")
        crit_table.add_column("Included", style="green", justify="right")
        crit_table.add_column("Excluded", style="red", justify="right")
        crit_table.add_column("Total", justify="right")
        crit_table.add_column("Inclusion rate", style="magenta", justify="right")
        for stat in summary.criteria:
            crit_table.add_row(
                stat.criterion,
                str(stat.included),
                str(stat.excluded),
                str(stat.total),
                f"{stat.inclusion_rate * 100:.0f}%",
            )
        console.print(crit_table)
    if summary.without_criterion:
        console.print(f"[dim]{summary.without_criterion} records cite no criterion[/dim]")


@app.command("set-criteria")
def set_criteria(
    include: Optional[List[str]] = typer.Option(None, "--include", "-i", help="Inclusion criterion (repeatable)"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-e", help="Exclusion criterion (repeatable)"),
    criteria_file: Optional[Path] = typer.Option(None, "--file", "-f", exists=True, help="YAML file with inclusion/exclusion lists"),
):
    """Save the inclusion and exclusion criteria used by `classify`."""
    try:
        if criteria_file:
            criteria = load_criteria_file(criteria_file)
        else:
            criteria = CriteriaSet(inclusion=tuple(include or ()), exclusion=tuple(exclude or ()))
    except ValidationError as e:
        console.print("[red]Error: at least one non-empty inclusion and exclusion criterion is required[/red]")
        logger.debug(str(e))
        raise typer.Exit(1)
    ScreeningSession(_store()).set_criteria(criteria)
    _print_criteria(criteria)
    console.print("[green]Criteria saved[/green]")


@app.command("show-criteria")
def show_criteria():
    """Show the saved criteria, provider and model."""
    session = ScreeningSession(_store())
    if session.criteria is None:
        console.print("[yellow]No criteria set. Use 'screhelper set-criteria'.[/yellow]")
    else:
        _print_criteria(session.criteria)
    console.print(f"Provider: [cyan]{session.provider}[/cyan]")
    console.print(f"Model: [cyan]{session.model or 'provider default'}[/cyan]")


@app.command("reset-criteria")
def reset_criteria():
    """Forget the saved criteria."""
    ScreeningSession(_store()).reset_criteria()
    console.print("[green]Criteria cleared[/green]")


@app.command()
def models(
    provider: Provider = typer.Option(Provider(settings.default_provider), "--provider", "-p", help="Provider to query"),
):
    """List the models a provider offers for classification."""
    available = asyncio.run(list_available_models(provider.value))
    if not available:
        console.print(f"[yellow]No models available for {provider.value} (check credentials or service)[/yellow]")
        return
    table = Table(title=f"{provider.value} models")
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Description", style="dim")
    for m in available:
        table.add_row(m.id, m.name or "", m.description or "")
    console.print(table)


@app.command()
def classify(
    input_file: Optional[Path] = typer.Argument(None, exists=True, help="Spreadsheet (.xlsx, .xls, .csv) with title and abstract columns"),
    sample: bool = typer.Option(False, "--sample", help="Classify the bundled sample articles"),
    provider: Optional[Provider] = typer.Option(None, "--provider", "-p", help="Classification provider"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id (see 'screhelper models')"),
    criteria_file: Optional[Path] = typer.Option(None, "--criteria", exists=True, help="YAML criteria file (overrides saved criteria)"),
    resume_from: Optional[Path] = typer.Option(None, "--resume-from", exists=True, help="Previously exported results to continue from"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Export path (.xlsx or .csv; default: timestamped)"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1, max=16, help="Simultaneous backend calls"),
):
    """Classify articles against the criteria and export the results."""
    if input_file is None and not sample and resume_from is None:
        console.print("[red]Error: Must provide INPUT_FILE, --sample or --resume-from[/red]")
        raise typer.Exit(1)

    session = ScreeningSession(_store(), concurrency=concurrency)
    try:
        if provider is not None:
            session.set_provider(provider)
        if model:
            session.set_model(model)
        if criteria_file:
            session.set_criteria(load_criteria_file(criteria_file))

        if input_file is not None:
            result = session.load_file(input_file)
            console.print(f"[green]Loaded {len(result.articles)} articles[/green] ({result.kind.value})")
        elif sample:
            session.load_sample_data()
            console.print(f"[green]Loaded {len(session.articles)} sample articles[/green]")

        if resume_from is not None:
            previous = classify_import(read_table(resume_from))
            if not previous.is_previous:
                console.print(f"[red]Error: {resume_from} contains no classification results[/red]")
                raise typer.Exit(1)
            session.load_previous_results(previous)
            console.print(f"[cyan]Resuming: {len(session.results)} records already classified[/cyan]")
    except (ScreeningError, ValidationError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if session.criteria is None:
        console.print("[red]Error: no criteria set. Use 'screhelper set-criteria' or --criteria[/red]")
        raise typer.Exit(1)

    console.print(f"Provider: {session.provider} | Model: {session.model or 'default'} | Concurrency: {session.concurrency}")
    try:
        state = asyncio.run(_run_classification(session))
    except ScreeningError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    ProgressTracker(state, console=console).print_summary()
    if state.cancelled:
        console.print(
            f"[yellow]Cancelled: {len(session.remaining())} records left. "
            f"Continue with --resume-from on the exported file.[/yellow]"
        )
    if not session.results:
        console.print("[yellow]No results to export[/yellow]")
        raise typer.Exit(1)

    _print_summary(session.statistics())
    path = session.export(output)
    console.print(f"\n[bold green]✓ Classification complete![/bold green]")
    console.print(f"Output: {path}")


async def _run_classification(session: ScreeningSession) -> BatchState:
    resume = bool(session.results)
    todo = len(session.remaining()) if resume else len(session.articles)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task = progress.add_task("Classifying", total=todo)

        def on_progress(state: BatchState) -> None:
            progress.advance(task)

        def on_error(failure: RecordFailure) -> None:
            progress.advance(task)
            progress.console.print(f"  [red]✗ {failure.title[:60]}: {failure.message}[/red]")

        session.on_progress = on_progress
        session.on_error = on_error

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, session.cancel)
        except (NotImplementedError, RuntimeError):
            logger.debug("SIGINT handler not supported on this platform")
        try:
            if resume:
                state = await session.continue_analysis()
            else:
                state = await session.run_analysis()
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass
            await session.close()
    return state


@app.command()
def stats(
    results_file: Path = typer.Argument(..., exists=True, help="Exported results file"),
    classification: ClassificationFilter = typer.Option(ClassificationFilter.ALL, "--classification", help="all, include or exclude"),
    criterion: str = typer.Option(ALL_CRITERIA, "--criterion", help="Show records whose criterion contains this text"),
):
    """Summarise an exported results file and list the filtered records."""
    try:
        imported = classify_import(read_table(results_file))
    except (ImportFailure, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if not imported.is_previous:
        console.print(f"[red]Error: {results_file} contains no classification results[/red]")
        raise typer.Exit(1)

    results = imported.classified
    _print_summary(aggregator.summarize(results))

    filtered = aggregator.filter_results(results, classification, criterion)
    table = Table(title=f"Records ({len(filtered)} of {len(results)})")
    table.add_column("Decision", style="cyan")
    table.add_column("Title")
    table.add_column("Criterion", style="dim")
    for record in filtered:
        decision = "[green]Include[/green]" if record.classification.include else "[red]Exclude[/red]"
        table.add_row(decision, record.title[:80], record.classification.criterion)
    console.print(table)

    known = aggregator.unique_criteria(results)
    if known:
        console.print(f"[dim]Criteria: {'; '.join(known)}[/dim]")


if __name__ == "__main__":
    app()
