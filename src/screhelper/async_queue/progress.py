"""Progress tracking for classification batches."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.table import Table

from .task_queue import BatchState
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BatchStats:
    """
    Statistics about a batch.

    Attributes:
        total: Records in the batch
        pending: Records not dispatched yet
        in_flight: Records awaiting a backend answer
        processed: Records classified
        failed: Records whose classification failed
        included: Classified records with an include verdict
        excluded: Classified records with an exclude verdict
        cancelled: Whether cancellation was requested
        started_at: When the batch started
        completed_at: When the batch settled
    """
    total: int = 0
    pending: int = 0
    in_flight: int = 0
    processed: int = 0
    failed: int = 0
    included: int = 0
    excluded: int = 0
    cancelled: bool = False

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def elapsed_time(self) -> timedelta:
        if not self.started_at:
            return timedelta(0)
        end = self.completed_at or datetime.now()
        return end - self.started_at

    def records_per_minute(self) -> float:
        elapsed = self.elapsed_time().total_seconds() / 60
        return self.processed / elapsed if elapsed > 0 else 0.0

    def completion_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return min(100.0, (self.processed + self.failed) / self.total * 100)


class ProgressTracker:
    """
    Track and display the progress of a :class:`BatchState`.

    Example:
        >>> tracker = ProgressTracker(orchestrator.state)
        >>> tracker.print_summary()  # One-time summary
        >>> await tracker.watch()    # Live updates until the batch settles
    """

    def __init__(self, state: BatchState, use_rich: bool = True, console: Optional[Console] = None):
        """
        Args:
            state: Batch state to monitor
            use_rich: Render rich tables (default: True); plain text otherwise
            console: Console to render to (a new one by default)
        """
        self.state = state
        self.use_rich = use_rich
        self.console = console or Console()

    def compute_stats(self) -> BatchStats:
        """Compute current batch statistics."""
        state = self.state
        included = sum(1 for r in state.completed if r.classification.include)
        return BatchStats(
            total=state.total_count,
            pending=len(state.pending),
            in_flight=len(state.in_flight),
            processed=state.processed_count,
            failed=state.failed_count,
            included=included,
            excluded=len(state.completed) - included,
            cancelled=state.cancelled,
            started_at=state.started_at,
            completed_at=state.completed_at,
        )

    def print_summary(self):
        """Print summary table."""
        stats = self.compute_stats()
        if self.use_rich:
            self._print_rich_summary(stats)
        else:
            self._print_simple_summary(stats)

    def _print_rich_summary(self, stats: BatchStats):
        table = Table(title="Screening Batch Summary", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="magenta")

        table.add_row("Total Records", str(stats.total))
        table.add_row("Classified", str(stats.processed))
        table.add_row("Failed", str(stats.failed))
        table.add_row("Not Dispatched", str(stats.pending))
        table.add_row("", "")
        table.add_row("Included", f"[green]{stats.included}[/green]")
        table.add_row("Excluded", f"[red]{stats.excluded}[/red]")
        table.add_row("", "")
        table.add_row("Elapsed Time", str(stats.elapsed_time()).split('.')[0])
        table.add_row("Records/min", f"{stats.records_per_minute():.1f}")
        table.add_row("Progress", f"{stats.completion_percentage():.1f}%")
        if stats.cancelled:
            table.add_row("Status", "[yellow]cancelled[/yellow]")

        self.console.print(table)

    def _print_simple_summary(self, stats: BatchStats):
        print("\n=== Screening Batch Summary ===")
        print(f"Total Records: {stats.total}")
        print(f"  Classified: {stats.processed}")
        print(f"  Failed: {stats.failed}")
        print(f"  Not Dispatched: {stats.pending}")
        print(f"\nIncluded: {stats.included}")
        print(f"Excluded: {stats.excluded}")
        print(f"\nElapsed Time: {str(stats.elapsed_time()).split('.')[0]}")
        print(f"Progress: {stats.completion_percentage():.1f}%")
        if stats.cancelled:
            print("Status: cancelled")
        print("===============================\n")

    def _done(self) -> bool:
        return self.state.is_settled

    async def watch(self, interval: float = 1.0):
        """
        Watch batch progress until it settles (blocking).

        Args:
            interval: Update interval in seconds (default: 1.0)
        """
        if self.use_rich:
            await self._watch_rich(interval)
        else:
            await self._watch_simple(interval)

    async def _watch_rich(self, interval: float):
        with Live(console=self.console, refresh_per_second=4) as live:
            while True:
                stats = self.compute_stats()

                table = Table(show_header=True, header_style="bold magenta")
                table.add_column("Status", style="cyan")
                table.add_column("Count", justify="right")

                table.add_row("Pending", str(stats.pending))
                table.add_row("In flight", str(stats.in_flight))
                table.add_row("Classified", str(stats.processed))
                table.add_row("Failed", str(stats.failed))
                table.add_row("", "")
                table.add_row("Progress", f"{stats.completion_percentage():.1f}%")
                table.add_row("Elapsed", str(stats.elapsed_time()).split('.')[0])

                live.update(table)

                if self._done():
                    break
                await asyncio.sleep(interval)

    async def _watch_simple(self, interval: float):
        while True:
            stats = self.compute_stats()
            print(f"\rProgress: {stats.completion_percentage():.1f}% | "
                  f"Classified: {stats.processed} | Failed: {stats.failed} | "
                  f"Pending: {stats.pending}",
                  end="", flush=True)
            if self._done():
                print()
                break
            await asyncio.sleep(interval)
