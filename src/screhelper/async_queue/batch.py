"""
Wave-based batch orchestration over a classification backend.

Records are dispatched in waves of at most ``concurrency`` concurrent
backend calls; the next wave starts once the current one has settled.
Cancellation is cooperative: it is checked before each wave and at each
completion, and results that land after it are discarded.

Example:
    >>> orchestrator = BatchOrchestrator(backend, concurrency=2)
    >>> state = await orchestrator.run(articles, criteria, model="gemini-2.0-flash")
    >>> len(state.completed), state.failed_count
    (5, 0)

Resuming is the same call with the previous results:

    >>> state = await orchestrator.run(articles, criteria, completed=previous)
"""

import asyncio
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Iterable, List, Optional, Sequence

from ..config.settings import settings
from ..core.errors import BatchAlreadyRunning
from ..core.ids import identity_key
from ..core.models import Article, ClassifiedArticle, CriteriaSet, OriginalRow
from ..llm.base import ClassificationBackend
from ..screening.matcher import attach_original
from ..utils.logging import get_logger
from .error_handler import ErrorHandler, RecordFailure
from .task_queue import BatchState, BatchStatus, ClassificationTask, TaskStatus

logger = get_logger(__name__)

ProgressCallback = Callable[[BatchState], Any]
ErrorCallback = Callable[[RecordFailure], Any]


class BatchOrchestrator:
    """
    Classify records with bounded concurrency, progress reporting,
    cancellation and resumption.

    Args:
        backend: Backend every record is sent to
        concurrency: Maximum simultaneous backend calls (wave size)
        on_progress: Called with the state after each stored result
        on_error: Called with a :class:`RecordFailure` for each failed record
        error_handler: Failure classifier (a fresh one by default)
    """

    def __init__(
        self,
        backend: ClassificationBackend,
        concurrency: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.backend = backend
        self.concurrency = concurrency or settings.screening_concurrency
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.on_progress = on_progress
        self.on_error = on_error
        self.error_handler = error_handler or ErrorHandler()
        self.state = BatchState()

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def cancel(self) -> None:
        """Request cancellation; the current wave drains and its results are dropped.

        Only a running batch can be cancelled; otherwise this is a no-op.
        """
        if not self.state.is_running:
            logger.info("No batch running; nothing to cancel")
            return
        if not self.state.cancelled:
            logger.info(
                f"Cancellation requested: {len(self.state.in_flight)} in flight, "
                f"{len(self.state.pending)} pending"
            )
        self.state.cancelled = True

    async def run(
        self,
        articles: Iterable[Article],
        criteria: CriteriaSet,
        model: Optional[str] = None,
        completed: Optional[List[ClassifiedArticle]] = None,
        original_rows: Optional[Sequence[OriginalRow]] = None,
    ) -> BatchState:
        """
        Run one batch to settlement.

        Args:
            articles: Full record list of the batch
            criteria: Criteria every record is judged against
            model: Model to use (backend default when omitted)
            completed: Results of an earlier run to resume from; appended
                to in place. ``None`` starts from an empty accumulator.
            original_rows: Imported rows to attach to new results

        Returns:
            The settled :class:`BatchState`

        Raises:
            BatchAlreadyRunning: if a batch is running on this orchestrator
            NoCredentials: if the backend has no API key (before any dispatch)
            ConfigurationError: if no model can be resolved
        """
        if self.state.is_running:
            raise BatchAlreadyRunning("A classification batch is already running")

        self.backend.ensure_configured()
        model_name = self.backend.resolve_model(model)

        accumulator = completed if completed is not None else []
        done = {identity_key(r) for r in accumulator}
        # Records sharing an identity are classified once.
        seen = set()
        pending: Deque[Article] = deque()
        for article in articles:
            key = identity_key(article)
            if key in seen:
                continue
            seen.add(key)
            if key not in done:
                pending.append(article)

        state = BatchState(
            pending=pending,
            completed=accumulator,
            processed_count=len(seen) - len(pending),
            total_count=len(seen),
            status=BatchStatus.RUNNING,
            started_at=datetime.now(),
        )
        self.state = state
        self.error_handler.reset()

        logger.info(
            f"Starting batch: {len(pending)} to classify, "
            f"{state.processed_count} already done, concurrency={self.concurrency}",
            extra={"provider": self.backend.provider, "model": model_name},
        )

        try:
            while state.pending and not state.cancelled:
                wave = [state.pending.popleft() for _ in range(min(self.concurrency, len(state.pending)))]
                tasks = [ClassificationTask(article=a) for a in wave]
                for task in tasks:
                    state.in_flight[task.task_id] = task

                await asyncio.gather(
                    *(self._run_task(task, criteria, model_name, original_rows) for task in tasks)
                )

                if state.cancelled:
                    discarded = [t.article for t in tasks if t.status == TaskStatus.DISCARDED]
                    state.pending.extendleft(reversed(discarded))
        finally:
            state.in_flight.clear()
            state.status = BatchStatus.SETTLED
            state.completed_at = datetime.now()

        logger.info(
            f"Batch settled: {state.processed_count}/{state.total_count} classified, "
            f"{state.failed_count} failed" + (", cancelled" if state.cancelled else ""),
            extra={"error_counts": self.error_handler.get_error_counts()},
        )
        return state

    async def _run_task(
        self,
        task: ClassificationTask,
        criteria: CriteriaSet,
        model: str,
        original_rows: Optional[Sequence[OriginalRow]],
    ) -> None:
        state = self.state
        task.start()
        try:
            verdict = await self.backend.classify(task.article, criteria, model)
        except Exception as exc:
            state.in_flight.pop(task.task_id, None)
            if state.cancelled:
                task.finish(TaskStatus.DISCARDED, error=str(exc))
                return
            failure = self.error_handler.record(task.article, exc)
            task.finish(TaskStatus.FAILED, error=failure.message)
            state.failures.append(failure)
            await self._notify(self.on_error, failure)
            return

        state.in_flight.pop(task.task_id, None)
        if state.cancelled:
            task.finish(TaskStatus.DISCARDED)
            logger.debug(f"Discarded result for '{task.article.title[:50]}' after cancellation")
            return

        state.completed.append(attach_original(task.article, verdict, original_rows))
        state.processed_count += 1
        task.finish(TaskStatus.COMPLETED)
        await self._notify(self.on_progress, state)

    async def _notify(self, callback: Optional[Callable[[Any], Any]], payload: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(payload)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Batch callback raised")
