"""
Interactive screening session.

A session holds the working set of one screening exercise: criteria,
loaded records and their imported rows, accumulated results and the
selected provider/model. Criteria, provider and model are persisted
through an injected :class:`SessionStore`; everything else lives in
memory.

Example:
    >>> session = ScreeningSession(JsonFileSessionStore(path))
    >>> session.set_criteria(["RCT in adults"], ["Animal study"])
    >>> session.load_sample_data()
    >>> await session.run_analysis()
    >>> session.statistics().counts
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union

from pydantic import ValidationError

from ..async_queue.batch import BatchOrchestrator, ErrorCallback, ProgressCallback
from ..async_queue.task_queue import BatchState
from ..config.settings import settings
from ..core.errors import BatchAlreadyRunning, ConfigurationError, CriteriaLocked
from ..core.models import Article, ClassifiedArticle, CriteriaSet, OriginalRow
from ..core.sample_data import sample_articles
from ..io.exporter import export_results
from ..io.importer import ImportResult, classify_import
from ..io.paths import default_export_path
from ..io.session_store import (
    CRITERIA_KEY,
    MODEL_KEY,
    PROVIDER_KEY,
    InMemorySessionStore,
    SessionStore,
)
from ..io.tabular import read_table
from ..llm.base import ClassificationBackend
from ..llm.router import Provider, create_backend
from ..utils.logging import get_logger
from . import aggregator
from .matcher import remaining_articles
from .models import ALL_CRITERIA, ClassificationFilter, ScreeningSummary

logger = get_logger(__name__)

RecordRef = Union[int, ClassifiedArticle]


class ScreeningSession:
    """Criteria, records and results of one screening exercise."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        backend: Optional[ClassificationBackend] = None,
        concurrency: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.store = store or InMemorySessionStore()
        self.concurrency = concurrency or settings.screening_concurrency
        self.on_progress = on_progress
        self.on_error = on_error

        self.articles: List[Article] = []
        self.original_rows: List[OriginalRow] = []
        self.results: List[ClassifiedArticle] = []

        self._backend = backend
        self.orchestrator: Optional[BatchOrchestrator] = None

        saved = self.store.load()
        self.criteria = self._restore_criteria(saved.get(CRITERIA_KEY))
        self.provider: str = saved.get(PROVIDER_KEY) or (backend.provider if backend else settings.default_provider)
        self.model: Optional[str] = saved.get(MODEL_KEY)

    @staticmethod
    def _restore_criteria(data) -> Optional[CriteriaSet]:
        if not data:
            return None
        try:
            return CriteriaSet.from_dict(data)
        except (ValidationError, AttributeError, TypeError) as e:
            logger.warning(f"Ignoring stored criteria: {e}")
            return None

    # ------------------------------------------------------------------
    # State

    @property
    def is_running(self) -> bool:
        return self.orchestrator is not None and self.orchestrator.is_running

    @property
    def state(self) -> Optional[BatchState]:
        return self.orchestrator.state if self.orchestrator else None

    def _ensure_idle(self) -> None:
        if self.is_running:
            raise BatchAlreadyRunning("Cannot change the session while a batch is running")

    # ------------------------------------------------------------------
    # Criteria, provider and model

    def set_criteria(
        self,
        inclusion: Union[CriteriaSet, Sequence[str]],
        exclusion: Optional[Sequence[str]] = None,
    ) -> CriteriaSet:
        """Replace the criteria, persist them and clear existing results.

        Raises:
            CriteriaLocked: while a batch is running
            ValidationError: if either list is empty or has a blank item
        """
        if self.is_running:
            raise CriteriaLocked("Criteria cannot be changed while classification is running")
        if isinstance(inclusion, CriteriaSet):
            criteria = inclusion
        else:
            criteria = CriteriaSet(inclusion=tuple(inclusion), exclusion=tuple(exclusion or ()))
        self._apply_criteria(criteria)
        if self.results:
            logger.info(f"Criteria changed; discarding {len(self.results)} results")
        self.results = []
        return criteria

    def _apply_criteria(self, criteria: CriteriaSet) -> None:
        self.criteria = criteria
        self.store.save(CRITERIA_KEY, criteria.to_dict())

    def reset_criteria(self) -> None:
        if self.is_running:
            raise CriteriaLocked("Criteria cannot be reset while classification is running")
        self.criteria = None
        self.store.remove(CRITERIA_KEY)
        self.results = []

    def set_provider(self, provider: Union[Provider, str]) -> str:
        """Select a provider; the model choice is cleared when it changes."""
        self._ensure_idle()
        name = Provider(provider.value if isinstance(provider, Provider) else str(provider).lower()).value
        if name != self.provider:
            self.model = None
            self.store.remove(MODEL_KEY)
            self._backend = None
        self.provider = name
        self.store.save(PROVIDER_KEY, name)
        return name

    def set_model(self, model: Optional[str]) -> None:
        self._ensure_idle()
        self.model = model or None
        if self.model:
            self.store.save(MODEL_KEY, self.model)
        else:
            self.store.remove(MODEL_KEY)

    @property
    def backend(self) -> ClassificationBackend:
        """Backend for the selected provider, created on first use."""
        if self._backend is None or self._backend.provider != self.provider:
            self._backend = create_backend(self.provider)
        return self._backend

    # ------------------------------------------------------------------
    # Loading records

    def load_articles(self, articles: Sequence[Article], original_rows: Optional[Sequence[OriginalRow]] = None) -> None:
        self._ensure_idle()
        self.articles = list(articles)
        self.original_rows = list(original_rows or [])
        self.results = []

    def load_sample_data(self) -> List[Article]:
        self.load_articles(sample_articles())
        logger.info(f"Loaded {len(self.articles)} sample articles")
        return self.articles

    def load_import(self, rows: Sequence[OriginalRow]) -> ImportResult:
        """Load a parsed table as fresh records or as previous results.

        Import errors leave the session untouched.
        """
        self._ensure_idle()
        result = classify_import(rows)
        self.articles = list(result.articles)
        self.original_rows = list(result.original_rows)
        self.results = list(result.classified)
        if result.criteria is not None:
            self._apply_criteria(result.criteria)
        return result

    def load_file(self, path: Union[str, Path]) -> ImportResult:
        return self.load_import(read_table(path))

    def load_previous_results(self, previous: ImportResult) -> None:
        """Seed results from an earlier export, keeping the loaded records.

        With no records loaded, the export's own records are used.
        Recovered criteria are adopted only when none are set.
        """
        self._ensure_idle()
        if not self.articles:
            self.articles = list(previous.articles)
            self.original_rows = list(previous.original_rows)
        self.results = list(previous.classified)
        if previous.criteria is not None and self.criteria is None:
            self._apply_criteria(previous.criteria)

    def remaining(self) -> List[Article]:
        """Loaded records without a result yet."""
        return remaining_articles(self.articles, self.results)

    # ------------------------------------------------------------------
    # Classification

    def _check_ready(self) -> CriteriaSet:
        if self.criteria is None:
            raise ConfigurationError("Please set inclusion and exclusion criteria first")
        if not self.articles:
            raise ConfigurationError("No articles loaded")
        self.backend.ensure_configured()
        return self.criteria

    def _orchestrator(self) -> BatchOrchestrator:
        self.orchestrator = BatchOrchestrator(
            self.backend,
            concurrency=self.concurrency,
            on_progress=self.on_progress,
            on_error=self.on_error,
        )
        return self.orchestrator

    async def _ensure_model(self) -> Optional[str]:
        """Pick and persist the first listed model when neither session nor backend names one."""
        if self.model or self.backend.default_model:
            return self.model
        models = await self.backend.list_models()
        if not models:
            raise ConfigurationError(
                f"No models available for provider '{self.provider}'. "
                "For Ollama, pull one first (e.g. `ollama pull llama3`)"
            )
        self.set_model(models[0].id)
        logger.info(f"No model selected; using {self.model} from {self.provider}")
        return self.model

    async def run_analysis(self) -> BatchState:
        """Classify every loaded record from scratch."""
        self._ensure_idle()
        criteria = self._check_ready()
        model = await self._ensure_model()
        self.results = []
        return await self._orchestrator().run(
            self.articles, criteria, model, completed=self.results, original_rows=self.original_rows
        )

    async def continue_analysis(self) -> BatchState:
        """Classify only the records that have no result yet."""
        self._ensure_idle()
        criteria = self._check_ready()
        model = await self._ensure_model()
        return await self._orchestrator().run(
            self.articles, criteria, model, completed=self.results, original_rows=self.original_rows
        )

    def cancel(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.cancel()

    # ------------------------------------------------------------------
    # Results

    def _record(self, ref: RecordRef) -> ClassifiedArticle:
        if isinstance(ref, ClassifiedArticle):
            return ref
        return self.results[ref]

    def reclassify_decision(self, ref: RecordRef, include: bool) -> ClassifiedArticle:
        return aggregator.reclassify_decision(self._record(ref), include)

    def reclassify_criterion(self, ref: RecordRef, criterion: str) -> ClassifiedArticle:
        return aggregator.reclassify_criterion(self._record(ref), criterion)

    def statistics(self) -> ScreeningSummary:
        return aggregator.summarize(self.results)

    def unique_criteria(self) -> List[str]:
        return aggregator.unique_criteria(self.results)

    def filtered_results(
        self,
        classification_filter: Union[ClassificationFilter, str] = ClassificationFilter.ALL,
        criterion_filter: str = ALL_CRITERIA,
    ) -> List[ClassifiedArticle]:
        return aggregator.filter_results(self.results, classification_filter, criterion_filter)

    def export(self, path: Optional[Union[str, Path]] = None) -> Path:
        if not self.results:
            raise ConfigurationError("No results to export")
        return export_results(self.results, self.criteria, path or default_export_path())

    async def close(self) -> None:
        if self._backend is not None:
            await self._backend.close()
