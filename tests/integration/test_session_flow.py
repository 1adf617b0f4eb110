"""Integration tests for ScreeningSession: criteria, import, run, resume, export."""

import asyncio
import json

import httpx
import pytest
import respx

from screhelper.core.errors import (
    BatchAlreadyRunning,
    ConfigurationError,
    CriteriaLocked,
    MissingColumns,
    NoCredentials,
)
from screhelper.io.importer import classify_import
from screhelper.io.session_store import (
    CRITERIA_KEY,
    MODEL_KEY,
    PROVIDER_KEY,
    InMemorySessionStore,
    JsonFileSessionStore,
)
from screhelper.io.tabular import read_table
from screhelper.llm.api_models import GeminiBackend
from screhelper.llm.local_models import OllamaBackend
from screhelper.screening.models import ClassificationFilter
from screhelper.screening.session import ScreeningSession
from tests.fakes import CRITERIA, INCLUDE_REPLY, FakeBackend, make_articles

OLLAMA_URL = "http://ollama.test"


def new_session(backend=None, **kwargs) -> ScreeningSession:
    return ScreeningSession(InMemorySessionStore(), backend=backend or FakeBackend(), **kwargs)


class TestCriteriaAndSettings:
    def test_criteria_persist_across_sessions(self, tmp_path):
        store = JsonFileSessionStore(tmp_path / "session.json")
        ScreeningSession(store).set_criteria(["clinical trial"], ["animal study"])

        restored = ScreeningSession(JsonFileSessionStore(tmp_path / "session.json"))
        assert restored.criteria == CRITERIA
        assert store.load()[CRITERIA_KEY] == {"inclusion": ["clinical trial"], "exclusion": ["animal study"]}

    def test_corrupt_stored_criteria_are_ignored(self):
        session = ScreeningSession(InMemorySessionStore({CRITERIA_KEY: {"inclusion": [], "exclusion": ["x"]}}))
        assert session.criteria is None

    def test_reset_criteria(self):
        session = new_session()
        session.set_criteria(CRITERIA)
        session.reset_criteria()
        assert session.criteria is None
        assert CRITERIA_KEY not in session.store.load()

    def test_set_criteria_clears_results(self):
        session = new_session()
        session.set_criteria(CRITERIA)
        session.load_sample_data()
        asyncio.run(session.run_analysis())
        assert session.results
        session.set_criteria(["randomised"], ["animal study"])
        assert session.results == []

    def test_provider_and_model(self):
        store = InMemorySessionStore()
        session = ScreeningSession(store)
        assert session.provider == "gemini"
        session.set_provider("ollama")
        session.set_model("llama3:latest")
        assert store.load() == {PROVIDER_KEY: "ollama", MODEL_KEY: "llama3:latest"}

        session.set_provider("deepseek")
        assert session.model is None
        assert MODEL_KEY not in store.load()
        assert session.backend.provider == "deepseek"

        with pytest.raises(ValueError):
            session.set_provider("openai")


class TestAnalysis:
    @pytest.mark.asyncio
    async def test_requires_criteria_and_articles(self):
        session = new_session()
        with pytest.raises(ConfigurationError):
            await session.run_analysis()
        session.set_criteria(CRITERIA)
        with pytest.raises(ConfigurationError):
            await session.run_analysis()

    @pytest.mark.asyncio
    async def test_no_credentials_before_batch(self):
        backend = GeminiBackend(api_key="", base_url="https://gemini.test")
        session = ScreeningSession(InMemorySessionStore(), backend=backend)
        session.set_criteria(CRITERIA)
        session.load_sample_data()
        with pytest.raises(NoCredentials):
            await session.run_analysis()
        assert session.orchestrator is None
        await session.close()

    @pytest.mark.asyncio
    async def test_run_then_continue(self):
        backend = FakeBackend(replies={"Article 2": "not json"})
        session = new_session(backend)
        session.set_criteria(CRITERIA)
        session.load_articles(make_articles(4))

        state = await session.run_analysis()
        assert state.failed_count == 1
        assert [a.title for a in session.remaining()] == ["Article 2"]

        backend.replies.clear()
        await session.continue_analysis()
        assert session.remaining() == []
        assert len(session.results) == 4
        assert backend.titles.count("Article 2") == 2
        assert backend.titles.count("Article 0") == 1

    @pytest.mark.asyncio
    async def test_run_analysis_resets_results(self):
        backend = FakeBackend()
        session = new_session(backend)
        session.set_criteria(CRITERIA)
        session.load_articles(make_articles(3))
        await session.run_analysis()
        await session.run_analysis()
        assert len(session.results) == 3
        assert len(backend.titles) == 6

    @pytest.mark.asyncio
    async def test_criteria_locked_while_running(self):
        session = new_session(FakeBackend(delay=0.05))
        session.set_criteria(CRITERIA)
        session.load_articles(make_articles(2))

        run = asyncio.ensure_future(session.run_analysis())
        await asyncio.sleep(0.01)
        assert session.is_running
        with pytest.raises(CriteriaLocked):
            session.set_criteria(["other"], ["other"])
        with pytest.raises(CriteriaLocked):
            session.reset_criteria()
        with pytest.raises(BatchAlreadyRunning):
            session.load_sample_data()
        session.cancel()
        state = await run

        assert state.cancelled
        assert session.criteria == CRITERIA

    @pytest.mark.asyncio
    async def test_overrides_statistics_and_filters(self):
        session = new_session()
        session.set_criteria(CRITERIA)
        session.load_articles(make_articles(3))
        await session.run_analysis()

        session.reclassify_decision(0, False)
        session.reclassify_criterion(session.results[1], "1. animal study")

        summary = session.statistics()
        assert (summary.counts.included, summary.counts.excluded) == (2, 1)
        assert session.unique_criteria() == ["1. animal study", "1. clinical trial"]
        assert len(session.filtered_results(ClassificationFilter.EXCLUDE)) == 1
        assert len(session.filtered_results(criterion_filter="animal")) == 1


class TestOllamaModelSelection:
    """Ollama has no default model; the first installed one is used."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_first_listed_model_is_selected_and_saved(self):
        respx.get(f"{OLLAMA_URL}/models").mock(
            return_value=httpx.Response(
                200,
                json={
                    "models": [
                        {"name": "nomic-embed-text", "model": "nomic-embed-text", "details": {"family": "nomic-bert"}},
                        {"name": "llama3:latest", "model": "llama3:latest", "details": {"family": "llama"}},
                        {"name": "mistral", "model": "mistral", "details": {"family": "llama"}},
                    ]
                },
            )
        )
        chat = respx.post(f"{OLLAMA_URL}/chat").mock(
            return_value=httpx.Response(200, json={"role": "assistant", "content": INCLUDE_REPLY})
        )
        store = InMemorySessionStore()
        session = ScreeningSession(store, backend=OllamaBackend(base_url=OLLAMA_URL))
        session.set_criteria(CRITERIA)
        session.load_articles(make_articles(2))

        state = await session.run_analysis()
        await session.close()

        assert len(state.completed) == 2
        assert session.model == "llama3:latest"
        assert store.get(MODEL_KEY) == "llama3:latest"
        assert {json.loads(c.request.content)["model"] for c in chat.calls} == {"llama3:latest"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_installed_models(self):
        respx.get(f"{OLLAMA_URL}/models").mock(return_value=httpx.Response(200, json={"models": []}))
        session = ScreeningSession(InMemorySessionStore(), backend=OllamaBackend(base_url=OLLAMA_URL))
        session.set_criteria(CRITERIA)
        session.load_articles(make_articles(1))

        with pytest.raises(ConfigurationError, match="ollama pull"):
            await session.run_analysis()
        assert session.orchestrator is None
        assert session.model is None
        await session.close()

    @pytest.mark.asyncio
    async def test_saved_model_is_kept(self):
        store = InMemorySessionStore({MODEL_KEY: "mistral"})
        backend = OllamaBackend(base_url=OLLAMA_URL)
        session = ScreeningSession(store, backend=backend)
        assert await session._ensure_model() == "mistral"
        await session.close()


class TestImportAndExport:
    def test_import_failure_leaves_state_untouched(self):
        session = new_session()
        session.load_sample_data()
        with pytest.raises(MissingColumns):
            session.load_import([{"name": "x"}])
        assert len(session.articles) == 4

    @pytest.mark.asyncio
    async def test_export_then_resume_from_file(self, tmp_path):
        articles = make_articles(4)
        rows = [{"title": a.title, "abstract": a.abstract, "authors": "Doe"} for a in articles]

        session = new_session(FakeBackend(replies={"Article 3": "???"}))
        session.set_criteria(CRITERIA)
        session.load_import(rows)
        await session.run_analysis()
        path = session.export(tmp_path / "results.xlsx")

        resumed = ScreeningSession(InMemorySessionStore(), backend=FakeBackend())
        result = resumed.load_file(path)
        assert result.is_previous
        assert resumed.criteria == CRITERIA
        assert len(resumed.results) == 3

        resumed.load_articles(articles, rows)
        resumed.load_previous_results(classify_import(read_table(path)))
        await resumed.continue_analysis()

        assert sorted(r.title for r in resumed.results) == [a.title for a in articles]
        assert resumed.backend.titles == ["Article 3"]
        assert resumed.results[-1].original_data == rows[3]

    def test_export_without_results(self, tmp_path):
        with pytest.raises(ConfigurationError):
            new_session().export(tmp_path / "x.xlsx")
