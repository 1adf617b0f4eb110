"""Unit tests for the provider backends with mocked HTTP (respx)."""

import json

import httpx
import pytest
import respx

from screhelper.core.errors import (
    ClassificationTimeout,
    ConfigurationError,
    MalformedResponse,
    NoCredentials,
    TransportError,
)
from screhelper.core.models import Article, CriteriaSet
from screhelper.llm.api_models import DeepSeekBackend, GeminiBackend
from screhelper.llm.local_models import OllamaBackend, is_embedding_model
from screhelper.llm.router import PROVIDERS, create_backend, list_available_models
from tests.fakes import FakeBackend

CRITERIA = CriteriaSet(inclusion=["Randomised trial"], exclusion=["Animal study"])
ARTICLE = Article(title="Aspirin trial", abstract="A randomised trial of aspirin in adults.")
VERDICT_TEXT = '{"include": true, "reason": "Randomised trial in adults", "criterion": "1. Randomised trial"}'

GEMINI_URL = "https://gemini.test/models/gemini-2.0-flash:generateContent"
DEEPSEEK_URL = "https://deepseek.test/chat/completions"
OLLAMA_URL = "http://ollama.test"


def gemini_reply(text: str) -> dict:
    return {
        "candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}],
        "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 30},
    }


class TestGeminiBackend:
    """Tests for GeminiBackend."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_classify_success(self):
        route = respx.post(GEMINI_URL).mock(return_value=httpx.Response(200, json=gemini_reply(VERDICT_TEXT)))
        backend = GeminiBackend(api_key="secret", base_url="https://gemini.test")

        verdict = await backend.classify(ARTICLE, CRITERIA)
        await backend.close()

        assert verdict.include is True
        assert verdict.criterion == "1. Randomised trial"
        request = route.calls.last.request
        assert request.headers["x-goog-api-key"] == "secret"
        body = json.loads(request.content)
        assert body["generationConfig"]["temperature"] == 0.1
        assert "Title: Aspirin trial" in body["contents"][0]["parts"][0]["text"]
        assert backend.get_usage_summary()["prompt_tokens"] == 120

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_candidates_is_malformed(self):
        respx.post(GEMINI_URL).mock(return_value=httpx.Response(200, json={"candidates": []}))
        backend = GeminiBackend(api_key="secret", base_url="https://gemini.test")
        with pytest.raises(MalformedResponse):
            await backend.classify(ARTICLE, CRITERIA)
        assert backend.failures == 1
        await backend.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_carries_status_and_detail(self):
        respx.post(GEMINI_URL).mock(
            return_value=httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid"}})
        )
        backend = GeminiBackend(api_key="bad", base_url="https://gemini.test")
        with pytest.raises(TransportError) as exc_info:
            await backend.classify(ARTICLE, CRITERIA)
        await backend.close()

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "API key not valid"
        assert "HTTP 400" in str(exc_info.value)

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_key_raises_before_any_request(self):
        route = respx.post(GEMINI_URL)
        backend = GeminiBackend(api_key="", base_url="https://gemini.test")
        with pytest.raises(NoCredentials) as exc_info:
            await backend.classify(ARTICLE, CRITERIA)
        await backend.close()
        assert "GEMINI_API_KEY" in str(exc_info.value)
        assert not route.called

    @pytest.mark.asyncio
    async def test_static_model_list(self):
        backend = GeminiBackend(api_key="", base_url="https://gemini.test")
        models = await backend.list_models()
        await backend.close()
        assert [m.id for m in models][0] == "gemini-2.0-flash"
        assert len(models) == 3


class TestDeepSeekBackend:
    """Tests for DeepSeekBackend."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_classify_sends_sampling_parameters(self):
        route = respx.post(DEEPSEEK_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "choices": [{"message": {"role": "assistant", "content": "Here you go:\n" + VERDICT_TEXT}}],
                    "usage": {"prompt_tokens": 100, "completion_tokens": 20},
                },
            )
        )
        backend = DeepSeekBackend(api_key="ds-key", base_url="https://deepseek.test")
        verdict = await backend.classify(ARTICLE, CRITERIA, model="deepseek-reasoner")
        await backend.close()

        assert verdict.reason == "Randomised trial in adults"
        request = route.calls.last.request
        assert request.headers["authorization"] == "Bearer ds-key"
        body = json.loads(request.content)
        assert body["model"] == "deepseek-reasoner"
        assert (body["temperature"], body["max_tokens"], body["top_p"]) == (0.1, 1000, 0.95)
        assert backend.completion_tokens == 20

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_string_detail(self):
        respx.post(DEEPSEEK_URL).mock(return_value=httpx.Response(500, json={"error": "overloaded"}))
        backend = DeepSeekBackend(api_key="ds-key", base_url="https://deepseek.test")
        with pytest.raises(TransportError) as exc_info:
            await backend.classify(ARTICLE, CRITERIA)
        await backend.close()
        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "overloaded"

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_transport_error(self):
        respx.post(DEEPSEEK_URL).mock(side_effect=httpx.ConnectError("connection refused"))
        backend = DeepSeekBackend(api_key="ds-key", base_url="https://deepseek.test")
        with pytest.raises(TransportError) as exc_info:
            await backend.classify(ARTICLE, CRITERIA)
        await backend.close()
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_timeout_is_classification_timeout(self):
        respx.post(DEEPSEEK_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        backend = DeepSeekBackend(api_key="ds-key", base_url="https://deepseek.test")
        with pytest.raises(ClassificationTimeout):
            await backend.classify(ARTICLE, CRITERIA)
        await backend.close()

    @pytest.mark.asyncio
    async def test_list_models_without_key_is_empty(self):
        backend = DeepSeekBackend(api_key="", base_url="https://deepseek.test")
        assert await backend.list_models() == []
        await backend.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_models_live(self):
        respx.get("https://deepseek.test/models").mock(
            return_value=httpx.Response(
                200, json={"object": "list", "data": [{"id": "deepseek-chat", "owned_by": "deepseek"}]}
            )
        )
        backend = DeepSeekBackend(api_key="ds-key", base_url="https://deepseek.test")
        models = await backend.list_models()
        await backend.close()
        assert [m.id for m in models] == ["deepseek-chat"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_models_falls_back_to_static_list(self):
        respx.get("https://deepseek.test/models").mock(return_value=httpx.Response(503))
        backend = DeepSeekBackend(api_key="ds-key", base_url="https://deepseek.test")
        models = await backend.list_models()
        await backend.close()
        assert {m.id for m in models} == {"deepseek-chat", "deepseek-coder", "deepseek-reasoner"}


class TestOllamaBackend:
    """Tests for OllamaBackend."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_classify_posts_model_and_message(self):
        route = respx.post(f"{OLLAMA_URL}/chat").mock(
            return_value=httpx.Response(200, json={"role": "assistant", "content": VERDICT_TEXT})
        )
        backend = OllamaBackend(base_url=OLLAMA_URL)
        verdict = await backend.classify(ARTICLE, CRITERIA, model="llama3:latest")
        await backend.close()

        assert verdict.include is True
        body = json.loads(route.calls.last.request.content)
        assert set(body) == {"model", "message"}
        assert body["model"] == "llama3:latest"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_content_is_malformed(self):
        respx.post(f"{OLLAMA_URL}/chat").mock(return_value=httpx.Response(200, json={"role": "assistant"}))
        backend = OllamaBackend(base_url=OLLAMA_URL)
        with pytest.raises(MalformedResponse, match="Invalid response format from Ollama"):
            await backend.classify(ARTICLE, CRITERIA, model="llama3")
        await backend.close()

    @pytest.mark.asyncio
    async def test_requires_a_model(self):
        backend = OllamaBackend(base_url=OLLAMA_URL)
        assert backend.is_configured()
        with pytest.raises(ConfigurationError):
            await backend.classify(ARTICLE, CRITERIA)
        await backend.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_models_hides_embedding_models(self):
        respx.get(f"{OLLAMA_URL}/models").mock(
            return_value=httpx.Response(
                200,
                json={
                    "models": [
                        {
                            "name": "llama3:latest",
                            "model": "llama3:latest",
                            "details": {"family": "llama", "parameter_size": "8B", "quantization_level": "Q4_0"},
                        },
                        {"name": "nomic-embed-text:latest", "model": "nomic-embed-text:latest", "details": {"family": "nomic-bert"}},
                        {"name": "bge-m3", "model": "bge-m3", "details": {"family": "nomic-bert"}},
                    ]
                },
            )
        )
        backend = OllamaBackend(base_url=OLLAMA_URL)
        models = await backend.list_models()
        await backend.close()

        assert [m.id for m in models] == ["llama3:latest"]
        assert models[0].description == "8B • Q4_0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_unreachable_service_lists_nothing(self):
        respx.get(f"{OLLAMA_URL}/models").mock(side_effect=httpx.ConnectError("refused"))
        backend = OllamaBackend(base_url=OLLAMA_URL)
        assert await backend.list_models() == []
        await backend.close()

    def test_is_embedding_model(self):
        assert is_embedding_model({"name": "mxbai-embed-large"})
        assert is_embedding_model({"name": "x", "details": {"family": "nomic-bert"}})
        assert not is_embedding_model({"name": "mistral", "details": {"family": "llama"}})


class TestDeadline:
    @pytest.mark.asyncio
    async def test_slow_backend_is_aborted(self):
        backend = FakeBackend(delay=1.0, timeout=0.05)
        with pytest.raises(ClassificationTimeout):
            await backend.classify(ARTICLE, CRITERIA)
        assert backend.active == 0
        await backend.close()


class TestRouter:
    def test_registry(self):
        assert set(PROVIDERS) == {"gemini", "deepseek", "ollama"}

    def test_create_backend(self):
        backend = create_backend("DeepSeek", api_key="k")
        assert isinstance(backend, DeepSeekBackend)
        assert backend.api_key == "k"

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            create_backend("openai")

    @pytest.mark.asyncio
    async def test_list_available_models_uses_given_backend(self):
        backend = GeminiBackend(api_key="", base_url="https://gemini.test")
        models = await list_available_models("gemini", backend=backend)
        await backend.close()
        assert len(models) == 3
