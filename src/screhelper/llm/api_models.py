"""Hosted LLM providers.

Both providers here are remote, low-latency APIs and therefore run
under the hosted deadline (``settings.hosted_timeout``, 60 s by
default).  Gemini is called through the Generative Language REST API;
DeepSeek exposes an OpenAI-compatible chat completion endpoint.
Missing API keys do not raise at construction time: ``classify``
raises :class:`~screhelper.core.errors.NoCredentials` and
``list_models`` degrades to an empty or static list.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ..config.settings import settings
from ..core.errors import MalformedResponse
from ..utils.logging import get_logger
from .base import ClassificationBackend, ModelInfo
from .prompts import SYSTEM_PROMPT

logger = get_logger(__name__)


class GeminiBackend(ClassificationBackend):
    """Google Gemini via ``models/{model}:generateContent``."""

    provider = "gemini"
    env_var = "GEMINI_API_KEY"
    default_model = "gemini-2.0-flash"

    MODELS: List[ModelInfo] = [
        ModelInfo(id="gemini-2.0-flash", name="Gemini 2.0 Flash", description="Fast general-purpose model"),
        ModelInfo(id="gemini-1.5-flash", name="Gemini 1.5 Flash", description="Previous-generation fast model"),
        ModelInfo(id="gemini-1.5-pro", name="Gemini 1.5 Pro", description="Higher-quality, slower model"),
    ]

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url=base_url or settings.gemini_base_url,
            timeout=timeout or settings.hosted_timeout,
            api_key=api_key if api_key is not None else settings.gemini_api_key,
            client=client,
        )

    async def _complete(self, prompt: str, model: str) -> str:
        data = await self._post_json(
            f"{self.base_url}/models/{model}:generateContent",
            {
                "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": 0.1,
                    "maxOutputTokens": 1000,
                    "responseMimeType": "application/json",
                },
            },
            headers={"x-goog-api-key": self.api_key or "", "Content-Type": "application/json"},
        )
        candidates = data.get("candidates") or []
        if not candidates:
            raise MalformedResponse("Gemini returned no candidates", raw=str(data))
        parts = (candidates[0].get("content") or {}).get("parts") or []
        usage: Dict[str, Any] = data.get("usageMetadata", {})
        self._record_usage(usage.get("promptTokenCount"), usage.get("candidatesTokenCount"))
        return "".join(str(p.get("text", "")) for p in parts)

    async def list_models(self) -> List[ModelInfo]:
        # Static list: the public catalogue includes embedding and vision-only models.
        return list(self.MODELS)


class DeepSeekBackend(ClassificationBackend):
    """DeepSeek chat completion API (OpenAI-compatible)."""

    provider = "deepseek"
    env_var = "DEEPSEEK_API_KEY"
    default_model = "deepseek-chat"

    MODELS: List[ModelInfo] = [
        ModelInfo(
            id="deepseek-chat",
            name="DeepSeek Chat",
            description="DeepSeek's most capable model for general conversations and reasoning",
            details={"max_tokens": 32768, "input_cost_per_million": 0.14, "output_cost_per_million": 0.28},
        ),
        ModelInfo(
            id="deepseek-coder",
            name="DeepSeek Coder",
            description="Specialized model for code generation and programming tasks",
            details={"max_tokens": 16384, "input_cost_per_million": 0.14, "output_cost_per_million": 0.28},
        ),
        ModelInfo(
            id="deepseek-reasoner",
            name="DeepSeek Reasoner",
            description="Advanced reasoning model with chain-of-thought capabilities",
            details={"max_tokens": 32768, "input_cost_per_million": 2.19, "output_cost_per_million": 8.76},
        ),
    ]

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url=base_url or settings.deepseek_base_url,
            timeout=timeout or settings.hosted_timeout,
            api_key=api_key if api_key is not None else settings.deepseek_api_key,
            client=client,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _complete(self, prompt: str, model: str) -> str:
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            {
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0.1,
                "max_tokens": 1000,
                "top_p": 0.95,
            },
            headers=self._headers(),
        )
        choices = data.get("choices") or []
        if not choices:
            raise MalformedResponse("DeepSeek returned no choices", raw=str(data))
        usage: Dict[str, int] = data.get("usage", {})
        self._record_usage(usage.get("prompt_tokens"), usage.get("completion_tokens"))
        return (choices[0].get("message") or {}).get("content") or ""

    async def list_models(self) -> List[ModelInfo]:
        """Live model list, or the static list when the API cannot be reached.

        Without an API key the list is empty: the provider cannot be
        used at all, so offering models would be misleading.
        """
        if not self.is_configured():
            logger.warning("DeepSeek API key not configured; no models available")
            return []
        try:
            data = await self._get_json(
                f"{self.base_url}/models",
                headers={"Accept": "application/json", "Authorization": f"Bearer {self.api_key}"},
                timeout=settings.model_list_timeout,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"DeepSeek model listing failed, using static list: {exc}")
            return list(self.MODELS)
        entries = data.get("data") if isinstance(data, dict) else None
        if not entries:
            return list(self.MODELS)
        return [
            ModelInfo(id=str(m["id"]), name=m.get("name"), details={"owned_by": m.get("owned_by")})
            for m in entries
            if isinstance(m, dict) and m.get("id")
        ]
