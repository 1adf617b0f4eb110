"""Local Ollama chat service.

The service listens on ``settings.ollama_base_url`` and exposes two
endpoints: ``POST /chat`` taking ``{"model": ..., "message": ...}`` and
answering with ``{"role": "assistant", "content": ...}``, and
``GET /models`` listing the installed models.  Local inference is slow
on consumer hardware, so calls run under ``settings.local_timeout``
(120 s by default).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ..config.settings import settings
from ..core.errors import MalformedResponse
from ..utils.logging import get_logger
from .base import ClassificationBackend, ModelInfo

logger = get_logger(__name__)


def is_embedding_model(entry: Dict[str, Any]) -> bool:
    """Embedding models cannot answer chat prompts and are hidden from selection."""
    name = str(entry.get("model") or entry.get("name") or "").lower()
    family = str((entry.get("details") or {}).get("family") or "").lower()
    return "embed" in name or family == "nomic-bert"


class OllamaBackend(ClassificationBackend):
    """Classification through a locally running Ollama model."""

    provider = "ollama"
    env_var = None
    default_model = None

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url=base_url or settings.ollama_base_url,
            timeout=timeout or settings.local_timeout,
            client=client,
        )

    async def _complete(self, prompt: str, model: str) -> str:
        data = await self._post_json(
            f"{self.base_url}/chat",
            {"model": model, "message": prompt},
            headers={"Content-Type": "application/json"},
        )
        content = data.get("content")
        if content is None:
            raise MalformedResponse("Invalid response format from Ollama", raw=str(data))
        usage = data.get("usage") or {}
        self._record_usage(usage.get("prompt_tokens"), usage.get("completion_tokens"))
        return str(content)

    async def list_models(self) -> List[ModelInfo]:
        try:
            data = await self._get_json(
                f"{self.base_url}/models",
                headers={"Accept": "application/json"},
                timeout=settings.model_list_timeout,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"Could not reach Ollama at {self.base_url}: {exc}")
            return []
        entries = data.get("models", []) if isinstance(data, dict) else []
        models: List[ModelInfo] = []
        for entry in entries:
            if not isinstance(entry, dict) or not (entry.get("model") or entry.get("name")):
                continue
            if is_embedding_model(entry):
                continue
            details = entry.get("details") or {}
            models.append(
                ModelInfo(
                    id=str(entry.get("model") or entry.get("name")),
                    name=entry.get("name"),
                    description=" • ".join(
                        str(v) for v in (details.get("parameter_size"), details.get("quantization_level")) if v
                    ) or None,
                    details=details,
                )
            )
        if not models:
            logger.warning("No chat models found in Ollama; pull one with `ollama pull llama3`")
        return models
