"""Base class and shared plumbing for classification backends."""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from ..core.errors import (
    ClassificationError,
    ClassificationTimeout,
    ConfigurationError,
    MalformedResponse,
    NoCredentials,
    TransportError,
)
from ..core.models import Article, CriteriaSet, Verdict
from ..utils.logging import get_logger
from .parsing import parse_verdict
from .prompts import build_classification_prompt

logger = get_logger(__name__)


class ModelInfo(BaseModel):
    """A model a provider can classify with."""

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


def _error_detail(response: httpx.Response) -> Optional[str]:
    """Pull the ``error`` field out of a failed response, if there is one."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
    return response.reason_phrase or None


class ClassificationBackend(ABC):
    """Uniform ``classify(article, criteria, model) -> Verdict`` capability.

    Subclasses only implement :meth:`_complete` (send a prompt, return the
    raw text answer) and optionally :meth:`list_models`.  Each call is a
    single attempt: the whole request runs under ``asyncio.wait_for`` so a
    deadline cancels the in-flight HTTP request instead of abandoning it.

    Attributes:
        provider: Short provider name used in logs and the registry.
        env_var: Environment variable holding the API key, or ``None``
            for providers that need no credentials.
        default_model: Model used when the caller does not pick one.
    """

    provider: str = "base"
    env_var: Optional[str] = None
    default_model: Optional[str] = None

    def __init__(
        self,
        base_url: str,
        timeout: float,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        # Usage tracking
        self.calls: int = 0
        self.failures: int = 0
        self.prompt_tokens: int = 0
        self.completion_tokens: int = 0
        self.total_latency: float = 0.0

    # ------------------------------------------------------------------
    # Configuration
    def is_configured(self) -> bool:
        return self.env_var is None or bool(self.api_key)

    def ensure_configured(self) -> None:
        if not self.is_configured():
            raise NoCredentials(self.provider, self.env_var)

    def resolve_model(self, model: Optional[str] = None) -> str:
        chosen = model or self.default_model
        if not chosen:
            raise ConfigurationError(f"No model selected for provider '{self.provider}'")
        return chosen

    # ------------------------------------------------------------------
    # Classification
    async def classify(
        self,
        article: Article,
        criteria: CriteriaSet,
        model: Optional[str] = None,
    ) -> Verdict:
        """Classify one article; raises a :class:`ClassificationError` subclass on failure."""
        self.ensure_configured()
        model_name = self.resolve_model(model)
        prompt = build_classification_prompt(article, criteria)
        self.calls += 1
        started = time.monotonic()
        try:
            content = await asyncio.wait_for(self._complete(prompt, model_name), timeout=self.timeout)
            verdict = parse_verdict(content)
        except asyncio.TimeoutError as exc:
            self.failures += 1
            raise ClassificationTimeout(self.provider, self.timeout) from exc
        except ClassificationError:
            self.failures += 1
            raise
        finally:
            self.total_latency += time.monotonic() - started
        logger.debug(
            f"{self.provider}/{model_name} classified '{article.title[:50]}' "
            f"in {time.monotonic() - started:.1f}s (include={verdict.include})"
        )
        return verdict

    @abstractmethod
    async def _complete(self, prompt: str, model: str) -> str:
        """Send ``prompt`` to ``model`` and return the raw text reply."""
        raise NotImplementedError

    async def list_models(self) -> List[ModelInfo]:
        """Models available for classification; never raises for a missing service."""
        return []

    # ------------------------------------------------------------------
    # HTTP helpers
    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST ``payload`` and decode the JSON reply, mapping httpx failures."""
        try:
            response = await self.client.post(url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise ClassificationTimeout(self.provider, self.timeout) from exc
        except httpx.HTTPError as exc:
            raise TransportError(self.provider, f"Failed to connect to {url}: {exc}") from exc
        if not response.is_success:
            raise TransportError(
                self.provider,
                "request failed",
                status_code=response.status_code,
                detail=_error_detail(response),
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponse(f"{self.provider} returned a non-JSON body", raw=response.text) from exc
        if not isinstance(data, dict):
            raise MalformedResponse(f"{self.provider} returned an unexpected payload", raw=response.text)
        return data

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get_json(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: float = 10.0) -> Any:
        """GET a JSON document (used for model listing only)."""
        response = await self.client.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.json()

    def _record_usage(self, prompt_tokens: Optional[int], completion_tokens: Optional[int]) -> None:
        self.prompt_tokens += int(prompt_tokens or 0)
        self.completion_tokens += int(completion_tokens or 0)

    # ------------------------------------------------------------------
    # Reporting
    def get_usage_summary(self) -> Dict[str, Any]:
        """Return call counts, token usage and mean latency."""
        return {
            "provider": self.provider,
            "calls": self.calls,
            "failures": self.failures,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "avg_latency_s": round(self.total_latency / self.calls, 2) if self.calls else 0.0,
        }

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ClassificationBackend":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} provider={self.provider} timeout={self.timeout:g}s>"
