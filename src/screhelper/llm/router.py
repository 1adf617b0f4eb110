"""Provider registry and backend construction.

Callers refer to providers by name (``"gemini"``, ``"deepseek"``,
``"ollama"``), typically the value kept in the session store.  The
registry maps each name to its :class:`ClassificationBackend` subclass.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Type

from .api_models import DeepSeekBackend, GeminiBackend
from .base import ClassificationBackend, ModelInfo
from .local_models import OllamaBackend
from ..utils.logging import get_logger


logger = get_logger(__name__)


class Provider(str, Enum):
    """Supported classification providers."""

    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    OLLAMA = "ollama"


PROVIDERS: Dict[str, Type[ClassificationBackend]] = {
    Provider.GEMINI.value: GeminiBackend,
    Provider.DEEPSEEK.value: DeepSeekBackend,
    Provider.OLLAMA.value: OllamaBackend,
}


def create_backend(provider: str, **kwargs: Any) -> ClassificationBackend:
    """Instantiate the backend registered under ``provider``.

    Keyword arguments are passed through to the backend constructor
    (``api_key``, ``base_url``, ``timeout``, ``client``).

    Raises:
        ValueError: if ``provider`` is not registered.
    """
    key = provider.value if isinstance(provider, Provider) else str(provider).lower()
    try:
        backend_cls = PROVIDERS[key]
    except KeyError:
        raise ValueError(
            f"Unknown provider '{provider}'. Choose one of: {', '.join(sorted(PROVIDERS))}"
        ) from None
    return backend_cls(**kwargs)


async def list_available_models(
    provider: str,
    backend: Optional[ClassificationBackend] = None,
) -> List[ModelInfo]:
    """List models for ``provider`` without failing on missing credentials or service.

    When ``backend`` is given it is used (and left open); otherwise a
    temporary backend is created and closed afterwards.
    """
    if backend is not None:
        return await backend.list_models()
    temp = create_backend(provider)
    try:
        models = await temp.list_models()
    finally:
        await temp.close()
    logger.info(f"{len(models)} models available for {provider}")
    return models
