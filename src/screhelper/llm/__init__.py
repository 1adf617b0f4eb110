"""Classification backends for article screening.

This package turns an ``(article, criteria)`` pair into a prompt, sends
it to a language model and parses a structured verdict from the reply.

* ``ClassificationBackend`` – abstract base; one attempt per call, a
  hard per-call deadline and uniform error mapping.
* ``GeminiBackend`` / ``DeepSeekBackend`` – hosted providers.
* ``OllamaBackend`` – local model served by Ollama.
* ``create_backend`` / ``list_available_models`` – provider registry.
* ``parse_verdict`` / ``extract_json_object`` – response parsing.
"""

from .base import ClassificationBackend, ModelInfo  # noqa: F401
from .api_models import GeminiBackend, DeepSeekBackend  # noqa: F401
from .local_models import OllamaBackend  # noqa: F401
from .router import Provider, PROVIDERS, create_backend, list_available_models  # noqa: F401
from .parsing import parse_verdict, extract_json_object  # noqa: F401
from .prompts import build_classification_prompt  # noqa: F401

__all__ = [
    "ClassificationBackend",
    "ModelInfo",
    "GeminiBackend",
    "DeepSeekBackend",
    "OllamaBackend",
    "Provider",
    "PROVIDERS",
    "create_backend",
    "list_available_models",
    "parse_verdict",
    "extract_json_object",
    "build_classification_prompt",
]
