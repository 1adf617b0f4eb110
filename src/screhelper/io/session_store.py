"""Key/value persistence for the last-used criteria, provider and model."""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from ..utils.logging import get_logger

logger = get_logger(__name__)

CRITERIA_KEY = "screenerCriteria"
PROVIDER_KEY = "aiProvider"
MODEL_KEY = "selectedModel"


class SessionStore(ABC):
    """Persisted session values; absent keys simply mean "unset"."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        """Return every stored value."""

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)


class InMemorySessionStore(SessionStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    def load(self) -> Dict[str, Any]:
        return dict(self._data)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileSessionStore(SessionStore):
    """Session values kept in one JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring session file {self.path}: expected a JSON object")
            return {}
        data.pop("saved_at", None)
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        """Replace the file atomically via a temp file in the same directory."""
        data["saved_at"] = datetime.now().isoformat()
        fd, tmp_path = tempfile.mkstemp(suffix=".json", dir=self.path.parent, prefix=".session_tmp_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def save(self, key: str, value: Any) -> None:
        data = self.load()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self.load()
        if key in data:
            del data[key]
            self._write(data)
