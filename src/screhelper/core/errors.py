"""Exception hierarchy for screening, backend and import failures."""

from typing import List, Optional, Sequence


class ScreeningError(Exception):
    """Base class for every error raised by screhelper."""


# ----------------------------------------------------------------------
# Per-record classification failures (non-fatal to a batch)

class ClassificationError(ScreeningError):
    """A backend could not produce a verdict for one record."""


class ClassificationTimeout(ClassificationError):
    """The backend call exceeded its deadline and was aborted."""

    def __init__(self, provider: str, timeout: float) -> None:
        self.provider = provider
        self.timeout = timeout
        super().__init__(f"{provider} did not answer within {timeout:g}s")


class MalformedResponse(ClassificationError):
    """The backend replied, but no usable verdict JSON could be parsed."""

    def __init__(self, message: str, raw: Optional[str] = None) -> None:
        self.raw = raw
        super().__init__(message)


class TransportError(ClassificationError):
    """Network or HTTP failure while reaching the backend."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        self.detail = detail
        text = f"{provider}: {message}"
        if status_code is not None:
            text = f"{provider}: HTTP {status_code}"
            if detail:
                text += f" - {detail}"
        super().__init__(text)


# ----------------------------------------------------------------------
# Configuration

class ConfigurationError(ScreeningError):
    """The session or a provider is not configured well enough to start."""


class NoCredentials(ConfigurationError):
    """The selected provider has no API key configured."""

    def __init__(self, provider: str, env_var: Optional[str] = None) -> None:
        self.provider = provider
        hint = f" Set the {env_var} environment variable." if env_var else ""
        super().__init__(f"{provider} API key not configured.{hint}")


# ----------------------------------------------------------------------
# Import-time failures (fatal to that import only)

class ImportFailure(ScreeningError):
    """A tabular input could not be ingested."""


class EmptyInput(ImportFailure):
    def __init__(self) -> None:
        super().__init__("The file contains no rows")


class MissingColumns(ImportFailure):
    def __init__(self, missing: Sequence[str]) -> None:
        self.missing: List[str] = list(missing)
        columns = ", ".join(f'"{c}"' for c in self.missing)
        super().__init__(f"File must contain {columns} column(s)")


# ----------------------------------------------------------------------
# Batch lifecycle

class BatchAlreadyRunning(ScreeningError):
    """A batch was started while another one is still running."""


class CriteriaLocked(ScreeningError):
    """Criteria cannot change while a batch is running."""
