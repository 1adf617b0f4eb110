"""Classification of per-record failures.

Nothing here retries: a failed record is reported and skipped, and the
caller re-dispatches it by resuming the batch.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import httpx

from ..core.errors import (
    ClassificationTimeout,
    MalformedResponse,
    NoCredentials,
    TransportError,
)
from ..core.models import Article
from ..utils.logging import get_logger

logger = get_logger(__name__)


class ErrorType(Enum):
    """Classification of error types for reporting."""
    TIMEOUT = "timeout"                          # backend exceeded its deadline
    MALFORMED_RESPONSE = "malformed_response"    # reply without a usable verdict
    TRANSPORT = "transport"                      # network or HTTP failure
    NO_CREDENTIALS = "no_credentials"            # provider not configured
    UNKNOWN = "unknown"


@dataclass
class RecordFailure:
    """A record whose classification failed, as reported to the caller."""
    article: Article
    error_type: ErrorType
    message: str
    status_code: Optional[int] = None
    occurred_at: datetime = field(default_factory=datetime.now)

    @property
    def title(self) -> str:
        return self.article.title

    def to_dict(self) -> Dict[str, object]:
        return {
            "title": self.article.title,
            "error_type": self.error_type.value,
            "message": self.message,
            "status_code": self.status_code,
            "occurred_at": self.occurred_at.isoformat(),
        }


class ErrorHandler:
    """
    Maps exceptions raised by a backend to :class:`ErrorType` and keeps
    per-type counts for the batch summary.

    Example:
        >>> handler = ErrorHandler()
        >>> failure = handler.record(article, exc)
        >>> handler.get_error_counts()
        {'timeout': 1}
    """

    def __init__(self):
        self.failures: List[RecordFailure] = []
        self.error_counts: Dict[ErrorType, int] = {}

    def classify_error(self, error: BaseException) -> ErrorType:
        """
        Classify an exception.

        Args:
            error: Exception raised while classifying one record

        Returns:
            ErrorType enum value
        """
        if isinstance(error, (ClassificationTimeout, asyncio.TimeoutError, httpx.TimeoutException)):
            return ErrorType.TIMEOUT
        if isinstance(error, MalformedResponse):
            return ErrorType.MALFORMED_RESPONSE
        if isinstance(error, (TransportError, httpx.HTTPError)):
            return ErrorType.TRANSPORT
        if isinstance(error, NoCredentials):
            return ErrorType.NO_CREDENTIALS
        return ErrorType.UNKNOWN

    def record(self, article: Article, error: BaseException) -> RecordFailure:
        """Classify ``error``, log it and keep it for the summary."""
        error_type = self.classify_error(error)
        status_code = getattr(error, "status_code", None)
        if status_code is None and isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code

        failure = RecordFailure(
            article=article,
            error_type=error_type,
            message=str(error) or error.__class__.__name__,
            status_code=status_code,
        )
        self.failures.append(failure)
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        log = logger.error if error_type == ErrorType.UNKNOWN else logger.warning
        log(
            f"Classification failed for '{article.title[:60]}' ({error_type.value}): {failure.message}",
            extra={"error_type": error_type.value, "status_code": status_code},
        )
        return failure

    def get_error_counts(self) -> Dict[str, int]:
        """Failure counts keyed by error type value."""
        return {etype.value: count for etype, count in self.error_counts.items()}

    def reset(self) -> None:
        self.failures.clear()
        self.error_counts.clear()
