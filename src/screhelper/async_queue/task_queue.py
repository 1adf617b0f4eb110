"""Batch state and per-record task bookkeeping."""

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from ..core.models import Article, ClassifiedArticle
from .error_handler import RecordFailure


class TaskStatus(Enum):
    """Task execution states."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DISCARDED = "discarded"    # finished after cancellation, result dropped


class BatchStatus(Enum):
    """Batch lifecycle: IDLE -> RUNNING -> SETTLED."""
    IDLE = "idle"
    RUNNING = "running"
    SETTLED = "settled"


@dataclass
class ClassificationTask:
    """One record dispatched to a backend."""

    article: Article
    task_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    error: Optional[str] = None

    def start(self) -> None:
        self.status = TaskStatus.RUNNING
        self.started_at = datetime.now()

    def finish(self, status: TaskStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.error = error
        self.completed_at = datetime.now()

    @property
    def duration(self) -> float:
        """Seconds between start and finish (0.0 until both are known)."""
        if not self.started_at or not self.completed_at:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.article.title,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


@dataclass
class BatchState:
    """
    Mutable state of one batch run.

    Owned by the orchestrator while it runs. ``completed`` is the
    caller's own list when resuming, so results appear there as soon as
    they land.

    Attributes:
        pending: Records not dispatched yet
        in_flight: Tasks of the current wave, by task id
        completed: Classified records in completion order
        failures: Records whose classification failed in this run
        cancelled: Cooperative cancellation flag
        processed_count: Records of this batch present in ``completed``
        total_count: Number of records the batch was started with
        status: Lifecycle state
    """
    pending: Deque[Article] = field(default_factory=deque)
    in_flight: Dict[str, ClassificationTask] = field(default_factory=dict)
    completed: List[ClassifiedArticle] = field(default_factory=list)
    failures: List[RecordFailure] = field(default_factory=list)
    cancelled: bool = False

    processed_count: int = 0
    total_count: int = 0

    status: BatchStatus = BatchStatus.IDLE
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def progress(self) -> float:
        """Fraction of records settled, failed ones included."""
        if self.total_count == 0:
            return 0.0
        return min(1.0, (self.processed_count + self.failed_count) / self.total_count)

    @property
    def is_running(self) -> bool:
        return self.status == BatchStatus.RUNNING

    @property
    def is_settled(self) -> bool:
        return self.status == BatchStatus.SETTLED

    def remaining(self) -> List[Article]:
        """Records never dispatched (non-empty only after a cancellation)."""
        return list(self.pending)

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for logging and reporting."""
        return {
            "status": self.status.value,
            "cancelled": self.cancelled,
            "pending": len(self.pending),
            "in_flight": len(self.in_flight),
            "completed": len(self.completed),
            "failed": self.failed_count,
            "processed_count": self.processed_count,
            "total_count": self.total_count,
            "progress": round(self.progress, 4),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
