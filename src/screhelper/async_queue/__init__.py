"""
Batch orchestration for article classification.

Components:
- task_queue: BatchState and ClassificationTask bookkeeping
- batch: BatchOrchestrator (wave dispatch, cancellation, resume)
- error_handler: per-record failure classification
- progress: rich progress display and summaries
"""

from .task_queue import BatchState, BatchStatus, ClassificationTask, TaskStatus
from .error_handler import ErrorHandler, ErrorType, RecordFailure
from .batch import BatchOrchestrator
from .progress import BatchStats, ProgressTracker

__all__ = [
    "BatchState",
    "BatchStatus",
    "ClassificationTask",
    "TaskStatus",
    "ErrorHandler",
    "ErrorType",
    "RecordFailure",
    "BatchOrchestrator",
    "BatchStats",
    "ProgressTracker",
]
