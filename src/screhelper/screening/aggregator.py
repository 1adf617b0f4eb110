"""Counts, per-criterion statistics, filtering and manual overrides.

All functions are pure over a sequence of :class:`ClassifiedArticle`,
except the two ``reclassify_*`` helpers which mutate the given record's
verdict in place.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Union

from ..core.models import ClassifiedArticle
from ..core.normalization import normalize_criterion
from ..utils.logging import get_logger
from .models import (
    ALL_CRITERIA,
    ClassificationFilter,
    CriterionStats,
    DecisionCounts,
    ScreeningSummary,
)

logger = get_logger(__name__)

MANUAL_INCLUDE_REASON = "Manually changed to Include by user"
MANUAL_EXCLUDE_REASON = "Manually changed to Exclude by user"


def count_decisions(results: Sequence[ClassifiedArticle]) -> DecisionCounts:
    included = sum(1 for r in results if r.classification.include)
    return DecisionCounts(included=included, excluded=len(results) - included, total=len(results))


def criterion_statistics(results: Iterable[ClassifiedArticle]) -> List[CriterionStats]:
    """Group results by trimmed criterion text, largest group first.

    Records with a blank criterion are left out of the grouping; they
    still count in :func:`count_decisions`.
    """
    groups: Dict[str, List[int]] = {}
    for record in results:
        criterion = (record.classification.criterion or "").strip()
        if not criterion:
            continue
        counts = groups.setdefault(criterion, [0, 0])
        counts[0 if record.classification.include else 1] += 1

    stats = [
        CriterionStats(
            criterion=criterion,
            included=inc,
            excluded=exc,
            total=inc + exc,
            inclusion_rate=inc / (inc + exc),
        )
        for criterion, (inc, exc) in groups.items()
    ]
    stats.sort(key=lambda s: s.total, reverse=True)
    return stats


def unique_criteria(results: Iterable[ClassifiedArticle]) -> List[str]:
    """Distinct criteria for a filter menu, case-insensitively de-duplicated.

    The first spelling seen for each criterion is the one returned.
    """
    seen: Dict[str, str] = {}
    for record in results:
        text = (record.classification.criterion or "").strip()
        if not text:
            continue
        seen.setdefault(normalize_criterion(text), text)
    return sorted(seen.values())


def _as_filter(value: Union[ClassificationFilter, str]) -> ClassificationFilter:
    if isinstance(value, ClassificationFilter):
        return value
    return ClassificationFilter(str(value).strip().lower())


def matches_filter(
    record: ClassifiedArticle,
    classification_filter: Union[ClassificationFilter, str] = ClassificationFilter.ALL,
    criterion_filter: str = ALL_CRITERIA,
) -> bool:
    """True if ``record`` passes the verdict filter and the criterion substring filter."""
    kind = _as_filter(classification_filter)
    include = record.classification.include
    if kind == ClassificationFilter.INCLUDE and not include:
        return False
    if kind == ClassificationFilter.EXCLUDE and include:
        return False
    if not criterion_filter or criterion_filter == ALL_CRITERIA:
        return True
    return criterion_filter.lower() in (record.classification.criterion or "").lower()


def filter_results(
    results: Iterable[ClassifiedArticle],
    classification_filter: Union[ClassificationFilter, str] = ClassificationFilter.ALL,
    criterion_filter: str = ALL_CRITERIA,
) -> List[ClassifiedArticle]:
    return [r for r in results if matches_filter(r, classification_filter, criterion_filter)]


def reclassify_decision(record: ClassifiedArticle, include: bool) -> ClassifiedArticle:
    """Override the include/exclude decision and stamp an audit reason."""
    record.classification.include = include
    record.classification.reason = MANUAL_INCLUDE_REASON if include else MANUAL_EXCLUDE_REASON
    logger.info(f"Manual override: '{record.title[:50]}' -> {'Include' if include else 'Exclude'}")
    return record


def reclassify_criterion(record: ClassifiedArticle, criterion: str) -> ClassifiedArticle:
    """Override the cited criterion and stamp an audit reason quoting it."""
    record.classification.criterion = criterion
    record.classification.reason = f'Criterion manually changed to "{criterion}" by user'
    logger.info(f"Manual criterion override: '{record.title[:50]}' -> {criterion}")
    return record


def summarize(results: Sequence[ClassifiedArticle]) -> ScreeningSummary:
    stats = criterion_statistics(results)
    return ScreeningSummary(
        counts=count_decisions(results),
        criteria=stats,
        without_criterion=len(results) - sum(s.total for s in stats),
    )
