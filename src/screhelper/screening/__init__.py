"""Result matching, aggregation and the interactive screening session.

``ScreeningSession`` lives in :mod:`screhelper.screening.session` and is
imported from there; it depends on the batch orchestrator, which in
turn uses the matcher below.
"""

from .models import (  # noqa: F401
    ALL_CRITERIA,
    ClassificationFilter,
    CriterionStats,
    DecisionCounts,
    ScreeningSummary,
)
from .matcher import attach_original, match_original_row, remaining_articles  # noqa: F401
from .aggregator import (  # noqa: F401
    count_decisions,
    criterion_statistics,
    filter_results,
    matches_filter,
    reclassify_criterion,
    reclassify_decision,
    summarize,
    unique_criteria,
)
