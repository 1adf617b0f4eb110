"""Route an imported table to the fresh-records or previous-results path.

A table whose first row carries any result column (``classification``,
``reason``, ``criterion`` or one of the legacy ``ai_*``/``final_*``/
``manual_*`` columns) is a previously exported result set: its verdicts
and, when present, its criteria are recovered. Any other table is a
list of records still to classify.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ..core.errors import EmptyInput, MissingColumns
from ..core.ids import normalize_doi
from ..core.models import Article, ClassifiedArticle, CriteriaSet, OriginalRow, Verdict
from ..core.normalization import clean_cell, is_blank, parse_decision, split_criteria
from ..utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("title", "abstract")
SOURCE_COLUMNS = ("source", "journal", "publication", "venue")

# (decision, reason, criterion) columns, highest priority first.
RESULT_SCHEMAS: Tuple[Tuple[str, str, str], ...] = (
    ("classification", "reason", "criterion"),
    ("final_include", "final_reason", "final_criterion"),
    ("manual_include", "manual_reason", "manual_criterion"),
    ("ai_include", "ai_reason", "ai_criterion"),
)
RESULT_MARKERS = frozenset(column for schema in RESULT_SCHEMAS for column in schema)

UNRESOLVED_REASON = "Classification not found in imported file"
UNRESOLVED_CRITERION = "Not specified"


class ImportKind(str, Enum):
    FRESH = "fresh"
    PREVIOUS = "previous"


class ImportResult(BaseModel):
    """Outcome of :func:`classify_import`."""

    kind: ImportKind
    articles: List[Article] = Field(default_factory=list)
    original_rows: List[OriginalRow] = Field(default_factory=list)
    classified: List[ClassifiedArticle] = Field(default_factory=list)
    criteria: Optional[CriteriaSet] = None
    dropped_rows: int = 0

    @property
    def is_previous(self) -> bool:
        return self.kind == ImportKind.PREVIOUS


def has_result_columns(row: OriginalRow) -> bool:
    return any(column in row for column in RESULT_MARKERS)


def _article_from_row(row: OriginalRow) -> Optional[Article]:
    title = clean_cell(row.get("title"))
    abstract = clean_cell(row.get("abstract"))
    if not title.strip() or not abstract.strip():
        return None
    doi = normalize_doi(clean_cell(row.get("doi")))
    source = next(
        (clean_cell(row[c]).strip() for c in SOURCE_COLUMNS if not is_blank(row.get(c))),
        None,
    )
    return Article(title=title, abstract=abstract, doi=doi, source=source)


def resolve_verdict(row: OriginalRow) -> Verdict:
    """Recover a verdict from the first schema with a non-empty decision."""
    for decision_col, reason_col, criterion_col in RESULT_SCHEMAS:
        value: Any = row.get(decision_col)
        if is_blank(value):
            continue
        include = parse_decision(value)
        if include is None:
            logger.warning(f"Unreadable {decision_col} value {value!r}; treating as Exclude")
            include = False
        return Verdict(
            include=include,
            reason=clean_cell(row.get(reason_col)).strip(),
            criterion=clean_cell(row.get(criterion_col)).strip(),
        )
    return Verdict(include=False, reason=UNRESOLVED_REASON, criterion=UNRESOLVED_CRITERION)


def recover_criteria(row: OriginalRow) -> Optional[CriteriaSet]:
    """Criteria stored alongside exported results, if both lists are present."""
    inclusion = split_criteria(row.get("inclusion_criteria"))
    exclusion = split_criteria(row.get("exclusion_criteria"))
    if not inclusion or not exclusion:
        return None
    return CriteriaSet(inclusion=tuple(inclusion), exclusion=tuple(exclusion))


def classify_import(rows: Sequence[OriginalRow]) -> ImportResult:
    """
    Classify a parsed table (rows keyed by case-folded column name).

    Raises:
        EmptyInput: if there are no rows
        MissingColumns: if ``title`` or ``abstract`` is absent from the header
    """
    if not rows:
        raise EmptyInput()

    first = rows[0]
    missing = [c for c in REQUIRED_COLUMNS if c not in first]
    if missing:
        raise MissingColumns(missing)

    previous = has_result_columns(first)
    result = ImportResult(kind=ImportKind.PREVIOUS if previous else ImportKind.FRESH)

    for row in rows:
        article = _article_from_row(row)
        if article is None:
            result.dropped_rows += 1
            continue
        result.articles.append(article)
        result.original_rows.append(row)
        if previous:
            result.classified.append(
                ClassifiedArticle(
                    **article.model_dump(),
                    classification=resolve_verdict(row),
                    original_data=row,
                )
            )

    if previous:
        result.criteria = recover_criteria(first)

    logger.info(
        f"Imported {len(result.articles)} records as {result.kind.value}"
        + (f", dropped {result.dropped_rows} incomplete rows" if result.dropped_rows else "")
        + (", criteria recovered" if result.criteria else "")
    )
    return result
