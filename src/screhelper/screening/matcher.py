"""Identity matching between records, results and imported rows.

There is no primary key: a record is identified by its exact
``(title, abstract)`` pair.  If several imported rows share the same
pair, the first one wins.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..core.ids import identity_key
from ..core.models import Article, ClassifiedArticle, OriginalRow, Verdict
from ..core.normalization import clean_cell


def match_original_row(article: Article, pool: Optional[Sequence[OriginalRow]]) -> Optional[OriginalRow]:
    """Return the first row of ``pool`` whose title and abstract equal the article's."""
    if not pool:
        return None
    for row in pool:
        if clean_cell(row.get("title")) == article.title and clean_cell(row.get("abstract")) == article.abstract:
            return row
    return None


def remaining_articles(articles: Iterable[Article], completed: Iterable[Article]) -> List[Article]:
    """Records of ``articles`` that have no result in ``completed`` yet, in input order."""
    done = {identity_key(r) for r in completed}
    return [a for a in articles if identity_key(a) not in done]


def attach_original(
    article: Article,
    verdict: Verdict,
    pool: Optional[Sequence[OriginalRow]] = None,
) -> ClassifiedArticle:
    """Build the result for ``article``, merged with its imported row when one matches."""
    return ClassifiedArticle(
        title=article.title,
        abstract=article.abstract,
        doi=article.doi,
        source=article.source,
        classification=verdict,
        original_data=match_original_row(article, pool),
    )
