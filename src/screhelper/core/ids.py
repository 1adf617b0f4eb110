"""Identity keys and identifier normalization."""

from typing import Optional, Tuple

from .models import Article


IdentityKey = Tuple[str, str]


def identity_key(article: Article) -> IdentityKey:
    """Content-derived identity of a record: the exact ``(title, abstract)`` pair."""
    return (article.title, article.abstract)


def normalize_doi(doi: Optional[str]) -> Optional[str]:
    """Normalize DOI to canonical form."""
    if not doi:
        return None
    doi = str(doi).lower().strip()
    prefixes = [
        "https://doi.org/",
        "http://doi.org/",
        "https://dx.doi.org/",
        "http://dx.doi.org/",
        "doi:",
    ]
    for prefix in prefixes:
        if doi.startswith(prefix):
            doi = doi[len(prefix):]
    return doi.strip() or None


def normalize_column(name: object) -> str:
    """Case-fold a spreadsheet header so lookups ignore capitalisation."""
    return str(name).strip().lower()
