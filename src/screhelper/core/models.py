"""Core domain models for criteria, articles and verdicts."""

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


# An imported spreadsheet row: case-folded column name -> cell value.
OriginalRow = Dict[str, Any]


class CriteriaSet(BaseModel):
    """Ordered inclusion and exclusion criteria; immutable once built."""

    model_config = ConfigDict(frozen=True)

    inclusion: Tuple[str, ...]
    exclusion: Tuple[str, ...]

    @field_validator("inclusion", "exclusion")
    @classmethod
    def _non_empty(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        cleaned = tuple(str(c).strip() for c in v)
        if not cleaned:
            raise ValueError("At least one criterion is required.")
        if any(not c for c in cleaned):
            raise ValueError("Criterion cannot be empty.")
        return cleaned

    def numbered_inclusion(self) -> List[str]:
        return [f"{i}. {c}" for i, c in enumerate(self.inclusion, 1)]

    def numbered_exclusion(self) -> List[str]:
        return [f"{i}. {c}" for i, c in enumerate(self.exclusion, 1)]

    def to_dict(self) -> Dict[str, List[str]]:
        """Serialize to the shape kept in the session store."""
        return {"inclusion": list(self.inclusion), "exclusion": list(self.exclusion)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CriteriaSet":
        return cls(inclusion=data.get("inclusion") or (), exclusion=data.get("exclusion") or ())


class Article(BaseModel):
    """A record to classify: title and abstract plus optional metadata."""

    title: str = Field(..., min_length=1)
    abstract: str = Field(..., min_length=1)
    doi: Optional[str] = None
    source: Optional[str] = None


class Verdict(BaseModel):
    """Include/exclude decision returned by a classification backend."""

    include: bool
    reason: str
    criterion: str


class ClassifiedArticle(Article):
    """An article together with its verdict and the row it was imported from."""

    classification: Verdict
    original_data: Optional[OriginalRow] = None

    @property
    def article(self) -> Article:
        return Article(title=self.title, abstract=self.abstract, doi=self.doi, source=self.source)
