"""Screening statistics models and filter enumerations.

These pydantic models describe the aggregate views computed over a
result set by :mod:`screhelper.screening.aggregator`.  They are consumed
by the CLI report and are plain data otherwise.
"""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


ALL_CRITERIA = "all"


class ClassificationFilter(str, Enum):
    """Which verdicts a results view shows."""

    ALL = "all"
    INCLUDE = "include"
    EXCLUDE = "exclude"


class DecisionCounts(BaseModel):
    """Overall include/exclude totals."""

    included: int = Field(0, ge=0)
    excluded: int = Field(0, ge=0)
    total: int = Field(0, ge=0)

    @property
    def inclusion_rate(self) -> float:
        return self.included / self.total if self.total else 0.0


class CriterionStats(BaseModel):
    """Verdict counts for the records citing one criterion."""

    criterion: str
    included: int = Field(0, ge=0)
    excluded: int = Field(0, ge=0)
    total: int = Field(0, ge=0)
    inclusion_rate: float = Field(0.0, ge=0.0, le=1.0)


class ScreeningSummary(BaseModel):
    """Counts plus per-criterion breakdown for a result set."""

    counts: DecisionCounts
    criteria: List[CriterionStats] = Field(default_factory=list)
    without_criterion: int = Field(0, ge=0)
