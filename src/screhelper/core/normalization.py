"""Cell, criterion and decision normalization utilities."""

import math
from typing import Any, List, Optional


_TRUE_WORDS = {"true", "yes", "y", "include", "included", "1"}
_FALSE_WORDS = {"false", "no", "n", "exclude", "excluded", "0"}


def clean_cell(value: Any) -> str:
    """Convert a spreadsheet cell to text; empty cells become ``""``.

    The text is not stripped, so identity comparisons stay exact.
    """
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


def is_blank(value: Any) -> bool:
    return not clean_cell(value).strip()


def normalize_criterion(criterion: Optional[str]) -> str:
    """Key used to de-duplicate criterion spellings."""
    if not criterion:
        return ""
    return criterion.strip().casefold()


def parse_decision(value: Any) -> Optional[bool]:
    """Interpret an include/exclude value; ``None`` if it cannot be read.

    Accepts booleans, numbers and the usual spreadsheet spellings
    (``Include``/``Exclude``, ``true``/``false``, ``yes``/``no``).
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


def split_criteria(value: Any, delimiter: str = "|") -> List[str]:
    """Split a pipe-delimited criteria cell into stripped, non-empty items."""
    return [part.strip() for part in clean_cell(value).split(delimiter) if part.strip()]
