"""Output directory and file path management."""

from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config.settings import settings


def create_output_dir(phase: str = "screening", timestamp: Optional[datetime] = None) -> Path:
    if timestamp is None:
        timestamp = datetime.now()
    dirpath = settings.output_dir / f"{phase}_{timestamp.strftime('%Y%m%d_%H%M%S')}"
    dirpath.mkdir(parents=True, exist_ok=True)
    return dirpath


def default_export_path(suffix: str = ".xlsx", timestamp: Optional[datetime] = None) -> Path:
    """``<output_dir>/screening_<ts>/classified_articles.xlsx``."""
    return create_output_dir("screening", timestamp) / f"classified_articles{suffix}"
