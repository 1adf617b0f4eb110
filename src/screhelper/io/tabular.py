"""Spreadsheet and CSV reading into case-folded row dictionaries."""

from pathlib import Path
from typing import List, Union

import pandas as pd

from ..core.ids import normalize_column
from ..core.models import OriginalRow
from ..utils.logging import get_logger

logger = get_logger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xls"}
CSV_SUFFIXES = {".csv"}


def read_dataframe(path: Union[str, Path]) -> pd.DataFrame:
    """Load the first sheet of a workbook, or a CSV file, as text-preserving columns."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        df = pd.read_excel(path, sheet_name=0, dtype=object)
    elif suffix in CSV_SUFFIXES:
        df = pd.read_csv(path, dtype=object, keep_default_na=True)
    else:
        raise ValueError(f"Unsupported file type '{path.suffix}'. Use .xlsx, .xls or .csv")
    df.columns = [normalize_column(c) for c in df.columns]
    return df


def dataframe_to_rows(df: pd.DataFrame) -> List[OriginalRow]:
    """Convert a frame to row dicts, with missing cells as ``None``."""
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def read_table(path: Union[str, Path]) -> List[OriginalRow]:
    """Read ``path`` into a list of rows keyed by lower-cased column name.

    Raises:
        FileNotFoundError: if ``path`` does not exist
        ValueError: if the extension is not supported
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    rows = dataframe_to_rows(read_dataframe(path))
    logger.info(f"Read {len(rows)} rows from {path.name}")
    return rows
