"""Export classified records to a workbook or CSV file."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from ..core.models import ClassifiedArticle, CriteriaSet
from ..utils.logging import get_logger

logger = get_logger(__name__)

RESULTS_SHEET = "Classified Articles"
CRITERIA_SHEET = "Criteria"
CRITERIA_DELIMITER = "|"
MAX_COLUMN_WIDTH = 50


def build_export_rows(
    results: Sequence[ClassifiedArticle],
    criteria: Optional[CriteriaSet] = None,
) -> List[Dict[str, Any]]:
    """
    One row per record: its imported columns (or title/abstract/doi/source
    when it was not imported) followed by ``classification``, ``reason``
    and ``criterion``. With ``criteria``, the pipe-joined inclusion and
    exclusion lists are appended so a re-import can recover them.
    """
    rows = []
    for record in results:
        if record.original_data:
            row = dict(record.original_data)
        else:
            row = {
                "title": record.title,
                "abstract": record.abstract,
                "doi": record.doi,
                "source": record.source,
            }
        row["classification"] = "Include" if record.classification.include else "Exclude"
        row["reason"] = record.classification.reason
        row["criterion"] = record.classification.criterion
        if criteria is not None:
            row["inclusion_criteria"] = CRITERIA_DELIMITER.join(criteria.inclusion)
            row["exclusion_criteria"] = CRITERIA_DELIMITER.join(criteria.exclusion)
        rows.append(row)
    return rows


def build_criteria_rows(criteria: CriteriaSet) -> List[Dict[str, Any]]:
    rows = [
        {"type": "Inclusion", "number": i, "criterion": c}
        for i, c in enumerate(criteria.inclusion, 1)
    ]
    rows.extend(
        {"type": "Exclusion", "number": i, "criterion": c}
        for i, c in enumerate(criteria.exclusion, 1)
    )
    return rows


def _autosize(worksheet) -> None:
    for column in worksheet.columns:
        max_length = max(len(str(cell.value or "")) for cell in column)
        worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, MAX_COLUMN_WIDTH)


def export_results(
    results: Sequence[ClassifiedArticle],
    criteria: Optional[CriteriaSet],
    path: Union[str, Path],
) -> Path:
    """
    Write ``results`` to ``path``.

    ``.xlsx`` files get a results sheet and a numbered criteria sheet;
    ``.csv`` files hold the results only.

    Raises:
        ValueError: for any other extension
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in {".xlsx", ".csv"}:
        raise ValueError(f"Unsupported export type '{path.suffix}'. Use .xlsx or .csv")
    path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(build_export_rows(results, criteria))

    if suffix == ".csv":
        df.to_csv(path, index=False)
    else:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=RESULTS_SHEET, index=False)
            worksheet = writer.sheets[RESULTS_SHEET]
            _autosize(worksheet)
            worksheet.auto_filter.ref = worksheet.dimensions
            if criteria is not None:
                pd.DataFrame(build_criteria_rows(criteria)).to_excel(
                    writer, sheet_name=CRITERIA_SHEET, index=False
                )
                _autosize(writer.sheets[CRITERIA_SHEET])

    logger.info(f"Exported {len(results)} classified records to {path}")
    return path
