"""
Reading and writing of the flat CSV reports passed between stages.
"""
import logging
from pathlib import Path
from typing import Iterable, List

import pandas as pd

from .csv_utils import detect_csv_delimiter, normalize_identifier
from .errors import InputDataError
from .models import REPORT_COLUMNS, AssignmentResult

logger = logging.getLogger("PrepaymentToolLogger")


def results_to_dataframe(results: Iterable[AssignmentResult]) -> pd.DataFrame:
    """Builds the stage-1 report DataFrame, one row per result in order."""
    rows = [result.to_row() for result in results]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def write_report(df: pd.DataFrame, output_path) -> Path:
    """Writes a report DataFrame as comma-separated UTF-8 CSV."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False, encoding="utf-8")
    logger.info(f"Report saved to: {output_path} ({len(df)} rows)")
    return output_path


def write_processing_report(results: Iterable[AssignmentResult], output_path) -> Path:
    return write_report(results_to_dataframe(results), output_path)


def write_trace_log(lines: List[str], output_path) -> Path:
    """Writes the human-readable processing trace, one line per entry."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
        f.write("\n")
    logger.info(f"Trace log saved to: {output_path}")
    return output_path


def require_columns(df: pd.DataFrame, columns: Iterable[str], source: str = "report") -> None:
    """Raises InputDataError naming every column of `columns` missing from `df`."""
    missing = [column for column in columns if column not in df.columns]
    if missing:
        raise InputDataError(f"Missing required column(s) in {source}: {', '.join(missing)}")


def read_report(report_path) -> pd.DataFrame:
    """Reads a stage report with every cell as a normalized string.

    The delimiter is auto-detected, header whitespace is trimmed and fully
    empty rows are dropped, so hand-edited spreadsheets exported with `;` or
    tabs load the same way as the tool's own output.

    Raises:
        InputDataError: If the file is missing or cannot be parsed.
    """
    report_path = Path(report_path)
    if not report_path.exists():
        raise InputDataError(f"Report file '{report_path}' not found")

    delimiter, method = detect_csv_delimiter(str(report_path))
    try:
        df = pd.read_csv(
            report_path,
            delimiter=delimiter,
            encoding="utf-8-sig",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InputDataError(f"Could not parse report '{report_path}': {e}") from e

    df.columns = [str(col).strip() for col in df.columns]
    df = df.apply(lambda column: column.map(normalize_identifier))
    df = df[(df != "").any(axis=1)].reset_index(drop=True)

    logger.info(f"Loaded {len(df)} rows from {report_path.name} (delimiter '{delimiter}' via {method})")
    return df
