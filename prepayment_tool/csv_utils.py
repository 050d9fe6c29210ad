"""
CSV utility functions for delimiter detection and cell normalization.
"""
import csv
import logging
from typing import Any, List, Tuple

import pandas as pd

logger = logging.getLogger("PrepaymentToolLogger")

CANDIDATE_DELIMITERS = [',', ';', '\t', '|']


def detect_csv_delimiter(file_path: str, encoding: str = 'utf-8-sig') -> Tuple[str, str]:
    """
    Guess the delimiter of a stage report.

    Reports re-saved from a spreadsheet often come back with `;` or tabs.
    Detection order:
    1. csv.Sniffer on the first 2 KB, limited to CANDIDATE_DELIMITERS
    2. The candidate that occurs most often in the header line
    3. Comma

    Returns:
        tuple: (delimiter, method) where method is 'sniffer', 'counting'
        or 'default'.

    Example:
        >>> detect_csv_delimiter("processing-results.csv")
        (',', 'sniffer')
    """
    try:
        with open(file_path, 'r', encoding=encoding) as f:
            sample = f.read(2048)
        delimiter = csv.Sniffer().sniff(sample, delimiters=''.join(CANDIDATE_DELIMITERS)).delimiter
        if sample.count(delimiter) > 0:
            logger.debug(f"Delimiter detected using csv.Sniffer: '{delimiter}'")
            return delimiter, 'sniffer'
    except (csv.Error, OSError, UnicodeDecodeError) as e:
        logger.debug(f"csv.Sniffer failed: {e}")

    try:
        with open(file_path, 'r', encoding=encoding) as f:
            first_line = f.readline()
        counts = {delim: first_line.count(delim) for delim in CANDIDATE_DELIMITERS}
        if max(counts.values()) > 0:
            detected = max(counts, key=counts.get)
            logger.debug(f"Delimiter detected by counting: '{detected}' ({counts[detected]} occurrences)")
            return detected, 'counting'
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Manual counting failed: {e}")

    logger.warning(f"Could not detect delimiter for {file_path}, using default comma")
    return ',', 'default'


def normalize_identifier(value: Any) -> str:
    """
    Normalize a document number or identifier to a plain string.

    Handles the usual artifacts of spreadsheet round-trips:
    - Float conversion artifacts (9000123.0 → "9000123")
    - Whitespace (strips leading/trailing spaces)
    - None/NaN values (returns empty string)
    - Leading zeros are preserved ("0042" stays "0042")

    Examples:
        >>> normalize_identifier(9000123.0)
        "9000123"
        >>> normalize_identifier(" PR-001 ")
        "PR-001"
        >>> normalize_identifier(None)
        ""
    """
    if value is None:
        return ""
    if not isinstance(value, (list, dict)) and pd.isna(value):
        return ""

    text = str(value).strip()
    if text.endswith('.0') and text[:-2].isdigit():
        return text[:-2]
    return text


def split_list_cell(value: Any) -> List[str]:
    """
    Split a comma-delimited report cell into trimmed, non-empty parts.

    Examples:
        >>> split_list_cell("40, 55, 71")
        ["40", "55", "71"]
        >>> split_list_cell("")
        []
    """
    text = normalize_identifier(value)
    if not text:
        return []
    return [part.strip() for part in text.split(',') if part.strip()]
