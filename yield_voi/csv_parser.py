"""
CSV parser for yield-strength measurement files.

Loads a CSV of ``{id, yield_MPa}`` records into a ``MeasurementSet``.
Handles:

- Auto-detected delimiters (tab → semicolon → comma)
- European locale decimal-comma parsing
- UTF-8 BOM markers and ``#`` comment lines
- Case-insensitive header names, extra columns ignored
- Bad rows skipped with a warning
"""

import csv
import math
import os
import warnings
from typing import List, Optional

from .constants import COL_ID, COL_YIELD
from .data_model import MeasurementRecord, MeasurementSet


# ── Locale-safe float parsing ────────────────────────────────────────────

def _locale_float(text: str) -> float:
    """Parse a numeric string that may use comma as decimal separator.

    Handles:
    - Standard period decimals: ``"3.14"``
    - European comma decimals: ``"3,14"``
    - Thousand separators: ``"1,234.5"`` and ``"1.234,5"``

    Raises ``ValueError`` for non-numeric or non-finite strings.
    """
    s = text.strip()
    if not s:
        raise ValueError("empty string")
    # If both '.' and ',' are present, the last one is the decimal
    if ',' in s and '.' in s:
        if s.rfind(',') > s.rfind('.'):
            s = s.replace('.', '').replace(',', '.')
        else:
            s = s.replace(',', '')
    elif ',' in s:
        s = s.replace(',', '.')
    result = float(s)
    if not math.isfinite(result):
        raise ValueError(f"non-finite value: {text.strip()!r}")
    return result


# ── Delimiter auto-detection ─────────────────────────────────────────────

def _detect_delimiter(sample_line: str) -> str:
    """Priority: tab → semicolon → comma."""
    if '\t' in sample_line:
        return '\t'
    if ';' in sample_line:
        return ';'
    return ','


def _split_line(line: str, delimiter: str) -> List[str]:
    rows = list(csv.reader([line], delimiter=delimiter))
    if rows:
        return [t.strip() for t in rows[0]]
    return []


def _find_column(header: List[str], name: str) -> Optional[int]:
    wanted = name.lower()
    for idx, token in enumerate(header):
        if token.strip().lower() == wanted:
            return idx
    return None


# ── Loader ───────────────────────────────────────────────────────────────

def load_measurements(filepath: str) -> MeasurementSet:
    """Load yield-strength measurements from *filepath*.

    The header row must contain a ``yield_MPa`` column; an ``id``
    column is optional (row numbers are used when absent).

    Returns
    -------
    MeasurementSet

    Raises
    ------
    FileNotFoundError
        *filepath* does not exist.
    ValueError
        Missing header/column or no valid data rows.
    """
    if not os.path.isfile(filepath):
        raise FileNotFoundError(f"Measurement CSV not found: {filepath}")
    name = os.path.basename(filepath)

    raw_lines: List[str] = []
    with open(filepath, 'r', encoding='utf-8-sig') as fh:
        for line in fh:
            stripped = line.rstrip('\n\r')
            if stripped.strip() == '' or stripped.strip().startswith('#'):
                continue
            raw_lines.append(stripped)

    if len(raw_lines) < 2:
        raise ValueError(
            f"CSV file '{name}' must have at least a header row and one data row."
        )

    delimiter = _detect_delimiter(raw_lines[0])
    header = _split_line(raw_lines[0], delimiter)
    col_yield = _find_column(header, COL_YIELD)
    col_id = _find_column(header, COL_ID)
    if col_yield is None:
        raise ValueError(
            f"CSV header in '{name}' has no '{COL_YIELD}' column "
            f"(found: {header})."
        )

    records: List[MeasurementRecord] = []
    seen_ids = set()
    bad_tokens: List[str] = []

    for line_idx, raw_line in enumerate(raw_lines[1:], start=2):
        tokens = _split_line(raw_line, delimiter)
        if len(tokens) <= col_yield:
            bad_tokens.append(f"line {line_idx}: missing {COL_YIELD}")
            continue
        try:
            value = _locale_float(tokens[col_yield])
        except ValueError:
            bad_tokens.append(f"line {line_idx}: '{tokens[col_yield]}'")
            continue

        if col_id is not None and col_id < len(tokens) and tokens[col_id]:
            try:
                rec_id = int(_locale_float(tokens[col_id]))
            except ValueError:
                bad_tokens.append(f"line {line_idx}: id '{tokens[col_id]}'")
                continue
        else:
            rec_id = len(records) + 1

        if rec_id in seen_ids:
            warnings.warn(
                f"Duplicate id {rec_id} at line {line_idx} in '{name}'; "
                f"skipping duplicate.",
                stacklevel=2,
            )
            continue
        seen_ids.add(rec_id)
        records.append(MeasurementRecord(id=rec_id, yield_mpa=value))

    if bad_tokens:
        detail = "; ".join(bad_tokens[:10])
        if len(bad_tokens) > 10:
            detail += f" ... and {len(bad_tokens) - 10} more"
        warnings.warn(
            f"Unreadable rows in '{name}': {detail}. These rows were skipped.",
            stacklevel=2,
        )

    if not records:
        raise ValueError(f"No valid data rows found in '{name}'.")

    non_positive = [r.id for r in records if r.yield_mpa <= 0]
    if non_positive:
        warnings.warn(
            f"Non-positive yield strengths in '{name}' for id(s) "
            f"{non_positive[:10]}; values are kept but are not physically "
            f"plausible.",
            stacklevel=2,
        )

    return MeasurementSet(records=tuple(records), source_file=filepath)


def write_measurements(measurements: MeasurementSet, filepath: str) -> str:
    """Write *measurements* as a comma-separated ``{id, yield_MPa}`` file."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filepath, 'w', encoding='utf-8', newline='') as fh:
        writer = csv.writer(fh)
        writer.writerow([COL_ID, COL_YIELD])
        for r in measurements.records:
            writer.writerow([r.id, repr(float(r.yield_mpa))])
    return filepath
