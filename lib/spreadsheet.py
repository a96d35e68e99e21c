# =============================================================================
# lib/spreadsheet.py - Spreadsheet Validation & LLM Context
# =============================================================================
# The browser holds spreadsheets as plain 2D arrays (first row = header).
# This module checks those arrays, pads ragged rows, and turns them into a
# compact text summary the analysis and chat models can reason over:
#
#   File: "sales.xlsx"
#   Columns: Region, Revenue
#   Row count: 3
#   Column stats:
#   - Region: text, unique sample: North, South
#   - Revenue: numeric, min=1200, max=5300, sum=9800.00
#   Sample (first 3 rows): [["North","1200"],...]
#
# The whole context is capped at 8,000 characters.
# =============================================================================

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Iterable

import pandas as pd
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_ROWS = 100_000
MAX_COLS = 1_000
MAX_CELL_LENGTH = 100_000
LARGE_SHEET_ROWS = 10_000

MAX_CONTEXT_CHARS = 8_000
SAMPLE_ROWS = 10
UNIQUE_SAMPLE = 10
NUMERIC_SAMPLE = 50
CELL_PREVIEW_CHARS = 50

# Currency symbols, thousands separators, letters and whitespace
_NUMBER_NOISE = re.compile(r"[$,£€¥a-zA-Z\s]")
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)")


# =============================================================================
# Models
# =============================================================================

class SpreadsheetFile(BaseModel):
    """A spreadsheet as the browser sends it."""
    name: str = Field(..., max_length=255)
    data: list[list[Any]] = Field(default_factory=list, description="Rows; the first row is the header")
    columns: list[str] | None = Field(default=None, description="Header override")


class ValidationResult(BaseModel):
    valid: bool
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# Validation
# =============================================================================

def validate_spreadsheet_data(rows: Any) -> ValidationResult:
    """
    Check that `rows` is a non-empty 2D array within size limits.

    Example:
        validate_spreadsheet_data([["a", "b"], [1, 2]]).valid  # True
        validate_spreadsheet_data([]).error  # "Spreadsheet cannot be empty"
    """
    if not isinstance(rows, list):
        return ValidationResult(valid=False, error="Spreadsheet data must be a 2D array")
    if not rows:
        return ValidationResult(valid=False, error="Spreadsheet cannot be empty")
    if len(rows) > MAX_ROWS:
        return ValidationResult(
            valid=False,
            error=f"Spreadsheet has too many rows ({len(rows)}). Maximum is {MAX_ROWS} rows.",
        )

    for i, row in enumerate(rows, start=1):
        if not isinstance(row, list):
            return ValidationResult(valid=False, error=f"Row {i} is not an array")
        if len(row) > MAX_COLS:
            return ValidationResult(
                valid=False,
                error=f"Row {i} has too many columns ({len(row)}). Maximum is {MAX_COLS} columns.",
            )
        for j, cell in enumerate(row, start=1):
            if cell is not None and len(str(cell)) > MAX_CELL_LENGTH:
                return ValidationResult(
                    valid=False,
                    error=(
                        f"Cell at row {i}, column {j} is too large ({len(str(cell))} characters). "
                        f"Maximum is {MAX_CELL_LENGTH} characters."
                    ),
                )

    warnings = []
    if len(rows) > LARGE_SHEET_ROWS:
        warnings.append(f"Large spreadsheet detected ({len(rows)} rows). Performance may be affected.")
    return ValidationResult(valid=True, warnings=warnings)


def sanitize_cell(value: Any) -> Any:
    """None becomes "", containers become JSON, long strings are cut."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value[:MAX_CELL_LENGTH]
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)[:MAX_CELL_LENGTH]
    return value


def normalize_data(rows: list[Any] | None) -> list[list[Any]]:
    """Pad every row to the widest row and sanitize cells. Empty input gives [[""]]."""
    if not rows:
        return [[""]]

    width = max((len(row) for row in rows if isinstance(row, list)), default=0)
    normalized = []
    for row in rows:
        if not isinstance(row, list):
            normalized.append([""] * width)
            continue
        padded = list(row) + [""] * (width - len(row))
        normalized.append([sanitize_cell(cell) for cell in padded])
    return normalized


# =============================================================================
# Numbers
# =============================================================================

def parse_number(value: Any) -> float | None:
    """
    Parse a spreadsheet cell as a number, or None if it isn't one.

    Handles currency symbols, thousands separators and accounting-style
    negatives: "(1,200.50)" -> -1200.5
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    if value is None:
        return None

    text = str(value).strip()
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    match = _LEADING_NUMBER.match(_NUMBER_NOISE.sub("", text))
    if not match:
        return None
    number = float(match.group())
    return -number if negative else number


def clean_number(value: Any) -> float:
    """parse_number, with 0 for anything unparseable."""
    number = parse_number(value)
    return 0.0 if number is None else number


def is_numeric_column(values: Iterable[Any]) -> bool:
    """
    True when at least half of the first 50 non-blank values parse as numbers.

    Fewer than two non-blank values is never numeric.
    """
    sample = [str(v).strip() for v in list(values)[:NUMERIC_SAMPLE] if v is not None]
    sample = [s for s in sample if s]
    if len(sample) < 2:
        return False
    numeric = sum(1 for s in sample if parse_number(s) is not None)
    return numeric >= len(sample) * 0.5


# =============================================================================
# LLM Context
# =============================================================================

def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _preview(value: Any, max_len: int = CELL_PREVIEW_CHARS) -> str:
    text = json.dumps(value, default=str) if isinstance(value, (dict, list)) else ("" if value is None else str(value))
    return text[:max_len] + "..." if len(text) > max_len else text


def _to_frame(file: SpreadsheetFile) -> tuple[pd.DataFrame, list[str]]:
    rows = normalize_data(file.data) if file.data else []
    header = list(file.columns) if file.columns else ([str(c) for c in rows[0]] if rows else [])
    body = rows[1:] if rows else []

    width = max([len(header)] + [len(r) for r in body])
    header = header + [""] * (width - len(header))
    header = [str(name).strip() or f"Column {i + 1}" for i, name in enumerate(header)]
    body = [r + [""] * (width - len(r)) for r in body]
    return pd.DataFrame(body, columns=range(width), dtype=object), header


def _column_stat(name: str, series: pd.Series) -> str:
    values = series[series.notna() & (series.astype(str) != "")]
    if values.empty:
        return f"- {name}: empty"

    if is_numeric_column(values.tolist()):
        numbers = values.map(clean_number).astype(float)
        return (
            f"- {name}: numeric, min={_format_number(numbers.min())}, "
            f"max={_format_number(numbers.max())}, sum={numbers.sum():.2f}"
        )

    uniques = pd.unique(values.astype(str))[:UNIQUE_SAMPLE]
    return f"- {name}: text, unique sample: {', '.join(uniques)}"


def describe_file(file: SpreadsheetFile) -> str:
    """Context block for one spreadsheet."""
    df, header = _to_frame(file)

    block = f'File: "{file.name}"\nColumns: {", ".join(header)}\nRow count: {len(df)}\n'
    stats = [_column_stat(name, df.iloc[:, i]) for i, name in enumerate(header)]
    block += "Column stats:\n" + "\n".join(stats) + "\n"

    sample = [[_preview(v) for v in row] for row in df.head(SAMPLE_ROWS).itertuples(index=False)]
    block += (
        f"Sample (first {min(SAMPLE_ROWS, len(df))} rows): "
        f"{json.dumps(sample, ensure_ascii=False, separators=(',', ':'))}\n"
    )
    return block


def build_file_context(files: list[SpreadsheetFile], max_chars: int = MAX_CONTEXT_CHARS) -> str:
    """
    Summarize spreadsheets for an LLM prompt, capped at `max_chars`.

    A block that would overflow the cap is cut with "...[truncated]"; once
    less than 100 characters of room is left, remaining files are dropped.
    """
    parts: list[str] = []
    total = 0

    for file in files:
        block = describe_file(file)
        if total + len(block) > max_chars:
            remaining = max_chars - total - 50
            if remaining <= 100:
                logger.debug(f"File context full; dropped {len(files) - len(parts)} file(s)")
                break
            block = block[:remaining] + "\n...[truncated]"
        parts.append(block)
        total += len(block)

    return "\n\n".join(parts)


def resolve_file_context(file_context: str | None, files: list[SpreadsheetFile] | None) -> str | None:
    """
    The context string for a request: the browser's own summary if it sent
    one, otherwise one built here from the raw spreadsheets.

    Raises:
        InvalidRequestError: A spreadsheet fails validation
    """
    from app.exceptions import InvalidRequestError

    if file_context or not files:
        return file_context

    for file in files:
        result = validate_spreadsheet_data(file.data)
        if not result.valid:
            raise InvalidRequestError(f'"{file.name}": {result.error}', details={"file": file.name})
        for warning in result.warnings:
            logger.warning(f'"{file.name}": {warning}')

    return build_file_context(files)
