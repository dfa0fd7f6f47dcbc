"""
Spreadsheet input/output for HCS evaluation.

Reads the temperature log into a grid of cells and appends the evaluation
results to a report template as a new column.
"""

import csv
import io
import logging
from typing import Any, List, Optional

import numpy as np
import pandas as pd
from openpyxl import load_workbook

from analysis import CalculatedProperties, PhysicalInputs, ThermalMetrics, NOT_AVAILABLE
from errors import ParseError


logger = logging.getLogger(__name__)

# Temperature data lives in column D of the log
LOG_COLUMN_INDEX = 3

# Rows of the report column, top to bottom
REPORT_ROWS = (
    "Evaluation Date",
    "Sample Name",
    "Weight (g/m²)",
    "Thickness (mm)",
    "Density (kg/m³)",
    "Heat Source",
    "Pressure",
    "Time to 100°C (s)",
    "Time to 150°C (s)",
    "Time to 180°C (s)",
    "Time to 200°C (s)",
    "Temp at 1 min (°C)",
    "Temp at 2 min (°C)",
    "Temp at 5 min (°C)",
    "Temp at 10 min (°C)",
    "Remarks",
)

Grid = List[List[Any]]


def _is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and np.isnan(value):
        return True
    return isinstance(value, str) and value == ""


def _trim_row(row) -> list:
    """Empty cells become None; trailing empty cells are dropped."""
    line = [None if _is_empty(v) else v for v in row]
    while line and line[-1] is None:
        line.pop()
    return line


def read_grid(content: bytes, filename: str = "") -> Grid:
    """
    Parse the first sheet of an uploaded file into rows of cells.
    Empty cells are None. Raises ParseError if the file is not tabular.
    """
    if not content:
        raise ParseError(f"File '{filename or 'upload'}' is empty.")

    if filename.lower().endswith(('.csv', '.txt')):
        return _read_text_grid(content, filename)
    return _read_excel_grid(content, filename)


def _read_excel_grid(content: bytes, filename: str) -> Grid:
    """Read the first sheet of an Excel workbook."""
    excel_file = io.BytesIO(content)
    df_raw = None
    last_error = None

    # .xlsx first, then legacy .xls
    for engine in ['openpyxl', 'xlrd']:
        try:
            excel_file.seek(0)
            # Keep texts such as "N/A" as they are
            df_raw = pd.read_excel(
                excel_file, header=None, sheet_name=0, engine=engine,
                keep_default_na=False, na_values=[]
            )
            break
        except Exception as e:
            last_error = e
            continue

    if df_raw is None:
        raise ParseError(f"Could not read '{filename or 'upload'}' as a spreadsheet: {last_error}")

    grid = [_trim_row(row) for row in df_raw.astype(object).itertuples(index=False, name=None)]
    logger.debug("Read %d rows from %s", len(grid), filename or "workbook")
    return grid


def _detect_encoding_order(content: bytes) -> list:
    """
    Return a prioritised list of encodings to try based on BOM detection.
    Instrument exports from Windows are often UTF-16 with a BOM.
    """
    if content.startswith(b'\xff\xfe'):          # UTF-16 LE BOM
        return ['utf-16', 'utf-16-le', 'utf-8-sig', 'cp949', 'latin-1']
    elif content.startswith(b'\xfe\xff'):         # UTF-16 BE BOM
        return ['utf-16', 'utf-16-be', 'utf-8-sig', 'cp949', 'latin-1']
    else:
        return ['utf-8-sig', 'cp949', 'latin-1']


def _read_text_grid(content: bytes, filename: str) -> Grid:
    """Read a delimited text export (comma, tab or semicolon)."""
    for enc in _detect_encoding_order(content):
        try:
            text = content.decode(enc)
        except UnicodeDecodeError:
            continue
        # A wide-char file decoded as single-byte is full of NULs
        if '\x00' in text[:200]:
            continue

        lines = text.splitlines()
        sample = '\n'.join(lines[:20])
        delimiter = ','
        for delim in ['\t', ';', ',']:
            if delim in sample:
                delimiter = delim
                break

        rows = csv.reader(lines, delimiter=delimiter)
        grid = [_trim_row(cell if cell.strip() else None for cell in row) for row in rows]
        logger.debug("Read %d rows from %s (%s)", len(grid), filename, enc)
        return grid

    raise ParseError(f"Could not decode '{filename}' as text.")


def to_number(value: Any) -> Optional[float]:
    """
    Coerce one cell to a float, or None when it holds no number.
    Accepts numeric strings with surrounding spaces or a decimal comma.
    """
    if value is None or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(',', '.'))
        except ValueError:
            return None
    else:
        return None
    return number if np.isfinite(number) else None


def column_values(grid: Grid, column_index: int = LOG_COLUMN_INDEX) -> pd.Series:
    """Numeric values of one column, one entry per row, NaN where absent."""
    if column_index < 0:
        raise ValueError(f"Column index must be non-negative, got {column_index}")

    values = []
    for row in grid:
        number = to_number(row[column_index]) if column_index < len(row) else None
        values.append(np.nan if number is None else number)
    return pd.Series(values, dtype=float, name='value')


def extract_column(content: bytes, column_index: int = LOG_COLUMN_INDEX, filename: str = "") -> pd.Series:
    """Read the log file and return its temperature column."""
    grid = read_grid(content, filename)
    column = column_values(grid, column_index)
    logger.info(
        "Extracted column %d: %d rows, %d numeric",
        column_index, len(column), int(column.notna().sum())
    )
    return column


def build_report_column(
    sample_name: str,
    metrics: ThermalMetrics,
    physical: PhysicalInputs,
    calculated: CalculatedProperties
) -> list:
    """The 16 report values in REPORT_ROWS order."""
    values = [
        physical.evaluation_date,
        sample_name,
        round(calculated.weight_gsm, 2),
        physical.thickness,
        round(calculated.density, 2),
        physical.heat_source_temp,
        physical.pressure,
        *metrics.times_to_reach,
        *metrics.temps_at_time,
        physical.remarks,
    ]
    return [str(v) if v is NOT_AVAILABLE else v for v in values]


def append_column(grid: Grid, values: list) -> int:
    """
    Append `values` as a new column: values[i] becomes the last cell of row i.

    Touched rows are padded to the widest of them so the new cells share one
    column. Rows past len(values) are left alone. Returns the new column index.
    """
    max_col_count = 0
    for i in range(min(len(values), len(grid))):
        max_col_count = max(max_col_count, len(grid[i]))

    for i, value in enumerate(values):
        if i >= len(grid):
            grid.append([])
        row = grid[i]
        while len(row) < max_col_count:
            row.append(None)
        row.append(value)

    return max_col_count


def _sheet_to_grid(ws) -> Grid:
    """Rows of a worksheet from A1, trailing empty cells dropped."""
    rows = ws.iter_rows(
        min_row=1, max_row=ws.max_row,
        min_col=1, max_col=ws.max_column,
        values_only=True
    )
    return [_trim_row(row) for row in rows]


def _unmerge_target_cells(ws, column: int, n_rows: int):
    """Split merged ranges covering column `column` (1-based) in rows 1..n_rows."""
    for rng in list(ws.merged_cells.ranges):
        if rng.min_col <= column <= rng.max_col and rng.min_row <= n_rows:
            logger.debug("Unmerging %s in sheet '%s'", rng.coord, ws.title)
            ws.unmerge_cells(rng.coord)


def append_to_template(
    template_bytes: bytes,
    sample_name: str,
    metrics: ThermalMetrics,
    physical: PhysicalInputs,
    calculated: CalculatedProperties
) -> bytes:
    """
    Write the evaluation results into the template's first sheet as a new
    column and return the saved workbook. Other sheets are left unchanged.
    """
    if not template_bytes:
        raise ParseError("Template file is empty.")
    try:
        wb = load_workbook(io.BytesIO(template_bytes))
    except Exception as e:
        raise ParseError(f"Could not read the template as an .xlsx workbook: {e}") from e

    ws = wb[wb.sheetnames[0]]
    grid = _sheet_to_grid(ws)

    values = build_report_column(sample_name, metrics, physical, calculated)
    col = append_column(grid, values)
    _unmerge_target_cells(ws, col + 1, len(values))

    for r in range(len(values)):
        ws.cell(row=r + 1, column=col + 1, value=grid[r][col])
    logger.info("Appended '%s' to sheet '%s' at column %d", sample_name, ws.title, col + 1)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
