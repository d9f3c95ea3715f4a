"""Row Sources — read CSV and Excel files as a header row plus data rows.

A row source yields the ordered header names once, then one list of cell
values per data row until it returns None.
"""

import csv
import logging
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

import openpyxl

from modelshift.core.errors import BadFile, UnsupportedFileType

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}


class RowSource(Protocol):
    def header_row(self) -> list[str]: ...

    def next_data_row(self) -> Optional[list[Any]]: ...


def _clean_headers(headers: list[Any]) -> list[str]:
    return ["" if h is None else str(h).strip() for h in headers]


def _pad(values: list[Any], width: int) -> list[Any]:
    """Trim or pad a row with None so it lines up with the headers."""
    values = list(values[:width])
    return values + [None] * (width - len(values))


class CsvRowSource:
    """Rows from a CSV file. Empty cells are returned as None."""

    def __init__(self, path: Path, encoding: str = "utf-8-sig", delimiter: str = ","):
        self.path = path
        self._file = open(path, newline="", encoding=encoding)
        self._reader = csv.reader(self._file, delimiter=delimiter)
        self._headers: Optional[list[str]] = None

    def header_row(self) -> list[str]:
        if self._headers is None:
            self._headers = _clean_headers(next(self._reader, []))
        return self._headers

    def next_data_row(self) -> Optional[list[Any]]:
        width = len(self.header_row())
        row = next(self._reader, None)
        if row is None:
            return None
        return _pad([v if v != "" else None for v in row], width)

    def close(self) -> None:
        self._file.close()


class ExcelRowSource:
    """Rows from one worksheet of an Excel workbook.

    Cell values keep the type openpyxl reads (numbers, dates, booleans);
    blank cells are None.
    """

    def __init__(self, path: Path, sheet_name: Optional[str] = None, header_row: int = 0):
        self.path = path
        self._wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
        if sheet_name:
            if sheet_name not in self._wb.sheetnames:
                self._wb.close()
                raise ValueError(f"Sheet '{sheet_name}' not found in workbook")
            ws = self._wb[sheet_name]
        else:
            ws = self._wb.worksheets[0]
        self._rows: Iterator[tuple] = ws.iter_rows(values_only=True)
        for _ in range(header_row):
            next(self._rows, None)
        self._headers: Optional[list[str]] = None

    def header_row(self) -> list[str]:
        if self._headers is None:
            self._headers = _clean_headers(list(next(self._rows, ())))
        return self._headers

    def next_data_row(self) -> Optional[list[Any]]:
        width = len(self.header_row())
        row = next(self._rows, None)
        if row is None:
            return None
        return _pad(list(row), width)

    def close(self) -> None:
        self._wb.close()


def open_row_source(path: str | Path) -> CsvRowSource | ExcelRowSource:
    """Open the row source matching the file extension."""
    file_path = Path(path)
    if not file_path.exists():
        raise BadFile(f"Cannot load {file_path}: file not found")

    ext = file_path.suffix.lower()
    if ext in CSV_EXTENSIONS:
        return CsvRowSource(file_path)
    if ext in EXCEL_EXTENSIONS:
        return ExcelRowSource(file_path)
    raise UnsupportedFileType(
        f"{ext or 'extensionless'} files not supported - try .csv or .xlsx"
    )


def iter_rows(source: RowSource) -> Iterator[list[Any]]:
    """Iterate the data rows of a source until it is exhausted."""
    while True:
        row = source.next_data_row()
        if row is None:
            return
        yield row
