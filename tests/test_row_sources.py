"""Tests for the CSV and Excel row sources."""

import tempfile
from pathlib import Path

import openpyxl
import pytest

from modelshift.core.errors import BadFile, UnsupportedFileType
from modelshift.core.row_sources import (
    CsvRowSource,
    ExcelRowSource,
    iter_rows,
    open_row_source,
)


def _create_test_workbook(rows: list[list], sheet_name: str = "Products") -> Path:
    """Create a test Excel file with given rows. First row is headers."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_name
    for row in rows:
        ws.append(row)
    path = Path(tempfile.mktemp(suffix=".xlsx"))
    wb.save(path)
    wb.close()
    return path


def _create_test_csv(text: str) -> Path:
    path = Path(tempfile.mktemp(suffix=".csv"))
    path.write_text(text, encoding="utf-8")
    return path


class TestCsvRowSource:
    def test_header_and_rows(self):
        path = _create_test_csv(" Name ,Price\nWidget,9.99\nGadget,\n")
        source = CsvRowSource(path)
        assert source.header_row() == ["Name", "Price"]
        assert list(iter_rows(source)) == [["Widget", "9.99"], ["Gadget", None]]
        assert source.next_data_row() is None
        source.close()
        path.unlink()

    def test_short_and_long_rows_line_up(self):
        path = _create_test_csv("a,b,c\n1\n1,2,3,4\n")
        source = CsvRowSource(path)
        assert list(iter_rows(source)) == [["1", None, None], ["1", "2", "3"]]
        source.close()
        path.unlink()

    def test_byte_order_mark_stripped(self):
        path = Path(tempfile.mktemp(suffix=".csv"))
        path.write_text("name\nWidget\n", encoding="utf-8-sig")
        source = CsvRowSource(path)
        assert source.header_row() == ["name"]
        source.close()
        path.unlink()

    def test_empty_file(self):
        path = _create_test_csv("")
        source = CsvRowSource(path)
        assert source.header_row() == []
        assert source.next_data_row() is None
        source.close()
        path.unlink()


class TestExcelRowSource:
    def test_native_types_kept(self):
        path = _create_test_workbook([
            ["Name", "Price", "Stock", "Active"],
            ["Widget", 9.99, 3, True],
            ["Gadget", None, None, None],
        ])
        source = ExcelRowSource(path)
        assert source.header_row() == ["Name", "Price", "Stock", "Active"]
        rows = list(iter_rows(source))
        assert rows[0] == ["Widget", 9.99, 3, True]
        assert rows[1] == ["Gadget", None, None, None]
        source.close()
        path.unlink()

    def test_named_sheet(self):
        wb = openpyxl.Workbook()
        wb.active.append(["ignored"])
        ws = wb.create_sheet("Stock")
        ws.append(["sku"])
        ws.append(["A1"])
        path = Path(tempfile.mktemp(suffix=".xlsx"))
        wb.save(path)
        wb.close()

        source = ExcelRowSource(path, sheet_name="Stock")
        assert source.header_row() == ["sku"]
        assert list(iter_rows(source)) == [["A1"]]
        source.close()
        path.unlink()

    def test_missing_sheet_raises(self):
        path = _create_test_workbook([["name"]])
        with pytest.raises(ValueError, match="not found"):
            ExcelRowSource(path, sheet_name="Nope")
        path.unlink()

    def test_header_row_offset(self):
        path = _create_test_workbook([
            ["Product export"],
            ["name", "sku"],
            ["Widget", "W1"],
        ])
        source = ExcelRowSource(path, header_row=1)
        assert source.header_row() == ["name", "sku"]
        assert list(iter_rows(source)) == [["Widget", "W1"]]
        source.close()
        path.unlink()


class TestOpenRowSource:
    def test_picks_source_by_extension(self):
        csv_path = _create_test_csv("name\n")
        xlsx_path = _create_test_workbook([["name"]])

        csv_source = open_row_source(csv_path)
        xlsx_source = open_row_source(str(xlsx_path))
        assert isinstance(csv_source, CsvRowSource)
        assert isinstance(xlsx_source, ExcelRowSource)

        csv_source.close()
        xlsx_source.close()
        csv_path.unlink()
        xlsx_path.unlink()

    def test_missing_file(self):
        with pytest.raises(BadFile):
            open_row_source("/nonexistent/products.xlsx")

    def test_missing_file_is_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            open_row_source("/nonexistent/products.csv")

    def test_unsupported_extension(self):
        path = Path(tempfile.mktemp(suffix=".txt"))
        path.write_text("name\n")
        with pytest.raises(UnsupportedFileType, match="not supported"):
            open_row_source(path)
        path.unlink()
