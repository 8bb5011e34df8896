"""Tests for spreadsheet reading and the template/summary workbooks."""

import io

import openpyxl
import pytest

from etiquetador.models.label_types import LabelConfig, LabelMode
from etiquetador.services.excel_parser import (
    SUMMARY_COLUMNS,
    TEMPLATE_COLUMNS,
    SpreadsheetReader,
    SpreadsheetWriter,
)


def _workbook_bytes(rows: list[list]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class TestSpreadsheetReader:
    def test_first_row_is_header(self):
        data = _workbook_bytes([[" Codigo ", "Cantidad"], ["A-1", 2], ["A-2", 3]])
        rows = SpreadsheetReader().read(data, "lote.xlsx")

        assert rows == [{"Codigo": "A-1", "Cantidad": 2}, {"Codigo": "A-2", "Cantidad": 3}]

    def test_blank_rows_dropped(self):
        data = _workbook_bytes([["Codigo"], ["A"], [None], ["B"]])

        assert [r["Codigo"] for r in SpreadsheetReader().read(data, "lote.xlsx")] == ["A", "B"]

    def test_csv_semicolon_and_cp1252(self):
        data = "Codigo;Descripcion\nA;Café\n".encode("cp1252")
        rows = SpreadsheetReader().read(data, "lote.csv")

        assert rows == [{"Codigo": "A", "Descripcion": "Café"}]

    @pytest.mark.parametrize(
        "data, filename",
        [(b"", "vacio.xlsx"), (b"garbage", "roto.xlsx"), (b"%PDF-1.4", "doc.pdf")],
    )
    def test_malformed_input_yields_no_rows(self, data, filename):
        assert SpreadsheetReader().read(data, filename) == []

    def test_columns_first_seen_order(self):
        rows = [{"B": 1, "A": 2}, {"A": 3, "C": 4}]

        assert SpreadsheetReader().columns(rows) == ["B", "A", "C"]


class TestSpreadsheetWriter:
    def test_template(self):
        data = SpreadsheetWriter().build_template(LabelConfig())
        ws = openpyxl.load_workbook(io.BytesIO(data))["Plantilla"]
        rows = list(ws.iter_rows(values_only=True))

        assert list(rows[0]) == TEMPLATE_COLUMNS
        assert len(rows) == 3
        assert rows[1][0] == "7501234567893"

    def test_template_is_readable_batch(self):
        data = SpreadsheetWriter().build_template(LabelConfig())
        rows = SpreadsheetReader().read(data, "plantilla_etiquetas.xlsx")

        assert [r["Codigo"] for r in rows] == ["7501234567893", "ABC-001"]

    def test_summary_one_row_per_copy(self):
        config = LabelConfig(value="hola", mode=LabelMode.QR, logo_source="data:x")
        data = SpreadsheetWriter().build_summary(config, 3)
        ws = openpyxl.load_workbook(io.BytesIO(data))["Etiquetas"]
        rows = list(ws.iter_rows(values_only=True))

        assert list(rows[0]) == SUMMARY_COLUMNS
        assert [r[0] for r in rows[1:]] == [1, 2, 3]
        assert rows[1][1] == "qr"
        assert rows[1][3] in (None, "")  # no barcode type in QR mode
        assert rows[1][-1] is True
