from __future__ import annotations

from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill

from app.render.workbook import OutputRow

DATA_FILL = PatternFill(fill_type="solid", fgColor="DDEBF7")


def build_squares_workbook() -> Workbook:
    """Five-row report: title, header, styled data row, two footer rows."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Squares"
    ws["A1"] = "Squares"
    ws["A1"].font = Font(bold=True)
    ws["A2"] = "n"
    ws["B2"] = "n squared"
    for coordinate in ("A3", "B3"):
        ws[coordinate].fill = DATA_FILL
        ws[coordinate].number_format = "0.00"
    ws.row_dimensions[3].height = 18
    ws["A4"] = "End of report"
    ws["A5"] = "Generated"
    ws.column_dimensions["B"].width = 22
    return wb


def sheet_values(ws) -> list[list[Any]]:
    """Cell values of a sheet, row by row, trailing empty cells dropped."""
    rows = []
    for row in ws.iter_rows(values_only=True):
        values = list(row)
        while values and values[-1] is None:
            values.pop()
        rows.append(values)
    return rows


def load_output(path: Path | Any):
    """Open a rendered workbook without computing anything."""
    return load_workbook(path, data_only=False)


class RecordingTarget:
    """Minimal writer: hands out rows on a plain worksheet and records them."""

    def __init__(self, worksheet):
        self.worksheet = worksheet
        self.created: list[int] = []

    def create_row(self, index: int) -> OutputRow:
        self.created.append(index)
        return OutputRow(self.worksheet, index)
