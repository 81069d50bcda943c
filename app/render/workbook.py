"""Workbook loading, saving and row access on top of openpyxl.

This module is the boundary with the spreadsheet library: it opens
template and stage packages with proper error handling, serializes them,
and exposes rows by zero-based index the way the merge engine thinks
about them (openpyxl itself is one-based and has no row objects).
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING

import openpyxl
from openpyxl import Workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.properties import CalcProperties

from app.render.errors import WorkbookLoadError, WriteFailure

if TYPE_CHECKING:
    from openpyxl.cell.cell import Cell
    from openpyxl.worksheet.worksheet import Worksheet


def load_workbook_safe(path: str | Path) -> Workbook:
    """Safely load an Excel workbook from a file.

    Formulas are kept as text (``data_only=False``) so they can be copied
    into the output and recomputed there.

    Args:
        path: Location of the .xlsx package

    Returns:
        Workbook: Loaded openpyxl Workbook object

    Raises:
        WorkbookLoadError: If the file cannot be loaded due to:
            - Missing or empty file
            - Corrupt or invalid ZIP structure (xlsx files are ZIP archives)
            - Invalid Excel file format
            - Password-protected files
            - Other unexpected errors
    """
    path = Path(path)
    if not path.is_file():
        raise WorkbookLoadError(
            message="Missing file",
            detail=f"No workbook at {path}",
        )

    if path.stat().st_size == 0:
        raise WorkbookLoadError(
            message="Empty file",
            detail=f"{path.name} contains no data",
        )

    try:
        return openpyxl.load_workbook(path, data_only=False, read_only=False)

    except zipfile.BadZipFile as e:
        raise WorkbookLoadError(
            message="Invalid file format",
            detail=f"{path.name} is not a valid Excel workbook (corrupt or not .xlsx format)",
        ) from e

    except InvalidFileException as e:
        error_str = str(e).lower()

        if "password" in error_str or "encrypted" in error_str:
            raise WorkbookLoadError(
                message="Password-protected file",
                detail="Cannot open password-protected Excel files",
            ) from e

        raise WorkbookLoadError(
            message="Invalid Excel file",
            detail=str(e),
        ) from e

    except KeyError as e:
        # Valid ZIP but missing required parts such as [Content_Types].xml
        raise WorkbookLoadError(
            message="Invalid Excel file",
            detail="File is a valid ZIP archive but not a valid Excel workbook (missing required components)",
        ) from e

    except Exception as e:
        error_type = type(e).__name__
        raise WorkbookLoadError(
            message="Failed to load workbook",
            detail=f"Unexpected error ({error_type}): {str(e)}",
        ) from e


def save_workbook(wb: Workbook, target: str | Path | IO[bytes]) -> None:
    """Serialize a workbook to a path or a writable binary stream.

    The workbook is flagged for a full recalculation on load so that
    spreadsheet applications refresh every formula's cached value.

    Raises:
        WriteFailure: If serialization or the underlying I/O fails.
    """
    if wb.calculation is None:
        wb.calculation = CalcProperties()
    wb.calculation.fullCalcOnLoad = True

    try:
        wb.save(target)
    except Exception as e:
        name = target if isinstance(target, (str, Path)) else type(target).__name__
        raise WriteFailure(
            message="Failed to write workbook",
            detail=f"{name}: {type(e).__name__}: {e}",
        ) from e


@dataclass
class TemplateRow:
    """One populated template row, addressed by zero-based indices."""

    index: int
    cells: dict[int, "Cell"] = field(default_factory=dict)
    height: float | None = None

    @property
    def width(self) -> int:
        """Logical width: highest populated column + 1."""
        if not self.cells:
            return 0
        return max(self.cells) + 1


def index_template_rows(ws: "Worksheet") -> dict[int, TemplateRow]:
    """Group a sheet's cells by zero-based row index in a single pass.

    A row exists when it holds at least one cell (styled-but-empty cells
    included) or carries its own row dimension entry, e.g. a custom height.
    """
    rows: dict[int, TemplateRow] = {}
    for (row, column), cell in ws._cells.items():
        template_row = rows.get(row - 1)
        if template_row is None:
            template_row = rows[row - 1] = TemplateRow(index=row - 1)
        template_row.cells[column - 1] = cell

    # Iterating the dimension holder never creates entries, indexing does
    for row, dimension in list(ws.row_dimensions.items()):
        if row < 1:
            continue
        template_row = rows.get(row - 1)
        if template_row is None:
            template_row = rows[row - 1] = TemplateRow(index=row - 1)
        template_row.height = dimension.ht

    return rows


def template_row_count(rows: dict[int, TemplateRow]) -> int:
    """Number of row slots the merge walks: highest row index + 1."""
    if not rows:
        return 0
    return max(rows) + 1


def sheet_has_formula(ws: "Worksheet") -> bool:
    """Return True if any cell on the sheet is calculated."""
    return any(cell.data_type == "f" for cell in ws._cells.values())


class OutputRow:
    """Handle on a destination row, addressed by zero-based indices."""

    __slots__ = ("worksheet", "index")

    def __init__(self, worksheet: "Worksheet", index: int):
        self.worksheet = worksheet
        self.index = index

    def cell(self, column: int) -> "Cell":
        """Return the cell at ``column``, creating it when missing."""
        return self.worksheet.cell(row=self.index + 1, column=column + 1)

    def get_cell(self, column: int) -> "Cell | None":
        return self.worksheet._cells.get((self.index + 1, column + 1))

    @property
    def height(self) -> float | None:
        dimension = self.worksheet.row_dimensions.get(self.index + 1)
        return dimension.ht if dimension is not None else None

    @height.setter
    def height(self, value: float | None) -> None:
        if value is None and (self.index + 1) not in self.worksheet.row_dimensions:
            return
        self.worksheet.row_dimensions[self.index + 1].height = value

    def __repr__(self) -> str:
        return f"<OutputRow {self.worksheet.title!r}[{self.index}]>"
