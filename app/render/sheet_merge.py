"""Merging one template sheet into its destination sheet.

The driver walks template rows in order with a (source, destination)
cursor pair. Each decision only looks at the current template row:

- row index in the replacement map: materialize with those data rows and
  advance the destination by the number of rows written (0 drops the row);
- otherwise: copy the row and advance both cursors by one. A missing
  template row still occupies its slot, so sparse sheets stay sparse.

Merged regions are laid out again once every row is written: a region
inside one template row is repeated on each of that row's output rows,
and a region spanning several template rows stretches from the first
output row of its top row to the last output row of its bottom row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Sequence

from openpyxl.cell.cell import MergedCell
from openpyxl.utils import get_column_letter

from app.render.cells import DataRow
from app.render.errors import DocumentModelError, TemplateRenderError
from app.render.rows import materialize
from app.render.workbook import index_template_rows, template_row_count

if TYPE_CHECKING:
    from openpyxl.worksheet.cell_range import CellRange
    from openpyxl.worksheet.worksheet import Worksheet

    from app.render.writers import SheetWriter


@dataclass
class SheetMergeResult:
    template_rows: int
    rows_written: int
    merged_ranges: list[str] = field(default_factory=list)


def expected_row_count(template_rows: int, row_map: Mapping[int, Sequence[DataRow]]) -> int:
    """Number of destination row slots produced for a sheet."""
    return sum(
        len(row_map[index]) if index in row_map else 1
        for index in range(template_rows)
    )


def merge_sheet(
    template_ws: "Worksheet",
    writer: "SheetWriter",
    row_map: Mapping[int, Sequence[DataRow]] | None = None,
) -> SheetMergeResult:
    """Merge ``template_ws`` with ``row_map`` into the writer's sheet.

    Args:
        template_ws: Template sheet to read rows, values and styles from.
        writer: Destination for the merged rows.
        row_map: Data rows keyed by zero-based template row index.

    Returns:
        SheetMergeResult with the number of template rows walked, the
        number of destination row slots produced and the merged ranges
        laid out on the destination.

    Raises:
        TemplateRenderError: Annotated with the sheet and template row.
    """
    row_map = row_map or {}
    rows = index_template_rows(template_ws)
    nrows = template_row_count(rows)
    dst_ws = writer.worksheet

    # The destination still carries the template's regions at their
    # template positions; they are placed again below.
    clear_merged_ranges(dst_ws)

    layout = RowLayout()
    src_index = 0
    dst_index = 0
    while src_index < nrows:
        template_row = rows.get(src_index)
        data_rows = row_map.get(src_index)
        try:
            written = materialize(template_row, data_rows, writer, dst_index)
        except TemplateRenderError as e:
            raise e.locate(sheet=template_ws.title, row=src_index)
        except (AttributeError, TypeError, ValueError, KeyError) as e:
            raise DocumentModelError(
                "Failed to merge row",
                detail=f"{type(e).__name__}: {e}",
                sheet=template_ws.title,
                row=src_index,
            ) from e

        slots = written if data_rows is not None else 1
        layout.add(src_index, dst_index, slots)
        dst_index += slots
        src_index += 1

    merged = relocate_merged_ranges(template_ws, dst_ws, layout)
    return SheetMergeResult(template_rows=nrows, rows_written=dst_index, merged_ranges=merged)


class RowLayout:
    """Where each template row ended up in the destination (zero-based)."""

    def __init__(self) -> None:
        self.spans: dict[int, tuple[int, int]] = {}
        self.owners: dict[int, int] = {}
        self.shift = 0

    def add(self, src_index: int, dst_start: int, count: int) -> None:
        self.spans[src_index] = (dst_start, count)
        for dst_index in range(dst_start, dst_start + count):
            self.owners[dst_index] = src_index
        self.shift = dst_start + count - (src_index + 1)

    def span(self, src_index: int) -> tuple[int, int]:
        # Rows past the last walked template row move with the sheet's end
        return self.spans.get(src_index, (src_index + self.shift, 1))

    def owner(self, dst_index: int) -> int:
        return self.owners.get(dst_index, dst_index - self.shift)


def clear_merged_ranges(ws: "Worksheet") -> None:
    """Drop every merged range of ``ws`` along with its placeholder cells."""
    for merged in list(ws.merged_cells.ranges):
        for row, column in merged.cells:
            if isinstance(ws._cells.get((row, column)), MergedCell):
                del ws._cells[(row, column)]
        ws.merged_cells.remove(merged)


def relocate_merged_ranges(
    template_ws: "Worksheet",
    dst_ws: "Worksheet",
    layout: RowLayout,
) -> list[str]:
    """Lay the template's merged ranges out on the destination rows.

    Raises:
        DocumentModelError: A value landed on a cell a region hides,
            located by the template row that produced it.
    """
    placed = []
    for merged in sorted(template_ws.merged_cells.ranges, key=lambda r: (r.min_row, r.min_col)):
        for min_row, max_row in _destination_rows(merged, layout):
            if min_row == max_row and merged.min_col == merged.max_col:
                continue
            _check_hidden_cells(dst_ws, template_ws.title, merged, min_row, max_row, layout)
            dst_ws.merge_cells(
                start_row=min_row + 1,
                start_column=merged.min_col,
                end_row=max_row + 1,
                end_column=merged.max_col,
            )
            placed.append(_coord(merged, min_row, max_row))
    return placed


def _coord(merged: "CellRange", min_row: int, max_row: int) -> str:
    return (
        f"{get_column_letter(merged.min_col)}{min_row + 1}:"
        f"{get_column_letter(merged.max_col)}{max_row + 1}"
    )


def _destination_rows(merged: "CellRange", layout: RowLayout) -> list[tuple[int, int]]:
    """Zero-based (first, last) destination rows for one template range."""
    top, top_count = layout.span(merged.min_row - 1)
    if merged.min_row == merged.max_row:
        return [(dst_index, dst_index) for dst_index in range(top, top + top_count)]

    bottom, bottom_count = layout.span(merged.max_row - 1)
    last = bottom + bottom_count - 1
    if last < top:
        return []
    return [(top, last)]


def _check_hidden_cells(
    dst_ws: "Worksheet",
    sheet_name: str,
    merged: "CellRange",
    min_row: int,
    max_row: int,
    layout: RowLayout,
) -> None:
    for row in range(min_row + 1, max_row + 2):
        for column in range(merged.min_col, merged.max_col + 1):
            if (row, column) == (min_row + 1, merged.min_col):
                continue
            cell = dst_ws._cells.get((row, column))
            if cell is None or cell.value is None:
                continue
            raise DocumentModelError(
                "Value written into merged region",
                detail=f"{cell.coordinate} is hidden by {_coord(merged, min_row, max_row)}",
                sheet=sheet_name,
                row=layout.owner(row - 1),
                column=column - 1,
            )
