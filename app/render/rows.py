"""Row materialization: turning one template row into output rows.

A template row is either copied as-is, or filled from one or more data
rows. When several data rows target the same template row, the row is
expanded: each data row becomes its own output row, all of them carrying
the template row's styles, height and formulas.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from app.render.cells import CellValue, DataRow
from app.render.errors import DocumentModelError, TemplateRenderError
from app.render.styles import propagate

if TYPE_CHECKING:
    from app.render.workbook import OutputRow, TemplateRow
    from app.render.writers import SheetWriter


def _write_cell(dst_row: "OutputRow", column: int, value: CellValue) -> None:
    try:
        value.apply(dst_row.cell(column))
    except TemplateRenderError:
        raise
    except (AttributeError, TypeError, ValueError) as e:
        # MergedCell interiors are read-only; openpyxl also rejects
        # illegal characters and unknown types here.
        raise DocumentModelError(
            "Unable to assign value to cell",
            detail=f"{value.kind.value} value {value.value!r}: {e}",
            column=column,
        ) from e


def copy_row(src_row: "TemplateRow", dst_row: "OutputRow") -> None:
    """Copy every populated template cell verbatim, then its styles."""
    for column in sorted(src_row.cells):
        value = CellValue.from_cell(src_row.cells[column])
        if value.is_blank:
            continue
        _write_cell(dst_row, column, value)
    propagate(src_row, dst_row)


def inject_data_row(
    data_row: DataRow,
    src_row: "TemplateRow | None",
    dst_row: "OutputRow",
) -> None:
    """Fill ``dst_row`` from a data row, falling back to the template.

    ``None`` entries (and columns past the end of the data row) keep the
    template's value or formula; any other entry overrides it.
    """
    template_width = src_row.width if src_row is not None else 0
    for column in range(max(template_width, len(data_row))):
        data_value = data_row[column] if column < len(data_row) else None
        if data_value is not None:
            _write_cell(dst_row, column, data_value)
            continue

        src_cell = src_row.cells.get(column) if src_row is not None else None
        if src_cell is None:
            continue
        value = CellValue.from_cell(src_cell)
        if not value.is_blank:
            _write_cell(dst_row, column, value)

    if src_row is not None:
        propagate(src_row, dst_row)


def materialize(
    template_row: "TemplateRow | None",
    data_rows: Sequence[DataRow] | None,
    writer: "SheetWriter",
    dst_start: int,
) -> int:
    """Write the output rows for one template row.

    Args:
        template_row: The template row, or None when the sheet has no row
            at this index.
        data_rows: Data rows targeting this template row. ``None`` means
            no entry in the replacement map (plain copy); an empty sequence
            drops the row.
        writer: Destination sheet writer.
        dst_start: Zero-based destination index of the first output row.

    Returns:
        Number of output rows written.
    """
    if not data_rows:
        if data_rows is not None or template_row is None:
            return 0
        copy_row(template_row, writer.create_row(dst_start))
        return 1

    for offset, data_row in enumerate(data_rows):
        inject_data_row(data_row, template_row, writer.create_row(dst_start + offset))
    return len(data_rows)
