"""Style propagation from template rows to output rows.

We don't really copy styles, but rather assume that the style with a given
index in the template's cell-style table is the same as the one with that
index in the destination's table. This holds because every destination is
built from a row-stripped copy of the template, which keeps the style table
intact, so the lookup always goes through the destination's own table.
"""

from __future__ import annotations

from copy import copy
from typing import TYPE_CHECKING

from app.render.errors import DocumentModelError

if TYPE_CHECKING:
    from openpyxl import Workbook
    from openpyxl.styles.cell_style import StyleArray

    from app.render.workbook import OutputRow, TemplateRow


def resolve_style(wb: "Workbook", style_id: int) -> "StyleArray":
    """Return a copy of the style array at ``style_id`` in ``wb``'s table."""
    try:
        return copy(wb._cell_styles[style_id])
    except IndexError as e:
        raise DocumentModelError(
            "Style index out of range",
            detail=f"destination style table has {len(wb._cell_styles)} entries, asked for {style_id}",
        ) from e


def propagate(src_row: "TemplateRow", dst_row: "OutputRow") -> None:
    """Give ``dst_row`` the styles and height of ``src_row``.

    Every populated template column gets a cell in the destination row,
    even when it holds no value, so borders and fills survive.
    """
    wb = dst_row.worksheet.parent
    for column, src_cell in src_row.cells.items():
        dst_cell = dst_row.cell(column)
        if not src_cell.has_style:
            continue
        try:
            dst_cell._style = resolve_style(wb, src_cell.style_id)
        except DocumentModelError as e:
            raise e.locate(column=column)
    dst_row.height = src_row.height
