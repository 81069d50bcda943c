"""Building the row-stripped base every render starts from.

The base keeps everything a template defines outside its rows: column
widths, merged regions, print settings, defined names and, most
importantly, the style table whose indices the merge relies on.
"""

from __future__ import annotations

import logging
from pathlib import Path

from app.render.workbook import index_template_rows, load_workbook_safe, save_workbook

logger = logging.getLogger(__name__)


def build_base_output(template_file: str | Path, output_file: str | Path) -> Path:
    """Write a copy of ``template_file`` with all rows removed.

    Rows are deleted from last to first so no remaining row is renumbered
    while deleting.
    """
    wb = load_workbook_safe(template_file)
    try:
        for ws in wb.worksheets:
            rows = index_template_rows(ws)
            for index in sorted(rows, reverse=True):
                ws.delete_rows(index + 1)
                ws.row_dimensions.pop(index + 1, None)
            logger.debug("Stripped %d rows from sheet=%s", len(rows), ws.title)
        save_workbook(wb, output_file)
    finally:
        wb.close()
    return Path(output_file)
