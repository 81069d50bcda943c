"""Sheet writers used by the stage pipeline.

Each stage opens its input package, rewrites exactly one sheet and saves
the result. Two writers share one interface:

- ``StreamingSheetWriter`` is forward-only: rows are created in strictly
  increasing order and never revisited. Used for sheets without formulas.
- ``InMemorySheetWriter`` allows random access and reports the formula
  cells of the merged sheet so the pipeline can recompute them.

``choose_writer`` picks between them from the template sheet alone, so the
pipeline never needs to know which one a stage uses.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from app.render.errors import DocumentModelError
from app.render.workbook import OutputRow, load_workbook_safe, save_workbook, sheet_has_formula

if TYPE_CHECKING:
    from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)


class SheetWriter(ABC):
    """Abstract destination for one sheet of one pipeline stage.

    Concrete writers decide how rows may be created; loading the stage
    input, saving and releasing the workbook are shared.
    """

    kind: str = ""

    def __init__(self, stage_input: str | Path, sheet_index: int):
        self._workbook = load_workbook_safe(stage_input)
        self.worksheet: "Worksheet" = self._workbook.worksheets[sheet_index]
        self.rows_created = 0

    @property
    def sheet_name(self) -> str:
        return self.worksheet.title

    @abstractmethod
    def create_row(self, index: int) -> OutputRow:
        """Create the destination row at zero-based ``index``."""

    def finish(self, target: str | Path) -> list[str]:
        """Save the stage and return the coordinates of formulas to recompute."""
        if self._workbook is None:
            raise DocumentModelError("Writer already disposed", sheet=self.sheet_name)
        save_workbook(self._workbook, target)
        logger.debug("Saved stage sheet=%s writer=%s rows=%d target=%s", self.sheet_name, self.kind, self.rows_created, target)
        return []

    def dispose(self) -> None:
        """Release the workbook held by this writer."""
        if self._workbook is not None:
            self._workbook.close()
            self._workbook = None

    def __enter__(self) -> "SheetWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


class StreamingSheetWriter(SheetWriter):
    """Forward-only writer: rows can only be appended past the last one.

    The stage input is still loaded in full, since openpyxl cannot seed a
    write-only workbook from an existing package. Only the row order is
    enforced, so memory use matches the in-memory writer.
    """

    kind = "streaming"

    def __init__(self, stage_input: str | Path, sheet_index: int):
        super().__init__(stage_input, sheet_index)
        self._last_index = -1

    def create_row(self, index: int) -> OutputRow:
        if index <= self._last_index:
            raise DocumentModelError(
                "Streaming writer cannot revisit rows",
                detail=f"row {index} requested after row {self._last_index} was written",
                sheet=self.sheet_name,
            )
        self._last_index = index
        self.rows_created += 1
        return OutputRow(self.worksheet, index)


class InMemorySheetWriter(SheetWriter):
    """Random-access writer for sheets whose formulas get recomputed."""

    kind = "in_memory"

    def create_row(self, index: int) -> OutputRow:
        self.rows_created += 1
        return OutputRow(self.worksheet, index)

    def formula_coordinates(self) -> list[str]:
        return [
            cell.coordinate
            for cell in self.worksheet._cells.values()
            if cell.data_type == "f"
        ]

    def finish(self, target: str | Path) -> list[str]:
        super().finish(target)
        return self.formula_coordinates()


def choose_writer(template_ws: "Worksheet", streaming_enabled: bool = True) -> type[SheetWriter]:
    """Return the writer class for a template sheet.

    Formula evaluation needs random access, so only formula-free sheets
    are streamed.
    """
    if streaming_enabled and not sheet_has_formula(template_ws):
        return StreamingSheetWriter
    return InMemorySheetWriter
