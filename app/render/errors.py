"""Error types raised while rendering a workbook from a template.

Every error carries a short ``message`` plus optional ``detail`` (the same
shape the API returns in ``ErrorResponse``) and, where known, the sheet,
template row and column it happened at. Row and column are zero-based.
"""

from __future__ import annotations


class TemplateRenderError(Exception):
    """Base class for all rendering failures.

    Attributes:
        message: Human-readable error description
        detail: Additional technical details (optional)
        sheet: Sheet name or selector the error refers to (optional)
        row: Zero-based row index (optional)
        column: Zero-based column index (optional)
    """

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        *,
        sheet: str | int | None = None,
        row: int | None = None,
        column: int | None = None,
    ):
        self.message = message
        self.detail = detail
        self.sheet = sheet
        self.row = row
        self.column = column
        super().__init__(message)

    def locate(
        self,
        sheet: str | int | None = None,
        row: int | None = None,
        column: int | None = None,
    ) -> "TemplateRenderError":
        """Fill in location fields that are not set yet and return self.

        Inner layers know the column, outer layers the row and sheet, so
        values already present are never overwritten.
        """
        if self.sheet is None:
            self.sheet = sheet
        if self.row is None:
            self.row = row
        if self.column is None:
            self.column = column
        return self

    @property
    def location(self) -> str | None:
        parts = []
        if self.sheet is not None:
            parts.append(f"sheet {self.sheet!r}")
        if self.row is not None:
            parts.append(f"row {self.row}")
        if self.column is not None:
            parts.append(f"column {self.column}")
        return ", ".join(parts) or None

    def __str__(self) -> str:
        text = self.message
        if self.location:
            text = f"{text} ({self.location})"
        if self.detail:
            text = f"{text}: {self.detail}"
        return text


class TemplateNotFound(TemplateRenderError):
    """Neither a filesystem path nor a bundled resource matched the template."""


class UnsupportedValueType(TemplateRenderError):
    """A data-row value has no corresponding spreadsheet cell type."""


class InvalidReplacements(TemplateRenderError):
    """The replacement structure itself is malformed (bad keys or shapes)."""


class SheetSelectorMismatch(TemplateRenderError):
    """A replacement selector matches no sheet in the template."""


class WriteFailure(TemplateRenderError):
    """Serializing a stage or the final output failed."""


class DocumentModelError(TemplateRenderError):
    """Wraps a failure raised by the spreadsheet library."""


class WorkbookLoadError(DocumentModelError):
    """A workbook package could not be opened.

    Raised for empty, corrupt, password-protected or non-xlsx inputs.
    """


class FormulaEvaluationError(DocumentModelError):
    """Recomputing a formula cell's value failed."""
