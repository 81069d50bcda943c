"""Pydantic models for the Excel Template Renderer.

This module defines the request/report models:
- ReplacementsPayload: JSON form of a replacement request
- SheetReport: What happened to one sheet during a render
- RenderReport: Summary of a whole render
- ErrorResponse: Error response for failed requests
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from app.render.replacements import Replacements


class ReplacementsPayload(BaseModel):
    """Replacement data as sent over the API.

    Exactly one of ``sheets`` (keyed by sheet name or index) or ``rows``
    (first sheet only) must be given. Row keys are zero-based template row
    indices; ``null`` entries inside a data row keep the template value.
    """

    sheets: dict[str, dict[int, list[list[Any]]]] | None = Field(
        default=None,
        description="Data rows keyed by sheet name (or index), then template row index",
    )
    rows: dict[int, list[list[Any]]] | None = Field(
        default=None,
        description="Data rows for the first sheet, keyed by template row index",
    )

    @model_validator(mode="after")
    def _exactly_one_shape(self) -> "ReplacementsPayload":
        if self.sheets is not None and self.rows is not None:
            raise ValueError("Provide either 'sheets' or 'rows', not both")
        return self

    def to_replacements(self, sheet_names: list[str]) -> Replacements:
        """Build the engine request.

        JSON object keys are always strings, so a key that names no sheet
        but is a plain number selects the sheet at that index.
        """
        if self.rows is not None:
            return Replacements.single_sheet(self.rows)
        if not self.sheets:
            return Replacements.empty()

        mapping: dict[str | int, dict[int, list[list[Any]]]] = {}
        for key, row_map in self.sheets.items():
            if key not in sheet_names and key.isdigit():
                mapping[int(key)] = row_map
            else:
                mapping[key] = row_map
        return Replacements.by_sheet(mapping)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"sheets": {"Squares": {"2": [[1, 1], [2, 4], [3, 9]]}}},
                {"rows": {"0": [[None, 5]]}},
            ]
        }
    }


class SheetReport(BaseModel):
    """Outcome of merging one sheet."""

    index: int = Field(description="Zero-based sheet index")
    name: str = Field(description="Sheet name")
    writer: Literal["streaming", "in_memory"] = Field(
        description="Writer used for the stage (streaming for formula-free sheets)"
    )
    template_rows: int = Field(description="Template row slots walked", ge=0)
    rows_written: int = Field(description="Destination row slots produced", ge=0)
    formula_values: dict[str, Any] = Field(
        default_factory=dict,
        description="Recomputed formula values by cell coordinate (None where the formula could not be computed)",
    )
    merged_ranges: list[str] = Field(
        default_factory=list,
        description="Merged ranges laid out on the output sheet",
    )


class RenderReport(BaseModel):
    """Summary of a successful render."""

    sheets: list[SheetReport] = Field(default_factory=list)
    unmatched_selectors: list[str | int] = Field(
        default_factory=list,
        description="Replacement selectors that matched no sheet",
    )

    def sheet(self, name: str) -> SheetReport:
        for report in self.sheets:
            if report.name == name:
                return report
        raise KeyError(name)


class ErrorResponse(BaseModel):
    """Error response for failed requests.

    Returned with appropriate HTTP status codes (400, 422, 500).
    """

    error: str = Field(
        description="Brief error message describing what went wrong"
    )
    detail: str | None = Field(
        default=None,
        description="Additional error details, including sheet/row/column when known",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": "Invalid file format",
                    "detail": "Expected .xlsx file, got '.csv'",
                },
                {
                    "error": "Unsupported cell value type",
                    "detail": "sheet 'Squares', row 2, column 1: cannot assign value of type dict to a cell",
                },
            ]
        }
    }
