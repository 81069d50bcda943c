"""Replacement requests: which data rows go where.

A request is either sheet-keyed (``Replacements.by_sheet``) or targets the
first sheet only (``Replacements.single_sheet``). ``Replacements.coerce`` is
the one place that accepts the loose mapping shape callers tend to pass and
decides which of the two it is.

Sheet selectors are sheet names (``str``) or zero-based sheet indices
(``int``). Row keys are zero-based template row indices.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from app.render.cells import DataRow, to_data_row
from app.render.errors import InvalidReplacements, TemplateRenderError

SheetSelector = Union[str, int]
RowMap = dict[int, tuple[DataRow, ...]]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def normalize_row_map(raw: Mapping[Any, Any], selector: SheetSelector | None = None) -> RowMap:
    """Validate a row map and convert every data row.

    Raises:
        InvalidReplacements: For non-integer or negative row keys and for
            values that are not sequences of data rows.
        UnsupportedValueType: For values with no cell equivalent, located
            at the selector, row and column.
    """
    if not isinstance(raw, Mapping):
        raise InvalidReplacements(
            "Row map must be a mapping",
            detail=f"got {type(raw).__name__}",
            sheet=selector,
        )

    row_map: RowMap = {}
    for key, data_rows in raw.items():
        if isinstance(key, bool) or not isinstance(key, int) or key < 0:
            raise InvalidReplacements(
                "Row keys must be non-negative integers",
                detail=f"got {key!r}",
                sheet=selector,
            )
        if not _is_sequence(data_rows) or not all(_is_sequence(row) for row in data_rows):
            raise InvalidReplacements(
                "Row values must be a list of data rows",
                detail=f"got {data_rows!r}",
                sheet=selector,
                row=key,
            )
        try:
            row_map[key] = tuple(to_data_row(row) for row in data_rows)
        except TemplateRenderError as e:
            raise e.locate(sheet=selector, row=key)
    return row_map


@dataclass(frozen=True)
class Replacements:
    """Data rows keyed by sheet selector, then template row index."""

    sheets: dict[SheetSelector, RowMap] = field(default_factory=dict)

    @classmethod
    def by_sheet(cls, mapping: Mapping[SheetSelector, Mapping[int, Any]]) -> "Replacements":
        sheets: dict[SheetSelector, RowMap] = {}
        for selector, raw in mapping.items():
            if isinstance(selector, bool) or not isinstance(selector, (str, int)):
                raise InvalidReplacements(
                    "Sheet selectors must be sheet names or indices",
                    detail=f"got {selector!r}",
                )
            sheets[selector] = normalize_row_map(raw, selector)
        return cls(sheets)

    @classmethod
    def single_sheet(cls, row_map: Mapping[int, Any]) -> "Replacements":
        """Target the first sheet; same as ``by_sheet({0: row_map})``."""
        return cls.by_sheet({0: row_map})

    @classmethod
    def empty(cls) -> "Replacements":
        return cls()

    @classmethod
    def coerce(cls, value: "Replacements | Mapping[Any, Any] | None") -> "Replacements":
        """Accept either request shape.

        A mapping whose values are mappings is sheet-keyed; any other
        non-empty mapping is a bare row map for the first sheet.
        """
        if isinstance(value, Replacements):
            return value
        if not value:
            return cls.empty()
        if not isinstance(value, Mapping):
            raise InvalidReplacements(
                "Replacements must be a mapping",
                detail=f"got {type(value).__name__}",
            )
        if all(isinstance(v, Mapping) for v in value.values()):
            return cls.by_sheet(value)
        return cls.single_sheet(value)

    def rows_for(self, name: str, index: int) -> RowMap | None:
        """Row map for a sheet, matched by name first, then by index."""
        if name in self.sheets:
            return self.sheets[name]
        return self.sheets.get(index)

    def unmatched(self, sheet_names: Sequence[str]) -> list[SheetSelector]:
        """Selectors that match no sheet of a workbook."""
        missing: list[SheetSelector] = []
        for selector in self.sheets:
            if isinstance(selector, str) and selector in sheet_names:
                continue
            if isinstance(selector, int) and 0 <= selector < len(sheet_names):
                continue
            missing.append(selector)
        return missing

    def __bool__(self) -> bool:
        return bool(self.sheets)
