"""Cell values as a closed tagged variant.

Template cells are read into a ``CellValue`` and data-row entries are
converted into one before anything is written, so the row materializer and
the style propagator never dispatch on raw Python types.

A data row is a tuple of ``CellValue | None`` where ``None`` is the explicit
"keep the template's value" marker. Falsy values such as ``0``, ``False`` or
``""`` are real overrides.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula

from app.render.errors import UnsupportedValueType

if TYPE_CHECKING:
    from openpyxl.cell.cell import Cell


DATE_TYPES = (datetime.datetime, datetime.date, datetime.time, datetime.timedelta)
NUMBER_TYPES = (int, float, Decimal)


class CellKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    FORMULA = "formula"
    BLANK = "blank"


@dataclass(frozen=True)
class CellValue:
    """A typed cell value.

    ``value`` holds the Python payload for the kind: ``str`` for STRING,
    ``int``/``float``/``Decimal`` for NUMBER, ``bool`` for BOOLEAN, a
    ``datetime`` family object for DATE, the formula text (or an openpyxl
    array/data-table formula) for FORMULA and ``None`` for BLANK.
    """

    kind: CellKind
    value: Any = None

    @classmethod
    def string(cls, value: str) -> "CellValue":
        return cls(CellKind.STRING, value)

    @classmethod
    def number(cls, value: int | float | Decimal) -> "CellValue":
        return cls(CellKind.NUMBER, value)

    @classmethod
    def boolean(cls, value: bool) -> "CellValue":
        return cls(CellKind.BOOLEAN, value)

    @classmethod
    def date(cls, value: Any) -> "CellValue":
        return cls(CellKind.DATE, value)

    @classmethod
    def formula(cls, text: Any) -> "CellValue":
        return cls(CellKind.FORMULA, text)

    @classmethod
    def blank(cls) -> "CellValue":
        return cls(CellKind.BLANK)

    @classmethod
    def from_python(cls, value: Any) -> "CellValue":
        """Map a caller-supplied Python value onto a cell kind.

        Raises:
            UnsupportedValueType: If the value has no spreadsheet equivalent.
        """
        if isinstance(value, CellValue):
            return value
        # bool is an int subclass, so it has to be checked first
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, NUMBER_TYPES):
            return cls.number(value)
        if isinstance(value, str):
            return cls.string(value)
        if isinstance(value, DATE_TYPES):
            return cls.date(value)
        raise UnsupportedValueType(
            "Unsupported cell value type",
            detail=f"cannot assign value of type {type(value).__name__} to a cell",
        )

    @classmethod
    def from_cell(cls, cell: "Cell") -> "CellValue":
        """Read an openpyxl cell into the variant."""
        value = cell.value
        if value is None:
            return cls.blank()
        if cell.data_type == "f" or isinstance(value, (ArrayFormula, DataTableFormula)):
            return cls.formula(value)
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, DATE_TYPES):
            return cls.date(value)
        if isinstance(value, NUMBER_TYPES):
            return cls.number(value)
        return cls.string(str(value))

    @property
    def is_formula(self) -> bool:
        return self.kind is CellKind.FORMULA

    @property
    def is_blank(self) -> bool:
        return self.kind is CellKind.BLANK

    @property
    def formula_text(self) -> str | None:
        if not self.is_formula:
            return None
        if isinstance(self.value, ArrayFormula):
            return self.value.text
        return str(self.value)

    def apply(self, cell: "Cell") -> None:
        """Write this value into a destination cell.

        Strings are always stored as literals, even when they start with
        ``=``; only FORMULA values become formulas.
        """
        if self.is_blank:
            cell.value = None
        elif self.kind is CellKind.STRING:
            cell.value = self.value
            if cell.data_type == "f":
                cell.data_type = "s"
        else:
            cell.value = self.value


DataRow = tuple[CellValue | None, ...]


def to_data_row(values: Iterable[Any]) -> DataRow:
    """Convert one caller data row, keeping ``None`` as "use the template".

    Raises:
        UnsupportedValueType: With ``column`` set to the offending position.
    """
    row: list[CellValue | None] = []
    for column, value in enumerate(values):
        if value is None:
            row.append(None)
            continue
        try:
            row.append(CellValue.from_python(value))
        except UnsupportedValueType as e:
            raise e.locate(column=column)
    return tuple(row)
