"""Formula recomputation for written workbooks.

openpyxl stores formula text but never computes it, so the finished
output is recomputed with xlcalculator. The computed values are then
written back into the package as the formulas' cached values, the same
``<v>`` elements a spreadsheet application stores after calculating.
Cells xlcalculator cannot compute keep an empty cache; every saved
workbook asks for a full recalculation on load anyway.
"""

from __future__ import annotations

import datetime
import logging
import numbers
import os
import zipfile
from pathlib import Path
from typing import Any, Iterable, Mapping

from lxml import etree
from openpyxl.xml.constants import (
    ARC_WORKBOOK,
    ARC_WORKBOOK_RELS,
    PKG_REL_NS,
    REL_NS,
    SHEET_MAIN_NS,
)
from xlcalculator import Evaluator, ModelCompiler
from xlcalculator.xlfunctions.xlerrors import ExcelError

from app.render.errors import FormulaEvaluationError, WriteFailure

logger = logging.getLogger(__name__)


def _unwrap(value: Any) -> Any:
    """Convert xlcalculator's Excel types back to plain Python values."""
    if value is None:
        return None
    inner = getattr(value, "value", value)
    if inner is None or isinstance(inner, (str, bool, datetime.datetime)):
        return inner
    # numpy scalars come back from aggregate functions
    if isinstance(inner, numbers.Integral):
        return int(inner)
    if isinstance(inner, numbers.Real):
        return float(inner)
    return str(value)


class FormulaEvaluator:
    """Computes formula cell values of a saved workbook.

    The package is compiled once; every ``evaluate`` call reuses the model.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        try:
            model = ModelCompiler().read_and_parse_archive(str(self.path))
        except Exception as e:
            raise FormulaEvaluationError(
                "Failed to compile workbook formulas",
                detail=f"{self.path.name}: {type(e).__name__}: {e}",
            ) from e
        self._evaluator = Evaluator(model)

    def evaluate(self, sheet_name: str, coordinate: str) -> Any:
        """Return the computed value of ``sheet_name!coordinate``.

        Raises:
            FormulaEvaluationError: The formula uses a function xlcalculator
                does not implement, or evaluates to an Excel error.
        """
        address = f"{sheet_name}!{coordinate}"
        try:
            value = self._evaluator.evaluate(address)
        except Exception as e:
            raise FormulaEvaluationError(
                "Failed to evaluate formula",
                detail=f"{coordinate}: {e}",
                sheet=sheet_name,
            ) from e
        if isinstance(value, ExcelError):
            raise FormulaEvaluationError(
                "Formula evaluated to an error",
                detail=f"{coordinate}: {value}",
                sheet=sheet_name,
            )
        return _unwrap(value)

    def evaluate_all(self, sheet_name: str, coordinates: Iterable[str]) -> dict[str, Any]:
        """Evaluate every coordinate; cells that fail are recorded as None."""
        values: dict[str, Any] = {}
        for coordinate in coordinates:
            try:
                values[coordinate] = self.evaluate(sheet_name, coordinate)
            except FormulaEvaluationError as e:
                logger.warning("Leaving formula uncomputed sheet=%s cell=%s: %s", sheet_name, coordinate, e.detail)
                values[coordinate] = None
        logger.debug("Evaluated %d formula cells on sheet=%s", len(values), sheet_name)
        return values


def _cached_value(value: Any) -> tuple[str | None, str | None]:
    """Serialized ``<v>`` text and ``t`` attribute for a computed value."""
    if value is None or isinstance(value, datetime.datetime):
        return None, None
    if isinstance(value, bool):
        return ("1" if value else "0"), "b"
    if isinstance(value, float) and value.is_integer():
        return str(int(value)), None
    if isinstance(value, (int, float)):
        return repr(value), None
    return str(value), "str"


def _sheet_parts(package: zipfile.ZipFile) -> dict[str, str]:
    """Map sheet names to their worksheet part names inside the package."""
    workbook = etree.fromstring(package.read(ARC_WORKBOOK))
    rels = etree.fromstring(package.read(ARC_WORKBOOK_RELS))
    targets = {
        rel.get("Id"): rel.get("Target")
        for rel in rels.iter(f"{{{PKG_REL_NS}}}Relationship")
    }

    parts = {}
    for sheet in workbook.iter(f"{{{SHEET_MAIN_NS}}}sheet"):
        target = targets.get(sheet.get(f"{{{REL_NS}}}id"))
        if not target:
            continue
        parts[sheet.get("name")] = target[1:] if target.startswith("/") else f"xl/{target}"
    return parts


def _patch_sheet(root: etree._Element, values: Mapping[str, Any]) -> int:
    patched = 0
    for cell in root.iter(f"{{{SHEET_MAIN_NS}}}c"):
        text, type_hint = _cached_value(values.get(cell.get("r")))
        if text is None or cell.find(f"{{{SHEET_MAIN_NS}}}f") is None:
            continue
        v_node = cell.find(f"{{{SHEET_MAIN_NS}}}v")
        if v_node is None:
            v_node = etree.SubElement(cell, f"{{{SHEET_MAIN_NS}}}v")
        v_node.text = text
        if type_hint:
            cell.set("t", type_hint)
        else:
            cell.attrib.pop("t", None)
        patched += 1
    return patched


def store_cached_values(path: str | Path, values_by_sheet: Mapping[str, Mapping[str, Any]]) -> int:
    """Write computed formula values into a saved package in place.

    Args:
        path: The .xlsx package to update.
        values_by_sheet: Computed values keyed by sheet name, then by
            coordinate. ``None`` values are skipped.

    Returns:
        Number of formula cells whose cached value was written.

    Raises:
        WriteFailure: If the package cannot be read or rewritten.
    """
    path = Path(path)
    if not any(value is not None for values in values_by_sheet.values() for value in values.values()):
        return 0

    staged = path.with_name(f"{path.name}.cache")
    patched = 0
    try:
        with zipfile.ZipFile(path) as package:
            parts = _sheet_parts(package)
            updated: dict[str, bytes] = {}
            for sheet_name, values in values_by_sheet.items():
                part = parts.get(sheet_name)
                if part is None:
                    logger.warning("No worksheet part for sheet=%s in %s", sheet_name, path.name)
                    continue
                root = etree.fromstring(package.read(part))
                patched += _patch_sheet(root, values)
                updated[part] = etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)

            with zipfile.ZipFile(staged, "w", zipfile.ZIP_DEFLATED) as out:
                for item in package.infolist():
                    data = updated[item.filename] if item.filename in updated else package.read(item.filename)
                    out.writestr(item, data)
        os.replace(staged, path)
    except (OSError, KeyError, zipfile.BadZipFile, etree.XMLSyntaxError) as e:
        staged.unlink(missing_ok=True)
        raise WriteFailure(
            message="Failed to store formula values",
            detail=f"{path.name}: {type(e).__name__}: {e}",
        ) from e

    logger.debug("Stored %d cached formula values in %s", patched, path.name)
    return patched
