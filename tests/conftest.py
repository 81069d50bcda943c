from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from openpyxl.styles import Font

from app.main import create_app
from app.render.service import TemplateRenderer, TemplateRendererConfig
from tests.workbook_helpers import build_squares_workbook


@pytest.fixture()
def client() -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def repo_root() -> Path:
    return Path(__file__).resolve().parent.parent


@pytest.fixture()
def bundled_squares_path(repo_root: Path) -> Path:
    return repo_root / "app" / "templates" / "squares.xlsx"


@pytest.fixture()
def squares_template(tmp_path: Path) -> Path:
    path = tmp_path / "squares.xlsx"
    build_squares_workbook().save(path)
    return path


@pytest.fixture()
def formula_template(tmp_path: Path) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = "Sums"
    ws["A1"] = 2
    ws["B1"] = 3
    ws["C1"] = "=A1+B1"
    ws["C1"].font = Font(italic=True)
    path = tmp_path / "sums.xlsx"
    wb.save(path)
    return path


@pytest.fixture()
def multi_sheet_template(tmp_path: Path) -> Path:
    """Three sheets; only the middle one contains a formula."""
    wb = Workbook()
    first = wb.active
    first.title = "First"
    first.append(["label", "value"])
    first.append(["row", 1])

    second = wb.create_sheet("Second")
    second.append(["a", "b", "total"])
    second.append([2, 3, "=A2+B2"])

    third = wb.create_sheet("Third")
    third.append(["only row"])

    path = tmp_path / "multi.xlsx"
    wb.save(path)
    return path


@pytest.fixture()
def renderer() -> TemplateRenderer:
    return TemplateRenderer(TemplateRendererConfig(template_package="app.templates"))

