"""API integration tests.

These tests exercise the FastAPI app end-to-end:
- GET /health
- POST /render with the canonical squares template
- POST /render error handling for invalid uploads and replacement data
"""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient
from openpyxl import load_workbook

from app.main import render_error_response
from app.render.errors import UnsupportedValueType, WriteFailure
from tests.workbook_helpers import sheet_values

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _post_render(
    client: TestClient,
    xlsx_path: Path,
    replacements: Any = None,
    filename: str | None = None,
) -> Any:
    data = {}
    if replacements is not None:
        data["replacements"] = replacements if isinstance(replacements, str) else json.dumps(replacements)
    return client.post(
        "/render",
        files={"file": (filename or xlsx_path.name, xlsx_path.read_bytes(), XLSX)},
        data=data,
    )


def test_health_returns_ok(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_render_expands_rows(client: TestClient, squares_template: Path) -> None:
    response = _post_render(client, squares_template, {"sheets": {"Squares": {"2": [[1, 1], [2, 4], [3, 9]]}}})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(XLSX)
    assert 'filename="squares-rendered.xlsx"' in response.headers["content-disposition"]

    ws = load_workbook(io.BytesIO(response.content))["Squares"]
    assert sheet_values(ws)[2:6] == [[1, 1], [2, 4], [3, 9], ["End of report"]]


def test_render_rows_shape_and_index_selector(client: TestClient, multi_sheet_template: Path) -> None:
    response = _post_render(
        client,
        multi_sheet_template,
        {"sheets": {"1": {"1": [[10, None]]}}},
    )
    assert response.status_code == 200
    wb = load_workbook(io.BytesIO(response.content))
    assert wb["Second"]["A2"].value == 10
    assert wb["First"]["B2"].value == 1

    response = _post_render(client, multi_sheet_template, {"rows": {"1": [["changed", None]]}})
    assert response.status_code == 200
    wb = load_workbook(io.BytesIO(response.content))
    assert sheet_values(wb["First"]) == [["label", "value"], ["changed", 1]]


def test_render_without_replacements_copies_template(client: TestClient, squares_template: Path) -> None:
    response = _post_render(client, squares_template)
    assert response.status_code == 200

    rendered = load_workbook(io.BytesIO(response.content))["Squares"]
    assert sheet_values(rendered) == sheet_values(load_workbook(squares_template)["Squares"])


def test_render_rejects_non_xlsx(client: TestClient, squares_template: Path) -> None:
    response = _post_render(client, squares_template, filename="squares.csv")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid file format"
    assert ".csv" in response.json()["detail"]


def test_render_rejects_invalid_json(client: TestClient, squares_template: Path) -> None:
    response = _post_render(client, squares_template, "{not json")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid replacements"


def test_render_rejects_both_shapes(client: TestClient, squares_template: Path) -> None:
    response = _post_render(client, squares_template, {"sheets": {}, "rows": {}})
    assert response.status_code == 422
    assert response.json()["error"] == "Validation error"


def test_render_reports_located_errors(client: TestClient, squares_template: Path) -> None:
    response = _post_render(client, squares_template, {"sheets": {"Squares": {"2": [[1, {"x": 1}]]}}})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Unsupported cell value type"
    assert body["detail"].startswith("sheet 'Squares', row 2, column 1")


def test_render_rejects_corrupt_upload(client: TestClient, tmp_path: Path) -> None:
    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"definitely not a zip")
    response = _post_render(client, broken)
    assert response.status_code == 400


def test_render_requires_file(client: TestClient) -> None:
    response = client.post("/render", data={"replacements": "{}"})
    assert response.status_code == 422
    assert response.json() == {
        "error": "Validation error",
        "detail": "Missing required form field: file",
    }


def test_render_error_response_status() -> None:
    response = render_error_response(WriteFailure("Failed to write output", detail="disk full"))
    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "Failed to write output", "detail": "disk full"}

    response = render_error_response(UnsupportedValueType("Unsupported cell value type", sheet="S", row=0))
    assert response.status_code == 400
    assert json.loads(response.body)["detail"] == "sheet 'S', row 0"
