"""API routes for the Excel Template Renderer.

This module defines the REST API endpoints:
- POST /render: Merge an uploaded template with replacement data
- GET /health: Health check endpoint
"""

import io
import json
import logging

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from app.core.config import settings
from app.core.models import ErrorResponse, ReplacementsPayload
from app.render.scratch import ScratchSpace
from app.render.service import TemplateRenderer, TemplateRendererConfig
from app.render.workbook import load_workbook_safe

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Create router instance
router = APIRouter()
logger = logging.getLogger(__name__)

# Create renderer instance at startup using app settings.
template_renderer = TemplateRenderer(config=TemplateRendererConfig.from_settings(settings))


def _error(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


@router.get(
    "/health",
    summary="Health Check",
    description="Returns the health status of the API service.",
    response_description="Health status object",
    responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {"status": "ok"}
                }
            }
        }
    }
)
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        dict: Health status with "status": "ok"
    """
    return {"status": "ok"}


@router.post(
    "/render",
    summary="Render Excel Template",
    description=(
        "Upload an Excel (.xlsx) template and replacement data as JSON. "
        "Template rows named in the data are filled in place, expanded into "
        "several rows, or dropped; every other row is copied with its styles "
        "and formulas."
    ),
    response_description="Rendered workbook",
    responses={
        200: {
            "description": "Rendered workbook",
            "content": {XLSX_MEDIA_TYPE: {}},
        },
        400: {
            "description": "Invalid template, replacement data or render failure",
            "model": ErrorResponse,
        },
        422: {
            "description": "Request validation error (e.g., missing required form field)",
            "model": ErrorResponse,
        },
        500: {
            "description": "The rendered workbook could not be written",
            "model": ErrorResponse,
        },
    },
)
async def render_template(
    file: UploadFile = File(
        ...,
        description="Excel template file (.xlsx format)",
    ),
    replacements: str | None = Form(
        default=None,
        description='JSON object: {"sheets": {...}} or {"rows": {...}}',
    ),
) -> Response:
    """Render an uploaded template with replacement data.

    Args:
        file: Uploaded Excel template (.xlsx format)
        replacements: Replacement data as JSON text (optional)

    Returns:
        Response: The rendered workbook as an attachment

    Render failures raise TemplateRenderError, which the application
    handler turns into an ErrorResponse.
    """
    # Validate file extension
    if not file.filename:
        return _error(400, "Invalid file", "No filename provided")

    if not file.filename.lower().endswith(".xlsx"):
        extension = file.filename[file.filename.rfind(".") :] if "." in file.filename else "no extension"
        return _error(400, "Invalid file format", f"Expected .xlsx file, got '{extension}'")

    try:
        payload = ReplacementsPayload.model_validate(json.loads(replacements or "{}"))
    except json.JSONDecodeError as e:
        return _error(400, "Invalid replacements", f"Replacements are not valid JSON: {e}")
    except ValidationError as e:
        return _error(422, "Validation error", str(e))

    try:
        file_bytes = await file.read()
    except Exception as e:
        return _error(400, "Failed to read upload", f"{type(e).__name__}: {e}")
    finally:
        await file.close()

    with ScratchSpace(settings.scratch_dir, prefix="excel-upload-") as scratch:
        template_path = scratch.path("upload.xlsx")
        template_path.write_bytes(file_bytes)

        wb = load_workbook_safe(template_path)
        sheet_names = wb.sheetnames
        wb.close()

        request = payload.to_replacements(sheet_names)
        output = io.BytesIO()
        report = template_renderer.build(template_path, output, request)

    logger.info(
        "Rendered upload filename=%s sheets=%d rows_written=%d unmatched=%r",
        file.filename,
        len(report.sheets),
        sum(sheet.rows_written for sheet in report.sheets),
        report.unmatched_selectors,
    )

    stem = file.filename[: -len(".xlsx")]
    return Response(
        content=output.getvalue(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{stem}-rendered.xlsx"'},
    )
