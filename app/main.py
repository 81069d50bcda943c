"""Excel Template Renderer - FastAPI Application Entry Point.

Builds the application, registers the handlers that turn request
validation and render failures into ``ErrorResponse`` bodies, and mounts
the render routes.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import router
from app.core.models import ErrorResponse
from app.render.errors import TemplateRenderError, WriteFailure

logger = logging.getLogger(__name__)


def render_error_response(exc: TemplateRenderError) -> JSONResponse:
    """Map a render failure to an ``ErrorResponse``.

    The detail is prefixed with the failure's location (sheet, template
    row, column) when one is known. Failures to write the output are the
    server's fault; everything else is caused by the template or the data.
    """
    detail = exc.detail
    if exc.location:
        detail = f"{exc.location}: {detail}" if detail else exc.location
    status_code = 500 if isinstance(exc, WriteFailure) else 400
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=exc.message, detail=detail).model_dump(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Excel Template Renderer",
        description=(
            "REST API that merges row data into pre-formatted Excel (.xlsx) "
            "templates, keeping the template's styles, row heights and formulas."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Rendered workbooks are downloaded by browser clients on other origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(  # type: ignore[misc]
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        missing_fields = [
            str(err["loc"][-1])
            for err in exc.errors()
            if err.get("type") == "missing" and err.get("loc")
        ]

        detail = "Request body validation failed"
        if missing_fields:
            detail = "Missing required form field: " + ", ".join(missing_fields)

        return JSONResponse(
            status_code=422,
            content=ErrorResponse(error="Validation error", detail=detail).model_dump(),
        )

    @app.exception_handler(TemplateRenderError)
    async def render_exception_handler(  # type: ignore[misc]
        request: Request,
        exc: TemplateRenderError,
    ) -> JSONResponse:
        logger.warning("Render failed path=%s error=%s", request.url.path, exc)
        return render_error_response(exc)

    app.include_router(router)
    return app


app = create_app()
