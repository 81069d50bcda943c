"""Core models and configuration for the Excel Template Renderer."""

from app.core.models import ErrorResponse, RenderReport, ReplacementsPayload, SheetReport

__all__ = ["ErrorResponse", "RenderReport", "ReplacementsPayload", "SheetReport"]
