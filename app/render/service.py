"""Template renderer service module.

Provides the TemplateRenderer OOP service and TemplateRendererConfig
dataclass for configuring render behavior, separating runtime config from
app-level settings, plus module-level helpers bound to the app settings.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Mapping, Union

from app.core.config import settings
from app.core.models import RenderReport
from app.render.base_builder import build_base_output
from app.render.errors import SheetSelectorMismatch, WriteFailure
from app.render.pipeline import StagePipeline
from app.render.replacements import Replacements
from app.render.scratch import ScratchSpace
from app.render.template_source import copy_template
from app.render.workbook import load_workbook_safe

logger = logging.getLogger(__name__)

Destination = Union[str, os.PathLike, IO[bytes]]


@dataclass
class TemplateRendererConfig:
    """Configuration for the TemplateRenderer service.

    Allows different render configurations per call if needed,
    independent of global application settings.
    """

    template_package: str | None = "app.templates"
    scratch_dir: str | None = None
    evaluate_formulas: bool = True
    streaming_writer: bool = True
    strict_sheet_selectors: bool = False

    @classmethod
    def from_settings(cls, app_settings=settings) -> "TemplateRendererConfig":
        return cls(
            template_package=app_settings.template_package,
            scratch_dir=app_settings.scratch_dir,
            evaluate_formulas=app_settings.evaluate_formulas,
            streaming_writer=app_settings.streaming_writer,
            strict_sheet_selectors=app_settings.strict_sheet_selectors,
        )


class TemplateRenderer:
    """OOP service encapsulating the whole render pipeline.

    Usage:
        renderer = TemplateRenderer(TemplateRendererConfig())
        report = renderer.build(
            "report.xlsx",
            "out.xlsx",
            {"Squares": {2: [[1, 1], [2, 4], [3, 9]]}},
        )

    Every temporary file lives in a ScratchSpace that is released on all
    exit paths. The destination is only written once every sheet merged.
    """

    def __init__(self, config: TemplateRendererConfig | None = None):
        self.config = config or TemplateRendererConfig()

    def build(
        self,
        template_source: str | os.PathLike,
        destination: Destination,
        replacements: Replacements | Mapping[Any, Any] | None = None,
        scratch: ScratchSpace | None = None,
    ) -> RenderReport:
        """Render ``template_source`` merged with ``replacements``.

        Orchestrates the full pipeline:
          - Normalize the replacement request
          - Copy the template into scratch space
          - Build the row-stripped base
          - Merge one sheet per stage, in sheet order
          - Copy the final stage to the destination

        Args:
            template_source: Template file path, or bundled resource name.
            destination: Output path or writable binary stream.
            replacements: Replacement request or a mapping in either shape.
            scratch: Caller-owned scratch space. If given (open or not) it
                is used as-is and its lifetime stays with the caller.

        Returns:
            RenderReport with one SheetReport per sheet.

        Raises:
            TemplateRenderError: Any failure; no destination file is left
                behind and all temporary files are removed.
        """
        request = Replacements.coerce(replacements)

        if scratch is None:
            with ScratchSpace(self.config.scratch_dir) as own_scratch:
                return self._build(template_source, destination, request, own_scratch)

        if not scratch.is_open:
            scratch.open()
        return self._build(template_source, destination, request, scratch)

    def _build(
        self,
        template_source: str | os.PathLike,
        destination: Destination,
        request: Replacements,
        scratch: ScratchSpace,
    ) -> RenderReport:
        # Work on a copy so the caller's template is never opened for writing
        template_copy = copy_template(
            template_source,
            scratch.path("excel-template-copy.xlsx"),
            package=self.config.template_package,
        )
        base = build_base_output(template_copy, scratch.path("excel-template.xlsx"))
        staged_output = scratch.path("excel-output.xlsx")

        template = load_workbook_safe(template_copy)
        try:
            unmatched = request.unmatched(template.sheetnames)
            self._check_selectors(unmatched, template.sheetnames)

            pipeline = StagePipeline(
                template,
                scratch,
                streaming_writer=self.config.streaming_writer,
                evaluate_formulas=self.config.evaluate_formulas,
            )
            sheet_reports = pipeline.run(base, staged_output, request)
        finally:
            template.close()

        deliver(staged_output, destination)
        logger.info(
            "Rendered template=%s sheets=%d rows_written=%d",
            template_source,
            len(sheet_reports),
            sum(report.rows_written for report in sheet_reports),
        )
        return RenderReport(sheets=sheet_reports, unmatched_selectors=unmatched)

    def _check_selectors(self, unmatched: list, sheet_names: list[str]) -> None:
        if not unmatched:
            return
        if self.config.strict_sheet_selectors:
            raise SheetSelectorMismatch(
                "Replacement selector matches no sheet",
                detail=f"selectors {unmatched!r}, sheets {sheet_names!r}",
                sheet=unmatched[0],
            )
        logger.warning(
            "Ignoring replacement selectors with no matching sheet selectors=%r sheets=%r",
            unmatched,
            sheet_names,
        )


def deliver(staged: Path, destination: Destination) -> None:
    """Copy the finished workbook to a path or a binary stream.

    A destination file that was only partly written is removed again.
    """
    if isinstance(destination, (str, os.PathLike)):
        target = Path(destination)
        try:
            shutil.copyfile(staged, target)
        except OSError as e:
            if target.is_file():
                target.unlink()
            raise WriteFailure(
                "Failed to write output",
                detail=f"{target}: {e}",
            ) from e
        return

    try:
        with open(staged, "rb") as src:
            shutil.copyfileobj(src, destination)
    except (OSError, ValueError) as e:
        raise WriteFailure(
            "Failed to write output stream",
            detail=f"{type(e).__name__}: {e}",
        ) from e


def build(
    template_source: str | os.PathLike,
    destination: Destination,
    replacements: Replacements | Mapping[Any, Any] | None = None,
) -> RenderReport:
    """Render with a renderer configured from the app settings."""
    return TemplateRenderer(TemplateRendererConfig.from_settings()).build(
        template_source, destination, replacements
    )


def render_to_file(
    template_source: str | os.PathLike,
    output_file: str | os.PathLike,
    replacements: Replacements | Mapping[Any, Any] | None = None,
) -> RenderReport:
    """Build a report based on a spreadsheet template."""
    return build(template_source, output_file, replacements)


def render_to_stream(
    template_source: str | os.PathLike,
    output_stream: IO[bytes],
    replacements: Replacements | Mapping[Any, Any] | None = None,
) -> RenderReport:
    """Build a report based on a spreadsheet template, write it to the stream."""
    return build(template_source, output_stream, replacements)
