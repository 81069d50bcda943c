"""Stage-chained output: one sheet rewritten per stage.

A forward-only writer cannot be queried for rows it already wrote, and
merging sheet ``k`` must read the template's sheet ``k``, not a half
written output. So every stage starts from the previous stage's file,
rewrites exactly one sheet and writes a fresh file:

    base -> intermediate-0 -> intermediate-1 -> ... -> output
      stage 0           stage 1                stage S-1

Sheets other than the one being merged pass through untouched. Once the
last stage is written, formulas are recomputed on the finished output, so
references across sheets see merged data everywhere.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from app.core.models import SheetReport
from app.render.errors import FormulaEvaluationError, TemplateRenderError
from app.render.formulas import FormulaEvaluator, store_cached_values
from app.render.sheet_merge import merge_sheet
from app.render.writers import choose_writer

if TYPE_CHECKING:
    from openpyxl import Workbook
    from openpyxl.worksheet.worksheet import Worksheet

    from app.render.replacements import Replacements
    from app.render.scratch import ScratchSpace

logger = logging.getLogger(__name__)


def stage_paths(base: Path, output: Path, scratch: "ScratchSpace", sheet_count: int) -> list[tuple[Path, Path]]:
    """Input/output file pairs, one per stage."""
    intermediates = [scratch.path(f"excel-intermediate-{index}.xlsx") for index in range(sheet_count - 1)]
    inputs = [base] + intermediates
    outputs = intermediates + [output]
    return list(zip(inputs, outputs))


class StagePipeline:
    """Runs one merge stage per template sheet, in sheet order.

    Args:
        template: Fully loaded template workbook (read only).
        scratch: Open scratch space holding the intermediates.
        streaming_writer: Allow forward-only writers for formula-free sheets.
        evaluate_formulas: Recompute formulas of the finished output.
    """

    def __init__(
        self,
        template: "Workbook",
        scratch: "ScratchSpace",
        streaming_writer: bool = True,
        evaluate_formulas: bool = True,
    ):
        self.template = template
        self.scratch = scratch
        self.streaming_writer = streaming_writer
        self.evaluate_formulas = evaluate_formulas

    def run(self, base: Path, output: Path, replacements: "Replacements") -> list[SheetReport]:
        sheets = self.template.worksheets
        reports: list[SheetReport] = []
        formula_cells: dict[str, list[str]] = {}

        for index, (stage_input, stage_output) in enumerate(stage_paths(base, output, self.scratch, len(sheets))):
            src_sheet = sheets[index]
            report, coordinates = self.run_stage(index, src_sheet, stage_input, stage_output, replacements)
            reports.append(report)
            if coordinates:
                formula_cells[report.name] = coordinates
            if stage_input != base:
                stage_input.unlink()

        if self.evaluate_formulas and formula_cells:
            self.recompute(output, formula_cells, reports)
        return reports

    def run_stage(
        self,
        index: int,
        src_sheet: "Worksheet",
        stage_input: Path,
        stage_output: Path,
        replacements: "Replacements",
    ) -> tuple[SheetReport, list[str]]:
        row_map = replacements.rows_for(src_sheet.title, index)
        writer_cls = choose_writer(src_sheet, self.streaming_writer)
        logger.debug(
            "Stage %d sheet=%s writer=%s input=%s output=%s",
            index, src_sheet.title, writer_cls.kind, stage_input.name, stage_output.name,
        )

        try:
            with writer_cls(stage_input, index) as writer:
                result = merge_sheet(src_sheet, writer, row_map)
                coordinates = writer.finish(stage_output)
        except TemplateRenderError as e:
            raise e.locate(sheet=src_sheet.title)

        logger.info(
            "Merged sheet=%s writer=%s template_rows=%d rows_written=%d",
            src_sheet.title, writer.kind, result.template_rows, result.rows_written,
        )
        report = SheetReport(
            index=index,
            name=src_sheet.title,
            writer=writer.kind,
            template_rows=result.template_rows,
            rows_written=result.rows_written,
            merged_ranges=result.merged_ranges,
        )
        return report, coordinates

    def recompute(self, output: Path, formula_cells: dict[str, list[str]], reports: list[SheetReport]) -> None:
        """Compute formula values of the output and store them as cached values.

        A workbook xlcalculator cannot compile is left to recalculate on
        load; its formula values are reported as None.
        """
        try:
            evaluator = FormulaEvaluator(output)
        except FormulaEvaluationError as e:
            logger.warning("Skipping formula recomputation output=%s: %s", output.name, e.detail)
            values = {name: dict.fromkeys(coordinates) for name, coordinates in formula_cells.items()}
        else:
            values = {
                name: evaluator.evaluate_all(name, coordinates)
                for name, coordinates in formula_cells.items()
            }
            store_cached_values(output, values)

        for report in reports:
            report.formula_values = values.get(report.name, {})
