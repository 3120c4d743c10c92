"""Utilities for exporting captured column views to disk."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Dict

import pandas as pd
from openpyxl.worksheet.properties import Outline

from .capture import CaptureResult
from .config import OutputConfig

logger = logging.getLogger(__name__)

# Excel supports at most seven nested outline levels.
MAX_OUTLINE_LEVEL = 7


def capture_to_excel_bytes(
    capture: CaptureResult,
    sheet_name: str = "Column View",
    *,
    group_levels: bool = True,
) -> bytes:
    """Serialize ``capture`` to XLSX, grouping rows by their outline level."""

    frame = capture.to_frame()
    buffer = io.BytesIO()
    safe_sheet = sheet_name[:31] or "Data"
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, index=False, sheet_name=safe_sheet)
        if group_levels and capture.body_rows:
            worksheet = writer.book[safe_sheet]
            base = min(level for level, _ in capture.body_rows)
            for row_index, (level, _) in enumerate(capture.body_rows, start=2):
                depth = min(level - base, MAX_OUTLINE_LEVEL)
                if depth > 0:
                    worksheet.row_dimensions[row_index].outlineLevel = depth
            outline_pr = worksheet.sheet_properties.outlinePr
            if outline_pr is None:
                outline_pr = Outline()
            # Parents come before their children.
            outline_pr.summaryBelow = False
            outline_pr.summaryRight = True
            worksheet.sheet_properties.outlinePr = outline_pr
    buffer.seek(0)
    return buffer.getvalue()


def export_capture(capture: CaptureResult, output: OutputConfig) -> Dict[str, Path]:
    """Persist ``capture`` as CSV and XLSX reports in the output directory."""

    output_dir = output.directory
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Writing column view reports to %s", output_dir)

    paths: Dict[str, Path] = {}

    table_path = output_dir / output.table_report
    capture.to_frame().to_csv(table_path, index=False)
    paths["table"] = table_path

    workbook_path = output_dir / output.workbook_report
    workbook_path.write_bytes(capture_to_excel_bytes(capture, output.sheet_name))
    paths["workbook"] = workbook_path

    return paths


__all__ = ["capture_to_excel_bytes", "export_capture"]
