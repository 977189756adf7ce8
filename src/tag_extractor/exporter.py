"""Write batch results to an Excel workbook plus optional sidecar files."""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
import yaml

from config import Settings
from .errors import ExportError
from .logging_utils import get_logger
from .pipeline import EQUIPMENT_TYPE, LogEntry, PageResult

logger = get_logger(__name__)

ITEM_HEADERS = ("source_file", "page", "type", "value", "confidence")
LOG_HEADERS = ("Timestamp", "File", "Page", "Type", "Items", "Status", "Message")
_MAX_COLUMN_WIDTH = 60


class ResultExporter:
    """Export deduplicated page results and processing logs."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @staticmethod
    def build_output_path(output_folder: Path, now: Optional[datetime] = None) -> Path:
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        return Path(output_folder) / f"ExtractionResults_{stamp}.xlsx"

    def export(
        self,
        output_path: Path,
        results: Sequence[PageResult],
        logs: Sequence[LogEntry] = (),
    ) -> Path:
        """
        Write the workbook and any configured sidecar files.

        Args:
            output_path: Destination ``.xlsx`` path; parent folders are created.
            results: Page results, already deduplicated.
            logs: Processing log entries for the optional log sheet and text log.

        Returns:
            The workbook path.

        Raises:
            ExportError: when any output file cannot be written.
        """
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            workbook = openpyxl.Workbook()
            workbook.remove(workbook.active)

            self._add_items_sheet(workbook, "Tags", self._tag_rows(results))
            self._add_items_sheet(workbook, "Equipment", self._equipment_rows(results))
            if self.settings.export_include_log_sheet:
                self._add_log_sheet(workbook, logs)
            workbook.save(output_path)

            metadata_path = self._write_metadata(output_path, results, logs)
            if metadata_path:
                logger.info("Run metadata written to %s", metadata_path)
            if self.settings.export_write_text_log:
                self.write_text_log(output_path.with_name(f"OCR_Processing_{_stamp_of(output_path)}.txt"), logs)
        except Exception as exc:  # pylint: disable=broad-except
            raise ExportError(f"Failed to export results to {output_path}: {exc}") from exc

        logger.info("Exported %s pages to %s", len(results), output_path)
        return output_path

    def write_text_log(self, path: Path, logs: Iterable[LogEntry]) -> Path:
        """Write a fixed-width, human-readable processing log report."""
        lines = [
            "OCR Processing Log",
            "==================",
            f"Generated: {datetime.now():%Y-%m-%d %H:%M:%S}",
            "",
            f"{'File':<25} | {'Page':>4} | {'Type':<11} | {'Items':>5} | {'Status':<7} | Message",
            f"{'-' * 25}-|------|-------------|-------|---------|---------",
        ]
        for entry in logs:
            lines.append(
                f"{entry.file_name:<25} | {entry.page_number:>4} | {entry.page_type:<11} | "
                f"{entry.items_found:>5} | {entry.status:<7} | {entry.message}"
            )
        path = Path(path)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info("Processing log written to %s", path)
        return path

    @staticmethod
    def _tag_rows(results: Sequence[PageResult]) -> List[List[Any]]:
        return [
            [result.source_file, result.page_number, tag.type, tag.value, round(tag.confidence, 4)]
            for result in results
            for tag in result.tags
        ]

    @staticmethod
    def _equipment_rows(results: Sequence[PageResult]) -> List[List[Any]]:
        return [
            [result.source_file, result.page_number, EQUIPMENT_TYPE, item.value, round(item.confidence, 4)]
            for result in results
            for item in result.equipment
        ]

    def _add_items_sheet(self, workbook, title: str, rows: List[List[Any]]) -> None:
        sheet = workbook.create_sheet(title)
        sheet.append(list(ITEM_HEADERS))
        for row in rows:
            sheet.append(row)
        self._style_header(sheet, PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid"))
        self._fit_columns(sheet, len(ITEM_HEADERS))

    def _add_log_sheet(self, workbook, logs: Sequence[LogEntry]) -> None:
        sheet = workbook.create_sheet("Processing Log")
        sheet.append(list(LOG_HEADERS))
        for entry in logs:
            sheet.append(
                [
                    entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                    entry.file_name,
                    entry.page_number,
                    entry.page_type,
                    entry.items_found,
                    entry.status,
                    entry.message,
                ]
            )
        self._style_header(sheet, PatternFill(start_color="FFFFE0", end_color="FFFFE0", fill_type="solid"))
        self._fit_columns(sheet, len(LOG_HEADERS))

    @staticmethod
    def _style_header(sheet, fill: PatternFill) -> None:
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = fill
        sheet.freeze_panes = "A2"

    @staticmethod
    def _fit_columns(sheet, num_columns: int) -> None:
        for col_num in range(1, num_columns + 1):
            column_letter = get_column_letter(col_num)
            max_length = max(
                (len(str(cell.value)) for cell in sheet[column_letter] if cell.value is not None),
                default=0,
            )
            sheet.column_dimensions[column_letter].width = min(max_length + 2, _MAX_COLUMN_WIDTH)

    def _write_metadata(
        self,
        workbook_path: Path,
        results: Sequence[PageResult],
        logs: Sequence[LogEntry],
    ) -> Optional[Path]:
        metadata_format = self.settings.export_metadata_format
        if metadata_format == "none":
            return None

        extension = ".yaml" if metadata_format == "yaml" else ".json"
        metadata_path = workbook_path.with_suffix(extension)
        status_counts = Counter(entry.status for entry in logs)
        data: Dict[str, Any] = {
            "workbook": str(workbook_path),
            "generated_at": datetime.now().isoformat(timespec="seconds"),
            "total_pages": len(results),
            "total_tags": sum(len(result.tags) for result in results),
            "total_equipment": sum(len(result.equipment) for result in results),
            "log_status_counts": dict(status_counts),
            "pages": [
                {
                    "source_file": result.source_file,
                    "page": result.page_number,
                    "page_type": result.page_type,
                    "confidence": result.confidence,
                    "tags": [{"type": tag.type, "value": tag.value} for tag in result.tags],
                    "equipment": [item.value for item in result.equipment],
                }
                for result in results
            ],
        }

        with metadata_path.open("w", encoding="utf-8") as handle:
            if metadata_format == "yaml":
                yaml.safe_dump(data, handle, sort_keys=False)
            else:
                json.dump(data, handle, indent=2)
        return metadata_path


def _stamp_of(workbook_path: Path) -> str:
    prefix = "ExtractionResults_"
    stem = workbook_path.stem
    if stem.startswith(prefix):
        return stem[len(prefix):]
    return datetime.now().strftime("%Y%m%d_%H%M%S")
