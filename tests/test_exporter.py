"""Tests for workbook and sidecar export."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import openpyxl
import pytest
import yaml

from config import Settings
from src.tag_extractor.errors import ExportError
from src.tag_extractor.exporter import ITEM_HEADERS, LOG_HEADERS, ResultExporter
from src.tag_extractor.pipeline import EquipmentItem, LogEntry, PageResult, TagItem


def _settings(tmp_path: Path, **overrides) -> Settings:
    return Settings(output_dir=tmp_path / "out", temp_dir=tmp_path / "tmp", **overrides)


def _results():
    return [
        PageResult(
            source_file="/data/a.pdf",
            page_number=1,
            is_searchable=False,
            text="EC-EPE255-640052 MOTOR 5HP",
            confidence=90.0,
            items=(TagItem("TAG", "EC-EPE255-640052", 0.9), EquipmentItem("MOTOR 5HP", 0.9)),
        ),
        PageResult(
            source_file="/data/b.pdf",
            page_number=3,
            is_searchable=True,
            text="ACS880-01-0012-3",
            confidence=0.0,
            items=(TagItem("MODEL", "ACS880-01-0012-3", 0.0),),
        ),
    ]


def _logs():
    return [
        LogEntry("a.pdf", 1, "success", "Found 1 tags, 1 equipment items in 5ms", "scanned", 2),
        LogEntry("b.pdf", 0, "error", "File processing failed: boom"),
    ]


def test_build_output_path_uses_timestamp(tmp_path):
    path = ResultExporter.build_output_path(tmp_path, datetime(2024, 3, 5, 14, 7, 9))

    assert path == tmp_path / "ExtractionResults_20240305_140709.xlsx"


def test_export_writes_tags_and_equipment_sheets(tmp_path):
    exporter = ResultExporter(_settings(tmp_path, export_metadata_format="none", export_write_text_log=False))
    output = tmp_path / "out" / "ExtractionResults_20240101_000000.xlsx"

    written = exporter.export(output, _results(), _logs())

    assert written == output
    workbook = openpyxl.load_workbook(output)
    assert workbook.sheetnames == ["Tags", "Equipment"]

    tag_rows = list(workbook["Tags"].iter_rows(values_only=True))
    assert tag_rows[0] == ITEM_HEADERS
    assert tag_rows[1:] == [
        ("/data/a.pdf", 1, "TAG", "EC-EPE255-640052", 0.9),
        ("/data/b.pdf", 3, "MODEL", "ACS880-01-0012-3", 0),
    ]

    equipment_rows = list(workbook["Equipment"].iter_rows(values_only=True))
    assert equipment_rows[1:] == [("/data/a.pdf", 1, "EQUIP", "MOTOR 5HP", 0.9)]
    assert not list(tmp_path.glob("out/*.json"))
    assert not list(tmp_path.glob("out/*.txt"))


def test_export_with_log_sheet_metadata_and_text_log(tmp_path):
    exporter = ResultExporter(
        _settings(
            tmp_path,
            export_include_log_sheet=True,
            export_metadata_format="json",
            export_write_text_log=True,
        )
    )
    output = tmp_path / "out" / "ExtractionResults_20240101_120000.xlsx"

    exporter.export(output, _results(), _logs())

    workbook = openpyxl.load_workbook(output)
    assert workbook.sheetnames == ["Tags", "Equipment", "Processing Log"]
    log_rows = list(workbook["Processing Log"].iter_rows(values_only=True))
    assert log_rows[0] == LOG_HEADERS
    assert log_rows[1][1:] == ("a.pdf", 1, "scanned", 2, "success", "Found 1 tags, 1 equipment items in 5ms")

    metadata = json.loads(output.with_suffix(".json").read_text(encoding="utf-8"))
    assert metadata["total_pages"] == 2
    assert metadata["total_tags"] == 2
    assert metadata["total_equipment"] == 1
    assert metadata["log_status_counts"] == {"success": 1, "error": 1}

    text_log = (tmp_path / "out" / "OCR_Processing_20240101_120000.txt").read_text(encoding="utf-8")
    assert text_log.startswith("OCR Processing Log")
    assert "File processing failed: boom" in text_log


def test_export_yaml_metadata(tmp_path):
    exporter = ResultExporter(_settings(tmp_path, export_metadata_format="yaml", export_write_text_log=False))
    output = tmp_path / "out" / "results.xlsx"

    exporter.export(output, _results(), [])

    metadata = yaml.safe_load(output.with_suffix(".yaml").read_text(encoding="utf-8"))
    assert metadata["pages"][0]["tags"] == [{"type": "TAG", "value": "EC-EPE255-640052"}]
    assert metadata["pages"][0]["equipment"] == ["MOTOR 5HP"]


def test_export_empty_results_still_writes_headers(tmp_path):
    exporter = ResultExporter(_settings(tmp_path, export_metadata_format="none", export_write_text_log=False))
    output = tmp_path / "out" / "empty.xlsx"

    exporter.export(output, [], [])

    workbook = openpyxl.load_workbook(output)
    assert list(workbook["Tags"].iter_rows(values_only=True)) == [ITEM_HEADERS]


def test_export_failure_raises_export_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    exporter = ResultExporter(_settings(tmp_path))

    with pytest.raises(ExportError):
        exporter.export(blocker / "results.xlsx", _results(), _logs())
