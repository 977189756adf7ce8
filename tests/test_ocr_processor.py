"""Tests for OCR processing."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest
import pytesseract
from PIL import Image

from config import Settings
from src.tag_extractor.errors import OCRProcessingError
from src.tag_extractor.ocr_processor import OCRProcessor
from src.tag_extractor.pipeline import OCRWord


def _settings(tmp_path: Path, **overrides) -> Settings:
    settings = Settings(
        output_dir=tmp_path / "outputs",
        temp_dir=tmp_path / "tmp",
        log_level="DEBUG",
        **overrides,
    )
    settings.ensure_directories()
    return settings


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 32), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


def test_recognize_uses_tesseract_word_data(monkeypatch, tmp_path):
    settings = _settings(tmp_path)
    captured = {}

    def fake_image_to_data(image, config, output_type):
        captured["config"] = config
        return {
            "text": ["EC-EPE255-640052", "", "MOTOR", "5HP"],
            "conf": ["90", "-1", "80", "70"],
            "block_num": [1, 1, 1, 1],
            "par_num": [1, 1, 1, 1],
            "line_num": [1, 1, 2, 2],
        }

    monkeypatch.setattr("pytesseract.image_to_data", fake_image_to_data)

    result = OCRProcessor(settings).recognize(_png_bytes())

    assert result.text == "EC-EPE255-640052\nMOTOR 5HP"
    assert [word.text for word in result.words] == ["EC-EPE255-640052", "MOTOR", "5HP"]
    assert result.confidence == pytest.approx(80.0)
    assert captured["config"] == settings.tesseract_config
    assert "tessedit_char_whitelist" in captured["config"]


def test_recognize_returns_empty_result_when_tesseract_missing(monkeypatch, tmp_path, caplog):
    settings = _settings(tmp_path)

    def missing_binary(*args, **kwargs):
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr("pytesseract.image_to_data", missing_binary)

    with caplog.at_level(logging.WARNING):
        result = OCRProcessor(settings).recognize(_png_bytes())

    assert result.text == ""
    assert result.confidence == 0.0
    assert any("OCR failed" in record.message for record in caplog.records)


def test_recognize_handles_unreadable_image(tmp_path):
    settings = _settings(tmp_path)

    result = OCRProcessor(settings).recognize(b"not an image")

    assert result.text == ""
    assert result.confidence == 0.0


def test_recognize_without_image_bytes(tmp_path):
    processor = OCRProcessor(_settings(tmp_path))

    assert processor.recognize(None).text == ""
    assert processor.recognize(b"").confidence == 0.0


def test_custom_callable_without_word_confidences_uses_default(tmp_path):
    settings = _settings(tmp_path, ocr_backend="custom", ocr_default_confidence=77.0)

    def custom_callable(image):
        return "PUMP 12", []

    result = OCRProcessor(settings, custom_callable=custom_callable).recognize(_png_bytes())

    assert result.text == "PUMP 12"
    assert result.confidence == 77.0


def test_custom_callable_word_confidences_are_averaged(tmp_path):
    settings = _settings(tmp_path, ocr_backend="custom")

    def custom_callable(image):
        words = [OCRWord(text="FAN", confidence=50.0), OCRWord(text="9", confidence=70.0)]
        return "FAN 9", words

    result = OCRProcessor(settings, custom_callable=custom_callable).recognize(_png_bytes())

    assert result.confidence == pytest.approx(60.0)
    assert len(result.words) == 2


def test_failing_custom_callable_is_contained(tmp_path):
    settings = _settings(tmp_path, ocr_backend="custom")

    def custom_callable(image):
        raise RuntimeError("backend crashed")

    result = OCRProcessor(settings, custom_callable=custom_callable).recognize(_png_bytes())

    assert result.text == ""
    assert result.confidence == 0.0


def test_custom_backend_requires_handler(tmp_path):
    settings = _settings(tmp_path, ocr_backend="custom")

    with pytest.raises(OCRProcessingError):
        OCRProcessor(settings)


def _write_backend_module(tmp_path: Path, monkeypatch) -> str:
    module_dir = tmp_path / "backends"
    module_dir.mkdir()
    (module_dir / "tagex_fake_ocr_backend.py").write_text(
        "from src.tag_extractor.pipeline import OCRWord\n"
        "\n"
        "def recognize(image):\n"
        "    return \"EC-FAKE-000001\", [OCRWord(text=\"EC-FAKE-000001\", confidence=91.0)]\n",
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(module_dir))
    return "tagex_fake_ocr_backend"


def test_custom_handler_is_loaded_from_module_path(tmp_path, monkeypatch):
    module_name = _write_backend_module(tmp_path, monkeypatch)
    settings = _settings(
        tmp_path,
        ocr_backend="custom",
        ocr_custom_handler=f"{module_name}:recognize",
    )

    result = OCRProcessor(settings).recognize(_png_bytes())

    assert result.text == "EC-FAKE-000001"
    assert result.confidence == pytest.approx(91.0)


def test_custom_handler_path_must_name_a_function(tmp_path, monkeypatch):
    module_name = _write_backend_module(tmp_path, monkeypatch)
    settings = _settings(tmp_path, ocr_backend="custom", ocr_custom_handler=f"{module_name}:missing")

    with pytest.raises(OCRProcessingError):
        OCRProcessor(settings)
