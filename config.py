"""Project-level configuration helpers for the tag & equipment extractor."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

OCR_POLICIES = ("scanned_only", "always")
METADATA_FORMATS = ("json", "yaml", "none")


class Settings(BaseModel):
    """Runtime settings loaded from environment variables or defaults."""

    output_dir: Path = Field(default_factory=lambda: Path("outputs"))
    temp_dir: Path = Field(default_factory=lambda: Path("tmp"))
    rules_path: Optional[Path] = None
    process_only_scanned_pages: Optional[bool] = None
    min_ocr_confidence: Optional[float] = None
    log_level: str = "INFO"
    debug: bool = False
    ocr_backend: str = "tesseract"
    ocr_custom_handler: Optional[str] = None
    ocr_policy: str = "scanned_only"
    ocr_default_confidence: float = 80.0
    tesseract_config: str = (
        "--oem 3 --psm 6 -c tessedit_char_whitelist="
        "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz+-./:"
    )
    pdf_render_dpi: int = 200
    searchable_text_threshold: int = 50
    export_metadata_format: str = "json"
    export_include_log_sheet: bool = False
    export_write_text_log: bool = True

    @field_validator("ocr_policy")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        value = value.lower()
        if value not in OCR_POLICIES:
            raise ValueError(f"ocr_policy must be one of {OCR_POLICIES}, got '{value}'")
        return value

    @field_validator("export_metadata_format")
    @classmethod
    def _check_metadata_format(cls, value: str) -> str:
        value = value.lower()
        if value not in METADATA_FORMATS:
            raise ValueError(f"export_metadata_format must be one of {METADATA_FORMATS}, got '{value}'")
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings by reading ``TAGEX_``-prefixed environment variables."""
        defaults = cls()
        rules_path = os.getenv("TAGEX_RULES_PATH")
        env_overrides: Dict[str, Any] = {
            "output_dir": Path(os.getenv("TAGEX_OUTPUT_DIR", str(defaults.output_dir))),
            "temp_dir": Path(os.getenv("TAGEX_TEMP_DIR", str(defaults.temp_dir))),
            "rules_path": Path(rules_path) if rules_path else defaults.rules_path,
            "process_only_scanned_pages": _optional_bool(os.getenv("TAGEX_PROCESS_ONLY_SCANNED_PAGES")),
            "min_ocr_confidence": _optional_float(os.getenv("TAGEX_MIN_OCR_CONFIDENCE")),
            "log_level": os.getenv("TAGEX_LOG_LEVEL", defaults.log_level),
            "debug": _coerce_bool(os.getenv("TAGEX_DEBUG", str(defaults.debug))),
            "ocr_backend": os.getenv("TAGEX_OCR_BACKEND", defaults.ocr_backend),
            "ocr_custom_handler": os.getenv("TAGEX_OCR_CUSTOM_HANDLER", defaults.ocr_custom_handler),
            "ocr_policy": os.getenv("TAGEX_OCR_POLICY", defaults.ocr_policy),
            "ocr_default_confidence": float(
                os.getenv("TAGEX_OCR_DEFAULT_CONFIDENCE", defaults.ocr_default_confidence)
            ),
            "tesseract_config": os.getenv("TAGEX_TESSERACT_CONFIG", defaults.tesseract_config),
            "pdf_render_dpi": int(os.getenv("TAGEX_PDF_RENDER_DPI", defaults.pdf_render_dpi)),
            "searchable_text_threshold": int(
                os.getenv("TAGEX_SEARCHABLE_TEXT_THRESHOLD", defaults.searchable_text_threshold)
            ),
            "export_metadata_format": os.getenv(
                "TAGEX_EXPORT_METADATA_FORMAT", defaults.export_metadata_format
            ),
            "export_include_log_sheet": _coerce_bool(
                os.getenv("TAGEX_EXPORT_INCLUDE_LOG_SHEET", str(defaults.export_include_log_sheet))
            ),
            "export_write_text_log": _coerce_bool(
                os.getenv("TAGEX_EXPORT_WRITE_TEXT_LOG", str(defaults.export_write_text_log))
            ),
        }
        return cls(**env_overrides)

    def ensure_directories(self) -> None:
        """Create directories that the pipeline expects to exist."""
        for path in (self.output_dir, self.temp_dir):
            path.mkdir(parents=True, exist_ok=True)

    @property
    def upload_dir(self) -> Path:
        """Directory that stores PDFs received through the HTTP API."""
        return self.temp_dir / "uploads"


def _coerce_bool(value: str) -> bool:
    if isinstance(value, bool):
        return value
    return value.lower() in {"1", "true", "yes", "y"}


def _optional_bool(value: Optional[str]) -> Optional[bool]:
    if not value:
        return None
    return _coerce_bool(value)


def _optional_float(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    return float(value)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Return cached settings, raising a helpful error if validation fails."""
    try:
        settings = Settings.from_env()
        settings.ensure_directories()
        return settings
    except ValidationError as exc:
        raise RuntimeError(f"Invalid application configuration: {exc}") from exc
