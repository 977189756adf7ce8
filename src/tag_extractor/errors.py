"""Exception hierarchy for the tag & equipment extractor."""

from __future__ import annotations


class ExtractionError(RuntimeError):
    """Base class for every failure raised by the extraction pipeline."""


class ConfigError(ExtractionError):
    """Raised when the rule file or runtime configuration is invalid."""


class InputError(ExtractionError):
    """Raised when a batch is started with unusable input paths."""


class DecodeError(ExtractionError):
    """Raised when a document cannot be opened or rendered."""


class OCRProcessingError(ExtractionError):
    """Raised inside the OCR boundary; never escapes ``OCRProcessor.recognize``."""


class ExportError(ExtractionError):
    """Raised when results cannot be written to the output workbook."""
