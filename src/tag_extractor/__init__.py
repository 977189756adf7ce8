"""Expose tag & equipment extractor core modules."""

from .pipeline import (
    ClassifiedItem,
    EquipmentItem,
    LogEntry,
    OCRResult,
    OCRWord,
    PageResult,
    RawPage,
    TagItem,
)
from .errors import (
    ConfigError,
    DecodeError,
    ExportError,
    ExtractionError,
    InputError,
    OCRProcessingError,
)
from .rules import ExtractionConfig, RuleSet, load_extraction_config, load_rule_set
from .classifier import Classifier
from .page_extractor import DocumentDecoder, PageExtractionError, PageExtractor
from .ocr_processor import OCRProcessor
from .page_coordinator import PageExtractionCoordinator
from .deduplicator import deduplicate
from .events import FileFinished, FileStarted, ProgressPercent, RunCompleted, RunState
from .exporter import ResultExporter
from .logging_utils import ProcessingLogSink
from .orchestrator import BatchCoordinator, BatchRun

__all__ = [
    "ClassifiedItem",
    "EquipmentItem",
    "LogEntry",
    "OCRResult",
    "OCRWord",
    "PageResult",
    "RawPage",
    "TagItem",
    "ConfigError",
    "DecodeError",
    "ExportError",
    "ExtractionError",
    "InputError",
    "OCRProcessingError",
    "ExtractionConfig",
    "RuleSet",
    "load_extraction_config",
    "load_rule_set",
    "Classifier",
    "DocumentDecoder",
    "PageExtractionError",
    "PageExtractor",
    "OCRProcessor",
    "PageExtractionCoordinator",
    "deduplicate",
    "FileFinished",
    "FileStarted",
    "ProgressPercent",
    "RunCompleted",
    "RunState",
    "ResultExporter",
    "ProcessingLogSink",
    "BatchCoordinator",
    "BatchRun",
]
