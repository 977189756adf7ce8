"""Per-page glue between decoding, OCR and classification."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Optional

from config import Settings
from .classifier import Classifier
from .logging_utils import ProcessingLogSink, get_logger
from .ocr_processor import OCRProcessor
from .pipeline import PageResult, RawPage
from .rules import ExtractionConfig

logger = get_logger(__name__)

_PREVIEW_LENGTH = 80


class PageExtractionCoordinator:
    """Decide how a page's text is obtained, classify it and record log entries."""

    def __init__(
        self,
        settings: Settings,
        extraction_config: ExtractionConfig,
        classifier: Classifier,
        ocr_processor: OCRProcessor,
        log_sink: ProcessingLogSink,
    ):
        self.settings = settings
        self.extraction_config = extraction_config
        self.classifier = classifier
        self.ocr_processor = ocr_processor
        self.log_sink = log_sink

    def should_ocr(self, page: RawPage) -> bool:
        if not page.has_image:
            return False
        if self.settings.ocr_policy == "always":
            return True
        return not page.is_searchable

    async def process_page(self, source_file: str, page: RawPage) -> Optional[PageResult]:
        """
        Produce the :class:`PageResult` for one page.

        Returns ``None`` when the page is skipped because only scanned pages are
        being processed. OCR runs in a worker thread and is awaited before the
        page is classified.
        """
        file_name = Path(source_file).name
        page_type = "searchable" if page.is_searchable else "scanned"

        if self.extraction_config.process_only_scanned_pages and page.is_searchable:
            self.log_sink.log(
                file_name,
                page.page_number,
                "skipped",
                "Skipped - text-searchable page (ProcessOnlyScannedPages enabled)",
                page_type=page_type,
            )
            return None

        preview = page.raw_text.strip().replace("\n", " ")[:_PREVIEW_LENGTH]
        self.log_sink.log(
            file_name,
            page.page_number,
            "debug",
            f"Searchable={page.is_searchable}, TextLength={page.text_length}, "
            f"HasImage={page.has_image}, Preview='{preview}'",
            page_type=page_type,
        )

        started = time.perf_counter()
        ocr_confidence: Optional[float] = None
        if self.should_ocr(page):
            logger.debug("Running OCR for page %s of %s", page.page_number, file_name)
            loop = asyncio.get_running_loop()
            ocr_result = await loop.run_in_executor(None, self.ocr_processor.recognize, page.image_bytes)
            text = ocr_result.text
            ocr_confidence = ocr_result.confidence
            confidence = ocr_result.confidence
        else:
            text = page.raw_text
            confidence = 0.0

        items = self.classifier.classify(text, confidence=_item_confidence(confidence))
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        result = PageResult(
            source_file=source_file,
            page_number=page.page_number,
            is_searchable=page.is_searchable,
            text=text,
            confidence=confidence,
            items=tuple(items),
        )

        self.log_sink.log(
            file_name,
            page.page_number,
            "success",
            f"Found {len(result.tags)} tags, {len(result.equipment)} equipment items in {elapsed_ms:.0f}ms",
            page_type=page_type,
            items_found=len(items),
        )
        if ocr_confidence is not None and ocr_confidence < self.extraction_config.min_ocr_confidence:
            self.log_sink.log(
                file_name,
                page.page_number,
                "warning",
                f"Low OCR confidence {ocr_confidence:.1f} "
                f"(minimum {self.extraction_config.min_ocr_confidence:.0f})",
                page_type=page_type,
                items_found=len(items),
            )
        return result


def _item_confidence(page_confidence: float) -> float:
    return min(max(page_confidence / 100.0, 0.0), 1.0)
