"""Batch orchestration: drives files and pages through extraction, merge and export."""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from config import Settings, load_settings
from .classifier import Classifier
from .deduplicator import deduplicate
from .errors import InputError
from .events import (
    BatchEvent,
    EventCallback,
    EventDispatcher,
    FileFinished,
    FileStarted,
    ProgressPercent,
    RunCompleted,
    RunState,
)
from .exporter import ResultExporter
from .logging_utils import ProcessingLogSink, get_logger
from .ocr_processor import OCRProcessor
from .page_coordinator import PageExtractionCoordinator
from .page_extractor import PageExtractor
from .pipeline import PageResult
from .rules import ExtractionConfig, load_extraction_config

logger = get_logger(__name__)


@dataclass
class BatchRun:
    """Mutable state owned by a single batch run."""

    total_files: int = 0
    processed_files: int = 0
    total_pages: int = 0
    processed_pages: int = 0
    results: List[PageResult] = field(default_factory=list)
    logs: ProcessingLogSink = field(default_factory=ProcessingLogSink)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    progress: int = 0


class BatchCoordinator:
    """
    Run one batch of PDFs through decoding, classification, merge and export.

    A coordinator moves through ``IDLE -> RUNNING`` and ends in exactly one of
    ``COMPLETED``, ``CANCELLED`` or ``FAILED``. It owns its :class:`BatchRun`
    and cannot be started twice; create a new instance for every batch.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        extraction_config: Optional[ExtractionConfig] = None,
        page_extractor: Optional[PageExtractor] = None,
        ocr_processor: Optional[OCRProcessor] = None,
        classifier: Optional[Classifier] = None,
        exporter: Optional[ResultExporter] = None,
        deduplicator: Callable[[Sequence[PageResult]], List[PageResult]] = deduplicate,
    ):
        self.settings = settings or load_settings()
        if extraction_config is None:
            extraction_config = load_extraction_config(self.settings.rules_path).with_overrides(
                process_only_scanned_pages=self.settings.process_only_scanned_pages,
                min_ocr_confidence=self.settings.min_ocr_confidence,
            )
        self.extraction_config = extraction_config

        self.page_extractor = page_extractor or PageExtractor(self.settings)
        self.ocr_processor = ocr_processor or OCRProcessor(self.settings)
        self.classifier = classifier or Classifier(self.extraction_config.rule_set())
        self.exporter = exporter or ResultExporter(self.settings)
        self.deduplicator = deduplicator

        self.run_state = BatchRun()
        self.state = RunState.IDLE
        self.completion: Optional[RunCompleted] = None
        self._events = EventDispatcher()
        self.page_coordinator = PageExtractionCoordinator(
            self.settings,
            self.extraction_config,
            self.classifier,
            self.ocr_processor,
            self.run_state.logs,
        )

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        return self._events.subscribe(callback)

    def cancel(self) -> None:
        """Request cooperative cancellation; safe to call from any thread, any number of times."""
        if self.state.is_terminal:
            logger.debug("Ignoring cancellation of a %s run", self.state.value)
            return
        if not self.run_state.cancel_event.is_set():
            logger.info("Cancellation requested")
        self.run_state.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.run_state.cancel_event.is_set()

    def run(self, file_paths: Iterable[Path], output_folder: Optional[Path] = None) -> RunCompleted:
        """Synchronous wrapper around :meth:`start` for scripts and the CLI."""
        return asyncio.run(self.start(file_paths, output_folder))

    async def start(
        self,
        file_paths: Iterable[Path],
        output_folder: Optional[Path] = None,
    ) -> RunCompleted:
        """
        Process ``file_paths`` in order and return the terminal event.

        Args:
            file_paths: PDF files to process.
            output_folder: Where the workbook is written; defaults to
                ``settings.output_dir``.

        Returns:
            The :class:`RunCompleted` event that was also sent to observers.
        """
        if self.state is not RunState.IDLE:
            raise RuntimeError("BatchCoordinator can only be started once; create a new instance per batch.")

        paths = [Path(path) for path in (file_paths or [])]
        if not paths:
            return self._finish(
                RunState.COMPLETED,
                success=True,
                message="No PDF files found in the input folder",
            )

        try:
            self._validate_inputs(paths)
        except InputError as exc:
            logger.error("Invalid batch input: %s", exc)
            return self._finish(RunState.FAILED, success=False, message=str(exc), error=exc)

        run = self.run_state
        run.total_files = len(paths)
        self.state = RunState.RUNNING
        started = time.perf_counter()
        logger.info("Starting batch of %s files", run.total_files)

        try:
            for index, path in enumerate(paths, start=1):
                if self.cancelled:
                    break
                await self._process_file(path, index)
                if not self.cancelled:
                    self._report_progress(index / run.total_files * 100)

            if self.cancelled:
                return self._finish(
                    RunState.CANCELLED,
                    success=False,
                    message=(
                        f"Batch processing cancelled after {run.processed_files} of {run.total_files} files. "
                        f"{len(run.results)} pages retained."
                    ),
                )

            merged = self.deduplicator(run.results)
            output_path = ResultExporter.build_output_path(Path(output_folder or self.settings.output_dir))
            output_path = self.exporter.export(output_path, merged, run.logs.entries())
            run.logs.log("Batch Processing", 0, "success", f"Results exported to: {output_path}")

            duration = time.perf_counter() - started
            return self._finish(
                RunState.COMPLETED,
                success=True,
                message=(
                    f"Batch processing completed. {len(merged)} pages processed "
                    f"in {duration:.2f} seconds."
                ),
                results=merged,
                output_path=output_path,
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Batch processing failed")
            return self._finish(
                RunState.FAILED,
                success=False,
                message=f"Batch processing failed: {exc}",
                error=exc,
            )

    async def _process_file(self, path: Path, index: int) -> None:
        run = self.run_state
        name = path.name
        self._emit(FileStarted(name=name, index=index, total=run.total_files))

        file_results: List[PageResult] = []
        stopped_early = False
        try:
            pages = self.page_extractor.decode(path)
            run.total_pages += len(pages)
            for page_offset, page in enumerate(pages, start=1):
                if self.cancelled:
                    stopped_early = True
                    break
                result = await self.page_coordinator.process_page(str(path), page)
                if result is not None:
                    file_results.append(result)
                run.processed_pages += 1
                file_share = page_offset / len(pages)
                self._report_progress(((index - 1) + file_share) / run.total_files * 100)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Processing %s failed: %s", name, exc)
            run.logs.log(name, 0, "error", f"File processing failed: {exc}")
            self._emit(FileFinished(name=name, index=index, total=run.total_files, status="Error", error=str(exc)))
            return

        if stopped_early:
            if file_results:
                run.logs.log(
                    name,
                    0,
                    "warning",
                    f"Cancelled mid-file; discarded {len(file_results)} partial page results",
                )
            self._emit(FileFinished(name=name, index=index, total=run.total_files, status="Cancelled"))
            return

        run.results.extend(file_results)
        run.processed_files += 1
        self._emit(FileFinished(name=name, index=index, total=run.total_files, status="Complete"))

    @staticmethod
    def _validate_inputs(paths: Sequence[Path]) -> None:
        missing = [str(path) for path in paths if not path.is_file()]
        if missing:
            raise InputError(f"Input files not found: {', '.join(missing)}")

    def _report_progress(self, percent: float) -> None:
        value = max(int(min(max(percent, 0.0), 100.0)), self.run_state.progress)
        self.run_state.progress = value
        self._emit(ProgressPercent(value=value))

    def _emit(self, event: BatchEvent) -> None:
        self._events.emit(event)

    def _finish(
        self,
        state: RunState,
        *,
        success: bool,
        message: str,
        results: Optional[List[PageResult]] = None,
        output_path: Optional[Path] = None,
        error: Optional[BaseException] = None,
    ) -> RunCompleted:
        self.state = state
        completion = RunCompleted(
            success=success,
            message=message,
            state=state,
            results=list(self.run_state.results if results is None else results),
            logs=self.run_state.logs.entries(),
            output_path=output_path,
            error=error,
        )
        self.completion = completion
        logger.info("Batch run %s: %s", state.value, message)
        self._emit(completion)
        return completion
