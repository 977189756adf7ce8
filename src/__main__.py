"""Command-line interface entry point for the tag & equipment extractor."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Iterable, List

from config import load_settings
from src.tag_extractor.errors import ConfigError, InputError
from src.tag_extractor.events import BatchEvent, FileFinished, FileStarted, RunState
from src.tag_extractor.logging_utils import configure_logging, get_logger
from src.tag_extractor.orchestrator import BatchCoordinator
from src.tag_extractor.rules import load_extraction_config


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tag-extractor",
        description="Extract equipment tags and equipment descriptions from engineering PDFs.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (default comes from TAGEX_LOG_LEVEL).",
    )
    parser.add_argument("--show-settings", action="store_true", help="Print runtime settings and exit.")
    parser.add_argument(
        "-i",
        "--input",
        nargs="+",
        help="PDF files or folders containing PDFs to process, in order.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Folder for the results workbook (defaults to TAGEX_OUTPUT_DIR).",
    )
    parser.add_argument("-c", "--config", help="YAML rule file overriding the built-in rules.")
    parser.add_argument(
        "--scanned-only",
        action="store_true",
        help="Skip pages that already carry searchable text.",
    )
    return parser.parse_args(argv)


def collect_inputs(values: Iterable[str]) -> List[Path]:
    """Expand folders into their PDF files, keeping the given order."""
    paths: List[Path] = []
    for value in values:
        path = Path(value)
        if path.is_dir():
            paths.extend(sorted(candidate for candidate in path.iterdir() if candidate.suffix.lower() == ".pdf"))
        else:
            paths.append(path)
    return paths


def _console_observer(logger: logging.Logger):
    def observe(event: BatchEvent) -> None:
        if isinstance(event, FileStarted):
            logger.info("[%s/%s] Processing %s", event.index, event.total, event.name)
        elif isinstance(event, FileFinished) and event.error:
            logger.warning("[%s/%s] %s failed: %s", event.index, event.total, event.name, event.error)

    return observe


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()

    if args.log_level:
        settings.log_level = args.log_level

    configure_logging(settings, force=True)
    logger = get_logger(__name__)
    logger.info("Tag extractor CLI ready.")

    if args.show_settings:
        logger.info("Active settings: %s", settings.model_dump())
        if not args.input:
            return 0

    if args.config:
        settings.rules_path = Path(args.config)
    if args.output:
        settings.output_dir = Path(args.output)
    settings.ensure_directories()

    if not args.input:
        logger.error("No input PDF provided. Use --input to specify files or folders.")
        return 1

    paths = collect_inputs(args.input)
    if not paths:
        logger.error("No PDF files found in the given input folders.")
        return 1

    try:
        extraction_config = load_extraction_config(settings.rules_path).with_overrides(
            process_only_scanned_pages=True if args.scanned_only else settings.process_only_scanned_pages,
            min_ocr_confidence=settings.min_ocr_confidence,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    coordinator = BatchCoordinator(settings, extraction_config=extraction_config)
    coordinator.subscribe(_console_observer(logger))

    completion = coordinator.run(paths, settings.output_dir)

    if completion.state is RunState.FAILED:
        if isinstance(completion.error, InputError):
            logger.error("Invalid input: %s", completion.message)
            return 1
        logger.error("Extraction failed: %s", completion.message)
        return 2

    logger.info(completion.message)
    tag_count = sum(len(result.tags) for result in completion.results)
    equipment_count = sum(len(result.equipment) for result in completion.results)
    logger.info("Tags: %s, equipment items: %s", tag_count, equipment_count)
    if completion.output_path:
        logger.info("Results written to %s", completion.output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
