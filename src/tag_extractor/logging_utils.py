"""Logging helpers and the processing log sink for the extraction pipeline."""

from __future__ import annotations

import logging
import sys
import threading
from typing import List, Optional

from config import Settings
from .pipeline import LogEntry

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_STATUS_LEVELS = {
    "success": logging.INFO,
    "skipped": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "debug": logging.DEBUG,
}


def configure_logging(settings: Settings, *, force: bool = False) -> None:
    """Configure root logging handlers and levels using provided settings."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handlers = [logging.StreamHandler(sys.stdout)]
    logging.basicConfig(level=level, handlers=handlers, format=_LOG_FORMAT, force=force)
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger instance, initializing basic config if needed."""
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            handlers=[logging.StreamHandler(sys.stdout)],
            format=_LOG_FORMAT,
        )
    return logging.getLogger(name or "tag_extractor")


class ProcessingLogSink:
    """
    Append-only, thread-safe collection of :class:`LogEntry` records.

    Each appended entry is also mirrored to the ``tag_extractor.processing``
    logger at a level derived from its status. Entries keep the order in which
    ``append`` was called, including across threads.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()
        self._logger = logger or get_logger("tag_extractor.processing")

    def append(self, entry: LogEntry) -> LogEntry:
        with self._lock:
            self._entries.append(entry)
            self._logger.log(
                _STATUS_LEVELS[entry.status],
                "%s | page %s | %s | %s",
                entry.file_name,
                entry.page_number,
                entry.status,
                entry.message,
            )
        return entry

    def log(
        self,
        file_name: str,
        page_number: int,
        status: str,
        message: str,
        *,
        page_type: str = "",
        items_found: int = 0,
    ) -> LogEntry:
        """Build a :class:`LogEntry` from the arguments and append it."""
        return self.append(
            LogEntry(
                file_name=file_name,
                page_number=page_number,
                status=status,
                message=message,
                page_type=page_type,
                items_found=items_found,
            )
        )

    def entries(self) -> List[LogEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
