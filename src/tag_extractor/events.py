"""Run states, batch events and the observer dispatcher."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from .logging_utils import get_logger
from .pipeline import LogEntry, PageResult

logger = get_logger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.CANCELLED, RunState.FAILED)


@dataclass(frozen=True)
class FileStarted:
    name: str
    index: int
    total: int


@dataclass(frozen=True)
class FileFinished:
    name: str
    index: int
    total: int
    status: str
    error: Optional[str] = None


@dataclass(frozen=True)
class ProgressPercent:
    value: int


@dataclass(frozen=True)
class RunCompleted:
    """Terminal notification; exactly one is emitted per batch run."""

    success: bool
    message: str
    state: RunState
    results: List[PageResult] = field(default_factory=list)
    logs: List[LogEntry] = field(default_factory=list)
    output_path: Optional[Path] = None
    error: Optional[BaseException] = None


BatchEvent = Union[FileStarted, FileFinished, ProgressPercent, RunCompleted]
EventCallback = Callable[[BatchEvent], None]


class EventDispatcher:
    """
    Deliver events to registered observers in emission order.

    Observers run synchronously on the emitting thread and must return quickly.
    An observer that raises is logged and skipped so the run keeps going.
    """

    def __init__(self) -> None:
        self._subscribers: List[EventCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: BatchEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Event observer %r failed while handling %s", callback, type(event).__name__)
