"""Core data models shared across the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import ClassVar, Iterable, List, Optional, Tuple, Union

LOG_STATUSES = ("success", "warning", "error", "skipped", "debug")
EQUIPMENT_TYPE = "EQUIP"


@dataclass(frozen=True)
class RawPage:
    """A decoded document page before classification."""

    page_number: int
    is_searchable: bool
    raw_text: str = ""
    image_bytes: Optional[bytes] = field(default=None, repr=False)

    @property
    def text_length(self) -> int:
        return len(self.raw_text.strip())

    @property
    def has_image(self) -> bool:
        return bool(self.image_bytes)


@dataclass(frozen=True)
class TagItem:
    """Identifier matched by a configured classification rule."""

    type: str
    value: str
    confidence: float = 0.0


@dataclass(frozen=True)
class EquipmentItem:
    """Free-text equipment description recognised by keyword heuristics."""

    value: str
    confidence: float = 0.0
    type: ClassVar[str] = EQUIPMENT_TYPE


ClassifiedItem = Union[TagItem, EquipmentItem]


@dataclass(frozen=True)
class PageResult:
    """Classification output for a single page of a source document."""

    source_file: str
    page_number: int
    is_searchable: bool
    text: str = ""
    confidence: float = 0.0
    items: Tuple[ClassifiedItem, ...] = ()

    @property
    def tags(self) -> List[TagItem]:
        return [item for item in self.items if isinstance(item, TagItem)]

    @property
    def equipment(self) -> List[EquipmentItem]:
        return [item for item in self.items if isinstance(item, EquipmentItem)]

    @property
    def page_type(self) -> str:
        return "searchable" if self.is_searchable else "scanned"

    def with_items(self, items: Iterable[ClassifiedItem]) -> "PageResult":
        """Return a copy of the page carrying ``items`` instead of the current ones."""
        return replace(self, items=tuple(items))


@dataclass(frozen=True)
class LogEntry:
    """Single user-visible processing log record."""

    file_name: str
    page_number: int
    status: str
    message: str
    page_type: str = ""
    items_found: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if self.status not in LOG_STATUSES:
            raise ValueError(f"Unknown log status '{self.status}'. Expected one of {LOG_STATUSES}.")


@dataclass
class OCRWord:
    """A single OCR-recognized word with its layout position."""

    text: str
    confidence: float
    block: int = 0
    paragraph: int = 0
    line: int = 0


@dataclass
class OCRResult:
    """OCR output for a page image; confidence is on the 0..100 scale."""

    text: str
    confidence: float = 0.0
    words: List[OCRWord] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "OCRResult":
        return cls(text="", confidence=0.0)
