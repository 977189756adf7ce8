"""Cross-batch merge of classified items."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .logging_utils import get_logger
from .pipeline import ClassifiedItem, PageResult, TagItem

logger = get_logger(__name__)

PageKey = Tuple[str, int]
_Winner = Tuple[int, PageKey, ClassifiedItem]


def deduplicate(results: Sequence[PageResult]) -> List[PageResult]:
    """
    Keep one item per identity across every page of a batch.

    Tags are identified by ``(type, value)`` and equipment by ``value``, both
    compared case-insensitively. A later duplicate replaces the retained item
    only when its confidence is strictly higher. The surviving items are
    regrouped into one :class:`PageResult` per contributing page, in the order
    the pages first appeared; pages left without items are dropped.
    """
    pages: Dict[PageKey, PageResult] = {}
    tags: Dict[Tuple[str, str], _Winner] = {}
    equipment: Dict[str, _Winner] = {}

    sequence = 0
    for result in results:
        key = (result.source_file, result.page_number)
        pages.setdefault(key, result)
        for item in result.items:
            winners = tags if isinstance(item, TagItem) else equipment
            identity = _identity(item)
            current = winners.get(identity)
            if current is None or item.confidence > current[2].confidence:
                winners[identity] = (sequence, key, item)
            sequence += 1

    grouped: Dict[PageKey, List[ClassifiedItem]] = {}
    for _, key, item in sorted([*tags.values(), *equipment.values()], key=lambda winner: winner[0]):
        grouped.setdefault(key, []).append(item)

    merged = [pages[key].with_items(grouped[key]) for key in pages if key in grouped]
    logger.info(
        "Deduplicated %s pages into %s pages (%s tags, %s equipment items)",
        len(results),
        len(merged),
        len(tags),
        len(equipment),
    )
    return merged


def _identity(item: ClassifiedItem):
    if isinstance(item, TagItem):
        return (item.type, item.value.casefold())
    return item.value.casefold()
