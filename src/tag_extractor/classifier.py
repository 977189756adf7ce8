"""Rule-based classification of page text into tags and equipment descriptions."""

from __future__ import annotations

import re
from typing import List, Optional, Set, Tuple

from .logging_utils import get_logger
from .pipeline import ClassifiedItem, EquipmentItem, TagItem
from .rules import ClassificationRule, RuleSet

logger = get_logger(__name__)

_LINE_BREAKS = re.compile(r"[\r\n]+")
_WHITESPACE = re.compile(r"\s+")
_CHUNK_DELIMITERS = re.compile(
    r"\||:|\bAPPLICATION\b|\bCOOLING METHOD\b|\s{2,}| - ",
    re.IGNORECASE,
)
_STRONG_IDENTIFIER = re.compile(
    r"EC-\w+-\d{6}|ES-\w+-\d{6}|ACS880-\d{2}-\d{4}-\d",
    re.IGNORECASE,
)
_DIGIT_RUN = re.compile(r"\d{3,}")
_DIGIT = re.compile(r"\d")
_PURE_NUMBER = re.compile(r"^\d+$")
_PAGE_REFERENCE = re.compile(r"^\d+\s+of\s+\d+$|^page\s+\d+$", re.IGNORECASE)
_PHRASE_WORDS = re.compile(
    r"\b(?:the|a|an|for|with|and|or|but|to|of|in|on|at|by|from"
    r"|shall|will|must|should|ensure|noted|please|provided|according|required"
    r"|than|then|when|where|which|who|that|this)\b",
    re.IGNORECASE,
)

_HEADER_INDICATORS = ("GA", "DRAWING", "PACKAGE")
_HEADER_MIN_LENGTH = 60
_MAX_EQUIPMENT_LENGTH = 100
_MIN_VALUE_LENGTH = 2

SKIP_WORDS = frozenset(
    {
        "THE", "AND", "OR", "FOR", "WITH", "TO", "OF", "IN", "ON", "AT", "BY", "FROM",
        "IS", "ARE", "WAS", "WERE", "BE", "BEEN", "HAVE", "HAS", "HAD", "DO", "DOES",
        "DID", "WILL", "WOULD", "COULD", "SHOULD", "MAY", "MIGHT", "CAN", "MUST", "SHALL",
    }
)


def normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


class _PageItems:
    """Ordered, page-local item collection; the first value seen per variant wins."""

    def __init__(self, confidence: float):
        self.confidence = confidence
        self.items: List[ClassifiedItem] = []
        self._tag_values: Set[str] = set()
        self._equipment_values: Set[str] = set()

    def add_tag(self, tag_type: str, value: str) -> None:
        value = normalize(value)
        if not self._acceptable(value):
            return
        key = value.casefold()
        if key in self._tag_values:
            logger.debug("Skipping duplicate tag '%s'", value)
            return
        self._tag_values.add(key)
        self.items.append(TagItem(type=tag_type, value=value, confidence=self.confidence))

    def add_equipment(self, value: str) -> None:
        value = normalize(value)
        if not self._acceptable(value):
            return
        key = value.casefold()
        if key in self._equipment_values:
            logger.debug("Skipping duplicate equipment '%s'", value)
            return
        self._equipment_values.add(key)
        self.items.append(EquipmentItem(value=value, confidence=self.confidence))

    @staticmethod
    def _acceptable(value: str) -> bool:
        return len(value) >= _MIN_VALUE_LENGTH and value.upper() not in SKIP_WORDS


class Classifier:
    """
    Turn raw page text into typed candidate matches.

    The classifier holds only an immutable :class:`RuleSet`, so one instance can
    be shared freely between pages, files and threads.
    """

    def __init__(self, rule_set: RuleSet):
        self.rule_set = rule_set

    def classify(self, text: Optional[str], confidence: float = 0.0) -> List[ClassifiedItem]:
        """
        Classify one page worth of text.

        Args:
            text: Native or OCR text for the page. Blank input yields no items.
            confidence: Value stamped on every produced item (0..1).

        Returns:
            Items in discovery order, deduplicated per variant within the page.
        """
        if not text or not text.strip():
            return []

        collected = _PageItems(confidence)
        for raw_line in _LINE_BREAKS.split(text):
            line = normalize(raw_line)
            if not line:
                continue
            if self.should_reject_line(line):
                logger.debug("Rejected line '%s'", line)
                continue
            for chunk in self.split_chunks(line):
                self._classify_chunk(chunk, collected)

        logger.debug("Classified %s items from %s characters", len(collected.items), len(text))
        return collected.items

    def should_reject_line(self, line: str) -> bool:
        """Return True for lines that are too short, look like headers, or contain a reject keyword."""
        if len(line) < _MIN_VALUE_LENGTH:
            return True

        upper = line.upper()
        is_header = (
            len(line) > _HEADER_MIN_LENGTH
            and any(indicator in upper for indicator in _HEADER_INDICATORS)
            and not _DIGIT_RUN.search(line)
        )
        has_reject_keyword = any(keyword in upper for keyword in self.rule_set.reject_keywords)
        if not (is_header or has_reject_keyword):
            return False
        return not _STRONG_IDENTIFIER.search(line)

    @staticmethod
    def split_chunks(line: str) -> List[str]:
        chunks = (normalize(part) for part in _CHUNK_DELIMITERS.split(line))
        return [chunk for chunk in chunks if chunk]

    @staticmethod
    def is_likely_phrase(text: str) -> bool:
        return bool(_PHRASE_WORDS.search(text))

    def is_equipment(self, chunk: str) -> bool:
        if len(chunk) > _MAX_EQUIPMENT_LENGTH or not _DIGIT.search(chunk):
            return False
        if _PURE_NUMBER.match(chunk) or self.is_likely_phrase(chunk):
            return False
        upper = chunk.upper()
        return any(keyword in upper for keyword in self.rule_set.equipment_keywords)

    def _is_candidate(self, chunk: str) -> bool:
        if len(chunk) < _MIN_VALUE_LENGTH:
            return False
        if _PAGE_REFERENCE.match(chunk) or _PURE_NUMBER.match(chunk):
            return False
        return not self.is_likely_phrase(chunk)

    def _classify_chunk(self, chunk: str, collected: _PageItems) -> None:
        chunk = normalize(chunk)
        if not self._is_candidate(chunk):
            return

        rule, value, span = self._match_rule(chunk)
        if rule is not None:
            collected.add_tag(rule.type, value)
            if span is not None:
                start, end = span
                for remainder in (chunk[:start], chunk[end:]):
                    self._classify_chunk(remainder, collected)
            return

        if self.is_equipment(chunk):
            collected.add_equipment(chunk)

    def _match_rule(
        self, chunk: str
    ) -> Tuple[Optional[ClassificationRule], str, Optional[Tuple[int, int]]]:
        """Full matches take precedence over partial ones; a partial match also returns its span."""
        for rule in self.rule_set.rules:
            if rule.pattern.fullmatch(chunk):
                return rule, chunk, None

        for rule in self.rule_set.rules:
            match = rule.pattern.search(chunk)
            if match and match.group(0).strip():
                return rule, match.group(0), match.span()

        return None, "", None
