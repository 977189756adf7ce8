"""Rule file loading and compilation for the classifier."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Pattern, Sequence, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .logging_utils import get_logger

logger = get_logger(__name__)


class PatternDefinition(BaseModel):
    """One named regular expression and the tag type it produces."""

    name: str = Field(min_length=1)
    type: str = Field(default="TAG", min_length=1)
    regex: str = Field(min_length=1)


class OCRThresholds(BaseModel):
    min_confidence: float = Field(default=60.0, ge=0.0, le=100.0)


class ExtractionConfig(BaseModel):
    """Validated contents of a rule file."""

    process_only_scanned_pages: bool = False
    ocr: OCRThresholds = Field(default_factory=OCRThresholds)
    patterns: List[PatternDefinition] = Field(default_factory=list)
    equipment_keywords: List[str] = Field(default_factory=list)
    reject_lines: List[str] = Field(default_factory=list)

    @field_validator("equipment_keywords", "reject_lines")
    @classmethod
    def _strip_keywords(cls, values: List[str]) -> List[str]:
        return [value.strip() for value in values if value and value.strip()]

    @property
    def min_ocr_confidence(self) -> float:
        return self.ocr.min_confidence

    def rule_set(self) -> "RuleSet":
        return RuleSet.from_definitions(self.patterns, self.equipment_keywords, self.reject_lines)

    def with_overrides(
        self,
        *,
        process_only_scanned_pages: Optional[bool] = None,
        min_ocr_confidence: Optional[float] = None,
    ) -> "ExtractionConfig":
        """Return a copy with any non-``None`` override applied."""
        config = self
        if process_only_scanned_pages is not None:
            config = config.model_copy(update={"process_only_scanned_pages": process_only_scanned_pages})
        if min_ocr_confidence is not None:
            config = config.model_copy(
                update={"ocr": OCRThresholds(min_confidence=min_ocr_confidence)}
            )
        return config


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    type: str
    pattern: Pattern[str]


@dataclass(frozen=True)
class RuleSet:
    """Immutable, compiled view of the classification rules."""

    rules: Tuple[ClassificationRule, ...]
    equipment_keywords: FrozenSet[str] = frozenset()
    reject_keywords: FrozenSet[str] = frozenset()

    @classmethod
    def from_definitions(
        cls,
        patterns: Sequence[PatternDefinition],
        equipment_keywords: Iterable[str] = (),
        reject_lines: Iterable[str] = (),
    ) -> "RuleSet":
        """Compile ``patterns`` in order; a malformed regex raises :class:`ConfigError`."""
        if not patterns:
            raise ConfigError("Rule configuration must define at least one pattern.")

        rules: List[ClassificationRule] = []
        for definition in patterns:
            try:
                compiled = re.compile(definition.regex, re.IGNORECASE)
            except re.error as exc:
                raise ConfigError(
                    f"Invalid regex for pattern '{definition.name}': {exc}"
                ) from exc
            rules.append(ClassificationRule(definition.name, definition.type.upper(), compiled))

        return cls(
            rules=tuple(rules),
            equipment_keywords=frozenset(word.upper() for word in equipment_keywords),
            reject_keywords=frozenset(word.upper() for word in reject_lines),
        )


def default_extraction_config() -> ExtractionConfig:
    """Built-in rules used when no rule file is configured."""
    return ExtractionConfig(
        patterns=[
            PatternDefinition(name="EC Tag", type="TAG", regex=r"EC-[A-Z0-9]+-\d{6}"),
            PatternDefinition(name="ES Tag", type="TAG", regex=r"ES-[A-Z0-9]+-\d{6}"),
            PatternDefinition(name="ACS880 Drive", type="MODEL", regex=r"ACS880-\d{2}-\d{3,4}[A-Z]?-\d"),
            PatternDefinition(
                name="Instrument Tag",
                type="INSTRUMENT",
                regex=r"\b(?:FT|PT|TT|LT|FIT|PIT|TIT|LIT)-\d{3,5}[A-Z]?\b",
            ),
        ],
        equipment_keywords=[
            "MOTOR",
            "PUMP",
            "FAN",
            "BLOWER",
            "COMPRESSOR",
            "DRIVE",
            "VFD",
            "TRANSFORMER",
            "HEATER",
            "VALVE",
            "CONVEYOR",
            "PANEL",
        ],
        reject_lines=["DRAWN BY", "CHECKED BY", "APPROVED BY", "REVISION", "TITLE BLOCK"],
    )


def load_extraction_config(path: Optional[Path] = None) -> ExtractionConfig:
    """
    Load and validate a YAML rule file.

    Args:
        path: Location of the rule file. ``None`` selects the built-in defaults.

    Returns:
        The validated configuration; its patterns are compiled once here so that
        malformed rules fail at load time rather than during classification.
    """
    if path is None:
        config = default_extraction_config()
        config.rule_set()
        return config

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Rule file not found: {path}") from exc
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read rule file {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"Rule file {path} must contain a mapping at the top level.")

    try:
        config = ExtractionConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid rule file {path}: {exc}") from exc

    config.rule_set()
    logger.info(
        "Loaded %s patterns, %s equipment keywords and %s reject keywords from %s",
        len(config.patterns),
        len(config.equipment_keywords),
        len(config.reject_lines),
        path,
    )
    return config


def load_rule_set(path: Optional[Path] = None) -> RuleSet:
    return load_extraction_config(path).rule_set()
