"""Data models for detected web platform features."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class BaselineTier(StrEnum):
    """Baseline classification of a web platform feature."""

    WIDELY_AVAILABLE = "widely_available"
    NEWLY_AVAILABLE = "newly_available"
    LIMITED_AVAILABILITY = "limited_availability"


class Severity(StrEnum):
    """Diagnostic severity attached to a detected feature."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def from_tier(cls, tier: BaselineTier) -> Severity:
        """Map a baseline tier to its default severity."""
        if tier == BaselineTier.WIDELY_AVAILABLE:
            return cls.INFO
        if tier == BaselineTier.NEWLY_AVAILABLE:
            return cls.WARNING
        return cls.ERROR


class FeatureType(StrEnum):
    """Analyzer family that produced a detection."""

    CSS = "css"
    JAVASCRIPT = "javascript"
    HTML = "html"


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based line/character position in a document."""

    line: int
    character: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "character": self.character}


@dataclass(frozen=True, order=True)
class Range:
    """Half-open span between two positions."""

    start: Position
    end: Position

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, position: Position) -> bool:
        """Check whether a position falls inside this range."""
        return self.start <= position < self.end

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


@dataclass(frozen=True)
class BrowserSupport:
    """Support information for one browser."""

    version_added: str | None
    version_removed: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"version_added": self.version_added}
        if self.version_removed is not None:
            data["version_removed"] = self.version_removed
        if self.notes is not None:
            data["notes"] = self.notes
        return data


@dataclass(frozen=True)
class BaselineStatus:
    """Snapshot of a feature's compatibility classification.

    Snapshots are immutable; a detection keeps the status it was created with
    even if the dataset is later upgraded.
    """

    status: BaselineTier
    baseline_date: str | None = None
    high_date: str | None = None
    low_date: str | None = None
    support: dict[str, BrowserSupport] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "baseline_date": self.baseline_date,
            "high_date": self.high_date,
            "low_date": self.low_date,
            "support": {browser: s.to_dict() for browser, s in sorted(self.support.items())},
        }


@dataclass(frozen=True)
class DetectedFeature:
    """One occurrence of a web platform feature in source text."""

    id: str  # Dataset key, e.g. "grid"
    name: str  # Matched token, e.g. "display"
    type: FeatureType
    range: Range  # In the coordinate space of the outermost document
    baseline_status: BaselineStatus
    context: str  # e.g. "CSS property: display"
    severity: Severity

    @property
    def sort_key(self) -> tuple[int, int, Position, str]:
        return (
            self.range.start.line,
            self.range.start.character,
            self.range.end,
            self.id,
        )

    @property
    def dedupe_key(self) -> tuple[str, Range]:
        return (self.id, self.range)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the key names the editor integration expects."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "range": self.range.to_dict(),
            "baselineStatus": self.baseline_status.to_dict(),
            "context": self.context,
            "severity": self.severity.value,
        }
