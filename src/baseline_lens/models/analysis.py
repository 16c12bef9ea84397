"""Data models for per-document analysis results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .feature import BaselineTier, DetectedFeature


class LanguageFamily(StrEnum):
    """Analyzer family a language id dispatches to."""

    CSS = "css"
    JAVASCRIPT = "javascript"
    HTML = "html"


LANGUAGE_FAMILIES: dict[str, LanguageFamily] = {
    "css": LanguageFamily.CSS,
    "scss": LanguageFamily.CSS,
    "sass": LanguageFamily.CSS,
    "less": LanguageFamily.CSS,
    "stylus": LanguageFamily.CSS,
    "postcss": LanguageFamily.CSS,
    "javascript": LanguageFamily.JAVASCRIPT,
    "typescript": LanguageFamily.JAVASCRIPT,
    "javascriptreact": LanguageFamily.JAVASCRIPT,
    "typescriptreact": LanguageFamily.JAVASCRIPT,
    "html": LanguageFamily.HTML,
    "htm": LanguageFamily.HTML,
    "xhtml": LanguageFamily.HTML,
    "vue": LanguageFamily.HTML,
    "svelte": LanguageFamily.HTML,
    "angular": LanguageFamily.HTML,
}


class ErrorKind(StrEnum):
    """Category of an analysis failure."""

    PARSING = "parsing"
    TIMEOUT = "timeout"
    DATA_LOAD = "data_load"
    CONFIGURATION = "configuration"
    FILE_SIZE = "file_size"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DocumentMeta:
    """Identity of the document being analyzed."""

    language_id: str
    file_name: str

    @property
    def family(self) -> LanguageFamily | None:
        """Analyzer family for this language id, or None when unsupported."""
        return LANGUAGE_FAMILIES.get(self.language_id.lower())


@dataclass(frozen=True)
class AnalysisError:
    """A failure reported as data rather than raised."""

    file: str
    error: str  # Human-readable message
    line: int | None = None
    column: int | None = None
    kind: ErrorKind = ErrorKind.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"file": self.file, "error": self.error, "kind": self.kind.value}
        if self.line is not None:
            data["line"] = self.line
        if self.column is not None:
            data["column"] = self.column
        return data


@dataclass(frozen=True)
class AnalyzerReport:
    """Output of a single analyzer run."""

    features: tuple[DetectedFeature, ...] = ()
    errors: tuple[AnalysisError, ...] = ()
    used_fallback: bool = False

    def merge(self, other: AnalyzerReport) -> AnalyzerReport:
        return AnalyzerReport(
            features=self.features + other.features,
            errors=self.errors + other.errors,
            used_fallback=self.used_fallback or other.used_fallback,
        )


@dataclass(frozen=True)
class DocumentAnalysis:
    """Assembled result for one document."""

    file_name: str
    language_id: str
    features: tuple[DetectedFeature, ...]
    errors: tuple[AnalysisError, ...] = ()
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "languageId": self.language_id,
            "features": [f.to_dict() for f in self.features],
            "errors": [e.to_dict() for e in self.errors],
            "durationMs": round(self.duration_ms, 3),
        }


class RiskLevel(StrEnum):
    """Project-level risk bucket for a detected feature."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_tier(cls, tier: BaselineTier) -> RiskLevel:
        if tier == BaselineTier.WIDELY_AVAILABLE:
            return cls.LOW
        if tier == BaselineTier.NEWLY_AVAILABLE:
            return cls.MEDIUM
        return cls.HIGH

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


@dataclass(frozen=True)
class ProjectSummary:
    """Aggregate counts over many document analyses."""

    total_files: int
    total_features: int
    unique_features: int
    by_tier: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
    risk_distribution: dict[str, int] = field(default_factory=dict)
    error_count: int = 0

    def has_risk(self, threshold: RiskLevel) -> bool:
        """Check whether any feature sits at or above a risk level."""
        return any(
            self.risk_distribution.get(level.value, 0) > 0
            for level in RiskLevel
            if level.rank >= threshold.rank
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "totalFeatures": self.total_features,
            "uniqueFeatures": self.unique_features,
            "byTier": dict(self.by_tier),
            "byType": dict(self.by_type),
            "riskDistribution": dict(self.risk_distribution),
            "errorCount": self.error_count,
        }
