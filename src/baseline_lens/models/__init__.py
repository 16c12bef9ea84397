"""Data models and transfer objects."""

from .analysis import (
    LANGUAGE_FAMILIES,
    AnalysisError,
    AnalyzerReport,
    DocumentAnalysis,
    DocumentMeta,
    ErrorKind,
    LanguageFamily,
    ProjectSummary,
    RiskLevel,
)
from .compat import CacheStats, FeatureRecord, WebFeature, WebFeatureDetails
from .feature import (
    BaselineStatus,
    BaselineTier,
    BrowserSupport,
    DetectedFeature,
    FeatureType,
    Position,
    Range,
    Severity,
)

__all__ = [
    # Feature models
    "BaselineTier",
    "BaselineStatus",
    "BrowserSupport",
    "DetectedFeature",
    "FeatureType",
    "Position",
    "Range",
    "Severity",
    # Dataset models
    "CacheStats",
    "FeatureRecord",
    "WebFeature",
    "WebFeatureDetails",
    # Analysis models
    "LANGUAGE_FAMILIES",
    "AnalysisError",
    "AnalyzerReport",
    "DocumentAnalysis",
    "DocumentMeta",
    "ErrorKind",
    "LanguageFamily",
    "ProjectSummary",
    "RiskLevel",
]
