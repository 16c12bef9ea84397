"""Baseline browser-compatibility detection for CSS, JavaScript and HTML."""

from baseline_lens._version import __version__
from baseline_lens.core import AnalysisEngine, CompatibilityDataService
from baseline_lens.models import DetectedFeature, DocumentAnalysis, DocumentMeta

__all__ = [
    "AnalysisEngine",
    "CompatibilityDataService",
    "DetectedFeature",
    "DocumentAnalysis",
    "DocumentMeta",
    "__version__",
]
