"""Core detection and classification components.

This module exports the main engine classes:
- AnalysisEngine: Dispatches documents to analyzers and assembles results
- CompatibilityDataService: Indexed compatibility dataset
- CSSAnalyzer, JavaScriptAnalyzer, HTMLAnalyzer: Language analyzers
- FallbackAnalyzer: Regex detection used when parsing fails
- AnalysisGuard: Deadlines and the concurrency ceiling
- ErrorNormalizer: Converts failures into AnalysisError records
"""

from baseline_lens.core.compatibility import CompatibilityDataService
from baseline_lens.core.css_analyzer import CSSAnalyzer
from baseline_lens.core.engine import AnalysisEngine, summarize
from baseline_lens.core.errors import ErrorContext, ErrorNormalizer
from baseline_lens.core.fallback import FallbackAnalyzer
from baseline_lens.core.guard import AnalysisGuard, AnalysisTask, TaskState
from baseline_lens.core.html_analyzer import HTMLAnalyzer
from baseline_lens.core.js_analyzer import JavaScriptAnalyzer

__all__ = [
    "AnalysisEngine",
    "AnalysisGuard",
    "AnalysisTask",
    "CSSAnalyzer",
    "CompatibilityDataService",
    "ErrorContext",
    "ErrorNormalizer",
    "FallbackAnalyzer",
    "HTMLAnalyzer",
    "JavaScriptAnalyzer",
    "TaskState",
    "summarize",
]
