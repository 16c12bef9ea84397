"""Protocol definitions for pluggable analyzers."""

from .analyzer import AnalysisCheckpoint, LanguageAnalyzer

__all__ = ["AnalysisCheckpoint", "LanguageAnalyzer"]
