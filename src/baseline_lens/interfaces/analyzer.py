"""Abstract interface for language analyzers."""

from typing import Protocol

from ..models.analysis import AnalyzerReport, DocumentMeta
from ..models.feature import DetectedFeature


class AnalysisCheckpoint(Protocol):
    """Cooperative cancellation point handed to analyzers by the guard."""

    def checkpoint(self) -> None:
        """
        Raise AnalysisCancelledError if the analysis was cancelled, or
        TimeoutError once it is past its deadline.

        Called from worker threads at safe points of the tree walk.
        """
        ...


class LanguageAnalyzer(Protocol):
    """Abstract interface for language analyzers.

    This protocol defines the contract that the CSS, JavaScript and HTML
    analyzers implement. The engine dispatches to analyzers by language
    family and never relies on their concrete types.
    """

    def scan(
        self,
        content: str,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None = None,
    ) -> AnalyzerReport:
        """
        Analyze a document synchronously.

        Parse failures are recovered through the fallback analyzer and
        reported in the returned report; this method does not raise for
        malformed input.

        Args:
            content: Full document text
            meta: Language id and file name of the document
            task: Optional cancellation checkpoint polled during the walk

        Returns:
            Detected features and any analysis errors

        Raises:
            AnalysisCancelledError: If the checkpoint reports cancellation
        """
        ...

    async def analyze(self, content: str, meta: DocumentMeta) -> list[DetectedFeature]:
        """
        Analyze a document off the event loop.

        Args:
            content: Full document text
            meta: Language id and file name of the document

        Returns:
            Detected features; empty for oversized or empty content
        """
        ...

    @property
    def supported_languages(self) -> frozenset[str]:
        """
        Return the language ids this analyzer handles.

        Examples:
            - {"css", "scss", "less"}
            - {"javascript", "typescriptreact"}
        """
        ...
