"""Analysis engine: dispatch, guarding and result assembly.

This module implements the AnalysisEngine that sits between callers (the
command line, an editor integration) and the language analyzers. It:
- Resolves a document's language id to the analyzers that handle it
- Applies the size ceiling before any parsing happens
- Runs the analyzers on a worker thread inside the timeout guard
- Converts every failure into an ``AnalysisError`` through the normalizer
- Merges, de-duplicates and orders the detections of one document
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Iterable, Sequence

import structlog

from ..config.schema import BaselineLensConfig
from ..models.analysis import (
    AnalysisError,
    AnalyzerReport,
    DocumentAnalysis,
    DocumentMeta,
    LanguageFamily,
    ProjectSummary,
    RiskLevel,
)
from ..models.feature import DetectedFeature
from ..utils.async_helpers import AnalysisCancelledError, DataLoadError, TimeoutError
from ..utils.logging import LogEventNames, bind_context, unbind_context
from ..utils.metrics import Timer, get_metrics
from .base_analyzer import BaseAnalyzer, content_size
from .compatibility import CompatibilityDataService
from .css_analyzer import CSSAnalyzer
from .errors import ErrorContext, ErrorNormalizer
from .fallback import FallbackAnalyzer
from .guard import AnalysisGuard, AnalysisTask
from .html_analyzer import HTMLAnalyzer
from .js_analyzer import JavaScriptAnalyzer
from .positions import compute_line_starts

log = structlog.get_logger()


def assemble(features: Iterable[DetectedFeature]) -> tuple[DetectedFeature, ...]:
    """Drop exact ``(id, range)`` duplicates and order by source position."""
    seen: set[tuple] = set()
    unique: list[DetectedFeature] = []
    for feature in features:
        key = feature.dedupe_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(feature)
    return tuple(sorted(unique, key=lambda f: f.sort_key))


def in_bounds(feature: DetectedFeature, line_starts: tuple[int, ...], length: int) -> bool:
    """Whether a detection's range lies inside the document."""
    for position in (feature.range.start, feature.range.end):
        if position.line < 0 or position.line >= len(line_starts) or position.character < 0:
            return False
        if position.line + 1 < len(line_starts):
            line_end = line_starts[position.line + 1]
        else:
            line_end = length + 1
        if line_starts[position.line] + position.character >= line_end:
            return False
    return True


def summarize(analyses: Sequence[DocumentAnalysis]) -> ProjectSummary:
    """Aggregate per-document results into project-level counts.

    Args:
        analyses: Results of ``analyze_document``

    Returns:
        Totals, per-tier and per-type breakdowns and the risk distribution
    """
    features = [feature for analysis in analyses for feature in analysis.features]
    by_tier = Counter(f.baseline_status.status.value for f in features)
    by_type = Counter(f.type.value for f in features)
    risk = Counter(RiskLevel.from_tier(f.baseline_status.status).value for f in features)
    return ProjectSummary(
        total_files=len(analyses),
        total_features=len(features),
        unique_features=len({f.id for f in features}),
        by_tier=dict(by_tier),
        by_type=dict(by_type),
        risk_distribution={level.value: risk.get(level.value, 0) for level in RiskLevel},
        error_count=sum(len(analysis.errors) for analysis in analyses),
    )


class AnalysisEngine:
    """Runs the language analyzers over documents.

    The engine owns one analyzer per family, all sharing the data service,
    the error normalizer and the fallback analyzer. Analyses of different
    documents may run concurrently up to the guard's ceiling; one document
    is always analyzed sequentially.

    Example:
        service = CompatibilityDataService()
        engine = AnalysisEngine(service, config)
        await engine.initialize()
        result = await engine.analyze_document(".c{display:flex}", DocumentMeta("css", "a.css"))
    """

    def __init__(
        self,
        service: CompatibilityDataService,
        config: BaselineLensConfig | None = None,
        normalizer: ErrorNormalizer | None = None,
        guard: AnalysisGuard | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            service: Compatibility data service shared by every analyzer
            config: Application configuration
            normalizer: Error normalizer. Created from ``config.errors`` when omitted.
            guard: Timeout guard. Created from ``config.timeouts`` when omitted.
        """
        self._config = config or BaselineLensConfig()
        self._service = service
        self._normalizer = normalizer or ErrorNormalizer(self._config.errors.max_recent_errors)
        self._guard = guard or AnalysisGuard(self._config.timeouts)

        max_size = self._config.limits.max_file_size
        enabled = self._config.analyzers
        fallback = FallbackAnalyzer(service, self._normalizer)
        self._css = CSSAnalyzer(service, self._normalizer, fallback, max_size)
        self._js = JavaScriptAnalyzer(service, self._normalizer, fallback, max_size)
        self._html = HTMLAnalyzer(
            service,
            self._normalizer,
            fallback,
            max_size,
            css_analyzer=self._css if enabled.css else None,
            js_analyzer=self._js if enabled.javascript else None,
        )

        # Family -> analyzers, resolved once per document
        script_analyzers: list[BaseAnalyzer] = []
        if enabled.javascript:
            script_analyzers.append(self._js)
        if enabled.css_in_js:
            script_analyzers.append(self._css)
        self._dispatch: dict[LanguageFamily, tuple[BaseAnalyzer, ...]] = {
            LanguageFamily.CSS: (self._css,) if enabled.css else (),
            LanguageFamily.JAVASCRIPT: tuple(script_analyzers),
            LanguageFamily.HTML: (self._html,) if enabled.html else (),
        }

    @property
    def service(self) -> CompatibilityDataService:
        return self._service

    @property
    def normalizer(self) -> ErrorNormalizer:
        return self._normalizer

    @property
    def guard(self) -> AnalysisGuard:
        return self._guard

    async def initialize(self) -> None:
        """Load the compatibility dataset.

        Raises:
            DataLoadError: If neither the configured nor the built-in dataset loads
        """
        try:
            await self._service.initialize()
        except DataLoadError as e:
            self._normalizer.handle_data_load_error(e, ErrorContext(operation="initialize"))
            raise

    def analyzers_for(self, meta: DocumentMeta) -> tuple[BaseAnalyzer, ...]:
        """Analyzers that handle a document; empty for unknown or disabled families."""
        family = meta.family
        if family is None:
            return ()
        return self._dispatch[family]

    async def analyze_document(self, content: str, meta: DocumentMeta) -> DocumentAnalysis:
        """Analyze one document.

        Never raises for per-document failures: timeouts, cancellation and
        unexpected analyzer errors come back as ``AnalysisError`` entries.

        Args:
            content: Full document text
            meta: Language id and file name

        Returns:
            The document's ordered detections and errors
        """
        metrics = get_metrics()
        empty = DocumentAnalysis(
            file_name=meta.file_name, language_id=meta.language_id, features=()
        )

        analyzers = self.analyzers_for(meta)
        if not analyzers:
            reason = "unsupported" if meta.family is None else "disabled"
            metrics.documents_skipped.inc(labels={"reason": reason})
            log.debug(
                LogEventNames.DOCUMENT_SKIPPED,
                file_name=meta.file_name,
                language_id=meta.language_id,
                reason=reason,
            )
            return empty

        size = content_size(content)
        context = ErrorContext(
            file_name=meta.file_name,
            language_id=meta.language_id,
            file_size=size,
            operation=f"{meta.family}_analysis",
        )
        if size > self._config.limits.max_file_size:
            # Counted and logged, but an oversized document reports no error
            self._normalizer.handle_file_size_error(context)
            metrics.documents_skipped.inc(labels={"reason": "oversized"})
            return empty
        if not content.strip():
            return empty

        bind_context(file_name=meta.file_name, language_id=meta.language_id)
        log.debug(LogEventNames.DOCUMENT_ANALYSIS_START, file_size=size)
        try:
            with Timer(metrics.analysis_duration, labels={"family": str(meta.family)}) as timer:
                report = await self._run_guarded(content, meta, analyzers, context)
        finally:
            unbind_context("file_name", "language_id")

        line_starts = compute_line_starts(content)
        features = assemble(f for f in report.features if in_bounds(f, line_starts, len(content)))

        metrics.documents_analyzed.inc(labels={"family": str(meta.family)})
        for feature in features:
            metrics.features_detected.inc(labels={"type": feature.type.value})
        log.info(
            LogEventNames.DOCUMENT_ANALYSIS_COMPLETE,
            file_name=meta.file_name,
            features=len(features),
            errors=len(report.errors),
            used_fallback=report.used_fallback,
            duration_ms=round(timer.elapsed * 1000, 2),
        )
        return DocumentAnalysis(
            file_name=meta.file_name,
            language_id=meta.language_id,
            features=features,
            errors=report.errors,
            duration_ms=timer.elapsed * 1000,
        )

    async def analyze(self, content: str, meta: DocumentMeta) -> list[DetectedFeature]:
        """Detections only, for callers that do not need the error channel."""
        analysis = await self.analyze_document(content, meta)
        return list(analysis.features)

    async def analyze_many(
        self, documents: Iterable[tuple[str, DocumentMeta]]
    ) -> list[DocumentAnalysis]:
        """Analyze documents concurrently, bounded by the guard's ceiling.

        Results come back in input order.
        """
        return list(
            await asyncio.gather(
                *(self.analyze_document(content, meta) for content, meta in documents)
            )
        )

    def summarize(self, analyses: Sequence[DocumentAnalysis]) -> ProjectSummary:
        return summarize(analyses)

    def error_snapshot(self) -> dict[str, dict[str, int]]:
        """Counts of handled errors by kind."""
        return self._normalizer.snapshot()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run_guarded(
        self,
        content: str,
        meta: DocumentMeta,
        analyzers: tuple[BaseAnalyzer, ...],
        context: ErrorContext,
    ) -> AnalyzerReport:
        try:
            return await self._guard.execute_with_timeout(
                lambda task: asyncio.to_thread(self._scan, content, meta, analyzers, task, context),
                context,
            )
        except TimeoutError as e:
            return AnalyzerReport(errors=(self._normalizer.handle_timeout_error(context, e),))
        except AnalysisCancelledError as e:
            return AnalyzerReport(errors=(self._normalizer.handle_cancellation(context, e),))

    def _scan(
        self,
        content: str,
        meta: DocumentMeta,
        analyzers: tuple[BaseAnalyzer, ...],
        task: AnalysisTask,
        context: ErrorContext,
    ) -> AnalyzerReport:
        report = AnalyzerReport()
        for analyzer in analyzers:
            task.checkpoint()
            try:
                report = report.merge(analyzer.scan(content, meta, task))
            except (AnalysisCancelledError, TimeoutError):
                raise
            except Exception as e:
                log.exception(
                    LogEventNames.ANALYZER_FAILED,
                    analyzer=type(analyzer).__name__,
                    file_name=meta.file_name,
                )
                error: AnalysisError = self._normalizer.handle_unknown_error(e, context)
                report = report.merge(AnalyzerReport(errors=(error,)))
        return report
