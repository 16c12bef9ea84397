"""Shared plumbing for the language analyzers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator

import structlog
import tree_sitter

from ..interfaces.analyzer import AnalysisCheckpoint
from ..models.analysis import AnalyzerReport, DocumentMeta, LanguageFamily
from ..models.feature import DetectedFeature, FeatureType, Range, Severity
from ..utils.logging import LogEventNames
from .compatibility import CompatibilityDataService
from .errors import ErrorNormalizer
from .fallback import FallbackAnalyzer
from .parsing import Grammar, ParseFailure, ParseSuccess, parse
from .positions import SourceText

log = structlog.get_logger()

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

# Nodes visited between cancellation checks
CHECKPOINT_INTERVAL = 256


def walk_tree(
    root: tree_sitter.Node,
    task: AnalysisCheckpoint | None = None,
    skip_errors: bool = False,
) -> Iterator[tree_sitter.Node]:
    """Pre-order walk of a syntax tree, polling the checkpoint as it goes.

    With ``skip_errors`` ERROR subtrees are neither yielded nor entered.
    """
    stack = [root]
    visited = 0
    while stack:
        node = stack.pop()
        visited += 1
        if task is not None and visited % CHECKPOINT_INTERVAL == 0:
            task.checkpoint()
        if skip_errors and node.type == "ERROR":
            continue
        yield node
        stack.extend(reversed(node.children))


def content_size(content: str) -> int:
    """Size of document text in UTF-8 bytes."""
    return len(content.encode("utf-8"))


class BaseAnalyzer:
    """Common behavior: size gate, parse-or-fallback, feature construction.

    Subclasses set ``family``, ``feature_type`` and ``languages`` and
    implement ``walk``.
    """

    family: LanguageFamily
    feature_type: FeatureType
    languages: frozenset[str] = frozenset()

    def __init__(
        self,
        service: CompatibilityDataService,
        normalizer: ErrorNormalizer | None = None,
        fallback: FallbackAnalyzer | None = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        """Initialize the analyzer.

        Args:
            service: Ready compatibility data service used for every lookup
            normalizer: Error normalizer shared with the engine
            fallback: Degraded-mode analyzer used when parsing fails
            max_file_size: Content above this many bytes is not analyzed
        """
        self._service = service
        self._normalizer = normalizer or ErrorNormalizer()
        self._fallback = fallback or FallbackAnalyzer(service, self._normalizer)
        self._max_file_size = max_file_size

    @property
    def supported_languages(self) -> frozenset[str]:
        return self.languages

    def accepts(self, content: str) -> bool:
        """Whether content is non-empty and within the size ceiling."""
        if not content.strip():
            return False
        return content_size(content) <= self._max_file_size

    def grammar_for(self, meta: DocumentMeta) -> Grammar:
        raise NotImplementedError

    def recovery_for(self, meta: DocumentMeta) -> Callable[[str], bool] | None:
        """Check deciding whether a tree with syntax errors is still walked.

        None, the default, sends every such document to the fallback analyzer.
        """
        return None

    def walk(
        self,
        parsed: ParseSuccess,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None,
    ) -> list[DetectedFeature]:
        raise NotImplementedError

    def scan(
        self,
        content: str,
        meta: DocumentMeta,
        task: AnalysisCheckpoint | None = None,
    ) -> AnalyzerReport:
        if not self.accepts(content):
            return AnalyzerReport()

        source = SourceText(content)
        result = parse(source, self.grammar_for(meta), recover=self.recovery_for(meta))
        if isinstance(result, ParseFailure):
            log.debug(
                LogEventNames.PARSE_FAILED,
                file_name=meta.file_name,
                language_id=meta.language_id,
                reason=result.message,
            )
            return self._fallback.recover(source, meta, result)

        if result.recovered:
            log.debug(
                LogEventNames.PARSE_RECOVERED,
                file_name=meta.file_name,
                language_id=meta.language_id,
                error_regions=len(result.error_spans),
            )
        return AnalyzerReport(features=tuple(self.walk(result, meta, task)))

    async def analyze(self, content: str, meta: DocumentMeta) -> list[DetectedFeature]:
        report = await asyncio.to_thread(self.scan, content, meta)
        return list(report.features)

    # ------------------------------------------------------------------
    # Feature construction
    # ------------------------------------------------------------------

    def resolve(self, candidates: Iterable[str], curated_id: str | None = None) -> str | None:
        """Feature id for the first dataset key hit, else the curated id."""
        hit = self._service.resolve_first(candidates)
        if hit is not None:
            return hit[0]
        return curated_id

    def make_feature(
        self,
        feature_id: str,
        name: str,
        range_: Range,
        context: str,
        feature_type: FeatureType | None = None,
    ) -> DetectedFeature:
        status = self._service.status_for(feature_id)
        return DetectedFeature(
            id=feature_id,
            name=name,
            type=feature_type or self.feature_type,
            range=range_,
            baseline_status=status,
            context=context,
            severity=Severity.from_tier(status.status),
        )
