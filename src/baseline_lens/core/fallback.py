"""Regex-based degraded-mode detection.

Used when structural parsing fails, and over the regions of a recovered
stylesheet that the grammar could not structure. Each language family has
a table of high-confidence patterns; unknown language ids use a small
generic table.
Coverage is deliberately reduced: enough to keep a broken file annotated,
not a replacement for the tree walk.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

import structlog

from ..models.analysis import AnalysisError, AnalyzerReport, DocumentMeta, LanguageFamily
from ..models.feature import DetectedFeature, FeatureType, Severity
from ..utils.logging import LogEventNames
from ..utils.metrics import get_metrics
from .compatibility import CompatibilityDataService
from .errors import ErrorContext, ErrorNormalizer
from .parsing import ParseFailure
from .positions import SourceText

log = structlog.get_logger()


@dataclass(frozen=True)
class FallbackPattern:
    """One regex signature.

    When ``ids`` is set, the lowercased first group selects the feature id
    and ``feature_id`` is used for groups the mapping does not list.
    """

    pattern: re.Pattern[str]
    feature_id: str
    type: FeatureType
    ids: Mapping[str, str] = field(default_factory=dict)

    def resolve_id(self, match: re.Match[str]) -> str:
        if self.ids and match.groups():
            group = (match.group(1) or "").lower()
            return self.ids.get(group, self.feature_id)
        return self.feature_id


def _css(pattern: str, feature_id: str, flags: int = re.IGNORECASE) -> FallbackPattern:
    return FallbackPattern(re.compile(pattern, flags), feature_id, FeatureType.CSS)


def _js(pattern: str, feature_id: str, flags: int = 0) -> FallbackPattern:
    return FallbackPattern(re.compile(pattern, flags), feature_id, FeatureType.JAVASCRIPT)


def _html(
    pattern: str, feature_id: str, ids: Mapping[str, str] | None = None
) -> FallbackPattern:
    return FallbackPattern(
        re.compile(pattern, re.IGNORECASE), feature_id, FeatureType.HTML, ids or {}
    )


# Patterns never cross a line break so a match maps to a single-line range
CSS_PATTERNS: tuple[FallbackPattern, ...] = (
    _css(r"\bdisplay[ \t]*:[ \t]*(?:inline-)?grid\b|\bgrid-(?:template|area|column|row)\b", "grid"),
    _css(
        r"\bdisplay[ \t]*:[ \t]*(?:inline-)?flex\b"
        r"|\bflex-direction\b|\bjustify-content\b|\balign-items\b",
        "flexbox",
    ),
    _css(r"(?<![\w$@-])gap[ \t]*:", "gap"),
    _css(r"--[\w-]+[ \t]*:", "custom-properties", 0),
    _css(r"@container\b", "container-queries"),
    _css(r"@layer\b", "cascade-layers"),
    _css(r":has\(", "has"),
    _css(r":is\(", "is"),
    _css(r":where\(", "where"),
    _css(r":focus-visible\b", "focus-visible"),
    _css(r"\b(?:clamp|min|max)[ \t]*\(", "min-max-clamp"),
    _css(r"\baspect-ratio[ \t]*:", "aspect-ratio"),
    _css(r"\bcolor-mix[ \t]*\(", "color-mix"),
    _css(r"\bposition[ \t]*:[ \t]*sticky\b", "sticky-positioning"),
)

JS_PATTERNS: tuple[FallbackPattern, ...] = (
    _js(r"\b(?:const|let)\b", "let-const"),
    _js(r"=>", "arrow-functions"),
    _js(r"\bclass[ \t]+\w+", "class-syntax"),
    _js(r"\basync[ \t]+function\b|\basync[ \t]*\(", "async-await"),
    _js(r"\bawait\b", "async-await"),
    _js(r"\.\.\.\w+", "spread"),
    _js(r"\bfor[ \t]*\([ \t]*(?:const|let|var)?[ \t]*\w+[ \t]+of[ \t]", "for-of"),
    _js(r"\?\.", "optional-chaining"),
    _js(r"\?\?(?!=)", "nullish-coalescing"),
    _js(r"\bfetch[ \t]*\(", "fetch"),
    _js(r"\bnew[ \t]+Promise[ \t]*\(", "promise"),
    _js(r"\bnavigator\.serviceWorker\b", "service-workers"),
    _js(r"\bIntersectionObserver\b", "intersection-observer"),
    _js(r"\bResizeObserver\b", "resize-observer"),
    _js(r"\bMutationObserver\b", "mutationobserver"),
    _js(r"\bWebSocket\b", "websockets"),
    _js(r"\bgetUserMedia\b", "getusermedia"),
    _js(r"\bNotification\b", "notifications"),
    _js(r"\bnavigator\.geolocation\b", "geolocation"),
    _js(r"\.flatMap[ \t]*\(|\.flat[ \t]*\(", "array-flat"),
    _js(r"\bObject\.fromEntries\b", "object-fromentries"),
    _js(r"\.replaceAll[ \t]*\(", "string-replaceall"),
)

_INPUT_TYPE_IDS = {
    "color": "input-color",
    "date": "input-date-time",
    "datetime-local": "input-date-time",
    "month": "input-date-time",
    "time": "input-date-time",
    "week": "input-date-time",
    "range": "input-range",
    "search": "input-search",
    "email": "input-email-tel-url",
    "tel": "input-email-tel-url",
    "url": "input-email-tel-url",
    "number": "input-number",
}

HTML_PATTERNS: tuple[FallbackPattern, ...] = (
    _html(
        r"<(article|aside|figcaption|figure|footer|header|main|mark|nav|section|time)\b",
        "semantic-elements",
    ),
    _html(
        r"<(dialog|details|summary|picture|search|template|slot|canvas|video|audio)\b",
        "semantic-elements",
        {
            "dialog": "dialog",
            "details": "details",
            "summary": "details",
            "picture": "picture",
            "search": "search",
            "template": "template",
            "slot": "slot",
            "canvas": "canvas",
            "video": "video",
            "audio": "audio",
        },
    ),
    _html(
        r"\btype[ \t]*=[ \t]*[\"']?"
        r"(color|datetime-local|date|month|week|time|range|search|email|tel|url|number)\b",
        "input-date-time",
        _INPUT_TYPE_IDS,
    ),
    _html(r"\bloading[ \t]*=[ \t]*[\"']?lazy\b", "loading-lazy"),
    _html(r"\bpopover(?:target)?\b", "popover"),
    _html(r"\binert\b", "inert"),
    _html(r"\bcontenteditable\b", "contenteditable"),
    _html(r"\bdraggable\b", "drag-and-drop"),
    _html(r"\brole[ \t]*=|\baria-[\w-]+", "aria-attributes"),
)

GENERIC_PATTERNS: tuple[FallbackPattern, ...] = (
    _js(r"\bfetch[ \t]*\(", "fetch"),
    _js(r"\basync\b[^\n]*\bawait\b", "async-await"),
    _css(r"\bdisplay[ \t]*:[ \t]*grid\b", "grid"),
    _css(r"\bdisplay[ \t]*:[ \t]*flex\b", "flexbox"),
)

FAMILY_PATTERNS: dict[LanguageFamily, tuple[FallbackPattern, ...]] = {
    LanguageFamily.CSS: CSS_PATTERNS,
    LanguageFamily.JAVASCRIPT: JS_PATTERNS,
    LanguageFamily.HTML: HTML_PATTERNS,
}


class FallbackAnalyzer:
    """Pattern-matching detector for documents that failed to parse.

    Example:
        fallback = FallbackAnalyzer(service, normalizer)
        report = fallback.recover(text, meta, failure)
        report.errors  # exactly one parsing error
    """

    def __init__(
        self,
        service: CompatibilityDataService,
        normalizer: ErrorNormalizer | None = None,
    ) -> None:
        self._service = service
        self._normalizer = normalizer or ErrorNormalizer()

    def detect(
        self,
        text: str | SourceText,
        family: LanguageFamily | None,
        spans: Iterable[tuple[int, int]] | None = None,
    ) -> list[DetectedFeature]:
        """Run the pattern table for a family over raw text.

        Unknown families use the generic table. Positions are zero-based in
        the text's own coordinate space.

        Args:
            text: Text to search
            family: Selects the pattern table
            spans: Character ranges to search, e.g. the unparsed regions of a
                recovered tree. The whole text when omitted.
        """
        source = text if isinstance(text, SourceText) else SourceText(text)
        patterns = FAMILY_PATTERNS.get(family, GENERIC_PATTERNS) if family else GENERIC_PATTERNS
        prefix = "Fallback detection" if family else "Generic fallback detection"

        regions = list(spans) if spans is not None else [(0, len(source.text))]
        features: list[DetectedFeature] = []
        for entry in patterns:
            for start, end in regions:
                features.extend(self._matches(entry, source, start, end, prefix))
        return features

    def _matches(
        self,
        entry: FallbackPattern,
        source: SourceText,
        start: int,
        end: int,
        prefix: str,
    ) -> Iterator[DetectedFeature]:
        for match in entry.pattern.finditer(source.text, start, end):
            token = match.group(0)
            feature_id = entry.resolve_id(match)
            status = self._service.status_for(feature_id)
            yield DetectedFeature(
                id=feature_id,
                name=token.strip(),
                type=entry.type,
                range=source.range_at(match.start(), match.end()),
                baseline_status=status,
                context=f"{prefix}: {token}",
                severity=Severity.from_tier(status.status),
            )

    def recover(
        self,
        text: str | SourceText,
        meta: DocumentMeta,
        failure: ParseFailure,
    ) -> AnalyzerReport:
        """Degraded analysis of a document whose parse failed.

        Never raises. The report always carries exactly one error: the
        original parse failure.
        """
        source = text if isinstance(text, SourceText) else SourceText(text)
        context = ErrorContext(
            file_name=meta.file_name,
            language_id=meta.language_id,
            file_size=len(source.data),
            operation="fallback_analysis",
        )
        error: AnalysisError = self._normalizer.handle_parsing_error(failure, context)
        family = meta.family
        get_metrics().fallback_invocations.inc(
            labels={"family": family.value if family else "generic"}
        )
        log.info(
            LogEventNames.FALLBACK_ANALYSIS,
            file_name=meta.file_name,
            language_id=meta.language_id,
            reason=failure.message,
        )

        try:
            features = self.detect(source, family)
        except Exception as e:
            log.error(
                LogEventNames.FALLBACK_FAILED,
                file_name=meta.file_name,
                error=str(e),
                cause=failure.message,
            )
            return AnalyzerReport(errors=(error,), used_fallback=True)

        return AnalyzerReport(features=tuple(features), errors=(error,), used_fallback=True)
