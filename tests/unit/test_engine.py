"""Tests for the analysis engine."""

import time
from unittest.mock import patch

import pytest

from baseline_lens.config.schema import (
    AnalyzersConfig,
    BaselineLensConfig,
    LimitsConfig,
    TimeoutConfig,
)
from baseline_lens.core.compatibility import CompatibilityDataService
from baseline_lens.core.engine import AnalysisEngine, assemble, in_bounds, summarize
from baseline_lens.core.errors import ErrorNormalizer
from baseline_lens.core.guard import AnalysisTask
from baseline_lens.core.positions import compute_line_starts
from baseline_lens.models.analysis import AnalyzerReport, DocumentMeta, ErrorKind, RiskLevel
from baseline_lens.models.feature import (
    BaselineStatus,
    BaselineTier,
    DetectedFeature,
    FeatureType,
    Position,
    Range,
    Severity,
)
from baseline_lens.utils.metrics import get_metrics

CSS = DocumentMeta(language_id="css", file_name="styles.css")
JS = DocumentMeta(language_id="javascript", file_name="app.js")
HTML = DocumentMeta(language_id="html", file_name="index.html")


def make_feature(feature_id: str, line: int, start: int, end: int) -> DetectedFeature:
    return DetectedFeature(
        id=feature_id,
        name=feature_id,
        type=FeatureType.CSS,
        range=Range(Position(line, start), Position(line, end)),
        baseline_status=BaselineStatus(status=BaselineTier.WIDELY_AVAILABLE),
        context=f"CSS property: {feature_id}",
        severity=Severity.INFO,
    )


class TestScenarios:
    """End-to-end detection through the engine."""

    async def test_css(self, engine: AnalysisEngine) -> None:
        """Test flexbox and gap in order with info severity for flexbox."""
        result = await engine.analyze_document(".c{display:flex;gap:1rem}", CSS)

        assert [f.id for f in result.features] == ["flexbox", "gap"]
        assert result.features[0].name == "display"
        assert result.features[0].severity == Severity.INFO
        assert result.errors == ()
        assert result.file_name == "styles.css"
        assert result.duration_ms >= 0

    async def test_js_ordered_by_position(self, engine: AnalysisEngine) -> None:
        """Test detections come back in source order."""
        result = await engine.analyze_document("const x = a?.b ?? c;", JS)
        assert [f.id for f in result.features] == ["optional-chaining", "nullish-coalescing"]

    async def test_css_in_js(self, engine: AnalysisEngine) -> None:
        """Test JavaScript documents are also scanned for CSS-in-JS."""
        result = await engine.analyze_document("const Box = styled.div`display:flex;`;", JS)

        flexbox = [f for f in result.features if f.id == "flexbox"]
        assert len(flexbox) == 1
        assert "CSS-in-JS" in flexbox[0].context
        assert flexbox[0].range.start == Position(0, 23)

    async def test_html(self, engine: AnalysisEngine) -> None:
        """Test HTML documents dispatch to the HTML analyzer."""
        features = await engine.analyze("<dialog></dialog>", HTML)
        assert [f.id for f in features] == ["dialog"]

    async def test_builtin_dataset(self, builtin_service: CompatibilityDataService) -> None:
        """Test the packaged dataset classifies the core features."""
        engine = AnalysisEngine(builtin_service)

        css = await engine.analyze(".c{display:flex;gap:1rem}", CSS)
        assert css[0].id == "flexbox"
        assert css[0].severity == Severity.INFO
        assert css[1].id

        has = await engine.analyze(".c:has(.x){color:red}", CSS)
        assert [f.id for f in has] == ["has"]

        js = await engine.analyze("const x = a?.b ?? c;", JS)
        assert {"optional-chaining", "nullish-coalescing"} <= {f.id for f in js}

        html = await engine.analyze("<dialog></dialog>", HTML)
        assert [f.id for f in html] == ["dialog"]

    async def test_html_fragment(self, engine: AnalysisEngine) -> None:
        """Test unclosed markup is analyzed without a parsing error."""
        result = await engine.analyze_document(
            "<div>\n<dialog></dialog>\n<style>.a{display:grid}</style>\n<span>", HTML
        )

        assert result.errors == ()
        assert {"dialog", "grid"} <= {f.id for f in result.features}

    async def test_css_named_container(self, engine: AnalysisEngine) -> None:
        """Test a named container query keeps the rest of the stylesheet parsed."""
        result = await engine.analyze_document(
            "@container card (min-width: 400px){.a{color:red}}\n.b{display:grid}", CSS
        )

        assert result.errors == ()
        grid = next(f for f in result.features if f.id == "grid")
        assert grid.range == Range(Position(1, 3), Position(1, 10))


class TestRobustness:
    """Tests for failures that come back as data."""

    async def test_parse_failure_reported_once(self, engine: AnalysisEngine) -> None:
        """Test a malformed document yields one parsing error and fallback detections."""
        result = await engine.analyze_document(".c { display: flex;\n", CSS)

        assert len(result.errors) == 1
        assert result.errors[0].kind == ErrorKind.PARSING
        assert "flexbox" in [f.id for f in result.features]

    async def test_timeout(
        self, service: CompatibilityDataService, normalizer: ErrorNormalizer
    ) -> None:
        """Test an analyzer running past its deadline yields a timeout error."""
        config = BaselineLensConfig(timeouts=TimeoutConfig(base_timeout=0.01, max_timeout=0.01))
        engine = AnalysisEngine(service, config, normalizer=normalizer)
        analyzer = engine.analyzers_for(CSS)[0]

        def slow_scan(*args: object) -> AnalyzerReport:
            time.sleep(0.3)
            return AnalyzerReport()

        with patch.object(analyzer, "scan", side_effect=slow_scan):
            started = time.monotonic()
            result = await engine.analyze_document(".c{display:flex}", CSS)
            elapsed = time.monotonic() - started

        assert elapsed < 0.3
        assert result.features == ()
        # The worker may hit an expired checkpoint before the guard's deadline fires
        assert [e.kind for e in result.errors] == [ErrorKind.TIMEOUT]
        assert result.errors[0].error == "Analysis timeout exceeded for large file"
        assert engine.guard.active_count == 0
        assert engine.error_snapshot()["counts_by_kind"]["timeout"] == 1

    async def test_checkpoint_past_deadline(
        self, service: CompatibilityDataService, normalizer: ErrorNormalizer
    ) -> None:
        """Test a scan stopped by its own checkpoint reports a timeout, not a cancellation."""
        config = BaselineLensConfig(timeouts=TimeoutConfig(base_timeout=0.05, max_timeout=0.05))
        engine = AnalysisEngine(service, config, normalizer=normalizer)
        analyzer = engine.analyzers_for(CSS)[0]

        def busy_scan(content: str, meta: DocumentMeta, task: AnalysisTask) -> AnalyzerReport:
            while True:
                task.checkpoint()
                time.sleep(0.005)

        with patch.object(analyzer, "scan", side_effect=busy_scan):
            result = await engine.analyze_document(".c{display:flex}", CSS)

        assert [e.kind for e in result.errors] == [ErrorKind.TIMEOUT]
        assert result.errors[0].error == "Analysis timeout exceeded for large file"
        assert engine.guard.active_count == 0

    async def test_analyzer_crash_does_not_stop_others(self, engine: AnalysisEngine) -> None:
        """Test an unexpected exception becomes an error and later analyzers still run."""
        js_analyzer = engine.analyzers_for(JS)[0]

        with patch.object(js_analyzer, "scan", side_effect=RuntimeError("boom")):
            result = await engine.analyze_document("const Box = styled.div`display:flex;`;", JS)

        assert [f.id for f in result.features] == ["flexbox"]
        assert [e.error for e in result.errors] == ["Unexpected error: boom"]
        assert result.errors[0].kind == ErrorKind.UNKNOWN

    async def test_oversized_document(
        self, service: CompatibilityDataService, normalizer: ErrorNormalizer
    ) -> None:
        """Test oversized input returns an empty result and is counted."""
        config = BaselineLensConfig(limits=LimitsConfig(max_file_size=10))
        engine = AnalysisEngine(service, config, normalizer=normalizer)

        result = await engine.analyze_document(".c{display:flex;gap:1rem}", CSS)

        assert result.features == ()
        assert result.errors == ()
        assert normalizer.counts_by_kind()["file_size"] == 1

    async def test_empty_document(self, engine: AnalysisEngine) -> None:
        """Test blank content returns an empty result."""
        result = await engine.analyze_document("   ", CSS)
        assert result.features == ()
        assert result.errors == ()

    async def test_unsupported_language(self, engine: AnalysisEngine) -> None:
        """Test unknown language ids are skipped."""
        counter = get_metrics().documents_skipped
        before = counter.get(labels={"reason": "unsupported"})

        result = await engine.analyze_document("print('hi')", DocumentMeta("python", "a.py"))

        assert result.features == ()
        assert counter.get(labels={"reason": "unsupported"}) == before + 1

    async def test_disabled_family(self, service: CompatibilityDataService) -> None:
        """Test disabled families are skipped, also inside HTML."""
        config = BaselineLensConfig(analyzers=AnalyzersConfig(css=False))
        engine = AnalysisEngine(service, config)

        assert engine.analyzers_for(CSS) == ()
        assert await engine.analyze(".c{display:flex}", CSS) == []
        html = await engine.analyze("<style>.c{gap:1px}</style><dialog></dialog>", HTML)
        assert [f.id for f in html] == ["dialog"]

    async def test_css_in_js_disabled(self, service: CompatibilityDataService) -> None:
        """Test script documents skip CSS-in-JS when it is turned off."""
        config = BaselineLensConfig(analyzers=AnalyzersConfig(css_in_js=False))
        engine = AnalysisEngine(service, config)

        features = await engine.analyze("const Box = styled.div`display:flex;`;", JS)
        assert "flexbox" not in [f.id for f in features]


class TestBatch:
    """Tests for multi-document analysis and summaries."""

    async def test_idempotent(self, engine: AnalysisEngine) -> None:
        """Test the same input gives the same detections."""
        text = ".c{display:grid;gap:1rem}\n.d:has(.e){color:red}"
        first = await engine.analyze(text, CSS)
        second = await engine.analyze(text, CSS)
        assert first == second

    async def test_analyze_many_keeps_order(self, engine: AnalysisEngine) -> None:
        """Test results come back in input order."""
        documents = [
            ("<dialog></dialog>", HTML),
            (".c{display:flex}", CSS),
            ("fetch(u);", JS),
        ]
        results = await engine.analyze_many(documents)
        assert [r.file_name for r in results] == ["index.html", "styles.css", "app.js"]

    async def test_summary(self, engine: AnalysisEngine) -> None:
        """Test project counts over several documents."""
        results = await engine.analyze_many(
            [
                (".c{display:flex;gap:1rem}\n.d:has(.e){color:red}", CSS),
                ("const x = a?.b;", JS),
                (".broken { display: flex;\n", DocumentMeta("css", "broken.css")),
            ]
        )
        summary = engine.summarize(results)

        assert summary.total_files == 3
        assert summary.total_features == sum(len(r.features) for r in results)
        assert summary.unique_features == len({f.id for r in results for f in r.features})
        assert summary.risk_distribution["high"] == 1
        assert summary.by_type["css"] >= 3
        assert summary.error_count == 1
        assert summary.has_risk(RiskLevel.HIGH)
        assert summary.to_dict()["totalFiles"] == 3

    def test_summary_of_nothing(self) -> None:
        """Test summarizing no documents."""
        summary = summarize([])
        assert summary.total_features == 0
        assert summary.risk_distribution == {"low": 0, "medium": 0, "high": 0}
        assert not summary.has_risk(RiskLevel.LOW)


class TestAssembly:
    """Tests for result assembly helpers."""

    def test_assemble_dedupes_and_orders(self) -> None:
        """Test exact duplicates are dropped and positions ordered."""
        late = make_feature("gap", 1, 0, 3)
        early = make_feature("grid", 0, 4, 8)
        assembled = assemble([late, early, late])
        assert assembled == (early, late)

    def test_assemble_keeps_same_range_different_ids(self) -> None:
        """Test different features sharing a range are both kept."""
        assembled = assemble([make_feature("b", 0, 0, 3), make_feature("a", 0, 0, 3)])
        assert [f.id for f in assembled] == ["a", "b"]

    @pytest.mark.parametrize(
        ("line", "start", "end", "expected"),
        [
            (0, 0, 3, True),
            (1, 0, 2, True),
            (1, 0, 3, False),
            (2, 0, 1, False),
            (0, 3, 4, False),
        ],
    )
    def test_in_bounds(self, line: int, start: int, end: int, expected: bool) -> None:
        """Test ranges must lie inside the document."""
        text = "abc\nde"
        feature = make_feature("x", line, start, end)
        assert in_bounds(feature, compute_line_starts(text), len(text)) is expected
