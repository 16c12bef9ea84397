"""Shared test fixtures for baseline-lens."""

import json
from pathlib import Path
from typing import Any

import pytest

from baseline_lens.core.compatibility import CompatibilityDataService
from baseline_lens.core.css_analyzer import CSSAnalyzer
from baseline_lens.core.engine import AnalysisEngine
from baseline_lens.core.errors import ErrorNormalizer
from baseline_lens.core.fallback import FallbackAnalyzer
from baseline_lens.core.html_analyzer import HTMLAnalyzer
from baseline_lens.core.js_analyzer import JavaScriptAnalyzer
from baseline_lens.utils.metrics import MetricsRegistry

# Get the fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"
DATASET_FILE = FIXTURES_DIR / "dataset.json"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def dataset_file() -> Path:
    """Return the path to the fixture dataset."""
    return DATASET_FILE


@pytest.fixture
def dataset_raw() -> dict[str, Any]:
    """Load the fixture dataset document."""
    return json.loads(DATASET_FILE.read_text(encoding="utf-8"))


@pytest.fixture
def service(dataset_raw: dict[str, Any]) -> CompatibilityDataService:
    """A ready data service over the fixture dataset."""
    return CompatibilityDataService.from_data(dataset_raw)


@pytest.fixture
def metrics() -> MetricsRegistry:
    """A fresh metrics registry, isolated from the global one."""
    return MetricsRegistry()


@pytest.fixture
def normalizer(metrics: MetricsRegistry) -> ErrorNormalizer:
    """Error normalizer counting into the isolated registry."""
    return ErrorNormalizer(metrics=metrics)


@pytest.fixture
def fallback(service: CompatibilityDataService, normalizer: ErrorNormalizer) -> FallbackAnalyzer:
    return FallbackAnalyzer(service, normalizer)


@pytest.fixture
def css_analyzer(
    service: CompatibilityDataService,
    normalizer: ErrorNormalizer,
    fallback: FallbackAnalyzer,
) -> CSSAnalyzer:
    return CSSAnalyzer(service, normalizer, fallback)


@pytest.fixture
def js_analyzer(
    service: CompatibilityDataService,
    normalizer: ErrorNormalizer,
    fallback: FallbackAnalyzer,
) -> JavaScriptAnalyzer:
    return JavaScriptAnalyzer(service, normalizer, fallback)


@pytest.fixture
def html_analyzer(
    service: CompatibilityDataService,
    normalizer: ErrorNormalizer,
    fallback: FallbackAnalyzer,
    css_analyzer: CSSAnalyzer,
    js_analyzer: JavaScriptAnalyzer,
) -> HTMLAnalyzer:
    return HTMLAnalyzer(
        service,
        normalizer,
        fallback,
        css_analyzer=css_analyzer,
        js_analyzer=js_analyzer,
    )


@pytest.fixture
def engine(service: CompatibilityDataService, normalizer: ErrorNormalizer) -> AnalysisEngine:
    """Engine with default configuration over the fixture dataset."""
    return AnalysisEngine(service, normalizer=normalizer)


@pytest.fixture
async def builtin_service() -> CompatibilityDataService:
    """A data service initialized from the dataset shipped with the package."""
    service = CompatibilityDataService()
    await service.initialize()
    return service

