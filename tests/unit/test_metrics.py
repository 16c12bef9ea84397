"""Tests for engine metrics."""

import time

import pytest

from baseline_lens.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    MetricType,
    Timer,
    get_metrics,
)


class TestCounter:
    """Tests for Counter."""

    def test_starts_at_zero(self) -> None:
        """Test a new counter reads zero."""
        assert Counter("documents").get() == 0

    def test_increments_accumulate(self) -> None:
        """Test default and explicit increments add up."""
        counter = Counter("documents")
        counter.inc()
        counter.inc(4)
        assert counter.get() == 5

    def test_labels_are_separate_series(self) -> None:
        """Test each label set is counted on its own."""
        counter = Counter("errors")
        counter.inc(labels={"kind": "parsing"})
        counter.inc(labels={"kind": "timeout"})
        counter.inc(labels={"kind": "parsing"})

        assert counter.get(labels={"kind": "parsing"}) == 2
        assert counter.get(labels={"kind": "timeout"}) == 1
        assert counter.get(labels={"kind": "unknown"}) == 0
        assert counter.get() == 0

    def test_cannot_decrease(self) -> None:
        """Test negative increments are rejected."""
        with pytest.raises(ValueError, match="can only increase"):
            Counter("documents").inc(-1)

    def test_get_all_and_reset(self) -> None:
        """Test every series is exported and reset clears them."""
        counter = Counter("features", "Detected features")
        counter.inc(labels={"type": "css"})
        counter.inc(3, labels={"type": "javascript"})

        values = counter.get_all()
        assert {v.labels["type"]: v.value for v in values} == {"css": 1, "javascript": 3}
        assert all(v.type == MetricType.COUNTER for v in values)
        assert values[0].help_text == "Detected features"

        counter.reset()
        assert counter.get_all() == []


class TestGauge:
    """Tests for Gauge."""

    def test_up_and_down(self) -> None:
        """Test set, inc and dec."""
        gauge = Gauge("active")
        gauge.set(2)
        gauge.inc()
        gauge.dec(4)
        assert gauge.get() == -1

    def test_labels(self) -> None:
        gauge = Gauge("active")
        gauge.set(1, labels={"family": "css"})
        assert gauge.get(labels={"family": "css"}) == 1
        assert gauge.get_all()[0].type == MetricType.GAUGE


class TestHistogram:
    """Tests for Histogram."""

    def test_stats(self) -> None:
        """Test count, sum, min, max and mean."""
        histogram = Histogram("duration")
        for value in (0.01, 0.02, 0.03):
            histogram.observe(value)

        stats = histogram.get_stats()
        assert stats["count"] == 3
        assert stats["sum"] == pytest.approx(0.06)
        assert stats["min"] == 0.01
        assert stats["max"] == 0.03
        assert stats["mean"] == pytest.approx(0.02)

    def test_empty_stats(self) -> None:
        """Test an unobserved histogram reports zeros."""
        assert Histogram("duration").get_stats()["count"] == 0

    def test_each_value_lands_in_one_bucket(self) -> None:
        """Test values are counted in the first bucket that holds them."""
        histogram = Histogram("duration", buckets=(0.1, 1.0, float("inf")))
        for value in (0.05, 0.1, 0.5, 3.0):
            histogram.observe(value)

        assert histogram.get_buckets() == {0.1: 2, 1.0: 1, float("inf"): 1}

    def test_default_buckets_end_at_infinity(self) -> None:
        assert Histogram.DEFAULT_BUCKETS[-1] == float("inf")


class TestMetricsRegistry:
    """Tests for the registry."""

    def test_global_registry_is_shared(self) -> None:
        """Test get_metrics returns the singleton."""
        assert get_metrics() is MetricsRegistry.get_instance()

    def test_fresh_registries_are_independent(self) -> None:
        """Test directly constructed registries do not share counts."""
        first = MetricsRegistry()
        second = MetricsRegistry()
        first.documents_analyzed.inc(labels={"family": "css"})
        assert second.documents_analyzed.get(labels={"family": "css"}) == 0

    def test_get_all_metrics(self) -> None:
        """Test the snapshot groups counters by their labels."""
        registry = MetricsRegistry()
        registry.documents_analyzed.inc(labels={"family": "css"})
        registry.documents_skipped.inc(labels={"reason": "oversized"})
        registry.features_detected.inc(2, labels={"type": "html"})
        registry.fallback_invocations.inc(labels={"family": "javascript"})
        registry.analysis_errors.inc(labels={"kind": "parsing"})
        registry.cache_hits.inc()

        snapshot = registry.get_all_metrics()

        assert snapshot["uptime_seconds"] >= 0
        assert snapshot["documents"] == {"analyzed": {"css": 1}, "skipped": {"oversized": 1}}
        assert snapshot["features"] == {"html": 2}
        assert snapshot["fallback"]["invocations"] == {"javascript": 1}
        assert snapshot["errors"] == {"parsing": 1}
        assert snapshot["cache"] == {"hits": 1, "misses": 0}
        assert snapshot["processing"]["active_analyses"] == 0

    def test_prometheus_format(self) -> None:
        """Test the text export names every metric with the project prefix."""
        registry = MetricsRegistry()
        registry.analysis_errors.inc(labels={"kind": "timeout"})

        output = registry.to_prometheus_format()

        assert "# TYPE baseline_lens_analysis_errors_total counter" in output
        assert 'baseline_lens_analysis_errors_total{kind="timeout"} 1' in output
        assert "# TYPE baseline_lens_active_analyses gauge" in output
        assert "baseline_lens_uptime_seconds" in output


class TestTimer:
    """Tests for Timer."""

    def test_records_duration(self) -> None:
        """Test the elapsed time is observed with labels."""
        histogram = Histogram("duration")

        with Timer(histogram, labels={"family": "css"}) as timer:
            time.sleep(0.01)

        assert timer.elapsed >= 0.01
        assert histogram.get_stats(labels={"family": "css"})["count"] == 1

    def test_records_on_exception(self) -> None:
        """Test a failing block is still timed."""
        histogram = Histogram("duration")

        with pytest.raises(RuntimeError), Timer(histogram):
            raise RuntimeError("boom")

        assert histogram.get_stats()["count"] == 1
