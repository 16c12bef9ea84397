"""In-process metrics for the analysis engine.

The registry tracks what an editor integration or CI run wants to know
after the fact: how many documents were analyzed or skipped, how many
features of each type were found, how often parsing fell back to regex
detection, which error kinds occurred, and how long analyses took.

Series are keyed by label sets and can be exported as a dictionary or in
Prometheus text format.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any

LabelKey = tuple[tuple[str, str], ...]


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """One exported series value."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class _Series:
    """Labelled float values behind a lock; shared by counters and gauges."""

    type: MetricType

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def _add(self, value: float, labels: dict[str, str] | None) -> None:
        key = _label_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Current value of one label set (zero when never touched)."""
        key = _label_key(labels)
        with self._lock:
            return self._values.get(key, 0)

    def get_all(self) -> list[MetricValue]:
        """Every label set with its value."""
        with self._lock:
            items = list(self._values.items())
        return [
            MetricValue(
                name=self.name,
                type=self.type,
                value=value,
                labels=dict(key),
                help_text=self.help_text,
            )
            for key, value in items
        ]

    def reset(self) -> None:
        """Drop every series."""
        with self._lock:
            self._values = defaultdict(float)


class Counter(_Series):
    """A value that only goes up.

    Example:
        errors = Counter("analysis_errors_total")
        errors.inc(labels={"kind": "parsing"})
    """

    type = MetricType.COUNTER

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        self._add(value, labels)


class Gauge(_Series):
    """A value that moves both ways, such as in-flight analyses."""

    type = MetricType.GAUGE

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            self._values[key] = value

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        self._add(value, labels)

    def dec(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        self._add(-value, labels)


class Histogram:
    """Distribution of observed values, such as analysis durations.

    Example:
        durations = Histogram("analysis_duration_seconds")
        durations.observe(0.012, labels={"family": "css"})
    """

    # Editor latency targets sit well under one second
    DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            self._observations[key].append(value)

    def _values(self, labels: dict[str, str] | None) -> list[float]:
        key = _label_key(labels)
        with self._lock:
            return list(self._observations.get(key, []))

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Count, sum, min, max and mean of one label set; zeros when empty."""
        values = self._values(labels)
        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}
        total = sum(values)
        return {
            "count": len(values),
            "sum": total,
            "min": min(values),
            "max": max(values),
            "mean": total / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Observations per bucket; each value lands in the first bucket that holds it."""
        counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in self._values(labels):
            bucket = next((b for b in self._buckets if value <= b), None)
            if bucket is not None:
                counts[bucket] += 1
        return counts


class MetricsRegistry:
    """All engine metrics.

    ``get_metrics()`` returns the process-wide instance. Constructing a
    registry directly gives an isolated one, which the error normalizer
    accepts for tests and embedding.
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        self.documents_analyzed = Counter(
            "baseline_lens_documents_analyzed_total",
            "Documents analyzed, by language family",
        )
        self.documents_skipped = Counter(
            "baseline_lens_documents_skipped_total",
            "Documents skipped, by reason (oversized, unsupported, disabled)",
        )
        self.features_detected = Counter(
            "baseline_lens_features_detected_total",
            "Feature occurrences detected, by type",
        )
        self.fallback_invocations = Counter(
            "baseline_lens_fallback_invocations_total",
            "Regex fallback runs, by language family",
        )
        self.analysis_errors = Counter(
            "baseline_lens_analysis_errors_total",
            "Analysis errors, by kind",
        )
        self.cache_hits = Counter(
            "baseline_lens_cache_hits_total",
            "Compatibility lookups served from cache",
        )
        self.cache_misses = Counter(
            "baseline_lens_cache_misses_total",
            "Compatibility lookups computed from the index",
        )
        self.active_analyses = Gauge(
            "baseline_lens_active_analyses",
            "Analyses running or queued in the guard",
        )
        self.analysis_duration = Histogram(
            "baseline_lens_analysis_duration_seconds",
            "Document analysis duration in seconds",
        )
        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_uptime_seconds(self) -> float:
        return time.time() - self._start_time

    @property
    def series(self) -> tuple[_Series, ...]:
        """Counters and gauges in export order."""
        return (
            self.documents_analyzed,
            self.documents_skipped,
            self.features_detected,
            self.fallback_invocations,
            self.analysis_errors,
            self.cache_hits,
            self.cache_misses,
            self.active_analyses,
        )

    @staticmethod
    def _by_label(series: _Series, label: str) -> dict[str, float]:
        return {m.labels[label]: m.value for m in series.get_all() if label in m.labels}

    def get_all_metrics(self) -> dict[str, Any]:
        """Snapshot of every metric, grouped by concern."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "documents": {
                "analyzed": self._by_label(self.documents_analyzed, "family"),
                "skipped": self._by_label(self.documents_skipped, "reason"),
            },
            "features": self._by_label(self.features_detected, "type"),
            "fallback": {
                "invocations": self._by_label(self.fallback_invocations, "family"),
            },
            "errors": self._by_label(self.analysis_errors, "kind"),
            "cache": {
                "hits": self.cache_hits.get(),
                "misses": self.cache_misses.get(),
            },
            "processing": {
                "active_analyses": self.active_analyses.get(),
                "duration_stats": self.analysis_duration.get_stats(),
            },
        }

    def to_prometheus_format(self) -> str:
        """Counters, gauges and uptime in Prometheus text exposition format."""
        lines: list[str] = []
        for series in self.series:
            if series.help_text:
                lines.append(f"# HELP {series.name} {series.help_text}")
            lines.append(f"# TYPE {series.name} {series.type.value}")
            for metric in series.get_all():
                if metric.labels:
                    labels = ",".join(f'{k}="{v}"' for k, v in metric.labels.items())
                    lines.append(f"{series.name}{{{labels}}} {metric.value:g}")
                else:
                    lines.append(f"{series.name} {metric.value:g}")

        lines.append("# HELP baseline_lens_uptime_seconds Process uptime in seconds")
        lines.append("# TYPE baseline_lens_uptime_seconds gauge")
        lines.append(f"baseline_lens_uptime_seconds {self.get_uptime_seconds()}")
        return "\n".join(lines) + "\n"


def get_metrics() -> MetricsRegistry:
    """The process-wide metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager that records elapsed seconds into a histogram.

    Example:
        with Timer(metrics.analysis_duration, labels={"family": "css"}) as timer:
            report = analyzer.scan(text, meta)
        log.debug("scanned", ms=timer.elapsed * 1000)
    """

    def __init__(self, histogram: Histogram, labels: dict[str, str] | None = None) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None
        self.elapsed: float = 0.0

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._start is not None:
            self.elapsed = time.perf_counter() - self._start
            self._histogram.observe(self.elapsed, labels=self._labels)
