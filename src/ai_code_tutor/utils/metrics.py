"""In-process metrics for the execution and diagnostic engine.

Tracks how often each execution tier is attempted and how often it falls
through, how long runs take, how many malformed patches were skipped and how
many mistakes were observed. Values live in memory for the lifetime of the
process and can be dumped as a dictionary or in Prometheus text format.
"""

from __future__ import annotations

import math
import time
from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Any

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


def _format_labels(key: LabelKey, **extra: str) -> str:
    pairs = [*key, *extra.items()]
    if not pairs:
        return ""
    return "{" + ",".join(f'{name}="{value}"' for name, value in pairs) + "}"


class _Metric:
    kind = ""

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._lock = Lock()

    def _header(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.help_text}"] if self.help_text else []
        lines.append(f"# TYPE {self.name} {self.kind}")
        return lines


class Counter(_Metric):
    """A monotonically increasing counter, optionally split by labels.

    Example:
        counter = Counter("tier_attempts", "Tier attempts")
        counter.inc(labels={"tier": "remote-sandbox"})
    """

    kind = "counter"

    def __init__(self, name: str, help_text: str = "") -> None:
        super().__init__(name, help_text)
        self._values: dict[LabelKey, float] = defaultdict(float)

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter can only increase")
        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def by_label(self, label: str) -> dict[str, float]:
        """Totals keyed by the value of one label."""
        totals: dict[str, float] = defaultdict(float)
        with self._lock:
            for key, value in self._values.items():
                totals[dict(key).get(label, "")] += value
        return dict(totals)

    def samples(self) -> list[tuple[dict[str, str], float]]:
        with self._lock:
            return [(dict(key), value) for key, value in self._values.items()]

    def to_prometheus(self) -> list[str]:
        lines = self._header()
        with self._lock:
            for key, value in self._values.items():
                lines.append(f"{self.name}{_format_labels(key)} {value:g}")
        return lines


@dataclass
class _Series:
    """Running aggregate of one labelled histogram series."""

    bucket_counts: list[int]
    count: int = 0
    total: float = 0.0
    low: float = math.inf
    high: float = -math.inf


class Histogram(_Metric):
    """Distribution of observed values.

    Only aggregates are kept: per-bucket counts plus count, sum, min and max.
    """

    kind = "histogram"

    # Seconds; runs are bounded by the 5s sandbox limit plus model latency
    DEFAULT_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, math.inf)

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        super().__init__(name, help_text)
        self._buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        if self._buckets[-1] != math.inf:
            self._buckets += (math.inf,)
        self._series: dict[LabelKey, _Series] = {}

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self._series.get(key)
            if series is None:
                series = self._series[key] = _Series([0] * len(self._buckets))
            series.count += 1
            series.total += value
            series.low = min(series.low, value)
            series.high = max(series.high, value)
            series.bucket_counts[self._bucket_index(value)] += 1

    def _bucket_index(self, value: float) -> int:
        return next(i for i, bound in enumerate(self._buckets) if value <= bound)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Count, sum, min, max and mean for the given labels."""
        with self._lock:
            series = self._series.get(_label_key(labels))
            if series is None or series.count == 0:
                return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}
            return {
                "count": series.count,
                "sum": series.total,
                "min": series.low,
                "max": series.high,
                "mean": series.total / series.count,
            }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Observations per bucket; each lands only in the smallest bound it fits."""
        with self._lock:
            series = self._series.get(_label_key(labels))
            counts = series.bucket_counts if series else [0] * len(self._buckets)
            return dict(zip(self._buckets, counts, strict=True))

    def to_prometheus(self) -> list[str]:
        lines = self._header()
        with self._lock:
            for key, series in self._series.items():
                cumulative = 0
                for bound, count in zip(self._buckets, series.bucket_counts, strict=True):
                    cumulative += count
                    le = "+Inf" if bound == math.inf else f"{bound:g}"
                    lines.append(f"{self.name}_bucket{_format_labels(key, le=le)} {cumulative}")
                lines.append(f"{self.name}_sum{_format_labels(key)} {series.total:g}")
                lines.append(f"{self.name}_count{_format_labels(key)} {series.count}")
        return lines


class MetricsRegistry:
    """All engine metrics.

    Example:
        registry = MetricsRegistry.get_instance()
        registry.tier_attempts.inc(labels={"tier": "local-simulation"})
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        self.runs = Counter("ai_code_tutor_runs_total", "Total run requests")
        self.runs_superseded = Counter(
            "ai_code_tutor_runs_superseded_total",
            "Runs abandoned because a newer run started",
        )
        self.tier_attempts = Counter(
            "ai_code_tutor_tier_attempts_total",
            "Execution tier attempts",
        )
        self.tier_failures = Counter(
            "ai_code_tutor_tier_failures_total",
            "Recoverable execution tier failures",
        )
        self.run_duration = Histogram(
            "ai_code_tutor_run_duration_seconds",
            "End-to-end run duration in seconds",
        )
        self.diagnostics_emitted = Counter(
            "ai_code_tutor_diagnostics_total",
            "Diagnostics emitted by the static scanner",
        )
        self.patches_skipped = Counter(
            "ai_code_tutor_patches_skipped_total",
            "Malformed or overlapping patches skipped",
        )
        self.mistakes_observed = Counter(
            "ai_code_tutor_mistakes_observed_total",
            "Mistake signatures observed in compiler output",
        )
        self._started = time.monotonic()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the process-wide registry."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def _all(self) -> list[_Metric]:
        return [value for value in vars(self).values() if isinstance(value, _Metric)]

    def get_all_metrics(self) -> dict[str, Any]:
        """Snapshot of every metric as plain data."""
        return {
            "uptime_seconds": time.monotonic() - self._started,
            "runs": {
                "total": self.runs.get(),
                "superseded": self.runs_superseded.get(),
                "duration_stats": self.run_duration.get_stats(),
            },
            "tiers": {
                "attempts": self.tier_attempts.by_label("tier"),
                "failures": self.tier_failures.by_label("tier"),
            },
            "diagnostics": self.diagnostics_emitted.get(),
            "patches_skipped": self.patches_skipped.get(),
            "mistakes_observed": self.mistakes_observed.get(),
        }

    def to_prometheus_format(self) -> str:
        """Export every metric in Prometheus text exposition format."""
        return "\n".join(line for metric in self._all() for line in metric.to_prometheus())


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager recording elapsed wall time into a histogram.

    Example:
        with Timer(metrics.run_duration):
            await orchestrator.run(source)
    """

    def __init__(
        self,
        histogram: Histogram,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start = 0.0

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._histogram.observe(time.perf_counter() - self._start, labels=self._labels)
