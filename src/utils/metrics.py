"""
Prometheus Metrics Collector

In-process scoring metrics rendered in the Prometheus text exposition
format (text/plain; version=0.0.4).
"""
import threading
from typing import Dict, List, Optional, Tuple

LabelKey = Tuple[Tuple[str, str], ...]


def _label_key(labels: Dict[str, str]) -> LabelKey:
    return tuple(sorted(labels.items()))


def _format_labels(labels: Dict[str, str]) -> str:
    if not labels:
        return ""
    parts = [f'{k}="{v}"' for k, v in sorted(labels.items())]
    return "{" + ",".join(parts) + "}"


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self._lock = threading.Lock()

    def samples(self) -> List[str]:
        raise NotImplementedError

    def render(self) -> List[str]:
        return [
            f"# HELP {self.name} {self.description}",
            f"# TYPE {self.name} {self.kind}",
            *self.samples(),
        ]


class Counter(_Metric):
    """Monotonic count: scores computed, failures, runs."""
    kind = "counter"

    def __init__(self, name: str, description: str):
        super().__init__(name, description)
        self._values: Dict[LabelKey, float] = {}

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        key = _label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, **labels: str) -> float:
        with self._lock:
            return self._values.get(_label_key(labels), 0.0)

    def samples(self) -> List[str]:
        with self._lock:
            return [f"{self.name}{_format_labels(dict(k))} {v}" for k, v in self._values.items()]


class Gauge(Counter):
    """Value that can go down as well as up."""
    kind = "gauge"

    def set(self, value: float, **labels: str) -> None:
        with self._lock:
            self._values[_label_key(labels)] = value


class Histogram(_Metric):
    """Cumulative bucket counts plus sum and count per label set."""
    kind = "histogram"

    def __init__(self, name: str, description: str, buckets: Tuple[float, ...]):
        super().__init__(name, description)
        self.buckets = tuple(sorted(buckets))
        self._values: Dict[LabelKey, Dict] = {}

    def observe(self, value: float, **labels: str) -> None:
        key = _label_key(labels)
        with self._lock:
            data = self._values.setdefault(
                key, {"buckets": [0] * len(self.buckets), "sum": 0.0, "count": 0}
            )
            data["sum"] += value
            data["count"] += 1
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    data["buckets"][i] += 1

    def samples(self) -> List[str]:
        lines = []
        with self._lock:
            for key, data in self._values.items():
                labels = dict(key)
                for bound, count in zip(self.buckets, data["buckets"]):
                    lines.append(f"{self.name}_bucket{_format_labels({**labels, 'le': str(bound)})} {count}")
                lines.append(f"{self.name}_bucket{_format_labels({**labels, 'le': '+Inf'})} {data['count']}")
                lines.append(f"{self.name}_sum{_format_labels(labels)} {data['sum']}")
                lines.append(f"{self.name}_count{_format_labels(labels)} {data['count']}")
        return lines


class MetricsRegistry:
    """
    Registry of scoring service metrics.

    Provides singleton access and Prometheus text format export.
    """

    _instance: Optional["MetricsRegistry"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._metrics: Dict[str, _Metric] = {}
        self._initialized = True
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        # ============================================
        # SCORING
        # ============================================
        self.scores_computed = self._register(Counter(
            "pipeline_scores_computed_total",
            "Deal scores computed by deal status and trigger source",
        ))
        self.scoring_errors = self._register(Counter(
            "pipeline_scoring_errors_total",
            "Deals that could not be scored by error type",
        ))
        self.confidence = self._register(Histogram(
            "pipeline_confidence_score",
            "Distribution of published confidence scores",
            buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
        ))

        # ============================================
        # BATCH RUNS
        # ============================================
        self.batch_runs = self._register(Counter(
            "pipeline_batch_runs_total",
            "Batch recalculation runs by run type",
        ))
        self.batch_failures = self._register(Counter(
            "pipeline_batch_failures_total",
            "Deals that failed during batch recalculation by run type",
        ))
        self.batch_duration = self._register(Histogram(
            "pipeline_batch_duration_seconds",
            "Batch recalculation duration",
            buckets=(0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
        ))
        self.last_batch_error_rate = self._register(Gauge(
            "pipeline_batch_error_rate",
            "Error rate of the most recent batch run by run type",
        ))

    def _register(self, metric):
        self._metrics[metric.name] = metric
        return metric

    def export(self) -> str:
        lines: List[str] = []
        for metric in self._metrics.values():
            lines.extend(metric.render())
            lines.append("")
        return "\n".join(lines)

    def reset(self) -> None:
        """Reset all metrics. Useful for testing."""
        self._metrics.clear()
        self._setup_metrics()


# Global metrics instance
metrics = MetricsRegistry()
