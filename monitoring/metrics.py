"""
Metrics Collection - Monitoring Layer

Provides Prometheus-compatible metrics for the content storage service:
- Counters (monotonically increasing)
- Histograms (distribution of values)

@.architecture
Incoming: core/content/storage.py, data/storage/local.py --- {str metric_name, float value, Dict[str, str] labels, metric recording calls}
Processing: inc(), observe(), collect_all(), export_prometheus(), setup_storage_metrics() --- {4 jobs: collection, export, metric_creation, recording}
Outgoing: Metrics scrapers, tests --- {Counter/Histogram instances, Dict[str, Any] collected metrics, str Prometheus format}
"""

import threading
from typing import Dict, List, Optional, Tuple, Any
from collections import defaultdict


def _label_key(label_names: List[str], labels: Dict[str, str]) -> Tuple[str, ...]:
    """Validate and order labels."""
    if set(labels.keys()) != set(label_names):
        raise ValueError(f"Expected labels {label_names}, got {list(labels.keys())}")
    return tuple(str(labels[name]) for name in label_names)


class Counter:
    """
    Counter metric - monotonically increasing value.

    Use for: operation counts, error counts, bytes written.
    """

    def __init__(self, name: str, help_text: str, labels: Optional[List[str]] = None):
        self.name = name
        self.help_text = help_text
        self.label_names = labels or []
        self._lock = threading.Lock()
        self._values: Dict[Tuple[str, ...], float] = defaultdict(float)

    def inc(self, value: float = 1.0, **labels: str) -> None:
        """
        Increment counter.

        Args:
            value: Amount to increment (must be >= 0)
            **labels: Label values
        """
        if value < 0:
            raise ValueError("Counter can only be incremented by non-negative values")

        key = _label_key(self.label_names, labels)
        with self._lock:
            self._values[key] += value

    def get(self, **labels: str) -> float:
        """Get counter value for a label combination."""
        key = _label_key(self.label_names, labels)
        return self._values.get(key, 0.0)

    def collect(self) -> List[Tuple[Dict[str, str], float]]:
        """Collect all (label_dict, value) pairs for export."""
        with self._lock:
            return [
                (dict(zip(self.label_names, key)), value)
                for key, value in self._values.items()
            ]


class Histogram:
    """
    Histogram metric - distribution of values into buckets.

    Use for: operation duration, file size.
    """

    # Default buckets for operation time (seconds)
    DEFAULT_BUCKETS = [0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]

    def __init__(
        self,
        name: str,
        help_text: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[List[float]] = None
    ):
        self.name = name
        self.help_text = help_text
        self.label_names = labels or []
        self.buckets = sorted(buckets or self.DEFAULT_BUCKETS)
        self._lock = threading.Lock()

        self._bucket_counts: Dict[Tuple[str, ...], List[int]] = defaultdict(
            lambda: [0] * (len(self.buckets) + 1)
        )
        self._sum: Dict[Tuple[str, ...], float] = defaultdict(float)
        self._count: Dict[Tuple[str, ...], int] = defaultdict(int)

    def observe(self, value: float, **labels: str) -> None:
        """
        Observe a value.

        Args:
            value: Value to observe
            **labels: Label values
        """
        key = _label_key(self.label_names, labels)

        with self._lock:
            self._sum[key] += value
            self._count[key] += 1

            bucket_counts = self._bucket_counts[key]
            for i, bucket in enumerate(self.buckets):
                if value <= bucket:
                    bucket_counts[i] += 1
            # +Inf bucket
            bucket_counts[-1] += 1

    def get_stats(self, **labels: str) -> Dict[str, Any]:
        """
        Get histogram statistics.

        Returns:
            Dict with count, sum, average, buckets
        """
        key = _label_key(self.label_names, labels)

        with self._lock:
            count = self._count.get(key, 0)
            sum_value = self._sum.get(key, 0.0)
            bucket_counts = self._bucket_counts.get(key, [0] * (len(self.buckets) + 1))

            return {
                'count': count,
                'sum': sum_value,
                'average': sum_value / count if count > 0 else 0.0,
                'buckets': dict(zip([*self.buckets, float('inf')], bucket_counts)),
            }

    def collect(self) -> List[Tuple[Dict[str, str], Dict[str, Any]]]:
        """Collect all (label_dict, stats_dict) pairs for export."""
        keys = list(self._count.keys())
        results = []
        for key in keys:
            label_dict = dict(zip(self.label_names, key))
            results.append((label_dict, self.get_stats(**label_dict)))
        return results


class MetricsRegistry:
    """
    Central registry for all metrics.

    Manages metric creation and collection for export.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, Counter] = {}
        self._histograms: Dict[str, Histogram] = {}

    def counter(
        self,
        name: str,
        help_text: str,
        labels: Optional[List[str]] = None
    ) -> Counter:
        """Get or create counter metric."""
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, help_text, labels)
            return self._counters[name]

    def histogram(
        self,
        name: str,
        help_text: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[List[float]] = None
    ) -> Histogram:
        """Get or create histogram metric."""
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name, help_text, labels, buckets)
            return self._histograms[name]

    def collect_all(self) -> Dict[str, Any]:
        """
        Collect all metrics for export.

        Returns:
            Dict mapping metric names to their values
        """
        result = {}

        for name, counter in self._counters.items():
            result[name] = {
                'type': 'counter',
                'help': counter.help_text,
                'values': counter.collect()
            }

        for name, histogram in self._histograms.items():
            result[name] = {
                'type': 'histogram',
                'help': histogram.help_text,
                'buckets': histogram.buckets,
                'values': histogram.collect()
            }

        return result

    def export_prometheus(self) -> str:
        """
        Export metrics in Prometheus text format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        for name, counter in self._counters.items():
            lines.append(f"# HELP {name} {counter.help_text}")
            lines.append(f"# TYPE {name} counter")
            for label_dict, value in counter.collect():
                lines.append(f"{name}{self._format_labels(label_dict)} {value}")

        for name, histogram in self._histograms.items():
            lines.append(f"# HELP {name} {histogram.help_text}")
            lines.append(f"# TYPE {name} histogram")
            for label_dict, stats in histogram.collect():
                label_str = self._format_labels(label_dict)
                for bucket, count in stats['buckets'].items():
                    le = "+Inf" if bucket == float("inf") else str(bucket)
                    bucket_str = self._format_labels(dict(label_dict, le=le))
                    lines.append(f"{name}_bucket{bucket_str} {count}")
                lines.append(f"{name}_sum{label_str} {stats['sum']}")
                lines.append(f"{name}_count{label_str} {stats['count']}")

        return '\n'.join(lines) + '\n'

    def _format_labels(self, labels: Dict[str, str]) -> str:
        """Format labels for Prometheus output."""
        if not labels:
            return ""
        label_pairs = [f'{k}="{v}"' for k, v in labels.items()]
        return "{" + ",".join(label_pairs) + "}"


# Global registry instance
_global_registry: Optional[MetricsRegistry] = None


def get_registry() -> MetricsRegistry:
    """Get global metrics registry."""
    global _global_registry
    if _global_registry is None:
        _global_registry = MetricsRegistry()
    return _global_registry


def counter(name: str, help_text: str, labels: Optional[List[str]] = None) -> Counter:
    """Get or create counter from global registry."""
    return get_registry().counter(name, help_text, labels)


def histogram(
    name: str,
    help_text: str,
    labels: Optional[List[str]] = None,
    buckets: Optional[List[float]] = None
) -> Histogram:
    """Get or create histogram from global registry."""
    return get_registry().histogram(name, help_text, labels, buckets)


def setup_storage_metrics() -> Dict[str, Any]:
    """
    Create the content storage metrics.

    Returns:
        Dict of metric objects
    """
    registry = get_registry()

    return {
        'operations_total': registry.counter(
            'content_storage_operations_total',
            'Total content storage operations',
            labels=['operation', 'status']
        ),
        'operation_duration_seconds': registry.histogram(
            'content_storage_operation_duration_seconds',
            'Content storage operation duration in seconds',
            labels=['operation']
        ),
        'bytes_written_total': registry.counter(
            'content_storage_bytes_written_total',
            'Total bytes written to content files'
        ),
    }
