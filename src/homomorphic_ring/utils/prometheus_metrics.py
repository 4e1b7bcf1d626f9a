"""Prometheus-backed metrics sink for ring nodes."""

from __future__ import annotations

import threading
from typing import Dict, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class PrometheusMetrics:
    """
    Exposes the same emit_* interface as InMemoryMetrics on top of prometheus_client.

    Each instance owns its own CollectorRegistry, so several nodes (or tests)
    can live in one process without duplicate-registration errors. Metric
    families are created lazily the first time a name is emitted; the label
    names used on that first emission are fixed for the family.
    """

    def __init__(self, node_id: str, namespace: str = "") -> None:
        self.node_id = node_id
        self.namespace = namespace
        self.registry = CollectorRegistry()
        self._lock = threading.Lock()
        self._counters: Dict[str, Tuple[Counter, Tuple[str, ...]]] = {}
        self._gauges: Dict[str, Tuple[Gauge, Tuple[str, ...]]] = {}
        self._histograms: Dict[str, Tuple[Histogram, Tuple[str, ...]]] = {}
        self._server_started = False

    def _labelnames(self, labels: Dict[str, str]) -> Tuple[str, ...]:
        return ("node_id",) + tuple(sorted(labels))

    def _family(self, store, factory, name: str, labels: Dict[str, str]):
        with self._lock:
            entry = store.get(name)
            if entry is None:
                labelnames = self._labelnames(labels)
                metric = factory(
                    name,
                    name.replace("_", " "),
                    labelnames,
                    namespace=self.namespace,
                    registry=self.registry,
                )
                entry = (metric, labelnames)
                store[name] = entry
        metric, labelnames = entry
        expected = set(labelnames[1:])
        if set(labels) != expected:
            raise ValueError(f"Metric '{name}' expects labels {sorted(expected)}, got {sorted(labels)}")
        return metric.labels(node_id=self.node_id, **labels)

    def emit_counter(self, name: str, value: float = 1.0, **labels: str) -> None:
        self._family(self._counters, Counter, name, labels).inc(value)

    def emit_gauge(self, name: str, value: float, **labels: str) -> None:
        self._family(self._gauges, Gauge, name, labels).set(value)

    def emit_timer(self, name: str, value: float, **labels: str) -> None:
        self._family(self._histograms, Histogram, name, labels).observe(value)

    def sample(self, name: str, labels: Dict[str, str] | None = None) -> float | None:
        """
        Read back a sample from the private registry.

        Counter samples carry prometheus_client's `_total` suffix and histogram
        samples `_count` / `_sum`, so pass the full sample name.
        """
        full_labels = {"node_id": self.node_id, **(labels or {})}
        full_name = f"{self.namespace}_{name}" if self.namespace else name
        return self.registry.get_sample_value(full_name, full_labels)

    def serve(self, port: int, addr: str = "0.0.0.0") -> None:
        """Start the HTTP exporter once."""
        if self._server_started:
            return
        start_http_server(port, addr=addr, registry=self.registry)
        self._server_started = True
