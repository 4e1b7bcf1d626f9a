import json
import logging

import pytest

from homomorphic_ring.utils import InMemoryMetrics, PrometheusMetrics, Timer
from homomorphic_ring.utils.logging import JsonFormatter, get_logger


def test_in_memory_metrics_and_timer() -> None:
    sink = InMemoryMetrics()
    sink.emit_counter("ring_bytes_sent", value=2, role="relay")
    sink.emit_counter("ring_bytes_sent", value=3, role="relay")
    sink.emit_gauge("ring_state", value=5, role="relay")
    with Timer(sink, "ring_fold_seconds", role="relay") as timer:
        pass
    snapshot = sink.snapshot()
    assert sink.counter_total("ring_bytes_sent") == 5
    assert sink.last_gauge("ring_state") == 5
    assert sink.last_gauge("missing") is None
    assert snapshot["gauges"]["ring_state"][0].labels == (("role", "relay"),)
    assert snapshot["timers"]["ring_fold_seconds"][0].value == timer.elapsed


def test_prometheus_sink_uses_private_registry() -> None:
    first = PrometheusMetrics("relay_1")
    second = PrometheusMetrics("relay_2")
    first.emit_counter("ring_bytes_sent", 10, role="relay")
    second.emit_counter("ring_bytes_sent", 4, role="relay")
    first.emit_gauge("ring_state", 2, role="relay")
    first.emit_timer("ring_fold_seconds", 0.25, role="relay")

    assert first.sample("ring_bytes_sent_total", {"role": "relay"}) == 10
    assert second.sample("ring_bytes_sent_total", {"role": "relay"}) == 4
    assert first.sample("ring_state", {"role": "relay"}) == 2
    assert first.sample("ring_fold_seconds_sum", {"role": "relay"}) == 0.25


def test_prometheus_sink_rejects_label_drift() -> None:
    sink = PrometheusMetrics("master")
    sink.emit_counter("ring_messages_sent", role="master")
    with pytest.raises(ValueError):
        sink.emit_counter("ring_messages_sent", role="master", direction="send")


def test_json_formatter_and_logger_namespace() -> None:
    record = logging.LogRecord("homomorphic_ring.node", logging.INFO, __file__, 1, "hop %d", (1,), None)
    record.node_id = "relay_1"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "hop 1"
    assert payload["node_id"] == "relay_1"
    assert get_logger("node").name == "homomorphic_ring.node"
    assert get_logger("homomorphic_ring.cli").name == "homomorphic_ring.cli"
