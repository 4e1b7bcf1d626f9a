import random

import pytest

from homomorphic_ring.crypto import generate_keypair, plaintext_modulus
from homomorphic_ring.node import run_local_ring, runtime
from homomorphic_ring.protocol import KeyFraming, expected_result
from homomorphic_ring.utils import PrometheusMetrics

KEY_LENGTH = 512


def test_two_node_ring_scenario() -> None:
    assert run_local_ring([(3, 4), (5, 2)], key_length=KEY_LENGTH) == 34


def test_three_node_ring_scenario() -> None:
    assert run_local_ring([(2, 3), (4, 1), (0, 5)], key_length=KEY_LENGTH) == 50


@pytest.mark.parametrize("framing", list(KeyFraming))
def test_random_ring_matches_recurrence(framing: KeyFraming) -> None:
    rng = random.Random(7)
    terms = [(rng.randrange(0, 1 << 32), rng.randrange(0, 1 << 32)) for _ in range(5)]
    # Without wraparound the exact integer is below a 512-bit modulus.
    assert run_local_ring(terms, key_length=KEY_LENGTH, key_framing=framing) == expected_result(terms)


def test_ring_records_per_node_metrics() -> None:
    sinks = {}

    def _factory(config):
        sinks[config.node_id] = PrometheusMetrics(config.node_id)
        return sinks[config.node_id]

    result = run_local_ring([(1, 1), (2, 2), (3, 3)], key_length=KEY_LENGTH, metrics_factory=_factory)

    assert result == expected_result([(1, 1), (2, 2), (3, 3)])
    assert set(sinks) == {"master", "relay_1", "relay_2"}
    for node_id, sink in sinks.items():
        role = "master" if node_id == "master" else "relay"
        assert sink.sample("ring_messages_sent_total", {"role": role}) == 1.0
        assert sink.sample("ring_messages_received_total", {"role": role}) == 1.0
    assert sinks["relay_1"].sample("ring_fold_seconds_count", {"role": "relay"}) == 1.0
    assert sinks["master"].sample("ring_decrypt_seconds_count", {"role": "master"}) == 1.0


def test_ring_needs_a_relay() -> None:
    with pytest.raises(ValueError):
        run_local_ring([(1, 1)], key_length=KEY_LENGTH)


def test_ring_result_wraps_modulo_n(monkeypatch) -> None:
    keypair = generate_keypair(KEY_LENGTH)
    n = plaintext_modulus(keypair.encryption_key)
    monkeypatch.setattr(runtime, "generate_keypair", lambda key_length: keypair)
    terms = [(n - 1, 3), (-5, n + 7), (n * 4 + 2, -2)]

    result = run_local_ring(terms, key_length=KEY_LENGTH)

    assert result == expected_result(terms, n)
    assert result != expected_result(terms)
    assert 0 <= result < n
