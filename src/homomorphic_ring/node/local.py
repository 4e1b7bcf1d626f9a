"""Run a whole ring inside one process, one thread per relay."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence, Tuple

from homomorphic_ring.communication import listener_address, open_listener
from homomorphic_ring.config import ConnectPolicy, NodeConfig, NodeRole
from homomorphic_ring.crypto import DEFAULT_KEY_LENGTH
from homomorphic_ring.protocol import KeyFraming
from homomorphic_ring.utils import get_logger

from .runtime import RingNode, build_node

logger = get_logger("local_ring")


def run_local_ring(
    terms: Sequence[Tuple[int, int]],
    host: str = "127.0.0.1",
    key_length: int = DEFAULT_KEY_LENGTH,
    key_framing: KeyFraming = KeyFraming.SELF_DELIMITING,
    connect: Optional[ConnectPolicy] = None,
    metrics_factory=None,
    join_timeout: float = 30.0,
) -> int:
    """
    Run master + relays over loopback TCP and return the master's result.

    terms[0] is the master's (add, mul); the rest are relays in ring order.
    Every listener is bound on an ephemeral port before any node starts, so no
    node can connect to a successor that is not yet listening.
    """
    if len(terms) < 2:
        raise ValueError("A ring needs a master and at least one relay")
    listeners = []
    try:
        for _ in terms:
            listeners.append(open_listener((host, 0)))
        addresses = [listener_address(listener) for listener in listeners]
        nodes: List[RingNode] = []
        for index, (add_term, mul_term) in enumerate(terms):
            config = NodeConfig(
                node_id="master" if index == 0 else f"relay_{index}",
                role=NodeRole.MASTER if index == 0 else NodeRole.RELAY,
                listen=addresses[index],
                successor=addresses[(index + 1) % len(terms)],
                add=add_term,
                mul=mul_term,
                key_length=key_length,
                key_framing=key_framing,
                connect=connect or ConnectPolicy(),
            )
            metrics = metrics_factory(config) if metrics_factory else None
            nodes.append(build_node(config, metrics=metrics, listener=listeners[index]))
    except BaseException:
        for listener in listeners:
            listener.close()
        raise

    master = nodes[0]
    errors: Dict[str, BaseException] = {}

    def _run_relay(node: RingNode) -> None:
        try:
            node.run()
        except Exception as exc:
            logger.error("Relay %s failed: %s", node.node_id, exc)
            errors[node.node_id] = exc

    threads = [
        threading.Thread(target=_run_relay, args=(node,), name=node.node_id, daemon=True)
        for node in nodes[1:]
    ]
    for thread in threads:
        thread.start()
    try:
        result = master.run()
    finally:
        for thread in threads:
            thread.join(join_timeout)
    if errors:
        raise next(iter(errors.values()))
    return result
