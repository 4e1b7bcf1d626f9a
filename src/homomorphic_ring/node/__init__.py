from .local import run_local_ring
from .runtime import STATE_CODES, MasterNode, NodeState, RelayNode, RingNode, build_node

__all__ = [
    "STATE_CODES",
    "MasterNode",
    "NodeState",
    "RelayNode",
    "RingNode",
    "build_node",
    "run_local_ring",
]
