"""Command-line entry point for a single ring node."""

import argparse
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from homomorphic_ring.config import NodeConfig, load_ring_config, read_config_file
from homomorphic_ring.errors import RingError
from homomorphic_ring.node import build_node
from homomorphic_ring.protocol import KeyFraming
from homomorphic_ring.utils import InMemoryMetrics, PrometheusMetrics, configure_logging, get_logger

logger = get_logger("cli")

RESULT_PREFIX = "The result is"
EXIT_FAILURE = 1
EXIT_BAD_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="homomorphic-ring",
        description="Run one node of a ring that evaluates a linear expression under Paillier encryption.",
    )
    parser.add_argument("-m", "--master", action="store_true", help="Run as the master node")
    parser.add_argument("-n", "--next", dest="successor", help="Address of the next node in the ring (host:port)")
    parser.add_argument("-b", "--bind", dest="listen", help="Address to listen on (host:port)")
    parser.add_argument("--add", type=int, help="Number to add")
    parser.add_argument("--mul", type=int, help="Number to multiply by")
    parser.add_argument("--config", help="Path to a node configuration file (JSON or YAML)")
    parser.add_argument("--node-id", help="Name used in logs and metrics")
    parser.add_argument("--key-length", type=int, help="Paillier modulus size in bits (master only)")
    parser.add_argument(
        "--key-framing",
        choices=[framing.value for framing in KeyFraming],
        help="How the key is framed on the wire; must match across the ring",
    )
    parser.add_argument("--connect-retries", type=int, help="Extra connect attempts to the next node")
    parser.add_argument("--connect-backoff", type=float, help="Initial delay between connect attempts (seconds)")
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL env or INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON objects")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")
    return parser


def load_node_config(args: argparse.Namespace) -> NodeConfig:
    """
    Layer ring-wide defaults, the node config file, and command-line flags.

    Later layers win. Without --master and without a role in the file the
    node is a relay.
    """
    config_path = Path(args.config) if args.config else None
    defaults, ring_path = load_ring_config(config_path)
    if defaults:
        logger.info("Loaded ring defaults from %s", ring_path)

    data: Dict[str, Any] = read_config_file(config_path) if config_path is not None else {}

    overrides = {
        "successor": args.successor,
        "listen": args.listen,
        "add": args.add,
        "mul": args.mul,
        "node_id": args.node_id,
        "key_length": args.key_length,
        "key_framing": args.key_framing,
        "log_level": args.log_level,
        "metrics_port": args.metrics_port,
    }
    data.update({key: value for key, value in overrides.items() if value is not None})
    if args.master:
        data["role"] = "master"
    data.setdefault("role", defaults.get("role", "relay"))

    connect_overrides: Dict[str, Any] = {}
    if args.connect_retries is not None:
        connect_overrides["retries"] = args.connect_retries
    if args.connect_backoff is not None:
        connect_overrides["backoff_seconds"] = args.connect_backoff
    if connect_overrides:
        connect = data.get("connect")
        if connect is not None and not isinstance(connect, Mapping):
            raise ValueError(f"'connect' in {config_path} must be a mapping, got {connect!r}")
        data["connect"] = {**(connect or {}), **connect_overrides}

    return NodeConfig.from_dict(data, defaults)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json_logs, log_file=args.log_file)

    try:
        config = load_node_config(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_BAD_CONFIG
    if args.log_level is None and config.log_level:
        configure_logging(level=config.log_level, json_output=args.json_logs, log_file=args.log_file)

    if config.metrics_port is not None:
        metrics = PrometheusMetrics(config.node_id)
        try:
            metrics.serve(config.metrics_port)
        except OSError as exc:
            logger.error("Cannot expose metrics on port %d: %s", config.metrics_port, exc)
            return EXIT_FAILURE
        logger.info("Metrics exposed on port %d", config.metrics_port)
    else:
        metrics = InMemoryMetrics()

    node = build_node(config, metrics=metrics)
    logger.info("Starting %s node %s", config.role.value, config.node_id)
    try:
        result = node.run()
    except RingError as exc:
        logger.error("Node %s failed in state %s: %s", config.node_id, node.state.value, exc)
        return EXIT_FAILURE

    if result is not None:
        print(f"{RESULT_PREFIX} {result}", flush=True)
    logger.info("Node %s finished", config.node_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
