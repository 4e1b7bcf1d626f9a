"""End-to-end and config-layering tests for the node command line."""

import json
import logging
import threading

import pytest

from homomorphic_ring import cli
from homomorphic_ring.communication import listener_address, open_listener
from homomorphic_ring.config import NodeConfig, NodeRole, RING_CONFIG_ENV_VAR
from homomorphic_ring.node import RelayNode
from homomorphic_ring.protocol import KeyFraming


@pytest.fixture(autouse=True)
def _restore_root_logging():
    # main() reconfigures the root logger onto the captured stdout.
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _free_address() -> str:
    placeholder = open_listener(("127.0.0.1", 0))
    host, port = listener_address(placeholder)
    placeholder.close()
    return f"{host}:{port}"


def _args(*argv: str):
    return cli.build_parser().parse_args(list(argv))


def test_flags_alone_build_a_relay(monkeypatch) -> None:
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    cfg = cli.load_node_config(_args("--next", "b:2", "--bind", "a:1", "--add", "-7", "--mul", "3"))
    assert cfg.role == NodeRole.RELAY
    assert (cfg.add, cfg.mul) == (-7, 3)


def test_flags_override_file_and_ring_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    (tmp_path / "ring-config.json").write_text(json.dumps({"key_length": 1024, "connect": {"retries": 4}}))
    node_file = tmp_path / "master.json"
    node_file.write_text(
        json.dumps(
            {"role": "master", "listen": "a:1", "successor": "b:2", "add": 1, "mul": 2, "key_framing": "length_prefixed"}
        )
    )
    cfg = cli.load_node_config(
        _args("--config", str(node_file), "--mul", "9", "--connect-backoff", "0.5", "--key-length", "2048")
    )
    assert cfg.role == NodeRole.MASTER
    assert cfg.mul == 9
    assert cfg.key_length == 2048
    assert cfg.key_framing == KeyFraming.LENGTH_PREFIXED
    assert cfg.connect.retries == 4
    assert cfg.connect.backoff_seconds == 0.5


def test_bad_config_exits_with_status_2(monkeypatch) -> None:
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    assert cli.main(["--next", "b:2", "--add", "1", "--mul", "1"]) == cli.EXIT_BAD_CONFIG


@pytest.mark.parametrize(
    "override",
    [
        {"key_length": None},
        {"max_payload_bytes": None},
        {"metrics_port": []},
        {"connect": 5},
        {"connect": {"retries": None}},
    ],
)
def test_wrong_typed_config_values_exit_with_status_2(override, tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    node_file = tmp_path / "relay.json"
    node_file.write_text(json.dumps({"listen": "a:1", "successor": "b:2", "add": 1, "mul": 1, **override}))
    assert cli.main(["--config", str(node_file)]) == cli.EXIT_BAD_CONFIG


def test_connect_flags_over_non_mapping_connect_exit_with_status_2(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    node_file = tmp_path / "relay.json"
    node_file.write_text(json.dumps({"listen": "a:1", "successor": "b:2", "add": 1, "mul": 1, "connect": 5}))
    assert cli.main(["--config", str(node_file), "--connect-retries", "2"]) == cli.EXIT_BAD_CONFIG


def test_unreachable_successor_exits_with_status_1(monkeypatch, capsys) -> None:
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    code = cli.main(
        ["--master", "--bind", _free_address(), "--next", _free_address(), "--add", "1", "--mul", "1", "--key-length", "256"]
    )
    assert code == cli.EXIT_FAILURE
    assert cli.RESULT_PREFIX not in capsys.readouterr().out


def test_master_prints_ring_result(monkeypatch, capsys) -> None:
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    master_address = _free_address()
    relay_listener = open_listener(("127.0.0.1", 0))
    relay_host, relay_port = listener_address(relay_listener)
    master_host, master_port = master_address.rsplit(":", 1)
    relay = RelayNode(
        NodeConfig(
            node_id="relay_1",
            role=NodeRole.RELAY,
            listen=(relay_host, relay_port),
            successor=(master_host, int(master_port)),
            add=5,
            mul=2,
        ),
        listener=relay_listener,
    )
    thread = threading.Thread(target=relay.run, daemon=True)
    thread.start()

    code = cli.main(
        [
            "--master",
            "--bind",
            master_address,
            "--next",
            f"{relay_host}:{relay_port}",
            "--add",
            "3",
            "--mul",
            "4",
            "--key-length",
            "512",
            "--connect-retries",
            "3",
        ]
    )
    thread.join(10)

    assert code == 0
    assert f"{cli.RESULT_PREFIX} 34" in capsys.readouterr().out
