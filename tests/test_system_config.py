import pytest

from homomorphic_ring.config.system import (
    RING_CONFIG_ENV_VAR,
    load_ring_config,
    resolve_ring_config_path,
)


def test_load_ring_config_beside_node_config(tmp_path, monkeypatch):
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    node_config = tmp_path / "relay.json"
    node_config.write_text("{}")
    ring_config = tmp_path / "ring-config.json"
    ring_config.write_text('{"key_length": 1024, "connect": {"retries": 2}}')

    data, path = load_ring_config(node_config)

    assert path == ring_config.resolve()
    assert data["connect"]["retries"] == 2


def test_load_ring_config_prefers_yaml_when_only_yaml_exists(tmp_path, monkeypatch):
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    node_config = tmp_path / "relay.json"
    node_config.write_text("{}")
    (tmp_path / "ring-config.yaml").write_text("key_framing: length_prefixed\n")

    data, path = load_ring_config(node_config)

    assert path.name == "ring-config.yaml"
    assert data == {"key_framing": "length_prefixed"}


def test_load_ring_config_from_env_override(tmp_path, monkeypatch):
    override_path = tmp_path / "custom.json"
    override_path.write_text('{"key_length": 4096}')
    monkeypatch.setenv(RING_CONFIG_ENV_VAR, str(override_path))

    data, path = load_ring_config(None)

    assert path == override_path
    assert data["key_length"] == 4096


def test_missing_ring_config_is_empty(tmp_path, monkeypatch):
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    node_config = tmp_path / "node.json"

    data, path = load_ring_config(node_config)

    assert data == {}
    assert path == resolve_ring_config_path(node_config)
    assert load_ring_config(None) == ({}, None)


def test_load_ring_config_invalid_json(tmp_path, monkeypatch):
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    node_config = tmp_path / "node.json"
    (tmp_path / "ring-config.json").write_text("{invalid json")

    with pytest.raises(ValueError):
        load_ring_config(node_config)


def test_ring_config_must_be_a_mapping(tmp_path, monkeypatch):
    monkeypatch.delenv(RING_CONFIG_ENV_VAR, raising=False)
    node_config = tmp_path / "node.json"
    (tmp_path / "ring-config.json").write_text("[1, 2]")

    with pytest.raises(ValueError):
        load_ring_config(node_config)
