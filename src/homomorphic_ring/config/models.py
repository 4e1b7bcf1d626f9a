from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from homomorphic_ring.crypto import DEFAULT_KEY_LENGTH
from homomorphic_ring.crypto.paillier import MIN_KEY_LENGTH
from homomorphic_ring.protocol import DEFAULT_MAX_PAYLOAD_BYTES, KeyFraming

from .system import read_config_file

Address = Tuple[str, int]


class NodeRole(str, Enum):
    MASTER = "master"
    RELAY = "relay"


def parse_address(value: str) -> Address:
    """Parse "host:port" or "[v6-host]:port"."""
    text = str(value).strip()
    host, sep, port_text = text.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Address '{value}' must look like host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 address '{value}' must be bracketed, e.g. [::1]:5000")
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ValueError(f"Address '{value}' has a non-numeric port") from exc
    if port <= 0 or port > 65535:
        raise ValueError(f"Address '{value}' port must be within 1-65535")
    return host, port


def format_address(address: Address) -> str:
    host, port = address
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _parse_int(name: str, value: Any) -> int:
    # bool is an int subclass; a JSON true is never a valid term.
    if isinstance(value, bool):
        raise ValueError(f"'{name}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as exc:
            raise ValueError(f"'{name}' must be an integer, got {value!r}") from exc
    raise ValueError(f"'{name}' must be an integer, got {value!r}")


def _parse_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"'{name}' must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{name}' must be a number, got {value!r}") from exc


def _connect_mapping(value: Any, source: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'connect' in {source} must be a mapping, got {value!r}")
    return dict(value)


@dataclass(frozen=True)
class ConnectPolicy:
    """How hard the outbound hop tries before giving up. retries=0 fails fast."""

    retries: int = 0
    backoff_seconds: float = 0.1
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ConnectPolicy":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"Connect policy must be a mapping, got {data!r}")
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "retries":
                kwargs[key] = _parse_int("connect.retries", value)
                if kwargs[key] < 0:
                    raise ValueError("connect.retries must be non-negative")
            elif key == "backoff_seconds":
                kwargs[key] = _parse_float("connect.backoff_seconds", value)
                if kwargs[key] < 0:
                    raise ValueError("connect.backoff_seconds must be non-negative")
            elif key == "timeout_seconds":
                if value is not None:
                    value = _parse_float("connect.timeout_seconds", value)
                    if value <= 0:
                        raise ValueError("connect.timeout_seconds must be positive")
                kwargs[key] = value
            else:
                raise ValueError(f"Unknown connect policy key '{key}'")
        return cls(**kwargs)


@dataclass(frozen=True)
class NodeConfig:
    node_id: str
    role: NodeRole
    listen: Address
    successor: Address
    add: int
    mul: int
    key_length: int = DEFAULT_KEY_LENGTH
    key_framing: KeyFraming = KeyFraming.SELF_DELIMITING
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    connect: ConnectPolicy = field(default_factory=ConnectPolicy)
    log_level: Optional[str] = None
    metrics_port: Optional[int] = None

    @property
    def is_master(self) -> bool:
        return self.role == NodeRole.MASTER

    @classmethod
    def from_file(cls, path: Path, defaults: Optional[Mapping[str, Any]] = None) -> "NodeConfig":
        return cls.from_dict(read_config_file(Path(path)), defaults)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> "NodeConfig":
        """
        Build a config from a node mapping layered over ring-wide defaults.

        Keys in data win over defaults; the nested "connect" mapping is merged
        key by key.
        """
        merged: Dict[str, Any] = dict(defaults or {})
        merged.update(data)
        connect_data = _connect_mapping((defaults or {}).get("connect"), "ring defaults")
        connect_data.update(_connect_mapping(data.get("connect"), "node config"))
        try:
            role_value = merged["role"]
            listen = parse_address(merged["listen"])
            successor = parse_address(merged["successor"])
            add = _parse_int("add", merged["add"])
            mul = _parse_int("mul", merged["mul"])
        except KeyError as exc:
            raise ValueError(f"Node config missing required field {exc}") from exc
        if not isinstance(role_value, str):
            raise ValueError(f"Node role must be a string, got {role_value!r}")
        role = NodeRole(role_value.lower())
        node_id = str(merged.get("node_id") or role.value)
        key_length = _parse_int("key_length", merged.get("key_length", DEFAULT_KEY_LENGTH))
        if key_length < MIN_KEY_LENGTH:
            raise ValueError(f"key_length must be at least {MIN_KEY_LENGTH} bits")
        try:
            key_framing = KeyFraming(merged.get("key_framing", KeyFraming.SELF_DELIMITING))
        except ValueError as exc:
            raise ValueError(f"Unknown key_framing '{merged.get('key_framing')}'") from exc
        max_payload_bytes = _parse_int(
            "max_payload_bytes", merged.get("max_payload_bytes", DEFAULT_MAX_PAYLOAD_BYTES)
        )
        if max_payload_bytes <= 0:
            raise ValueError("max_payload_bytes must be positive")
        metrics_port = merged.get("metrics_port")
        if metrics_port is not None:
            metrics_port = _parse_int("metrics_port", metrics_port)
            if metrics_port <= 0 or metrics_port > 65535:
                raise ValueError("metrics_port must be within 1-65535")
        return cls(
            node_id=node_id,
            role=role,
            listen=listen,
            successor=successor,
            add=add,
            mul=mul,
            key_length=key_length,
            key_framing=key_framing,
            max_payload_bytes=max_payload_bytes,
            connect=ConnectPolicy.from_mapping(connect_data),
            log_level=str(merged["log_level"]).upper() if merged.get("log_level") else None,
            metrics_port=metrics_port,
        )
