from .models import Address, ConnectPolicy, NodeConfig, NodeRole, format_address, parse_address
from .system import (
    RING_CONFIG_ENV_VAR,
    RING_CONFIG_FILENAMES,
    load_ring_config,
    read_config_file,
    resolve_ring_config_path,
)

__all__ = [
    "Address",
    "ConnectPolicy",
    "NodeConfig",
    "NodeRole",
    "format_address",
    "parse_address",
    "RING_CONFIG_ENV_VAR",
    "RING_CONFIG_FILENAMES",
    "load_ring_config",
    "read_config_file",
    "resolve_ring_config_path",
]
