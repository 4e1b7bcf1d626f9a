"""Config file loading and the ring-wide defaults shared by every node."""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

RING_CONFIG_FILENAMES = ("ring-config.json", "ring-config.yaml", "ring-config.yml")
RING_CONFIG_ENV_VAR = "RING_CONFIG_PATH"


def read_config_file(path: Path) -> Dict[str, Any]:
    """
    Read a JSON or YAML mapping; the suffix picks the parser.

    Raises:
        ValueError: if the file cannot be read, does not parse, or is not a mapping.
    """
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as exc:
        raise ValueError(f"Cannot read config {path}: {exc}") from exc
    if path.suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML config at {path}: {exc}") from exc
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config at {path} must be a mapping")
    return data


def resolve_ring_config_path(node_config_path: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the ring-wide config.

    RING_CONFIG_PATH wins (relative paths resolve against the working
    directory); otherwise the first ring-config.{json,yaml,yml} beside the
    node config, defaulting to the JSON name when none exists.
    """
    env_value = os.getenv(RING_CONFIG_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate
    if node_config_path is None:
        return None
    config_dir = Path(node_config_path).resolve().parent
    for name in RING_CONFIG_FILENAMES:
        candidate = config_dir / name
        if candidate.exists():
            return candidate
    return config_dir / RING_CONFIG_FILENAMES[0]


def load_ring_config(node_config_path: Optional[Path] = None) -> Tuple[Dict[str, Any], Optional[Path]]:
    """
    Load ring-wide defaults.

    Returns:
        (config_dict, resolved_path); the dict is empty when no file exists.
    """
    path = resolve_ring_config_path(node_config_path)
    if path is None or not path.exists():
        return {}, path
    return read_config_file(path), path
