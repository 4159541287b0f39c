"""Load optional project configuration from `knbn.config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .constants import CONFIG_FILE, DEFAULT_SERVER_HOST, DEFAULT_SERVER_PORT, LOG_LEVELS


def _load_yaml_with_error(path: Path) -> tuple[dict[str, Any], str | None]:
    """Load a YAML mapping and return (data, error_message)."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        return {}, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except yaml.YAMLError as exc:
        return {}, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def load_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional project config file.

    Args:
        project_dir: Directory holding the board files.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = Path(project_dir).resolve() / CONFIG_FILE
    if not path.exists():
        return {}, None
    return _load_yaml_with_error(path)


def get_default_columns(config: dict[str, Any]) -> list[str] | None:
    """Column names for newly created boards, or None to use the stock layout.

    Args:
        config: Project configuration dictionary.

    Returns:
        The configured column names if every entry is a non-empty string.
    """
    raw = config.get("columns")
    if not isinstance(raw, list) or not raw:
        return None
    if not all(isinstance(name, str) and name for name in raw):
        return None
    return list(raw)


def get_log_level(config: dict[str, Any]) -> str | None:
    raw = config.get("log_level")
    if isinstance(raw, str) and raw.upper() in LOG_LEVELS:
        return raw.upper()
    return None


def get_server_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the `server` block, filling in host and port defaults.

    Args:
        config: Project configuration dictionary.

    Returns:
        A mapping with `host` (str) and `port` (int).
    """
    raw = config.get("server")
    block = raw if isinstance(raw, dict) else {}
    host = block.get("host")
    port = block.get("port")
    return {
        "host": host if isinstance(host, str) and host else DEFAULT_SERVER_HOST,
        "port": port if isinstance(port, int) and not isinstance(port, bool) and 0 < port < 65536 else DEFAULT_SERVER_PORT,
    }
