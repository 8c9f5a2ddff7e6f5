"""Runtime configuration file helpers with environment overrides."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from pwalker.errors import ConfigError

CONFIG_PATH = Path.home() / ".pwalker" / "config.json"
CONFIG_SCHEMA_VERSION = "config.v1"
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
MIN_CHUNK_SIZE = 64
MAX_CHUNK_SIZE = 1024 * 1024

ENV_OVERRIDES = {
    "PWALKER_HOST": "host",
    "PWALKER_PORT": "port",
    "PWALKER_LOG_LEVEL": "log_level",
    "PWALKER_LOG_FILE": "log_file",
}


def default_config() -> dict[str, Any]:
    return {
        "schema_version": CONFIG_SCHEMA_VERSION,
        "host": "127.0.0.1",
        "port": 7788,
        "log_level": "INFO",
        "log_file": "",
        "read_chunk_size": 4096,
    }


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalize a config mapping; missing keys take defaults."""
    if not isinstance(config, dict):
        raise ConfigError("config must be object")
    defaults = default_config()
    schema_version = config.get("schema_version", CONFIG_SCHEMA_VERSION)
    if schema_version != CONFIG_SCHEMA_VERSION:
        raise ConfigError("unsupported config schema_version")
    host = str(config.get("host", defaults["host"])).strip() or defaults["host"]
    try:
        port = int(config.get("port", defaults["port"]))
    except (TypeError, ValueError) as exc:
        raise ConfigError("port must be integer") from exc
    if not 1 <= port <= 65535:
        raise ConfigError("port out of range")
    log_level = str(config.get("log_level", defaults["log_level"])).strip().upper()
    if log_level not in ALLOWED_LOG_LEVELS:
        raise ConfigError(f"unsupported log_level: {log_level}")
    log_file = str(config.get("log_file", "") or "").strip()
    try:
        read_chunk_size = int(config.get("read_chunk_size", defaults["read_chunk_size"]))
    except (TypeError, ValueError) as exc:
        raise ConfigError("read_chunk_size must be integer") from exc
    if not MIN_CHUNK_SIZE <= read_chunk_size <= MAX_CHUNK_SIZE:
        raise ConfigError(f"read_chunk_size must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE}")
    return {
        "schema_version": CONFIG_SCHEMA_VERSION,
        "host": host,
        "port": port,
        "log_level": log_level,
        "log_file": log_file,
        "read_chunk_size": read_chunk_size,
    }


def apply_env_overrides(config: dict[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    merged = dict(config)
    for env_name, key in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is not None and value.strip():
            merged[key] = value.strip()
    return validate_config(merged)


def load_config(path: Path = CONFIG_PATH, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Load config from disk (or defaults) and apply env overrides."""
    config = default_config()
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            config = validate_config(raw)
        except (OSError, ValueError) as exc:
            logging.getLogger("pwalker.supervisor.runtime_config").warning(
                "Ignoring invalid config at %s: %s", path, exc
            )
            config = default_config()
    return apply_env_overrides(config, environ)


def save_config(config: dict[str, Any], path: Path = CONFIG_PATH) -> dict[str, Any]:
    """Validate and persist config to disk."""
    validated = validate_config(config)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(validated, indent=2), encoding="utf-8")
    return validated
