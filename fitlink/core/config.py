"""Configuration loading."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # Python 3.9-3.10
    import tomli as tomllib  # type: ignore[no-redef]

from fitlink.core.constants import (
    CONFIG_CACHE_TTL_SECONDS,
    CONFIG_FALLBACK_STATUSES,
    DEFAULT_PORT,
    FRAME_FALLBACK_STATUSES,
    REDRAIN_DELAY_SECONDS,
)


class ConfigError(RuntimeError):
    """Raised when config file parsing fails."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def expand_path(path_str: str) -> Path:
    """Expand user/env vars and return absolute path."""
    return Path(os.path.expandvars(path_str)).expanduser().resolve()


def default_config_path() -> Path:
    raw = os.getenv("FITLINK_CONFIG_FILE", "~/.config/fitlink/config.toml")
    return expand_path(raw)


def _default_config() -> Dict[str, Any]:
    return {
        "backend": {
            "base_url": "",
            "candidate_urls": [],
            "port": DEFAULT_PORT,
            "token_env": "FITLINK_TOKEN",
        },
        "retry": {
            "max_retries": 3,
            "base_delay": 1.0,
            "max_delay": 10.0,
            "backoff_factor": 2.0,
        },
        "timeouts": {
            "request_seconds": 30,
            "upload_seconds": 60,
            "health_seconds": 5,
            "probe_seconds": 5,
        },
        "cache": {
            "config_ttl_seconds": CONFIG_CACHE_TTL_SECONDS,
        },
        "queue": {
            "redrain_delay_seconds": REDRAIN_DELAY_SECONDS,
        },
        "fallback": {
            "frame_statuses": list(FRAME_FALLBACK_STATUSES),
            "config_statuses": list(CONFIG_FALLBACK_STATUSES),
        },
        "logging": {
            "level": "WARNING",
        },
    }


DEFAULT_CONFIG: Dict[str, Any] = _default_config()


def _read_config(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text()
    try:
        if suffix in {".toml", ""}:
            loaded = tomllib.loads(text)
        else:
            loaded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain an object/table at the root")
    return loaded


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from disk, merged with defaults."""
    cfg_path = path or default_config_path()
    cfg = _default_config()
    if cfg_path.exists():
        cfg = _deep_merge(cfg, _read_config(cfg_path))
    return cfg


def resolve_base_url(config: Dict[str, Any]) -> Optional[str]:
    """Pinned backend URL from env or config, if any."""
    raw = os.getenv("FITLINK_BACKEND_URL") or config.get("backend", {}).get("base_url")
    return str(raw).rstrip("/") if raw else None


def resolve_token(config: Dict[str, Any]) -> Optional[str]:
    """Bearer token from the environment variable named in config."""
    env_name = config.get("backend", {}).get("token_env") or "FITLINK_TOKEN"
    return os.getenv(str(env_name)) or None
