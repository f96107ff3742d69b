"""Layered configuration for controlmark.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.controlmark/config.yaml)
3. Environment (CONTROLMARK_API_BASE_URL)
4. CLI parameters (override)
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

ENV_API_BASE_URL = "CONTROLMARK_API_BASE_URL"

DEFAULT_CONFIG: dict = {
    "api": {
        "base_url": "http://localhost:3000",
        "timeout_seconds": None,
        "endpoints": {
            "controls": "/controls",
            "configurations": "/saved-configurations",
            "reports": "/reports",
            "download": "/reports/download/{file_id}",
        },
    },
    "catalog": {
        "builtin": "cis-linux",
        "file": None,
        "device_subtype": None,
    },
    "report": {
        "content_type": "application/pdf",
        "extension": ".pdf",
        "output_dir": ".",
    },
    "session": {
        "path": None,
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .controlmark/config.yaml."""
    config_path = project_path / ".controlmark" / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        data = yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not a mapping", config_path)
        return {}
    return data


def env_overrides() -> dict:
    base_url = os.environ.get(ENV_API_BASE_URL, "").strip()
    if base_url:
        return {"api": {"base_url": base_url}}
    return {}


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    env_config = env_overrides()
    if env_config:
        config = deep_merge(config, env_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    config["_project_path"] = str(project_path)
    return config
