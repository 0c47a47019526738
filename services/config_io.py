"""Config loading from files and the environment.

File format is always inferred from the extension:
  .json        → JSON
  .yaml / .yml → YAML  (pyyaml)
  .toml        → TOML  (stdlib tomllib)

Environment variables use the ``ST_`` prefix, e.g. ``ST_TELEGRAM_BOT_TOKEN``.
"""
from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

_YAML_EXTS = {".yaml", ".yml"}
_TOML_EXTS = {".toml"}

_CONFIG_NAMES = ["config.json", "config.yaml", "config.yml", "config.toml"]

ENV_PREFIX = "ST_"

# Environment variable → config key, where the two don't line up
_ENV_ALIASES = {
    "ST_TELEGRAM_MESSAGE_TEMPLATE": "message_template",
}


def find_config(directory: Path) -> Path | None:
    """Return the first existing config file found in *directory*."""
    for name in _CONFIG_NAMES:
        p = directory / name
        if p.is_file():
            return p
    return None


def load_config(path: Path) -> dict[str, Any]:
    """Load a config file; format is inferred from the file extension."""
    ext = path.suffix.lower()
    if ext in _YAML_EXTS:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    elif ext in _TOML_EXTS:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def load_env(keys: set[str], environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect ``ST_*`` variables that correspond to one of *keys*."""
    environ = os.environ if environ is None else environ
    found: dict[str, str] = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = _ENV_ALIASES.get(name, name[len(ENV_PREFIX):].lower())
        if key in keys:
            found[key] = value
    return found
