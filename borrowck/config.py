"""borrowck Configuration — project-level .borrowckrc.yml support.

Loads configuration from .borrowckrc.yml (or .borrowckrc.yaml,
.borrowckrc.json) in the project root or any parent directory.

Example .borrowckrc.yml:
    halt_on_error: true     # stop at the first violation
    format: json            # pretty | summary | markdown | json
    log_level: INFO
    show_snapshot: false
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

FORMATS = ("pretty", "summary", "markdown", "json")


@dataclass
class BorrowckConfig:
    """Project-level checker configuration."""
    halt_on_error: bool = False
    format: str = "pretty"
    log_level: str = "WARNING"
    show_snapshot: bool = False


_CONFIG_FILES = [
    ".borrowckrc.yml",
    ".borrowckrc.yaml",
    ".borrowckrc.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> BorrowckConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found or it cannot be parsed, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return BorrowckConfig()

    try:
        with open(path, "r") as f:
            content = f.read()
    except (IOError, OSError):
        return BorrowckConfig()

    try:
        if path.endswith(".json"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError):
        return BorrowckConfig()

    if not isinstance(data, dict):
        return BorrowckConfig()
    return _dict_to_config(data)


def _dict_to_config(data: Dict[str, Any]) -> BorrowckConfig:
    """Convert a parsed dict to BorrowckConfig."""
    config = BorrowckConfig()

    if isinstance(data.get("halt_on_error"), bool):
        config.halt_on_error = data["halt_on_error"]
    if "format" in data and str(data["format"]) in FORMATS:
        config.format = str(data["format"])
    if "log_level" in data:
        config.log_level = str(data["log_level"]).upper()
    if isinstance(data.get("show_snapshot"), bool):
        config.show_snapshot = data["show_snapshot"]

    return config
