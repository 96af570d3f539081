"""Configuration paths and rendering limits for prlens."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("PRLENS_HOME", str(Path.home() / ".prlens"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_BASE_REF = "HEAD~1"
DEFAULT_HEAD_REF = "HEAD"


@dataclass(frozen=True)
class Limits:
    """Caps applied when rendering tool output."""
    impact_max_sites: int = 15
    callers_max_results: int = 20
    search_max_results: int = 30
    commit_diff_max_lines: int = 10000
    lint_max_per_severity: int = 10
    type_search_window: int = 50


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    config_path = path or CONFIG_FILE
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config_path, exc)
        return {}


def load_limits(path: Optional[Path] = None) -> Limits:
    """Build :class:`Limits` from the ``[limits]`` table.

    Unknown keys are ignored; values that are not positive integers keep
    their defaults.
    """
    section = load_full_config(path).get("limits", {})
    overrides: Dict[str, int] = {}
    for f in fields(Limits):
        value = section.get(f.name)
        if value is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            overrides[f.name] = value
        else:
            logger.warning("Invalid value for limits.%s: %r", f.name, value)
    return Limits(**overrides)
