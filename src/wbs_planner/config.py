from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .timeline import DAY_WIDTH


class ConfigError(Exception):
    """Raised when a chart settings file is malformed."""


@dataclass(frozen=True)
class ChartSettings:
    """Pixel geometry shared by the position mapper, drag controller and renderer."""

    day_width: int = DAY_WIDTH
    row_height: int = 36
    header_height: int = 60
    task_list_width: int = 280
    indent_width: int = 16


def load_settings(path: str | Path | None) -> ChartSettings:
    """Read ChartSettings overrides from a YAML mapping; None yields the defaults."""

    settings = ChartSettings()
    if path is None:
        return settings

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        return settings
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected mapping at top level")

    known = {f.name for f in fields(ChartSettings)}
    extras = sorted(set(raw) - known)
    if extras:
        raise ConfigError(f"{path}: unexpected fields {extras}")

    overrides: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"{path}.{key}: expected positive integer")
        overrides[key] = value
    return replace(settings, **overrides)
