"""Readers for the two out-of-band files merged into every published status.

Both files are written by someone else (the agent itself, or a person) and
usually do not exist, so failures are silent and map to a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, NamedTuple

from src.common.state import read_json

DEFAULT_ALERT_TASK = "Attention needed"
DEFAULT_ALERT_DESCRIPTION = "Needs your attention!"


class AlertOverride(NamedTuple):
    active: bool
    task: str | None = None
    description: str | None = None


class AuxiliarySignals(NamedTuple):
    subagents: list[Any]
    alert: AlertOverride | None


def read_subagents(path: Path | str) -> list[Any]:
    """Return the sub-agent roster, or [] when missing or not a JSON array."""
    roster = read_json(path)
    return roster if isinstance(roster, list) else []


def read_alert_override(path: Path | str) -> AlertOverride | None:
    """Return the alert override, or None when missing or not a JSON object."""
    raw = read_json(path)
    if not isinstance(raw, dict):
        return None
    task = raw.get("task")
    description = raw.get("description")
    return AlertOverride(
        active=bool(raw.get("active")),
        task=task if isinstance(task, str) and task else None,
        description=description if isinstance(description, str) and description else None,
    )


def refresh_signals(subagents_path: Path | str, alert_path: Path | str) -> AuxiliarySignals:
    """Read both files fresh; nothing is cached between publishes."""
    return AuxiliarySignals(
        subagents=read_subagents(subagents_path),
        alert=read_alert_override(alert_path),
    )
