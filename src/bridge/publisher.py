"""Status publisher -- builds the dashboard's status.json and writes it out.

The publisher owns the only in-memory history the bridge keeps: the last
state it saw and a rolling log of the ten most recent state changes. Every
publish rebuilds the whole document from that history plus a fresh read of
the sub-agent roster and alert override files.

Write targets are an ordered list. Required targets (the primary file the
dashboard reads) raise on failure; optional mirrors are best-effort.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, NamedTuple

from src.bridge.classifier import ALERT, IDLE, default_description
from src.bridge.signals import (
    DEFAULT_ALERT_DESCRIPTION,
    DEFAULT_ALERT_TASK,
    AuxiliarySignals,
    refresh_signals,
)
from src.common.config import resolve_path
from src.common.state import write_json

logger = logging.getLogger("orion.bridge.publisher")

MAX_ACTIVITY_ENTRIES = 10


class WriteTarget(NamedTuple):
    path: Path
    required: bool = False


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_action(state: str, task: str | None) -> str:
    return f"State → {state}" + (f" ({task})" if task else "")


def build_status_document(
    state: str,
    task: str | None,
    description: str | None,
    *,
    timestamp: str,
    activity_log: list[dict[str, str]],
    signals: AuxiliarySignals,
) -> dict[str, Any]:
    """Assemble the status document; an active alert override wins."""
    if signals.alert is not None and signals.alert.active:
        state = ALERT
        task = signals.alert.task or DEFAULT_ALERT_TASK
        description = signals.alert.description or DEFAULT_ALERT_DESCRIPTION

    return {
        "state": state,
        "stateDescription": description or default_description(state),
        "currentTask": task,
        "stateStartTime": timestamp,
        "activityLog": [dict(entry) for entry in activity_log],
        "subAgents": signals.subagents,
    }


class StatusPublisher:
    """Tracks the current state and writes status documents to disk."""

    def __init__(
        self,
        targets: list[WriteTarget],
        subagents_path: Path | str,
        alert_path: Path | str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not any(t.required for t in targets):
            raise ValueError("At least one required write target is needed")
        self.targets = list(targets)
        self.subagents_path = Path(subagents_path)
        self.alert_path = Path(alert_path)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.current_state = IDLE
        self.activity_log: list[dict[str, str]] = []

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "StatusPublisher":
        status_cfg = cfg["status"]
        targets = [WriteTarget(resolve_path(status_cfg["primary"]), required=True)]
        targets += [WriteTarget(resolve_path(p)) for p in status_cfg.get("mirrors", [])]
        return cls(
            targets,
            subagents_path=resolve_path(cfg["signals"]["subagents_file"]),
            alert_path=resolve_path(cfg["signals"]["alert_file"]),
        )

    @property
    def primary_path(self) -> Path:
        return next(t.path for t in self.targets if t.required)

    def record_transition(self, state: str, task: str | None, timestamp: str) -> bool:
        """Log a state change (pre-override). Returns True if the state changed."""
        if state == self.current_state:
            return False
        self.activity_log.insert(0, {"time": timestamp, "action": format_action(state, task)})
        del self.activity_log[MAX_ACTIVITY_ENTRIES:]
        self.current_state = state
        return True

    def publish(
        self,
        state: str,
        task: str | None = None,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Record the transition, merge auxiliary signals and write every target.

        Raises OSError if a required target cannot be written.
        """
        timestamp = utc_timestamp(self._clock())
        self.record_transition(state, task, timestamp)

        signals = refresh_signals(self.subagents_path, self.alert_path)
        if signals.alert is not None and signals.alert.active:
            logger.warning(
                "Alert override active: %s", signals.alert.task or DEFAULT_ALERT_TASK,
            )

        doc = build_status_document(
            state, task, description,
            timestamp=timestamp,
            activity_log=self.activity_log,
            signals=signals,
        )
        self._write(doc)

        logger.info(
            "Status: %s%s%s",
            doc["state"],
            f" - {doc['currentTask']}" if doc["currentTask"] else "",
            f" [{len(signals.subagents)} sub-agents]" if signals.subagents else "",
        )
        return doc

    def _write(self, doc: dict[str, Any]) -> None:
        for target in self.targets:
            if target.required:
                try:
                    target.path.parent.mkdir(parents=True, exist_ok=True)
                    write_json(target.path, doc)
                except OSError:
                    logger.error("Failed to write status file %s", target.path)
                    raise
                continue
            try:
                write_json(target.path, doc)
            except OSError as e:
                logger.debug("Skipping status mirror %s: %s", target.path, e)
