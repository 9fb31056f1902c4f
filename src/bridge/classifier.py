"""Map gateway events to bridge states.

The gateway's event vocabulary is open-ended and loosely typed, so the
mapping is an ordered rule table rather than a chain of comparisons. Each
rule matches on ``(event name, stream, phase, status)``; the first matching
rule produces a :class:`Transition`. Events that match nothing return None.

Nothing here raises on odd payloads: every field access tolerates missing
keys and wrong types.
"""

from __future__ import annotations

from typing import Any, Callable, NamedTuple

IDLE = "idle"
THINKING = "thinking"
WORKING = "working"
CODING = "coding"
READING = "reading"
ALERT = "alert"

STATES = (IDLE, THINKING, WORKING, CODING, READING, ALERT)

DEFAULT_DESCRIPTIONS: dict[str, str] = {
    IDLE: "Waiting for input",
    THINKING: "Planning and deciding",
    WORKING: "Executing tasks",
    CODING: "Writing code",
    READING: "Ingesting information",
    ALERT: "Attention needed",
}

ASSISTANT_TEXT_LIMIT = 40
COMMAND_LIMIT = 30
ELLIPSIS = "..."


class Transition(NamedTuple):
    state: str
    task: str | None
    description: str | None


def default_description(state: str) -> str:
    return DEFAULT_DESCRIPTIONS.get(state, "Unknown state")


def truncate(text: Any, limit: int) -> str | None:
    """Cut ``text`` to ``limit`` chars plus an ellipsis; None for missing input."""
    if not isinstance(text, str):
        return None
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def _field(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


class EventFacts(NamedTuple):
    """The handful of payload fields the rules look at."""

    event: str
    stream: Any
    phase: Any
    status: Any
    data: Any
    payload: Any

    @classmethod
    def extract(cls, event: Any, payload: Any) -> "EventFacts":
        data = _field(payload, "data")
        return cls(
            event=event if isinstance(event, str) else "",
            stream=_field(payload, "stream"),
            phase=_field(data, "phase"),
            status=_field(payload, "status"),
            data=data,
            payload=payload,
        )


class Rule(NamedTuple):
    """One row of the decision table.

    ``events`` matches the event name. ``stream``/``phase`` narrow agent
    events. ``exec_statuses`` additionally matches the generic ``exec``
    event when its payload status is one of the given values.
    """

    name: str
    build: Callable[[EventFacts], Transition]
    events: frozenset[str] = frozenset()
    stream: str | None = None
    phase: str | None = None
    exec_statuses: frozenset[str] = frozenset()

    def matches(self, facts: EventFacts) -> bool:
        if facts.event in self.events:
            if self.stream is not None and facts.stream != self.stream:
                return False
            if self.phase is not None and facts.phase != self.phase:
                return False
            return True
        if facts.event != "exec" or not isinstance(facts.status, str):
            return False
        return facts.status in self.exec_statuses


def _command(facts: EventFacts) -> str:
    for key in ("command", "cmd"):
        value = _field(facts.payload, key)
        if value:
            return value if isinstance(value, str) else str(value)
    return "command"


def _tool_name(facts: EventFacts) -> str:
    name = _field(facts.data, "name")
    return name if isinstance(name, str) and name else "Running tool"


RULES: tuple[Rule, ...] = (
    Rule(
        "lifecycle-start",
        lambda f: Transition(THINKING, "Processing request", "Starting to think..."),
        events=frozenset({"agent"}), stream="lifecycle", phase="start",
    ),
    Rule(
        "lifecycle-end",
        lambda f: Transition(IDLE, None, "Waiting for input"),
        events=frozenset({"agent"}), stream="lifecycle", phase="end",
    ),
    Rule(
        "assistant",
        lambda f: Transition(
            WORKING, truncate(_field(f.data, "text"), ASSISTANT_TEXT_LIMIT), "Generating response",
        ),
        events=frozenset({"agent"}), stream="assistant",
    ),
    Rule(
        "tool-call",
        lambda f: Transition(CODING, _tool_name(f), "Executing tool"),
        events=frozenset({"agent"}), stream="tool_call",
    ),
    Rule(
        "tool-result",
        lambda f: Transition(READING, "Processing result", "Reading tool output"),
        events=frozenset({"agent"}), stream="tool_result",
    ),
    Rule(
        "approval-requested",
        lambda f: Transition(
            ALERT, f"Approval: {truncate(_command(f), COMMAND_LIMIT)}", "Command needs approval",
        ),
        events=frozenset({"exec.approval.requested", "exec.approval", "approval.requested"}),
        exec_statuses=frozenset({"pending"}),
    ),
    Rule(
        "approval-resolved",
        lambda f: Transition(WORKING, "Approved - executing", "Running command"),
        events=frozenset({
            "exec.approval.resolved", "exec.approved", "exec.denied", "approval.resolved",
        }),
        exec_statuses=frozenset({"approved", "denied", "running"}),
    ),
    Rule(
        "exec-finished",
        lambda f: Transition(IDLE, None, "Command complete"),
        events=frozenset({"exec.finished", "exec.done"}),
        exec_statuses=frozenset({"finished"}),
    ),
)


def classify(event: Any, payload: Any) -> Transition | None:
    """Return the state transition implied by a gateway event, or None."""
    facts = EventFacts.extract(event, payload)
    for rule in RULES:
        if rule.matches(facts):
            return rule.build(facts)
    return None
