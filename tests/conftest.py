"""Shared fixtures for status bridge tests."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio

from src.bridge.publisher import StatusPublisher, WriteTarget

_CLOSE = object()


class StepClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FakeGatewaySocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, messages: list[Any] | None = None, close_after: bool = True) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()
        for m in messages or []:
            self.feed(m)
        if close_after:
            self._queue.put_nowait(_CLOSE)

    def feed(self, message: Any) -> None:
        self._queue.put_nowait(message if isinstance(message, (str, bytes)) else json.dumps(message))

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(_CLOSE)

    async def __aenter__(self) -> "FakeGatewaySocket":
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        self.closed = True
        return False

    def __aiter__(self) -> "FakeGatewaySocket":
        return self

    async def __anext__(self) -> Any:
        item = await self._queue.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item


def agent_event(stream: str, **data: Any) -> dict[str, Any]:
    return {"type": "event", "event": "agent", "payload": {"stream": stream, "data": data}}


def handshake_ok() -> dict[str, Any]:
    return {"type": "res", "id": "connect-1", "ok": True}


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` until true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture()
def status_dir(tmp_path: Path) -> Path:
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture()
def publisher(status_dir: Path) -> StatusPublisher:
    """Publisher writing to data/status.json with a mirror under mirror/."""
    mirror_dir = status_dir.parent / "mirror"
    mirror_dir.mkdir()
    return StatusPublisher(
        [
            WriteTarget(status_dir / "status.json", required=True),
            WriteTarget(mirror_dir / "status.json"),
        ],
        subagents_path=status_dir / "subagents.json",
        alert_path=status_dir / "alert.json",
        clock=StepClock(),
    )


def read_status(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest_asyncio.fixture()
async def client(tmp_path: Path):
    """Async httpx client bound to the status endpoint with a temp config."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    config_file = config_dir / "config.yaml"
    config_file.write_text(f"""
status:
  primary: {data_dir}/status.json
  mirrors:
    - {tmp_path}/mirror/status.json
log_dir: {tmp_path}/logs
""")

    with patch("src.dashboard.app.CONFIG_PATH", config_file):
        from src.dashboard.app import app
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
