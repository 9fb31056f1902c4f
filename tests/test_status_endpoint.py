"""Tests for the dashboard's read-only status endpoint."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest


def _write(path: Path, doc: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc))


@pytest.mark.asyncio
class TestStatusEndpoint:
    async def test_serves_primary(self, client: httpx.AsyncClient, tmp_path: Path) -> None:
        _write(tmp_path / "data" / "status.json", {"state": "coding", "currentTask": "search"})
        _write(tmp_path / "mirror" / "status.json", {"state": "idle"})
        r = await client.get("/api/status")
        assert r.status_code == 200
        assert r.json()["state"] == "coding"
        assert "no-store" in r.headers["cache-control"]

    async def test_falls_back_to_mirror(self, client: httpx.AsyncClient, tmp_path: Path) -> None:
        _write(tmp_path / "mirror" / "status.json", {"state": "reading"})
        r = await client.get("/api/status")
        assert r.json()["state"] == "reading"

    async def test_corrupt_primary_falls_back(self, client: httpx.AsyncClient, tmp_path: Path) -> None:
        (tmp_path / "data" / "status.json").write_text("{half")
        _write(tmp_path / "mirror" / "status.json", {"state": "working"})
        r = await client.get("/api/status")
        assert r.json()["state"] == "working"

    async def test_unavailable_default(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/status")
        assert r.status_code == 200
        assert r.json() == {
            "state": "idle",
            "stateDescription": "Status unavailable",
            "currentTask": None,
            "activityLog": [],
            "subAgents": [],
        }
