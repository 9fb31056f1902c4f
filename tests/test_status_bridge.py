from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.bridge import status_bridge


def _cfg(tmp_path: Path) -> dict:
    return {"status": {"primary": str(tmp_path / "status.json"), "mirrors": []}}


class TestPrintStatus:
    def test_no_status_yet(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert status_bridge.print_status(_cfg(tmp_path)) == 1
        assert "No status published yet" in capsys.readouterr().out

    def test_prints_summary(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (tmp_path / "status.json").write_text(json.dumps({
            "state": "coding",
            "stateDescription": "Executing tool",
            "currentTask": "search",
            "stateStartTime": "2026-10-18T09:00:00.000Z",
            "activityLog": [{"time": "2026-10-18T09:00:00.000Z", "action": "State → coding (search)"}],
            "subAgents": [{"id": "a"}, {"id": "b"}],
        }))
        assert status_bridge.print_status(_cfg(tmp_path)) == 0
        out = capsys.readouterr().out
        assert "State: coding -- Executing tool" in out
        assert "Task: search" in out
        assert "Sub-agents: 2" in out
        assert "State → coding (search)" in out


def test_main_exits_on_missing_token(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        f"status:\n  primary: {tmp_path}/status.json\nlog_dir: {tmp_path}/logs\n"
        "gateway:\n  reconnect_delay: 0.01\n"
    )
    monkeypatch.setattr("sys.argv", ["status_bridge", "--config", str(config)])
    monkeypatch.setattr("src.bridge.session.resolve_gateway_token", lambda: None)
    monkeypatch.setattr(status_bridge, "setup_logging", lambda cfg: None)
    with pytest.raises(SystemExit) as exc:
        status_bridge.main()
    assert exc.value.code == 1
