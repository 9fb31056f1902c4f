#!/usr/bin/env python3
"""Status endpoint -- serves the bridge's status.json to the dashboard.

The bridge may be between writes, restarting, or only able to reach one of
its write targets, so the endpoint tries each configured status file in
order and falls back to a neutral idle document rather than erroring.

Run with:
    python3 -m uvicorn src.dashboard.app:app --host 127.0.0.1 --port 8765
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Allow running from repo root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from src.common.config import REPO_DIR, load_config, resolve_path
from src.common.state import read_json

logger = logging.getLogger("orion.dashboard")

app = FastAPI(title="Orion Command Center Status", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

NO_CACHE_HEADERS = {"Cache-Control": "no-store, no-cache, must-revalidate"}

UNAVAILABLE_STATUS: dict[str, Any] = {
    "state": "idle",
    "stateDescription": "Status unavailable",
    "currentTask": None,
    "activityLog": [],
    "subAgents": [],
}


def _cfg() -> dict[str, Any]:
    return load_config(CONFIG_PATH)


def status_paths(cfg: dict[str, Any]) -> list[Path]:
    """Primary status file first, then each mirror."""
    status_cfg = cfg["status"]
    paths = [resolve_path(status_cfg["primary"])]
    paths += [resolve_path(p) for p in status_cfg.get("mirrors", [])]
    return paths


def read_status(paths: list[Path]) -> dict[str, Any] | None:
    for path in paths:
        doc = read_json(path)
        if isinstance(doc, dict):
            return doc
    return None


@app.get("/api/status")
async def api_status() -> JSONResponse:
    try:
        doc = read_status(status_paths(_cfg()))
    except (OSError, ValueError) as e:
        logger.error("GET /api/status failed to load config: %s", e)
        doc = None
    if doc is None:
        return JSONResponse(dict(UNAVAILABLE_STATUS), headers=NO_CACHE_HEADERS)
    return JSONResponse(doc, headers=NO_CACHE_HEADERS)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.dashboard.app:app",
        host="127.0.0.1",
        port=8765,
        reload=False,
        log_level="info",
    )
