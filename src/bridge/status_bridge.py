#!/usr/bin/env python3
"""Orion Status Bridge -- mirrors agent gateway activity into status.json.

Connects to the gateway websocket, turns agent lifecycle and exec-approval
events into one of six dashboard states, merges in the sub-agent roster and
manual alert override files, and writes the result to the configured status
file(s). Runs until killed; SIGINT/SIGTERM shut the session down cleanly.

Usage::

    python3 -m src.bridge.status_bridge
    python3 -m src.bridge.status_bridge --config config/config.yaml
    python3 -m src.bridge.status_bridge --status
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from src.bridge.credentials import MissingGatewayTokenError
from src.bridge.publisher import StatusPublisher
from src.bridge.session import GatewaySession
from src.common.config import load_config, resolve_path, setup_logging
from src.common.state import read_json

logger = logging.getLogger("orion.bridge")


def print_status(cfg: dict[str, Any]) -> int:
    """Print a summary of the currently published status document."""
    path = resolve_path(cfg["status"]["primary"])
    doc = read_json(path)
    if not isinstance(doc, dict):
        print(f"No status published yet at {path}.")
        return 1
    print(f"State: {doc.get('state', 'unknown')} -- {doc.get('stateDescription', '')}")
    print(f"Task: {doc.get('currentTask') or '-'}")
    print(f"Since: {doc.get('stateStartTime', 'unknown')}")
    subagents = doc.get("subAgents") or []
    if subagents:
        print(f"Sub-agents: {len(subagents)}")
    log = doc.get("activityLog") or []
    if log:
        print("Recent activity:")
        for entry in log:
            print(f"  {entry.get('time', '?')}  {entry.get('action', '')}")
    return 0


async def run_bridge(cfg: dict[str, Any]) -> None:
    publisher = StatusPublisher.from_config(cfg)
    session = GatewaySession.from_config(cfg, publisher)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(session.shutdown()))
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            pass

    logger.info("Orion Status Bridge starting (gateway=%s)", session.url)
    await session.run()


def main() -> None:
    parser = argparse.ArgumentParser(description="Orion Status Bridge")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument(
        "--status", action="store_true",
        help="Print the currently published status and exit",
    )
    args = parser.parse_args()

    cfg = load_config(args.config)

    if args.status:
        sys.exit(print_status(cfg))

    setup_logging(cfg)
    try:
        asyncio.run(run_bridge(cfg))
    except MissingGatewayTokenError as e:
        logger.error("Bridge stopped: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
