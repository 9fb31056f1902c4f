"""Gateway token lookup.

Sources are tried in a fixed order and the first non-empty token wins:

  1. ``OPENCLAW_GATEWAY_TOKEN`` environment variable
  2. ``CLAWDBOT_GATEWAY_TOKEN`` environment variable (legacy name)
  3. ``~/.openclaw/openclaw.json``  -> ``gateway.auth.token``
  4. ``~/.clawdbot/clawdbot.json``  -> ``gateway.auth.token`` (legacy tool)

A file that is missing, unreadable or malformed simply falls through to the
next source.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

from src.common.state import read_json

logger = logging.getLogger("orion.bridge.credentials")

TOKEN_ENV_VARS = ("OPENCLAW_GATEWAY_TOKEN", "CLAWDBOT_GATEWAY_TOKEN")

CONFIG_FILES = (
    Path(".openclaw") / "openclaw.json",
    Path(".clawdbot") / "clawdbot.json",
)


class MissingGatewayTokenError(RuntimeError):
    """No gateway token could be found in any supported location."""


def _token_from_config(config: Any) -> str | None:
    if not isinstance(config, dict):
        return None
    gateway = config.get("gateway")
    auth = gateway.get("auth") if isinstance(gateway, dict) else None
    token = auth.get("token") if isinstance(auth, dict) else None
    if isinstance(token, str) and token:
        return token
    return None


def resolve_gateway_token(
    env: Mapping[str, str] | None = None,
    home: Path | str | None = None,
) -> str | None:
    """Return the gateway token, or None when every source is exhausted."""
    env = os.environ if env is None else env
    for name in TOKEN_ENV_VARS:
        value = env.get(name)
        if value:
            logger.debug("Gateway token taken from $%s", name)
            return value

    home_dir = Path(home) if home is not None else Path.home()
    for rel in CONFIG_FILES:
        path = home_dir / rel
        token = _token_from_config(read_json(path))
        if token:
            logger.debug("Gateway token taken from %s", path)
            return token
    return None


def require_gateway_token(
    env: Mapping[str, str] | None = None,
    home: Path | str | None = None,
) -> str:
    token = resolve_gateway_token(env, home)
    if not token:
        raise MissingGatewayTokenError(
            "No gateway token found. Set OPENCLAW_GATEWAY_TOKEN "
            "(or CLAWDBOT_GATEWAY_TOKEN) or add gateway.auth.token to "
            "~/.openclaw/openclaw.json."
        )
    return token
