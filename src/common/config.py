"""Load and validate status bridge configuration from config.yaml."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("orion")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
_DEFAULT_CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

DEFAULTS: dict[str, Any] = {
    "gateway": {
        "url": "ws://127.0.0.1:18789",
        "reconnect_delay": 5.0,
        "open_timeout": 10.0,
    },
    "status": {
        "primary": "data/status.json",
        "mirrors": [],
    },
    "signals": {
        "subagents_file": "data/subagents.json",
        "alert_file": "data/alert.json",
    },
    "log_dir": "logs",
    "log_level": "INFO",
}


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file, with env-var overrides.

    Environment variable overrides (if set):
        ORION_GATEWAY_URL       -> gateway.url
        ORION_RECONNECT_DELAY   -> gateway.reconnect_delay
        ORION_STATUS_FILE       -> status.primary
        ORION_STATUS_MIRRORS    -> status.mirrors (os.pathsep separated)
        ORION_SUBAGENTS_FILE    -> signals.subagents_file
        ORION_ALERT_FILE        -> signals.alert_file
        ORION_LOG_DIR           -> log_dir
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    cfg = copy.deepcopy(DEFAULTS)
    if path.exists():
        with open(path, encoding="utf-8") as fh:
            try:
                loaded = yaml.safe_load(fh) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        _merge(cfg, loaded)
    else:
        logger.warning("Config file not found at %s -- using defaults", path)

    # Apply env-var overrides
    _env_override(cfg, "ORION_GATEWAY_URL", "gateway", "url")
    _env_override(cfg, "ORION_RECONNECT_DELAY", "gateway", "reconnect_delay")
    _env_override(cfg, "ORION_STATUS_FILE", "status", "primary")
    _env_override(cfg, "ORION_SUBAGENTS_FILE", "signals", "subagents_file")
    _env_override(cfg, "ORION_ALERT_FILE", "signals", "alert_file")
    _env_override(cfg, "ORION_LOG_DIR", "log_dir")
    mirrors = os.environ.get("ORION_STATUS_MIRRORS")
    if mirrors is not None:
        cfg["status"]["mirrors"] = [m for m in mirrors.split(os.pathsep) if m]

    _validate(cfg)
    return cfg


def _merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Recursively merge ``override`` into ``base`` in place."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value


def _env_override(cfg: dict, env_key: str, *keys: str) -> None:
    """Override a nested config value from an environment variable."""
    val = os.environ.get(env_key)
    if val is None:
        return
    target = cfg
    for k in keys[:-1]:
        target = target.setdefault(k, {})
    target[keys[-1]] = val


def _validate(cfg: dict[str, Any]) -> None:
    """Validate gateway settings and normalise numeric fields."""
    gw = cfg["gateway"]
    url = str(gw.get("url", ""))
    if not url.startswith(("ws://", "wss://")):
        raise ValueError(f"Gateway URL must be a websocket URL: {url!r}")

    try:
        delay = float(gw.get("reconnect_delay"))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid reconnect_delay: {gw.get('reconnect_delay')!r}") from None
    if delay <= 0:
        raise ValueError(f"reconnect_delay must be positive, got {delay}")
    gw["reconnect_delay"] = delay
    gw["open_timeout"] = float(gw.get("open_timeout") or DEFAULTS["gateway"]["open_timeout"])

    mirrors = cfg["status"].get("mirrors") or []
    if isinstance(mirrors, str):
        mirrors = [mirrors]
    cfg["status"]["mirrors"] = list(mirrors)

    if not cfg["status"].get("primary"):
        raise ValueError("status.primary must be set")


def resolve_path(value: Path | str) -> Path:
    """Return ``value`` as an absolute path, relative paths anchored at the repo root."""
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = REPO_DIR / path
    return path


def setup_logging(cfg: dict[str, Any]) -> None:
    """Configure root logging: stderr + rotating file."""
    log_dir = resolve_path(cfg["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)

    from logging.handlers import RotatingFileHandler

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    root = logging.getLogger("orion")
    root.setLevel(getattr(logging, str(cfg.get("log_level", "INFO")).upper(), logging.INFO))
    if root.handlers:
        return

    # stderr
    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    root.addHandler(sh)

    # rotating file
    fh = RotatingFileHandler(log_dir / "status_bridge.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    root.addHandler(fh)
