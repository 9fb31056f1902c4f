"""JSON file helpers shared by the bridge and the status endpoint.

Reads are best-effort and never raise; writes go through a temporary file
and an atomic rename so readers never observe a half-written document.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


def read_json(path: Path | str, default: Any = None) -> Any:
    """Load JSON from ``path``. Returns ``default`` if missing or unparseable."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError):
        return default


def write_json(path: Path | str, data: Any) -> None:
    """Atomically write ``data`` as indented JSON.

    The parent directory is not created; a missing directory surfaces as
    ``FileNotFoundError`` so callers decide whether it matters.
    """
    path = Path(path)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
