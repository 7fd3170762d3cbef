"""Small JSON file helpers shared by the durable stores."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
# A leading dot would make a hidden file.
_SAFE_KEY = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9._-]*")


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def safe_filename(key: str) -> str:
    """Map a task id or screen kind onto a file name (without extension).

    Keys made only of safe characters are used as-is. Any other key keeps a
    readable sanitized prefix followed by `~` and a digest of the exact key,
    so two distinct keys never share a file.
    """
    if not key:
        raise ValueError("Storage key must not be empty")
    if _SAFE_KEY.fullmatch(key):
        return key
    prefix = _UNSAFE_CHARS.sub("_", key)[:48]
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
    return f"{prefix}~{digest}"


def read_json(path: Path) -> object | None:
    """Read a JSON document, treating missing or corrupt files as absent."""
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        logger.warning(
            "State file is unreadable; treating as absent",
            extra={"path": str(path)},
        )
        return None


def write_json(path: Path, payload: object) -> None:
    """Write a JSON document, replacing the previous file in one step."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(
        json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    os.replace(tmp, path)
