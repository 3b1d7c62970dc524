from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class CorruptDataError(ValueError):
    """The file exists but does not hold a JSON object."""


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def read_json(path: Path) -> dict[str, Any] | None:
    """
    Strict load:
    - missing or blank file -> None
    - unparseable JSON or a non-object document -> CorruptDataError
    Never modifies the file.
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        txt = path.read_text(encoding="utf-8").strip()
    except UnicodeDecodeError as e:
        raise CorruptDataError(f"{path.name}: not UTF-8 text") from e
    if not txt:
        return None

    try:
        data = json.loads(txt)
    except json.JSONDecodeError as e:
        raise CorruptDataError(f"{path.name}: {e}") from e
    if not isinstance(data, dict):
        raise CorruptDataError(f"{path.name}: top level is {type(data).__name__}, expected object")
    return data


def quarantine(path: Path) -> Path | None:
    """Move a bad file aside as <name>.corrupt-<epoch>.json. Returns the new path."""
    path = Path(path)
    if not path.exists():
        return None
    backup = path.with_suffix(f".corrupt-{int(time.time())}.json")
    backup.write_bytes(path.read_bytes())
    path.unlink()
    logger.warning("Quarantined unreadable data file %s -> %s", path, backup)
    return backup


def load_json(path: Path) -> dict[str, Any]:
    """
    Safe load:
    - creates parent dirs
    - if missing/empty -> writes {}
    - if corrupt -> backs up raw text then resets to {}
    Always returns a dict.
    """
    path = Path(path)
    _ensure_parent(path)

    try:
        data = read_json(path)
    except CorruptDataError:
        quarantine(path)
        data = None

    if data is None:
        save_json(path, {})
        return {}
    return data


def save_json(path: Path, data: Any) -> None:
    """
    Atomic-ish save:
    - write to temp file in same directory
    - flush + fsync
    - os.replace to target
    - chmod 0600 best-effort
    """
    path = Path(path)
    _ensure_parent(path)

    tmp = path.with_name(path.name + ".tmp")

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
    ) + "\n"

    with open(tmp, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp, path)

    try:
        os.chmod(path, 0o600)
    except OSError:
        pass
