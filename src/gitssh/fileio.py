"""File helpers shared by the configuration store and the session cache."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` via a sibling temp file and ``os.replace``.

    Readers observe either the previous file or the new one, never a partial write.
    If anything fails before the rename, the target is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.debug("replaced %s", path)


def atomic_write_json(path: Path, payload: Any) -> None:
    atomic_write_text(path, json.dumps(payload, indent=2) + "\n")


def backup_file(path: Path, suffix: str) -> Path | None:
    if not path.is_file():
        return None
    target = path.with_name(f"{path.name}.{suffix}")
    shutil.copy2(path, target)
    logger.debug("backed up %s to %s", path, target)
    return target
