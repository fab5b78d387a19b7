"""File helpers shared by the XML and XLSX writers."""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path

from services.errors import IOFailure

logger = logging.getLogger(__name__)


def _default_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def atomic_write_bytes(path: str | Path, data: bytes) -> None:
    """Write `data` to `path` as one complete file (temp file + rename).

    An existing target keeps its permission bits; a new file gets the
    usual umask-based mode rather than the 0600 of a temp file.
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.exists():
            shutil.copymode(path, tmp_name)
        else:
            os.chmod(tmp_name, _default_mode())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise IOFailure("write", str(path), e) from e


def backup_file(path: str | Path) -> Path:
    """Copy `path` to `<path>.bak.<epoch-ms>` and return the copy's path."""
    path = Path(path)
    if not path.is_file():
        raise IOFailure("back up", str(path), FileNotFoundError("original document not found"))

    backup_path = path.with_name(f"{path.name}.bak.{int(time.time() * 1000)}")
    try:
        shutil.copy2(path, backup_path)
    except OSError as e:
        raise IOFailure("back up", str(path), e) from e

    logger.info(f"[BACKUP] Original backed up to {backup_path}")
    return backup_path
