"""Report Store - Saves integrity reports as JSON for the report viewer.

Each report is written as its own `report-<epoch-ms>.json` file in the
reports folder; the viewer shows the newest one unless asked for a file.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from models.schemas import MaterialsReport
from services.config import get_settings
from services.errors import IOFailure, MalformedInput
from services.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)

REPORT_GLOB = "report-*.json"


def _reports_dir(folder: str | Path | None) -> Path:
    return Path(folder) if folder else get_settings().reports_dir


def save_report(
    report: MaterialsReport,
    folder: str | Path | None = None,
    out_path: str | Path | None = None,
) -> Path:
    """Write `report` as JSON and return the file path.

    `out_path` wins over `folder`; with neither, the configured reports
    directory is used.
    """
    if out_path:
        path = Path(out_path)
    else:
        path = _reports_dir(folder) / f"report-{int(time.time() * 1000)}.json"

    data = json.dumps(report.to_json_dict(), indent=2, ensure_ascii=False).encode("utf-8")
    atomic_write_bytes(path, data)
    logger.info(f"[REPORT] Saved report to {path}")
    return path


def latest_report_file(folder: str | Path | None = None) -> Optional[Path]:
    """Newest report-*.json in the folder, or None."""
    directory = _reports_dir(folder)
    if not directory.is_dir():
        return None
    candidates = sorted(directory.glob(REPORT_GLOB), key=lambda p: p.stat().st_mtime)
    return candidates[-1] if candidates else None


def load_report(path: str | Path) -> Dict[str, Any]:
    """Load a saved report as plain JSON."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise IOFailure("read", str(path), e) from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInput(f"Report is not valid JSON: {e}", str(path)) from e
