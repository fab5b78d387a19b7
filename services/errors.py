"""Error taxonomy for the materials database converter.

Callers branch on the exception type (and the structured data it carries),
never on message text.
"""
from __future__ import annotations

from typing import List, Optional


class MaterialsError(Exception):
    """Base class for all converter failures."""


class MalformedInput(MaterialsError):
    """Source document or workbook lacks the required top-level structure."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{message} ({path})"
        super().__init__(message)


class MalformedTree(MalformedInput):
    """Parsed tree has no `materials` root."""


class IOFailure(MaterialsError):
    """A read, write or backup failed. Always carries the attempted path."""

    def __init__(self, action: str, path: str, cause: Optional[BaseException] = None):
        self.action = action
        self.path = str(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to {action} {self.path}{detail}")


class DesktopActionError(MaterialsError):
    """A file dialog or spreadsheet-viewer launch failed."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(message)


class IntegrityViolation(MaterialsError):
    """Duplicate material names or ids found before import.

    `duplicate_names` / `duplicate_ids` hold the same groups the report shows
    (DuplicateMaterialName / DuplicateMaterialId models), so an operator can
    locate every offending row.
    """

    def __init__(self, duplicate_names: List = None, duplicate_ids: List = None):
        self.duplicate_names = list(duplicate_names or [])
        self.duplicate_ids = list(duplicate_ids or [])
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        parts = []
        if self.duplicate_names:
            groups = ", ".join(
                f"{g.name} (rows {_fmt_rows(g.rows)})" for g in self.duplicate_names
            )
            parts.append(f"duplicate material_name values: {groups}")
        if self.duplicate_ids:
            groups = ", ".join(
                f"{g.id} (rows {_fmt_rows(g.rows)})" for g in self.duplicate_ids
            )
            parts.append(f"duplicate material_id values: {groups}")
        return "Materials: " + "; ".join(parts)

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "duplicateNames": [g.model_dump() for g in self.duplicate_names],
            "duplicateIds": [g.model_dump() for g in self.duplicate_ids],
        }


def _fmt_rows(rows) -> str:
    return ", ".join(str(r) for r in rows if r is not None) or "?"
