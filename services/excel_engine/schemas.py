"""Pydantic schemas for the tabular store.

A workbook is a set of named sheets; each sheet is a header row plus data
rows. Cell values are always transported as strings. The spreadsheet row
number of a data row is kept beside its values, never as a column.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SheetColumn(BaseModel):
    """One column of a sheet layout."""
    key: str  # Header text, also the row value key
    width: int = 12  # Display width in characters


class SheetRow(BaseModel):
    """A data row: column values plus its spreadsheet row number."""
    values: Dict[str, str] = Field(default_factory=dict)
    row: Optional[int] = None  # 1-indexed row in the sheet; None if not read from a file

    def get(self, key: str, default: str = "") -> str:
        value = self.values.get(key)
        return default if value is None else value

    def text(self, key: str) -> str:
        """Whitespace-trimmed value, used for ids, keys and names."""
        return self.get(key).strip()

    def __getitem__(self, key: str) -> str:
        return self.get(key)

    def __setitem__(self, key: str, value: str) -> None:
        self.values[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.values


class SheetTable(BaseModel):
    """A sheet as read from a workbook."""
    name: str
    headers: List[str] = Field(default_factory=list)
    rows: List[SheetRow] = Field(default_factory=list)


class SheetData(BaseModel):
    """A sheet to be written: fixed column layout plus row dicts."""
    name: str
    columns: List[SheetColumn]
    rows: List[Dict[str, str]] = Field(default_factory=list)
