"""Excel Engine - tabular store for the materials workbook.

This module handles:
1. Reading XLSX sheets into header-keyed rows (with spreadsheet row numbers)
2. Writing a fresh XLSX from fixed sheet layouts
"""

from .schemas import (
    SheetColumn,
    SheetData,
    SheetRow,
    SheetTable,
)
from .parser import read_workbook, parse_sheet
from .writer import build_workbook, write_workbook

__all__ = [
    # Schemas
    "SheetColumn",
    "SheetData",
    "SheetRow",
    "SheetTable",
    # Functions
    "read_workbook",
    "parse_sheet",
    "build_workbook",
    "write_workbook",
]
