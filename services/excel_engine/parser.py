"""XLSX Reader - Converts workbook sheets into header-keyed rows.

Handles:
- Multiple worksheets (resolved through workbook rels)
- Shared strings, including rich-text runs
- Inline strings, booleans, numbers and formula string results
- Sparse rows (missing cells read as empty strings)
"""

from __future__ import annotations

import logging
import re
import zipfile
from pathlib import Path
from typing import Dict, List, Tuple
from xml.etree import ElementTree as ET

from services.errors import IOFailure, MalformedInput

from .schemas import SheetRow, SheetTable

logger = logging.getLogger(__name__)


# =============================================================================
# NAMESPACES
# =============================================================================

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
}


# =============================================================================
# UTILITIES
# =============================================================================

def col_letter_to_index(col: str) -> int:
    """Convert column letter(s) to 1-indexed number. A=1, B=2, ..., Z=26, AA=27."""
    result = 0
    for char in col.upper():
        result = result * 26 + (ord(char) - ord('A') + 1)
    return result


def col_index_to_letter(index: int) -> str:
    """Convert 1-indexed column number to letter(s). 1=A, 2=B, ..., 27=AA."""
    result = ""
    while index > 0:
        index -= 1
        result = chr(ord('A') + (index % 26)) + result
        index //= 26
    return result


def parse_cell_ref(ref: str) -> Tuple[str, int, int]:
    """Parse cell reference like 'A1' or 'AA100' into (col_letter, col_num, row_num)."""
    match = re.match(r'^([A-Z]+)(\d+)$', ref.upper())
    if not match:
        raise ValueError(f"Invalid cell reference: {ref}")
    col_letter = match.group(1)
    row = int(match.group(2))
    col = col_letter_to_index(col_letter)
    return col_letter, col, row


def format_number(raw: str) -> str:
    """Render a numeric cell the way a person typed it: 18.0 -> "18", 0.80000000000000004 -> "0.8"."""
    raw = raw.strip()
    try:
        return str(int(raw))
    except ValueError:
        pass
    try:
        number = float(raw)
    except ValueError:
        return raw
    if number.is_integer() and abs(number) < 1e15:
        return str(int(number))
    return repr(number)


# =============================================================================
# SHARED STRINGS
# =============================================================================

def _parse_shared_strings(zf: zipfile.ZipFile) -> List[str]:
    """Parse shared strings table."""
    shared_strings: List[str] = []

    try:
        with zf.open("xl/sharedStrings.xml") as f:
            root = ET.parse(f).getroot()
    except KeyError:
        return shared_strings  # No shared strings

    ns = NS["main"]
    for si in root.findall(f"{{{ns}}}si"):
        t_el = si.find(f"{{{ns}}}t")
        if t_el is not None:
            shared_strings.append(t_el.text or "")
        else:
            # Rich text (multiple <r> elements)
            text_parts = []
            for r in si.findall(f"{{{ns}}}r"):
                t = r.find(f"{{{ns}}}t")
                if t is not None and t.text:
                    text_parts.append(t.text)
            shared_strings.append("".join(text_parts))

    return shared_strings


# =============================================================================
# CELLS
# =============================================================================

def _cell_value(cell_el: ET.Element, shared_strings: List[str]) -> str:
    """Resolve a <c> element to its display string."""
    ns = NS["main"]
    data_type = cell_el.get("t")

    if data_type == "inlineStr":
        is_el = cell_el.find(f"{{{ns}}}is")
        if is_el is None:
            return ""
        return "".join(t.text or "" for t in is_el.iter(f"{{{ns}}}t"))

    v_el = cell_el.find(f"{{{ns}}}v")
    raw_value = v_el.text if v_el is not None else None
    if raw_value is None:
        return ""

    if data_type == "s":
        try:
            return shared_strings[int(raw_value)]
        except (ValueError, IndexError):
            return raw_value
    if data_type == "b":
        return "true" if raw_value == "1" else "false"
    if data_type in ("str", "e"):
        return raw_value
    return format_number(raw_value)


def _parse_rows(sheet_el: ET.Element, shared_strings: List[str]) -> Dict[int, Dict[int, str]]:
    """Collect non-empty cell values as {row_num: {col_num: value}}."""
    ns = NS["main"]
    grid: Dict[int, Dict[int, str]] = {}

    sheet_data = sheet_el.find(f"{{{ns}}}sheetData")
    if sheet_data is None:
        return grid

    last_row = 0
    for row_el in sheet_data.findall(f"{{{ns}}}row"):
        row_num = int(row_el.get("r", 0)) or last_row + 1
        last_row = row_num

        last_col = 0
        cells: Dict[int, str] = {}
        for cell_el in row_el.findall(f"{{{ns}}}c"):
            cell_ref = cell_el.get("r")
            if cell_ref:
                try:
                    _, col_num, _ = parse_cell_ref(cell_ref)
                except ValueError:
                    continue
            else:
                col_num = last_col + 1
            last_col = col_num

            value = _cell_value(cell_el, shared_strings)
            if value != "":
                cells[col_num] = value

        if cells:
            grid[row_num] = cells

    return grid


def parse_sheet(
    zf: zipfile.ZipFile,
    sheet_path: str,
    sheet_name: str,
    shared_strings: List[str],
) -> SheetTable:
    """Parse a single worksheet into header + rows.

    The first non-empty row is the header; columns with an empty header are
    ignored.
    """
    with zf.open(sheet_path) as f:
        sheet_el = ET.parse(f).getroot()

    grid = _parse_rows(sheet_el, shared_strings)
    if not grid:
        return SheetTable(name=sheet_name)

    header_row_num = min(grid)
    header_cells = grid.pop(header_row_num)
    headers_by_col = {col: value.strip() for col, value in header_cells.items() if value.strip()}
    headers = [headers_by_col[c] for c in sorted(headers_by_col)]

    rows: List[SheetRow] = []
    for row_num in sorted(grid):
        cells = grid[row_num]
        values = {header: cells.get(col, "") for col, header in headers_by_col.items()}
        if not any(v.strip() for v in values.values()):
            continue
        rows.append(SheetRow(values=values, row=row_num))

    return SheetTable(name=sheet_name, headers=headers, rows=rows)


# =============================================================================
# WORKBOOK PARSING
# =============================================================================

def _sheet_paths(zf: zipfile.ZipFile) -> List[Tuple[str, str]]:
    """Return (sheet_name, zip_path) pairs in workbook order."""
    with zf.open("xl/workbook.xml") as f:
        wb_root = ET.parse(f).getroot()

    ns = NS["main"]
    r_ns = NS["r"]

    sheet_infos = []
    sheets_el = wb_root.find(f"{{{ns}}}sheets")
    if sheets_el is not None:
        for sheet in sheets_el.findall(f"{{{ns}}}sheet"):
            sheet_infos.append((sheet.get("name"), sheet.get(f"{{{r_ns}}}id")))

    with zf.open("xl/_rels/workbook.xml.rels") as f:
        rels_root = ET.parse(f).getroot()

    id_to_target: Dict[str, str] = {}
    for rel in rels_root.findall(f"{{{NS['rel']}}}Relationship"):
        rel_id = rel.get("Id")
        target = rel.get("Target")
        if rel_id and target:
            id_to_target[rel_id] = target

    paths = []
    for name, r_id in sheet_infos:
        target = id_to_target.get(r_id, "")
        if not target:
            continue
        if target.startswith("/"):
            paths.append((name, target[1:]))
        else:
            paths.append((name, f"xl/{target}"))
    return paths


def read_workbook(xlsx_path: str | Path) -> Dict[str, SheetTable]:
    """Read every worksheet of an XLSX file, keyed by sheet name."""
    xlsx_path = str(xlsx_path)

    try:
        zf = zipfile.ZipFile(xlsx_path, "r")
    except zipfile.BadZipFile as e:
        raise MalformedInput("Not an XLSX workbook", xlsx_path) from e
    except OSError as e:
        raise IOFailure("read", xlsx_path, e) from e

    sheets: Dict[str, SheetTable] = {}
    with zf:
        try:
            shared_strings = _parse_shared_strings(zf)
            sheet_paths = _sheet_paths(zf)
        except KeyError as e:
            raise MalformedInput(f"Workbook part missing: {e}", xlsx_path) from e
        except ET.ParseError as e:
            raise MalformedInput(f"Workbook part is not valid XML: {e}", xlsx_path) from e

        for name, sheet_path in sheet_paths:
            try:
                sheets[name] = parse_sheet(zf, sheet_path, name, shared_strings)
            except KeyError:
                logger.warning(f"[XLSX] Sheet '{name}' points at missing part {sheet_path}")
                continue
            except ET.ParseError as e:
                raise MalformedInput(f"Sheet '{name}' is not valid XML: {e}", xlsx_path) from e

    logger.debug(f"[XLSX] Read {len(sheets)} sheets from {xlsx_path}")
    return sheets
