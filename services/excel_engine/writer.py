"""XLSX Writer - Builds a fresh workbook from sheet layouts and rows.

Produces the minimal package Excel and LibreOffice accept:
1. Content types, package and workbook relationships
2. A stylesheet with a bold header style
3. One worksheet per sheet: frozen header row, fixed column widths and
   inline-string cells (blank values produce no cell)
"""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Sequence
from xml.etree import ElementTree as ET
from xml.sax.saxutils import quoteattr

from services.fileio import atomic_write_bytes

from .parser import NS, col_index_to_letter
from .schemas import SheetColumn, SheetData

logger = logging.getLogger(__name__)

XML_DECL = b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\r\n'
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

HEADER_STYLE = 1  # Index into cellXfs

_CONTENT_TYPES_HEAD = (
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/xl/workbook.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"/>'
    '<Override PartName="/xl/styles.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.spreadsheetml.styles+xml"/>'
)

_ROOT_RELS = (
    f'<Relationships xmlns="{NS["rel"]}">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
    'Target="xl/workbook.xml"/>'
    '</Relationships>'
)

_STYLES = (
    f'<styleSheet xmlns="{NS["main"]}">'
    '<fonts count="2">'
    '<font><sz val="11"/><name val="Calibri"/></font>'
    '<font><b/><sz val="11"/><name val="Calibri"/></font>'
    '</fonts>'
    '<fills count="2">'
    '<fill><patternFill patternType="none"/></fill>'
    '<fill><patternFill patternType="gray125"/></fill>'
    '</fills>'
    '<borders count="1"><border><left/><right/><top/><bottom/><diagonal/></border></borders>'
    '<cellStyleXfs count="1"><xf numFmtId="0" fontId="0" fillId="0" borderId="0"/></cellStyleXfs>'
    '<cellXfs count="2">'
    '<xf numFmtId="0" fontId="0" fillId="0" borderId="0" xfId="0"/>'
    '<xf numFmtId="0" fontId="1" fillId="0" borderId="0" xfId="0" applyFont="1"/>'
    '</cellXfs>'
    '<cellStyles count="1"><cellStyle name="Normal" xfId="0" builtinId="0"/></cellStyles>'
    '</styleSheet>'
)


# =============================================================================
# PACKAGE PARTS
# =============================================================================

def _content_types(sheet_count: int) -> bytes:
    overrides = "".join(
        f'<Override PartName="/xl/worksheets/sheet{i}.xml" '
        'ContentType="application/vnd.openxmlformats-officedocument.spreadsheetml.worksheet+xml"/>'
        for i in range(1, sheet_count + 1)
    )
    return XML_DECL + (_CONTENT_TYPES_HEAD + overrides + "</Types>").encode("utf-8")


def _workbook_xml(names: Sequence[str]) -> bytes:
    sheets = "".join(
        f'<sheet name={quoteattr(name)} sheetId="{i}" r:id="rId{i}"/>'
        for i, name in enumerate(names, start=1)
    )
    xml = (
        f'<workbook xmlns="{NS["main"]}" xmlns:r="{NS["r"]}">'
        f'<sheets>{sheets}</sheets>'
        '</workbook>'
    )
    return XML_DECL + xml.encode("utf-8")


def _workbook_rels(sheet_count: int) -> bytes:
    rels = [
        f'<Relationship Id="rId{i}" '
        'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet" '
        f'Target="worksheets/sheet{i}.xml"/>'
        for i in range(1, sheet_count + 1)
    ]
    rels.append(
        f'<Relationship Id="rId{sheet_count + 1}" '
        'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/styles" '
        'Target="styles.xml"/>'
    )
    xml = f'<Relationships xmlns="{NS["rel"]}">' + "".join(rels) + "</Relationships>"
    return XML_DECL + xml.encode("utf-8")


# =============================================================================
# WORKSHEETS
# =============================================================================

def _append_string_cell(row_el: ET.Element, ref: str, text: str, style: int | None = None) -> None:
    c = ET.SubElement(row_el, "c", r=ref, t="inlineStr")
    if style is not None:
        c.set("s", str(style))
    is_el = ET.SubElement(c, "is")
    t = ET.SubElement(is_el, "t")
    t.text = text
    # Preserve whitespace
    if text[0].isspace() or text[-1].isspace():
        t.set(XML_SPACE, "preserve")


def _worksheet_xml(columns: List[SheetColumn], rows: List[Dict[str, str]]) -> bytes:
    """Serialize one worksheet.

    Elements are built un-namespaced with an explicit xmlns attribute so the
    spreadsheetml namespace is the default one, as Excel expects.
    """
    root = ET.Element("worksheet", xmlns=NS["main"])

    # Freeze the header row
    views = ET.SubElement(root, "sheetViews")
    view = ET.SubElement(views, "sheetView", workbookViewId="0")
    ET.SubElement(view, "pane", ySplit="1", topLeftCell="A2", activePane="bottomLeft", state="frozen")

    cols_el = ET.SubElement(root, "cols")
    for i, column in enumerate(columns, start=1):
        ET.SubElement(cols_el, "col", min=str(i), max=str(i), width=str(column.width), customWidth="1")

    sheet_data = ET.SubElement(root, "sheetData")

    header_el = ET.SubElement(sheet_data, "row", r="1")
    for i, column in enumerate(columns, start=1):
        _append_string_cell(header_el, f"{col_index_to_letter(i)}1", column.key, HEADER_STYLE)

    for row_num, values in enumerate(rows, start=2):
        row_el = ET.SubElement(sheet_data, "row", r=str(row_num))
        for i, column in enumerate(columns, start=1):
            value = values.get(column.key)
            if value is None:
                continue
            text = str(value)
            if text == "":
                continue
            _append_string_cell(row_el, f"{col_index_to_letter(i)}{row_num}", text)

    return XML_DECL + ET.tostring(root, encoding="utf-8", xml_declaration=False)


# =============================================================================
# WORKBOOK
# =============================================================================

def build_workbook(sheets: Sequence[SheetData]) -> bytes:
    """Build the complete XLSX package in memory."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("[Content_Types].xml", _content_types(len(sheets)))
        zf.writestr("_rels/.rels", XML_DECL + _ROOT_RELS.encode("utf-8"))
        zf.writestr("xl/workbook.xml", _workbook_xml([s.name for s in sheets]))
        zf.writestr("xl/_rels/workbook.xml.rels", _workbook_rels(len(sheets)))
        zf.writestr("xl/styles.xml", XML_DECL + _STYLES.encode("utf-8"))
        for i, sheet in enumerate(sheets, start=1):
            zf.writestr(f"xl/worksheets/sheet{i}.xml", _worksheet_xml(sheet.columns, sheet.rows))
    return buffer.getvalue()


def write_workbook(xlsx_path: str | Path, sheets: Sequence[SheetData]) -> Path:
    """Write `sheets` as a new XLSX file (atomically replaces any existing file)."""
    data = build_workbook(sheets)
    atomic_write_bytes(xlsx_path, data)
    logger.info(
        f"[XLSX] Written {xlsx_path}: "
        + ", ".join(f"{s.name}={len(s.rows)}" for s in sheets)
    )
    return Path(xlsx_path)
