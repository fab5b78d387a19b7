"""Tests for the Excel Engine.

Validates writing and reading of the materials workbook:
- Multiple worksheets in order
- Header row, blank cells and row numbers
- Values kept as strings (leading zeros, decimals, whitespace)
- Shared strings, booleans and numbers written by other tools
- Malformed packages
"""

import zipfile
from io import BytesIO

import pytest

from services.errors import IOFailure, MalformedInput
from services.excel_engine import SheetColumn, SheetData, build_workbook, read_workbook, write_workbook
from services.excel_engine.parser import col_index_to_letter, col_letter_to_index, format_number


def _sheet(name, keys, rows):
    return SheetData(name=name, columns=[SheetColumn(key=k) for k in keys], rows=rows)


class TestUtilities:

    def test_column_letters(self):
        assert col_letter_to_index("A") == 1
        assert col_letter_to_index("AA") == 27
        assert col_index_to_letter(28) == "AB"

    @pytest.mark.parametrize("raw, expected", [
        ("18", "18"),
        ("18.0", "18"),
        ("0.80000000000000004", "0.8"),
        ("3.5", "3.5"),
    ])
    def test_format_number(self, raw, expected):
        assert format_number(raw) == expected


class TestWriteRead:
    """Workbooks written by the engine read back unchanged."""

    def test_sheets_and_rows(self, tmp_path):
        path = tmp_path / "book.xlsx"
        write_workbook(path, [
            _sheet("Materials", ["material_id", "material_name"], [
                {"material_id": "M1", "material_name": "Oak"},
                {"material_id": "M2", "material_name": "Walnut"},
            ]),
            _sheet("Panels", ["panel_id", "material_id"], []),
        ])

        tables = read_workbook(path)
        assert list(tables) == ["Materials", "Panels"]

        materials = tables["Materials"]
        assert materials.headers == ["material_id", "material_name"]
        assert [r.values for r in materials.rows] == [
            {"material_id": "M1", "material_name": "Oak"},
            {"material_id": "M2", "material_name": "Walnut"},
        ]
        assert [r.row for r in materials.rows] == [2, 3]

        panels = tables["Panels"]
        assert panels.headers == ["panel_id", "material_id"]
        assert panels.rows == []

    def test_blank_cells_read_as_empty(self, tmp_path):
        path = tmp_path / "book.xlsx"
        write_workbook(path, [
            _sheet("Textures", ["texture_id", "position", "mirror"], [
                {"texture_id": "", "position": "top", "mirror": ""},
            ]),
        ])
        row = read_workbook(path)["Textures"].rows[0]
        assert row.values == {"texture_id": "", "position": "top", "mirror": ""}

    def test_strings_preserved(self, tmp_path):
        path = tmp_path / "book.xlsx"
        values = {"a": "007", "b": "0.60", "c": " padded ", "d": "Eiche & Ahorn <3>"}
        write_workbook(path, [_sheet("S", list(values), [values])])
        assert read_workbook(path)["S"].rows[0].values == values

    def test_fully_blank_rows_skipped(self, tmp_path):
        path = tmp_path / "book.xlsx"
        write_workbook(path, [
            _sheet("S", ["a"], [{"a": "1"}, {"a": ""}, {"a": "3"}]),
        ])
        rows = read_workbook(path)["S"].rows
        assert [r.values["a"] for r in rows] == ["1", "3"]
        assert [r.row for r in rows] == [2, 4]

    def test_package_parts(self):
        data = build_workbook([_sheet("Materials", ["material_id"], [])])
        with zipfile.ZipFile(BytesIO(data)) as zf:
            names = set(zf.namelist())
            sheet_xml = zf.read("xl/worksheets/sheet1.xml").decode("utf-8")
        assert {"[Content_Types].xml", "xl/workbook.xml", "xl/styles.xml"} <= names
        assert 'state="frozen"' in sheet_xml


class TestForeignWorkbooks:
    """Cells typed the way spreadsheet applications save them."""

    def _write_raw(self, path, sheet_xml, shared_strings=None):
        main = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr(
                "xl/workbook.xml",
                f'<workbook xmlns="{main}" '
                'xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships">'
                '<sheets><sheet name="Layers" sheetId="1" r:id="rId1"/></sheets></workbook>',
            )
            zf.writestr(
                "xl/_rels/workbook.xml.rels",
                '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
                '<Relationship Id="rId1" Type="worksheet" Target="worksheets/sheet1.xml"/>'
                '</Relationships>',
            )
            zf.writestr("xl/worksheets/sheet1.xml", f'<worksheet xmlns="{main}">{sheet_xml}</worksheet>')
            if shared_strings is not None:
                items = "".join(shared_strings)
                zf.writestr("xl/sharedStrings.xml", f'<sst xmlns="{main}">{items}</sst>')

    def test_shared_numbers_and_booleans(self, tmp_path):
        path = tmp_path / "foreign.xlsx"
        self._write_raw(
            path,
            '<sheetData>'
            '<row r="1"><c r="A1" t="s"><v>0</v></c><c r="B1" t="s"><v>1</v></c><c r="C1" t="s"><v>2</v></c></row>'
            '<row r="2"><c r="A2" t="s"><v>3</v></c><c r="B2"><v>18.0</v></c><c r="C2" t="b"><v>1</v></c></row>'
            '</sheetData>',
            shared_strings=[
                "<si><t>layer_name</t></si>",
                "<si><t>thickness</t></si>",
                "<si><t>visible</t></si>",
                "<si><r><t>Ven</t></r><r><t>eer</t></r></si>",
            ],
        )
        row = read_workbook(path)["Layers"].rows[0]
        assert row.values == {"layer_name": "Veneer", "thickness": "18", "visible": "true"}

    def test_not_a_zip(self, tmp_path):
        path = tmp_path / "bad.xlsx"
        path.write_text("not a workbook")
        with pytest.raises(MalformedInput):
            read_workbook(path)

    def test_missing_workbook_part(self, tmp_path):
        path = tmp_path / "empty.xlsx"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("hello.txt", "hi")
        with pytest.raises(MalformedInput):
            read_workbook(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(IOFailure):
            read_workbook(tmp_path / "missing.xlsx")
