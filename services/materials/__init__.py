"""Materials database <-> workbook conversion.

- flatten: tree -> five row sets -> template workbook
- reconstruct: row sets -> tree -> document (import)
- report: integrity report over row sets
"""

from .columns import SHEETS, RowSets, SheetSpec, read_row_sets, to_sheet_data
from .flatten import flatten, generate_template, generate_template_from_xml, materials_from_tree, write_template
from .reconstruct import ImportResult, assign_missing_ids, build_materials, import_xlsx, reconstruct
from .report import MaterialIntegrity, check_material_integrity, find_orphans, generate_report, report_xlsx

__all__ = [
    "SHEETS",
    "RowSets",
    "SheetSpec",
    "read_row_sets",
    "to_sheet_data",
    "flatten",
    "generate_template",
    "generate_template_from_xml",
    "materials_from_tree",
    "write_template",
    "ImportResult",
    "assign_missing_ids",
    "build_materials",
    "import_xlsx",
    "reconstruct",
    "MaterialIntegrity",
    "check_material_integrity",
    "find_orphans",
    "generate_report",
    "report_xlsx",
]
