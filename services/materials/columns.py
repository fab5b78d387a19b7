"""Sheet/column contract of the materials workbook, and the row sets read from it.

Sheet names, column order and header text are an external contract: the
workbook is edited by hand and read back by import.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from services.errors import MalformedInput
from services.excel_engine import SheetColumn, SheetData, SheetRow, read_workbook

logger = logging.getLogger(__name__)

UNIT_SUFFIX = "_unit"


def _measure(key: str, width: int) -> Tuple[SheetColumn, SheetColumn]:
    """A value column followed by its unit column."""
    return SheetColumn(key=key, width=width), SheetColumn(key=key + UNIT_SUFFIX, width=8)


@dataclass(frozen=True)
class SheetSpec:
    name: str
    attr: str  # RowSets attribute holding this sheet's rows
    id_column: str
    parent_column: Optional[str]
    columns: Tuple[SheetColumn, ...]

    @property
    def keys(self) -> List[str]:
        return [c.key for c in self.columns]


MATERIALS_SHEET = SheetSpec(
    name="Materials",
    attr="materials",
    id_column="material_id",
    parent_column=None,
    columns=(
        SheetColumn(key="material_id", width=40),
        SheetColumn(key="material_name", width=30),
        SheetColumn(key="favorite", width=8),
        SheetColumn(key="type", width=12),
        SheetColumn(key="rotatable", width=10),
        SheetColumn(key="path", width=30),
        SheetColumn(key="reflect", width=10),
        SheetColumn(key="rainbown", width=10),
        SheetColumn(key="specular", width=10),
        SheetColumn(key="shininess", width=10),
        SheetColumn(key="glossiness", width=10),
        SheetColumn(key="opacity_min", width=10),
        SheetColumn(key="opacity_max", width=10),
    ),
)

TEXTURES_SHEET = SheetSpec(
    name="Textures",
    attr="textures",
    id_column="texture_id",
    parent_column="material_id",
    columns=(
        SheetColumn(key="texture_id", width=40),
        SheetColumn(key="material_id", width=40),
        SheetColumn(key="material_name", width=30),
        SheetColumn(key="position", width=10),
        SheetColumn(key="image", width=60),
        SheetColumn(key="angle", width=8),
        SheetColumn(key="fit_vertically", width=12),
        SheetColumn(key="mirror", width=10),
    ),
)

PANELS_SHEET = SheetSpec(
    name="Panels",
    attr="panels",
    id_column="panel_id",
    parent_column="material_id",
    columns=(
        SheetColumn(key="panel_id", width=40),
        SheetColumn(key="material_id", width=40),
        SheetColumn(key="material_name", width=30),
        SheetColumn(key="panel_name", width=30),
        SheetColumn(key="article", width=20),
        SheetColumn(key="supplier", width=20),
        *_measure("thickness", 10),
        SheetColumn(key="solid_base_id", width=40),
        SheetColumn(key="solid_base_name", width=30),
    ),
)

LAYERS_SHEET = SheetSpec(
    name="Layers",
    attr="layers",
    id_column="layer_id",
    parent_column="panel_id",
    columns=(
        SheetColumn(key="layer_id", width=40),
        SheetColumn(key="panel_id", width=40),
        SheetColumn(key="panel_name", width=30),
        SheetColumn(key="layer_name", width=30),
        *_measure("thickness", 10),
        SheetColumn(key="type", width=12),
        SheetColumn(key="supplier", width=15),
        *_measure("length", 12),
        *_measure("width", 12),
        *_measure("price", 12),
        *_measure("unprocessed_offset", 12),
        *_measure("outsize", 8),
    ),
)

EDGES_SHEET = SheetSpec(
    name="Edges",
    attr="edges",
    id_column="edge_id",
    parent_column="material_id",
    columns=(
        SheetColumn(key="edge_id", width=40),
        SheetColumn(key="material_id", width=40),
        SheetColumn(key="material_name", width=30),
        SheetColumn(key="name", width=30),
        SheetColumn(key="article", width=30),
        SheetColumn(key="supplier", width=15),
        SheetColumn(key="factory_width", width=12),
        SheetColumn(key="angle", width=8),
        *_measure("thickness", 10),
        *_measure("price", 12),
        *_measure("width_min", 10),
        *_measure("width_max", 10),
    ),
)

SHEETS: Tuple[SheetSpec, ...] = (
    MATERIALS_SHEET, TEXTURES_SHEET, PANELS_SHEET, LAYERS_SHEET, EDGES_SHEET,
)


@dataclass
class RowSets:
    """The five row sets of a materials workbook."""

    materials: List[SheetRow] = field(default_factory=list)
    textures: List[SheetRow] = field(default_factory=list)
    panels: List[SheetRow] = field(default_factory=list)
    layers: List[SheetRow] = field(default_factory=list)
    edges: List[SheetRow] = field(default_factory=list)

    def rows_for(self, spec: SheetSpec) -> List[SheetRow]:
        return getattr(self, spec.attr)

    def counts(self) -> Dict[str, int]:
        return {spec.name: len(self.rows_for(spec)) for spec in SHEETS}


def read_row_sets(xlsx_path: str | Path) -> RowSets:
    """Read a materials workbook into row sets.

    The Materials sheet (with its material_id column) is required; any other
    sheet that is missing reads as empty.
    """
    tables = read_workbook(xlsx_path)

    materials = tables.get(MATERIALS_SHEET.name)
    if materials is None:
        raise MalformedInput("Workbook has no 'Materials' sheet", str(xlsx_path))
    if MATERIALS_SHEET.id_column not in materials.headers:
        raise MalformedInput("'Materials' sheet has no material_id column", str(xlsx_path))

    row_sets = RowSets()
    for spec in SHEETS:
        table = tables.get(spec.name)
        if table is None:
            logger.debug(f"[READ] Sheet {spec.name} missing from {xlsx_path}; treating as empty")
            continue
        rows = row_sets.rows_for(spec)
        for row in table.rows:
            for key in spec.keys:
                row.values.setdefault(key, "")
            rows.append(row)

    logger.info(
        f"[READ] {xlsx_path}: "
        + ", ".join(f"{name}={count}" for name, count in row_sets.counts().items())
    )
    return row_sets


def to_sheet_data(row_sets: RowSets) -> List[SheetData]:
    """Lay the row sets out as the five workbook sheets, in contract order."""
    return [
        SheetData(
            name=spec.name,
            columns=list(spec.columns),
            rows=[{key: row.get(key) for key in spec.keys} for row in row_sets.rows_for(spec)],
        )
        for spec in SHEETS
    ]
