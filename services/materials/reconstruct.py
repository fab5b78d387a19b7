"""Reconstruction Engine - five row sets -> materials tree -> XML document.

Pipeline:
1. Assign ids to rows with a blank id column (in place)
2. Materials gate: duplicate names / ids abort unless forced
3. Group child rows by their trimmed parent key
4. Assemble Material models and convert them to tree nodes
5. Back up the original document, then write the new one atomically

Rows whose parent key matches no parent row are dropped here without
comment; `generate_report` lists them as orphans.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from models.materials import Edge, Layer, Material, Measure, Panel, TEXTURE_POSITIONS, Texture
from services.errors import IntegrityViolation
from services.excel_engine import SheetRow
from services.fileio import backup_file
from services.tree_codec import collapse, write_xml_file

from .columns import SHEETS, UNIT_SUFFIX, RowSets, read_row_sets
from .report import bucket, check_material_integrity

logger = logging.getLogger(__name__)

MATERIALS_VERSION = "1.0"


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# STEP 1: IDS
# =============================================================================

def assign_missing_ids(row_sets: RowSets, id_factory: Callable[[], str] = new_id) -> Dict[str, int]:
    """Give every row with a blank id column a fresh id.

    Mutates the rows. Rows that already carry an id are never touched, so
    running this twice generates nothing the second time.
    Returns the number of ids generated per sheet.
    """
    generated: Dict[str, int] = {}
    for spec in SHEETS:
        count = 0
        for row in row_sets.rows_for(spec):
            if not row.text(spec.id_column):
                row[spec.id_column] = id_factory()
                count += 1
        generated[spec.name] = count
    return generated


# =============================================================================
# STEP 2: GATE
# =============================================================================

def enforce_material_integrity(row_sets: RowSets, force: bool = False) -> None:
    """Raise IntegrityViolation on duplicate material names or ids unless forced."""
    integrity = check_material_integrity(row_sets.materials)
    if integrity.ok:
        return
    violation = IntegrityViolation(integrity.duplicate_names, integrity.duplicate_ids)
    if not force:
        raise violation
    logger.warning(f"[IMPORT] Proceeding despite duplicates (force): {violation}")


# =============================================================================
# STEPS 3-4: ROWS -> MODELS
# =============================================================================

def _measure(row: SheetRow, key: str) -> Measure:
    return Measure(value=row.get(key), unit=row.get(key + UNIT_SUFFIX))


def texture_from_row(row: SheetRow) -> Texture:
    return Texture(
        image=row.get("image"),
        angle=row.get("angle"),
        fit_vertically=row.get("fit_vertically"),
        mirror=row.get("mirror"),
    )


def layer_from_row(row: SheetRow) -> Layer:
    return Layer(
        id=row.text("layer_id"),
        name=row.get("layer_name"),
        type=row.get("type"),
        supplier=row.get("supplier"),
        **{key: _measure(row, key) for key in Layer.MEASURES},
    )


def panel_from_row(row: SheetRow, layers: List[SheetRow]) -> Panel:
    return Panel(
        id=row.text("panel_id"),
        name=row.get("panel_name"),
        article=row.get("article"),
        supplier=row.get("supplier"),
        thickness=_measure(row, "thickness"),
        solid_base_id=row.text("solid_base_id"),
        solid_base_name=row.get("solid_base_name"),
        layers=[layer_from_row(r) for r in layers],
    )


def edge_from_row(row: SheetRow) -> Edge:
    return Edge(
        id=row.text("edge_id"),
        name=row.get("name"),
        article=row.get("article"),
        supplier=row.get("supplier"),
        factory_width=row.get("factory_width"),
        angle=row.get("angle"),
        **{key: _measure(row, key) for key in Edge.MEASURES},
    )


def build_materials(row_sets: RowSets) -> List[Material]:
    """Assemble Material models from (id-complete) row sets."""
    panels_by_material = bucket(row_sets.panels, lambda r: r.text("material_id"))
    layers_by_panel = bucket(row_sets.layers, lambda r: r.text("panel_id"))
    edges_by_material = bucket(row_sets.edges, lambda r: r.text("material_id"))

    # Later rows for the same slot replace earlier ones
    textures_by_material: Dict[str, Dict[str, SheetRow]] = {}
    for row in row_sets.textures:
        slots = textures_by_material.setdefault(row.text("material_id"), {})
        slots[row.text("position").lower()] = row

    materials: List[Material] = []
    for row in row_sets.materials:
        material_id = row.text("material_id")
        slots = textures_by_material.get(material_id, {})
        materials.append(Material(
            id=material_id,
            name=row.get("material_name"),
            **{key: row.get(key) for key in Material.DETAILS + Material.VISUAL_EFFECT if key != "name"},
            textures={
                position: texture_from_row(slots[position])
                for position in TEXTURE_POSITIONS
                if position in slots
            },
            panels=[
                panel_from_row(p, layers_by_panel.get(p.text("panel_id"), []))
                for p in panels_by_material.get(material_id, [])
            ],
            edges=[edge_from_row(e) for e in edges_by_material.get(material_id, [])],
        ))
    return materials


def materials_to_tree(materials: List[Material]) -> Dict[str, Any]:
    return {
        "materials": {
            "@version": MATERIALS_VERSION,
            "material": collapse([m.to_node() for m in materials]),
        }
    }


def reconstruct(
    row_sets: RowSets,
    force: bool = False,
    id_factory: Callable[[], str] = new_id,
) -> Dict[str, Any]:
    """Rebuild the materials tree from row sets.

    Assigns missing ids in place and enforces the Materials gate first;
    raises IntegrityViolation on duplicates unless `force` is set.
    """
    assign_missing_ids(row_sets, id_factory)
    enforce_material_integrity(row_sets, force=force)
    return materials_to_tree(build_materials(row_sets))


# =============================================================================
# IMPORT
# =============================================================================

@dataclass
class ImportResult:
    out_path: Path
    backup_path: Optional[Path] = None
    materials: int = 0
    generated_ids: Dict[str, int] = field(default_factory=dict)


def import_xlsx(
    xlsx_path: str | Path,
    out_path: str | Path,
    original_path: str | Path | None = None,
    force: bool = False,
) -> ImportResult:
    """Edited workbook -> materials document.

    Nothing is written (and nothing backed up) when the workbook is
    malformed or fails the Materials gate.
    """
    row_sets = read_row_sets(xlsx_path)

    generated = assign_missing_ids(row_sets)
    if any(generated.values()):
        logger.info(
            "[IMPORT] Generated ids: "
            + ", ".join(f"{name}={count}" for name, count in generated.items() if count)
        )

    tree = reconstruct(row_sets, force=force)

    backup_path = backup_file(original_path) if original_path else None
    write_xml_file(tree, out_path)

    result = ImportResult(
        out_path=Path(out_path),
        backup_path=backup_path,
        materials=len(row_sets.materials),
        generated_ids=generated,
    )
    logger.info(f"[IMPORT] Imported {result.materials} materials from {xlsx_path} into {out_path}")
    return result
