"""Integrity Validator / Reporter.

Read-only over the row sets: nothing here assigns ids or edits rows.

Two kinds of findings:
1. The Materials gate (duplicate material_name / material_id), which import
   enforces before reconstruction.
2. Diagnostics (duplicates within a parent, orphaned parent keys, per-parent
   counts, samples), which are reported and never block anything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from models.schemas import (
    DuplicateEdgeName,
    DuplicateLayerName,
    DuplicateMaterialId,
    DuplicateMaterialName,
    DuplicatePanelName,
    DuplicateTexture,
    MaterialsReport,
    OrphanRow,
    ReportSample,
    TextureCounts,
)
from services.excel_engine import SheetRow

from .columns import EDGES_SHEET, LAYERS_SHEET, PANELS_SHEET, TEXTURES_SHEET, RowSets, SheetSpec, read_row_sets

logger = logging.getLogger(__name__)

MISSING_PARENT = "__MISSING__"
NO_POSITION = "__none__"
SAMPLE_SIZE = 10


# =============================================================================
# HELPERS
# =============================================================================

def bucket(rows: Iterable[SheetRow], key: Callable[[SheetRow], Hashable]) -> Dict[Hashable, List[SheetRow]]:
    """Group rows by `key`, keeping first-seen key order and row order."""
    groups: Dict[Hashable, List[SheetRow]] = {}
    for row in rows:
        groups.setdefault(key(row), []).append(row)
    return groups


def parent_key(row: SheetRow, column: str) -> str:
    return row.text(column) or MISSING_PARENT


def _row_numbers(rows: List[SheetRow]) -> List[Optional[int]]:
    return [r.row for r in rows]


def _full(rows: List[SheetRow]) -> List[Dict[str, str]]:
    return [dict(r.values) for r in rows]


# =============================================================================
# MATERIALS GATE
# =============================================================================

@dataclass
class MaterialIntegrity:
    duplicate_names: List[DuplicateMaterialName] = field(default_factory=list)
    duplicate_ids: List[DuplicateMaterialId] = field(default_factory=list)
    missing_names: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.duplicate_names and not self.duplicate_ids


def check_material_integrity(materials: List[SheetRow]) -> MaterialIntegrity:
    """Duplicate material names and ids (trimmed, case-sensitive).

    Blank names and ids never count as duplicates. A blank name on a row
    with a known row number is listed in `missing_names`.
    """
    result = MaterialIntegrity()

    names: Dict[str, List[SheetRow]] = {}
    ids: Dict[str, List[SheetRow]] = {}
    for row in materials:
        name = row.text("material_name")
        material_id = row.text("material_id")
        if not name and row.row is not None:
            result.missing_names.append(row.row)
        if name:
            names.setdefault(name, []).append(row)
        if material_id:
            ids.setdefault(material_id, []).append(row)

    for name, rows in names.items():
        if len(rows) > 1:
            result.duplicate_names.append(DuplicateMaterialName(
                name=name,
                rows=_row_numbers(rows),
                ids=[r.text("material_id") for r in rows],
            ))
    for material_id, rows in ids.items():
        if len(rows) > 1:
            result.duplicate_ids.append(DuplicateMaterialId(
                id=material_id,
                rows=_row_numbers(rows),
                names=[r.text("material_name") for r in rows],
            ))

    return result


# =============================================================================
# DIAGNOSTICS
# =============================================================================

def _duplicate_panels(panels: List[SheetRow]) -> List[DuplicatePanelName]:
    groups = bucket(panels, lambda r: (parent_key(r, "material_id"), r.text("panel_name")))
    return [
        DuplicatePanelName(
            material_id=material_id,
            panel_name=name or None,
            rows=_row_numbers(rows),
            panel_ids=[r.text("panel_id") for r in rows],
            rows_full=_full(rows),
        )
        for (material_id, name), rows in groups.items()
        if len(rows) > 1
    ]


def _duplicate_layers(layers: List[SheetRow]) -> List[DuplicateLayerName]:
    groups = bucket(layers, lambda r: (parent_key(r, "panel_id"), r.text("layer_name")))
    return [
        DuplicateLayerName(
            panel_id=panel_id,
            layer_name=name or None,
            rows=_row_numbers(rows),
            layer_ids=[r.text("layer_id") for r in rows],
            rows_full=_full(rows),
        )
        for (panel_id, name), rows in groups.items()
        if len(rows) > 1
    ]


def _duplicate_textures(textures: List[SheetRow]) -> List[DuplicateTexture]:
    groups = bucket(
        textures,
        lambda r: (parent_key(r, "material_id"), r.text("position").lower() or NO_POSITION),
    )
    return [
        DuplicateTexture(
            material_id=material_id,
            position=position,
            rows=_row_numbers(rows),
            texture_ids=[r.text("texture_id") for r in rows],
            rows_full=_full(rows),
        )
        for (material_id, position), rows in groups.items()
        if len(rows) > 1
    ]


def _duplicate_edges(edges: List[SheetRow]) -> List[DuplicateEdgeName]:
    groups = bucket(edges, lambda r: (parent_key(r, "material_id"), r.text("name")))
    return [
        DuplicateEdgeName(
            material_id=material_id,
            name=name or None,
            rows=_row_numbers(rows),
            edge_ids=[r.text("edge_id") for r in rows],
            rows_full=_full(rows),
        )
        for (material_id, name), rows in groups.items()
        if len(rows) > 1
    ]


def _count_per_parent(rows: List[SheetRow], column: str) -> Dict[str, int]:
    return {key: len(group) for key, group in bucket(rows, lambda r: parent_key(r, column)).items()}


def _texture_counts(textures: List[SheetRow]) -> Dict[str, TextureCounts]:
    counts: Dict[str, TextureCounts] = {}
    for row in textures:
        entry = counts.setdefault(parent_key(row, "material_id"), TextureCounts())
        position = row.text("position").lower()
        if position == "top":
            entry.top += 1
        elif position == "bottom":
            entry.bottom += 1
        else:
            entry.other += 1
    return counts


def find_orphans(row_sets: RowSets) -> List[OrphanRow]:
    """Rows whose non-blank parent key matches no reachable parent row.

    Reconstruction drops these rows; listing them here is the only place
    they become visible. A layer under an orphaned panel is an orphan too,
    since its panel never reaches the document.
    """
    material_ids = {r.text("material_id") for r in row_sets.materials} - {""}
    panel_ids = {
        r.text("panel_id") for r in row_sets.panels
        if r.text("material_id") in material_ids
    } - {""}

    checks: Tuple[Tuple[SheetSpec, set], ...] = (
        (TEXTURES_SHEET, material_ids),
        (PANELS_SHEET, material_ids),
        (LAYERS_SHEET, panel_ids),
        (EDGES_SHEET, material_ids),
    )

    orphans: List[OrphanRow] = []
    for spec, parents in checks:
        for row in row_sets.rows_for(spec):
            parent_id = row.text(spec.parent_column)
            if parent_id and parent_id not in parents:
                orphans.append(OrphanRow(
                    sheet=spec.name,
                    row=row.row,
                    id=row.text(spec.id_column),
                    parent_column=spec.parent_column,
                    parent_id=parent_id,
                ))
    return orphans


def _sample(row_sets: RowSets) -> ReportSample:
    def pick(rows: List[SheetRow], *columns: str) -> List[Dict[str, object]]:
        return [
            {"row": r.row, **{c: r.get(c) for c in columns}}
            for r in rows[:SAMPLE_SIZE]
        ]

    return ReportSample(
        materials=pick(row_sets.materials, "material_id", "material_name"),
        panels=pick(row_sets.panels, "panel_id", "panel_name", "material_id"),
        layers=pick(row_sets.layers, "layer_id", "layer_name", "panel_id"),
        textures=pick(row_sets.textures, "texture_id", "position", "material_id"),
        edges=pick(row_sets.edges, "edge_id", "name", "material_id"),
    )


# =============================================================================
# REPORT
# =============================================================================

def generate_report(row_sets: RowSets) -> MaterialsReport:
    """Build the integrity report for a set of rows."""
    integrity = check_material_integrity(row_sets.materials)

    report = MaterialsReport(
        materials=len(row_sets.materials),
        textures=len(row_sets.textures),
        panels=len(row_sets.panels),
        layers=len(row_sets.layers),
        edges=len(row_sets.edges),
        duplicate_material_names=integrity.duplicate_names,
        duplicate_material_ids=integrity.duplicate_ids,
        missing_material_names=integrity.missing_names,
        duplicate_panel_names=_duplicate_panels(row_sets.panels),
        duplicate_layer_names=_duplicate_layers(row_sets.layers),
        duplicate_textures=_duplicate_textures(row_sets.textures),
        duplicate_edge_names=_duplicate_edges(row_sets.edges),
        panels_per_material=_count_per_parent(row_sets.panels, "material_id"),
        layers_per_panel=_count_per_parent(row_sets.layers, "panel_id"),
        textures_per_material=_texture_counts(row_sets.textures),
        edges_per_material=_count_per_parent(row_sets.edges, "material_id"),
        orphan_rows=find_orphans(row_sets),
        sample=_sample(row_sets),
    )

    logger.info(
        f"[REPORT] materials={report.materials} panels={report.panels} layers={report.layers} "
        f"textures={report.textures} edges={report.edges} "
        f"dup_names={len(report.duplicate_material_names)} dup_ids={len(report.duplicate_material_ids)} "
        f"orphans={len(report.orphan_rows)}"
    )
    return report


def report_xlsx(xlsx_path: str | Path) -> MaterialsReport:
    """Read a workbook and report on it."""
    return generate_report(read_row_sets(xlsx_path))
