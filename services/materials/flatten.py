"""Flattening Engine - materials tree -> five row sets -> template workbook.

Pure transform: the tree is read through the pydantic entity models, so
every repeatable child arrives here as a list of 0, 1 or N items.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from models.materials import Edge, Layer, Material, Measure, Panel, TEXTURE_POSITIONS, Texture
from services.errors import IOFailure, MalformedInput, MalformedTree
from services.excel_engine import SheetRow, write_workbook
from services.tree_codec import as_list, child, parse_xml_file

from .columns import UNIT_SUFFIX, RowSets, to_sheet_data

logger = logging.getLogger(__name__)


# =============================================================================
# TREE -> MODELS
# =============================================================================

def materials_from_tree(tree: Any) -> List[Material]:
    """Materials of a parsed document, in document order."""
    if not isinstance(tree, dict) or "materials" not in tree:
        raise MalformedTree("Tree has no top-level 'materials' element")
    root = tree["materials"]
    return [Material.from_node(node) for node in as_list(child(root, "material"))]


# =============================================================================
# MODELS -> ROWS
# =============================================================================

def _measure_columns(key: str, measure: Measure) -> Dict[str, str]:
    return {key: measure.value, key + UNIT_SUFFIX: measure.unit}


def material_row(material: Material) -> Dict[str, str]:
    values = {"material_id": material.id, "material_name": material.name}
    for key in Material.DETAILS + Material.VISUAL_EFFECT:
        if key != "name":
            values[key] = getattr(material, key)
    return values


def texture_row(material: Material, position: str, texture: Texture) -> Dict[str, str]:
    return {
        "texture_id": "",  # Slots are not identified in the tree
        "material_id": material.id,
        "material_name": material.name,
        "position": position,
        "image": texture.image,
        "angle": texture.angle,
        "fit_vertically": texture.fit_vertically,
        "mirror": texture.mirror,
    }


def panel_row(material: Material, panel: Panel) -> Dict[str, str]:
    return {
        "panel_id": panel.id,
        "material_id": material.id,
        "material_name": material.name,
        "panel_name": panel.name,
        "article": panel.article,
        "supplier": panel.supplier,
        **_measure_columns("thickness", panel.thickness),
        "solid_base_id": panel.solid_base_id,
        "solid_base_name": panel.solid_base_name,
    }


def layer_row(panel: Panel, layer: Layer) -> Dict[str, str]:
    values = {
        "layer_id": layer.id,
        "panel_id": panel.id,
        "panel_name": panel.name,
        "layer_name": layer.name,
        "type": layer.type,
        "supplier": layer.supplier,
    }
    for key in Layer.MEASURES:
        values.update(_measure_columns(key, getattr(layer, key)))
    return values


def edge_row(material: Material, edge: Edge) -> Dict[str, str]:
    values = {
        "edge_id": edge.id,
        "material_id": material.id,
        "material_name": material.name,
        "name": edge.name,
        "article": edge.article,
        "supplier": edge.supplier,
        "factory_width": edge.factory_width,
        "angle": edge.angle,
    }
    for key in Edge.MEASURES:
        values.update(_measure_columns(key, getattr(edge, key)))
    return values


def flatten(tree: Any) -> RowSets:
    """Flatten a parsed materials tree into the five row sets."""
    row_sets = RowSets()

    for material in materials_from_tree(tree):
        row_sets.materials.append(SheetRow(values=material_row(material)))

        for position in TEXTURE_POSITIONS:
            texture = material.textures.get(position)
            if texture is not None:
                row_sets.textures.append(SheetRow(values=texture_row(material, position, texture)))

        for panel in material.panels:
            row_sets.panels.append(SheetRow(values=panel_row(material, panel)))
            for layer in panel.layers:
                row_sets.layers.append(SheetRow(values=layer_row(panel, layer)))

        for edge in material.edges:
            row_sets.edges.append(SheetRow(values=edge_row(material, edge)))

    logger.debug(
        "[FLATTEN] "
        + ", ".join(f"{name}={count}" for name, count in row_sets.counts().items())
    )
    return row_sets


# =============================================================================
# TEMPLATE GENERATION
# =============================================================================

def write_template(row_sets: RowSets, xlsx_path: str | Path) -> Path:
    """Write the row sets as the editable template workbook."""
    return write_workbook(xlsx_path, to_sheet_data(row_sets))


def load_tree_json(json_path: str | Path) -> Any:
    """Load a tree dump written by `parse`.

    Dumps that prefix attributes with "@_" (fast-xml-parser output) are
    accepted as well; see `tree_codec.attr_of`.
    """
    json_path = Path(json_path)
    try:
        text = json_path.read_text(encoding="utf-8")
    except OSError as e:
        raise IOFailure("read", str(json_path), e) from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInput(f"Not a JSON document: {e}", str(json_path)) from e


def generate_template(json_path: str | Path, xlsx_path: str | Path) -> RowSets:
    """Tree dump (JSON) -> template workbook."""
    row_sets = flatten(load_tree_json(json_path))
    write_template(row_sets, xlsx_path)
    logger.info(f"[TEMPLATE] Generated {xlsx_path} from {json_path}")
    return row_sets


def generate_template_from_xml(xml_path: str | Path, xlsx_path: str | Path) -> RowSets:
    """Materials document -> template workbook, skipping the JSON dump."""
    row_sets = flatten(parse_xml_file(xml_path))
    write_template(row_sets, xlsx_path)
    logger.info(f"[TEMPLATE] Generated {xlsx_path} from {xml_path}")
    return row_sets
