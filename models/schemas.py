from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# MATERIALS GATE: duplicate name / id groups
# =============================================================================

class DuplicateMaterialName(BaseModel):
    """A material_name shared by two or more Materials rows."""

    name: str
    rows: List[Optional[int]]  # Spreadsheet rows; None for rows not read from a file
    ids: List[str]


class DuplicateMaterialId(BaseModel):
    """A material_id shared by two or more Materials rows."""

    id: str
    rows: List[Optional[int]]
    names: List[str]


# =============================================================================
# DIAGNOSTIC GROUPS: duplicates within one parent
# =============================================================================

class DuplicatePanelName(BaseModel):
    sheet: str = "Panels"
    material_id: str
    panel_name: Optional[str] = None  # None when the duplicated name is blank
    rows: List[Optional[int]]
    panel_ids: List[str]
    rows_full: List[Dict[str, str]]


class DuplicateLayerName(BaseModel):
    sheet: str = "Layers"
    panel_id: str
    layer_name: Optional[str] = None
    rows: List[Optional[int]]
    layer_ids: List[str]
    rows_full: List[Dict[str, str]]


class DuplicateTexture(BaseModel):
    """More than one texture row for the same material and position."""

    sheet: str = "Textures"
    material_id: str
    position: str
    rows: List[Optional[int]]
    texture_ids: List[str]
    rows_full: List[Dict[str, str]]


class DuplicateEdgeName(BaseModel):
    sheet: str = "Edges"
    material_id: str
    name: Optional[str] = None
    rows: List[Optional[int]]
    edge_ids: List[str]
    rows_full: List[Dict[str, str]]


class OrphanRow(BaseModel):
    """A row whose parent key matches no parent row in the workbook."""

    sheet: str
    row: Optional[int] = None
    id: str = ""
    parent_column: str
    parent_id: str


class TextureCounts(BaseModel):
    top: int = 0
    bottom: int = 0
    other: int = 0


class ReportSample(BaseModel):
    """First rows of each sheet (row number, id, name, parent key)."""

    materials: List[Dict[str, Any]] = Field(default_factory=list)
    panels: List[Dict[str, Any]] = Field(default_factory=list)
    layers: List[Dict[str, Any]] = Field(default_factory=list)
    textures: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# REPORT
# =============================================================================

class MaterialsReport(BaseModel):
    """Integrity report for one workbook.

    Serialized with camelCase keys (`model_dump(by_alias=True)`), the format
    saved to report-*.json and served by GET /report.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    materials: int = 0
    textures: int = 0
    panels: int = 0
    layers: int = 0
    edges: int = 0

    duplicate_material_names: List[DuplicateMaterialName] = Field(default_factory=list)
    duplicate_material_ids: List[DuplicateMaterialId] = Field(default_factory=list)
    missing_material_names: List[int] = Field(default_factory=list)

    duplicate_panel_names: List[DuplicatePanelName] = Field(default_factory=list)
    duplicate_layer_names: List[DuplicateLayerName] = Field(default_factory=list)
    duplicate_textures: List[DuplicateTexture] = Field(default_factory=list)
    duplicate_edge_names: List[DuplicateEdgeName] = Field(default_factory=list)

    # Keyed by parent id; "__MISSING__" collects rows with a blank parent key
    panels_per_material: Dict[str, int] = Field(default_factory=dict)
    layers_per_panel: Dict[str, int] = Field(default_factory=dict)
    textures_per_material: Dict[str, TextureCounts] = Field(default_factory=dict)
    edges_per_material: Dict[str, int] = Field(default_factory=dict)

    orphan_rows: List[OrphanRow] = Field(default_factory=list)
    sample: ReportSample = Field(default_factory=ReportSample)

    @property
    def has_material_violations(self) -> bool:
        return bool(self.duplicate_material_names or self.duplicate_material_ids)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# HTTP REQUEST BODIES
# =============================================================================
# Fields are optional so a missing one is answered with a 400 naming it,
# the same way the rest of the API reports bad input.

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OpenRequest(CamelModel):
    file_path: Optional[str] = None
    sheet_name: Optional[str] = None
    row: Optional[int] = None


class GenerateTemplateRequest(CamelModel):
    json_path: Optional[str] = None
    xlsx_path: Optional[str] = None


class TemplateFromDbRequest(CamelModel):
    db_path: Optional[str] = None
    xlsx_path: Optional[str] = None


class ImportRequest(CamelModel):
    xlsx_path: Optional[str] = None
    out_db_path: Optional[str] = None
    original_db_path: Optional[str] = None
    report_folder: Optional[str] = None
    force: bool = False
