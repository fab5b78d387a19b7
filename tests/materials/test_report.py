"""Tests for the integrity report."""

from services.excel_engine import SheetRow
from services.materials import RowSets, flatten, generate_report, reconstruct, report_xlsx, write_template


def _rows(*values, start=2):
    return [SheetRow(values=dict(v), row=i) for i, v in enumerate(values, start=start)]


class TestMaterialsChecks:

    def test_clean_workbook(self, sample_tree):
        report = generate_report(flatten(sample_tree))
        assert (report.materials, report.textures, report.panels, report.layers, report.edges) == (2, 2, 2, 3, 1)
        assert report.duplicate_material_names == []
        assert report.duplicate_material_ids == []
        assert report.orphan_rows == []
        assert not report.has_material_violations

    def test_duplicate_oak(self):
        report = generate_report(RowSets(materials=_rows(
            {"material_id": "M1", "material_name": "Oak"},
            {"material_id": "M2", "material_name": "Oak"},
        )))
        assert report.has_material_violations
        group = report.duplicate_material_names[0]
        assert (group.name, group.rows, group.ids) == ("Oak", [2, 3], ["M1", "M2"])

    def test_missing_names(self):
        report = generate_report(RowSets(materials=_rows(
            {"material_id": "M1", "material_name": "Oak"},
            {"material_id": "M2", "material_name": "  "},
        )))
        assert report.missing_material_names == [3]
        assert not report.has_material_violations

    def test_report_does_not_assign_ids(self):
        row_sets = RowSets(materials=_rows({"material_id": "", "material_name": "Oak"}))
        generate_report(row_sets)
        assert row_sets.materials[0]["material_id"] == ""


class TestDiagnostics:
    """Per-parent duplicate groups; reported, never raised."""

    def test_duplicate_panel_names(self):
        report = generate_report(RowSets(
            materials=_rows({"material_id": "M1", "material_name": "Oak"}),
            panels=_rows(
                {"panel_id": "P1", "material_id": "M1", "panel_name": "Oak 18"},
                {"panel_id": "P2", "material_id": "M1", "panel_name": "Oak 18"},
                {"panel_id": "P3", "material_id": "M2", "panel_name": "Oak 18"},
            ),
        ))
        assert len(report.duplicate_panel_names) == 1
        group = report.duplicate_panel_names[0]
        assert group.sheet == "Panels"
        assert group.material_id == "M1"
        assert group.panel_name == "Oak 18"
        assert group.rows == [2, 3]
        assert group.panel_ids == ["P1", "P2"]
        assert group.rows_full[0]["panel_id"] == "P1"

    def test_duplicate_layer_names(self):
        report = generate_report(RowSets(layers=_rows(
            {"layer_id": "L1", "panel_id": "P1", "layer_name": "Core"},
            {"layer_id": "L2", "panel_id": "P1", "layer_name": "Core"},
        )))
        group = report.duplicate_layer_names[0]
        assert (group.panel_id, group.layer_name, group.layer_ids) == ("P1", "Core", ["L1", "L2"])

    def test_duplicate_textures(self):
        report = generate_report(RowSets(textures=_rows(
            {"texture_id": "T1", "material_id": "M1", "position": "top"},
            {"texture_id": "T2", "material_id": "M1", "position": "Top"},
            {"texture_id": "T3", "material_id": "M1", "position": "bottom"},
            {"texture_id": "T4", "material_id": "M1", "position": ""},
            {"texture_id": "T5", "material_id": "M1", "position": ""},
        )))
        groups = {g.position: g.texture_ids for g in report.duplicate_textures}
        assert groups == {"top": ["T1", "T2"], "__none__": ["T4", "T5"]}

        counts = report.textures_per_material["M1"]
        assert (counts.top, counts.bottom, counts.other) == (2, 1, 2)

    def test_duplicate_edge_names(self):
        report = generate_report(RowSets(edges=_rows(
            {"edge_id": "E1", "material_id": "M1", "name": "Band"},
            {"edge_id": "E2", "material_id": "M1", "name": "Band"},
            {"edge_id": "E3", "material_id": "M1", "name": "Other"},
        )))
        assert [g.edge_ids for g in report.duplicate_edge_names] == [["E1", "E2"]]


class TestPerParent:

    def test_counts(self, sample_tree):
        report = generate_report(flatten(sample_tree))
        assert report.panels_per_material == {"M1": 1, "M2": 1}
        assert report.layers_per_panel == {"P1": 2, "P2": 1}
        assert report.edges_per_material == {"M1": 1}
        assert report.textures_per_material["M1"].top == 1

    def test_missing_parent_bucket(self):
        report = generate_report(RowSets(
            panels=_rows({"panel_id": "P1", "material_id": "", "panel_name": "Loose"}),
            layers=_rows({"layer_id": "L1", "panel_id": " ", "layer_name": "Loose"}),
        ))
        assert report.panels_per_material == {"__MISSING__": 1}
        assert report.layers_per_panel == {"__MISSING__": 1}

    def test_orphan_rows(self):
        report = generate_report(RowSets(
            materials=_rows({"material_id": "M1", "material_name": "Oak"}),
            panels=_rows(
                {"panel_id": "P1", "material_id": "M1", "panel_name": "Kept"},
                {"panel_id": "P2", "material_id": "MX", "panel_name": "Lost"},
                {"panel_id": "P3", "material_id": "", "panel_name": "Blank parent"},
            ),
            layers=_rows({"layer_id": "L1", "panel_id": "PX", "layer_name": "Lost"}),
        ))
        orphans = [(o.sheet, o.row, o.id, o.parent_id) for o in report.orphan_rows]
        assert orphans == [("Panels", 3, "P2", "MX"), ("Layers", 2, "L1", "PX")]

    def test_layers_under_orphaned_panel(self):
        row_sets = RowSets(
            materials=_rows({"material_id": "M1", "material_name": "Oak"}),
            panels=_rows(
                {"panel_id": "P1", "material_id": "M1", "panel_name": "Kept"},
                {"panel_id": "P9", "material_id": "MX", "panel_name": "Lost"},
            ),
            layers=_rows(
                {"layer_id": "L1", "panel_id": "P1", "layer_name": "Kept"},
                {"layer_id": "L9", "panel_id": "P9", "layer_name": "Lost"},
            ),
        )
        report = generate_report(row_sets)
        orphans = [(o.sheet, o.id, o.parent_id) for o in report.orphan_rows]
        assert orphans == [("Panels", "P9", "MX"), ("Layers", "L9", "P9")]

        # Every reported orphan is missing from the rebuilt document
        tree = reconstruct(row_sets)
        panel = tree["materials"]["material"]["panels"]["panel"]
        assert panel["@id"] == "P1"
        assert panel["layers"]["layer"]["@id"] == "L1"

    def test_sample_limited_to_ten(self):
        materials = [{"material_id": f"M{i}", "material_name": f"Wood {i}"} for i in range(15)]
        report = generate_report(RowSets(materials=_rows(*materials)))
        assert len(report.sample.materials) == 10
        assert report.sample.materials[0] == {"row": 2, "material_id": "M0", "material_name": "Wood 0"}


class TestSerialization:

    def test_camel_case_keys(self, sample_tree):
        data = generate_report(flatten(sample_tree)).to_json_dict()
        for key in (
            "materials", "duplicateMaterialNames", "duplicateMaterialIds", "duplicatePanelNames",
            "duplicateLayerNames", "duplicateTextures", "duplicateEdgeNames", "panelsPerMaterial",
            "layersPerPanel", "texturesPerMaterial", "edgesPerMaterial", "orphanRows", "sample",
        ):
            assert key in data
        assert data["texturesPerMaterial"]["M1"] == {"top": 1, "bottom": 1, "other": 0}

    def test_group_keys_stay_snake_case(self):
        data = generate_report(RowSets(panels=_rows(
            {"panel_id": "P1", "material_id": "M1", "panel_name": "X"},
            {"panel_id": "P2", "material_id": "M1", "panel_name": "X"},
        ))).to_json_dict()
        group = data["duplicatePanelNames"][0]
        assert set(group) == {"sheet", "material_id", "panel_name", "rows", "panel_ids", "rows_full"}

    def test_report_xlsx(self, tmp_path, sample_tree):
        xlsx_path = tmp_path / "template.xlsx"
        write_template(flatten(sample_tree), xlsx_path)
        report = report_xlsx(xlsx_path)
        assert report.sample.panels[0]["row"] == 2
        assert report.sample.panels[0]["panel_id"] == "P1"
