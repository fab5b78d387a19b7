"""Tests for the Tree Codec: XML <-> attributed dict tree and the shape helpers."""

import pytest

from services.errors import IOFailure, MalformedInput
from services.tree_codec import (
    as_list,
    attr_of,
    collapse,
    parse_xml_bytes,
    parse_xml_file,
    text_of,
    tree_to_xml,
    write_xml_file,
)


class TestParse:
    """XML -> tree."""

    def test_shape_convention(self, sample_tree):
        root = sample_tree["materials"]
        assert root["@version"] == "1.0"
        assert isinstance(root["material"], list)
        assert len(root["material"]) == 2

        oak = root["material"][0]
        assert oak["@id"] == "M1"
        assert oak["details"]["name"] == "Oak"

        # One panel -> bare node, two layers -> list
        panel = oak["panels"]["panel"]
        assert isinstance(panel, dict)
        assert panel["thickness"] == {"@unit": "mm", "#text": "18"}
        assert [layer["@id"] for layer in panel["layers"]["layer"]] == ["L1", "L2"]

    def test_values_stay_strings(self, sample_tree):
        oak = sample_tree["materials"]["material"][0]
        assert oak["details"]["visual_effect"]["glossiness"] == "0.60"

    def test_empty_element_is_empty_string(self):
        tree = parse_xml_bytes(b"<materials><material><details/></material></materials>")
        assert tree == {"materials": {"material": {"details": ""}}}

    def test_comments_ignored(self):
        tree = parse_xml_bytes(b"<root><!-- note --><a>1</a></root>")
        assert tree == {"root": {"a": "1"}}

    def test_malformed_xml(self):
        with pytest.raises(MalformedInput):
            parse_xml_bytes(b"<materials><material></materials>")

    def test_missing_file(self, tmp_path):
        with pytest.raises(IOFailure) as exc_info:
            parse_xml_file(tmp_path / "nope.db")
        assert exc_info.value.path.endswith("nope.db")


class TestSerialize:
    """Tree -> XML."""

    def test_round_trip(self, sample_tree):
        assert parse_xml_bytes(tree_to_xml(sample_tree)) == sample_tree

    def test_none_values_skipped(self):
        xml = tree_to_xml({"root": {"@id": None, "a": None, "b": "x"}})
        assert parse_xml_bytes(xml) == {"root": {"b": "x"}}

    def test_declaration_and_encoding(self):
        xml = tree_to_xml({"root": {"name": "Eiche ä"}})
        assert xml.startswith(b"<?xml")
        assert "Eiche ä".encode("utf-8") in xml

    def test_requires_single_root(self):
        with pytest.raises(MalformedInput):
            tree_to_xml({"a": "1", "b": "2"})

    def test_write_is_complete_file(self, tmp_path, sample_tree):
        out = tmp_path / "sub" / "out.db"
        write_xml_file(sample_tree, out)
        assert parse_xml_file(out) == sample_tree
        # No temp files left behind
        assert [p.name for p in out.parent.iterdir()] == ["out.db"]


class TestShapeHelpers:
    """The single/list boundary."""

    @pytest.mark.parametrize("value, expected", [
        (None, []),
        ("", []),
        ({"a": "1"}, [{"a": "1"}]),
        ([{"a": "1"}, {"a": "2"}], [{"a": "1"}, {"a": "2"}]),
    ])
    def test_as_list(self, value, expected):
        assert as_list(value) == expected

    def test_collapse(self):
        assert collapse([]) is None
        assert collapse([{"a": "1"}]) == {"a": "1"}
        assert collapse([1, 2]) == [1, 2]

    def test_text_and_attr(self):
        node = {"@unit": "mm", "#text": "18"}
        assert text_of(node) == "18"
        assert text_of("18") == "18"
        assert text_of(None) == ""
        assert text_of({"@unit": "mm"}) == ""
        assert attr_of(node, "unit") == "mm"
        assert attr_of("18", "unit") == ""

    def test_attr_of_reads_underscore_prefix(self):
        node = {"@_id": "M1", "@_unit": "mm", "#text": "18"}
        assert attr_of(node, "id") == "M1"
        assert attr_of(node, "unit") == "mm"
        assert attr_of({"@id": "M1", "@_id": "other"}, "id") == "M1"
