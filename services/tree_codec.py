"""Tree Codec - materials XML <-> attributed dict tree.

Shape convention (shared with the flatten/reconstruct engines):
- attributes are keys prefixed with ATTR_PREFIX ("@unit")
- text co-located with attributes or children lives under TEXT_KEY
- an element with no attributes and no children is its stripped text
- one child of a tag is a bare value, several are a list, none is no key

All scalar values are kept as strings.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from lxml import etree

from services.errors import IOFailure, MalformedInput
from services.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)

ATTR_PREFIX = "@"
TEXT_KEY = "#text"
# fast-xml-parser dumps (attributeNamePrefix "@_") are read as well
FOREIGN_ATTR_PREFIX = "@_"


# =============================================================================
# XML -> TREE
# =============================================================================

def _local_name(tag: str) -> str:
    return etree.QName(tag).localname


def element_to_node(el: etree._Element) -> Any:
    """Convert one element (recursively) to its tree node."""
    node: Dict[str, Any] = {}

    for key, value in el.attrib.items():
        node[ATTR_PREFIX + _local_name(key)] = value

    for child in el:
        # Comments and processing instructions have non-string tags
        if not isinstance(child.tag, str):
            continue
        tag = _local_name(child.tag)
        value = element_to_node(child)
        if tag not in node:
            node[tag] = value
        elif isinstance(node[tag], list):
            node[tag].append(value)
        else:
            node[tag] = [node[tag], value]

    text = (el.text or "").strip()
    if not node:
        return text
    if text:
        node[TEXT_KEY] = text
    return node


def parse_xml_bytes(data: bytes, source: str | None = None) -> Dict[str, Any]:
    """Parse XML bytes into `{root_tag: node}`."""
    parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False)
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise MalformedInput(f"Not a well-formed XML document: {e}", source) from e
    return {_local_name(root.tag): element_to_node(root)}


def parse_xml_file(xml_path: str | Path) -> Dict[str, Any]:
    """Read and parse a materials database file."""
    xml_path = Path(xml_path)
    try:
        data = xml_path.read_bytes()
    except OSError as e:
        raise IOFailure("read", str(xml_path), e) from e
    tree = parse_xml_bytes(data, str(xml_path))
    logger.debug(f"[PARSE] Parsed {xml_path} ({len(data):,} bytes)")
    return tree


# =============================================================================
# TREE -> XML
# =============================================================================

def node_to_element(tag: str, value: Any) -> etree._Element:
    """Build an element for `tag` from its tree node."""
    el = etree.Element(tag)

    if isinstance(value, dict):
        for key, child in value.items():
            if child is None:
                continue
            if key.startswith(ATTR_PREFIX):
                el.set(key[len(ATTR_PREFIX):], str(child))
            elif key == TEXT_KEY:
                el.text = str(child) if child != "" else None
            elif isinstance(child, list):
                for item in child:
                    el.append(node_to_element(key, item))
            else:
                el.append(node_to_element(key, child))
    elif value is not None and value != "":
        el.text = str(value)

    return el


def tree_to_xml(tree: Dict[str, Any]) -> bytes:
    """Serialize `{root_tag: node}` to pretty-printed UTF-8 XML."""
    if not isinstance(tree, dict) or len(tree) != 1:
        raise MalformedInput("Tree must have exactly one root element")
    (root_tag, root_node), = tree.items()
    root = node_to_element(root_tag, root_node)
    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8")


def write_xml_file(tree: Dict[str, Any], xml_path: str | Path) -> Path:
    """Serialize `tree` and write it atomically to `xml_path`."""
    data = tree_to_xml(tree)
    atomic_write_bytes(xml_path, data)
    logger.info(f"[WRITE] Written XML to {xml_path} ({len(data):,} bytes)")
    return Path(xml_path)


# =============================================================================
# SHAPE HELPERS
# =============================================================================
# A repeatable child is a bare node (one occurrence), a list (several) or
# absent. Code above the codec works with plain lists; `as_list` and
# `collapse` are the only two places that know about the convention.

def as_list(value: Any) -> List[Any]:
    """Absent/empty -> [], bare node -> [node], list -> list."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def collapse(items: List[Any]) -> Optional[Any]:
    """[] -> None (key dropped), [x] -> x, [x, y, ...] -> list."""
    if not items:
        return None
    if len(items) == 1:
        return items[0]
    return list(items)


def child(node: Any, key: str) -> Any:
    """Child node of a dict node, None for anything else."""
    if isinstance(node, dict):
        return node.get(key)
    return None


def text_of(node: Any) -> str:
    """Text content of a node: the scalar itself or its #text."""
    if node is None:
        return ""
    if isinstance(node, dict):
        return str(node.get(TEXT_KEY, ""))
    if isinstance(node, list):
        # Repeated scalar field; first occurrence wins
        return text_of(node[0]) if node else ""
    return str(node)


def attr_of(node: Any, name: str) -> str:
    """Attribute value of a dict node ("" when absent)."""
    if isinstance(node, dict):
        value = node.get(ATTR_PREFIX + name)
        if value is None:
            value = node.get(FOREIGN_ATTR_PREFIX + name)
        return "" if value is None else str(value)
    return ""
