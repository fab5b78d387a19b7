"""Pydantic models for the materials database tree.

Repeatable children are always plain lists here. Converting from and to the
codec's node shape goes through `as_list` / `collapse` only.
"""
from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from services.tree_codec import as_list, attr_of, child, collapse, text_of

TEXTURE_POSITIONS: Tuple[str, ...] = ("top", "bottom")


class Measure(BaseModel):
    """A value+unit field such as `<thickness unit="mm">18</thickness>`."""

    value: str = ""
    unit: str = ""

    @classmethod
    def from_node(cls, node: Any) -> "Measure":
        return cls(value=text_of(node), unit=attr_of(node, "unit"))

    @property
    def is_blank(self) -> bool:
        return not self.value and not self.unit

    def to_node(self) -> Optional[Any]:
        if self.is_blank:
            return None
        if not self.unit:
            return self.value
        node: Dict[str, str] = {"@unit": self.unit}
        if self.value:
            node["#text"] = self.value
        return node


class Texture(BaseModel):
    """Top or bottom texture slot of a material."""

    image: str = ""
    angle: str = ""
    fit_vertically: str = ""
    mirror: str = ""

    @classmethod
    def from_node(cls, node: Any) -> "Texture":
        return cls(
            image=text_of(child(node, "image")),
            angle=text_of(child(node, "angle")),
            fit_vertically=text_of(child(node, "fit_vertically")),
            mirror=text_of(child(node, "mirror")),
        )

    def to_node(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {
            "image": self.image,
            "angle": self.angle,
            "fit_vertically": self.fit_vertically,
        }
        # An empty mirror would serialize as a spurious <mirror/>
        if self.mirror:
            node["mirror"] = self.mirror
        return node


class Layer(BaseModel):
    """One layer of a panel's construction."""

    MEASURES: ClassVar[Tuple[str, ...]] = (
        "thickness", "length", "width", "price", "unprocessed_offset", "outsize",
    )

    id: str = ""
    name: str = ""
    type: str = ""
    supplier: str = ""
    thickness: Measure = Field(default_factory=Measure)
    length: Measure = Field(default_factory=Measure)
    width: Measure = Field(default_factory=Measure)
    price: Measure = Field(default_factory=Measure)
    unprocessed_offset: Measure = Field(default_factory=Measure)
    outsize: Measure = Field(default_factory=Measure)

    @classmethod
    def from_node(cls, node: Any) -> "Layer":
        return cls(
            id=attr_of(node, "id"),
            name=text_of(child(node, "name")),
            type=text_of(child(node, "type")),
            supplier=text_of(child(node, "supplier")),
            **{m: Measure.from_node(child(node, m)) for m in cls.MEASURES},
        )

    def to_node(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {"@id": self.id or None}
        for key in ("name", "type", "supplier"):
            value = getattr(self, key)
            if value:
                node[key] = value
        for key in self.MEASURES:
            measure = getattr(self, key).to_node()
            if measure is not None:
                node[key] = measure
        return node


class Panel(BaseModel):
    """A panel product of a material, built from layers."""

    id: str = ""
    name: str = ""
    article: str = ""
    supplier: str = ""
    thickness: Measure = Field(default_factory=Measure)
    solid_base_id: str = ""
    solid_base_name: str = ""
    layers: List[Layer] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: Any) -> "Panel":
        solid_base = child(node, "solid_base")
        return cls(
            id=attr_of(node, "id"),
            name=text_of(child(node, "name")),
            article=text_of(child(node, "article")),
            supplier=text_of(child(node, "supplier")),
            thickness=Measure.from_node(child(node, "thickness")),
            solid_base_id=attr_of(solid_base, "id"),
            solid_base_name=text_of(solid_base),
            layers=[Layer.from_node(n) for n in as_list(child(child(node, "layers"), "layer"))],
        )

    def _solid_base_node(self) -> Optional[Any]:
        if not self.solid_base_id:
            return self.solid_base_name or None
        node: Dict[str, str] = {"@id": self.solid_base_id}
        if self.solid_base_name:
            node["#text"] = self.solid_base_name
        return node

    def to_node(self) -> Dict[str, Any]:
        return {
            "@id": self.id or None,
            "name": self.name,
            "article": self.article,
            "supplier": self.supplier,
            "thickness": self.thickness.to_node(),
            "solid_base": self._solid_base_node(),
            "layers": {"layer": collapse([layer.to_node() for layer in self.layers])},
        }


class Edge(BaseModel):
    """An edge-banding profile of a material."""

    MEASURES: ClassVar[Tuple[str, ...]] = ("thickness", "price", "width_min", "width_max")

    id: str = ""
    name: str = ""
    article: str = ""
    supplier: str = ""
    factory_width: str = ""
    angle: str = ""
    thickness: Measure = Field(default_factory=Measure)
    price: Measure = Field(default_factory=Measure)
    width_min: Measure = Field(default_factory=Measure)
    width_max: Measure = Field(default_factory=Measure)

    @classmethod
    def from_node(cls, node: Any) -> "Edge":
        return cls(
            id=attr_of(node, "id"),
            name=text_of(child(node, "name")),
            article=text_of(child(node, "article")),
            supplier=text_of(child(node, "supplier")),
            factory_width=text_of(child(node, "factory_width")),
            angle=text_of(child(child(node, "visual_effect"), "angle")),
            **{m: Measure.from_node(child(node, m)) for m in cls.MEASURES},
        )

    def to_node(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {
            "@id": self.id or None,
            "name": self.name,
            "article": self.article,
            "supplier": self.supplier,
        }
        if self.factory_width:
            node["factory_width"] = self.factory_width
        for key in self.MEASURES:
            measure = getattr(self, key).to_node()
            if measure is not None:
                node[key] = measure
        if self.angle:
            node["visual_effect"] = {"angle": self.angle}
        return node


class Material(BaseModel):
    """A material with its details, textures, panels and edges."""

    DETAILS: ClassVar[Tuple[str, ...]] = ("favorite", "name", "type", "rotatable", "path")
    VISUAL_EFFECT: ClassVar[Tuple[str, ...]] = (
        "reflect", "rainbown", "specular", "shininess", "glossiness", "opacity_min", "opacity_max",
    )

    id: str = ""
    favorite: str = ""
    name: str = ""
    type: str = ""
    rotatable: str = ""
    path: str = ""
    reflect: str = ""
    rainbown: str = ""
    specular: str = ""
    shininess: str = ""
    glossiness: str = ""
    opacity_min: str = ""
    opacity_max: str = ""
    textures: Dict[str, Texture] = Field(default_factory=dict)  # keyed by position
    panels: List[Panel] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: Any) -> "Material":
        details = child(node, "details")
        visual_effect = child(details, "visual_effect")
        textures_node = child(node, "textures")

        textures: Dict[str, Texture] = {}
        if isinstance(textures_node, dict):
            for position in TEXTURE_POSITIONS:
                if position in textures_node:
                    textures[position] = Texture.from_node(textures_node[position])

        return cls(
            id=attr_of(node, "id"),
            **{key: text_of(child(details, key)) for key in cls.DETAILS},
            **{key: text_of(child(visual_effect, key)) for key in cls.VISUAL_EFFECT},
            textures=textures,
            panels=[Panel.from_node(n) for n in as_list(child(child(node, "panels"), "panel"))],
            edges=[Edge.from_node(n) for n in as_list(child(child(node, "edges"), "edge"))],
        )

    def to_node(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {key: getattr(self, key) for key in self.DETAILS}
        details["visual_effect"] = {key: getattr(self, key) for key in self.VISUAL_EFFECT}

        node: Dict[str, Any] = {"@id": self.id or None, "details": details}

        textures = {
            position: self.textures[position].to_node()
            for position in TEXTURE_POSITIONS
            if position in self.textures
        }
        if textures:
            node["textures"] = textures

        panel = collapse([p.to_node() for p in self.panels])
        if panel is not None:
            node["panels"] = {"panel": panel}

        # No edges means no <edges> node at all
        edge = collapse([e.to_node() for e in self.edges])
        if edge is not None:
            node["edges"] = {"edge": edge}

        return node
