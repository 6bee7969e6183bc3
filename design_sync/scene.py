"""
Scene node 資料模型 — 設計工具節點的正規化描述

TextNode / ContainerNode / ShapeNode 三種節點構成封閉的 SceneNode union，
所有使用端都透過 match_node() 分派，新增節點種類時未處理的地方會直接報錯。
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, TypeVar, Union

from .colors import ColorValue

T = TypeVar("T")


def new_node_id() -> str:
    return uuid.uuid4().hex[:12]


# ════════════════════════════════════════════════════════════
# Value objects
# ════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BoundingBox:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class Shadow:
    offset_x: float = 0.0
    offset_y: float = 0.0
    radius: float = 0.0
    spread: float = 0.0
    color: ColorValue = ColorValue(0, 0, 0, 0.25)
    kind: str = "DROP_SHADOW"  # "DROP_SHADOW" | "INNER_SHADOW"
    visible: bool = True

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "offset": {"x": self.offset_x, "y": self.offset_y},
            "radius": self.radius,
            "spread": self.spread,
            "color": self.color.to_dict(),
            "visible": self.visible,
        }

    def to_css(self) -> str:
        inset = "inset " if self.kind == "INNER_SHADOW" else ""
        return (
            f"{inset}{self.offset_x:g}px {self.offset_y:g}px {self.radius:g}px "
            f"{self.spread:g}px {self.color.to_rgba_string()}"
        )


@dataclass(frozen=True)
class GradientStop:
    position: float
    color: ColorValue


@dataclass(frozen=True)
class Paint:
    type: str = "SOLID"  # SOLID | GRADIENT_LINEAR | GRADIENT_RADIAL | IMAGE
    color: Optional[ColorValue] = None
    gradient_handle_positions: Tuple[Tuple[float, float], ...] = ()
    gradient_stops: Tuple[GradientStop, ...] = ()
    image_ref: Optional[str] = None
    scale_mode: Optional[str] = None
    visible: bool = True
    opacity: float = 1.0

    def to_dict(self) -> dict:
        data: dict = {"type": self.type, "visible": self.visible}
        if self.opacity != 1.0:
            data["opacity"] = self.opacity
        if self.color is not None:
            data["color"] = self.color.to_dict()
        if self.gradient_handle_positions:
            data["gradientHandlePositions"] = [
                {"x": x, "y": y} for x, y in self.gradient_handle_positions
            ]
        if self.gradient_stops:
            data["gradientStops"] = [
                {"position": s.position, "color": s.color.to_dict()} for s in self.gradient_stops
            ]
        if self.image_ref is not None:
            data["imageRef"] = self.image_ref
            data["scaleMode"] = self.scale_mode or "FILL"
        return data


@dataclass(frozen=True)
class Padding:
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0

    @property
    def is_zero(self) -> bool:
        return not (self.top or self.right or self.bottom or self.left)


@dataclass(frozen=True)
class Constraints:
    horizontal: str = "LEFT"
    vertical: str = "TOP"

    @property
    def is_default(self) -> bool:
        return self.horizontal == "LEFT" and self.vertical == "TOP"


@dataclass(frozen=True)
class LineHeight:
    value: float = 120.0
    unit: str = "PERCENT"  # "PIXELS" | "PERCENT"


@dataclass(frozen=True)
class StyleSnapshot:
    """單一節點的樣式快照，建立後不可變."""
    corner_radius: Union[float, Tuple[float, ...]] = 0.0
    opacity: float = 1.0
    effects: Tuple[Shadow, ...] = ()
    layout_axis: str = "NONE"  # NONE | HORIZONTAL | VERTICAL
    item_spacing: float = 0.0
    padding: Padding = Padding()
    primary_align: str = "MIN"
    counter_align: str = "MIN"
    rotation: Optional[float] = None
    scale: Optional[Tuple[float, float]] = None
    constraints: Constraints = Constraints()

    @property
    def has_flex_layout(self) -> bool:
        return self.layout_axis in ("HORIZONTAL", "VERTICAL")


# ════════════════════════════════════════════════════════════
# Nodes
# ════════════════════════════════════════════════════════════

@dataclass
class _NodeBase:
    id: str = field(default_factory=new_node_id)
    name: str = ""
    box: BoundingBox = field(default_factory=BoundingBox)
    style: StyleSnapshot = field(default_factory=StyleSnapshot)
    fills: Tuple[Paint, ...] = ()
    visible: bool = True

    @property
    def has_image_fill(self) -> bool:
        return any(p.type == "IMAGE" for p in self.fills)


@dataclass
class TextNode(_NodeBase):
    characters: str = ""
    font_family: str = "Inter"
    font_weight: int = 400
    font_style: str = "Regular"  # Regular | Italic | Bold | Medium | Light
    font_size: float = 16.0
    letter_spacing: float = 0.0
    line_height: LineHeight = LineHeight()
    text_align_horizontal: str = "LEFT"
    text_align_vertical: str = "TOP"
    text_case: str = "ORIGINAL"
    text_decoration: str = "NONE"


@dataclass
class ContainerNode(_NodeBase):
    kind: str = "FRAME"
    children: List["SceneNode"] = field(default_factory=list)


@dataclass
class ShapeNode(_NodeBase):
    kind: str = "RECTANGLE"


SceneNode = Union[TextNode, ContainerNode, ShapeNode]


def match_node(
    node: Any,
    *,
    on_text: Callable[[TextNode], T],
    on_container: Callable[[ContainerNode], T],
    on_shape: Callable[[ShapeNode], T],
) -> T:
    """Exhaustive dispatch over the SceneNode union."""
    if isinstance(node, TextNode):
        return on_text(node)
    if isinstance(node, ContainerNode):
        return on_container(node)
    if isinstance(node, ShapeNode):
        return on_shape(node)
    raise TypeError(f"Unsupported scene node: {type(node).__name__}")


def node_children(node: SceneNode) -> List[SceneNode]:
    return match_node(
        node,
        on_text=lambda n: [],
        on_container=lambda n: n.children,
        on_shape=lambda n: [],
    )


def walk(node: SceneNode):
    """Depth-first, document order."""
    yield node
    for child in node_children(node):
        yield from walk(child)


def count_nodes(nodes: List[SceneNode]) -> int:
    return sum(1 for root in nodes for _ in walk(root))


# ════════════════════════════════════════════════════════════
# Plugin payload (Figma node shape)
# ════════════════════════════════════════════════════════════

def _common_dict(node: SceneNode, figma_type: str) -> dict:
    box = node.box
    data = {
        "type": figma_type,
        "id": node.id,
        "name": node.name,
        "x": box.x,
        "y": box.y,
        "width": round(box.width),
        "height": round(box.height),
        "absoluteBoundingBox": box.to_dict(),
        "fills": [p.to_dict() for p in node.fills],
        "opacity": node.style.opacity,
        "visible": node.visible,
    }
    style = node.style
    radius = style.corner_radius
    data["cornerRadius"] = list(radius) if isinstance(radius, tuple) else radius
    if style.effects:
        data["effects"] = [e.to_dict() for e in style.effects]
    if style.rotation is not None:
        data["rotation"] = style.rotation
    if style.scale is not None:
        data["scale"] = {"x": style.scale[0], "y": style.scale[1]}
    if not style.constraints.is_default:
        data["constraints"] = {
            "horizontal": style.constraints.horizontal,
            "vertical": style.constraints.vertical,
        }
    return data


def _text_dict(node: TextNode) -> dict:
    data = _common_dict(node, "TEXT")
    data.update({
        "characters": node.characters,
        "fontSize": node.font_size,
        "fontName": {"family": node.font_family, "style": node.font_style},
        "fontWeight": node.font_weight,
        "textAlignHorizontal": node.text_align_horizontal,
        "textAlignVertical": node.text_align_vertical,
        "letterSpacing": node.letter_spacing,
        "lineHeight": {"value": node.line_height.value, "unit": node.line_height.unit},
        "textCase": node.text_case,
        "textDecoration": node.text_decoration,
    })
    return data


def _container_dict(node: ContainerNode) -> dict:
    data = _common_dict(node, node.kind)
    style = node.style
    data.update({
        "layoutMode": style.layout_axis,
        "itemSpacing": style.item_spacing,
        "paddingTop": style.padding.top,
        "paddingRight": style.padding.right,
        "paddingBottom": style.padding.bottom,
        "paddingLeft": style.padding.left,
        "primaryAxisAlignItems": style.primary_align,
        "counterAxisAlignItems": style.counter_align,
        "children": [node_to_dict(child) for child in node.children],
    })
    return data


def node_to_dict(node: SceneNode) -> dict:
    """SceneNode → plugin payload dict（Figma plugin 端建立節點用）."""
    return match_node(
        node,
        on_text=_text_dict,
        on_container=_container_dict,
        on_shape=lambda n: _common_dict(n, n.kind),
    )
