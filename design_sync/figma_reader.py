"""
Figma 文件讀取 — REST API / plugin payload JSON → SceneNode 樹

支援兩種節點形狀：
- Figma REST API（absoluteBoundingBox、style{fontSize, ...}、rectangleCornerRadii）
- plugin payload（node_to_dict 的輸出：x/y、fontName、lineHeight{value, unit}）
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

import requests

from .colors import ColorValue
from .log import get_logger
from .scene import (
    BoundingBox,
    Constraints,
    ContainerNode,
    GradientStop,
    LineHeight,
    Padding,
    Paint,
    SceneNode,
    Shadow,
    ShapeNode,
    StyleSnapshot,
    TextNode,
    new_node_id,
    walk,
)

logger = get_logger("figma_reader")

CONTAINER_TYPES = {
    "DOCUMENT", "CANVAS", "FRAME", "GROUP", "SECTION",
    "COMPONENT", "COMPONENT_SET", "INSTANCE",
}
SHAPE_TYPES = {
    "RECTANGLE": "RECTANGLE", "ELLIPSE": "ELLIPSE", "LINE": "LINE",
    "VECTOR": "VECTOR", "BOOLEAN_OPERATION": "VECTOR", "STAR": "VECTOR",
    "POLYGON": "VECTOR", "IMAGE": "IMAGE",
}


class FigmaAPIClient:
    """Figma REST API 唯讀封裝."""

    BASE_URL = "https://api.figma.com/v1"

    def __init__(self, token: str, timeout: float = 30.0):
        self.token = token
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "X-Figma-Token": token,
            "Content-Type": "application/json",
        })

    def get_file(self, file_key: str, node_ids: Optional[list] = None) -> dict:
        url = f"{self.BASE_URL}/files/{file_key}"
        params = {}
        if node_ids:
            params["ids"] = ",".join(node_ids)
        resp = self.session.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def get_file_nodes(self, file_key: str, node_ids: list) -> dict:
        url = f"{self.BASE_URL}/files/{file_key}/nodes"
        params = {"ids": ",".join(node_ids)}
        resp = self.session.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def fetch_document(self, file_key: str, node_ids: Optional[list] = None) -> "DesignDocument":
        if node_ids:
            return load_document(self.get_file_nodes(file_key, node_ids))
        return load_document(self.get_file(file_key))


@dataclass
class ComponentInfo:
    key: str = ""
    name: str = ""
    description: str = ""


@dataclass
class DesignDocument:
    """已載入的設計文件：根節點 + component 表 + style 表."""
    root: Optional[SceneNode] = None
    components: Dict[str, ComponentInfo] = field(default_factory=dict)
    styles: Dict[str, dict] = field(default_factory=dict)
    name: str = ""

    def iter_nodes(self) -> Iterator[SceneNode]:
        if self.root is not None:
            yield from walk(self.root)

    def find_node(self, node_id: str) -> Optional[SceneNode]:
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None

    @property
    def is_empty(self) -> bool:
        return self.root is None and not self.components


# ════════════════════════════════════════════════════════════
# Figma JSON → SceneNode
# ════════════════════════════════════════════════════════════

class FigmaToScene:
    """Figma 節點 dict（API 或 plugin payload 形狀）→ SceneNode."""

    def convert(self, data: dict) -> SceneNode:
        if not isinstance(data, dict):
            raise TypeError(f"expected a node object, got {type(data).__name__}")
        node_type = str(data.get("type") or "FRAME").upper()
        common = dict(
            id=str(data.get("id") or new_node_id()),
            name=str(data.get("name") or ""),
            box=self._box(data),
            style=self._style(data),
            fills=self._paints(data.get("fills")),
            visible=bool(data.get("visible", True)),
        )

        if node_type == "TEXT":
            return self._text(data, common)
        if node_type in SHAPE_TYPES and not data.get("children"):
            return ShapeNode(kind=SHAPE_TYPES[node_type], **common)
        if node_type not in CONTAINER_TYPES and node_type not in SHAPE_TYPES:
            logger.debug("Unknown node type %s, treating as container", node_type)
        return ContainerNode(
            kind=node_type if node_type in CONTAINER_TYPES else "FRAME",
            children=self._children(data.get("children")),
            **common,
        )

    def _children(self, children) -> list:
        result = []
        for child in children or []:
            try:
                result.append(self.convert(child))
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                logger.warning("Skipping malformed node %r: %s", _describe(child), e)
        return result

    # ─── geometry ───

    def _box(self, data: dict) -> BoundingBox:
        bbox = data.get("absoluteBoundingBox") or {}
        return BoundingBox(
            x=float(data.get("x", bbox.get("x", 0)) or 0),
            y=float(data.get("y", bbox.get("y", 0)) or 0),
            width=float(data.get("width", bbox.get("width", 0)) or 0),
            height=float(data.get("height", bbox.get("height", 0)) or 0),
        )

    def _style(self, data: dict) -> StyleSnapshot:
        radii = data.get("rectangleCornerRadii")
        if isinstance(data.get("cornerRadius"), list):
            radii = data["cornerRadius"]
        if radii and len(set(radii)) > 1:
            corner_radius = tuple(float(r) for r in radii[:4])
        elif radii:
            corner_radius = float(radii[0])
        else:
            corner_radius = float(data.get("cornerRadius") or 0)

        layout_mode = data.get("layoutMode") or "NONE"
        constraints = data.get("constraints") or {}
        scale = data.get("scale")
        return StyleSnapshot(
            corner_radius=corner_radius,
            opacity=_opacity(data.get("opacity")),
            effects=tuple(self._effects(data.get("effects"))),
            layout_axis=layout_mode if layout_mode in ("HORIZONTAL", "VERTICAL") else "NONE",
            item_spacing=float(data.get("itemSpacing") or 0),
            padding=Padding(
                top=float(data.get("paddingTop") or 0),
                right=float(data.get("paddingRight") or 0),
                bottom=float(data.get("paddingBottom") or 0),
                left=float(data.get("paddingLeft") or 0),
            ),
            primary_align=data.get("primaryAxisAlignItems") or "MIN",
            counter_align=data.get("counterAxisAlignItems") or "MIN",
            rotation=data.get("rotation"),
            scale=(scale["x"], scale["y"]) if isinstance(scale, dict) else None,
            constraints=Constraints(
                horizontal=constraints.get("horizontal", "LEFT"),
                vertical=constraints.get("vertical", "TOP"),
            ),
        )

    # ─── paints & effects ───

    def _paints(self, fills) -> tuple:
        paints = []
        for fill in fills or []:
            fill_type = fill.get("type", "SOLID")
            common = dict(visible=fill.get("visible", True), opacity=fill.get("opacity", 1.0))
            if fill_type == "SOLID":
                paints.append(Paint(type="SOLID", color=ColorValue.from_dict(fill.get("color")), **common))
            elif fill_type.startswith("GRADIENT"):
                paints.append(Paint(
                    type=fill_type,
                    gradient_handle_positions=tuple(
                        (h.get("x", 0), h.get("y", 0)) for h in fill.get("gradientHandlePositions", [])
                    ),
                    gradient_stops=tuple(
                        GradientStop(s.get("position", 0), ColorValue.from_dict(s.get("color")))
                        for s in fill.get("gradientStops", [])
                    ),
                    **common,
                ))
            elif fill_type == "IMAGE":
                paints.append(Paint(
                    type="IMAGE",
                    image_ref=fill.get("imageRef") or fill.get("imageHash"),
                    scale_mode=fill.get("scaleMode", "FILL"),
                    **common,
                ))
        return tuple(paints)

    def _effects(self, effects) -> list:
        shadows = []
        for effect in effects or []:
            kind = effect.get("type")
            if kind not in ("DROP_SHADOW", "INNER_SHADOW"):
                continue
            offset = effect.get("offset") or {}
            color = effect.get("color")
            shadows.append(Shadow(
                offset_x=float(offset.get("x", 0)),
                offset_y=float(offset.get("y", 0)),
                radius=float(effect.get("radius", 0)),
                spread=float(effect.get("spread", 0)),
                color=ColorValue.from_dict(color) if color else ColorValue(0, 0, 0, 0.25),
                kind=kind,
                visible=effect.get("visible", True),
            ))
        return shadows

    # ─── text ───

    def _text(self, data: dict, common: dict) -> TextNode:
        style = data.get("style") or {}
        font_name = data.get("fontName") or {}
        weight = int(data.get("fontWeight", style.get("fontWeight", 400)) or 400)
        font_style = font_name.get("style") or _font_style(weight, bool(style.get("italic")))
        return TextNode(
            characters=str(data.get("characters") or ""),
            font_family=font_name.get("family") or style.get("fontFamily") or "Inter",
            font_weight=weight,
            font_style=font_style,
            font_size=float(data.get("fontSize", style.get("fontSize", 16)) or 16),
            letter_spacing=float(data.get("letterSpacing", style.get("letterSpacing", 0)) or 0),
            line_height=self._line_height(data, style),
            text_align_horizontal=data.get("textAlignHorizontal") or style.get("textAlignHorizontal") or "LEFT",
            text_align_vertical=data.get("textAlignVertical") or style.get("textAlignVertical") or "TOP",
            text_case=data.get("textCase") or style.get("textCase") or "ORIGINAL",
            text_decoration=data.get("textDecoration") or style.get("textDecoration") or "NONE",
            **common,
        )

    def _line_height(self, data: dict, style: dict) -> LineHeight:
        line_height = data.get("lineHeight")
        if isinstance(line_height, dict) and "value" in line_height:
            return LineHeight(float(line_height["value"]), line_height.get("unit", "PIXELS"))
        if style.get("lineHeightUnit") == "FONT_SIZE_%" and style.get("lineHeightPercentFontSize"):
            return LineHeight(float(style["lineHeightPercentFontSize"]), "PERCENT")
        if style.get("lineHeightPx"):
            return LineHeight(float(style["lineHeightPx"]), "PIXELS")
        return LineHeight()


def _opacity(value) -> float:
    if value is None:
        return 1.0
    return max(0.0, min(1.0, float(value)))


def _font_style(weight: int, italic: bool) -> str:
    if italic:
        return "Italic"
    if weight >= 600:
        return "Bold"
    if weight == 500:
        return "Medium"
    if weight <= 300:
        return "Light"
    return "Regular"


def _describe(node) -> str:
    if isinstance(node, dict):
        return node.get("name") or node.get("id") or "?"
    return type(node).__name__


def node_from_dict(data: dict) -> SceneNode:
    """node_to_dict 的反向操作."""
    return FigmaToScene().convert(data)


# ════════════════════════════════════════════════════════════
# Document loading
# ════════════════════════════════════════════════════════════

def _components(table: Optional[dict]) -> Dict[str, ComponentInfo]:
    return {
        node_id: ComponentInfo(
            key=info.get("key", ""),
            name=info.get("name", ""),
            description=info.get("description", ""),
        )
        for node_id, info in (table or {}).items()
        if isinstance(info, dict)
    }


def load_document(data: dict) -> DesignDocument:
    """Figma JSON → DesignDocument.

    接受 GET /files 回應（document + components）、GET /files/:key/nodes 回應
    （nodes{id: {document, components}}），或單一節點 dict。
    """
    if not isinstance(data, dict):
        raise ValueError("Design document must be a JSON object")
    converter = FigmaToScene()

    if "nodes" in data and isinstance(data["nodes"], dict):
        children = []
        components: Dict[str, ComponentInfo] = {}
        styles: Dict[str, dict] = {}
        for node_id, entry in data["nodes"].items():
            if not isinstance(entry, dict) or not entry.get("document"):
                logger.warning("Node %s missing from response, skipping", node_id)
                continue
            children.append(entry["document"])
            components.update(_components(entry.get("components")))
            styles.update(entry.get("styles") or {})
        root = converter.convert({"type": "DOCUMENT", "name": data.get("name", ""), "children": children})
        return DesignDocument(root=root, components=components, styles=styles, name=data.get("name", ""))

    if "document" in data:
        document = data.get("document")
        root = converter.convert(document) if document else None
        return DesignDocument(
            root=root,
            components=_components(data.get("components")),
            styles=data.get("styles") or {},
            name=data.get("name", ""),
        )

    if not data:
        return DesignDocument()
    return DesignDocument(root=converter.convert(data), name=data.get("name", ""))
