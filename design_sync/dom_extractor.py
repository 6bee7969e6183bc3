"""
DOM 擷取 — 畫面上的元素子樹 → SceneNode 清單

1. Playwright 無頭瀏覽器擷取頁面：computed styles、邊界、文字（raw tree）
2. SceneNodeExtractor 走訪任何符合 Element 介面的元素樹，分類為
   Text / Container / Shape，並以 seen set + 深度上限防止無窮遞迴。
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from .colors import ColorParser, parse_css_number
from .log import get_logger
from .naming_engine import NamingEngine
from .scene import (
    BoundingBox,
    ContainerNode,
    LineHeight,
    Paint,
    SceneNode,
    ShapeNode,
    StyleSnapshot,
    TextNode,
)
from .style_parser import (
    parse_background_image,
    parse_corner_radius,
    parse_effects,
    parse_layout,
    parse_opacity,
    parse_transform,
)

logger = get_logger("dom_extractor")

SKIP_TAGS = {"script", "style", "link", "meta", "noscript", "br", "wbr", "template"}
TEXT_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "p", "span", "a", "label"}
STRUCTURAL_TAGS = {"div", "section", "article", "header", "footer", "nav", "main", "aside"}
BLOCK_TAGS = STRUCTURAL_TAGS | {"p", "h1", "h2", "h3", "h4", "h5", "h6"}
SHAPE_TAGS = {"img", "hr"}


class Element(Protocol):
    """Extractor 需要的最小 DOM 介面."""

    @property
    def tag_name(self) -> str: ...

    @property
    def element_id(self) -> str: ...

    @property
    def class_name(self) -> str: ...

    @property
    def attributes(self) -> Mapping[str, str]: ...

    @property
    def children(self) -> Sequence["Element"]: ...

    @property
    def text_content(self) -> str: ...

    @property
    def hidden(self) -> bool: ...

    def computed_style(self) -> Mapping[str, str]: ...

    def bounding_rect(self) -> Tuple[float, float, float, float]: ...


CustomHandler = Callable[[Element], Optional[SceneNode]]


@dataclass
class ExtractionConfig:
    """Scene node 擷取設定."""
    include_hidden_elements: bool = False
    preserve_absolute_positioning: bool = False
    max_depth: int = 10
    custom_element_handlers: Dict[str, CustomHandler] = field(default_factory=dict)

    @classmethod
    def from_options(cls, options: Optional[Mapping]) -> "ExtractionConfig":
        """camelCase 設定 bag（config 檔 extraction 區塊）→ ExtractionConfig."""
        options = options or {}
        handlers = options.get("customElementHandlers") or {}
        return cls(
            include_hidden_elements=bool(options.get("includeHiddenElements", False)),
            preserve_absolute_positioning=bool(options.get("preserveAbsolutePositioning", False)),
            max_depth=int(options.get("maxDepth", 10)),
            custom_element_handlers={k.lower(): v for k, v in handlers.items()},
        )


# ════════════════════════════════════════════════════════════
# Captured DOM adapter
# ════════════════════════════════════════════════════════════

class CapturedElement:
    """把 DOM_WALKER_JS 擷取的 raw dict 包成 Element 介面."""

    def __init__(self, raw: dict, registry: Optional[dict] = None):
        self._raw = raw
        self._registry = registry if registry is not None else {}
        self._registry[id(raw)] = self
        self._children: Optional[List["CapturedElement"]] = None

    @classmethod
    def from_tree(cls, raw: dict) -> "CapturedElement":
        return cls(raw)

    def _wrap(self, raw: dict) -> "CapturedElement":
        # 同一個 raw dict 永遠對應同一個 wrapper，cycle guard 才能用 identity 判斷
        existing = self._registry.get(id(raw))
        return existing if existing is not None else CapturedElement(raw, self._registry)

    @property
    def tag_name(self) -> str:
        return (self._raw.get("tag") or "div").lower()

    @property
    def attributes(self) -> Mapping[str, str]:
        return self._raw.get("attrs") or {}

    @property
    def element_id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def class_name(self) -> str:
        return self.attributes.get("class", "")

    @property
    def children(self) -> List["CapturedElement"]:
        if self._children is None:
            self._children = [self._wrap(c) for c in self._raw.get("children") or [] if c]
        return self._children

    @property
    def text_content(self) -> str:
        return self._raw.get("text") or ""

    @property
    def hidden(self) -> bool:
        return bool(self._raw.get("hidden"))

    def computed_style(self) -> Mapping[str, str]:
        return self._raw.get("styles") or {}

    def bounding_rect(self) -> Tuple[float, float, float, float]:
        rect = self._raw.get("rect") or {}
        return (
            float(rect.get("x", 0)),
            float(rect.get("y", 0)),
            float(rect.get("width", 0)),
            float(rect.get("height", 0)),
        )


# ════════════════════════════════════════════════════════════
# Extractor
# ════════════════════════════════════════════════════════════

class SceneNodeExtractor:

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        colors: Optional[ColorParser] = None,
        naming: Optional[NamingEngine] = None,
    ):
        self.config = config or ExtractionConfig()
        self.colors = colors or ColorParser()
        self.namer = naming or NamingEngine()
        # id → element；保留參照，避免 wrapper 被回收後 id 被重用
        self._seen: Dict[int, Element] = {}
        self._origin = (0.0, 0.0)

    def convert(self, root: Element) -> List[SceneNode]:
        self._seen = {}
        if self.config.preserve_absolute_positioning:
            self._origin = (0.0, 0.0)
        else:
            x, y, _, _ = root.bounding_rect()
            self._origin = (x, y)
        return self._process(root, 0)

    def _process(self, element: Element, depth: int) -> List[SceneNode]:
        if depth > self.config.max_depth:
            logger.warning("Maximum conversion depth reached at <%s>", element.tag_name)
            return []
        if id(element) in self._seen:
            logger.warning("Circular reference detected, skipping <%s>", element.tag_name)
            return []
        self._seen[id(element)] = element

        try:
            return self._convert_element(element, depth)
        except Exception as e:  # 單一分支失敗不影響其他節點
            logger.warning("Skipping <%s>: %s", getattr(element, "tag_name", "?"), e)
            return []

    def _convert_element(self, element: Element, depth: int) -> List[SceneNode]:
        tag = element.tag_name.lower()
        if tag in SKIP_TAGS:
            return []
        styles = element.computed_style()

        if not self.config.include_hidden_elements and self._is_hidden(element, styles):
            return []

        handler = self.config.custom_element_handlers.get(tag)
        if handler is not None:
            try:
                node = handler(element)
            except Exception as e:  # handler 屬外部程式碼
                logger.warning("Custom handler for <%s> failed: %s", tag, e)
                return []
            return [node] if node is not None else []

        kind = self._classify(element, styles)
        if kind == "TEXT":
            return self._text_node(element, styles)
        if kind == "RECTANGLE":
            return self._shape_node(element, styles)
        return self._container_node(element, styles, depth)

    # ─── classification ───

    def _classify(self, element: Element, styles: Mapping[str, str]) -> str:
        tag = element.tag_name.lower()
        text = (element.text_content or "").strip()
        children = element.children
        has_children = len(children) > 0

        if has_children and parse_layout(styles).axis != "NONE":
            return "FRAME"
        if text and tag in TEXT_TAGS and not self._has_block_children(element):
            return "TEXT"
        if text and not has_children:
            return "TEXT"
        if has_children or tag in STRUCTURAL_TAGS:
            return "FRAME"
        if tag in SHAPE_TAGS or self._has_simple_background(styles):
            return "RECTANGLE"
        return "FRAME"

    def _is_hidden(self, element: Element, styles: Mapping[str, str]) -> bool:
        return (
            styles.get("display") == "none"
            or styles.get("visibility") == "hidden"
            or parse_css_number(styles.get("opacity")) == 0
            or element.hidden
        )

    def _has_block_children(self, element: Element) -> bool:
        return any(child.tag_name.lower() in BLOCK_TAGS for child in element.children)

    def _has_simple_background(self, styles: Mapping[str, str]) -> bool:
        if not self.colors.parse(styles.get("background-color")).is_transparent:
            return True
        image = styles.get("background-image")
        return bool(image) and image != "none"

    # ─── node builders ───

    def _box(self, element: Element) -> BoundingBox:
        x, y, width, height = element.bounding_rect()
        ox, oy = self._origin
        return BoundingBox(x=x - ox, y=y - oy, width=width, height=height)

    def _name(self, element: Element, fallback: str) -> str:
        return self.namer.element_name(
            tag=element.tag_name,
            element_id=element.element_id,
            class_name=element.class_name,
            fallback=fallback,
        )

    def _fills(self, styles: Mapping[str, str]) -> Tuple[Paint, ...]:
        fills = []
        background = self.colors.parse(styles.get("background-color"))
        if not background.is_transparent:
            fills.append(Paint(type="SOLID", color=background))
        image = parse_background_image(styles.get("background-image"))
        if image is not None:
            fills.append(image)
        return tuple(fills)

    def _style(self, styles: Mapping[str, str], with_layout: bool) -> StyleSnapshot:
        transform = parse_transform(styles.get("transform"))
        snapshot = dict(
            corner_radius=parse_corner_radius(styles.get("border-radius")),
            opacity=parse_opacity(styles.get("opacity")),
            effects=tuple(parse_effects(styles.get("box-shadow"), self.colors)),
            rotation=transform.rotation if transform else None,
            scale=transform.scale if transform else None,
        )
        if with_layout:
            layout = parse_layout(styles)
            snapshot.update(
                layout_axis=layout.axis,
                item_spacing=layout.item_spacing,
                padding=layout.padding,
                primary_align=layout.primary_align,
                counter_align=layout.counter_align,
            )
        return StyleSnapshot(**snapshot)

    def _container_node(self, element: Element, styles: Mapping[str, str], depth: int) -> List[SceneNode]:
        children: List[SceneNode] = []
        # DOM 順序即圖層順序
        for child in element.children:
            children.extend(self._process(child, depth + 1))
        node = ContainerNode(
            name=self._name(element, "Frame"),
            box=self._box(element),
            style=self._style(styles, with_layout=True),
            fills=self._fills(styles),
            children=children,
        )
        return [node]

    def _shape_node(self, element: Element, styles: Mapping[str, str]) -> List[SceneNode]:
        fills = list(self._fills(styles))
        src = element.attributes.get("src")
        if element.tag_name.lower() == "img" and src:
            fills.append(Paint(type="IMAGE", image_ref=src, scale_mode="FILL"))
        node = ShapeNode(
            name=self._name(element, "Rectangle"),
            box=self._box(element),
            style=self._style(styles, with_layout=False),
            fills=tuple(fills),
        )
        return [node]

    def _text_node(self, element: Element, styles: Mapping[str, str]) -> List[SceneNode]:
        text = (element.text_content or "").strip()
        if not text:
            return []
        font_size = round(parse_css_number(styles.get("font-size"), 16.0))
        color = self.colors.parse(styles.get("color") or "black")
        node = TextNode(
            name=self._name(element, "Text"),
            box=self._box(element),
            style=self._style(styles, with_layout=False),
            fills=() if color.is_transparent else (Paint(type="SOLID", color=color),),
            characters=text,
            font_family=_font_family(styles.get("font-family")),
            font_weight=_font_weight(styles.get("font-weight")),
            font_style=_font_style(styles.get("font-weight"), styles.get("font-style")),
            font_size=font_size,
            letter_spacing=_letter_spacing(styles.get("letter-spacing")),
            line_height=_line_height(styles.get("line-height")),
            text_align_horizontal=_TEXT_ALIGN.get(styles.get("text-align", ""), "LEFT"),
            text_align_vertical=_VERTICAL_ALIGN.get(styles.get("vertical-align", ""), "TOP"),
            text_case=_TEXT_CASE.get(styles.get("text-transform", ""), "ORIGINAL"),
            text_decoration=_text_decoration(
                styles.get("text-decoration-line") or styles.get("text-decoration")
            ),
        )
        return [node]


# ════════════════════════════════════════════════════════════
# Text metric helpers
# ════════════════════════════════════════════════════════════

_TEXT_ALIGN = {"center": "CENTER", "right": "RIGHT", "end": "RIGHT", "justify": "JUSTIFIED"}
_VERTICAL_ALIGN = {"middle": "CENTER", "bottom": "BOTTOM"}
_TEXT_CASE = {"uppercase": "UPPER", "lowercase": "LOWER", "capitalize": "TITLE"}


def _font_family(font_family: Optional[str]) -> str:
    first = (font_family or "").split(",")[0].replace('"', "").replace("'", "").strip()
    return first or "Inter"


def _font_weight(font_weight: Optional[str]) -> int:
    if font_weight == "bold":
        return 700
    if font_weight == "normal":
        return 400
    value = parse_css_number(font_weight)
    return int(value) if value is not None else 400


def _font_style(font_weight: Optional[str], font_style: Optional[str]) -> str:
    if font_style == "italic":
        return "Italic"
    weight = _font_weight(font_weight)
    if weight >= 600:
        return "Bold"
    if weight == 500:
        return "Medium"
    if weight <= 300:
        return "Light"
    return "Regular"


def _letter_spacing(letter_spacing: Optional[str]) -> float:
    if not letter_spacing or letter_spacing == "normal":
        return 0.0
    return parse_css_number(letter_spacing, 0.0)


def _line_height(line_height: Optional[str]) -> LineHeight:
    if not line_height or line_height == "normal":
        return LineHeight(120.0, "PERCENT")
    value = parse_css_number(line_height)
    if value is None:
        return LineHeight(120.0, "PERCENT")
    if "%" in line_height:
        return LineHeight(value, "PERCENT")
    if "px" not in line_height and "em" not in line_height:
        # 無單位倍數：1.5 → 150%
        return LineHeight(value * 100, "PERCENT")
    return LineHeight(value, "PIXELS")


def _text_decoration(decoration: Optional[str]) -> str:
    decoration = decoration or ""
    if "underline" in decoration:
        return "UNDERLINE"
    if "line-through" in decoration:
        return "STRIKETHROUGH"
    return "NONE"


# ════════════════════════════════════════════════════════════
# Playwright capture
# ════════════════════════════════════════════════════════════

@dataclass
class CaptureConfig:
    """無頭瀏覽器擷取設定."""
    viewport_width: int = 1440
    viewport_height: int = 900
    wait_for_selector: Optional[str] = None
    wait_timeout_ms: int = 10000
    root_selector: str = "#app, #root, #__nuxt, body"
    max_depth: int = 50


CAPTURED_STYLE_PROPERTIES = [
    "display", "visibility", "opacity", "position",
    "background-color", "background-image", "border-radius", "box-shadow", "transform",
    "flex-direction", "justify-content", "align-items", "gap", "column-gap",
    "padding-top", "padding-right", "padding-bottom", "padding-left",
    "font-family", "font-size", "font-weight", "font-style", "color",
    "text-align", "vertical-align", "letter-spacing", "line-height",
    "text-transform", "text-decoration-line",
]


DOM_WALKER_JS = """
(config) => {
    function rootCustomProperties() {
        const props = {};
        const rootStyle = getComputedStyle(document.documentElement);
        for (const sheet of document.styleSheets) {
            let rules;
            try { rules = sheet.cssRules; } catch (e) { continue; }
            for (const rule of rules) {
                if (!rule.style || !rule.selectorText || !rule.selectorText.includes(':root')) continue;
                for (const name of rule.style) {
                    if (name.startsWith('--')) props[name] = rootStyle.getPropertyValue(name).trim();
                }
            }
        }
        return props;
    }

    function walk(el, depth) {
        if (depth > config.maxDepth) return null;
        const styles = window.getComputedStyle(el);
        const rect = el.getBoundingClientRect();
        const attrs = {};
        for (const attr of el.attributes) attrs[attr.name] = attr.value;
        const captured = {};
        for (const prop of config.properties) captured[prop] = styles.getPropertyValue(prop);
        const node = {
            tag: el.tagName.toLowerCase(),
            attrs: attrs,
            hidden: !!el.hidden,
            text: el.textContent || '',
            rect: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
            styles: captured,
            children: [],
        };
        for (const child of el.children) {
            const childNode = walk(child, depth + 1);
            if (childNode) node.children.push(childNode);
        }
        return node;
    }

    const selectors = config.rootSelector.split(',').map(s => s.trim());
    let root = null;
    for (const sel of selectors) {
        root = document.querySelector(sel);
        if (root) break;
    }
    if (!root) root = document.body;
    return { tree: walk(root, 0), customProperties: rootCustomProperties() };
}
"""


async def extract_dom_tree(url: str, config: Optional[CaptureConfig] = None) -> dict:
    """啟動無頭瀏覽器、開啟 URL、擷取 raw DOM 樹（尚未轉 scene node）."""
    config = config or CaptureConfig()
    from playwright.async_api import async_playwright

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True)
        context = await browser.new_context(
            viewport={"width": config.viewport_width, "height": config.viewport_height}
        )
        page = await context.new_page()
        await page.goto(url, wait_until="networkidle", timeout=config.wait_timeout_ms)
        if config.wait_for_selector:
            await page.wait_for_selector(config.wait_for_selector, timeout=config.wait_timeout_ms)
        await page.wait_for_timeout(500)

        js_config = {
            "rootSelector": config.root_selector,
            "maxDepth": config.max_depth,
            "properties": CAPTURED_STYLE_PROPERTIES,
        }
        captured = await page.evaluate(DOM_WALKER_JS, js_config)
        await browser.close()

    return {
        "tree": captured.get("tree"),
        "customProperties": captured.get("customProperties") or {},
        "viewport": {"width": config.viewport_width, "height": config.viewport_height},
    }


def extract_dom_tree_sync(url: str, config: Optional[CaptureConfig] = None) -> dict:
    """extract_dom_tree 的同步包裝."""
    return asyncio.run(extract_dom_tree(url, config))


def scene_nodes_from_capture(
    capture: dict,
    config: Optional[ExtractionConfig] = None,
    colors: Optional[ColorParser] = None,
) -> List[SceneNode]:
    """擷取結果 → SceneNode 清單；color parser 預設使用頁面 :root 的 custom properties."""
    tree = capture.get("tree")
    if not tree:
        return []
    if colors is None:
        colors = ColorParser.with_properties(capture.get("customProperties") or {})
    extractor = SceneNodeExtractor(config, colors=colors)
    return extractor.convert(CapturedElement.from_tree(tree))
