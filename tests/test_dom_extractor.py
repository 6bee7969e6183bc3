"""
SceneNodeExtractor 單元測試
不啟動瀏覽器，直接用 DOM_WALKER_JS 形狀的 raw dict 測試分類、命名、座標與防護。
"""
import pytest

from design_sync.dom_extractor import (
    CapturedElement,
    ExtractionConfig,
    SceneNodeExtractor,
    scene_nodes_from_capture,
)
from design_sync.scene import ContainerNode, ShapeNode, TextNode


# ─── helper: 建立 raw DOM 節點 ────────────────────────────────────────────

def el(tag, text="", children=None, styles=None, attrs=None, rect=(0, 0, 100, 20), hidden=False):
    x, y, w, h = rect
    return {
        "tag": tag,
        "attrs": attrs or {},
        "hidden": hidden,
        "text": text,
        "rect": {"x": x, "y": y, "width": w, "height": h},
        "styles": styles or {},
        "children": children or [],
    }


def convert(raw, **config):
    extractor = SceneNodeExtractor(ExtractionConfig(**config))
    return extractor.convert(CapturedElement.from_tree(raw))


# ─── 分類 ─────────────────────────────────────────────────────────────────

def test_flex_row_becomes_horizontal_container_in_dom_order():
    raw = el(
        "div",
        text="TitleBody",
        styles={"display": "flex", "flex-direction": "row", "gap": "8px"},
        children=[el("span", text="Title"), el("span", text="Body")],
    )
    nodes = convert(raw)
    assert len(nodes) == 1
    root = nodes[0]
    assert isinstance(root, ContainerNode)
    assert root.style.layout_axis == "HORIZONTAL"
    assert root.style.item_spacing == 8.0
    assert [c.characters for c in root.children] == ["Title", "Body"]
    assert all(isinstance(c, TextNode) for c in root.children)


def test_heading_text_node_metrics():
    raw = el("h1", text="  Welcome  ", styles={
        "font-size": "32px",
        "font-weight": "700",
        "font-family": '"Helvetica Neue", Arial',
        "color": "rgb(255, 0, 0)",
        "text-align": "center",
        "line-height": "1.5",
        "text-transform": "uppercase",
        "text-decoration-line": "underline",
    })
    (node,) = convert(raw)
    assert isinstance(node, TextNode)
    assert node.characters == "Welcome"
    assert node.font_size == 32
    assert node.font_style == "Bold"
    assert node.font_family == "Helvetica Neue"
    assert node.text_align_horizontal == "CENTER"
    assert node.line_height.value == pytest.approx(150.0)
    assert node.line_height.unit == "PERCENT"
    assert node.text_case == "UPPER"
    assert node.text_decoration == "UNDERLINE"
    assert node.fills[0].color.r == pytest.approx(1.0)


def test_text_tag_with_block_children_is_container():
    raw = el("a", text="Card title", children=[el("div", text="Card title")])
    (node,) = convert(raw)
    assert isinstance(node, ContainerNode)


def test_image_becomes_shape_with_image_fill():
    raw = el("img", attrs={"src": "/logo.png", "alt": "Logo"})
    (node,) = convert(raw)
    assert isinstance(node, ShapeNode)
    assert node.kind == "RECTANGLE"
    assert node.fills[-1].type == "IMAGE"
    assert node.fills[-1].image_ref == "/logo.png"


def test_empty_span_with_background_is_rectangle():
    (node,) = convert(el("span", styles={"background-color": "#ff0000"}))
    assert isinstance(node, ShapeNode)
    assert node.fills[0].type == "SOLID"


def test_skip_tags_are_dropped():
    raw = el("div", children=[el("script", text="var a = 1"), el("p", text="ok")])
    (root,) = convert(raw)
    assert [c.characters for c in root.children] == ["ok"]


# ─── 隱藏元素 ─────────────────────────────────────────────────────────────

def test_hidden_elements_excluded_by_default():
    raw = el("div", children=[
        el("p", text="visible"),
        el("p", text="gone", styles={"display": "none"}),
        el("p", text="invisible", styles={"visibility": "hidden"}),
        el("p", text="faded", styles={"opacity": "0"}),
        el("p", text="attr", hidden=True),
    ])
    (root,) = convert(raw)
    assert [c.characters for c in root.children] == ["visible"]

    (root,) = convert(raw, include_hidden_elements=True)
    assert len(root.children) == 5


# ─── 防護：深度上限與循環 ─────────────────────────────────────────────────

def test_depth_ceiling_truncates_subtree():
    leaf = el("div")
    for _ in range(5):
        leaf = el("div", children=[leaf])
    (root,) = convert(leaf, max_depth=2)

    depth = 0
    node = root
    while node.children:
        node = node.children[0]
        depth += 1
    assert depth == 2


def test_depth_ceiling_keeps_shallower_siblings():
    deep = el("p", text="too deep")
    for _ in range(5):
        deep = el("div", children=[deep])
    raw = el("div", children=[
        el("p", text="before"),
        deep,
        el("section", children=[el("p", text="nested ok")]),
        el("p", text="after"),
    ])
    (root,) = convert(raw, max_depth=2)

    before, cut, section, after = root.children
    assert (before.characters, after.characters) == ("before", "after")
    assert section.children[0].characters == "nested ok"
    assert isinstance(cut, ContainerNode)
    assert cut.children[0].children == []


def test_circular_reference_is_skipped():
    parent = el("div")
    child = el("section", children=[parent])
    parent["children"].append(child)

    (root,) = convert(parent)
    (section,) = root.children
    assert isinstance(section, ContainerNode)
    assert section.children == []


def test_broken_branch_does_not_abort_siblings():
    bad = el("div")
    bad["rect"] = {"x": "not-a-number"}
    raw = el("div", children=[bad, el("p", text="still here")])
    (root,) = convert(raw)
    assert [c.characters for c in root.children] == ["still here"]


# ─── 座標 / 自訂 handler / 命名 ───────────────────────────────────────────

def test_coordinates_relative_to_root_unless_preserved():
    raw = el("div", rect=(100, 50, 400, 300), children=[el("p", text="x", rect=(110, 60, 50, 20))])
    (root,) = convert(raw)
    assert (root.box.x, root.box.y) == (0, 0)
    assert (root.children[0].box.x, root.children[0].box.y) == (10, 10)

    (root,) = convert(raw, preserve_absolute_positioning=True)
    assert (root.children[0].box.x, root.children[0].box.y) == (110, 60)


def test_custom_element_handler():
    def canvas_handler(element):
        return ShapeNode(name=f"Canvas {element.element_id}", kind="RECTANGLE")

    config = ExtractionConfig.from_options({"customElementHandlers": {"CANVAS": canvas_handler}})
    raw = el("div", children=[el("canvas", attrs={"id": "chart"}), el("video")])
    (root,) = SceneNodeExtractor(config).convert(CapturedElement.from_tree(raw))
    assert root.children[0].name == "Canvas chart"


def test_layer_names_from_id_and_semantic_class():
    raw = el("div", attrs={"id": "hero"}, children=[
        el("section", attrs={"class": "flex p-4 pricing-table"}, children=[el("p", text="x")]),
    ])
    (root,) = convert(raw)
    assert root.name == "div#hero"
    assert root.children[0].name == "section.pricing-table"


def test_scene_nodes_from_capture_uses_root_custom_properties():
    capture = {
        "tree": el("div", styles={"background-color": "var(--brand)"}),
        "customProperties": {"--brand": "#00ff00"},
    }
    (node,) = scene_nodes_from_capture(capture)
    assert node.fills[0].color.g == pytest.approx(1.0)
    assert scene_nodes_from_capture({"tree": None}) == []


def test_extraction_config_from_options():
    cfg = ExtractionConfig.from_options({"includeHiddenElements": True, "maxDepth": 4})
    assert cfg.include_hidden_elements is True
    assert cfg.max_depth == 4
    assert cfg.preserve_absolute_positioning is False


def test_failing_custom_handler_only_drops_its_element():
    def broken(element):
        raise RuntimeError("handler failed")

    config = ExtractionConfig(custom_element_handlers={"custom-x": broken})
    raw = el("div", children=[el("custom-x"), el("p", text="kept")])
    (root,) = SceneNodeExtractor(config).convert(CapturedElement.from_tree(raw))
    assert [c.characters for c in root.children] == ["kept"]


# ─── 每次存取 children 都產生新 wrapper 的 Element ────────────────────────

class LazyElement:
    """模擬 live DOM binding：children 每次回傳新物件."""

    def __init__(self, tag, text="", make_children=None):
        self.tag_name = tag
        self.element_id = ""
        self.class_name = ""
        self.attributes = {}
        self.text_content = text
        self.hidden = False
        self._make_children = make_children or (lambda: [])

    @property
    def children(self):
        return self._make_children()

    def computed_style(self):
        return {}

    def bounding_rect(self):
        return (0.0, 0.0, 100.0, 20.0)


def test_fresh_child_wrappers_are_not_mistaken_for_cycles():
    def paragraphs():
        return [LazyElement("p", text="a"), LazyElement("p", text="b")]

    def sections():
        return [LazyElement("div", make_children=paragraphs) for _ in range(20)]

    (root,) = SceneNodeExtractor().convert(LazyElement("div", make_children=sections))
    assert len(root.children) == 20
    texts = [p.characters for div in root.children for p in div.children]
    assert texts == ["a", "b"] * 20
