"""
NamingEngine 單元測試
圖層名稱：id → 語意 class → fallback；元件識別字與 CSS class slug。
"""
import pytest

from design_sync.naming_engine import NamingConfig, NamingEngine, preview_naming_tree
from design_sync.scene import ContainerNode, ShapeNode, TextNode


@pytest.fixture
def engine():
    return NamingEngine()


# ─── 圖層名稱 ─────────────────────────────────────────────────────────────

def test_id_wins_over_class(engine):
    assert engine.element_name(tag="DIV", element_id="main-nav", class_name="navbar") == "div#main-nav"


def test_semantic_class_skips_utilities(engine):
    name = engine.element_name(tag="section", class_name="flex gap-4 px-6 hero-banner")
    assert name == "section.hero-banner"


def test_all_utility_classes_uses_first(engine):
    assert engine.element_name(tag="div", class_name="flex items-center") == "div.flex"


def test_fallback_uses_tag(engine):
    assert engine.element_name(tag="p", fallback="Text") == "Text (p)"
    assert engine.element_name(tag="", fallback="Frame") == "Frame (div)"


def test_custom_ignore_prefixes():
    engine = NamingEngine(NamingConfig(ignore_class_prefixes=["btn-"]))
    assert engine.element_name(tag="button", class_name="btn-primary cta") == "button.cta"


# ─── 元件識別字 ───────────────────────────────────────────────────────────

@pytest.mark.parametrize("raw, expected", [
    ("Primary Button", "PrimaryButton"),
    ("nav/bar item", "NavBarItem"),
    ("card--large", "CardLarge"),
    ("404 page", "Component404Page"),
    ("", "Component"),
    ("!!!", "Component"),
])
def test_component_identifier(engine, raw, expected):
    assert engine.component_identifier(raw) == expected


def test_css_class_name(engine):
    assert engine.css_class_name("Primary Button") == "primary-button"
    assert engine.css_class_name("  Hero / Title  ") == "hero-title"
    assert engine.css_class_name("") == "unnamed"


# ─── 命名樹預覽 ───────────────────────────────────────────────────────────

def test_preview_naming_tree_indents_children():
    tree = ContainerNode(name="div#app", children=[
        TextNode(name="h1", characters="Welcome to the dashboard page"),
        ShapeNode(name="img.logo"),
    ])
    lines = preview_naming_tree(tree).split("\n")
    assert lines[0].startswith("├─ div#app")
    assert lines[1].startswith("  ├─ h1")
    assert '"Welcome to the dashboard' in lines[1]
    assert lines[2].startswith("  ├─ img.logo")
