"""
品質分析單元測試：無障礙報告、複雜度 / 準確度、響應式報告
"""
from design_sync.analysis import (
    ScoringPolicy,
    analyze_accessibility,
    analyze_responsive,
    complexity,
    component_role,
    component_type,
    estimate_accuracy,
    heading_level,
    is_heading,
)
from design_sync.scene import Constraints, ContainerNode, Paint, Shadow, ShapeNode, StyleSnapshot, TextNode


def image(name=""):
    return ShapeNode(name=name, fills=(Paint(type="IMAGE", image_ref="hero.png"),))


# ─── 無障礙 ───────────────────────────────────────────────────────────────

def test_clean_tree_scores_full_marks():
    root = ContainerNode(name="Card", children=[TextNode(name="Title", characters="Hi", font_size=24)])
    report = analyze_accessibility(root)
    assert report.score == 100
    assert report.issues == ()
    assert report.compliance == "AA"


def test_issues_found_anywhere_in_subtree():
    root = ContainerNode(name="Page", children=[
        ContainerNode(name="Section", children=[image(), TextNode(name="Caption", font_size=10)]),
    ])
    report = analyze_accessibility(root)
    messages = [i.message for i in report.issues]
    assert "Image missing alt text" in messages
    assert "Text smaller than 12px" in messages
    assert report.score == 100 - 15 - 5
    assert report.issues[0].severity == "error"


def test_unnamed_interactive_and_compliance_levels():
    root = ContainerNode(name="Untitled button", children=[image("Untitled"), image("Untitled 2")])
    report = analyze_accessibility(root)
    assert report.score == 100 - 10 - 15 - 15
    assert report.compliance == "A"
    assert report.to_dict()["wcagCompliance"] == "A"

    strict = ScoringPolicy(a_threshold=70)
    assert analyze_accessibility(root, strict).compliance == "non-compliant"


def test_interactive_suggestion():
    report = analyze_accessibility(ContainerNode(name="Submit Button"))
    assert any("keyboard" in s for s in report.suggestions)


# ─── 分類 ─────────────────────────────────────────────────────────────────

def test_component_type_and_role():
    assert component_type(ContainerNode(name="Primary Button")) == "button"
    assert component_type(ContainerNode(name="Profile Card")) == "card"
    assert component_type(TextNode(name="Body")) == "text"
    assert component_type(ContainerNode(name="Grid", children=[ContainerNode() for _ in range(4)])) == "layout"
    assert component_type(ContainerNode(name="Widget")) == "complex"
    assert component_role("PageHeading") == "heading"
    assert component_role("HeroImage") == "img"
    assert component_role("Widget") == "generic"


def test_heading_detection():
    assert is_heading(TextNode(name="Page title", font_size=14))
    assert is_heading(TextNode(name="Big", font_size=28))
    assert not is_heading(TextNode(name="Body", font_size=16))
    assert not is_heading(ContainerNode(name="Header"))
    assert heading_level(TextNode(font_size=32)) == 1
    assert heading_level(TextNode(font_size=21)) == 3
    assert heading_level(TextNode(font_size=12)) == 5


# ─── 複雜度 / 準確度 ──────────────────────────────────────────────────────

def test_simple_button_accuracy_is_capped():
    node = ContainerNode(name="Primary Button", children=[TextNode(characters="Go")])
    assert complexity(node) == "simple"
    assert estimate_accuracy(node) == 100


def test_complex_node_accuracy():
    shadowed = StyleSnapshot(effects=(Shadow(),))
    node = ContainerNode(name="Dashboard", style=shadowed, children=[ContainerNode() for _ in range(9)])
    assert complexity(node) == "complex"
    assert estimate_accuracy(node) == 85 - 5
    assert estimate_accuracy(node, has_custom_code=True) == 85 - 5 + 5


def test_accuracy_floor():
    policy = ScoringPolicy(base_accuracy=50)
    assert estimate_accuracy(ContainerNode(name="Widget", children=[ContainerNode() for _ in range(9)]), policy=policy) == 70


# ─── 響應式 ───────────────────────────────────────────────────────────────

def test_responsive_report():
    flex = ContainerNode(style=StyleSnapshot(layout_axis="VERTICAL"))
    report = analyze_responsive(flex)
    assert report.has_responsive_design
    assert report.mobile == "/* mobile responsive styles */"

    pinned = ContainerNode(style=StyleSnapshot(constraints=Constraints("LEFT_RIGHT", "TOP")))
    assert analyze_responsive(pinned, templated=False).to_dict() == {
        "hasResponsiveDesign": True, "mobile": None, "tablet": None, "desktop": None,
    }
    assert not analyze_responsive(ContainerNode()).has_responsive_design
