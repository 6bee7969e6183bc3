"""
CodeGenerator 單元測試 — root 選擇、React / Vue / HTML 產出、檔名、版本寫入
"""
import pytest

from design_sync.figma_reader import DesignDocument, load_document
from design_sync.generator import (
    CodeGenerator,
    CustomCode,
    GenerationOptions,
    NoGenerationTarget,
    generate_components,
    write_artifacts,
)
from design_sync.optimizer import RuleBasedOptimizer
from design_sync.scene import ContainerNode, Paint, ShapeNode, TextNode
from design_sync.version_control import VersionStore


def button_document():
    return load_document({
        "id": "1:2",
        "name": "Primary Button",
        "type": "FRAME",
        "absoluteBoundingBox": {"x": 0, "y": 0, "width": 120, "height": 40},
        "layoutMode": "HORIZONTAL",
        "itemSpacing": 8,
        "fills": [{"type": "SOLID", "color": {"r": 0, "g": 0, "b": 1, "a": 1}}],
        "children": [
            {"id": "1:3", "name": "Label", "type": "TEXT", "characters": "Click me"},
        ],
    })


def generate(document, **options):
    return CodeGenerator(document, GenerationOptions(**options)).generate()


# ─── options ──────────────────────────────────────────────────────────────

def test_options_validation_and_from_options():
    with pytest.raises(ValueError):
        GenerationOptions(framework="svelte")
    with pytest.raises(ValueError):
        GenerationOptions(styling="sass")
    opts = GenerationOptions.from_options({"framework": "vue", "generateTests": True, "maxDepth": 3})
    assert (opts.framework, opts.generate_tests, opts.max_depth) == ("vue", True, 3)
    assert opts.styling == "plain-css"


# ─── React ────────────────────────────────────────────────────────────────

def test_react_button_component():
    (artifact,) = generate(button_document())
    assert artifact.id == "1:2"
    assert artifact.name == "PrimaryButton"
    assert artifact.filename() == "PrimaryButton.tsx"
    assert 'import "./PrimaryButton.css";' in artifact.markup
    assert "interface PrimaryButtonProps" in artifact.markup
    assert "React.memo(" in artifact.markup
    assert 'role="button"' in artifact.markup
    assert "Click me" in artifact.markup
    assert artifact.markup.rstrip().endswith("export default PrimaryButton;")

    assert ".primary-button {" in artifact.stylesheet
    assert "flex-direction: row;" in artifact.stylesheet
    assert "background-color: rgb(0, 0, 255);" in artifact.stylesheet
    assert ".label {" in artifact.stylesheet

    assert artifact.metadata.complexity == "simple"
    assert artifact.metadata.estimated_accuracy == 100
    assert artifact.metadata.component_type == "button"
    assert "react" in artifact.metadata.dependencies
    assert artifact.accessibility.compliance == "AA"
    assert [i.type for i in artifact.optimization.improvements] == ["performance", "accessibility"]
    assert 'role="button" tabIndex={0} aria-label="Button">' in artifact.markup


def test_generation_is_deterministic():
    first = generate(button_document())[0]
    second = generate(button_document())[0]
    assert first.markup == second.markup
    assert first.stylesheet == second.stylesheet


def test_javascript_output_is_memoized_and_labelled():
    (artifact,) = generate(button_document(), typescript=False)
    assert "export const PrimaryButton = React.memo(({ className }) => {" in artifact.markup
    assert "});\n\nexport default PrimaryButton;" in artifact.markup
    assert artifact.markup.count("(") == artifact.markup.count(")")
    assert 'aria-label="Button"' in artifact.markup
    assert [i.type for i in artifact.optimization.improvements] == ["performance", "accessibility"]

    again = RuleBasedOptimizer().optimize(artifact.markup)
    assert not again.changed


def test_css_modules_and_javascript():
    (artifact,) = generate(button_document(), styling="css-modules", typescript=False)
    assert 'import styles from "./PrimaryButton.module.css";' in artifact.markup
    assert 'className={styles["primary-button"]}' in artifact.markup
    assert "interface" not in artifact.markup
    assert artifact.typed_props is None
    assert artifact.filename() == "PrimaryButton.jsx"
    assert artifact.filename("stylesheet") == "PrimaryButton.module.css"


def test_tailwind_classes():
    (artifact,) = generate(button_document(), styling="tailwind")
    assert 'className="flex flex-row gap-[8px] w-[120px] h-[40px]"' in artifact.markup
    assert "@apply flex flex-row" in artifact.stylesheet


def test_styled_components_stylesheet():
    (artifact,) = generate(button_document(), styling="styled-components")
    assert artifact.stylesheet.startswith("import styled from 'styled-components';")
    assert "export const StyledPrimaryButton = styled.div`" in artifact.stylesheet
    assert "  .label {" in artifact.stylesheet
    assert artifact.filename("stylesheet") == "PrimaryButton.styles.ts"
    assert "styled-components" in artifact.metadata.dependencies


# ─── Vue / HTML ───────────────────────────────────────────────────────────

def test_vue_single_file_component():
    (artifact,) = generate(button_document(), framework="vue", generate_tests=True)
    assert artifact.filename() == "PrimaryButton.vue"
    assert artifact.markup.startswith("<template>\n")
    assert '<script setup lang="ts">' in artifact.markup
    assert "<style scoped>" in artifact.markup
    assert 'class="primary-button"' in artifact.markup
    assert 'tabindex="0"' in artifact.markup
    assert "@testing-library/vue" in artifact.tests


def test_html_page_links_stylesheet():
    (artifact,) = generate(button_document(), framework="html", generate_tests=True, include_storybook=True)
    assert artifact.markup.startswith("<!doctype html>")
    assert '<link rel="stylesheet" href="./PrimaryButton.css">' in artifact.markup
    assert artifact.tests is None
    assert artifact.story is None
    assert artifact.metadata.dependencies == ()


# ─── companions ───────────────────────────────────────────────────────────

def test_tests_and_story_stubs():
    (artifact,) = generate(button_document(), generate_tests=True, include_storybook=True)
    assert "getByRole('button')" in artifact.tests
    assert "title: 'Components/PrimaryButton'" in artifact.story
    assert "export interface PrimaryButtonProps" in artifact.typed_props
    assert sorted(artifact.files()) == [
        "PrimaryButton.css",
        "PrimaryButton.stories.tsx",
        "PrimaryButton.test.tsx",
        "PrimaryButton.tsx",
        "PrimaryButton.types.ts",
    ]
    with pytest.raises(ValueError):
        artifact.filename("readme")


# ─── root 選擇 ────────────────────────────────────────────────────────────

def test_component_table_takes_precedence():
    doc = load_document({
        "document": {
            "id": "0:0",
            "type": "DOCUMENT",
            "children": [{
                "id": "0:1",
                "type": "CANVAS",
                "children": [
                    {"id": "2:1", "name": "Page", "type": "FRAME", "children": [
                        {"id": "2:2", "name": "card", "type": "COMPONENT", "children": [
                            {"id": "2:3", "type": "TEXT", "characters": "Card"},
                        ]},
                    ]},
                ],
            }],
        },
        "components": {"2:2": {"name": "Profile Card"}},
    })
    (artifact,) = generate(doc)
    assert artifact.id == "2:2"
    assert artifact.name == "ProfileCard"


def test_top_level_frames_in_document_order():
    doc = load_document({
        "id": "0:0",
        "type": "CANVAS",
        "children": [
            {"id": "a", "name": "Header", "type": "FRAME", "children": [{"type": "TEXT", "characters": "h"}]},
            {"id": "empty", "name": "Spacer", "type": "FRAME", "children": []},
            {"id": "b", "name": "Footer", "type": "FRAME", "children": [{"type": "TEXT", "characters": "f"}]},
        ],
    })
    assert [a.name for a in generate(doc)] == ["Header", "Footer"]


def test_document_without_frames_uses_root_as_placeholder():
    doc = DesignDocument(root=TextNode(id="t", name="Lonely", characters="Hello"), name="Scratch")
    (artifact,) = generate(doc)
    assert artifact.name == "Scratch"
    assert "Hello" in artifact.markup


def test_empty_document_raises():
    with pytest.raises(NoGenerationTarget):
        generate(DesignDocument())


# ─── 深度 / 並行 ──────────────────────────────────────────────────────────

def nested(depth):
    node = TextNode(name="Leaf", characters="deep")
    for i in range(depth):
        node = ContainerNode(name=f"Level {i}", children=[node])
    return node


def test_max_depth_truncates_markup():
    doc = DesignDocument(root=nested(6))
    (shallow,) = generate(doc, max_depth=2)
    (full,) = generate(doc, max_depth=10)
    assert "deep" not in shallow.markup
    assert "deep" in full.markup


def test_workers_keep_child_order():
    children = [TextNode(name=f"Item {i}", characters=f"item-{i}") for i in range(8)]
    doc = DesignDocument(root=ContainerNode(id="list", name="List", kind="FRAME", children=children))
    (serial,) = generate(doc)
    (parallel,) = generate(doc, workers=4)
    assert parallel.markup == serial.markup
    positions = [parallel.markup.index(f"item-{i}") for i in range(8)]
    assert positions == sorted(positions)


# ─── 圖片 ─────────────────────────────────────────────────────────────────

def test_image_props_and_html_src():
    hero = ShapeNode(id="img", name="Hero", fills=(Paint(type="IMAGE", image_ref="hero.png"),))
    doc = DesignDocument(root=ContainerNode(id="page", name="Landing", kind="FRAME", children=[hero]))
    (react,) = generate(doc)
    assert "<img" in react.markup and "src={src}" in react.markup
    (html,) = generate(doc, framework="html")
    assert 'src="hero.png"' in html.markup
    assert 'alt="Hero"' in html.markup


# ─── custom code ──────────────────────────────────────────────────────────

def test_custom_markup_overrides_generation():
    custom = CustomCode(markup="<div>hand written</div>", css=".x { color: red; }")
    (artifact,) = CodeGenerator(DesignDocument(), custom_code=custom).generate()
    assert artifact.id == "custom"
    assert artifact.markup == "<div>hand written</div>"
    assert "/* === CUSTOM CSS STYLES === */" in artifact.stylesheet


def test_custom_sections_and_advanced_css():
    custom = CustomCode(hooks="const [open, setOpen] = useState(false);", css_advanced=".y {}")
    (artifact,) = CodeGenerator(button_document(), custom_code=custom).generate()
    assert "// === CUSTOM HOOKS ===" in artifact.markup
    assert ".primarybutton-animate" in artifact.stylesheet
    assert artifact.metadata.estimated_accuracy == 100


# ─── 版本 / 寫檔 ──────────────────────────────────────────────────────────

def test_versions_saved_after_generation():
    store = VersionStore()
    (artifact,) = generate_components(button_document(), version_store=store)
    (snapshot,) = store.history("1:2")
    assert snapshot.code == artifact.markup
    assert snapshot.description == "Generated PrimaryButton component"
    assert snapshot.meta == {"name": "PrimaryButton", "framework": "react"}


def test_no_versions_saved_when_generation_fails():
    store = VersionStore()
    with pytest.raises(NoGenerationTarget):
        generate_components(DesignDocument(), version_store=store)
    assert store.components() == []


def test_write_artifacts(tmp_path):
    artifacts = generate(button_document(), include_storybook=True)
    written = write_artifacts(artifacts, tmp_path)
    names = sorted(p.name for p in written)
    assert names == ["PrimaryButton.css", "PrimaryButton.stories.tsx", "PrimaryButton.tsx", "PrimaryButton.types.ts"]
    assert (tmp_path / "PrimaryButton" / "PrimaryButton.tsx").read_text(encoding="utf-8") == artifacts[0].markup
