"""
Generator — 設計節點樹 → 元件原始碼（React / Vue / HTML）

每個 root（component 表中的節點，或最上層含子節點的 frame）產生一個
GeneratedArtifact：markup、stylesheet、typed props、test / story stub，
加上無障礙、響應式與複雜度 metadata。
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from . import analysis
from .analysis import AccessibilityReport, ResponsiveReport, ScoringPolicy
from .figma_reader import DesignDocument
from .log import get_logger
from .naming_engine import NamingEngine
from .optimizer import OptimizationResult, Optimizer, RuleBasedOptimizer
from .scene import ContainerNode, SceneNode, TextNode, match_node, node_children, walk

logger = get_logger("generator")

FRAMEWORKS = ("react", "vue", "html")
STYLINGS = ("tailwind", "css-modules", "styled-components", "plain-css")
ROOT_CONTAINER_KINDS = ("FRAME", "COMPONENT", "INSTANCE")


class NoGenerationTarget(ValueError):
    """文件中沒有任何可產生程式碼的節點."""


@dataclass
class GenerationOptions:
    framework: str = "react"
    styling: str = "plain-css"
    typescript: bool = True
    accessibility: bool = True
    responsive: bool = True
    optimize_images: bool = False
    generate_tests: bool = False
    include_storybook: bool = False
    max_depth: int = 10
    workers: int = 0

    @classmethod
    def from_options(cls, options: Optional[Mapping]) -> "GenerationOptions":
        """camelCase 設定 bag（config 檔 generation 區塊）→ GenerationOptions."""
        options = options or {}
        defaults = cls()
        return cls(
            framework=options.get("framework", defaults.framework),
            styling=options.get("styling", defaults.styling),
            typescript=bool(options.get("typescript", defaults.typescript)),
            accessibility=bool(options.get("accessibility", defaults.accessibility)),
            responsive=bool(options.get("responsive", defaults.responsive)),
            optimize_images=bool(options.get("optimizeImages", defaults.optimize_images)),
            generate_tests=bool(options.get("generateTests", defaults.generate_tests)),
            include_storybook=bool(options.get("includeStorybook", defaults.include_storybook)),
            max_depth=int(options.get("maxDepth", defaults.max_depth)),
            workers=int(options.get("workers", defaults.workers)),
        )

    def __post_init__(self) -> None:
        if self.framework not in FRAMEWORKS:
            raise ValueError(f"Unsupported framework: {self.framework}")
        if self.styling not in STYLINGS:
            raise ValueError(f"Unsupported styling: {self.styling}")


@dataclass
class CustomCode:
    markup: str = ""
    jsx: str = ""
    css: str = ""
    css_advanced: str = ""
    hooks: str = ""
    utils: str = ""

    @property
    def affects_scoring(self) -> bool:
        return bool(self.jsx or self.css or self.css_advanced)


@dataclass(frozen=True)
class GenerationMetadata:
    source_node_id: str
    component_type: str
    complexity: str
    estimated_accuracy: int
    generation_time_ms: float
    dependencies: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "figmaNodeId": self.source_node_id,
            "componentType": self.component_type,
            "complexity": self.complexity,
            "estimatedAccuracy": self.estimated_accuracy,
            "generationTime": self.generation_time_ms,
            "dependencies": list(self.dependencies),
        }


@dataclass(frozen=True)
class GeneratedArtifact:
    id: str
    name: str
    markup: str
    stylesheet: str
    accessibility: AccessibilityReport
    responsive: ResponsiveReport
    metadata: GenerationMetadata
    typed_props: Optional[str] = None
    tests: Optional[str] = None
    story: Optional[str] = None
    optimization: Optional[OptimizationResult] = None
    framework: str = "react"
    styling: str = "plain-css"
    typescript: bool = True

    def filename(self, kind: str = "markup") -> str:
        ts = self.typescript
        if kind == "markup":
            ext = {"react": ".tsx" if ts else ".jsx", "vue": ".vue", "html": ".html"}[self.framework]
        elif kind == "stylesheet":
            if self.styling == "css-modules":
                ext = ".module.css"
            elif self.styling == "styled-components":
                ext = ".styles.ts" if ts else ".styles.js"
            else:
                ext = ".css"
        elif kind == "types":
            ext = ".types.ts"
        elif kind == "test":
            ext = ".test.tsx" if ts else ".test.jsx"
        elif kind == "story":
            ext = ".stories.tsx" if ts else ".stories.jsx"
        else:
            raise ValueError(f"Unknown artifact kind: {kind}")
        return f"{self.name}{ext}"

    def files(self) -> Dict[str, str]:
        """filename → 內容，只含有內容的部分."""
        parts = {
            "markup": self.markup,
            "stylesheet": self.stylesheet,
            "types": self.typed_props,
            "test": self.tests,
            "story": self.story,
        }
        return {self.filename(kind): text for kind, text in parts.items() if text}

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "jsx": self.markup,
            "css": self.stylesheet,
            "accessibility": self.accessibility.to_dict(),
            "responsive": self.responsive.to_dict(),
            "metadata": self.metadata.to_dict(),
        }
        if self.typed_props:
            data["typescript"] = self.typed_props
        if self.tests:
            data["tests"] = self.tests
        if self.story:
            data["storybook"] = self.story
        if self.optimization is not None:
            data["metadata"]["aiOptimization"] = {
                "improvements": [i.to_dict() for i in self.optimization.improvements],
            }
        return data


# ════════════════════════════════════════════════════════════
# CSS helpers
# ════════════════════════════════════════════════════════════

CssRule = Tuple[str, Dict[str, str]]


def _px(value: float) -> str:
    return f"{value:g}px"


def _css_align(value: str, axis: str) -> str:
    if value == "CENTER":
        return "center"
    if value == "MAX":
        return "flex-end"
    if value == "SPACE_BETWEEN" and axis == "primary":
        return "space-between"
    if value == "STRETCH" and axis == "counter":
        return "stretch"
    return "flex-start"


def _solid_fill(node: SceneNode):
    for paint in node.fills:
        if paint.visible and paint.type == "SOLID" and paint.color is not None:
            return paint
    return None


def style_declarations(node: SceneNode) -> Dict[str, str]:
    """單一節點 → CSS 宣告（不含子節點）."""
    styles: Dict[str, str] = {"box-sizing": "border-box"}
    if node.box.width:
        styles["width"] = _px(node.box.width)
    if node.box.height:
        styles["height"] = _px(node.box.height)

    style = node.style
    fill = _solid_fill(node)
    if fill is not None and not isinstance(node, TextNode):
        styles["background-color"] = fill.color.to_rgba_string()
    if style.opacity < 1:
        styles["opacity"] = f"{style.opacity:g}"
    radius = style.corner_radius
    if isinstance(radius, tuple):
        styles["border-radius"] = " ".join(_px(r) for r in radius)
    elif radius:
        styles["border-radius"] = _px(radius)
    visible_effects = [e for e in style.effects if e.visible]
    if visible_effects:
        styles["box-shadow"] = ", ".join(e.to_css() for e in visible_effects)

    if style.has_flex_layout:
        styles["display"] = "flex"
        styles["flex-direction"] = "row" if style.layout_axis == "HORIZONTAL" else "column"
        if style.item_spacing:
            styles["gap"] = _px(style.item_spacing)
        if not style.padding.is_zero:
            p = style.padding
            styles["padding"] = f"{_px(p.top)} {_px(p.right)} {_px(p.bottom)} {_px(p.left)}"
        styles["justify-content"] = _css_align(style.primary_align, "primary")
        styles["align-items"] = _css_align(style.counter_align, "counter")

    if isinstance(node, TextNode):
        # 文字節點的寬高交給內容決定
        styles.pop("width", None)
        styles.pop("height", None)
        styles["font-family"] = node.font_family
        styles["font-size"] = _px(node.font_size)
        styles["font-weight"] = str(node.font_weight)
        if node.font_style == "Italic":
            styles["font-style"] = "italic"
        if node.line_height.unit == "PIXELS":
            styles["line-height"] = _px(node.line_height.value)
        else:
            styles["line-height"] = f"{node.line_height.value:g}%"
        if node.letter_spacing:
            styles["letter-spacing"] = _px(node.letter_spacing)
        if node.text_align_horizontal != "LEFT":
            styles["text-align"] = "justify" if node.text_align_horizontal == "JUSTIFIED" else node.text_align_horizontal.lower()
        case = {"UPPER": "uppercase", "LOWER": "lowercase", "TITLE": "capitalize"}.get(node.text_case)
        if case:
            styles["text-transform"] = case
        decoration = {"UNDERLINE": "underline", "STRIKETHROUGH": "line-through"}.get(node.text_decoration)
        if decoration:
            styles["text-decoration"] = decoration
        if fill is not None:
            styles["color"] = fill.color.to_rgba_string()
    return styles


def tailwind_classes(node: SceneNode) -> str:
    classes: List[str] = []
    style = node.style
    if style.layout_axis == "HORIZONTAL":
        classes += ["flex", "flex-row"]
    elif style.layout_axis == "VERTICAL":
        classes += ["flex", "flex-col"]
    if style.has_flex_layout and style.item_spacing:
        classes.append(f"gap-[{_px(style.item_spacing)}]")
    p = style.padding
    if not p.is_zero:
        if p.top == p.right == p.bottom == p.left:
            classes.append(f"p-[{_px(p.top)}]")
        else:
            for prefix, value in (("pt", p.top), ("pr", p.right), ("pb", p.bottom), ("pl", p.left)):
                if value:
                    classes.append(f"{prefix}-[{_px(value)}]")
    if not isinstance(node, TextNode):
        if node.box.width:
            classes.append(f"w-[{_px(node.box.width)}]")
        if node.box.height:
            classes.append(f"h-[{_px(node.box.height)}]")
    else:
        classes.append(f"text-[{_px(node.font_size)}]")
    return " ".join(classes)


def rules_to_css(rules: List[CssRule]) -> str:
    blocks = []
    for class_name, styles in rules:
        if not styles:
            continue
        body = "\n".join(f"  {prop}: {val};" for prop, val in styles.items())
        blocks.append(f".{class_name} {{\n{body}\n}}")
    return "\n\n".join(blocks) + "\n" if blocks else ""


def escape_text(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )


ADVANCED_CSS_TEMPLATE = """
/* CSS Grid Layout Enhancement */
.{cls}-grid {{
  display: grid;
  grid-template-columns: repeat(auto-fit, minmax(250px, 1fr));
  gap: 1rem;
}}

/* Advanced Animations */
.{cls}-animate {{
  transition: all 0.3s cubic-bezier(0.4, 0, 0.2, 1);
}}

.{cls}-animate:hover {{
  transform: translateY(-2px);
  box-shadow: 0 10px 25px rgba(0, 0, 0, 0.1);
}}

/* Dark Mode Support */
@media (prefers-color-scheme: dark) {{
  .{cls} {{
    background-color: #1a1a1a;
    color: #ffffff;
  }}
}}

/* High Contrast Mode */
@media (prefers-contrast: high) {{
  .{cls} {{
    border: 2px solid currentColor;
  }}
}}

/* Reduced Motion */
@media (prefers-reduced-motion: reduce) {{
  .{cls}-animate {{
    transition: none;
  }}
}}"""


# ════════════════════════════════════════════════════════════
# Markup emission
# ════════════════════════════════════════════════════════════

@dataclass
class Emitted:
    markup: str
    rules: List[CssRule] = field(default_factory=list)


class MarkupEmitter:
    """SceneNode 子樹 → markup + CSS rules（pure，可在 thread pool 中執行）."""

    def __init__(self, options: GenerationOptions, namer: NamingEngine, base_indent: int = 2):
        self.options = options
        self.namer = namer
        self.base_indent = base_indent

    def pad(self, level: int) -> str:
        return "  " * (self.base_indent + level)

    @property
    def is_jsx(self) -> bool:
        return self.options.framework == "react"

    def emit(self, node: SceneNode, level: int) -> Emitted:
        if level > self.options.max_depth:
            logger.warning("Maximum generation depth reached at %r", node.name)
            return Emitted("")
        return match_node(
            node,
            on_text=lambda n: self._text(n, level),
            on_container=lambda n: self._container(n, level),
            on_shape=lambda n: self._shape(n, level),
        )

    def emit_children(self, node: SceneNode, level: int, pool: Optional[ThreadPoolExecutor] = None) -> Emitted:
        children = node_children(node)
        if pool is not None and len(children) > 1:
            results = list(pool.map(lambda child: self._safe_emit(child, level), children))
        else:
            results = [self._safe_emit(child, level) for child in children]
        # 依原本子節點順序合併
        markup = "\n".join(r.markup for r in results if r.markup)
        rules: List[CssRule] = []
        for r in results:
            rules.extend(r.rules)
        return Emitted(markup, rules)

    def _safe_emit(self, node: SceneNode, level: int) -> Emitted:
        try:
            return self.emit(node, level)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping malformed node %r: %s", getattr(node, "name", "?"), e)
            return Emitted("")

    # ─── attributes ───

    def class_name(self, node: SceneNode) -> str:
        if self.options.styling == "tailwind":
            return tailwind_classes(node)
        return self.namer.css_class_name(node.name)

    def _class_attr(self, node: SceneNode) -> str:
        cls = self.class_name(node)
        if not cls:
            return ""
        if self.is_jsx:
            if self.options.styling == "css-modules":
                return f' className={{styles["{cls}"]}}'
            return f' className="{cls}"'
        return f' class="{cls}"'

    def a11y_attributes(self, node: SceneNode) -> List[str]:
        if not self.options.accessibility:
            return []
        attrs = []
        if analysis.is_interactive(node):
            attrs.append('role="button"')
            attrs.append("tabIndex={0}" if self.is_jsx else 'tabindex="0"')
            if not analysis.has_accessible_name(node):
                attrs.append(f'aria-label="{escape_text(analysis.accessible_name(node))}"')
        if analysis.is_image(node):
            attrs.append('role="img"')
        if analysis.is_heading(node):
            attrs.append(f'role="heading" aria-level="{analysis.heading_level(node)}"')
        return attrs

    def open_tag(self, tag: str, node: SceneNode, extra: Optional[List[str]] = None) -> str:
        attrs = (extra or []) + self.a11y_attributes(node)
        attr_text = (" " + " ".join(attrs)) if attrs else ""
        return f"<{tag}{self._class_attr(node)}{attr_text}"

    def rule(self, node: SceneNode) -> List[CssRule]:
        if self.options.styling == "tailwind":
            return []
        return [(self.namer.css_class_name(node.name), style_declarations(node))]

    # ─── node kinds ───

    def _text(self, node: TextNode, level: int) -> Emitted:
        pad = self.pad(level)
        tag = f"h{analysis.heading_level(node)}" if analysis.is_heading(node) else "span"
        if node.characters:
            content = escape_text(node.characters)
        else:
            content = "{children}" if self.is_jsx else "<slot />"
        markup = f"{pad}{self.open_tag(tag, node)}>\n{pad}  {content}\n{pad}</{tag}>"
        return Emitted(markup, self.rule(node))

    def _container(self, node: ContainerNode, level: int) -> Emitted:
        pad = self.pad(level)
        inner = self.emit_children(node, level + 1)
        rules = self.rule(node) + inner.rules
        if not inner.markup:
            return Emitted(self._empty_element("div", node, pad), rules)
        markup = f"{pad}{self.open_tag('div', node)}>\n{inner.markup}\n{pad}</div>"
        return Emitted(markup, rules)

    def _shape(self, node: SceneNode, level: int) -> Emitted:
        pad = self.pad(level)
        if analysis.is_image(node):
            if self.options.framework == "react":
                extra = ["src={src}", "alt={alt}"]
            elif self.options.framework == "vue":
                extra = [':src="src"', ':alt="alt"']
            else:
                image = next(p.image_ref for p in node.fills if p.type == "IMAGE")
                extra = [f'src="{escape_text(image or "")}"', f'alt="{escape_text(node.name)}"']
            closing = " />" if self.is_jsx else ">"
            return Emitted(f"{pad}{self.open_tag('img', node, extra)}{closing}", self.rule(node))
        return Emitted(self._empty_element("div", node, pad), self.rule(node))

    def _empty_element(self, tag: str, node: SceneNode, pad: str) -> str:
        if self.is_jsx:
            return f"{pad}{self.open_tag(tag, node)} />"
        return f"{pad}{self.open_tag(tag, node)}></{tag}>"


# ════════════════════════════════════════════════════════════
# Generator
# ════════════════════════════════════════════════════════════

class CodeGenerator:

    def __init__(
        self,
        document: DesignDocument,
        options: Optional[GenerationOptions] = None,
        custom_code: Optional[CustomCode] = None,
        optimizer: Optional[Optimizer] = None,
        policy: Optional[ScoringPolicy] = None,
        naming: Optional[NamingEngine] = None,
        version_store=None,
    ):
        self.document = document
        self.options = options or GenerationOptions()
        self.custom_code = custom_code or CustomCode()
        self.optimizer = optimizer or RuleBasedOptimizer()
        self.policy = policy or ScoringPolicy()
        self.namer = naming or NamingEngine()
        self.version_store = version_store
        self.emitter = MarkupEmitter(self.options, self.namer)

    def generate(self) -> List[GeneratedArtifact]:
        if self.custom_code.markup:
            artifacts = [self._custom_markup_artifact()]
        else:
            roots = self.find_roots()
            if not roots:
                raise NoGenerationTarget("Design document has no root node, components or frames")
            artifacts = []
            pool = ThreadPoolExecutor(max_workers=self.options.workers) if self.options.workers > 0 else None
            try:
                for node, name in roots:
                    try:
                        artifacts.append(self._generate_one(node, name, pool))
                    except (TypeError, ValueError, AttributeError) as e:
                        logger.warning("Skipping component %r: %s", name, e)
            finally:
                if pool is not None:
                    pool.shutdown(wait=True)
            if not artifacts:
                raise NoGenerationTarget("No component could be generated from the design document")

        # 全部成功後才寫入版本紀錄
        if self.version_store is not None:
            for artifact in artifacts:
                self.version_store.save(
                    artifact.id,
                    artifact.markup,
                    meta={"name": artifact.name, "framework": artifact.framework},
                    description=f"Generated {artifact.name} component",
                )
        return artifacts

    # ─── root selection ───

    def find_roots(self) -> List[Tuple[SceneNode, str]]:
        roots: List[Tuple[SceneNode, str]] = []
        for node_id, info in self.document.components.items():
            node = self.document.find_node(node_id)
            if node is None:
                logger.warning("Component %s (%s) not found in document", info.name, node_id)
                continue
            roots.append((node, info.name or node.name))
        if roots:
            return roots

        if self.document.root is not None:
            frames = self._main_frames(self.document.root)
            if frames:
                return [(frame, frame.name) for frame in frames]
            root = self.document.root
            return [(root, self.document.name or root.name or "Document")]
        return []

    def _main_frames(self, node: SceneNode) -> List[SceneNode]:
        if (
            isinstance(node, ContainerNode)
            and node.kind in ROOT_CONTAINER_KINDS
            and node.children
        ):
            return [node]
        frames = []
        for child in node_children(node):
            frames.extend(self._main_frames(child))
        return frames

    # ─── per component ───

    def _generate_one(self, node: SceneNode, raw_name: str, pool) -> GeneratedArtifact:
        start = time.perf_counter()
        name = self.namer.component_identifier(raw_name)
        opts = self.options

        if isinstance(node, ContainerNode):
            body = self.emitter.emit_children(node, 1, pool)
            rules = self.emitter.rule(node) + body.rules
        else:
            single = self.emitter.emit(node, 0)
            body, rules = Emitted(single.markup), single.rules
        root_markup = self._root_element(node, body.markup)

        stylesheet = self._stylesheet(node, name, rules)
        if opts.framework == "react":
            markup = self._react_component(node, name, root_markup)
        elif opts.framework == "vue":
            markup = self._vue_component(node, name, root_markup, stylesheet)
        else:
            markup = self._html_page(name, root_markup)

        optimization = None
        if opts.accessibility or opts.optimize_images:
            optimization = self.optimizer.optimize(markup)
            markup = optimization.optimized_code

        has_custom = self.custom_code.affects_scoring
        metadata = GenerationMetadata(
            source_node_id=node.id,
            component_type=analysis.component_type(node),
            complexity=analysis.complexity(node, has_custom, self.policy),
            estimated_accuracy=analysis.estimate_accuracy(node, has_custom, self.policy),
            generation_time_ms=round((time.perf_counter() - start) * 1000, 3),
            dependencies=self._dependencies(node),
        )
        return GeneratedArtifact(
            id=node.id,
            name=name,
            markup=markup,
            stylesheet=stylesheet,
            accessibility=analysis.analyze_accessibility(node, self.policy),
            responsive=analysis.analyze_responsive(node, templated=opts.responsive),
            metadata=metadata,
            typed_props=self._typed_props(node, name) if opts.typescript else None,
            tests=self._test_stub(name) if opts.generate_tests else None,
            story=self._story_stub(name) if opts.include_storybook else None,
            optimization=optimization,
            framework=opts.framework,
            styling=opts.styling,
            typescript=opts.typescript,
        )

    def _root_element(self, node: SceneNode, inner: str) -> str:
        pad = self.emitter.pad(0)
        if not isinstance(node, ContainerNode):
            return inner
        open_tag = self.emitter.open_tag("div", node)
        if not inner:
            return f"{pad}{open_tag}{' />' if self.emitter.is_jsx else '></div>'}"
        return f"{pad}{open_tag}>\n{inner}\n{pad}</div>"

    # ─── framework templates ───

    def _props(self, node: SceneNode) -> List[Tuple[str, str, bool]]:
        props = []
        if isinstance(node, TextNode) and node.characters:
            props.append(("children", "React.ReactNode", True))
        if analysis.is_image(node):
            props.append(("src", "string", False))
            props.append(("alt", "string", False))
        props.append(("className", "string", True))
        return props

    def _section(self, title: str, code: str) -> str:
        if not code:
            return ""
        return f"\n  // === CUSTOM {title} ===\n  {code}\n  // === END CUSTOM {title} ===\n"

    def _react_component(self, node: SceneNode, name: str, root_markup: str) -> str:
        opts = self.options
        props = self._props(node)
        imports = ['import React from "react";']
        if opts.styling == "css-modules":
            imports.append(f'import styles from "./{name}.module.css";')
        elif opts.styling in ("plain-css", "tailwind"):
            imports.append(f'import "./{name}.css";')

        prop_names = ", ".join(p[0] for p in props)
        if opts.typescript:
            fields = "\n  ".join(f"{p}{'?' if optional else ''}: {t};" for p, t, optional in props)
            interface = f"interface {name}Props {{\n  {fields}\n}}\n\n"
            signature = f"export const {name}: React.FC<{name}Props> = ({{ {prop_names} }})"
        else:
            interface = ""
            signature = f"export const {name} = ({{ {prop_names} }})"

        body = (
            self._section("HOOKS", self.custom_code.hooks)
            + self._section("UTILITIES", self.custom_code.utils)
            + self._section("JSX LOGIC", self.custom_code.jsx)
        )
        return (
            "\n".join(imports) + "\n\n"
            + interface
            + f"{signature} => {{{body}\n"
            + "  return (\n"
            + f"{root_markup}\n"
            + "  );\n"
            + "};\n\n"
            + f"export default {name};\n"
        )

    def _vue_component(self, node: SceneNode, name: str, root_markup: str, stylesheet: str) -> str:
        lang = ' lang="ts"' if self.options.typescript else ""
        script_lines = [f"// {name}"]
        if any(analysis.is_image(n) for n in walk(node)):
            script_lines.append("defineProps({ src: String, alt: String });")
        for code in (self.custom_code.hooks, self.custom_code.utils, self.custom_code.jsx):
            if code:
                script_lines.append(code)
        scoped = " module" if self.options.styling == "css-modules" else " scoped"
        return (
            f"<template>\n{root_markup}\n</template>\n\n"
            f"<script setup{lang}>\n" + "\n".join(script_lines) + "\n</script>\n\n"
            f"<style{scoped}>\n{stylesheet}</style>\n"
        )

    def _html_page(self, name: str, root_markup: str) -> str:
        script = ""
        custom_js = "\n".join(c for c in (self.custom_code.utils, self.custom_code.jsx) if c)
        if custom_js:
            script = f"  <script>\n{custom_js}\n  </script>\n"
        return (
            "<!doctype html>\n"
            "<html>\n<head>\n  <meta charset=\"utf-8\">\n"
            f"  <title>{escape_text(name)}</title>\n"
            f"  <link rel=\"stylesheet\" href=\"./{name}.css\">\n"
            "</head>\n<body>\n" + root_markup + "\n" + script + "</body>\n</html>\n"
        )

    def _stylesheet(self, node: SceneNode, name: str, rules: List[CssRule]) -> str:
        opts = self.options
        if opts.styling == "tailwind":
            classes = tailwind_classes(node)
            base = f"/* Figma-based Tailwind classes: {classes} */\n\n.{name.lower()} {{\n  @apply {classes};\n}}\n" if classes else ""
        else:
            deduped: Dict[str, Dict[str, str]] = {}
            for cls, styles in rules:
                deduped.setdefault(cls, styles)
            rule_list = list(deduped.items())
            if opts.styling == "styled-components":
                base = self._styled_components(name, rule_list)
            else:
                base = rules_to_css(rule_list)

        return base + self._custom_css(name)

    def _styled_components(self, name: str, rules: List[CssRule]) -> str:
        if not rules:
            return f"import styled from 'styled-components';\n\nexport const Styled{name} = styled.div``;\n"
        (_, root_styles), nested = rules[0], rules[1:]
        lines = [f"  {prop}: {val};" for prop, val in root_styles.items()]
        for cls, styles in nested:
            if not styles:
                continue
            lines.append("")
            lines.append(f"  .{cls} {{")
            lines.extend(f"    {prop}: {val};" for prop, val in styles.items())
            lines.append("  }")
        body = "\n".join(lines)
        return f"import styled from 'styled-components';\n\nexport const Styled{name} = styled.div`\n{body}\n`;\n"

    # ─── companions ───

    def _typed_props(self, node: SceneNode, name: str) -> str:
        fields = "\n  ".join(
            f"{p}{'?' if optional else ''}: {t};" for p, t, optional in self._props(node)
        )
        if self.options.framework == "react":
            header = 'import type React from "react";\n\n'
        else:
            fields = fields.replace("React.ReactNode", "string")
            header = ""
        return f"{header}export interface {name}Props {{\n  {fields}\n}}\n\nexport type {name}Ref = HTMLDivElement;\n"

    def _test_stub(self, name: str) -> Optional[str]:
        role = analysis.component_role(name)
        if self.options.framework == "vue":
            return (
                "import { render, screen } from '@testing-library/vue';\n"
                f"import {name} from './{name}.vue';\n\n"
                f"describe('{name}', () => {{\n"
                "  it('renders without crashing', () => {\n"
                f"    render({name});\n"
                "  });\n\n"
                "  it('has proper accessibility attributes', () => {\n"
                f"    render({name});\n"
                f"    expect(screen.getByRole('{role}')).toBeTruthy();\n"
                "  });\n"
                "});\n"
            )
        if self.options.framework != "react":
            return None
        return (
            "import { render, screen } from '@testing-library/react';\n"
            f"import {{ {name} }} from './{name}';\n\n"
            f"describe('{name}', () => {{\n"
            "  it('renders without crashing', () => {\n"
            f"    render(<{name} />);\n"
            "  });\n\n"
            "  it('has proper accessibility attributes', () => {\n"
            f"    render(<{name} />);\n"
            f"    const element = screen.getByRole('{role}');\n"
            "    expect(element).toBeInTheDocument();\n"
            "  });\n\n"
            "  it('matches snapshot', () => {\n"
            f"    const {{ container }} = render(<{name} />);\n"
            "    expect(container.firstChild).toMatchSnapshot();\n"
            "  });\n"
            "});\n"
        )

    def _story_stub(self, name: str) -> Optional[str]:
        if self.options.framework == "html":
            return None
        package = "@storybook/react" if self.options.framework == "react" else "@storybook/vue3"
        source = f"./{name}" if self.options.framework == "react" else f"./{name}.vue"
        import_line = (
            f"import {{ {name} }} from '{source}';"
            if self.options.framework == "react"
            else f"import {name} from '{source}';"
        )
        return (
            f"import type {{ Meta, StoryObj }} from '{package}';\n"
            f"{import_line}\n\n"
            f"const meta: Meta<typeof {name}> = {{\n"
            f"  title: 'Components/{name}',\n"
            f"  component: {name},\n"
            "  parameters: {\n"
            "    layout: 'centered',\n"
            "  },\n"
            "  tags: ['autodocs'],\n"
            "  argTypes: {},\n"
            "};\n\n"
            "export default meta;\n"
            "type Story = StoryObj<typeof meta>;\n\n"
            "export const Default: Story = {\n"
            "  args: {},\n"
            "};\n\n"
            "export const Accessible: Story = {\n"
            "  args: {},\n"
            "  parameters: {\n"
            "    a11y: { config: { rules: [{ id: 'color-contrast', enabled: true }] } },\n"
            "  },\n"
            "};\n"
        )

    def _dependencies(self, node: SceneNode) -> Tuple[str, ...]:
        opts = self.options
        deps = [opts.framework] if opts.framework != "html" else []
        if opts.typescript and opts.framework == "react":
            deps.append("@types/react")
        if any(analysis.is_image(n) for n in walk(node)):
            deps.append("next/image" if opts.framework == "react" else "image-loader")
        if opts.styling == "styled-components":
            deps.append("styled-components")
        if opts.styling == "tailwind":
            deps.append("tailwindcss")
        return tuple(deps)

    # ─── raw markup override ───

    def _custom_markup_artifact(self) -> GeneratedArtifact:
        opts = self.options
        node = self.document.root or ContainerNode(id="custom")
        name = self.namer.component_identifier(self.document.name or node.name)
        metadata = GenerationMetadata(
            source_node_id=node.id,
            component_type=analysis.component_type(node),
            complexity=analysis.complexity(node, True, self.policy),
            estimated_accuracy=analysis.estimate_accuracy(node, True, self.policy),
            generation_time_ms=0.0,
            dependencies=self._dependencies(node),
        )
        return GeneratedArtifact(
            id=node.id,
            name=name,
            markup=self.custom_code.markup,
            stylesheet=self._custom_css(name).lstrip("\n"),
            accessibility=analysis.analyze_accessibility(node, self.policy),
            responsive=analysis.analyze_responsive(node, templated=opts.responsive),
            metadata=metadata,
            framework=opts.framework,
            styling=opts.styling,
            typescript=opts.typescript,
        )

    def _custom_css(self, name: str) -> str:
        text = ""
        if self.custom_code.css:
            text += f"\n/* === CUSTOM CSS STYLES === */\n{self.custom_code.css}\n/* === END CUSTOM CSS === */\n"
        if self.custom_code.css_advanced:
            text += (
                f"\n/* === ADVANCED CSS++ FEATURES === */\n{self.custom_code.css_advanced}\n"
                + ADVANCED_CSS_TEMPLATE.format(cls=name.lower())
                + "\n/* === END ADVANCED CSS++ === */\n"
            )
        return text


def generate_components(
    document: DesignDocument,
    options: Optional[GenerationOptions] = None,
    custom_code: Optional[CustomCode] = None,
    version_store=None,
) -> List[GeneratedArtifact]:
    return CodeGenerator(document, options, custom_code=custom_code, version_store=version_store).generate()


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def write_artifacts(artifacts: List[GeneratedArtifact], output_dir) -> List[Path]:
    """每個 artifact 寫成 `<output>/<Name>/<Name>.<ext>` 檔案組."""
    written = []
    base = Path(output_dir)
    for artifact in artifacts:
        for filename, content in artifact.files().items():
            path = base / artifact.name / filename
            _write(path, content)
            written.append(path)
    return written
