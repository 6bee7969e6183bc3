"""
命名引擎 — DOM 元素 → 圖層名稱、設計節點名稱 → 程式識別字

圖層名稱優先順序：id → 語意 class → fallback（tag）
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from .scene import match_node, node_children

# sm: / hover: / dark: 等 variant
_VARIANT_RE = re.compile(r"^[\w-]+:")
# m-4 / px-2 / -mt-1 / gap-3 / space-x-2
_SPACING_RE = re.compile(r"^-?(?:[mp][trblxy]?|gap|space-[xy])-")
# w-full / h-8 / min-w-0 / max-h-screen
_SIZING_RE = re.compile(r"^(?:min-|max-)?[wh]-")

DEFAULT_UTILITY_PREFIXES = (
    "flex", "grid", "block", "inline", "hidden", "relative", "absolute", "fixed", "sticky",
    "overflow", "z-", "opacity-", "items-", "justify-",
    "text-", "font-", "leading-", "tracking-", "align-",
    "bg-", "from-", "via-", "to-", "gradient-",
    "border-", "rounded-", "ring-", "outline-", "shadow-", "blur-",
    "transition-", "duration-", "ease-", "delay-",
)


@dataclass
class NamingConfig:
    """命名引擎設定."""
    ignore_class_prefixes: list = field(default_factory=lambda: list(DEFAULT_UTILITY_PREFIXES))
    fallback_prefix: str = "Component"


class NamingEngine:
    """元素 / 節點命名."""

    def __init__(self, config: Optional[NamingConfig] = None):
        self.config = config or NamingConfig()

    def element_name(
        self,
        *,
        tag: str,
        element_id: str = "",
        class_name: str = "",
        fallback: str = "Frame",
    ) -> str:
        """`tag#id` → `tag.class` → `Fallback (tag)`."""
        tag = (tag or "div").lower()
        element_id = (element_id or "").strip()
        if element_id:
            return f"{tag}#{element_id}"
        cls = self.semantic_class(class_name)
        if cls:
            return f"{tag}.{cls}"
        return f"{fallback} ({tag})"

    def semantic_class(self, class_string: Optional[str]) -> Optional[str]:
        classes = (class_string or "").split()
        if not classes:
            return None
        # 全是 utility class 時仍取第一個
        return next((c for c in classes if not self.is_utility_class(c)), classes[0])

    def is_utility_class(self, cls: str) -> bool:
        if len(cls) <= 2 or cls.isdigit():
            return True
        lowered = cls.lower()
        if _VARIANT_RE.match(lowered) or _SPACING_RE.match(lowered) or _SIZING_RE.match(lowered):
            return True
        return lowered.startswith(tuple(p.lower() for p in self.config.ignore_class_prefixes))

    def component_identifier(self, name: str) -> str:
        """設計節點名稱 → PascalCase 識別字（"Primary Button" → PrimaryButton）."""
        words = re.findall(r"[^\W_]+", name or "")
        if not words:
            return self.config.fallback_prefix
        ident = "".join(w[:1].upper() + w[1:] for w in words)
        if ident[0].isdigit():
            ident = self.config.fallback_prefix + ident
        return ident

    def css_class_name(self, name: str) -> str:
        slug = re.sub(r"[\W_]+", "-", (name or "").lower()).strip("-")
        return slug or "unnamed"


def _label(node) -> str:
    return match_node(
        node,
        on_text=lambda n: f"TEXT  \"{n.characters[:24]}\"",
        on_container=lambda n: f"{n.kind}  layout={n.style.layout_axis}",
        on_shape=lambda n: n.kind,
    )


def preview_naming_tree(node, indent: int = 0) -> str:
    """除錯用：印出 scene node 命名樹."""
    rows = [f"{'  ' * indent}├─ {node.name or '???'}  [{_label(node)}]"]
    rows.extend(preview_naming_tree(child, indent + 1) for child in node_children(node))
    return "\n".join(rows)
