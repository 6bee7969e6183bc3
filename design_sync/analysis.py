"""
產出品質分析 — 無障礙報告、響應式報告、複雜度 / 準確度評分

所有門檻與扣分值集中在 ScoringPolicy，方便調整而不必改演算法。
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .scene import SceneNode, TextNode, match_node, node_children, walk


@dataclass(frozen=True)
class ScoringPolicy:
    base_accuracy: int = 85
    simple_bonus: int = 10
    many_children_threshold: int = 5
    many_children_penalty: int = 5
    known_type_bonus: int = 5
    custom_code_bonus: int = 5
    accuracy_floor: int = 70
    accuracy_ceiling: int = 100
    simple_max: int = 3
    medium_max: int = 8
    missing_alt_penalty: int = 15
    unnamed_interactive_penalty: int = 10
    small_text_penalty: int = 5
    min_text_size: float = 12
    aa_threshold: int = 80
    a_threshold: int = 60


DEFAULT_POLICY = ScoringPolicy()


@dataclass(frozen=True)
class AccessibilityIssue:
    severity: str  # error | warning | info
    message: str
    element: str
    fix: str

    def to_dict(self) -> dict:
        return {"type": self.severity, "message": self.message, "element": self.element, "fix": self.fix}


@dataclass(frozen=True)
class AccessibilityReport:
    score: int = 100
    issues: Tuple[AccessibilityIssue, ...] = ()
    suggestions: Tuple[str, ...] = ()
    policy: ScoringPolicy = DEFAULT_POLICY

    @property
    def compliance(self) -> str:
        if self.score >= self.policy.aa_threshold:
            return "AA"
        if self.score >= self.policy.a_threshold:
            return "A"
        return "non-compliant"

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "issues": [i.to_dict() for i in self.issues],
            "suggestions": list(self.suggestions),
            "wcagCompliance": self.compliance,
        }


@dataclass(frozen=True)
class ResponsiveReport:
    has_responsive_design: bool = False
    mobile: Optional[str] = None
    tablet: Optional[str] = None
    desktop: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "hasResponsiveDesign": self.has_responsive_design,
            "mobile": self.mobile,
            "tablet": self.tablet,
            "desktop": self.desktop,
        }


# ════════════════════════════════════════════════════════════
# Node classification
# ════════════════════════════════════════════════════════════

INTERACTIVE_KEYWORDS = ("button", "link", "input", "click")
HEADING_KEYWORDS = ("title", "heading", "header")


def is_image(node: SceneNode) -> bool:
    return node.has_image_fill


def is_interactive(node: SceneNode) -> bool:
    name = (node.name or "").lower()
    return any(word in name for word in INTERACTIVE_KEYWORDS)


def has_accessible_name(node: SceneNode) -> bool:
    return bool(node.name) and "untitled" not in node.name.lower()


def accessible_name(node: SceneNode) -> str:
    if is_interactive(node):
        return f"{node.name} button"
    if is_image(node):
        return f"{node.name} image"
    return node.name or "Interactive element"


def is_heading(node: SceneNode) -> bool:
    if not isinstance(node, TextNode):
        return False
    name = (node.name or "").lower()
    return any(word in name for word in HEADING_KEYWORDS) or node.font_size > 20


def heading_level(node: SceneNode) -> int:
    """依字級推斷 heading 層級：32/24/20/18 → 1–4，其餘 5；非文字節點 2."""
    if not isinstance(node, TextNode):
        return 2
    size = node.font_size
    if size >= 32:
        return 1
    if size >= 24:
        return 2
    if size >= 20:
        return 3
    if size >= 18:
        return 4
    return 5


def component_type(node: SceneNode) -> str:
    name = (node.name or "").lower()
    if "button" in name:
        return "button"
    if "card" in name:
        return "card"
    if "text" in name or isinstance(node, TextNode):
        return "text"
    if "input" in name:
        return "input"
    if len(node_children(node)) > 3:
        return "layout"
    return "complex"


def component_role(component_name: str) -> str:
    name = component_name.lower()
    if "button" in name:
        return "button"
    if "heading" in name or "title" in name:
        return "heading"
    if "image" in name:
        return "img"
    if "link" in name:
        return "link"
    return "generic"


# ════════════════════════════════════════════════════════════
# Scores
# ════════════════════════════════════════════════════════════

def complexity_score(node: SceneNode, has_custom_code: bool = False) -> int:
    score = len(node_children(node))
    if node.style.effects:
        score += 2
    if len(node.fills) > 1:
        score += 1
    if has_custom_code:
        score += 1
    return score


def complexity(node: SceneNode, has_custom_code: bool = False, policy: ScoringPolicy = DEFAULT_POLICY) -> str:
    score = complexity_score(node, has_custom_code)
    if score <= policy.simple_max:
        return "simple"
    if score <= policy.medium_max:
        return "medium"
    return "complex"


def estimate_accuracy(node: SceneNode, has_custom_code: bool = False, policy: ScoringPolicy = DEFAULT_POLICY) -> int:
    accuracy = policy.base_accuracy
    if complexity(node, has_custom_code, policy) == "simple":
        accuracy += policy.simple_bonus
    if len(node_children(node)) > policy.many_children_threshold:
        accuracy -= policy.many_children_penalty
    if component_type(node) in ("button", "text", "card"):
        accuracy += policy.known_type_bonus
    if has_custom_code:
        accuracy += policy.custom_code_bonus
    return min(policy.accuracy_ceiling, max(policy.accuracy_floor, accuracy))


def analyze_accessibility(root: SceneNode, policy: ScoringPolicy = DEFAULT_POLICY) -> AccessibilityReport:
    issues: List[AccessibilityIssue] = []
    score = 100
    saw_heading = saw_interactive = False

    for node in walk(root):
        if is_image(node) and not has_accessible_name(node):
            issues.append(AccessibilityIssue(
                "error", "Image missing alt text", node.name, "Add descriptive alt attribute",
            ))
            score -= policy.missing_alt_penalty
        if is_interactive(node):
            saw_interactive = True
            if not has_accessible_name(node):
                issues.append(AccessibilityIssue(
                    "warning", "Interactive element has no accessible name", node.name,
                    "Add an aria-label or visible label",
                ))
                score -= policy.unnamed_interactive_penalty
        if is_heading(node):
            saw_heading = True
        small_text = match_node(
            node,
            on_text=lambda n: n.font_size < policy.min_text_size,
            on_container=lambda n: False,
            on_shape=lambda n: False,
        )
        if small_text:
            issues.append(AccessibilityIssue(
                "warning", f"Text smaller than {policy.min_text_size:g}px", node.name,
                f"Use at least {policy.min_text_size:g}px for body text",
            ))
            score -= policy.small_text_penalty

    suggestions = []
    if saw_heading:
        suggestions.append("Keep heading levels in document order (h1 → h6)")
    if saw_interactive:
        suggestions.append("Verify keyboard focus order for interactive elements")

    return AccessibilityReport(
        score=max(0, score),
        issues=tuple(issues),
        suggestions=tuple(suggestions),
        policy=policy,
    )


def analyze_responsive(node: SceneNode, templated: bool = True) -> ResponsiveReport:
    style = node.style
    has_responsive = style.has_flex_layout or not style.constraints.is_default
    if not templated:
        return ResponsiveReport(has_responsive_design=has_responsive)
    return ResponsiveReport(
        has_responsive_design=has_responsive,
        mobile="/* mobile responsive styles */",
        tablet="/* tablet responsive styles */",
        desktop="/* desktop responsive styles */",
    )
