"""
產出程式碼的固定改寫規則（memo 包裝、ARIA label）

規則皆為 deterministic 且 idempotent：改寫後的文字不會再被同一規則命中。
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple


@dataclass(frozen=True)
class Improvement:
    type: str  # performance | accessibility | best-practice | security
    description: str
    impact: str  # low | medium | high
    auto_fixed: bool = True

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "impact": self.impact,
            "autoFixed": self.auto_fixed,
        }


@dataclass(frozen=True)
class OptimizationResult:
    optimized_code: str
    improvements: Tuple[Improvement, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.improvements)


class Optimizer(Protocol):
    def optimize(self, code: str) -> OptimizationResult: ...


@dataclass(frozen=True)
class RewriteRule:
    """第一個 step 命中才套用其餘 steps；count=0 表示全部取代."""
    name: str
    steps: Tuple[Tuple[str, str], ...]
    improvement: Improvement
    count: int = 1

    def apply(self, code: str) -> Tuple[str, bool]:
        first_pattern, first_replacement = self.steps[0]
        rewritten, hits = re.subn(first_pattern, first_replacement, code, count=self.count)
        if not hits:
            return code, False
        for pattern, replacement in self.steps[1:]:
            rewritten = re.sub(pattern, replacement, rewritten, count=1)
        return rewritten, True


MEMO_RULE = RewriteRule(
    name="memo-export",
    steps=(
        (r"export const (\w+)(: React\.FC<[^>]+>)? = \(", r"export const \1\2 = React.memo(("),
        (r"\};(\s*)export default", r"});\1export default"),
    ),
    improvement=Improvement("performance", "Applied React.memo for component memoization", "medium"),
)

ARIA_LABEL_RULE = RewriteRule(
    name="button-aria-label",
    # <button> 或 role="button" 的元素，沒有 aria-label 才補
    steps=((
        r'<(button\b|\w+(?=[^>]*\brole="button"))(?![^>]*aria-label)([^>]*?)(\s*/?)>',
        r'<\1\2 aria-label="Button"\3>',
    ),),
    improvement=Improvement("accessibility", "Added ARIA labels to unlabeled buttons", "high"),
    count=0,
)

DEFAULT_RULES = (MEMO_RULE, ARIA_LABEL_RULE)


@dataclass
class RuleBasedOptimizer:
    rules: Sequence[RewriteRule] = field(default_factory=lambda: list(DEFAULT_RULES))

    def optimize(self, code: str) -> OptimizationResult:
        improvements: List[Improvement] = []
        for rule in self.rules:
            code, applied = rule.apply(code)
            if applied:
                improvements.append(rule.improvement)
        return OptimizationResult(optimized_code=code, improvements=tuple(improvements))


def optimize(code: str, optimizer: Optional[Optimizer] = None) -> OptimizationResult:
    return (optimizer or RuleBasedOptimizer()).optimize(code)
