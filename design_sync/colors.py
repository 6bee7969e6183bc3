"""
色彩解析 — CSS color 字串 → 正規化 ColorValue

支援 hex / rgb(a) / hsl(a) / 具名色 / var(--x) 自訂屬性。
解析永不拋例外：無法解析時回傳預設值，並透過 diagnostics hook 回報。
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from .log import get_logger

logger = get_logger("colors")

Diagnostics = Callable[[str, str, str], None]
PropertyResolver = Callable[[str], Optional[str]]

MAX_VAR_DEPTH = 32

_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)
_RGB_RE = re.compile(r"rgba?\(([^)]+)\)")
_HSL_RE = re.compile(r"hsla?\(([^)]+)\)")


def parse_css_number(text, default: Optional[float] = None) -> Optional[float]:
    """Leading-number parse of a CSS value ("12.5px" → 12.5); `default` when none."""
    if text is None:
        return default
    if isinstance(text, (int, float)):
        return float(text)
    match = _NUMBER_RE.match(str(text))
    if not match:
        return default
    return float(match.group(0))


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class ColorValue:
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0

    def __post_init__(self) -> None:
        # channel 一律夾在 [0, 1]
        for channel in ("r", "g", "b", "a"):
            object.__setattr__(self, channel, _clamp(float(getattr(self, channel))))

    @property
    def is_transparent(self) -> bool:
        return self.a == 0

    def to_hex(self) -> str:
        return "#{:02x}{:02x}{:02x}".format(
            round(self.r * 255), round(self.g * 255), round(self.b * 255)
        )

    def to_rgba_string(self) -> str:
        r, g, b = round(self.r * 255), round(self.g * 255), round(self.b * 255)
        if self.a == 1:
            return f"rgb({r}, {g}, {b})"
        return f"rgba({r}, {g}, {b}, {self.a:g})"

    def to_dict(self) -> dict:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "ColorValue":
        if not data:
            return OPAQUE_BLACK
        return cls(
            r=data.get("r", 0), g=data.get("g", 0), b=data.get("b", 0), a=data.get("a", 1)
        )


OPAQUE_BLACK = ColorValue(0, 0, 0, 1)
TRANSPARENT = ColorValue(0, 0, 0, 0)

NAMED_COLORS: Dict[str, ColorValue] = {
    "black": ColorValue(0, 0, 0),
    "white": ColorValue(1, 1, 1),
    "red": ColorValue(1, 0, 0),
    "green": ColorValue(0, 0.5, 0),
    "blue": ColorValue(0, 0, 1),
    "yellow": ColorValue(1, 1, 0),
    "cyan": ColorValue(0, 1, 1),
    "magenta": ColorValue(1, 0, 1),
    "gray": ColorValue(0.5, 0.5, 0.5),
    "grey": ColorValue(0.5, 0.5, 0.5),
    "orange": ColorValue(1, 0.647, 0),
    "purple": ColorValue(0.5, 0, 0.5),
    "transparent": TRANSPARENT,
}


class ColorParser:
    """CSS 色彩解析服務（每個 session 建一次，傳參注入給使用端）.

    `resolver` 用來查 custom property（例如 `--brand`）的值，
    查到的結果依屬性名快取，直到呼叫 `clear_cache()` 為止。
    """

    def __init__(
        self,
        resolver: Optional[PropertyResolver] = None,
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.resolver = resolver
        self.diagnostics = diagnostics
        self._cache: Dict[str, str] = {}

    @classmethod
    def with_properties(cls, properties: Mapping[str, str], **kwargs) -> "ColorParser":
        """Build a parser whose custom properties come from a fixed mapping."""
        props = {k.strip(): str(v).strip() for k, v in properties.items()}
        return cls(resolver=props.get, **kwargs)

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cached_properties(self) -> Dict[str, str]:
        return dict(self._cache)

    # ─── public ───

    def parse(self, color_string: Optional[str]) -> ColorValue:
        return self._parse(color_string, (), 0)

    def _parse(self, color_string: Optional[str], resolving: tuple, depth: int) -> ColorValue:
        if not color_string or not str(color_string).strip():
            return TRANSPARENT
        raw = str(color_string).strip()
        normalized = raw.lower()
        if normalized == "transparent":
            return TRANSPARENT

        if normalized.startswith("var("):
            name, _ = _split_variable(raw)
            if depth >= MAX_VAR_DEPTH:
                self._fallback("cyclic-variable", raw, f"var() nested deeper than {MAX_VAR_DEPTH}")
                return TRANSPARENT
            if name in resolving:
                self._fallback("cyclic-variable", raw, " → ".join(resolving + (name,)))
                return TRANSPARENT
            resolved, from_property = self._resolve_variable(raw)
            if resolved:
                # 只有屬性值算一次展開，inline fallback 不算
                return self._parse(resolved, resolving + (name,) if from_property else resolving, depth + 1)
            self._fallback("unresolved-variable", raw, "no value and no fallback")
            return TRANSPARENT

        if normalized.startswith("#"):
            return self._parse_hex(normalized)
        if normalized.startswith("rgb"):
            return self._parse_rgb(normalized)
        if normalized.startswith("hsl"):
            return self._parse_hsl(normalized)

        named = NAMED_COLORS.get(normalized)
        if named is None:
            self._fallback("unknown-color", raw, "not a recognised color keyword")
            return OPAQUE_BLACK
        return named

    # ─── formats ───

    def _parse_hex(self, text: str) -> ColorValue:
        match = _HEX_RE.match(text)
        if not match:
            self._fallback("bad-hex", text, "only #rrggbb is supported")
            return OPAQUE_BLACK
        r, g, b = (int(part, 16) / 255 for part in match.groups())
        return ColorValue(r, g, b)

    def _channels(self, pattern: re.Pattern, text: str) -> Optional[list]:
        match = pattern.search(text)
        if not match:
            return None
        values = [parse_css_number(part.strip()) for part in match.group(1).split(",")]
        if len(values) < 3 or any(v is None for v in values[:3]):
            return None
        # 1e999 之類會變成 inf
        if not all(math.isfinite(v) for v in values if v is not None):
            return None
        return values

    def _parse_rgb(self, text: str) -> ColorValue:
        values = self._channels(_RGB_RE, text)
        if values is None:
            self._fallback("bad-rgb", text, "expected three comma separated channels")
            return OPAQUE_BLACK
        alpha = values[3] if len(values) > 3 and values[3] is not None else 1.0
        return ColorValue(values[0] / 255, values[1] / 255, values[2] / 255, alpha)

    def _parse_hsl(self, text: str) -> ColorValue:
        values = self._channels(_HSL_RE, text)
        if values is None:
            self._fallback("bad-hsl", text, "expected hue, saturation, lightness")
            return OPAQUE_BLACK
        h = (values[0] % 360) / 360
        s = values[1] / 100
        lightness = values[2] / 100
        alpha = values[3] if len(values) > 3 and values[3] is not None else 1.0

        c = (1 - abs(2 * lightness - 1)) * s
        x = c * (1 - abs((h * 6) % 2 - 1))
        m = lightness - c / 2
        sextant = int(h * 6)
        r, g, b = [
            (c, x, 0),
            (x, c, 0),
            (0, c, x),
            (0, x, c),
            (x, 0, c),
            (c, 0, x),
        ][min(sextant, 5)]
        return ColorValue(r + m, g + m, b + m, alpha)

    def _resolve_variable(self, text: str) -> Tuple[Optional[str], bool]:
        """回傳 (文字, 是否來自屬性值)；查不到時是 inline fallback."""
        name, fallback = _split_variable(text)
        if not name.startswith("--"):
            return fallback, False

        if name in self._cache:
            return self._cache[name], True
        value = None
        if self.resolver is not None:
            try:
                value = self.resolver(name)
            except Exception as e:  # resolver 屬外部程式碼
                self._fallback("resolver-error", text, str(e))
                value = None
        if value and str(value).strip():
            self._cache[name] = str(value).strip()
            return self._cache[name], True
        return fallback, False

    def _fallback(self, kind: str, value: str, detail: str) -> None:
        logger.debug("color fallback (%s) for %r: %s", kind, value, detail)
        if self.diagnostics is not None:
            self.diagnostics(kind, value, detail)


def _split_variable(text: str):
    """`var(--name, fallback)` → (name, fallback | None)."""
    inner = text[text.find("(") + 1:]
    if inner.endswith(")"):
        inner = inner[:-1]
    name, _, fallback = inner.partition(",")
    return name.strip(), fallback.strip() or None