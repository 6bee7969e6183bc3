"""
StyleParser — CSS computed style 字串 → StyleSnapshot 各欄位

全部為 pure / total function：格式錯誤時回傳文件化的預設值，絕不拋例外。
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple, Union

from .colors import ColorParser, ColorValue, parse_css_number
from .scene import GradientStop, Padding, Paint, Shadow

# 多重 shadow 以「不在括號內的逗號」切開
_SHADOW_SPLIT_RE = re.compile(r",(?![^()]*\))")
_LENGTH = r"(-?\d+(?:\.\d+)?)(?:px)?"
_SHADOW_RE = re.compile(
    rf"{_LENGTH}\s+{_LENGTH}(?:\s+{_LENGTH})?(?:\s+{_LENGTH})?"
)
_SHADOW_COLOR_RE = re.compile(r"(rgba?\([^)]*\)|hsla?\([^)]*\)|var\([^)]*\)|#[a-fA-F0-9]+|[a-zA-Z]+)")
_ROTATE_RE = re.compile(r"rotate\(([^)]+)\)")
_SCALE_RE = re.compile(r"scale\(([^)]+)\)")
_URL_RE = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)")

DEFAULT_SHADOW_COLOR = "rgba(0,0,0,0.25)"

_PRIMARY_ALIGN = {
    "flex-start": "MIN", "start": "MIN", "left": "MIN", "normal": "MIN",
    "center": "CENTER",
    "flex-end": "MAX", "end": "MAX", "right": "MAX",
    "space-between": "SPACE_BETWEEN", "space-around": "SPACE_BETWEEN",
    "space-evenly": "SPACE_BETWEEN",
}
_COUNTER_ALIGN = {
    "flex-start": "MIN", "start": "MIN", "baseline": "MIN",
    "center": "CENTER",
    "flex-end": "MAX", "end": "MAX",
    "stretch": "STRETCH", "normal": "STRETCH",
}


@dataclass(frozen=True)
class Transform:
    rotation: Optional[float] = None
    scale: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class LayoutInfo:
    axis: str = "NONE"
    item_spacing: float = 0.0
    padding: Padding = Padding()
    primary_align: str = "MIN"
    counter_align: str = "MIN"


def parse_corner_radius(border_radius: Optional[str]) -> Union[float, Tuple[float, ...]]:
    if not border_radius or border_radius.strip() in ("0", "0px"):
        return 0.0
    values = [parse_css_number(part, 0.0) for part in border_radius.split()]
    if not values:
        return 0.0
    if len(values) == 1 or all(v == values[0] for v in values):
        return values[0]
    return tuple(values[:4])


def parse_opacity(opacity: Optional[str]) -> float:
    value = parse_css_number(opacity)
    if value is None or math.isnan(value):
        return 1.0
    return max(0.0, min(1.0, value))


def parse_effects(box_shadow: Optional[str], colors: ColorParser) -> List[Shadow]:
    if not box_shadow or box_shadow.strip() == "none":
        return []
    effects = []
    for part in _SHADOW_SPLIT_RE.split(box_shadow):
        shadow = _parse_single_shadow(part.strip(), colors)
        if shadow is not None:
            effects.append(shadow)
    return effects


def _parse_single_shadow(shadow: str, colors: ColorParser) -> Optional[Shadow]:
    if not shadow:
        return None
    inset = bool(re.search(r"\binset\b", shadow))
    body = re.sub(r"\binset\b", "", shadow).strip()

    # computed style 常把顏色放在最前面：rgba(0, 0, 0, 0.2) 0px 4px 6px 0px
    color_text = None
    lead = re.match(r"^(rgba?\([^)]*\)|hsla?\([^)]*\)|var\([^)]*\)|#[a-fA-F0-9]+)\s*", body)
    if lead:
        color_text = lead.group(1)
        body = body[lead.end():]

    match = _SHADOW_RE.search(body)
    if not match:
        return None
    if color_text is None:
        rest = body[match.end():].strip()
        color_match = _SHADOW_COLOR_RE.search(rest) if rest else None
        color_text = color_match.group(1) if color_match else DEFAULT_SHADOW_COLOR

    offset_x, offset_y, blur, spread = match.groups()
    return Shadow(
        offset_x=float(offset_x),
        offset_y=float(offset_y),
        radius=float(blur) if blur is not None else 0.0,
        spread=float(spread) if spread is not None else 0.0,
        color=colors.parse(color_text),
        kind="INNER_SHADOW" if inset else "DROP_SHADOW",
    )


def parse_transform(transform: Optional[str]) -> Optional[Transform]:
    if not transform or transform.strip() == "none":
        return None
    rotation = None
    scale = None

    rotate_match = _ROTATE_RE.search(transform)
    if rotate_match:
        arg = rotate_match.group(1).strip()
        angle = parse_css_number(arg)
        if angle is not None:
            if arg.endswith("rad"):
                rotation = angle
            elif arg.endswith("turn"):
                rotation = angle * 2 * math.pi
            else:
                rotation = math.radians(angle)

    scale_match = _SCALE_RE.search(transform)
    if scale_match:
        parts = [parse_css_number(v.strip()) for v in scale_match.group(1).split(",")]
        sx = parts[0] if parts[0] is not None else 1.0
        sy = parts[1] if len(parts) > 1 and parts[1] is not None else sx
        scale = (sx, sy)

    if rotation is None and scale is None:
        return None
    return Transform(rotation=rotation, scale=scale)


def _gradient_stub(kind: str) -> Paint:
    handles = ((0.0, 0.0), (1.0, 0.0)) if kind == "GRADIENT_LINEAR" else ((0.5, 0.5), (1.0, 0.5))
    return Paint(
        type=kind,
        gradient_handle_positions=handles,
        gradient_stops=(
            GradientStop(0.0, ColorValue(0, 0, 0, 1)),
            GradientStop(1.0, ColorValue(1, 1, 1, 1)),
        ),
    )


def parse_background_image(background_image: Optional[str]) -> Optional[Paint]:
    if not background_image or background_image.strip() == "none":
        return None
    if "linear-gradient" in background_image:
        return _gradient_stub("GRADIENT_LINEAR")
    if "radial-gradient" in background_image:
        return _gradient_stub("GRADIENT_RADIAL")
    url_match = _URL_RE.search(background_image)
    if url_match:
        return Paint(type="IMAGE", image_ref=url_match.group(1), scale_mode="FILL")
    return None


def parse_layout(styles: Mapping[str, str]) -> LayoutInfo:
    """display:flex + flex-direction → auto-layout 軸向、間距、padding、對齊."""
    display = (styles.get("display") or "").strip()
    if display not in ("flex", "inline-flex"):
        return LayoutInfo()
    direction = (styles.get("flex-direction") or "row").strip()
    gap = parse_css_number(styles.get("gap"))
    if gap is None:
        gap = parse_css_number(styles.get("column-gap"), 0.0)
    return LayoutInfo(
        axis="VERTICAL" if direction.startswith("column") else "HORIZONTAL",
        item_spacing=gap,
        padding=Padding(
            top=parse_css_number(styles.get("padding-top"), 0.0),
            right=parse_css_number(styles.get("padding-right"), 0.0),
            bottom=parse_css_number(styles.get("padding-bottom"), 0.0),
            left=parse_css_number(styles.get("padding-left"), 0.0),
        ),
        primary_align=_PRIMARY_ALIGN.get((styles.get("justify-content") or "").strip(), "MIN"),
        counter_align=_COUNTER_ALIGN.get((styles.get("align-items") or "").strip(), "MIN"),
    )
