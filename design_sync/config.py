"""design-sync.config.json 載入與欄位檢查（只記錄警告，不拋例外）."""

import difflib
import json
import os
from pathlib import Path
from typing import List

from .generator import FRAMEWORKS, STYLINGS
from .log import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = "design-sync.config.json"

_NUMBER = (int, float)

# section → {key: 預期型別}
SCHEMA = {
    "figma": {"personalAccessToken": str, "fileKey": str},
    "extraction": {
        "includeHiddenElements": bool,
        "preserveAbsolutePositioning": bool,
        "maxDepth": _NUMBER,
    },
    "generation": {
        "framework": str,
        "styling": str,
        "typescript": bool,
        "accessibility": bool,
        "responsive": bool,
        "optimizeImages": bool,
        "generateTests": bool,
        "includeStorybook": bool,
        "maxDepth": _NUMBER,
        "workers": _NUMBER,
    },
    "viewport": {"width": _NUMBER, "height": _NUMBER},
    "export": {"outputDir": str, "snapshotDir": str, "pluginUrl": str},
}

CHOICES = {
    ("generation", "framework"): FRAMEWORKS,
    ("generation", "styling"): STYLINGS,
}


def _did_you_mean(key: str, candidates) -> str:
    close = difflib.get_close_matches(key, list(candidates), n=1)
    return f"，是不是 '{close[0]}'？" if close else ""


def _type_ok(value, expected) -> bool:
    # bool 是 int 的子類別，數字欄位要排除
    if expected is _NUMBER and isinstance(value, bool):
        return False
    return isinstance(value, expected)


def _type_label(expected) -> str:
    return "數字" if expected is _NUMBER else expected.__name__


def config_problems(cfg: dict) -> List[str]:
    """回傳所有欄位問題（未知 section / key、型別錯誤、不支援的值）."""
    problems = []
    for section, body in cfg.items():
        fields = SCHEMA.get(section)
        if fields is None:
            problems.append(
                f"未知頂層欄位 '{section}'{_did_you_mean(section, SCHEMA)}"
                f"（已知欄位：{', '.join(SCHEMA)}）"
            )
            continue
        if not isinstance(body, dict):
            problems.append(f"'{section}' 應為 JSON 物件")
            continue
        for key, value in body.items():
            expected = fields.get(key)
            if expected is None:
                problems.append(f"[{section}] 未知欄位 '{key}'{_did_you_mean(key, fields)}")
            elif not _type_ok(value, expected):
                problems.append(
                    f"{section}.{key} 應為 {_type_label(expected)}，目前是 {type(value).__name__}"
                )
            elif (section, key) in CHOICES and value not in CHOICES[(section, key)]:
                valid = ", ".join(CHOICES[(section, key)])
                problems.append(f"{section}.{key} '{value}' 不在支援的值中（{valid}）")
    return problems


def validate_config(cfg: dict) -> List[str]:
    problems = config_problems(cfg or {})
    for problem in problems:
        logger.warning("[config] %s", problem)
    return problems


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """讀 JSON 設定檔；不存在時回傳空 dict."""
    path = Path(config_path)
    if not path.is_file():
        return {}
    cfg = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(cfg, dict):
        logger.warning("[config] '%s' 格式錯誤，應為 JSON 物件，改用預設設定。", config_path)
        return {}
    validate_config(cfg)
    return cfg


def figma_token(cfg: dict) -> str:
    """config 的 personalAccessToken，沒有時讀 FIGMA_TOKEN 環境變數."""
    token = (cfg.get("figma") or {}).get("personalAccessToken")
    return token or os.environ.get("FIGMA_TOKEN", "")
