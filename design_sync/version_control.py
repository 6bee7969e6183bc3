"""
版本紀錄 — 每次產出的程式碼快照、逐行 diff、rollback、commit message

Diff 採「位置對齊」逐行比較（第 i 行對第 i 行），不是 LCS。
Rollback 不刪除歷史：以目標版本內容新增一筆 `Rollback to <id>` 快照。
"""

import json
import secrets
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .log import get_logger

logger = get_logger("version_control")

REASON_RULES = (
    (("className", "class=", "style"), "Styling update"),
    (("onClick", "onSubmit", "onChange"), "Event handler update"),
    (("useState", "useEffect", "useMemo", "useCallback"), "Hook implementation"),
    (("aria-", "role="), "Accessibility improvement"),
    (("import", "export"), "Import/export change"),
)
DEFAULT_REASONS = {
    "addition": "New functionality added",
    "deletion": "Code cleanup",
    "modification": "Code modification",
}


class VersionNotFound(KeyError):
    def __init__(self, component_id: str, version_id: str):
        super().__init__(f"Version {version_id} not found for component {component_id}")
        self.component_id = component_id
        self.version_id = version_id


@dataclass(frozen=True)
class ChangeRecord:
    kind: str  # addition | deletion | modification
    line: int
    content: str
    reason: str

    def to_dict(self) -> dict:
        return {"type": self.kind, "line": self.line, "content": self.content, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeRecord":
        return cls(
            kind=data["type"],
            line=int(data["line"]),
            content=data.get("content", ""),
            reason=data.get("reason", ""),
        )


@dataclass(frozen=True)
class VersionSnapshot:
    id: str
    component_id: str
    code: str
    meta: Any = None
    description: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    author: str = "designer"
    changes: Tuple[ChangeRecord, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "componentId": self.component_id,
            "code": self.code,
            "meta": self.meta,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "author": self.author,
            "changes": [c.to_dict() for c in self.changes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VersionSnapshot":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            id=data["id"],
            component_id=data["componentId"],
            code=data.get("code", ""),
            meta=data.get("meta"),
            description=data.get("description", ""),
            timestamp=timestamp,
            author=data.get("author", "designer"),
            changes=tuple(ChangeRecord.from_dict(c) for c in data.get("changes", [])),
        )


@dataclass(frozen=True)
class DiffResult:
    additions: int
    deletions: int
    modifications: int
    changes: Tuple[ChangeRecord, ...]
    diff_view: str


# ════════════════════════════════════════════════════════════
# Line diff
# ════════════════════════════════════════════════════════════

def detect_change_reason(content: str, kind: str) -> str:
    for tokens, reason in REASON_RULES:
        if any(token in content for token in tokens):
            return reason
    return DEFAULT_REASONS[kind]


def _line(lines: List[str], index: int) -> str:
    return lines[index] if index < len(lines) else ""


def calculate_changes(old_code: str, new_code: str) -> List[ChangeRecord]:
    old_lines = old_code.split("\n")
    new_lines = new_code.split("\n")
    changes = []
    for i in range(max(len(old_lines), len(new_lines))):
        old_line, new_line = _line(old_lines, i), _line(new_lines, i)
        if old_line == new_line:
            continue
        if not old_line:
            kind, content = "addition", new_line
        elif not new_line:
            kind, content = "deletion", old_line
        else:
            kind, content = "modification", new_line
        changes.append(ChangeRecord(kind, i + 1, content, detect_change_reason(content, kind)))
    return changes


def diff_view(old_code: str, new_code: str, changes: List[ChangeRecord]) -> str:
    old_lines = old_code.split("\n")
    new_lines = new_code.split("\n")
    by_line = {c.line: c for c in changes}
    out = []
    for i in range(max(len(old_lines), len(new_lines))):
        old_line, new_line = _line(old_lines, i), _line(new_lines, i)
        change = by_line.get(i + 1)
        if change is None:
            out.append(f"  {old_line}")
        elif change.kind == "addition":
            out.append(f"+ {new_line}")
        elif change.kind == "deletion":
            out.append(f"- {old_line}")
        else:
            out.append(f"- {old_line}")
            out.append(f"+ {new_line}")
    return "".join(line + "\n" for line in out)


def diff_code(old_code: str, new_code: str) -> DiffResult:
    changes = calculate_changes(old_code, new_code)
    return DiffResult(
        additions=sum(1 for c in changes if c.kind == "addition"),
        deletions=sum(1 for c in changes if c.kind == "deletion"),
        modifications=sum(1 for c in changes if c.kind == "modification"),
        changes=tuple(changes),
        diff_view=diff_view(old_code, new_code, changes),
    )


def commit_message(changes) -> str:
    additions = sum(1 for c in changes if c.kind == "addition")
    deletions = sum(1 for c in changes if c.kind == "deletion")
    modifications = sum(1 for c in changes if c.kind == "modification")

    message = "feat: update component"
    if additions:
        message += f" (+{additions} lines)"
    if deletions:
        message += f" (-{deletions} lines)"
    if modifications:
        message += f" (~{modifications} changes)"

    reasons = list(dict.fromkeys(c.reason for c in changes))
    if reasons:
        message += "\n\n" + "\n".join(f"- {r}" for r in reasons)
    return message


def new_version_id() -> str:
    return f"v{int(time.time() * 1000)}-{secrets.token_hex(3)}"


# ════════════════════════════════════════════════════════════
# Store
# ════════════════════════════════════════════════════════════

class VersionStore:
    """各 component 的版本歷史（記憶體內，可 export / import JSON）."""

    def __init__(self):
        self._versions: Dict[str, List[VersionSnapshot]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock(self, component_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(component_id, threading.Lock())

    def save(
        self,
        component_id: str,
        code: str,
        meta: Any = None,
        description: str = "",
        author: str = "designer",
    ) -> str:
        with self._lock(component_id):
            return self._append(component_id, code, meta, description, author).id

    def _append(self, component_id, code, meta, description, author) -> VersionSnapshot:
        existing = self._versions.setdefault(component_id, [])
        changes = calculate_changes(existing[-1].code, code) if existing else []
        snapshot = VersionSnapshot(
            id=new_version_id(),
            component_id=component_id,
            code=code,
            meta=meta,
            description=description,
            author=author,
            changes=tuple(changes),
        )
        existing.append(snapshot)
        logger.debug("Saved %s for %s (%d changes)", snapshot.id, component_id, len(changes))
        return snapshot

    def history(self, component_id: str) -> List[VersionSnapshot]:
        with self._lock(component_id):
            return list(self._versions.get(component_id, []))

    def components(self) -> List[str]:
        return list(self._versions)

    def get(self, component_id: str, version_id: str) -> VersionSnapshot:
        for snapshot in self.history(component_id):
            if snapshot.id == version_id:
                return snapshot
        raise VersionNotFound(component_id, version_id)

    def current(self, component_id: str) -> Optional[VersionSnapshot]:
        history = self.history(component_id)
        return history[-1] if history else None

    def diff(self, component_id: str, version_a: str, version_b: str) -> DiffResult:
        a = self.get(component_id, version_a)
        b = self.get(component_id, version_b)
        return diff_code(a.code, b.code)

    def rollback(self, component_id: str, version_id: str, author: str = "designer") -> Optional[VersionSnapshot]:
        """以目標版本內容新增一筆快照；找不到版本時回傳 None 且不變動歷史."""
        with self._lock(component_id):
            target = next(
                (s for s in self._versions.get(component_id, []) if s.id == version_id), None
            )
            if target is None:
                logger.warning("Rollback target %s not found for %s", version_id, component_id)
                return None
            return self._append(
                component_id, target.code, target.meta, f"Rollback to {version_id}", author
            )

    def discard(self, component_id: str, version_id: str) -> VersionSnapshot:
        with self._lock(component_id):
            versions = self._versions.get(component_id, [])
            for i, snapshot in enumerate(versions):
                if snapshot.id == version_id:
                    return versions.pop(i)
        raise VersionNotFound(component_id, version_id)

    def commit_message(self, changes) -> str:
        return commit_message(changes)

    # ─── persistence ───

    def export_history(self, component_id: str) -> str:
        data = {
            "componentId": component_id,
            "versions": [s.to_dict() for s in self.history(component_id)],
        }
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)

    def import_history(self, text: str) -> str:
        data = json.loads(text)
        if not isinstance(data, dict) or "componentId" not in data:
            raise ValueError("History JSON must be an object with a componentId")
        component_id = data["componentId"]
        snapshots = [VersionSnapshot.from_dict(v) for v in data.get("versions", [])]
        with self._lock(component_id):
            self._versions[component_id] = snapshots
        return component_id
