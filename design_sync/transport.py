"""
Scene node 傳送 — 交給 Figma plugin 建立節點

send_nodes() 失敗時不拋例外，而是回傳 fallback JSON，
由呼叫端提供「複製貼上」的替代流程。
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol

import requests

from .log import get_logger
from .scene import SceneNode, count_nodes, node_to_dict

logger = get_logger("transport")

PAYLOAD_FILENAME = "plugin-payload.json"


@dataclass(frozen=True)
class SendResult:
    success: bool
    fallback_data: Optional[str] = None
    count: int = 0
    error: Optional[str] = None


class NodeTransport(Protocol):
    def send_nodes(self, nodes: List[SceneNode]) -> SendResult: ...


def nodes_payload(nodes: List[SceneNode]) -> dict:
    return {"type": "CREATE_NODES", "nodes": [node_to_dict(n) for n in nodes]}


def payload_json(nodes: List[SceneNode]) -> str:
    return json.dumps(nodes_payload(nodes), indent=2, ensure_ascii=False)


class JsonFallbackTransport:
    """沒有 plugin 連線時使用：永遠回傳 JSON 讓使用者手動貼上."""

    def send_nodes(self, nodes: List[SceneNode]) -> SendResult:
        return SendResult(success=False, fallback_data=payload_json(nodes), count=count_nodes(nodes))


class PluginBridgeTransport:
    """POST CREATE_NODES 訊息到本機 plugin bridge."""

    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send_nodes(self, nodes: List[SceneNode]) -> SendResult:
        payload = nodes_payload(nodes)
        total = count_nodes(nodes)
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Plugin bridge unavailable (%s), falling back to JSON", e)
            return SendResult(
                success=False,
                fallback_data=json.dumps(payload, indent=2, ensure_ascii=False),
                count=total,
                error=str(e),
            )
        return SendResult(success=True, count=total)


class PayloadFileTransport:
    """寫出 plugin-payload.json 供 plugin 載入."""

    def __init__(self, output_dir):
        self.output_dir = Path(output_dir)

    @property
    def path(self) -> Path:
        return self.output_dir / PAYLOAD_FILENAME

    def send_nodes(self, nodes: List[SceneNode]) -> SendResult:
        text = payload_json(nodes)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            self.path.write_text(text, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write %s: %s", self.path, e)
            return SendResult(success=False, fallback_data=text, count=count_nodes(nodes), error=str(e))
        return SendResult(success=True, count=count_nodes(nodes))
