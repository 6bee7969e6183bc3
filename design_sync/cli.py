#!/usr/bin/env python3
"""
design-sync CLI — 設計 ⇄ 程式碼轉換

  design-sync push <url>                       # 畫面 → Figma scene nodes
  design-sync watch <url>                      # 檔案變更時自動 push
  design-sync preview <url>                    # 預覽命名樹
  design-sync generate --file-key KEY          # Figma → 元件原始碼
  design-sync history <component-id>           # 版本紀錄
  design-sync diff <component-id> A B          # 比較兩個版本
  design-sync rollback <component-id> ID       # 回到指定版本
"""

import argparse
import asyncio
import json
import re
import threading
import time
from pathlib import Path

import requests
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from . import __version__
from .config import DEFAULT_CONFIG_PATH, figma_token, load_config
from .dom_extractor import CaptureConfig, ExtractionConfig, extract_dom_tree, scene_nodes_from_capture
from .figma_reader import FigmaAPIClient, load_document
from .generator import CodeGenerator, CustomCode, GenerationOptions, NoGenerationTarget, write_artifacts
from .log import configure_logging
from .naming_engine import preview_naming_tree
from .scene import count_nodes
from .transport import PayloadFileTransport, PluginBridgeTransport
from .version_control import VersionNotFound, VersionStore


def _snapshot_dir(config: dict) -> Path:
    return Path(config.get("export", {}).get("snapshotDir", ".design-sync"))


def _capture_config(args, config: dict) -> CaptureConfig:
    viewport = config.get("viewport", {})
    if getattr(args, "viewport", None):
        w, h = args.viewport.lower().split("x")
        viewport = {"width": int(w), "height": int(h)}
    return CaptureConfig(
        viewport_width=viewport.get("width", 1440),
        viewport_height=viewport.get("height", 900),
        root_selector=getattr(args, "selector", None) or "#app, #root, #__nuxt, body",
    )


async def capture_scene_nodes(url: str, args, config: dict):
    """擷取頁面並轉成 scene nodes；失敗時回傳 None."""
    try:
        result = await extract_dom_tree(url, _capture_config(args, config))
    except Exception as e:  # playwright 的錯誤型別很多，統一回報
        print(f"   ❌ Extraction failed for {url}: {e}")
        return None
    if not result["tree"]:
        return None
    extraction = ExtractionConfig.from_options(config.get("extraction"))
    return scene_nodes_from_capture(result, extraction)


async def perform_push(url: str, args, config: dict):
    """Core push logic, shared by push and watch."""
    print(f"🚀 Pushing to Figma from: {url}")

    nodes = await capture_scene_nodes(url, args, config)
    if not nodes:
        print("   ❌ Failed to extract scene nodes.")
        return None

    print(f"   ✅ Extracted {count_nodes(nodes)} nodes")

    plugin_url = getattr(args, "plugin_url", None) or config.get("export", {}).get("pluginUrl")
    output_dir = _snapshot_dir(config)
    if plugin_url:
        result = PluginBridgeTransport(plugin_url).send_nodes(nodes)
        if result.success:
            print(f"   ✅ Sent {result.count} nodes to plugin at {plugin_url}")
            return result
        print(f"   ⚠️  Plugin unavailable ({result.error}), writing payload instead")

    result = PayloadFileTransport(output_dir).send_nodes(nodes)
    if result.success:
        print(f"   ✅ Saved to {output_dir / 'plugin-payload.json'}")
        print("   Load this in the Figma plugin, or paste the JSON manually.")
    else:
        print("   ❌ Could not write payload, copy the JSON below into the plugin:")
        print(result.fallback_data)
    return result


def cmd_push(args, config: dict):
    """Push: 擷取 DOM → scene nodes → 送到 Figma plugin."""
    asyncio.run(perform_push(args.url, args, config))


_WATCHED_EXTENSIONS = (".vue", ".js", ".ts", ".jsx", ".tsx", ".css", ".scss", ".html")


def report_push_failure(future):
    """watch 觸發的 push 在背景 loop 失敗時印出錯誤."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        print(f"   ❌ Push failed: {error}")


class ChangeHandler(FileSystemEventHandler):
    """原始碼新增 / 修改時排程一次 push（debounce 視窗內只觸發一次）."""

    def __init__(self, push, loop: asyncio.AbstractEventLoop, debounce: float = 1.0):
        self.push = push
        self.loop = loop
        self.debounce = debounce
        self.last_push = None

    def on_modified(self, event):
        self._schedule(event, "changed")

    def on_created(self, event):
        self._schedule(event, "added")

    def _schedule(self, event, verb: str):
        if event.is_directory or not str(event.src_path).endswith(_WATCHED_EXTENSIONS):
            return
        now = time.monotonic()
        if self.last_push is not None and now - self.last_push < self.debounce:
            return
        self.last_push = now
        print(f"\n🔄 File {verb}: {event.src_path}")
        # loop 在獨立執行緒中 run_forever
        future = asyncio.run_coroutine_threadsafe(self.push(), self.loop)
        future.add_done_callback(report_push_failure)


class LoopThread:
    """背景執行緒中的 asyncio loop，watchdog callback 透過 submit() 丟 coroutine 進來."""

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> "LoopThread":
        self._thread.start()
        return self

    def submit(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self):
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)


def cmd_watch(args, config: dict):
    """Watch: 原始碼新增 / 修改時重新擷取並 push."""
    src_dir = args.src or "."
    print(f"👀 Watching '{src_dir}' → {args.url}  (Ctrl+C to stop)")

    async def push_once():
        await perform_push(args.url, args, config)

    background = LoopThread().start()
    try:
        background.submit(push_once()).result(timeout=120)
    except Exception as e:  # 首次 push 失敗仍繼續監聽
        print(f"   ⚠️  Initial push failed: {e}")

    observer = Observer()
    observer.schedule(
        ChangeHandler(push_once, background.loop, debounce=args.debounce),
        path=src_dir,
        recursive=True,
    )
    observer.start()
    try:
        while observer.is_alive():
            observer.join(timeout=1)
    except KeyboardInterrupt:
        print("\n👋 Stopping watch...")
    finally:
        observer.stop()
        observer.join()
        background.stop()


def cmd_preview(args, config: dict):
    """預覽命名樹."""
    print(f"👁️  Preview naming tree: {args.url}")
    nodes = asyncio.run(capture_scene_nodes(args.url, args, config))
    if not nodes:
        print("❌ Failed to extract DOM tree.")
        return
    for node in nodes:
        print(preview_naming_tree(node))
    print(f"\nTotal nodes: {count_nodes(nodes)}")


# ─── version history on disk ───

def _history_path(config: dict, component_id: str) -> Path:
    safe = re.sub(r"[^A-Za-z0-9_-]", "_", component_id)
    return _snapshot_dir(config) / "history" / f"{safe}.json"


def load_history(config: dict, store: VersionStore, component_id: str) -> bool:
    path = _history_path(config, component_id)
    if not path.exists():
        return False
    store.import_history(path.read_text(encoding="utf-8"))
    return True


def save_history(config: dict, store: VersionStore, component_id: str) -> Path:
    path = _history_path(config, component_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(store.export_history(component_id), encoding="utf-8")
    return path


def _load_design(args, config: dict):
    if args.input:
        with open(args.input, "r", encoding="utf-8") as f:
            return load_document(json.load(f))

    token = figma_token(config)
    file_key = args.file_key or config.get("figma", {}).get("fileKey")
    if not token:
        print(f"❌ 請設定 FIGMA_TOKEN 環境變數，或在 {DEFAULT_CONFIG_PATH} 的 figma.personalAccessToken 設定。")
        print("   取得方式：Figma → Settings → Personal access tokens → 新增")
        return None
    if not file_key:
        print("❌ 請使用 --file-key 或在 config 的 figma.fileKey 設定 Figma 檔案 key。")
        return None

    print(f"📥 Fetching Figma file: {file_key}")
    client = FigmaAPIClient(token)
    try:
        return client.fetch_document(file_key, args.node or None)
    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        if status == 403:
            print("❌ Figma API 403：Token 無效或已過期，請重新產生 FIGMA_TOKEN。")
        elif status == 404:
            print(f"❌ Figma API 404：找不到檔案 '{file_key}'，請確認 file key 是否正確。")
        else:
            print(f"❌ Figma API 錯誤：{e}")
        return None


def _read_optional(path):
    return Path(path).read_text(encoding="utf-8") if path else ""


def cmd_generate(args, config: dict):
    """Generate: Figma 文件 → 元件原始碼 + 版本紀錄."""
    document = _load_design(args, config)
    if document is None:
        return

    gen_cfg = dict(config.get("generation", {}))
    for key, value in (
        ("framework", args.framework),
        ("styling", args.styling),
        ("typescript", args.typescript),
        ("generateTests", args.tests or None),
        ("includeStorybook", args.storybook or None),
    ):
        if value is not None:
            gen_cfg[key] = value
    try:
        options = GenerationOptions.from_options(gen_cfg)
    except ValueError as e:
        print(f"❌ {e}")
        return

    custom = CustomCode(css=_read_optional(args.custom_css), jsx=_read_optional(args.custom_jsx))
    store = VersionStore()
    # 先載入既有歷史，新版本才會接在後面
    for node in document.iter_nodes():
        load_history(config, store, node.id)

    generator = CodeGenerator(document, options, custom_code=custom, version_store=store)
    try:
        artifacts = generator.generate()
    except NoGenerationTarget as e:
        print(f"❌ Generate failed: {e}")
        return

    output_dir = args.output or config.get("export", {}).get("outputDir", "./generated")
    written = write_artifacts(artifacts, output_dir)
    for artifact in artifacts:
        path = save_history(config, store, artifact.id)
        current = store.current(artifact.id)
        a11y = artifact.accessibility
        print(
            f"   ✅ {artifact.name}  [{artifact.metadata.complexity}, "
            f"accuracy {artifact.metadata.estimated_accuracy}%, a11y {a11y.score} {a11y.compliance}]"
        )
        if current is not None and current.changes:
            print("      " + store.commit_message(current.changes).splitlines()[0])
        print(f"      📄 history: {path}")
    print(f"✅ Generated {len(artifacts)} components ({len(written)} files) to {output_dir}")


def _store_for(config: dict, component_id: str):
    store = VersionStore()
    if not load_history(config, store, component_id):
        print(f"❌ 找不到 '{component_id}' 的版本紀錄，請先執行 generate。")
        return None
    return store


def cmd_history(args, config: dict):
    store = _store_for(config, args.component_id)
    if store is None:
        return
    history = store.history(args.component_id)
    print(f"🕘 {args.component_id}: {len(history)} versions")
    for i, snapshot in enumerate(history):
        marker = "*" if i == len(history) - 1 else " "
        stamp = snapshot.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        print(f" {marker} {snapshot.id}  {stamp}  {snapshot.author}  {snapshot.description}")


def cmd_diff(args, config: dict):
    store = _store_for(config, args.component_id)
    if store is None:
        return
    try:
        result = store.diff(args.component_id, args.version_a, args.version_b)
    except VersionNotFound as e:
        print(f"❌ {e.args[0]}")
        return
    print(f"+{result.additions} -{result.deletions} ~{result.modifications}")
    print(result.diff_view, end="")
    if result.changes:
        print()
        print(store.commit_message(result.changes))


def cmd_rollback(args, config: dict):
    store = _store_for(config, args.component_id)
    if store is None:
        return
    snapshot = store.rollback(args.component_id, args.version_id)
    if snapshot is None:
        print(f"❌ 找不到版本 '{args.version_id}'。")
        return
    path = save_history(config, store, args.component_id)
    print(f"⏪ {snapshot.description} → new version {snapshot.id}")
    print(f"   📄 history: {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="design-sync",
        description="design-sync: Design ⇄ Code conversion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config path")
    parser.add_argument("--verbose", action="store_true", help="Show debug logging")
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    push_p = sub.add_parser("push", help="Screen → Figma",
        epilog="Examples:\n  design-sync push http://localhost:5173\n  design-sync push http://localhost:5173 --viewport 375x812\n  design-sync push http://localhost:5173 --selector '#login-form'",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    push_p.add_argument("url", help="App URL (e.g. http://localhost:5173)")
    push_p.add_argument("--viewport", help="WxH e.g. 375x812")
    push_p.add_argument("--selector", help="Partial sync: CSS selector to capture (e.g. '#login-form')")
    push_p.add_argument("--plugin-url", help="Plugin bridge endpoint (falls back to payload file)")

    watch_p = sub.add_parser("watch", help="Watch for file changes and auto-push",
        epilog="Examples:\n  design-sync watch http://localhost:5173 --src ./src",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    watch_p.add_argument("url", help="App URL (e.g. http://localhost:5173)")
    watch_p.add_argument("--src", default=".", help="Directory to watch")
    watch_p.add_argument("--viewport", help="WxH e.g. 375x812")
    watch_p.add_argument("--selector", help="Partial sync: CSS selector to capture")
    watch_p.add_argument("--plugin-url", help="Plugin bridge endpoint")
    watch_p.add_argument("--debounce", type=float, default=1.0, help="Seconds between pushes")

    preview_p = sub.add_parser("preview", help="Preview naming tree")
    preview_p.add_argument("url", help="App URL")
    preview_p.add_argument("--selector", help="CSS selector to preview (e.g. '#sidebar')")
    preview_p.add_argument("--viewport", help="WxH e.g. 375x812")

    gen_p = sub.add_parser("generate", help="Figma → component source",
        epilog="Examples:\n  design-sync generate --file-key ABC123 --framework react --output ./out\n  design-sync generate --input design.json --styling tailwind --tests",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    source = gen_p.add_mutually_exclusive_group()
    source.add_argument("--file-key", help="Figma file key")
    source.add_argument("--input", help="Figma JSON file (API response or plugin payload)")
    gen_p.add_argument("--node", action="append", help="Only this node id (repeatable)")
    gen_p.add_argument("--framework", choices=["react", "vue", "html"])
    gen_p.add_argument("--styling", choices=["tailwind", "css-modules", "styled-components", "plain-css"])
    ts = gen_p.add_mutually_exclusive_group()
    ts.add_argument("--typescript", dest="typescript", action="store_true", default=None)
    ts.add_argument("--no-typescript", dest="typescript", action="store_false")
    gen_p.add_argument("--tests", action="store_true", help="Emit test stubs")
    gen_p.add_argument("--storybook", action="store_true", help="Emit Storybook stories")
    gen_p.add_argument("--custom-css", help="File with extra CSS to splice in")
    gen_p.add_argument("--custom-jsx", help="File with extra component logic to splice in")
    gen_p.add_argument("--output", help="Output directory")

    hist_p = sub.add_parser("history", help="List versions of a component")
    hist_p.add_argument("component_id")

    diff_p = sub.add_parser("diff", help="Diff two versions")
    diff_p.add_argument("component_id")
    diff_p.add_argument("version_a")
    diff_p.add_argument("version_b")

    rb_p = sub.add_parser("rollback", help="Roll back to a version (adds a new version)")
    rb_p.add_argument("component_id")
    rb_p.add_argument("version_id")
    return parser


COMMANDS = {
    "push": cmd_push,
    "watch": cmd_watch,
    "preview": cmd_preview,
    "generate": cmd_generate,
    "history": cmd_history,
    "diff": cmd_diff,
    "rollback": cmd_rollback,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return
    command(args, load_config(args.config))


if __name__ == "__main__":
    main()
