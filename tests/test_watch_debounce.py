"""
Watch mode ChangeHandler 單元測試
以 mock event 取代真實檔案系統事件；asyncio.run_coroutine_threadsafe 一律 patch 掉。
"""
import asyncio
import concurrent.futures
import time
from unittest.mock import MagicMock, patch

import pytest

from design_sync.cli import ChangeHandler, LoopThread, _WATCHED_EXTENSIONS, report_push_failure


def fs_event(path, is_directory=False):
    event = MagicMock()
    event.src_path = path
    event.is_directory = is_directory
    return event


@pytest.fixture
def loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def pushes():
    calls = []

    async def push():
        calls.append(1)

    return push, calls


def scheduled(handler, *events, created=False):
    with patch("asyncio.run_coroutine_threadsafe") as run:
        for event in events:
            if created:
                handler.on_created(event)
            else:
                handler.on_modified(event)
        for call in run.call_args_list:
            call.args[0].close()
        return run


# ─── 過濾 ─────────────────────────────────────────────────────────────────

def test_directories_and_assets_are_ignored(loop, pushes):
    handler = ChangeHandler(pushes[0], loop, debounce=0.0)
    run = scheduled(
        handler,
        fs_event("/app/src", is_directory=True),
        fs_event("/app/logo.png"),
        fs_event("/app/package-lock.json"),
    )
    run.assert_not_called()
    assert handler.last_push is None


@pytest.mark.parametrize("ext", _WATCHED_EXTENSIONS)
def test_source_files_schedule_push_on_loop(loop, pushes, ext):
    handler = ChangeHandler(pushes[0], loop, debounce=0.0)
    run = scheduled(handler, fs_event(f"/app/src/Card{ext}"))
    run.assert_called_once()
    assert run.call_args.args[1] is loop


def test_created_files_also_trigger(loop, pushes):
    handler = ChangeHandler(pushes[0], loop, debounce=0.0)
    run = scheduled(handler, fs_event("/app/src/NewPage.tsx"), created=True)
    run.assert_called_once()


# ─── debounce ─────────────────────────────────────────────────────────────

def test_burst_of_saves_pushes_once(loop, pushes):
    handler = ChangeHandler(pushes[0], loop, debounce=5.0)
    event = fs_event("/app/src/App.vue")
    run = scheduled(handler, event, event, event)
    assert run.call_count == 1


def test_push_allowed_again_after_window(loop, pushes):
    handler = ChangeHandler(pushes[0], loop, debounce=0.5)
    event = fs_event("/app/src/App.vue")
    assert scheduled(handler, event).call_count == 1

    handler.last_push = time.monotonic() - 1.0
    assert scheduled(handler, event).call_count == 1


def test_scheduled_coroutine_runs_push(loop, pushes):
    push, calls = pushes
    handler = ChangeHandler(push, loop, debounce=0.0)
    with patch("asyncio.run_coroutine_threadsafe") as run:
        handler.on_modified(fs_event("/app/src/index.html"))
    loop.run_until_complete(run.call_args.args[0])
    assert calls == [1]


def test_watched_extensions_exclude_binaries():
    for ext in (".png", ".jpg", ".woff2", ".json", ".lock"):
        assert ext not in _WATCHED_EXTENSIONS


# ─── 背景 push 失敗 ───────────────────────────────────────────────────────

def test_failure_callback_prints_error(capsys):
    failed = concurrent.futures.Future()
    failed.set_exception(RuntimeError("browser crashed"))
    report_push_failure(failed)
    assert "Push failed: browser crashed" in capsys.readouterr().out

    ok = concurrent.futures.Future()
    ok.set_result(None)
    report_push_failure(ok)
    assert capsys.readouterr().out == ""


def test_scheduled_push_gets_failure_callback(loop, pushes):
    handler = ChangeHandler(pushes[0], loop, debounce=0.0)
    run = scheduled(handler, fs_event("/app/src/App.tsx"))
    run.return_value.add_done_callback.assert_called_once_with(report_push_failure)


def test_failing_watch_push_is_reported(capsys):
    async def failing_push():
        raise RuntimeError("capture timed out")

    background = LoopThread().start()
    futures = []
    real_submit = asyncio.run_coroutine_threadsafe

    def capture(coro, target_loop):
        future = real_submit(coro, target_loop)
        futures.append(future)
        return future

    try:
        handler = ChangeHandler(failing_push, background.loop, debounce=0.0)
        with patch("asyncio.run_coroutine_threadsafe", side_effect=capture):
            handler.on_modified(fs_event("/app/src/App.tsx"))
        with pytest.raises(RuntimeError):
            futures[0].result(timeout=5)
    finally:
        background.stop()
    assert "Push failed: capture timed out" in capsys.readouterr().out
