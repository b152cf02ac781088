"""Tests for process startup paths that do not need a browser."""

from pathlib import Path

import pytest

from cdp_overlay import main as main_mod
from cdp_overlay.settings import Settings


@pytest.mark.asyncio
async def test_run_fails_when_cdp_unreachable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async def unreachable(host, port, timeout_sec=20.0):
        return False

    monkeypatch.setattr(main_mod, "wait_for_cdp", unreachable)
    assert await main_mod.run(Settings(output_root=tmp_path / "out")) == 1
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_run_fails_without_page_target(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async def reachable(host, port, timeout_sec=20.0):
        return True

    async def only_workers(host, port):
        return [{"type": "service_worker", "webSocketDebuggerUrl": "ws://sw"}]

    monkeypatch.setattr(main_mod, "wait_for_cdp", reachable)
    monkeypatch.setattr(main_mod, "list_targets", only_workers)
    assert await main_mod.run(Settings(output_root=tmp_path / "out")) == 1


def test_main_rejects_bad_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CDP_OVERLAY_BODY_TIMEOUT", "never")
    assert main_mod.main([str(tmp_path)]) == 2
