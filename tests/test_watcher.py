"""
Tests for the debouncer and the watch filter.
"""

import asyncio
from pathlib import Path

import pytest
from watchfiles import Change

from vaultrecall.memory.watcher import Debouncer, VaultWatcher, is_hidden


class TestDebouncer:
    """Bursts collapse into one callback."""

    @pytest.mark.asyncio
    async def test_coalesces_burst(self):
        fired = []
        debouncer = Debouncer(0.05, lambda: fired.append(True))

        for _ in range(5):
            debouncer.schedule()
            await asyncio.sleep(0.01)
        assert debouncer.pending
        assert fired == []

        await asyncio.sleep(0.1)
        assert fired == [True]
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_cancel(self):
        fired = []
        debouncer = Debouncer(0.02, lambda: fired.append(True))

        debouncer.schedule()
        debouncer.cancel()
        await asyncio.sleep(0.05)

        assert fired == []
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_fires_again_after_quiet_period(self):
        fired = []
        debouncer = Debouncer(0.02, lambda: fired.append(True))

        debouncer.schedule()
        await asyncio.sleep(0.05)
        debouncer.schedule()
        await asyncio.sleep(0.05)

        assert fired == [True, True]


class TestIsHidden:

    def test_hidden_below_root(self):
        root = Path("/home/u/vault")
        assert is_hidden(root / ".obsidian" / "workspace.json", [root])
        assert is_hidden(root / "Notes" / ".draft.md", [root])
        assert not is_hidden(root / "Notes" / "Plan.md", [root])

    def test_dot_directories_above_root_allowed(self):
        root = Path("/home/u/.vaultrecall/workspace/memory")
        assert not is_hidden(root / "2024-01-01.md", [root])

    def test_outside_roots_uses_name(self):
        assert is_hidden(Path("/tmp/.swap"), [Path("/home/u/vault")])
        assert not is_hidden(Path("/tmp/file.md"), [Path("/home/u/vault")])


class TestVaultWatcher:

    def test_filter(self):
        root = Path("/home/u/vault")
        watcher = VaultWatcher([root], lambda changes: None)
        assert watcher._accept(Change.modified, str(root / "Plan.md"))
        assert not watcher._accept(Change.added, str(root / ".git" / "HEAD"))

    @pytest.mark.asyncio
    async def test_start_without_paths_is_noop(self):
        watcher = VaultWatcher([], lambda changes: None)
        watcher.start()
        assert not watcher.running
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tmp_path):
        watcher = VaultWatcher([tmp_path], lambda changes: None)
        watcher.start()
        assert watcher.running
        await watcher.stop()
        assert not watcher.running
