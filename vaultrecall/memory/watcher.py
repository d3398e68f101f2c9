"""
File watching for automatic re-indexing.

- Debouncer: coalesces bursts of events into one callback after a quiet period
- VaultWatcher: watchfiles-based watcher over the indexed roots
"""

import asyncio
from pathlib import Path
from typing import Callable

from loguru import logger
from watchfiles import Change, awatch


class Debouncer:
    """
    Single-timer debounce on the running event loop.

    Every schedule() resets the timer; the callback fires once after
    `delay` seconds without a new schedule().
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()


def is_hidden(path: Path, roots: list[Path]) -> bool:
    """True when any component below the containing watched root starts with a dot."""
    for root in roots:
        try:
            relative = path.relative_to(root)
        except ValueError:
            continue
        return any(part.startswith(".") for part in relative.parts)
    return path.name.startswith(".")


class VaultWatcher:
    """
    Watches the indexed roots and reports change batches.

    Runs `watchfiles.awatch` in a background task; stop() sets the stop
    event and waits for the task to finish.
    """

    def __init__(
        self,
        paths: list[Path],
        on_change: Callable[[set[tuple[Change, str]]], None],
    ):
        self.paths = paths
        self.on_change = on_change
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running or not self.paths:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._watch())
        logger.info(f"watcher: watching {len(self.paths)} paths")

    def _accept(self, change: Change, path: str) -> bool:
        return not is_hidden(Path(path), self.paths)

    async def _watch(self) -> None:
        try:
            async for changes in awatch(
                *self.paths,
                watch_filter=self._accept,
                stop_event=self._stop_event,
            ):
                logger.debug(f"watcher: {len(changes)} changes")
                self.on_change(changes)
        except FileNotFoundError as e:
            logger.warning(f"watcher: watched path disappeared: {e}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
