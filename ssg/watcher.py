"""Polling change detection for ssg.

An FSWatcher periodically snapshots the regular files below a directory
and reports whether anything changed since the previous snapshot. Files
are compared by modification time, size and mode only; their contents
are never read. Two files that agree on all three are indistinguishable,
even if their bytes differ.

Key names:
- FSWatcher: Snapshot and diff a directory, optionally on a timer.
- WatchResult: One notification per watcher tick.
"""

from __future__ import annotations

import logging
import os
import queue
import stat
import threading
from dataclasses import dataclass
from pathlib import Path

from watchdog.utils.dirsnapshot import DirectorySnapshot

from .distribute import CancelScope
from .errors import Cancelled, WatchError

logger = logging.getLogger(__name__)

# Modification time in nanoseconds, size and mode of a file.
FileState = tuple[int, int, int]

_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class WatchResult:
    """Outcome of a watcher tick.

    Attributes:
        has_changed: Whether files were added, removed or modified.
        error: Set on the final result of a watcher, which sends nothing
            afterwards.
    """

    has_changed: bool = False
    error: BaseException | None = None


def _has_changed(old: dict[str, FileState], new: dict[str, FileState]) -> bool:
    if len(old) != len(new):
        return True
    for path, state in old.items():
        if new.get(path) != state:
            return True
    return False


class FSWatcher:
    """Watches a directory tree for changed files.

    The first check compares against an empty snapshot, so it reports a
    change whenever the directory holds any file.

    Attributes:
        root: Directory to watch.
        interval: Seconds between two ticks of watch().
    """

    def __init__(self, root: Path, interval: float = 1.0):
        self.root = Path(root)
        self.interval = interval
        self._snapshot: dict[str, FileState] = {}

    def take_snapshot(self) -> dict[str, FileState]:
        """Map the root-relative path of every regular file to its state.

        Raises:
            OSError: If the tree cannot be walked.
        """
        root = str(self.root)
        # lstat keeps links to directories from being descended into.
        snapshot = DirectorySnapshot(root, recursive=True, stat=os.lstat)
        states: dict[str, FileState] = {}
        for path in snapshot.paths:
            info = snapshot.stat_info(path)
            if stat.S_ISDIR(info.st_mode):
                continue
            rel_path = Path(os.path.relpath(path, root)).as_posix()
            states[rel_path] = (info.st_mtime_ns, info.st_size, info.st_mode)
        return states

    def check(self) -> bool:
        """Take a new snapshot and compare it with the previous one.

        The new snapshot replaces the previous one whatever the outcome.

        Returns:
            True if a file was added, removed or modified.

        Raises:
            OSError: If the tree cannot be walked.
        """
        snapshot = self.take_snapshot()
        changed = _has_changed(self._snapshot, snapshot)
        self._snapshot = snapshot
        return changed

    def watch(self, scope: CancelScope) -> queue.Queue[WatchResult]:
        """Check for changes once per interval in a background thread.

        One result is published per tick. The thread waits until the
        previous result has been taken before it publishes the next one.
        The watch ends with a final result carrying an error: Cancelled
        once scope is cancelled, or a WatchError if the tree cannot be
        walked.

        Args:
            scope: Cancelling it stops the watch.

        Returns:
            Queue the results are published to.
        """
        results: queue.Queue[WatchResult] = queue.Queue(maxsize=1)
        thread = threading.Thread(
            target=self._run,
            args=(scope, results),
            name=f"ssg-watch-{self.root.name}",
            daemon=True,
        )
        thread.start()
        return results

    def _run(self, scope: CancelScope, results: queue.Queue[WatchResult]) -> None:
        while not scope.cancelled:
            try:
                changed = self.check()
            except Exception as exc:
                logger.debug("watching %s failed: %s", self.root, exc)
                error = WatchError(f"walking {self.root} failed: {exc}")
                error.__cause__ = exc
                self._finish(results, error)
                return
            if changed:
                logger.debug("change detected in %s", self.root)
            if not self._publish(scope, results, WatchResult(has_changed=changed)):
                break
            if scope.wait(self.interval):
                break
        self._finish(results, Cancelled(f"watching {self.root} was cancelled"))

    @staticmethod
    def _publish(
        scope: CancelScope, results: queue.Queue[WatchResult], result: WatchResult
    ) -> bool:
        while not scope.cancelled:
            try:
                results.put(result, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    @staticmethod
    def _finish(results: queue.Queue[WatchResult], error: BaseException) -> None:
        # An unread result is replaced, the final result must get through.
        try:
            results.get_nowait()
        except queue.Empty:
            pass
        results.put_nowait(WatchResult(error=error))
