from __future__ import annotations

"""Polling file watcher with collapse-to-one re-run semantics.

Change events arriving while a run is in flight never queue up: they set a
single pending flag, and exactly one follow-up run starts when the in-flight
run completes.
"""

import enum
import threading
from pathlib import Path
from typing import Callable, List, Optional

from .errors import TaskFailure
from .logging import get_logger
from .snapshot import changed_paths, take_snapshot


class WatchState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    PENDING = "pending"


class RerunGate:
    """Idle → Running on change; Running → Pending on change; Pending absorbs changes."""

    def __init__(self):
        self._cond = threading.Condition()
        self.state = WatchState.IDLE

    def notify(self) -> WatchState:
        with self._cond:
            if self.state is WatchState.IDLE:
                self.state = WatchState.RUNNING
            elif self.state is WatchState.RUNNING:
                self.state = WatchState.PENDING
            self._cond.notify_all()
            return self.state

    def begin(self) -> None:
        with self._cond:
            self.state = WatchState.RUNNING

    def finish(self) -> WatchState:
        """Mark the in-flight run complete; Pending turns straight into Running."""
        with self._cond:
            if self.state is WatchState.PENDING:
                self.state = WatchState.RUNNING
            else:
                self.state = WatchState.IDLE
            self._cond.notify_all()
            return self.state

    def wait(self, stop: threading.Event, poll: float = 0.2) -> bool:
        """Block until a run is due. Returns False once `stop` is set."""
        with self._cond:
            while self.state is WatchState.IDLE:
                if stop.is_set():
                    return False
                self._cond.wait(poll)
            return not stop.is_set()


class Watcher:
    def __init__(
        self,
        trigger: Callable[[], None],
        root: Path,
        patterns: List[str],
        interval: float = 0.5,
        at_begin: bool = False,
        stop: Optional[threading.Event] = None,
        name: str = "watch",
    ):
        self.trigger = trigger
        self.root = root
        self.patterns = patterns
        self.interval = interval
        self.at_begin = at_begin
        self.stop = stop or threading.Event()
        self.gate = RerunGate()
        self.logger = get_logger(f"buildloop.{name}")
        self._halt = threading.Event()

    def _snapshot(self):
        try:
            return take_snapshot(self.root, self.patterns)
        except OSError as e:
            self.logger.warning("Snapshot failed, retrying: %s", e)
            return None

    def _poll(self) -> None:
        before = None
        while before is None and not (self.stop.is_set() or self._halt.is_set()):
            before = self._snapshot()
            if before is None:
                self.stop.wait(self.interval)
        while not (self.stop.is_set() or self._halt.is_set()):
            if self.stop.wait(self.interval):
                break
            after = self._snapshot()
            if after is None:
                # keep diffing against the last good snapshot
                continue
            changed = changed_paths(before, after)
            if changed:
                self.logger.info("Changed: %s", ", ".join(changed))
                self.gate.notify()
                before = after

    def run(self) -> None:
        """Watch until `stop` is set.

        A failure in the initial (`at_begin`) run propagates and the watch loop
        is never entered; failures of change-triggered runs are logged only.
        """
        poller = None
        if self.patterns:
            poller = threading.Thread(target=self._poll, name="buildloop-poller", daemon=True)
            poller.start()
        try:
            if self.at_begin:
                self.gate.begin()
                try:
                    self.trigger()
                finally:
                    self.gate.finish()
            self.logger.info("Waiting for changes...")
            while self.gate.wait(self.stop):
                try:
                    self.trigger()
                except TaskFailure as e:
                    self.logger.error("%s", e)
                finally:
                    if self.gate.finish() is WatchState.IDLE:
                        self.logger.info("Waiting for changes...")
        finally:
            self._halt.set()
            if poller is not None:
                poller.join(timeout=self.interval * 2 + 1)
