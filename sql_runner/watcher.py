# Standard library imports
import os
import re
import time

# Custom library imports
from sql_runner.connection import get_error_message


class DirectoryWatcher:
    """
    Re-runs ``on_execute`` after matching files in ``directory`` change.

    Every detected change (re)starts a countdown of ``countdown_seconds``;
    saving again before it elapses resets it. Changes seen while
    ``on_execute`` is running are queued and start a fresh countdown once it
    returns, so runs never overlap.

        watcher = DirectoryWatcher("./sql", r"\\.sql$", run_once, logger)
        watcher.run_forever(stop_event)
    """

    def __init__(
        self,
        directory,
        pattern,
        on_execute,
        logger,
        countdown_seconds=30,
        poll_interval=1.0,
        clock=time.monotonic,
    ):
        self.directory = directory
        self.pattern = re.compile(pattern)
        self.on_execute = on_execute
        self.logger = logger
        self.countdown_seconds = countdown_seconds
        self.poll_interval = poll_interval
        self.clock = clock

        self._snapshot = self._take_snapshot({})
        self._deadline = None
        self._is_executing = False
        self._change_queued = False

    @property
    def countdown_active(self):
        return self._deadline is not None

    @property
    def is_executing(self):
        return self._is_executing

    def _take_snapshot(self, previous):
        """Maps matching file names to their modification time."""
        try:
            with os.scandir(self.directory) as entries:
                return {
                    entry.name: entry.stat().st_mtime_ns
                    for entry in entries
                    if entry.is_file() and self.pattern.search(entry.name)
                }
        except OSError as e:
            self.logger.warning(f"Watch error: {e}")
            return previous

    def _detect_changes(self):
        current = self._take_snapshot(self._snapshot)
        changed = sorted(
            name
            for name in current.keys() | self._snapshot.keys()
            if current.get(name) != self._snapshot.get(name)
        )
        self._snapshot = current
        return changed

    # --- Countdown ---

    def notify_change(self, name=None):
        """Starts or resets the countdown, or queues the change during a run."""
        if name:
            self.logger.info(f"Changed: {name}")
        if self._is_executing:
            self.logger.info("Execution in progress, change queued...")
            self._change_queued = True
            return
        self._deadline = self.clock() + self.countdown_seconds
        self.logger.info(f"Running in {self.countdown_seconds}s... (save again to reset)")

    def poll(self):
        """
        Performs one watch step. Returns True when ``on_execute`` ran during
        this step.
        """
        for name in self._detect_changes():
            self.notify_change(name)

        if self._deadline is None or self.clock() < self._deadline:
            return False

        self._deadline = None
        self._execute()
        return True

    def _execute(self):
        self.logger.info("Executing SQL files...")
        self._is_executing = True
        try:
            self.on_execute()
        except Exception as e:
            self.logger.warning(f"Execution error: {get_error_message(e)}")
        finally:
            self._is_executing = False

        if self._change_queued:
            self._change_queued = False
            self.notify_change()
        self.logger.info("Watching for changes... (Ctrl+C to stop)")

    def run_forever(self, stop_event):
        """Polls every ``poll_interval`` seconds until ``stop_event`` is set."""
        self.logger.info("Watching for changes... (Ctrl+C to stop)")
        while not stop_event.is_set():
            self.poll()
            stop_event.wait(self.poll_interval)
