"""
Config Watcher - Reload the configuration when its file changes
===============================================================

Polls the configuration file's modification time and size from a
background thread. A change is acted on once the file has stayed the same
for one more poll, i.e. after the write has completed; the watcher then
asks the store to reload. The store does its own locking, so the watcher
never touches a configuration snapshot directly.
"""

import os
import threading
from typing import Optional, Tuple

from .logging import get_logger
from .store import ConfigStore

logger = get_logger("core.watcher")

Fingerprint = Tuple[int, int]


class ConfigWatcher:
    """
    Background poller driving ConfigStore.reload().

    Example:
        watcher = ConfigWatcher(store, poll_interval=1.0)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(self, store: ConfigStore, poll_interval: float = 1.0):
        self.store = store
        self.poll_interval = poll_interval
        self.reload_count = 0

        self._last_seen: Optional[Fingerprint] = self._fingerprint()
        self._pending = False
        self._missing_logged = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def path(self) -> str:
        return self.store.config_path

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _fingerprint(self) -> Optional[Fingerprint]:
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def check_once(self) -> bool:
        """
        Run a single poll step.

        Returns:
            True if a reload was attempted during this step
        """
        fingerprint = self._fingerprint()

        if fingerprint is None:
            if not self._missing_logged:
                logger.warning(f"Config file {self.path} is missing, waiting for it to reappear")
                self._missing_logged = True
            return False
        self._missing_logged = False

        if fingerprint != self._last_seen:
            # Still being written, or just finished; confirm on the next poll.
            self._last_seen = fingerprint
            self._pending = True
            return False

        if not self._pending:
            return False

        self._pending = False
        logger.info(f"Config file {self.path} changed, reloading...")
        self.store.reload()
        self.reload_count += 1
        return True

    def start(self) -> None:
        """Start watching in a daemon thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="config-watcher",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Started config watcher on {self.path} (poll interval: {self.poll_interval}s)")

    def stop(self) -> None:
        """Stop the watcher thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Stopped config watcher")

    def _watch_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.check_once()
            except Exception as e:
                logger.error(f"Config watcher error: {e}", exc_info=True)

            self._stop_event.wait(self.poll_interval)
