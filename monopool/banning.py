"""Temporary IP bans for misbehaving miners."""

from __future__ import annotations

import threading
import time
from typing import Callable

from monopool.config import BanningOptions


class BanningManager:
    """Keeps banned addresses and forgives them once the ban time has passed."""

    def __init__(self, options: BanningOptions, clock: Callable[[], float] = time.monotonic):
        self.options = options
        self.banned_ips: dict[str, float] = {}
        self._clock = clock
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Purge expired bans in the background every ``purge_interval`` seconds."""
        if self.options.purge_interval <= 0:
            raise ValueError("purge interval must be positive")
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="ban-purger", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the background purger."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(self.options.purge_interval):
            self.purge()

    def purge(self) -> list[str]:
        """Drop bans older than the ban time; return the forgiven addresses."""
        now = self._clock()
        with self._lock:
            expired = [
                addr for addr, since in self.banned_ips.items()
                if now - since > self.options.time
            ]
            for addr in expired:
                del self.banned_ips[addr]
        return expired

    def check_ban(self, remote_addr: str) -> bool:
        """True if the address is still banned; an expired ban is forgiven."""
        with self._lock:
            since = self.banned_ips.get(remote_addr)
            if since is None:
                return False
            if self.options.time - (self._clock() - since) > 0:
                return True
            del self.banned_ips[remote_addr]
            return False

    def add_banned_ip(self, remote_addr: str) -> None:
        with self._lock:
            self.banned_ips[remote_addr] = self._clock()