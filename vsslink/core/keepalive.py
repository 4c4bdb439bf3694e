"""Keep-alive hooks held while a link is open."""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class KeepAlive(Protocol):
    def request(self) -> None:
        """Ask the host to keep the process resident. Idempotent."""

    def release(self) -> None:
        """Drop a previous request. Idempotent and never raises."""


class NullKeepAlive:
    def request(self) -> None:
        return None

    def release(self) -> None:
        return None


class InhibitKeepAlive:
    """Holds a ``systemd-inhibit`` sleep/idle lock for as long as it is requested."""

    def __init__(self, *, who: str = "vsslink", why: str = "Speed telemetry link open") -> None:
        self._cmd = [
            "systemd-inhibit",
            "--what=sleep:idle",
            f"--who={who}",
            f"--why={why}",
            "--mode=block",
            "sleep",
            "infinity",
        ]
        self._process: subprocess.Popen[bytes] | None = None
        self._reaper: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def request(self) -> None:
        if self.active:
            return
        try:
            self._process = subprocess.Popen(
                self._cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            LOGGER.warning("Keep-alive unavailable (%s); continuing without it", exc)
            self._process = None
            return
        LOGGER.debug("Keep-alive acquired (pid %s)", self._process.pid)

    def release(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        try:
            process.terminate()
        except OSError as exc:
            LOGGER.debug("Keep-alive release failed: %s", exc)
        # Reaped off the calling thread; release() runs on the event loop.
        self._reaper = threading.Thread(
            target=_reap, args=(process,), name="keepalive-reaper", daemon=True
        )
        self._reaper.start()
        LOGGER.debug("Keep-alive released")


def _reap(process: subprocess.Popen[bytes], grace_s: float = 2.0) -> None:
    try:
        try:
            process.wait(timeout=grace_s)
        except subprocess.TimeoutExpired:
            LOGGER.debug("Keep-alive pid %s ignored SIGTERM, killing", process.pid)
            process.kill()
            process.wait()
    except OSError as exc:
        LOGGER.debug("Keep-alive reap failed: %s", exc)
