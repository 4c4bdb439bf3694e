"""Fixed-rate loop relaying the latest speed sample over the link."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from vsslink.core.errors import WriteFailedError
from vsslink.core.link import LinkManager
from vsslink.core.model import SpeedSample, WriteResult
from vsslink.speed.base import SpeedProvider

TICK_INTERVAL_S = 0.1

LOGGER = logging.getLogger(__name__)

Display = Callable[[SpeedSample], None]


def format_speed_line(speed_mph: float) -> bytes:
    return f"SPEED_MPH:{speed_mph:.2f}\r\n".encode("ascii")


class TelemetryLoop:
    def __init__(
        self,
        provider: SpeedProvider,
        link: LinkManager,
        *,
        displays: Iterable[Display] = (),
        interval_s: float = TICK_INTERVAL_S,
    ) -> None:
        self._provider = provider
        self._link = link
        self._displays = list(displays)
        self._interval_s = interval_s
        self.ticks = 0

    def add_display(self, display: Display) -> None:
        self._displays.append(display)

    def tick(self) -> WriteResult:
        sample = self._provider.latest()
        self.ticks += 1
        for display in self._displays:
            display(sample)

        if not self._link.is_open:
            return WriteResult.SKIPPED

        line = format_speed_line(sample.speed_mph)
        try:
            result = self._link.write(line)
        except WriteFailedError as exc:
            LOGGER.warning("Write failed, link closed: %s", exc.cause)
            return WriteResult.FAILED
        if result is WriteResult.SENT:
            LOGGER.debug("TX %s", line.decode("ascii").strip())
        return result

    async def run(self, stop: asyncio.Event | None = None) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while stop is None or not stop.is_set():
            self.tick()
            deadline += self._interval_s
            delay = deadline - loop.time()
            if delay < 0:
                # Fell behind; resume the cadence from now instead of bursting.
                deadline = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)
