"""Speed provider backed by a gpsd daemon's JSON watch stream."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from vsslink.core.errors import CapabilityDeniedError
from vsslink.core.model import SpeedSample
from vsslink.speed.base import (
    LOCATION_CAPABILITY,
    MPS_TO_MPH,
    AuthorizationCheck,
    ErrorCallback,
    StaticAuthorization,
    clamp_speed,
    sample_from_raw,
)

LOGGER = logging.getLogger(__name__)

_WATCH_COMMAND = b'?WATCH={"enable":true,"json":true};\n'


class GpsdSpeedProvider:
    """Follows gpsd ``TPV`` reports and keeps the last ground speed.

    ``start()`` must be called from a running event loop; the watch runs as a
    task on that loop and reconnects after ``reconnect_delay_s`` whenever
    gpsd drops the connection.
    """

    source = "GPS"

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 2947,
        *,
        authorization: AuthorizationCheck | None = None,
        on_error: ErrorCallback | None = None,
        reconnect_delay_s: float = 2.0,
        line_limit: int = 2**20,
    ) -> None:
        self.host = host
        self.port = port
        self._authorization = authorization or StaticAuthorization()
        self._on_error = on_error
        self._reconnect_delay_s = reconnect_delay_s
        self._line_limit = line_limit
        self._task: asyncio.Task[None] | None = None
        self._last_mps = 0.0

    @property
    def started(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return

        if not self._authorization.has_capability(LOCATION_CAPABILITY):
            LOGGER.warning("gps_start_blocked(no_%s)", LOCATION_CAPABILITY)
            self._last_mps = 0.0
            if self._on_error is not None:
                self._on_error(CapabilityDeniedError(LOCATION_CAPABILITY))
            return

        self._task = asyncio.get_running_loop().create_task(
            self._watch(), name=f"gpsd-watch-{self.host}:{self.port}"
        )
        self._task.add_done_callback(self._watch_ended)
        LOGGER.info("gps_started")

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        self._last_mps = 0.0
        LOGGER.info("gps_stopped")

    def _watch_ended(self, task: asyncio.Task[None]) -> None:
        if task.cancelled() or task.exception() is None:
            return
        LOGGER.error("gpsd watch stopped: %r", task.exception())
        if self._task is task:
            self._last_mps = 0.0

    def latest(self) -> SpeedSample:
        return sample_from_raw(self._last_mps * MPS_TO_MPH, self.source)

    def ingest(self, report: dict[str, Any]) -> None:
        if report.get("class") != "TPV":
            return
        speed = report.get("speed")
        if isinstance(speed, bool) or not isinstance(speed, (int, float)):
            return
        self._last_mps = clamp_speed(float(speed))

    async def _watch(self) -> None:
        while True:
            try:
                reader, writer = await asyncio.open_connection(
                    self.host, self.port, limit=self._line_limit
                )
            except OSError as exc:
                LOGGER.debug("gpsd unreachable at %s:%s: %s", self.host, self.port, exc)
                await asyncio.sleep(self._reconnect_delay_s)
                continue

            try:
                writer.write(_WATCH_COMMAND)
                await writer.drain()
                while True:
                    try:
                        line = await reader.readline()
                    except ValueError:
                        LOGGER.warning("gpsd line exceeds %d bytes, skipped", self._line_limit)
                        continue
                    if not line:
                        break
                    try:
                        report = json.loads(line.decode("utf-8", errors="replace"))
                    except json.JSONDecodeError:
                        continue
                    if isinstance(report, dict):
                        self.ingest(report)
            except OSError as exc:
                LOGGER.debug("gpsd stream lost: %s", exc)
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError:
                    pass

            LOGGER.info("gpsd connection closed, retrying in %.1fs", self._reconnect_delay_s)
            await asyncio.sleep(self._reconnect_delay_s)
