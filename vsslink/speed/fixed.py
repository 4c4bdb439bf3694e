"""Speed provider that reports a settable speed, for bench testing a receiver."""

from __future__ import annotations

import logging

from vsslink.core.model import SpeedSample
from vsslink.speed.base import clamp_speed, sample_from_raw

LOGGER = logging.getLogger(__name__)


class FixedSpeedProvider:
    source = "FIXED"

    def __init__(self, raw_mph: float = 0.0) -> None:
        self._raw_mph = clamp_speed(raw_mph)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def set_raw_mph(self, raw_mph: float) -> None:
        self._raw_mph = clamp_speed(raw_mph)

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        LOGGER.info("fixed_started(%.2f mph)", self._raw_mph)

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        LOGGER.info("fixed_stopped")

    def latest(self) -> SpeedSample:
        if not self._started:
            return SpeedSample.zero(self.source)
        return sample_from_raw(self._raw_mph, self.source)
