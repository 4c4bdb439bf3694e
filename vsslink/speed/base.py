"""Speed provider interface and the deadband filter shared by every backend."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from typing import Protocol

from vsslink.core.errors import VsslinkError
from vsslink.core.model import SpeedSample

DEADBAND_MPH = 0.5
MPS_TO_MPH = 2.23694

LOCATION_CAPABILITY = "location"

ErrorCallback = Callable[[VsslinkError], None]


class SpeedProvider(Protocol):
    def start(self) -> None:
        """Begin producing samples. Calling it again while started is a no-op."""

    def stop(self) -> None:
        """Stop producing samples. Safe to call when never started."""

    def latest(self) -> SpeedSample:
        """Return the most recent sample without blocking."""


class AuthorizationCheck(Protocol):
    def has_capability(self, name: str) -> bool:
        """Return whether the process may use the named capability."""


class StaticAuthorization:
    """Grants a fixed set of capabilities, or every capability when ``granted`` is None."""

    def __init__(self, granted: Iterable[str] | None = None) -> None:
        self._granted = None if granted is None else frozenset(granted)

    def grant(self, name: str) -> None:
        if self._granted is not None:
            self._granted = self._granted | {name}

    def has_capability(self, name: str) -> bool:
        return self._granted is None or name in self._granted


def clamp_speed(value: float) -> float:
    if not math.isfinite(value) or value < 0.0:
        return 0.0
    return value


def apply_deadband(raw_mph: float) -> float:
    raw_mph = clamp_speed(raw_mph)
    if raw_mph < DEADBAND_MPH:
        return 0.0
    return raw_mph


def sample_from_raw(raw_mph: float, source: str) -> SpeedSample:
    raw_mph = clamp_speed(raw_mph)
    return SpeedSample(speed_mph=apply_deadband(raw_mph), raw_mph=raw_mph, source=source)
