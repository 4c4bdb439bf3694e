"""Core data models shared by providers, the link manager, and the CLI."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SpeedSample:
    speed_mph: float
    raw_mph: float
    source: str

    @classmethod
    def zero(cls, source: str) -> SpeedSample:
        return cls(speed_mph=0.0, raw_mph=0.0, source=source)


class ConnectionState(enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


class WriteResult(enum.Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PeerDescriptor:
    address: str
    name: str = field(default="<unknown-device>", compare=False)

    def __str__(self) -> str:
        if self.name and self.name != self.address:
            return f"{self.address} ({self.name})"
        return self.address


@dataclass(frozen=True)
class TransportSettings:
    type: str = "rfcomm"
    channel: int | None = None
    baudrate: int = 115200
    connect_timeout_s: float = 10.0
    write_timeout_s: float = 0.2


@dataclass(frozen=True)
class SpeedSettings:
    source: str = "gpsd"
    gpsd_host: str = "127.0.0.1"
    gpsd_port: int = 2947
    fixed_mph: float = 0.0


@dataclass(frozen=True)
class RelayConfig:
    device: str | None = None
    transport: TransportSettings = field(default_factory=TransportSettings)
    speed: SpeedSettings = field(default_factory=SpeedSettings)
    keep_alive: bool = True
