"""Transport for an SPP link already bound to a serial device (e.g. /dev/rfcomm0)."""

from __future__ import annotations

import serial

from vsslink.core.errors import (
    TransportConnectError,
    TransportSendError,
    TransportTimeoutError,
)
from vsslink.core.model import PeerDescriptor


class SerialLink:
    def __init__(self, port: serial.Serial) -> None:
        self._port = port

    def write(self, data: bytes) -> None:
        try:
            self._port.write(data)
        except serial.SerialTimeoutException as exc:
            raise TransportTimeoutError(f"Serial write timed out on {self._port.port}") from exc
        except (serial.SerialException, OSError) as exc:
            raise TransportSendError(f"Serial write failed on {self._port.port}: {exc}") from exc

    def close(self) -> None:
        self._port.close()


class SerialPortTransport:
    def __init__(self, *, baudrate: int = 115200, write_timeout_s: float = 0.2) -> None:
        self.baudrate = baudrate
        self.write_timeout_s = write_timeout_s

    def connect(self, peer: PeerDescriptor) -> SerialLink:
        try:
            port = serial.Serial(
                peer.address,
                self.baudrate,
                timeout=0,
                write_timeout=self.write_timeout_s,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            raise TransportConnectError(f"Could not open serial device {peer.address}: {exc}") from exc
        return SerialLink(port)
