"""RFCOMM transport implementation using Python sockets."""

from __future__ import annotations

import logging
import re
import socket
import subprocess

from vsslink.core.errors import (
    TransportConnectError,
    TransportSendError,
    TransportTimeoutError,
)
from vsslink.core.model import PeerDescriptor

SPP_UUID = "00001101-0000-1000-8000-00805f9b34fb"
DEFAULT_SPP_CHANNEL = 1

_CHANNEL_RE = re.compile(r"^\s*Channel:\s*(\d+)\s*$", re.MULTILINE)
LOGGER = logging.getLogger(__name__)


def resolve_spp_channel(mac: str, *, timeout_s: float = 10.0) -> int | None:
    """Look up the RFCOMM channel of the peer's Serial Port service via SDP."""
    cmd = ["sdptool", "search", "--bdaddr", mac, "SP"]
    try:
        result = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
        LOGGER.debug("SDP lookup unavailable for %s: %s", mac, exc)
        return None

    if result.returncode != 0:
        LOGGER.debug("SDP lookup failed for %s: %s", mac, (result.stderr or "").strip())
        return None

    match = _CHANNEL_RE.search(result.stdout)
    if not match:
        return None
    return int(match.group(1))


class RFCOMMLink:
    def __init__(self, bt_socket: socket.socket) -> None:
        self._socket = bt_socket
        self._stream = bt_socket.makefile("wb")

    def write(self, data: bytes) -> None:
        try:
            self._stream.write(data)
            self._stream.flush()
        except TimeoutError as exc:
            raise TransportTimeoutError("RFCOMM write timed out") from exc
        except (OSError, ValueError) as exc:
            raise TransportSendError(f"RFCOMM write failed: {exc}") from exc

    def close(self) -> None:
        try:
            self._stream.close()
        finally:
            self._socket.close()


class RFCOMMTransport:
    def __init__(
        self,
        *,
        channel: int | None = None,
        connect_timeout_s: float = 10.0,
        write_timeout_s: float = 0.2,
    ) -> None:
        self.channel = channel
        self.connect_timeout_s = connect_timeout_s
        self.write_timeout_s = write_timeout_s

    def _channel_for(self, mac: str) -> int:
        if self.channel is not None:
            return self.channel
        channel = resolve_spp_channel(mac, timeout_s=self.connect_timeout_s)
        if channel is None:
            LOGGER.warning(
                "Could not resolve SPP channel for %s; falling back to channel %d",
                mac,
                DEFAULT_SPP_CHANNEL,
            )
            return DEFAULT_SPP_CHANNEL
        return channel

    def connect(self, peer: PeerDescriptor) -> RFCOMMLink:
        try:
            af_bluetooth = socket.AF_BLUETOOTH
            btproto_rfcomm = socket.BTPROTO_RFCOMM
        except AttributeError as exc:
            raise TransportConnectError(
                "This Python build does not expose Bluetooth socket APIs (AF_BLUETOOTH/BTPROTO_RFCOMM)."
            ) from exc

        mac = peer.address
        channel = self._channel_for(mac)

        try:
            bt_socket = socket.socket(
                af_bluetooth,
                socket.SOCK_STREAM,
                btproto_rfcomm,
            )
        except OSError as exc:
            raise TransportConnectError(f"Could not create RFCOMM socket: {exc}") from exc
        bt_socket.settimeout(self.connect_timeout_s)
        try:
            try:
                bt_socket.connect((mac, channel))
            except TimeoutError as exc:
                raise TransportTimeoutError(
                    f"RFCOMM connect timed out for {mac} on channel {channel}"
                ) from exc
            except OSError as exc:
                raise TransportConnectError(
                    f"RFCOMM connect failed for {mac} on channel {channel}: {exc}"
                ) from exc

            bt_socket.settimeout(self.write_timeout_s)
            return RFCOMMLink(bt_socket)
        except BaseException:
            bt_socket.close()
            raise
