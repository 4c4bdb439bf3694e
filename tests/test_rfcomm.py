from __future__ import annotations

import socket
import subprocess

import pytest

from vsslink.core.errors import TransportConnectError, TransportSendError, TransportTimeoutError
from vsslink.core.model import PeerDescriptor
from vsslink.transports import rfcomm
from vsslink.transports.rfcomm import RFCOMMLink, RFCOMMTransport, resolve_spp_channel

PEER = PeerDescriptor(address="88:92:CC:11:22:33", name="Dash")

_SDP_OUTPUT = """Searching for SP on 88:92:CC:11:22:33 ...
Service Name: Serial Port
Service RecHandle: 0x10001
Service Class ID List:
  "Serial Port" (0x1101)
Protocol Descriptor List:
  "L2CAP" (0x0100)
  "RFCOMM" (0x0003)
    Channel: 6
"""


def _cp(cmd: list[str], rc: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(cmd, rc, stdout=stdout, stderr=stderr)


def test_missing_bluetooth_constants_raises_clean_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delattr(socket, "AF_BLUETOOTH", raising=False)
    monkeypatch.delattr(socket, "BTPROTO_RFCOMM", raising=False)

    transport = RFCOMMTransport(channel=1)
    with pytest.raises(TransportConnectError):
        transport.connect(PEER)


def test_spp_channel_is_read_from_sdp_record(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def fake_run(cmd, check, capture_output, text, timeout):
        calls.append(cmd)
        return _cp(cmd, 0, stdout=_SDP_OUTPUT)

    monkeypatch.setattr(subprocess, "run", fake_run)

    assert resolve_spp_channel("88:92:CC:11:22:33") == 6
    assert calls == [["sdptool", "search", "--bdaddr", "88:92:CC:11:22:33", "SP"]]


def test_spp_channel_lookup_without_sdptool_returns_none(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, check, capture_output, text, timeout):
        raise FileNotFoundError("sdptool")

    monkeypatch.setattr(subprocess, "run", fake_run)

    assert resolve_spp_channel("88:92:CC:11:22:33") is None


def test_unresolved_channel_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rfcomm, "resolve_spp_channel", lambda mac, timeout_s: None)
    assert RFCOMMTransport()._channel_for(PEER.address) == rfcomm.DEFAULT_SPP_CHANNEL
    assert RFCOMMTransport(channel=4)._channel_for(PEER.address) == 4


class _BrokenStream:
    def __init__(self, exc: BaseException) -> None:
        self._exc = exc
        self.closed = False

    def write(self, data: bytes) -> int:
        raise self._exc

    def flush(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True
        raise OSError("flush on broken pipe")


class _FakeSocket:
    def __init__(self, stream: _BrokenStream) -> None:
        self._stream = stream
        self.closed = False

    def makefile(self, mode: str) -> _BrokenStream:
        return self._stream

    def close(self) -> None:
        self.closed = True


def test_link_write_errors_map_to_transport_errors() -> None:
    link = RFCOMMLink(_FakeSocket(_BrokenStream(BrokenPipeError("peer gone"))))
    with pytest.raises(TransportSendError):
        link.write(b"SPEED_MPH:1.00\r\n")

    link = RFCOMMLink(_FakeSocket(_BrokenStream(TimeoutError())))
    with pytest.raises(TransportTimeoutError):
        link.write(b"SPEED_MPH:1.00\r\n")


def test_link_close_always_closes_socket() -> None:
    stream = _BrokenStream(BrokenPipeError())
    fake_socket = _FakeSocket(stream)
    link = RFCOMMLink(fake_socket)

    with pytest.raises(OSError):
        link.close()
    assert stream.closed
    assert fake_socket.closed
