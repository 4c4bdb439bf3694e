"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from vsslink.core.model import PeerDescriptor


class LinkHandle(Protocol):
    def write(self, data: bytes) -> None:
        """Write all of ``data`` or raise a TransportError."""

    def close(self) -> None:
        """Release the stream and the underlying connection."""


class LinkTransport(Protocol):
    def connect(self, peer: PeerDescriptor) -> LinkHandle:
        """Open a byte stream to a peer. Blocks until connected or failed."""
