"""Connection lifecycle for the single outbound serial link.

Every state transition happens on the event loop thread. The blocking
handshake runs in the loop's default executor and is awaited through
``asyncio.shield``: cancelling a superseded attempt never loses a socket
that the worker manages to open afterwards, because that late handle is
closed as soon as it arrives.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from vsslink.core.errors import (
    ConnectFailedError,
    NoDeviceSelectedError,
    VsslinkError,
    WriteFailedError,
)
from vsslink.core.keepalive import KeepAlive, NullKeepAlive
from vsslink.core.model import ConnectionState, PeerDescriptor, WriteResult
from vsslink.transports.base import LinkHandle, LinkTransport

LOGGER = logging.getLogger(__name__)

StateCallback = Callable[[ConnectionState], None]
ErrorCallback = Callable[[VsslinkError], None]


def _dispose(link: LinkHandle | None) -> None:
    if link is None:
        return
    try:
        link.close()
    except Exception as exc:
        LOGGER.debug("Ignoring error while closing link: %s", exc)


def _dispose_late_link(pending: asyncio.Future[LinkHandle]) -> None:
    if pending.cancelled():
        return
    if pending.exception() is not None:
        return
    LOGGER.debug("Closing link that finished connecting after being superseded")
    _dispose(pending.result())


class LinkManager:
    def __init__(
        self,
        transport: LinkTransport,
        *,
        keep_alive: KeepAlive | None = None,
        on_state: StateCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._transport = transport
        self._keep_alive = keep_alive or NullKeepAlive()
        self._on_state = on_state
        self._on_error = on_error
        self._state = ConnectionState.CLOSED
        self._link: LinkHandle | None = None
        self._attempt: asyncio.Task[None] | None = None
        self._pending: asyncio.Future[LinkHandle] | None = None
        self._peer: PeerDescriptor | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def peer(self) -> PeerDescriptor | None:
        return self._peer

    @property
    def has_link(self) -> bool:
        return self._link is not None

    def open(self, peer: PeerDescriptor | None) -> asyncio.Task[None] | None:
        """Start connecting to ``peer`` and return the connect task.

        Returns the attempt already in flight (or None once open) when the
        link is not closed.
        """
        if self._state is not ConnectionState.CLOSED:
            LOGGER.debug("open() ignored, link is %s", self._state.value)
            return self._attempt
        if peer is None:
            raise NoDeviceSelectedError("Open requested but no device selected")

        loop = asyncio.get_running_loop()
        self._cancel_attempt()
        self._discard_link()

        self._peer = peer
        self._set_state(ConnectionState.OPENING)
        LOGGER.info("Opening link to %s", peer)
        self._attempt = loop.create_task(self._connect(peer), name=f"link-connect-{peer.address}")
        return self._attempt

    def close(self) -> None:
        self._cancel_attempt()
        self._discard_link()
        self._keep_alive.release()
        if self._state is ConnectionState.CLOSED:
            return
        self._set_state(ConnectionState.CLOSED)
        LOGGER.info("Link closed")

    def toggle(self, peer: PeerDescriptor | None) -> asyncio.Task[None] | None:
        if self._state is ConnectionState.CLOSED:
            return self.open(peer)
        self.close()
        return None

    def write(self, data: bytes) -> WriteResult:
        link = self._link
        if self._state is not ConnectionState.OPEN or link is None:
            return WriteResult.SKIPPED
        try:
            link.write(data)
        except Exception as exc:
            self.close()
            raise WriteFailedError(exc) from exc
        return WriteResult.SENT

    async def wait_settled(self) -> ConnectionState:
        """Wait for the connect attempt in flight, if any, and return the state."""
        attempt = self._attempt
        if attempt is not None:
            try:
                await asyncio.shield(attempt)
            except asyncio.CancelledError:
                if not attempt.cancelled():
                    raise
        return self._state

    async def _connect(self, peer: PeerDescriptor) -> None:
        previous = self._pending
        if previous is not None and not previous.done():
            # A superseded worker is still connecting; its handle is closed on arrival.
            LOGGER.debug("Waiting for superseded connect attempt to finish")
            await asyncio.wait([previous])

        loop = asyncio.get_running_loop()
        pending = loop.run_in_executor(None, self._transport.connect, peer)
        self._pending = pending
        try:
            link = await asyncio.shield(pending)
        except asyncio.CancelledError:
            pending.add_done_callback(_dispose_late_link)
            raise
        except Exception as exc:
            self._attempt = None
            self._pending = None
            self._set_state(ConnectionState.CLOSED)
            error = ConnectFailedError(peer, exc)
            LOGGER.warning("Open failed: %s", error)
            self._report(error)
            return

        self._attempt = None
        self._pending = None
        self._link = link
        self._set_state(ConnectionState.OPEN)
        self._keep_alive.request()
        LOGGER.info("Link open to %s", peer)

    def _cancel_attempt(self) -> None:
        attempt, self._attempt = self._attempt, None
        if attempt is not None and not attempt.done():
            attempt.cancel()

    def _discard_link(self) -> None:
        link, self._link = self._link, None
        _dispose(link)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_state is not None:
            self._on_state(state)

    def _report(self, error: VsslinkError) -> None:
        if self._on_error is not None:
            self._on_error(error)
