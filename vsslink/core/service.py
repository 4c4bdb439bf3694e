"""Service layer wiring providers, link, and loop; used by the CLI and API."""

from __future__ import annotations

import asyncio
import logging
import socket

from vsslink.core.directory import PeerDirectory, match_peer
from vsslink.core.errors import DeviceSelectionError, VsslinkError
from vsslink.core.keepalive import InhibitKeepAlive, KeepAlive, NullKeepAlive
from vsslink.core.link import ErrorCallback, LinkManager, StateCallback
from vsslink.core.model import ConnectionState, PeerDescriptor, RelayConfig
from vsslink.core.telemetry import Display, TelemetryLoop
from vsslink.speed.base import AuthorizationCheck, SpeedProvider
from vsslink.speed.fixed import FixedSpeedProvider
from vsslink.speed.gpsd import GpsdSpeedProvider
from vsslink.transports.base import LinkTransport
from vsslink.transports.rfcomm import RFCOMMTransport
from vsslink.transports.serial_port import SerialPortTransport

LOGGER = logging.getLogger(__name__)


class RelayService:
    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        transport: LinkTransport | None = None,
        provider: SpeedProvider | None = None,
        directory: PeerDirectory | None = None,
        keep_alive: KeepAlive | None = None,
        authorization: AuthorizationCheck | None = None,
        on_state: StateCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.config = config or RelayConfig()
        self.runtime_warnings = _runtime_warnings(self.config)
        self.directory = directory or PeerDirectory()
        self._on_error = on_error
        self.provider = provider or _build_provider(self.config, authorization, self._report)
        self.link = LinkManager(
            transport or _build_transport(self.config),
            keep_alive=keep_alive or (InhibitKeepAlive() if self.config.keep_alive else NullKeepAlive()),
            on_state=on_state,
            on_error=self._report,
        )
        self.loop = TelemetryLoop(self.provider, self.link)

    @property
    def state(self) -> ConnectionState:
        return self.link.state

    def add_display(self, display: Display) -> None:
        self.loop.add_display(display)

    def list_peers(self) -> list[PeerDescriptor]:
        return self.directory.list_paired()

    def resolve_peer(self, device_hint: str | None) -> PeerDescriptor | None:
        hint = device_hint or self.config.device
        if not hint:
            return None

        if self.config.transport.type == "serial":
            return PeerDescriptor(address=hint, name=hint)

        peers = self.list_peers()
        if not peers:
            raise DeviceSelectionError("No paired Bluetooth devices found. Pair the receiver first.")

        candidates = match_peer(peers, hint)
        if not candidates:
            raise DeviceSelectionError(f"No paired device found matching '{hint}'")
        if len(candidates) > 1:
            candidate_desc = ", ".join(str(p) for p in candidates)
            raise DeviceSelectionError(
                f"Multiple paired devices match '{hint}': {candidate_desc}. Use the full address."
            )
        return candidates[0]

    def toggle(self, peer: PeerDescriptor | None) -> None:
        self.link.toggle(peer)

    async def run(self, peer: PeerDescriptor | None, stop: asyncio.Event | None = None) -> None:
        """Relay speed to ``peer`` until ``stop`` is set or the task is cancelled."""
        self.provider.start()
        try:
            self.link.open(peer)
            await self.loop.run(stop)
        finally:
            self.link.close()
            self.provider.stop()

    def _report(self, error: VsslinkError) -> None:
        if self._on_error is not None:
            self._on_error(error)


def _build_transport(config: RelayConfig) -> LinkTransport:
    settings = config.transport
    if settings.type == "serial":
        return SerialPortTransport(
            baudrate=settings.baudrate,
            write_timeout_s=settings.write_timeout_s,
        )
    return RFCOMMTransport(
        channel=settings.channel,
        connect_timeout_s=settings.connect_timeout_s,
        write_timeout_s=settings.write_timeout_s,
    )


def _build_provider(
    config: RelayConfig,
    authorization: AuthorizationCheck | None,
    on_error: ErrorCallback,
) -> SpeedProvider:
    settings = config.speed
    if settings.source == "fixed":
        return FixedSpeedProvider(settings.fixed_mph)
    return GpsdSpeedProvider(
        settings.gpsd_host,
        settings.gpsd_port,
        authorization=authorization,
        on_error=on_error,
    )


def _runtime_warnings(config: RelayConfig) -> tuple[str, ...]:
    warnings: list[str] = []
    if config.transport.type == "rfcomm" and (
        not hasattr(socket, "AF_BLUETOOTH") or not hasattr(socket, "BTPROTO_RFCOMM")
    ):
        warnings.append(
            "Python runtime missing AF_BLUETOOTH/BTPROTO_RFCOMM; RFCOMM links will fail to open."
        )
    return tuple(warnings)
