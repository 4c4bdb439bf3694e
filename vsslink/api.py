"""Stable public API for building tooling on top of vsslink.

This module is the supported integration surface for third-party callers
(dashboards, launchers, alternative speed sources). Avoid importing from
internal modules unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

import asyncio

from vsslink.core.config import load_config
from vsslink.core.errors import (
    CapabilityDeniedError,
    ConfigLoadError,
    ConfigValidationError,
    ConnectFailedError,
    DeviceDiscoveryError,
    DeviceSelectionError,
    LinkError,
    NoDeviceSelectedError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
    VsslinkError,
    WriteFailedError,
)
from vsslink.core.keepalive import KeepAlive
from vsslink.core.link import ErrorCallback, LinkManager, StateCallback
from vsslink.core.model import (
    ConnectionState,
    PeerDescriptor,
    RelayConfig,
    SpeedSample,
    WriteResult,
)
from vsslink.core.service import RelayService
from vsslink.core.telemetry import TICK_INTERVAL_S, Display, TelemetryLoop, format_speed_line
from vsslink.speed.base import (
    DEADBAND_MPH,
    AuthorizationCheck,
    SpeedProvider,
    StaticAuthorization,
    apply_deadband,
)
from vsslink.speed.fixed import FixedSpeedProvider
from vsslink.speed.gpsd import GpsdSpeedProvider
from vsslink.transports.base import LinkHandle, LinkTransport

__all__ = [
    "VsslinkError",
    "CapabilityDeniedError",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConnectFailedError",
    "DeviceDiscoveryError",
    "DeviceSelectionError",
    "LinkError",
    "NoDeviceSelectedError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "TransportTimeoutError",
    "WriteFailedError",
    "ConnectionState",
    "PeerDescriptor",
    "RelayConfig",
    "SpeedSample",
    "WriteResult",
    "DEADBAND_MPH",
    "TICK_INTERVAL_S",
    "apply_deadband",
    "format_speed_line",
    "AuthorizationCheck",
    "StaticAuthorization",
    "SpeedProvider",
    "FixedSpeedProvider",
    "GpsdSpeedProvider",
    "KeepAlive",
    "LinkHandle",
    "LinkTransport",
    "LinkManager",
    "TelemetryLoop",
    "Client",
]


class Client:
    """Public client for running the speed relay.

    A `Client` wraps config loading, paired-device lookup, the link state
    machine, and the 10 Hz telemetry loop behind a stable API intended for
    third-party tools (GUI/TUI/services/scripts).
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        transport: LinkTransport | None = None,
        provider: SpeedProvider | None = None,
        keep_alive: KeepAlive | None = None,
        authorization: AuthorizationCheck | None = None,
        on_state: StateCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._service = RelayService(
            config if config is not None else load_config(),
            transport=transport,
            provider=provider,
            keep_alive=keep_alive,
            authorization=authorization,
            on_state=on_state,
            on_error=on_error,
        )

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    @property
    def state(self) -> ConnectionState:
        return self._service.state

    @property
    def latest(self) -> SpeedSample:
        return self._service.provider.latest()

    def add_display(self, display: Display) -> None:
        self._service.add_display(display)

    def list_peers(self) -> list[PeerDescriptor]:
        return self._service.list_peers()

    def resolve_peer(self, device_hint: str | None = None) -> PeerDescriptor | None:
        return self._service.resolve_peer(device_hint)

    def toggle(self, peer: PeerDescriptor | None) -> None:
        self._service.toggle(peer)

    async def run(self, peer: PeerDescriptor | None, stop: asyncio.Event | None = None) -> None:
        await self._service.run(peer, stop)
