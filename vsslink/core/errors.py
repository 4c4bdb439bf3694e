"""Domain-specific errors for vsslink."""

from __future__ import annotations


class VsslinkError(Exception):
    """Base error for vsslink."""


class ConfigValidationError(VsslinkError):
    """Raised when a config file does not conform to schema or semantics."""


class ConfigLoadError(VsslinkError):
    """Raised when reading the config file fails."""


class DeviceDiscoveryError(VsslinkError):
    """Raised when Bluetooth paired-device listing fails."""


class DeviceSelectionError(VsslinkError):
    """Raised when a device hint cannot resolve a single peer."""


class NoDeviceSelectedError(VsslinkError):
    """Raised when a link is opened without a peer."""


class CapabilityDeniedError(VsslinkError):
    """Reported when a speed backend lacks the authorization it needs."""

    def __init__(self, capability: str) -> None:
        super().__init__(f"Missing '{capability}' capability; speed source stays inert")
        self.capability = capability


class TransportError(VsslinkError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on RFCOMM/serial connect failures."""


class TransportSendError(TransportError):
    """Raised when writing to an open transport fails."""


class TransportTimeoutError(TransportError):
    """Raised when a connect or write times out."""


class LinkError(VsslinkError):
    """Base error for link lifecycle failures."""


class ConnectFailedError(LinkError):
    """Reported when the handshake to a peer fails."""

    def __init__(self, peer: object, cause: BaseException) -> None:
        super().__init__(f"Could not open link to {peer}: {cause}")
        self.peer = peer
        self.cause = cause


class WriteFailedError(LinkError):
    """Raised when a write to an open link fails; the link is already closed."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Link write failed: {cause}")
        self.cause = cause
