"""Paired Bluetooth peer listing via BlueZ command line tools."""

from __future__ import annotations

import re
import subprocess
from collections.abc import Sequence

from vsslink.core.errors import DeviceDiscoveryError
from vsslink.core.model import PeerDescriptor

_DEVICE_LINE_RE = re.compile(r"^Device\s+([0-9A-F:]{17})\s+(.+)$", re.IGNORECASE)

_PAIRED_COMMANDS = (
    ("bluetoothctl", "devices", "Paired"),
    ("bluetoothctl", "paired-devices"),
)


class PeerDirectory:
    def list_paired(self) -> list[PeerDescriptor]:
        return _list_paired_devices()


def _list_paired_devices() -> list[PeerDescriptor]:
    seen: set[str] = set()
    peers: list[PeerDescriptor] = []
    command_errors: list[str] = []
    any_succeeded = False

    for cmd in _PAIRED_COMMANDS:
        result = _run_directory_command(list(cmd))
        if result is None:
            continue
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            if stderr:
                command_errors.append(f"{' '.join(cmd)} -> {stderr}")
            continue

        any_succeeded = True
        for line in result.stdout.splitlines():
            match = _DEVICE_LINE_RE.match(line.strip())
            if not match:
                continue
            mac, name = match.group(1).upper(), match.group(2).strip()
            if mac in seen:
                continue
            seen.add(mac)
            peers.append(PeerDescriptor(address=mac, name=name))

        if peers:
            return peers

    if not any_succeeded and command_errors:
        joined = " | ".join(command_errors)
        raise DeviceDiscoveryError(
            f"Listing paired devices failed. Ensure a working D-Bus/BlueZ session. Details: {joined}"
        )

    return peers


def _run_directory_command(cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None


def match_peer(peers: Sequence[PeerDescriptor], hint: str) -> list[PeerDescriptor]:
    lowered = hint.lower()
    exact = [p for p in peers if p.address.lower() == lowered]
    if exact:
        return exact
    return [p for p in peers if lowered in p.address.lower() or lowered in p.name.lower()]
