"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import signal
from pathlib import Path

import typer

from vsslink.core.config import load_config
from vsslink.core.errors import VsslinkError
from vsslink.core.model import ConnectionState, PeerDescriptor, SpeedSample
from vsslink.core.service import RelayService

app = typer.Typer(help="Relay live speed to a Bluetooth SPP receiver as SPEED_MPH lines")

_LOG_FORMAT = "[%(asctime)s.%(msecs)03d] %(name)s: %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        datefmt="%H:%M:%S",
    )


def _print_state(state: ConnectionState) -> None:
    typer.echo(f"PORT: {state.value.upper()}", err=True)


def _print_error(error: VsslinkError) -> None:
    typer.echo(f"Error: {error}", err=True)


def _print_sample(sample: SpeedSample) -> None:
    typer.echo(f"\rSPEED_MPH: {sample.speed_mph:.2f}  RAW_MPH: {sample.raw_mph:.2f}", nl=False)


def _build_service(config_path: Path | None = None, simulate: float | None = None) -> RelayService:
    config = load_config(config_path)
    if simulate is not None:
        config = dataclasses.replace(
            config,
            speed=dataclasses.replace(config.speed, source="fixed", fixed_mph=simulate),
        )
    service = RelayService(config, on_state=_print_state, on_error=_print_error)
    for warning in getattr(service, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


async def _relay(service: RelayService, peer: PeerDescriptor | None) -> None:
    if hasattr(signal, "SIGUSR1"):
        asyncio.get_running_loop().add_signal_handler(signal.SIGUSR1, service.toggle, peer)
    await service.run(peer)


@app.command("devices")
def list_devices(
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """List paired Bluetooth devices that can receive telemetry."""
    try:
        service = _build_service(config)
        peers = service.list_peers()
        if not peers:
            typer.echo("No paired Bluetooth devices found")
            return

        for peer in peers:
            typer.echo(f"{peer.address} {peer.name}")
    except VsslinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("run")
def run_relay(
    device: str | None = typer.Option(None, "--device", help="MAC, partial name, or serial device path"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
    simulate: float | None = typer.Option(
        None, "--simulate", min=0.0, help="Relay a fixed speed in mph instead of GPS"
    ),
    display: bool = typer.Option(True, "--display/--no-display", help="Show live speed on stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every transmitted line"),
) -> None:
    """Open the link and relay speed at 10 Hz until interrupted.

    Send SIGUSR1 to close or reopen the link without stopping the relay.
    """
    _configure_logging(verbose)
    try:
        service = _build_service(config, simulate)
        peer = service.resolve_peer(device)
        if peer is None:
            typer.echo("Error: No device selected. Use --device or set 'device' in the config.", err=True)
            raise typer.Exit(code=1)
        if display:
            service.add_display(_print_sample)
        typer.echo(f"Relaying to {peer}", err=True)
        asyncio.run(_relay(service, peer))
    except VsslinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        typer.echo("\nStopped", err=True)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
