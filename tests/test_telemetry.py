from __future__ import annotations

import asyncio

from vsslink.core.link import LinkManager
from vsslink.core.model import ConnectionState, PeerDescriptor, SpeedSample, WriteResult
from vsslink.core.telemetry import TICK_INTERVAL_S, TelemetryLoop, format_speed_line
from vsslink.speed.fixed import FixedSpeedProvider

from fakes import FakeTransport

PEER = PeerDescriptor(address="00:11:22:33:44:55", name="Dash")


def test_tick_interval_is_ten_hertz() -> None:
    assert TICK_INTERVAL_S == 0.1


def test_format_speed_line() -> None:
    assert format_speed_line(12.345) == b"SPEED_MPH:12.35\r\n"
    assert format_speed_line(12.34) == b"SPEED_MPH:12.34\r\n"
    assert format_speed_line(0.0) == b"SPEED_MPH:0.00\r\n"
    assert format_speed_line(5) == b"SPEED_MPH:5.00\r\n"


def test_tick_while_closed_updates_display_and_skips_write() -> None:
    provider = FixedSpeedProvider(5.0)
    provider.start()
    shown: list[SpeedSample] = []
    loop = TelemetryLoop(provider, LinkManager(FakeTransport()), displays=[shown.append])

    assert loop.tick() is WriteResult.SKIPPED
    assert shown == [SpeedSample(speed_mph=5.0, raw_mph=5.0, source="FIXED")]
    assert loop.ticks == 1


def test_happy_path_emits_speed_line() -> None:
    transport = FakeTransport()
    manager = LinkManager(transport)
    provider = FixedSpeedProvider(5.0)
    provider.start()
    loop = TelemetryLoop(provider, manager)

    async def scenario() -> WriteResult:
        manager.open(PEER)
        await manager.wait_settled()
        return loop.tick()

    assert asyncio.run(scenario()) is WriteResult.SENT
    assert manager.state is ConnectionState.OPEN
    assert transport.links[0].written == [b"SPEED_MPH:5.00\r\n"]


def test_noise_near_zero_is_suppressed_but_raw_is_reported() -> None:
    transport = FakeTransport()
    manager = LinkManager(transport)
    provider = FixedSpeedProvider(0.3)
    provider.start()
    shown: list[str] = []
    loop = TelemetryLoop(
        provider,
        manager,
        displays=[lambda s: shown.append(f"RAW_MPH: {s.raw_mph:.2f}")],
    )

    async def scenario() -> None:
        manager.open(PEER)
        await manager.wait_settled()
        loop.tick()

    asyncio.run(scenario())
    assert transport.links[0].written == [b"SPEED_MPH:0.00\r\n"]
    assert shown == ["RAW_MPH: 0.30"]


def test_peer_gone_mid_link_closes_and_later_ticks_skip() -> None:
    transport = FakeTransport(fail_on_write=2)
    manager = LinkManager(transport)
    provider = FixedSpeedProvider(30.0)
    provider.start()
    loop = TelemetryLoop(provider, manager)

    async def scenario() -> list[WriteResult]:
        manager.open(PEER)
        await manager.wait_settled()
        return [loop.tick() for _ in range(4)]

    results = asyncio.run(scenario())
    assert results == [
        WriteResult.SENT,
        WriteResult.FAILED,
        WriteResult.SKIPPED,
        WriteResult.SKIPPED,
    ]
    assert manager.state is ConnectionState.CLOSED
    assert transport.links[0].closed
    assert transport.links[0].written == [b"SPEED_MPH:30.00\r\n"]


def test_run_keeps_ticking_until_stopped() -> None:
    provider = FixedSpeedProvider(1.0)
    provider.start()
    loop = TelemetryLoop(provider, LinkManager(FakeTransport()), interval_s=0.01)

    async def scenario() -> None:
        stop = asyncio.Event()
        runner = asyncio.create_task(loop.run(stop))
        while loop.ticks < 5:
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(runner, timeout=1.0)

    asyncio.run(scenario())
    assert loop.ticks >= 5
