"""
Sequencing, short-circuit and re-entrance behaviour of ProbeHarness.
"""
import asyncio

import pytest

from caseconnect.errors import ErrorCode
from caseconnect.probe.harness import Probe, ProbeHarness, default_probes

from fakes import FakeConnection


def routed_connector(routes):
    """routes: path suffix -> zero-arg factory returning a FakeConnection."""
    async def connector(url, **kwargs):
        connector.urls.append(url)
        for suffix, factory in routes.items():
            if url.endswith(suffix):
                return factory()
        raise ConnectionRefusedError(111, "Connection refused")
    connector.urls = []
    return connector


def healthy_routes():
    return {
        "/ws-echo": lambda: FakeConnection(echo=True),
        "/ws-ping": lambda: FakeConnection(inbound=["pong"]),
        "/web-demo/ws": lambda: FakeConnection(inbound=["demo: handshake ok"]),
    }


def three_probes(fail_second):
    def build(base):
        return [
            Probe("one", f"{base}/one", timeout=1.0),
            Probe("two", f"{base}/two", expect=(lambda m: False) if fail_second else None, timeout=0.2),
            Probe("three", f"{base}/three", timeout=1.0),
        ]
    return build


@pytest.mark.asyncio
async def test_default_sequence_passes():
    connector = routed_connector(healthy_routes())
    harness = ProbeHarness("ws://backend/", connector=connector)
    report = await harness.run()

    assert report.passed
    assert [o.name for o in report.outcomes] == ["ws-echo", "ws-ping", "web-demo"]
    assert connector.urls == ["ws://backend/ws-echo", "ws://backend/ws-ping", "ws://backend/web-demo/ws"]
    messages = harness.log.messages()
    assert messages[0] == "[smoke] begin"
    assert messages[-2:] == ["[smoke] ALL PASS", "[smoke] end"]
    assert not harness.running


@pytest.mark.asyncio
async def test_failure_short_circuits_remaining_probes():
    connector = routed_connector({
        "/one": lambda: FakeConnection(inbound=["hi"]),
        "/two": lambda: FakeConnection(inbound=["hi"]),
        "/three": lambda: FakeConnection(inbound=["hi"]),
    })
    harness = ProbeHarness("ws://backend", probes=three_probes(fail_second=True), connector=connector)
    report = await harness.run()

    assert not report.passed
    assert [o.name for o in report.outcomes] == ["one", "two"]
    assert report.failure.cause.code == ErrorCode.PROBE_TIMEOUT
    assert connector.urls == ["ws://backend/one", "ws://backend/two"]
    messages = harness.log.messages()
    assert "[try] three -> ws://backend/three" not in messages
    assert messages.count("[smoke] FAIL") == 1
    assert messages.count("[smoke] end") == 1
    assert "[smoke] ALL PASS" not in messages


@pytest.mark.asyncio
async def test_reentrant_run_is_ignored():
    harness = ProbeHarness("ws://backend", connector=routed_connector(healthy_routes()))

    first = asyncio.create_task(harness.run())
    await asyncio.sleep(0)
    assert harness.running
    assert await harness.run() is None

    report = await first
    assert report.passed
    assert harness.log.messages().count("[smoke] begin") == 1


@pytest.mark.asyncio
async def test_serial_runs_are_independent():
    harness = ProbeHarness("ws://backend", connector=routed_connector(healthy_routes()))

    first = await harness.run()
    second = await harness.run()

    assert first.passed and second.passed
    # The sink is cleared per run, so only the second run is visible
    assert harness.log.messages().count("[smoke] begin") == 1
    assert harness.log.messages().count("[smoke] end") == 1


@pytest.mark.asyncio
async def test_broken_probe_factory_releases_the_guard():
    def broken(base):
        raise ValueError("no probes for you")

    harness = ProbeHarness("ws://backend", probes=broken, connector=routed_connector(healthy_routes()))
    with pytest.raises(ValueError):
        await harness.run()

    assert not harness.running
    assert harness.log.messages() == ["[smoke] begin", "[smoke] end"]

    harness._probes = default_probes
    report = await harness.run()
    assert report is not None and report.passed


def test_default_probe_table():
    echo, ping, demo = default_probes("wss://host")
    assert (echo.url, echo.timeout, echo.linger) == ("wss://host/ws-echo", 4.0, 0.05)
    assert echo.on_open is not None
    assert (ping.url, ping.timeout, ping.linger) == ("wss://host/ws-ping", 6.0, 0.0)
    assert ping.expect("xxPoNgxx") and not ping.expect(b"pong")
    assert (demo.url, demo.timeout) == ("wss://host/web-demo/ws", 4.0)
