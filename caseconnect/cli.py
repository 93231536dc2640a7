#!/usr/bin/env python3
"""Command line entry point: run the server, or smoke-test a running one."""
import argparse
import asyncio
import sys

from caseconnect.base.config import get_config, setup_logging
from caseconnect.probe.harness import ProbeHarness, SmokeReport


def run_server(args):
    """Start the WebSocket server (blocks until terminated)."""
    from caseconnect.server.api import serve
    serve(port=args.port, host=args.host)
    return 0


async def _smoke(harness: ProbeHarness, repeat: int) -> bool:
    for i in range(repeat):
        report = await harness.run()
        if report is None:
            return False
        _print_report(report, i + 1, repeat)
        if not report.passed:
            return False
    return True


def _print_report(report: SmokeReport, run: int, repeat: int) -> None:
    print(f"== run {run}/{repeat} against {report.base}")
    for outcome in report.outcomes:
        mark = "PASS" if outcome.success else "FAIL"
        line = f"  {mark} {outcome.name:<10} {outcome.elapsed_ms:>6}ms"
        if outcome.cause is not None:
            line += f"  {outcome.cause}"
        print(line)
    skipped = report.total - len(report.outcomes)
    if skipped:
        print(f"  ({skipped} probe(s) not attempted)")
    print("ALL PASS" if report.passed else "FAIL")


def run_smoke(args):
    """Probe /ws-echo, /ws-ping and /web-demo/ws in order."""
    config = get_config()
    setup_logging(config)
    base = args.base or config.ws_base()
    harness = ProbeHarness(base=base)
    ok = asyncio.run(_smoke(harness, args.repeat))
    return 0 if ok else 1


def main(argv=None):
    """Function main."""
    parser = argparse.ArgumentParser(description="Case Connect WebSocket smoke tester")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Server Command
    server_parser = subparsers.add_parser("server", help="Start the WebSocket server")
    server_parser.add_argument("--host", help="Listen address (default: CASECONNECT_HOST or 0.0.0.0)")
    server_parser.add_argument("--port", type=int, help="Listen port (default: PORT or 10000)")
    server_parser.set_defaults(func=run_server)

    # Smoke Command
    smoke_parser = subparsers.add_parser("smoke", help="Run the probe sequence against a server")
    smoke_parser.add_argument("--base", help="WebSocket base URL, e.g. wss://example.com")
    smoke_parser.add_argument("--repeat", type=int, default=1, help="Serial runs to perform")
    smoke_parser.set_defaults(func=run_smoke)

    args = parser.parse_args(argv)

    if hasattr(args, "func"):
        return args.func(args)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
