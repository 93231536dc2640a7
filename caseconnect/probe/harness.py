# ============================================================================
# caseconnect/probe/harness.py
# Sequential WebSocket probe harness
# ============================================================================
#
# PURPOSE:
# Connects to each endpoint in turn, checks that it says what it should,
# and stops at the first one that does not.
#
# PER-PROBE LIFECYCLE:
#   idle -> connecting -> open -> awaiting-success -> succeeded | failed
#
# - The timeout is armed on entering "connecting" and only a terminal
#   transition disarms it.
# - Terminal transitions happen once; anything arriving later is ignored.
# - Every terminal transition closes the socket.
#
# ============================================================================

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from caseconnect.errors import CaseConnectError, ErrorCode, ProbeTimeoutError, handle_error
from caseconnect.probe.session_log import SessionLog
from caseconnect.utils.async_helpers import cancel_and_wait, create_safe_task

logger = logging.getLogger(__name__)

Message = Union[str, bytes]
Predicate = Callable[[Message], bool]
OnOpen = Callable[[ClientConnection], Optional[Awaitable[None]]]
Connector = Callable[..., Awaitable[ClientConnection]]


class ProbeState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    AWAITING = "awaiting-success"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ProbeState.SUCCEEDED, ProbeState.FAILED)


_TRANSITIONS: Dict[ProbeState, Tuple[ProbeState, ...]] = {
    ProbeState.IDLE: (ProbeState.CONNECTING,),
    ProbeState.CONNECTING: (ProbeState.OPEN, ProbeState.FAILED),
    ProbeState.OPEN: (ProbeState.AWAITING, ProbeState.FAILED),
    ProbeState.AWAITING: (ProbeState.SUCCEEDED, ProbeState.FAILED),
    ProbeState.SUCCEEDED: (),
    ProbeState.FAILED: (),
}


@dataclass(frozen=True)
class Probe:
    name: str
    url: str
    on_open: Optional[OnOpen] = None
    # None: the first inbound message counts as success
    expect: Optional[Predicate] = None
    timeout: float = 4.0
    # Keep listening this long after a match before declaring success
    linger: float = 0.0
    # With no predicate and expect_message=False, reaching "open" is enough
    expect_message: bool = True


@dataclass(frozen=True)
class ProbeOutcome:
    name: str
    success: bool
    elapsed: float
    cause: Optional[CaseConnectError] = None

    @property
    def elapsed_ms(self) -> int:
        return int(round(self.elapsed * 1000))


@dataclass(frozen=True)
class SmokeReport:
    base: str
    total: int
    outcomes: Tuple[ProbeOutcome, ...]

    @property
    def passed(self) -> bool:
        return len(self.outcomes) == self.total and all(o.success for o in self.outcomes)

    @property
    def failure(self) -> Optional[ProbeOutcome]:
        return next((o for o in self.outcomes if not o.success), None)


class ProbeRun:
    """One execution of one probe. Single use."""

    def __init__(self, probe: Probe, log: SessionLog, connector: Connector = connect):
        self.probe = probe
        self.log = log
        self.state = ProbeState.IDLE
        self._connector = connector
        self._ws: Optional[ClientConnection] = None
        self._done = False
        self._started = 0.0
        self._finished: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._linger: Optional[asyncio.TimerHandle] = None

    async def execute(self) -> ProbeOutcome:
        if self.state != ProbeState.IDLE:
            raise RuntimeError(f"probe {self.probe.name} already executed")

        loop = asyncio.get_running_loop()
        self._started = loop.time()
        self._finished = loop.create_future()

        self.log.info(f"[try] {self.probe.name} -> {self.probe.url}")
        self._transition(ProbeState.CONNECTING, "invoked")
        self._timer = loop.call_later(self.probe.timeout, self._on_timeout)
        driver = create_safe_task(self._drive(), name=f"probe-{self.probe.name}")
        try:
            return await self._finished
        finally:
            self._disarm()
            await cancel_and_wait(driver)
            await self._close_transport()

    # -- transitions -------------------------------------------------------

    def _elapsed(self) -> float:
        return asyncio.get_running_loop().time() - self._started

    def _transition(self, new: ProbeState, cause: str) -> bool:
        old = self.state
        if old.terminal:
            return False
        if new not in _TRANSITIONS[old]:
            raise RuntimeError(f"probe {self.probe.name}: illegal transition {old.value} -> {new.value}")
        self.state = new
        self.log.info(
            f"[state] {self.probe.name} {old.value} -> {new.value} "
            f"+{int(round(self._elapsed() * 1000))}ms ({cause})"
        )
        return True

    def _finish(self, ok: bool, cause: Optional[CaseConnectError], reason: str) -> None:
        if self._done:
            return
        self._done = True
        self._disarm()

        # A success can only come from awaiting-success; a failure from anywhere
        if ok:
            self._transition(ProbeState.SUCCEEDED, reason)
        else:
            self._transition(ProbeState.FAILED, reason)

        elapsed = self._elapsed()
        ms = int(round(elapsed * 1000))
        if ok:
            self.log.info(f"[ok] {self.probe.name} in {ms}ms")
        else:
            self.log.error(f"[fail] {self.probe.name} in {ms}ms", cause)

        if self._finished is not None and not self._finished.done():
            self._finished.set_result(
                ProbeOutcome(name=self.probe.name, success=ok, elapsed=elapsed, cause=cause)
            )

    def _succeed(self, reason: str) -> None:
        self._finish(True, None, reason)

    def _fail(self, cause: CaseConnectError) -> None:
        self._finish(False, cause, cause.code.name.lower())

    def _disarm(self) -> None:
        for handle in (self._timer, self._linger):
            if handle is not None:
                handle.cancel()

    def _on_timeout(self) -> None:
        self._fail(ProbeTimeoutError(self.probe.timeout, details={"probe": self.probe.name}))

    # -- transport events ----------------------------------------------------

    async def _drive(self) -> None:
        try:
            await self._connect_and_listen()
        except Exception as e:
            # Anything unexpected still has to end the probe, not strand it until the timeout
            logger.exception(f"[probe] {self.probe.name} driver crashed")
            self._fail(handle_error(e, "probe driver", ErrorCode.SYSTEM_INTERNAL_ERROR))

    async def _connect_and_listen(self) -> None:
        try:
            self._ws = await self._connector(self.probe.url, open_timeout=None)
        except (OSError, WebSocketException) as e:
            self._fail(handle_error(e, "connect", ErrorCode.PROBE_TRANSPORT))
            return

        if not self._transition(ProbeState.OPEN, "open event"):
            return
        self.log.info(f"[open] {self.probe.name}")

        if self.probe.on_open is not None:
            try:
                result = self.probe.on_open(self._ws)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._fail(handle_error(e, "on-open action", ErrorCode.PROBE_ACTION))
                return

        if not self._transition(ProbeState.AWAITING, "opened"):
            return
        if self.probe.expect is None and not self.probe.expect_message:
            self._succeed("no message required")
            return

        try:
            async for message in self._ws:
                self._on_message(message)
                if self._done:
                    return
        except ConnectionClosed as e:
            self._fail(CaseConnectError(
                ErrorCode.PROBE_CLOSED,
                f"connection closed abnormally: {e}",
                details=self._close_details(),
            ))
            return

        self._fail(CaseConnectError(
            ErrorCode.PROBE_CLOSED,
            "connection closed before success",
            details=self._close_details(),
        ))

    def _on_message(self, message: Message) -> None:
        self.log.info(f"[msg] {self.probe.name}", "bytes" if isinstance(message, bytes) else "str")
        if self._done or self._linger is not None:
            return

        if self.probe.expect is None:
            matched = True
        else:
            try:
                matched = bool(self.probe.expect(message))
            except Exception as e:
                self._fail(handle_error(e, "success predicate", ErrorCode.PROBE_PREDICATE))
                return

        if not matched:
            return
        if self.probe.linger > 0:
            self.log.info(f"[match] {self.probe.name}, lingering {int(self.probe.linger * 1000)}ms")
            self._linger = asyncio.get_running_loop().call_later(
                self.probe.linger, self._succeed, "matched, linger elapsed"
            )
        else:
            self._succeed("matched")

    def _close_details(self) -> Dict[str, Any]:
        ws = self._ws
        if ws is None:
            return {}
        return {"code": ws.close_code, "reason": ws.close_reason, "clean": ws.close_code == 1000}

    async def _close_transport(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug(f"[probe] {self.probe.name} close failed: {e!r}")
        self.log.warn(f"[close] {self.probe.name}", self._close_details())


# ============================================================================
# Default probe set
# ============================================================================

ECHO_PAYLOAD = bytes([1, 2, 3, 4])


async def send_echo_payload(ws: ClientConnection) -> None:
    await ws.send(ECHO_PAYLOAD)


def contains_pong(message: Message) -> bool:
    # Deliberately loose: any text frame mentioning pong, any case
    return isinstance(message, str) and "pong" in message.lower()


def any_message(message: Message) -> bool:
    return True


def default_probes(base: str) -> List[Probe]:
    return [
        Probe(
            name="ws-echo",
            url=f"{base}/ws-echo",
            on_open=send_echo_payload,
            expect=any_message,
            timeout=4.0,
            linger=0.05,
        ),
        Probe(
            name="ws-ping",
            url=f"{base}/ws-ping",
            expect=contains_pong,
            timeout=6.0,
        ),
        Probe(
            name="web-demo",
            url=f"{base}/web-demo/ws",
            expect=any_message,
            timeout=4.0,
        ),
    ]


class ProbeHarness:
    """
    Runs a probe list strictly one at a time.

    Only one run may be in flight; calling run() while one is active is a
    no-op that returns None.
    """

    def __init__(
        self,
        base: str,
        probes: Callable[[str], Sequence[Probe]] = default_probes,
        log: Optional[SessionLog] = None,
        connector: Connector = connect,
    ):
        self.base = base.rstrip("/")
        self.log = log or SessionLog()
        self._probes = probes
        self._connector = connector
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> Optional[SmokeReport]:
        if self._running:
            busy = CaseConnectError(ErrorCode.HARNESS_BUSY, "smoke run already in progress")
            logger.warning(f"[smoke] ignored re-entrant run: {busy}")
            return None
        self._running = True

        outcomes: List[ProbeOutcome] = []
        try:
            self.log.clear()
            self.log.info("[smoke] begin", {"base": self.base})
            probes = list(self._probes(self.base))
            for probe in probes:
                outcome = await ProbeRun(probe, self.log, self._connector).execute()
                outcomes.append(outcome)
                if not outcome.success:
                    self.log.error("[smoke] FAIL", outcome.cause)
                    break
            else:
                self.log.info("[smoke] ALL PASS")
        finally:
            self.log.info("[smoke] end")
            self._running = False

        return SmokeReport(base=self.base, total=len(probes), outcomes=tuple(outcomes))
