"""
Probe client: sequential smoke test of the server's WebSocket endpoints.
"""
from caseconnect.probe.harness import (
    Probe,
    ProbeHarness,
    ProbeOutcome,
    ProbeRun,
    ProbeState,
    SmokeReport,
    default_probes,
)
from caseconnect.probe.session_log import Detail, DetailKind, Level, LogEntry, SessionLog

__all__ = [
    "Probe",
    "ProbeHarness",
    "ProbeOutcome",
    "ProbeRun",
    "ProbeState",
    "SmokeReport",
    "default_probes",
    "Detail",
    "DetailKind",
    "Level",
    "LogEntry",
    "SessionLog",
]
