"""Module errors: structured error taxonomy for the smoke-tester."""
#
from enum import Enum
from typing import Dict, Any, Optional
# PURPOSE:
# Gives every failure the harness or router can produce a searchable code,
# so a FAIL line in the log says *which kind* of failure happened (a timeout
# reads differently from a refused connection).
#
# ERROR CODE FORMAT:
# - ROUTE_XXX: Upgrade routing errors (server side)
# - PROBE_XXX: Per-probe failures (client side)
# - HARNESS_XXX: Run-level errors
#
# USAGE:
#   from caseconnect.errors import CaseConnectError, ErrorCode
#
#   raise CaseConnectError(
#       ErrorCode.PROBE_TIMEOUT,
#       "timeout 4000ms",
#       details={"probe": "ws-echo"}
#   )
#
class ErrorCode(Enum):
    # Routing Errors
    ROUTE_NOT_FOUND = "ROUTE_001"

    # Probe Errors
    PROBE_TIMEOUT = "PROBE_001"
    PROBE_TRANSPORT = "PROBE_002"
    PROBE_CLOSED = "PROBE_003"
    PROBE_ACTION = "PROBE_004"
    PROBE_PREDICATE = "PROBE_005"

    # Harness Errors
    HARNESS_BUSY = "HARNESS_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class CaseConnectError(Exception):
    """
    Base exception with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "PROBE_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
        http_status: Suggested HTTP status code when surfaced over HTTP
    """

    HTTP_STATUS_MAP: Dict[ErrorCode, int] = {
        ErrorCode.ROUTE_NOT_FOUND: 404,
        ErrorCode.PROBE_TIMEOUT: 408,
        ErrorCode.PROBE_TRANSPORT: 502,
        ErrorCode.PROBE_CLOSED: 502,
        ErrorCode.PROBE_ACTION: 500,
        ErrorCode.PROBE_PREDICATE: 500,
        ErrorCode.HARNESS_BUSY: 409,
        ErrorCode.SYSTEM_INTERNAL_ERROR: 500,
    }

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.http_status = http_status or self.HTTP_STATUS_MAP.get(code, 500)

        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "http_status": self.http_status
        }


class ProbeTimeoutError(CaseConnectError):
    """Raised when a probe reaches no terminal event inside its timeout window."""

    def __init__(self, timeout: float, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.PROBE_TIMEOUT, f"timeout {int(timeout * 1000)}ms", details)
        self.timeout = timeout


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(
    error: BaseException,
    context: Optional[str] = None,
    code: Optional[ErrorCode] = None,
) -> CaseConnectError:
    """
    Convert a generic exception to a CaseConnectError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "on-open action")
        code: Error code to use; guessed from the exception type when omitted

    Returns:
        CaseConnectError wrapping the original (the original is kept as __cause__)
    """
    if isinstance(error, CaseConnectError):
        return error

    error_type = type(error).__name__

    if code is None:
        # TimeoutError is an OSError subclass, so it must be checked first
        if isinstance(error, TimeoutError):
            code = ErrorCode.PROBE_TIMEOUT
        elif isinstance(error, OSError) or "Connection" in error_type:
            code = ErrorCode.PROBE_TRANSPORT
        else:
            code = ErrorCode.SYSTEM_INTERNAL_ERROR

    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    wrapped = CaseConnectError(
        code=code,
        message=message,
        details={
            "original_type": error_type,
            "original_message": str(error)
        }
    )
    wrapped.__cause__ = error
    return wrapped


__all__ = ["ErrorCode", "CaseConnectError", "ProbeTimeoutError", "handle_error"]
