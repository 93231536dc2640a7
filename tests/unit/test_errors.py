from caseconnect.errors import CaseConnectError, ErrorCode, ProbeTimeoutError, handle_error


def test_timeout_error_is_distinguishable():
    err = ProbeTimeoutError(4.0, details={"probe": "ws-echo"})
    assert err.code == ErrorCode.PROBE_TIMEOUT
    assert err.message == "timeout 4000ms"
    assert err.to_dict()["details"] == {"probe": "ws-echo"}
    assert err.http_status == 408


def test_handle_error_maps_transport_failures():
    original = ConnectionRefusedError(111, "Connection refused")
    wrapped = handle_error(original, "connect")
    assert wrapped.code == ErrorCode.PROBE_TRANSPORT
    assert wrapped.message.startswith("connect: ")
    assert wrapped.details["original_type"] == "ConnectionRefusedError"
    assert wrapped.__cause__ is original


def test_handle_error_checks_timeout_before_oserror():
    assert handle_error(TimeoutError("slow")).code == ErrorCode.PROBE_TIMEOUT


def test_handle_error_explicit_code_wins():
    wrapped = handle_error(ValueError("boom"), "on-open action", ErrorCode.PROBE_ACTION)
    assert wrapped.code == ErrorCode.PROBE_ACTION
    assert str(wrapped) == "[PROBE_004] on-open action: boom"


def test_handle_error_passes_structured_errors_through():
    err = CaseConnectError(ErrorCode.PROBE_CLOSED, "gone")
    assert handle_error(err) is err
