from grandcentral_server.errors import (
    DEFAULT_ERROR_MESSAGE,
    BusinessError,
    GuardRejection,
    TransportError,
    ValidationError,
    error_message,
)


def test_message_wins():
    payload = {"message": "Out of window", "errors": {"date": ["Too late"]}}
    assert error_message(payload) == "Out of window"


def test_first_field_error():
    payload = {"errors": {"password": ["The password is incorrect."], "phone": ["Bad phone"]}}
    assert error_message(payload) == "The password is incorrect."


def test_error_map_and_string():
    assert error_message({"error": {"otp": ["Expired"]}}) == "Expired"
    assert error_message({"error": "Service unavailable"}) == "Service unavailable"


def test_fallback_for_unknown_shapes():
    assert error_message({"errors": {}}) == DEFAULT_ERROR_MESSAGE
    assert error_message(["not", "a", "dict"]) == DEFAULT_ERROR_MESSAGE
    assert error_message({}, fallback="Send OTP failed.") == "Send OTP failed."


def test_exceptions():
    error = ValidationError("invalid", {"errors": {"quantity": ["Must be at least 1"]}}, 422)
    assert error_message(error) == "Must be at least 1"
    assert error.errors == {"quantity": ["Must be at least 1"]}
    assert error_message(BusinessError("x", {"success": False, "message": "Closed today"})) == "Closed today"
    assert error_message(GuardRejection("Phone number must be 8 digits.")) == "Phone number must be 8 digits."
    assert error_message(TransportError("Network error: timeout")) == "Network error: timeout"
