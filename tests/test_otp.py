import pytest

from fake_backend import EMAIL, EMPLOYEE_ID, OTP, PASSWORD, PHONE, TOKEN
from grandcentral_server.notifications import ToastKind
from grandcentral_server.otp import HandshakeState, OtpCodeInput, OtpHandshake


class TestOtpCodeInput:
    def test_typing_advances_focus(self):
        code = OtpCodeInput()
        code.change(0, "1")
        assert code.focus == 1
        code.change(1, "a")
        assert code.digits[1] == ""
        assert code.focus == 1

    def test_paste_spreads_from_focused_box(self):
        code = OtpCodeInput()
        code.change(2, "12-34")
        assert code.digits == ["", "", "1", "2", "3", "4"]
        assert code.focus is None

    def test_partial_paste_focuses_next_box(self):
        code = OtpCodeInput()
        code.change(0, "123")
        assert code.code == "123"
        assert code.focus == 3
        assert not code.is_complete

    def test_full_paste_completes_and_dismisses(self):
        code = OtpCodeInput()
        code.change(0, "12345678")
        assert code.code == "123456"
        assert code.is_complete
        assert code.focus is None

    def test_backspace(self):
        code = OtpCodeInput()
        code.change(0, "12")
        code.backspace(2)
        assert code.focus == 1
        code.backspace(1)
        assert code.digits[1] == ""
        assert code.focus == 1
        code.backspace(0)
        assert code.code == ""
        code.backspace(0)
        assert code.focus == 0

    def test_clear(self):
        code = OtpCodeInput()
        code.change(0, "123456")
        code.clear()
        assert code.code == ""
        assert code.focus == 0


@pytest.fixture
def handshake(client, auth_manager, notifier):
    return OtpHandshake(client, auth_manager, notifier)


async def test_login_flow(handshake, auth_manager, toasts):
    assert handshake.state == HandshakeState.IDENTIFIER_ENTRY

    assert await handshake.send_otp(EMAIL, PASSWORD)
    assert handshake.state == HandshakeState.OTP_SENT
    assert handshake.employee_id == EMPLOYEE_ID

    assert await handshake.verify(OTP)
    assert handshake.state == HandshakeState.VERIFIED
    assert auth_manager.get_token() == TOKEN
    assert auth_manager.get_employee_id() == EMPLOYEE_ID
    assert auth_manager.get_user()["name_en"] == "Test Employee"
    assert [t.message for t in toasts.drain()] == ["OTP sent successfully", "Verification successful"]


@pytest.mark.parametrize(
    "login_id, password, method, message",
    [
        ("", PASSWORD, "email", "Email or phone is required"),
        ("5551234", PASSWORD, "phone", "Phone number must be 8 digits."),
        (PHONE, "12345", "phone", "Password must be at least 6 characters"),
    ],
)
async def test_send_otp_guards(handshake, backend, toasts, login_id, password, method, message):
    assert not await handshake.send_otp(login_id, password, method)
    assert handshake.state == HandshakeState.IDENTIFIER_ENTRY
    assert backend.calls == []
    assert toasts.drain()[0].message == message


async def test_send_otp_surfaces_field_error(handshake, toasts):
    assert not await handshake.send_otp(EMAIL, "wrong-password")
    assert handshake.state == HandshakeState.IDENTIFIER_ENTRY
    toast = toasts.drain()[0]
    assert toast.kind == ToastKind.ERROR
    assert toast.message == "The password is incorrect."


async def test_verify_requires_sent_code(handshake, backend):
    assert not await handshake.verify(OTP)
    assert backend.calls == []


async def test_bad_code(handshake, auth_manager, toasts):
    await handshake.send_otp(PHONE, PASSWORD, "phone")
    toasts.drain()

    assert not await handshake.verify("12345")
    assert not await handshake.verify("000000")

    assert handshake.state == HandshakeState.OTP_SENT
    assert [t.message for t in toasts.drain()] == ["Please enter the 6-digit code", "Invalid OTP"]
    assert auth_manager.get_token() is None


async def test_resend_and_logout(handshake, auth_manager, backend):
    await handshake.send_otp(EMAIL, PASSWORD)
    assert await handshake.resend()
    assert backend.count("/employee/send-otp") == 2

    await handshake.verify(OTP)
    handshake.logout()

    assert handshake.state == HandshakeState.IDENTIFIER_ENTRY
    assert not auth_manager.is_authenticated()
