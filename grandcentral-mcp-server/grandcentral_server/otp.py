"""Two-step OTP login: credentials, then a six-digit code."""

import logging
import re
from enum import Enum
from typing import Optional

from .auth import AuthManager
from .cache import QueryCache
from .errors import GrandCentralError, GuardRejection, error_message
from .grandcentral_client import GrandCentralClient
from .notifications import Notifier

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
MIN_PASSWORD_LENGTH = 6
PHONE_RE = re.compile(r"^\d{8}$")


class OtpCodeInput:
    """
    Six single-digit boxes.

    ``focus`` is the index of the focused box, or None once the keyboard is
    dismissed after the last box is filled by a paste.
    """

    def __init__(self, length: int = CODE_LENGTH) -> None:
        self.length = length
        self.digits: list[str] = [""] * length
        self.focus: Optional[int] = 0

    def change(self, index: int, value: str) -> None:
        """
        Apply a text change in box ``index``.

        A pasted string of several digits is spread over the boxes starting at
        ``index``; non-digits are dropped.
        """
        only = re.sub(r"\D", "", value)

        if len(only) > 1:
            pos = index
            for digit in only:
                if pos >= self.length:
                    break
                self.digits[pos] = digit
                pos += 1
            self.focus = pos if pos < self.length else None
            return

        self.digits[index] = only[:1]
        if only and index < self.length - 1:
            self.focus = index + 1
        else:
            self.focus = index

    def backspace(self, index: int) -> None:
        """Clear a filled box, or step back from an empty one."""
        if self.digits[index]:
            self.digits[index] = ""
            self.focus = index
        elif index > 0:
            self.focus = index - 1

    @property
    def code(self) -> str:
        return "".join(self.digits)

    @property
    def is_complete(self) -> bool:
        return len(self.code) == self.length

    def clear(self) -> None:
        self.digits = [""] * self.length
        self.focus = 0


class HandshakeState(str, Enum):
    IDENTIFIER_ENTRY = "identifier_entry"
    OTP_SENT = "otp_sent"
    VERIFIED = "verified"


class OtpHandshake:
    """Drives the login flow and persists the issued token."""

    def __init__(
        self,
        client: GrandCentralClient,
        auth_manager: AuthManager,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.client = client
        self.auth_manager = auth_manager
        self.notifier = notifier or Notifier()
        self.state = HandshakeState.IDENTIFIER_ENTRY
        self.identifier: Optional[str] = None
        self.employee_id: Optional[int] = None
        self._password: Optional[str] = None

    @property
    def cache(self) -> QueryCache:
        return self.client.cache

    def _check_credentials(self, login_id: str, password: str, method: str) -> str:
        identifier = (login_id or "").strip()
        if not identifier:
            raise GuardRejection("Email or phone is required")
        if method == "phone" and not PHONE_RE.match(identifier):
            raise GuardRejection("Phone number must be 8 digits.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise GuardRejection(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return identifier

    async def send_otp(self, login_id: str, password: str, method: str = "email") -> bool:
        """
        Submit credentials and ask for a code.

        Args:
            login_id: Email or 8-digit phone number
            password: Account password
            method: ``email`` or ``phone``; phone numbers are format-checked

        Returns:
            True when the server dispatched a code
        """
        logger.info(f"Sending OTP for {login_id} via {method}")
        try:
            identifier = self._check_credentials(login_id, password, method)
            result = await self.client.send_otp(identifier, password)
        except GrandCentralError as e:
            logger.warning(f"Send OTP failed: {e}")
            self.notifier.error(error_message(e))
            return False

        if not result.success:
            self.notifier.error(result.message or "Send OTP failed.")
            return False

        self.identifier = identifier
        self.employee_id = result.employee_id
        self._password = password
        self.state = HandshakeState.OTP_SENT
        self.notifier.success("OTP sent successfully")
        return True

    async def resend(self) -> bool:
        if self.identifier is None or self._password is None:
            self.notifier.error("Please enter your login details again")
            return False
        method = "email" if "@" in self.identifier else "phone"
        return await self.send_otp(self.identifier, self._password, method)

    async def verify(self, code: str) -> bool:
        """
        Exchange the code for a token and persist the session.

        Returns:
            True once the session is stored
        """
        if self.state != HandshakeState.OTP_SENT or self.identifier is None:
            self.notifier.error("Please request a code first")
            return False
        if not re.fullmatch(r"\d{6}", code or ""):
            self.notifier.error("Please enter the 6-digit code")
            return False

        try:
            result = await self.client.verify_otp(code, self.identifier, self.employee_id)
        except GrandCentralError as e:
            logger.warning(f"Verify OTP failed: {e}")
            self.notifier.error(error_message(e, "Verification failed. Please try again."))
            return False

        if not result.success:
            self.notifier.error(result.message or "Verification failed. Please try again.")
            return False

        self.auth_manager.save_login(
            result.token,
            employee=result.employee,
            employee_id=result.resolved_employee_id or self.employee_id,
        )
        self.cache.clear()
        self.state = HandshakeState.VERIFIED
        self._password = None
        self.notifier.success("Verification successful")
        return True

    def reset(self) -> None:
        self.state = HandshakeState.IDENTIFIER_ENTRY
        self.identifier = None
        self.employee_id = None
        self._password = None

    def logout(self) -> None:
        """Forget the stored session and every cached query."""
        self.auth_manager.clear_session()
        self.cache.clear()
        self.reset()
        logger.info("Logged out")
