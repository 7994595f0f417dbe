"""Wiring shared by the MCP and HTTP surfaces."""

import logging
from datetime import date
from typing import Optional, Union

import httpx

from .api_client import ApiClient
from .auth import AuthManager
from .cache import QueryCache
from .config import Settings
from .dates import order_view_date
from .errors import NotAuthenticatedError
from .grandcentral_client import GrandCentralClient
from .notifications import BufferedToastSink, Notifier, Toast
from .otp import OtpHandshake
from .payment import PaymentSession
from .reconciliation import CartSession, CartView

logger = logging.getLogger(__name__)


class Runtime:
    """Everything one device session needs, wired together."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        current: Optional[date] = None,
    ) -> None:
        """
        Initialize the runtime.

        Args:
            settings: Client settings
            transport: Optional httpx transport override, used by tests
            current: Override for "today", used by tests
        """
        self.settings = settings
        self.current = current
        self.auth_manager = AuthManager(settings.session_file)
        if self.auth_manager.language != settings.language:
            self.auth_manager.set_language(settings.language)
        self.api = ApiClient(settings, self.auth_manager, transport=transport)
        self.cache = QueryCache()
        self.client = GrandCentralClient(self.api, self.cache)
        self.toasts = BufferedToastSink()
        self.notifier = Notifier(self.toasts)
        self.cart = CartSession(self.client, self.auth_manager, self.notifier, current=current)
        self.handshake = OtpHandshake(self.client, self.auth_manager, self.notifier)
        self.payment: Optional[PaymentSession] = None

    @classmethod
    def from_env(cls) -> "Runtime":
        return cls(Settings.from_env())

    def require_employee_id(self) -> int:
        """
        Raises:
            NotAuthenticatedError: If no token or employee ID is stored
        """
        if not self.auth_manager.is_authenticated():
            raise NotAuthenticatedError("Not authenticated. Please log in with an OTP first.")
        return self.auth_manager.get_employee_id()

    def drain_toasts(self) -> list[Toast]:
        return self.toasts.drain()

    async def send_otp(
        self,
        login_id: Optional[str] = None,
        password: Optional[str] = None,
        method: Optional[str] = None,
    ) -> bool:
        """Request a code, falling back to the configured credentials."""
        login_id = login_id or self.settings.login_id or ""
        password = password or self.settings.password or ""
        if method is None:
            method = "email" if "@" in login_id else "phone"
        return await self.handshake.send_otp(login_id, password, method)

    async def verify_otp(self, code: str) -> bool:
        verified = await self.handshake.verify(code)
        if verified:
            await self.cart.ensure_preorder_limit()
            await self.cart.refresh()
        return verified

    def logout(self) -> None:
        self.handshake.logout()
        self.cart.view = None
        self.payment = None

    async def select_date(self, value: Union[date, str]) -> Optional[CartView]:
        self.require_employee_id()
        return await self.cart.select_date(value)

    async def order_date(self, value: Optional[str] = None) -> date:
        """
        Resolve the date for the orders views; defaults to today.

        Raises:
            ValueError: If ``value`` is not a valid date
        """
        max_date = await self.cart.ensure_preorder_limit()
        return order_view_date(value, self.current, max_date)

    async def close(self) -> None:
        await self.client.close()
