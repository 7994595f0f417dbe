"""Date-scoped cart and allowance reconciliation."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

from .auth import AuthManager
from .dates import clamp_order_date, format_date, initial_order_date, parse_date, shift_date, tomorrow
from .errors import GrandCentralError, GuardRejection, StaleResponseError, error_message
from .grandcentral_client import ALLOWANCE_TAG, CART_TAG, GrandCentralClient
from .models import AllowanceSnapshot, Cart, CartItem, amount_value
from .notifications import Notifier
from .payment import CheckoutOutcome, CheckoutStatus, PaymentSession

logger = logging.getLogger(__name__)

CART_SLOT = "cart"
ALLOWANCE_SLOT = "allowance"

Number = Union[int, float, str, None]


def progress_percent(remaining: Number, daily: Number) -> float:
    """
    Fill percentage of the allowance progress bar.

    Returns:
        ``remaining / daily * 100`` clamped to ``[0, 100]``; 0 when ``daily <= 0``
    """
    daily_value = amount_value(None if daily is None else str(daily))
    if daily_value <= 0:
        return 0.0
    remaining_value = amount_value(None if remaining is None else str(remaining))
    return min(max(remaining_value / daily_value * 100, 0.0), 100.0)


@dataclass(frozen=True)
class CartView:
    """What the cart screen shows for one date."""

    preorder_date: date
    cart_id: Optional[int]
    items: tuple[CartItem, ...] = field(default_factory=tuple)
    subtotal: str = "0"
    daily_allowance: str = "0"
    remaining_allowance: str = "0"
    used_allowance: str = "0"
    extra_payment: str = "0"

    @property
    def progress(self) -> float:
        return progress_percent(self.remaining_allowance, self.daily_allowance)

    @property
    def can_checkout(self) -> bool:
        return self.cart_id is not None and len(self.items) > 0

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def find_item(self, product_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None


def build_cart_view(
    preorder_date: date,
    cart: Optional[Cart],
    allowance: Optional[AllowanceSnapshot],
) -> CartView:
    """
    Merge the date-scoped cart with the allowance endpoint.

    The allowance endpoint always reflects today, so the cart's own allowance
    fields win. An empty daily allowance also falls through to the endpoint;
    remaining and used only fall through when missing.
    """
    allowance = allowance or AllowanceSnapshot()
    if cart is None:
        return CartView(
            preorder_date=preorder_date,
            cart_id=None,
            daily_allowance=allowance.daily_meal_allowance or "0",
            remaining_allowance=_first_present(allowance.remaining_allowance),
            used_allowance=_first_present(allowance.used_allowance),
        )

    return CartView(
        preorder_date=preorder_date,
        cart_id=cart.cart_id,
        items=tuple(cart.items),
        subtotal=cart.subtotal or "0",
        daily_allowance=cart.daily_allowance or allowance.daily_meal_allowance or "0",
        remaining_allowance=_first_present(cart.remaining_allowance, allowance.remaining_allowance),
        used_allowance=_first_present(cart.used_allowance, allowance.used_allowance),
        extra_payment=cart.extra_payment or "0",
    )


def _first_present(*values: Optional[str]) -> str:
    for value in values:
        if value is not None:
            return value
    return "0"


class CartSession:
    """
    Cart state for the currently selected preorder date.

    Cart and allowance are always fetched together for the same date, and
    every mutation refetches both before it reports success.
    """

    def __init__(
        self,
        client: GrandCentralClient,
        auth_manager: AuthManager,
        notifier: Optional[Notifier] = None,
        preorder_date: Optional[Union[date, str]] = None,
        max_date: Optional[date] = None,
        current: Optional[date] = None,
    ) -> None:
        """
        Initialize the cart session.

        Args:
            client: Endpoint client
            auth_manager: Source of the employee ID
            notifier: Toast dispatcher
            preorder_date: Initial date, a date or ``YYYY-MM-DD``; defaults to tomorrow
            max_date: Last date a preorder may be placed for
            current: Override for "today", used by tests
        """
        self.client = client
        self.auth_manager = auth_manager
        self.notifier = notifier or Notifier()
        self.max_date = max_date
        self._current = current
        if isinstance(preorder_date, date):
            self.preorder_date = clamp_order_date(preorder_date, current, max_date)
        else:
            self.preorder_date = clamp_order_date(initial_order_date(preorder_date, current), current, max_date)
        self.view: Optional[CartView] = None
        self._limit_loaded = False

    @property
    def employee_id(self) -> Optional[int]:
        return self.auth_manager.get_employee_id()

    async def select_date(self, value: Union[date, str]) -> Optional[CartView]:
        """Switch to another preorder date and load it."""
        selected = parse_date(value) if isinstance(value, str) else value
        await self.ensure_preorder_limit()
        self._set_date(clamp_order_date(selected, self._current, self.max_date))
        logger.info(f"Selected preorder date {format_date(self.preorder_date)}")
        return await self.refresh()

    def _set_date(self, selected: date) -> None:
        if selected != self.preorder_date:
            # The previous date's cart must never be mutated under the new date.
            self.view = None
        self.preorder_date = selected

    async def next_day(self) -> Optional[CartView]:
        return await self.select_date(shift_date(self.preorder_date, 1))

    async def previous_day(self) -> Optional[CartView]:
        if self.preorder_date <= tomorrow(self._current):
            return self.view
        return await self.select_date(shift_date(self.preorder_date, -1))

    async def refresh(self, force: bool = False) -> Optional[CartView]:
        """
        Fetch cart and allowance for the selected date in parallel.

        Without an employee ID nothing is sent. A response overtaken by a
        newer date selection is dropped and the newer view is kept.
        """
        employee_id = self.employee_id
        if employee_id is None:
            logger.info("No employee ID, skipping cart refresh")
            self.view = None
            return None

        requested = self.preorder_date
        results = await asyncio.gather(
            self.client.get_cart(employee_id, requested, force=force, slot=CART_SLOT),
            self.client.get_allowance(employee_id, requested, force=force, slot=ALLOWANCE_SLOT),
            return_exceptions=True,
        )
        if any(isinstance(result, StaleResponseError) for result in results):
            logger.info(f"Dropped superseded cart response for {format_date(requested)}")
            return self.view
        for result in results:
            if isinstance(result, BaseException):
                raise result
        cart_list, allowance = results

        view = build_cart_view(requested, cart_list.current, allowance)
        self.view = view
        return view

    async def load_preorder_limit(self) -> Optional[date]:
        """Read the furthest preorder date from the server and re-clamp."""
        settings = await self.client.get_preorder_settings()
        self._limit_loaded = True
        try:
            self.max_date = settings.max_date
        except ValueError as e:
            logger.warning(f"Ignoring malformed preorder limit: {e}")
            return self.max_date
        self._set_date(clamp_order_date(self.preorder_date, self._current, self.max_date))
        return self.max_date

    async def ensure_preorder_limit(self) -> Optional[date]:
        """
        Load the preorder limit once per session.

        A failed lookup is logged and retried on the next date selection.
        """
        if self._limit_loaded:
            return self.max_date
        try:
            return await self.load_preorder_limit()
        except GrandCentralError as e:
            logger.warning(f"Could not load preorder limit: {e}")
            return self.max_date

    def _current_view(self) -> Optional[CartView]:
        if self.view is not None and self.view.preorder_date != self.preorder_date:
            return None
        return self.view

    async def _require_cart(self) -> tuple[int, int]:
        employee_id = self.employee_id
        if employee_id is None:
            raise GuardRejection("Please log in first")
        if self._current_view() is None:
            await self.refresh()
        view = self._current_view()
        if view is None or view.cart_id is None:
            raise GuardRejection("Your cart is empty")
        return employee_id, view.cart_id

    async def _reload_after_mutation(self) -> Optional[CartView]:
        self.client.invalidate(CART_TAG, ALLOWANCE_TAG)
        return await self.refresh(force=True)

    async def add_item(self, product_id: int, quantity: int = 1) -> bool:
        """
        Add a product to the cart for the selected date.

        Returns:
            True once the refetched cart reflects the change
        """
        employee_id = self.employee_id
        if employee_id is None:
            self.notifier.error("Please log in first")
            return False

        try:
            await self.client.add_to_cart(employee_id, product_id, quantity, self.preorder_date)
            await self._reload_after_mutation()
        except GrandCentralError as e:
            logger.error(f"Failed to add product {product_id}: {e}")
            self.notifier.error(error_message(e, "Failed to add to cart"))
            return False

        self.notifier.success("Added to cart")
        return True

    async def update_quantity(self, item: CartItem, delta: int) -> bool:
        """
        Change a line item's quantity by ``delta``.

        A result below 1 is ignored without any request; removal is
        ``remove_item``.
        """
        new_quantity = item.quantity + delta
        if new_quantity < 1:
            logger.info(f"Ignoring quantity change below 1 for product {item.product_id}")
            return False

        try:
            employee_id, cart_id = await self._require_cart()
            await self.client.update_cart_quantity(employee_id, cart_id, item.product_id, new_quantity)
            await self._reload_after_mutation()
        except GrandCentralError as e:
            logger.error(f"Failed to update product {item.product_id}: {e}")
            self.notifier.error(error_message(e, "Failed to update quantity"))
            return False
        return True

    async def remove_item(self, product_id: int) -> bool:
        try:
            employee_id, cart_id = await self._require_cart()
            await self.client.remove_from_cart(employee_id, cart_id, product_id)
            await self._reload_after_mutation()
        except GrandCentralError as e:
            logger.error(f"Failed to remove product {product_id}: {e}")
            self.notifier.error("Failed to remove item. Please try again.")
            return False

        self.notifier.success("Product removed from cart successfully!")
        return True

    async def checkout(self) -> CheckoutOutcome:
        """
        Place the order for the selected date.

        The server empties the cart as soon as the order is placed, also when
        an external payment is still pending.
        """
        employee_id = self.employee_id
        view = self._current_view()
        cart_id = view.cart_id if view else None
        if employee_id is None or cart_id is None:
            self.notifier.error("Unable to process checkout. Please try again.")
            return CheckoutOutcome(status=CheckoutStatus.FAILED)

        try:
            result = await self.client.place_order(employee_id, cart_id)
        except GrandCentralError as e:
            logger.error(f"Place order failed: {e}")
            self.notifier.error("Failed to place order. Please try again.")
            return CheckoutOutcome(status=CheckoutStatus.FAILED)

        if result.requires_payment and result.payment_url:
            details = result.data
            payment = PaymentSession(
                client=self.client,
                notifier=self.notifier,
                order_id=details.order_id,
                payment_url=details.payment_url,
                amount=details.extra_payment,
                employee_id=employee_id,
                preorder_date=self.preorder_date,
            )
            logger.info(f"Order {details.order_id} awaits payment of {details.extra_payment}")
            return CheckoutOutcome(
                status=CheckoutStatus.PAYMENT_REQUIRED,
                order_id=details.order_id,
                payment_url=details.payment_url,
                amount=details.extra_payment,
                navigate_to="PaymentWebView",
                payment=payment,
            )

        self.notifier.success("Order placed successfully!")
        try:
            await self.refresh(force=True)
        except GrandCentralError as e:
            logger.warning(f"Could not refresh allowance after placing order: {e}")
        return CheckoutOutcome(
            status=CheckoutStatus.PLACED,
            order_id=result.data.order_id if result.data else None,
            navigate_to="Home",
        )
