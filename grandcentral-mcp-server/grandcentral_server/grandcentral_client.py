"""Grand Central Bakery and Kitchen API client."""

import asyncio
import logging
from typing import Any, Optional, Union
from datetime import date

from .api_client import ApiClient
from .cache import QueryCache
from .dates import format_date, parse_date
from .errors import GuardRejection
from .models import (
    AboutInfo,
    AllowanceSnapshot,
    AllowanceUsage,
    CartList,
    ContactInfo,
    Department,
    Employee,
    Employer,
    Envelope,
    HomeSnapshot,
    LoyaltyPoints,
    Message,
    Notification,
    NotificationList,
    Offer,
    OrderList,
    PlaceOrderResult,
    PreorderSettings,
    Product,
    SendOtpResult,
    TermsInfo,
    VerifyOtpResult,
)

logger = logging.getLogger(__name__)

AUTH_TAG = "Auth"
CART_TAG = "Cart"
HOME_TAG = "Home"
ALLOWANCE_TAG = "Allowance"
ORDERS_TAG = "Orders"
MESSAGES_TAG = "Messages"
SETTINGS_TAG = "Settings"

# Every cart mutation changes the allowance numbers for that date too.
CART_MUTATION_TAGS = (CART_TAG, ALLOWANCE_TAG)

DateArg = Union[str, date]


def _date_arg(value: DateArg) -> str:
    if isinstance(value, str):
        value = parse_date(value)
    return format_date(value)


def _items(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    return []


class GrandCentralClient:
    """Typed access to the meal-ordering API with cached queries."""

    def __init__(self, api: ApiClient, cache: Optional[QueryCache] = None) -> None:
        """
        Initialize the client.

        Args:
            api: Shared HTTP client
            cache: Query cache; a private one is created when omitted
        """
        self.api = api
        self.cache = cache or QueryCache()

    def invalidate(self, *tags: str) -> int:
        return self.cache.invalidate_tags(*tags)

    # Auth

    async def register(self, payload: dict[str, Any]) -> Envelope:
        logger.info("=== REGISTER ===")
        result = await self.api.post("/employee/register", json=payload)
        self.invalidate(AUTH_TAG)
        return result

    async def send_otp(self, login_id: str, password: str) -> SendOtpResult:
        """
        Ask the server to dispatch an OTP for an email/phone + password pair.

        Returns:
            The server result, including the employee ID to verify against
        """
        logger.info(f"=== SEND OTP: login_id={login_id} ===")
        raw = await self.api.post(
            "/employee/send-otp",
            json={"login_id": login_id, "password": password},
            envelope=False,
        )
        return SendOtpResult.model_validate(raw)

    async def verify_otp(
        self, otp: str, identifier: str, employee_id: Optional[int] = None
    ) -> VerifyOtpResult:
        """
        Exchange a six-digit code for a token.

        The identifier is sent as ``email`` when it contains ``@``, otherwise
        as ``phone``.
        """
        logger.info(f"=== VERIFY OTP: identifier={identifier}, employee_id={employee_id} ===")
        body: dict[str, Any] = {"otp": otp}
        if "@" in identifier:
            body["email"] = identifier
        else:
            body["phone"] = identifier
        if employee_id is not None:
            body["employee_id"] = employee_id

        raw = await self.api.post("/employee/verify-otp", json=body, envelope=False)
        self.invalidate(AUTH_TAG)
        return VerifyOtpResult.model_validate(raw)

    async def employers(self) -> list[Employer]:
        async def fetch() -> list[Employer]:
            result = await self.api.get("/employers")
            return [Employer.model_validate(e) for e in _items(result.data)]

        return await self.cache.fetch("employers", None, (), fetch)

    # Cart

    async def get_cart(
        self,
        employee_id: int,
        preorder_date: DateArg,
        force: bool = False,
        slot: Optional[str] = None,
    ) -> CartList:
        """
        Get the carts for one preorder date.

        Args:
            employee_id: Employee ID
            preorder_date: ``YYYY-MM-DD`` string or date
            force: Skip the cache
            slot: Logical query name for generation stamping
        """
        args = {"employee_id": employee_id, "preorder_date": _date_arg(preorder_date)}

        async def fetch() -> CartList:
            logger.info(f"=== GET CART: {args} ===")
            result = await self.api.post("/employee/cart/get", json=args)
            cart_list = CartList.model_validate(result.data)
            current = cart_list.current
            logger.info(
                f"Cart: cart_id={current.cart_id if current else None}, "
                f"items={current.item_count if current else 0}"
            )
            return cart_list

        return await self.cache.fetch("getCartList", args, (CART_TAG,), fetch, force=force, slot=slot)

    async def add_to_cart(
        self, employee_id: int, product_id: int, quantity: int, preorder_date: DateArg
    ) -> Envelope:
        logger.info(f"=== ADD TO CART: product_id={product_id}, quantity={quantity}, date={preorder_date} ===")
        if quantity < 1:
            raise GuardRejection("Quantity must be at least 1")

        result = await self.api.post(
            "/employee/cart/add",
            json={
                "employee_id": employee_id,
                "product_id": product_id,
                "quantity": quantity,
                "preorder_date": _date_arg(preorder_date),
            },
        )
        self.invalidate(*CART_MUTATION_TAGS)
        return result

    async def update_cart_quantity(
        self, employee_id: int, cart_id: int, product_id: int, quantity: int
    ) -> Envelope:
        """
        Set a line item's quantity.

        Raises:
            GuardRejection: If ``quantity`` is below 1; use ``remove_from_cart``
        """
        logger.info(f"=== UPDATE CART: cart_id={cart_id}, product_id={product_id}, quantity={quantity} ===")
        if quantity < 1:
            raise GuardRejection("Quantity must be at least 1")

        result = await self.api.post(
            "/employee/cart/update",
            json={
                "employee_id": employee_id,
                "cart_id": cart_id,
                "product_id": product_id,
                "quantity": quantity,
            },
        )
        self.invalidate(*CART_MUTATION_TAGS)
        return result

    async def remove_from_cart(self, employee_id: int, cart_id: int, product_id: int) -> Envelope:
        logger.info(f"=== REMOVE FROM CART: cart_id={cart_id}, product_id={product_id} ===")
        result = await self.api.post(
            "/employee/cart/remove",
            json={"employee_id": employee_id, "cart_id": cart_id, "product_id": product_id},
        )
        self.invalidate(*CART_MUTATION_TAGS)
        return result

    async def place_order(self, employee_id: int, cart_id: int) -> PlaceOrderResult:
        """
        Turn a cart into an order.

        The server empties the cart as soon as this is called, even when the
        order still waits for an external payment.
        """
        logger.info(f"=== PLACE ORDER: employee_id={employee_id}, cart_id={cart_id} ===")
        raw = await self.api.post(
            "/employee/place-order",
            json={"employee_id": employee_id, "cart_id": cart_id},
            envelope=False,
        )
        self.invalidate(CART_TAG, HOME_TAG, ALLOWANCE_TAG)
        result = PlaceOrderResult.model_validate(raw)
        logger.info(f"Order placed: requires_payment={result.requires_payment}")
        return result

    # Allowance and settings

    async def get_allowance(
        self,
        employee_id: int,
        preorder_date: DateArg,
        force: bool = False,
        slot: Optional[str] = None,
    ) -> AllowanceSnapshot:
        """Allowance numbers for a date; the date travels as a form field."""
        args = {"employee_id": employee_id, "preorder_date": _date_arg(preorder_date)}

        async def fetch() -> AllowanceSnapshot:
            logger.info(f"=== GET ALLOWANCE: {args} ===")
            result = await self.api.post(
                f"/employee/allowance/{employee_id}",
                data={"preorder_date": args["preorder_date"]},
            )
            return AllowanceSnapshot.model_validate(result.data or {})

        return await self.cache.fetch(
            "getAllowances", args, (HOME_TAG, ALLOWANCE_TAG), fetch, force=force, slot=slot
        )

    async def get_preorder_settings(self, force: bool = False) -> PreorderSettings:
        async def fetch() -> PreorderSettings:
            raw = await self.api.get("/settings/preorder-limit", envelope=False)
            return PreorderSettings.model_validate(raw)

        return await self.cache.fetch("getPreorderSettings", None, (SETTINGS_TAG,), fetch, force=force)

    async def allowance_usage_today(self, employee_id: int, force: bool = False) -> AllowanceUsage:
        async def fetch() -> AllowanceUsage:
            result = await self.api.get(f"/employee/allowance-usage/today/{employee_id}")
            return AllowanceUsage.model_validate(result.data or {})

        return await self.cache.fetch(
            "getAllowanceUsage", {"employee_id": employee_id}, (HOME_TAG,), fetch, force=force
        )

    # Home

    async def profile(self, employee_id: int, force: bool = False) -> Employee:
        async def fetch() -> Employee:
            result = await self.api.get(f"/employee/profile/{employee_id}")
            return Employee.model_validate(result.data)

        return await self.cache.fetch("profile", {"id": employee_id}, (HOME_TAG,), fetch, force=force)

    async def update_profile(self, employee_id: int, fields: dict[str, Any]) -> Envelope:
        logger.info(f"=== UPDATE PROFILE: employee_id={employee_id}, fields={sorted(fields)} ===")
        form = {key: str(value) for key, value in fields.items() if value is not None}
        form["employee_id"] = str(employee_id)
        result = await self.api.post("/employee/profile/update", data=form)
        self.invalidate(HOME_TAG)
        return result

    async def departments(self, force: bool = False) -> list[Department]:
        async def fetch() -> list[Department]:
            result = await self.api.get("/departments")
            return [Department.model_validate(d) for d in _items(result.data)]

        return await self.cache.fetch("categories", None, (HOME_TAG,), fetch, force=force)

    async def products(
        self, employee_id: int, search_term: Optional[str] = None, force: bool = False
    ) -> list[Product]:
        body: dict[str, Any] = {"employee_id": employee_id}
        if search_term:
            body["search_term"] = search_term

        async def fetch() -> list[Product]:
            logger.info(f"=== PRODUCTS: {body} ===")
            result = await self.api.post("/products", json=body)
            products = [Product.model_validate(p) for p in _items(result.data)]
            logger.info(f"Found {len(products)} products")
            return products

        return await self.cache.fetch("products", body, (HOME_TAG,), fetch, force=force)

    async def offers(self, force: bool = False) -> list[Offer]:
        async def fetch() -> list[Offer]:
            result = await self.api.get("/products/offers")
            return [Offer.model_validate(o) for o in _items(result.data)]

        return await self.cache.fetch("offers", None, (HOME_TAG,), fetch, force=force)

    async def offer_products(self, offer_id: int, force: bool = False) -> list[Product]:
        async def fetch() -> list[Product]:
            result = await self.api.get(f"/products/offer/{offer_id}")
            return [Product.model_validate(p) for p in _items(result.data)]

        return await self.cache.fetch("offerProducts", {"id": offer_id}, (HOME_TAG,), fetch, force=force)

    async def loyalty_points(self, employee_id: int, force: bool = False) -> LoyaltyPoints:
        async def fetch() -> LoyaltyPoints:
            result = await self.api.get(f"/employee/loyalty-points/{employee_id}")
            return LoyaltyPoints.model_validate(result.data or {})

        return await self.cache.fetch(
            "getLoyaltyPoints", {"id": employee_id}, (HOME_TAG,), fetch, force=force
        )

    async def add_to_wishlist(self, employee_id: int, product_id: int) -> Envelope:
        result = await self.api.post(
            "/employee/wishlist/add", json={"employee_id": employee_id, "product_id": product_id}
        )
        self.invalidate(HOME_TAG)
        return result

    async def remove_from_wishlist(self, employee_id: int, product_id: int) -> Envelope:
        result = await self.api.post(
            "/employee/wishlist/remove", json={"employee_id": employee_id, "product_id": product_id}
        )
        self.invalidate(HOME_TAG)
        return result

    async def submit_feedback(
        self,
        employer_id: int,
        employee_id: int,
        product_id: int,
        feedback: str,
        rating: int,
        feedback_type: str,
        feedback_date: DateArg,
    ) -> Envelope:
        return await self.api.post(
            "/employee/feedback/save",
            json={
                "employer_id": employer_id,
                "employee_id": employee_id,
                "product_id": product_id,
                "feedback": feedback,
                "rating": rating,
                "feedback_type": feedback_type,
                "feedback_date": _date_arg(feedback_date),
            },
        )

    async def notifications(self, employee_id: int) -> list[Notification]:
        result = await self.api.get(f"/employee/notifications/{employee_id}")
        return NotificationList.model_validate(result.data).notifications

    async def refresh_home(
        self, employee_id: int, preorder_date: DateArg, include_allowance: bool = True
    ) -> HomeSnapshot:
        """
        Refetch everything the home view shows, concurrently.

        The allowance is only requested for an authenticated session.
        """
        logger.info(f"=== REFRESH HOME: employee_id={employee_id}, date={preorder_date} ===")
        calls = [
            self.profile(employee_id, force=True),
            self.departments(force=True),
            self.products(employee_id, force=True),
            self.offers(force=True),
        ]
        if include_allowance:
            calls.append(self.get_allowance(employee_id, preorder_date, force=True))

        results = await asyncio.gather(*calls)
        return HomeSnapshot(
            profile=results[0],
            departments=results[1],
            products=results[2],
            offers=results[3],
            allowance=results[4] if include_allowance else None,
        )

    # Orders

    async def pending_orders(self, employee_id: int, order_date: DateArg) -> OrderList:
        result = await self.api.post(
            "/employee/orders/pending/by-date",
            json={"employee_id": employee_id, "order_date": _date_arg(order_date)},
        )
        return OrderList.model_validate(result.data)

    async def orders_by_date(self, employee_id: int, order_date: DateArg) -> OrderList:
        logger.info(f"=== GET ORDERS: employee_id={employee_id}, date={order_date} ===")
        result = await self.api.post(
            "/employee/orders/by-date",
            json={"employee_id": employee_id, "order_date": _date_arg(order_date)},
        )
        orders = OrderList.model_validate(result.data)
        logger.info(f"Found {len(orders.orders)} orders")
        return orders

    async def order_history(self, employee_id: int, on_date: Optional[DateArg] = None) -> OrderList:
        body: dict[str, Any] = {"employee_id": employee_id}
        if on_date is not None:
            body["date"] = _date_arg(on_date)
        result = await self.api.post("/employee/orders/history", json=body)
        return OrderList.model_validate(result.data)

    async def repeat_order(self, employee_id: int, order_id: int, preorder_date: DateArg) -> Envelope:
        """Copy a past order's items into the cart for ``preorder_date``."""
        logger.info(f"=== REPEAT ORDER: order_id={order_id}, date={preorder_date} ===")
        result = await self.api.post(
            "/employee/order/repeat",
            json={
                "employee_id": employee_id,
                "order_id": order_id,
                "preorder_date": _date_arg(preorder_date),
            },
        )
        self.invalidate(CART_TAG, ALLOWANCE_TAG, ORDERS_TAG)
        return result

    # Messages

    async def messages(self, employee_id: int, force: bool = False) -> list[Message]:
        async def fetch() -> list[Message]:
            result = await self.api.post(
                "/employee/messages/conversations", json={"employee_id": employee_id}
            )
            return [Message.model_validate(m) for m in _items(result.data)]

        return await self.cache.fetch(
            "getMessages", {"employee_id": employee_id}, (MESSAGES_TAG,), fetch, force=force
        )

    async def send_message(
        self,
        employee_id: int,
        employer_id: int,
        message: str,
        subject: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Envelope:
        if not message.strip():
            raise GuardRejection("Message cannot be empty")

        body: dict[str, Any] = {
            "employee_id": employee_id,
            "employer_id": employer_id,
            "message": message,
            "subject": subject,
            "status": 1,
            "is_read": 0,
        }
        if location:
            body["location"] = location
        result = await self.api.post("/employee/message/save", json=body)
        self.invalidate(MESSAGES_TAG)
        return result

    # Static content

    async def about(self) -> AboutInfo:
        result = await self.api.get("/about")
        return AboutInfo.model_validate(result.data or {})

    async def terms(self) -> TermsInfo:
        result = await self.api.get("/terms")
        return TermsInfo.model_validate(result.data or {})

    async def contact(self) -> ContactInfo:
        result = await self.api.get("/contact")
        return ContactInfo.model_validate(result.data or {})

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.api.aclose()
