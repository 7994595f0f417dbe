"""Data models for Grand Central Bakery and Kitchen entities."""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Optional, Union

from pydantic import (
    AliasChoices,
    BeforeValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .dates import parse_date


def to_amount(value: Any) -> Optional[str]:
    """Normalise a decimal-as-string amount; numbers become strings."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Amount cannot be a boolean")
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return str(value).strip()


def amount_value(value: Optional[str]) -> float:
    """Parse an amount string for arithmetic; unparseable or non-finite values count as 0."""
    if value is None or value == "":
        return 0.0
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return 0.0
    if not number.is_finite():
        return 0.0
    return float(number)


Amount = Annotated[str, BeforeValidator(to_amount)]
OptionalAmount = Annotated[Optional[str], BeforeValidator(to_amount)]


class ApiModel(BaseModel):
    """Base for server payloads: unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Envelope(ApiModel):
    """Standard ``{success, data, message, errors}`` response wrapper."""

    success: bool = Field(default=False, description="Whether the call succeeded")
    data: Any = Field(None, description="Endpoint-specific payload")
    message: Optional[str] = Field(None, description="Human-readable message")
    errors: Optional[dict[str, Any]] = Field(None, description="Validation errors keyed by field")


class Department(ApiModel):
    """Product department (filter category)."""

    id: int
    name_en: Optional[str] = None
    name_ar: Optional[str] = None

    def display_name(self, language: str = "en") -> str:
        if language == "ar" and self.name_ar:
            return self.name_ar
        return self.name_en or self.name_ar or ""


class Product(ApiModel):
    """Catalog product."""

    id: int = Field(description="Product ID")
    name_en: Optional[str] = Field(None, validation_alias=AliasChoices("name_en", "name"))
    name_ar: Optional[str] = None
    description_en: Optional[str] = Field(
        None, validation_alias=AliasChoices("description_en", "description")
    )
    description_ar: Optional[str] = None
    price: Amount = Field(default="0", description="Price in QAR (decimal string)")
    offer_price: OptionalAmount = Field(None, description="Discounted price, if any")
    stock: int = Field(default=0, description="Units in stock")
    department_id: Optional[int] = None
    department: Optional[Department] = None
    is_wishlisted: bool = Field(default=False, description="Wishlisted by the current employee")
    image: Optional[str] = Field(None, description="Image path relative to the API host")

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @property
    def effective_price(self) -> str:
        """Offer price when one is set and positive, otherwise the list price."""
        if self.offer_price and amount_value(self.offer_price) > 0:
            return self.offer_price
        return self.price

    def display_name(self, language: str = "en") -> str:
        if language == "ar" and self.name_ar:
            return self.name_ar
        return self.name_en or self.name_ar or f"Product {self.id}"


class CartItem(ApiModel):
    """Line item of a date-scoped cart."""

    product_id: int
    quantity: int = Field(ge=1, description="Quantity of the product")
    price: Amount = Field(default="0", description="Unit price (decimal string)")
    product_name: Optional[str] = None
    product_name_ar: Optional[str] = None
    department: Optional[Union[Department, str]] = None
    department_name: Optional[str] = None
    image: Optional[str] = None

    @property
    def line_total(self) -> float:
        return amount_value(self.price) * self.quantity

    def display_name(self, language: str = "en") -> str:
        if language == "ar" and self.product_name_ar:
            return self.product_name_ar
        return self.product_name or self.product_name_ar or f"Product {self.product_id}"


class Cart(ApiModel):
    """Cart for one ``(employee_id, preorder_date)`` pair."""

    cart_id: int = Field(validation_alias=AliasChoices("cart_id", "id"))
    employee_id: Optional[int] = None
    preorder_date: Optional[str] = None
    subtotal: OptionalAmount = "0"
    daily_allowance: OptionalAmount = None
    remaining_allowance: OptionalAmount = None
    used_allowance: OptionalAmount = None
    extra_payment: OptionalAmount = None
    items: list[CartItem] = Field(default_factory=list)

    @field_validator("subtotal", mode="after")
    @classmethod
    def _subtotal_default(cls, value: Optional[str]) -> str:
        return value or "0"

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def find_item(self, product_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None


class CartList(ApiModel):
    """Payload of ``/employee/cart/get``."""

    carts: list[Cart] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _single_cart(cls, data: Any) -> Any:
        # Some deployments answer with {"cart": {...} | null} instead of a list.
        if data is None:
            return {"carts": []}
        if isinstance(data, list):
            return {"carts": data}
        if isinstance(data, dict) and "carts" not in data and "cart" in data:
            cart = data.get("cart")
            return {"carts": [cart] if cart else []}
        return data

    @property
    def current(self) -> Optional[Cart]:
        return self.carts[0] if self.carts else None


class AllowanceSnapshot(ApiModel):
    """Allowance numbers from ``/employee/allowance/:id``."""

    daily_meal_allowance: OptionalAmount = None
    remaining_allowance: OptionalAmount = None
    used_allowance: OptionalAmount = None


class AllowanceUsage(ApiModel):
    """Today's allowance usage with the orders that consumed it."""

    daily_meal_allowance: OptionalAmount = None
    remaining_allowance_today: OptionalAmount = None
    total_allowance_used_today: OptionalAmount = None
    orders: list[dict[str, Any]] = Field(default_factory=list)


class OrderItem(ApiModel):
    """Line item captured when the order was placed."""

    id: Optional[int] = None
    product_id: Optional[int] = None
    item_name: Optional[str] = None
    quantity: int = 1
    price: OptionalAmount = None
    item_grand_total: OptionalAmount = None
    product: Optional[dict[str, Any]] = None

    def display_name(self, language: str = "en") -> str:
        product = self.product or {}
        if language == "ar" and product.get("name_ar"):
            return product["name_ar"]
        return self.item_name or product.get("name_en") or f"Product {self.product_id}"


class Order(ApiModel):
    """Placed order."""

    id: int = Field(validation_alias=AliasChoices("id", "order_id"))
    unique_id: Optional[str] = None
    order_date: Optional[str] = Field(
        None, validation_alias=AliasChoices("order_date", "preorder_date")
    )
    grand_total: OptionalAmount = None
    allowance_used: OptionalAmount = None
    extra_payment: OptionalAmount = None
    tracking_status_text: Optional[str] = None
    payment_status_text: Optional[str] = None
    items: list[OrderItem] = Field(default_factory=list)

    @field_validator("unique_id", mode="before")
    @classmethod
    def _unique_id_str(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class OrderList(ApiModel):
    """Payload of the order listing endpoints."""

    orders: list[Order] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _plain_list(cls, data: Any) -> Any:
        if data is None:
            return {"orders": []}
        if isinstance(data, list):
            return {"orders": data}
        return data


class PaymentDetails(ApiModel):
    """Payment handoff data returned by ``place-order``."""

    order_id: int
    unique_id: Optional[str] = None
    extra_payment: OptionalAmount = None
    allowance_used: OptionalAmount = None
    payment_url: Optional[str] = None

    @field_validator("unique_id", mode="before")
    @classmethod
    def _unique_id_str(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class PlaceOrderResult(ApiModel):
    """Response of ``/employee/place-order``."""

    success: bool = False
    message: Optional[str] = None
    requires_payment: bool = False
    data: Optional[PaymentDetails] = None

    @property
    def payment_url(self) -> Optional[str]:
        return self.data.payment_url if self.data else None


class PreorderSettings(ApiModel):
    """Response of ``/settings/preorder-limit`` (not wrapped in an envelope)."""

    success: bool = True
    preorder_limit_weeks: Optional[int] = None
    max_preorder_date: Optional[str] = None

    @property
    def max_date(self) -> Optional[date]:
        if not self.max_preorder_date:
            return None
        return parse_date(self.max_preorder_date)


class Employee(ApiModel):
    """Employee record as returned by the auth and profile endpoints."""

    id: int
    employer_id: Optional[int] = None
    employee_code: Optional[str] = None
    name_en: Optional[str] = None
    name_ar: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    photo: Optional[str] = None
    designation: Optional[str] = None
    daily_meal_allowance: OptionalAmount = None
    remaining_allowance: OptionalAmount = None

    @property
    def name(self) -> str:
        return self.name_en or self.name_ar or ""


class Employer(ApiModel):
    id: int
    name_en: Optional[str] = Field(None, validation_alias=AliasChoices("name_en", "name"))
    name_ar: Optional[str] = None


class SendOtpResult(ApiModel):
    """Response of ``/employee/send-otp``."""

    success: bool = False
    message: Optional[str] = None
    employee_id: Optional[int] = None
    otp: Optional[str] = Field(None, description="Only returned by development backends")


class VerifyOtpResult(ApiModel):
    """Response of ``/employee/verify-otp``; token and employee sit at the top level."""

    success: bool = True
    message: Optional[str] = None
    token: Optional[str] = None
    employee: Optional[Employee] = None
    employee_id: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_nested(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            nested = data["data"]
            data = dict(data)
            for key in ("token", "employee", "employee_id"):
                if data.get(key) is None and nested.get(key) is not None:
                    data[key] = nested[key]
        return data

    @property
    def resolved_employee_id(self) -> Optional[int]:
        if self.employee is not None:
            return self.employee.id
        return self.employee_id


class Offer(ApiModel):
    id: int
    name_en: Optional[str] = None
    name_ar: Optional[str] = None
    offer_value: OptionalAmount = None
    image_en: Optional[str] = None
    image_ar: Optional[str] = None


class LoyaltyEntry(ApiModel):
    id: int
    points_earned: float = 0
    created_at: Optional[str] = None
    order: Optional[dict[str, Any]] = None


class LoyaltyPoints(ApiModel):
    total_loyalty_points: float = 0
    points_history: list[LoyaltyEntry] = Field(default_factory=list)


class Notification(ApiModel):
    id: int
    title: str = ""
    message: Optional[str] = None
    type: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def is_feedback_request(self) -> bool:
        return self.type == "feedback" or "how was" in self.title.lower()


class NotificationList(ApiModel):
    notifications: list[Notification] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _plain_list(cls, data: Any) -> Any:
        if data is None:
            return {"notifications": []}
        if isinstance(data, list):
            return {"notifications": data}
        return data


class Message(ApiModel):
    id: int
    message: str = ""
    subject: Optional[str] = None
    is_read: int = 0
    created_at: Optional[str] = None


class AboutInfo(ApiModel):
    about_en: Optional[str] = None
    about_ar: Optional[str] = None


class TermsInfo(ApiModel):
    terms_en: Optional[str] = None
    terms_ar: Optional[str] = None


class ContactInfo(ApiModel):
    phone: Optional[str] = None
    mobile: Optional[str] = None
    address_en: Optional[str] = None
    address_ar: Optional[str] = None
    whatsapp_no: Optional[str] = None
    email: Optional[str] = None


class SessionData(BaseModel):
    """Persisted device state, stored under the app's storage keys."""

    model_config = ConfigDict(populate_by_name=True)

    auth_token: Optional[str] = Field(None, alias="@auth_token", description="Opaque bearer token")
    user_data: Optional[dict[str, Any]] = Field(None, alias="@user_data", description="Cached employee")
    employee_id: Optional[int] = Field(None, alias="@employee_id", description="Employee ID")
    language: str = Field(default="en", alias="@language", description="UI language")
    theme: str = Field(default="light", alias="@theme", description="UI theme")


class HomeSnapshot(BaseModel):
    """Everything the home view refreshes in one go."""

    profile: Optional[Employee] = None
    departments: list[Department] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    offers: list[Offer] = Field(default_factory=list)
    allowance: Optional[AllowanceSnapshot] = None

    @property
    def wishlisted(self) -> list[Product]:
        return [product for product in self.products if product.is_wishlisted]

    def products_in(self, department_id: int) -> list[Product]:
        return [product for product in self.products if product.department_id == department_id]
