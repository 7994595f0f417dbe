"""HTTP server for Grand Central MCP Server."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .dates import format_date
from .errors import GrandCentralError, GuardRejection, NotAuthenticatedError, error_message
from .notifications import Toast
from .payment import CheckoutStatus, PaymentResult
from .reconciliation import CartView
from .runtime import Runtime

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("grandcentral-http-server")

# Global state
runtime: Optional[Runtime] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global runtime

    # Startup
    logger.info("Starting Grand Central HTTP Server...")
    if runtime is None:
        runtime = Runtime.from_env()

    yield

    # Shutdown
    logger.info("Shutting down Grand Central HTTP Server...")
    await runtime.close()


app = FastAPI(
    title="Grand Central MCP Server",
    description="HTTP API for ordering meals from Grand Central Bakery and Kitchen",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/Response Models
class SendOtpRequest(BaseModel):
    login_id: Optional[str] = None
    password: Optional[str] = None
    method: Optional[str] = Field(None, pattern="^(email|phone)$")


class VerifyOtpRequest(BaseModel):
    code: str


class ActionResponse(BaseModel):
    success: bool
    message: str
    toasts: list[Toast] = Field(default_factory=list)


class SearchRequest(BaseModel):
    query: Optional[str] = None


class AddToCartRequest(BaseModel):
    product_id: int
    quantity: int = 1
    date: Optional[str] = None


class UpdateCartRequest(BaseModel):
    product_id: int
    quantity: int


class RemoveFromCartRequest(BaseModel):
    product_id: int


class NavigationRequest(BaseModel):
    url: str


class CancelPaymentRequest(BaseModel):
    confirm: bool = False


class HistoryRequest(BaseModel):
    date: Optional[str] = None


def get_runtime() -> Runtime:
    if runtime is None:
        raise HTTPException(status_code=503, detail="Server is starting")
    return runtime


def require_employee_id() -> int:
    try:
        return get_runtime().require_employee_id()
    except NotAuthenticatedError as e:
        raise HTTPException(status_code=401, detail=e.message)


def to_http_error(e: GrandCentralError) -> HTTPException:
    if isinstance(e, NotAuthenticatedError):
        return HTTPException(status_code=401, detail=e.message)
    if isinstance(e, GuardRejection):
        return HTTPException(status_code=400, detail=e.message)
    return HTTPException(status_code=502, detail=error_message(e))


def cart_payload(view: Optional[CartView]) -> dict[str, Any]:
    toasts = get_runtime().drain_toasts()
    if view is None:
        return {"cart": None, "toasts": toasts}
    return {
        "cart": {
            "preorder_date": format_date(view.preorder_date),
            "cart_id": view.cart_id,
            "items": [item.model_dump() for item in view.items],
            "subtotal": view.subtotal,
            "daily_allowance": view.daily_allowance,
            "remaining_allowance": view.remaining_allowance,
            "used_allowance": view.used_allowance,
            "extra_payment": view.extra_payment,
            "progress": view.progress,
            "can_checkout": view.can_checkout,
        },
        "toasts": toasts,
    }


def action_response(success: bool, message: str) -> ActionResponse:
    return ActionResponse(success=success, message=message, toasts=get_runtime().drain_toasts())


def payment_payload(result: PaymentResult) -> dict[str, Any]:
    return {**result.model_dump(), "toasts": get_runtime().drain_toasts()}


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Grand Central MCP Server",
        "version": "0.1.0",
        "description": "HTTP API for ordering meals from Grand Central Bakery and Kitchen",
        "mcp_compatible": True,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": {
                "send_otp": "POST /auth/send-otp",
                "verify_otp": "POST /auth/verify-otp",
                "logout": "POST /auth/logout",
                "status": "GET /auth/status",
            },
            "products": {"search": "POST /products/search"},
            "cart": {
                "get": "GET /cart?date=YYYY-MM-DD",
                "add": "POST /cart/add",
                "update": "POST /cart/update",
                "remove": "POST /cart/remove",
                "checkout": "POST /cart/checkout",
            },
            "payment": {"navigation": "POST /payment/navigation", "cancel": "POST /payment/cancel"},
            "orders": {"by_date": "GET /orders?date=YYYY-MM-DD", "history": "POST /orders/history"},
        },
        "authenticated": runtime.auth_manager.is_authenticated() if runtime else False,
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "authenticated": runtime.auth_manager.is_authenticated() if runtime else False,
    }


# Authentication endpoints
@app.post("/auth/send-otp", response_model=ActionResponse)
async def send_otp(request: SendOtpRequest):
    """Request a login code."""
    rt = get_runtime()
    sent = await rt.send_otp(request.login_id, request.password, request.method)
    if sent:
        return action_response(True, f"Code sent to {rt.handshake.identifier}")
    return action_response(False, "Could not send the code")


@app.post("/auth/verify-otp", response_model=ActionResponse)
async def verify_otp(request: VerifyOtpRequest):
    """Verify the code and store the session."""
    rt = get_runtime()
    try:
        verified = await rt.verify_otp(request.code)
    except GrandCentralError as e:
        raise to_http_error(e)
    if verified:
        return action_response(True, f"Logged in as employee {rt.auth_manager.get_employee_id()}")
    return action_response(False, "Verification failed")


@app.post("/auth/logout", response_model=ActionResponse)
async def logout():
    """Logout and clear the stored session."""
    get_runtime().logout()
    return action_response(True, "Successfully logged out")


@app.get("/auth/status")
async def auth_status():
    """Get authentication status."""
    rt = get_runtime()
    return {
        "authenticated": rt.auth_manager.is_authenticated(),
        "employee_id": rt.auth_manager.get_employee_id(),
        "login_step": rt.handshake.state.value,
        "preorder_date": format_date(rt.cart.preorder_date),
        "language": rt.auth_manager.language,
    }


# Product endpoints
@app.post("/products/search")
async def search_products(request: SearchRequest):
    """Search the menu."""
    employee_id = require_employee_id()
    try:
        products = await get_runtime().client.products(employee_id, search_term=request.query)
    except GrandCentralError as e:
        logger.error(f"Search error: {e}")
        raise to_http_error(e)
    return {"products": [product.model_dump() for product in products], "count": len(products)}


# Cart endpoints
@app.get("/cart")
async def get_cart(date: Optional[str] = None):
    """Get the cart and allowance for a preorder date."""
    require_employee_id()
    rt = get_runtime()
    try:
        if date:
            view = await rt.cart.select_date(date)
        else:
            view = await rt.cart.refresh()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GrandCentralError as e:
        logger.error(f"Get cart error: {e}")
        raise to_http_error(e)
    return cart_payload(view)


@app.post("/cart/add")
async def add_to_cart(request: AddToCartRequest):
    """Add a product to the cart."""
    require_employee_id()
    rt = get_runtime()
    if request.quantity < 1:
        raise HTTPException(status_code=400, detail="Quantity must be at least 1")
    try:
        if request.date:
            await rt.cart.select_date(request.date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GrandCentralError as e:
        raise to_http_error(e)

    if not await rt.cart.add_item(request.product_id, request.quantity):
        raise HTTPException(status_code=502, detail=f"Failed to add product {request.product_id} to cart")
    return cart_payload(rt.cart.view)


@app.post("/cart/update")
async def update_cart(request: UpdateCartRequest):
    """Set a cart item's quantity."""
    require_employee_id()
    rt = get_runtime()
    if request.quantity < 1:
        raise HTTPException(status_code=400, detail="Quantity must be at least 1")
    try:
        view = rt.cart.view or await rt.cart.refresh()
    except GrandCentralError as e:
        raise to_http_error(e)
    item = view.find_item(request.product_id) if view else None
    if item is None:
        raise HTTPException(status_code=404, detail=f"Product {request.product_id} is not in the cart")

    if not await rt.cart.update_quantity(item, request.quantity - item.quantity):
        raise HTTPException(status_code=502, detail=f"Failed to update product {request.product_id}")
    return cart_payload(rt.cart.view)


@app.post("/cart/remove")
async def remove_from_cart(request: RemoveFromCartRequest):
    """Remove a product from the cart."""
    require_employee_id()
    rt = get_runtime()
    if not await rt.cart.remove_item(request.product_id):
        raise HTTPException(status_code=502, detail=f"Failed to remove product {request.product_id}")
    return cart_payload(rt.cart.view)


@app.post("/cart/checkout")
async def checkout():
    """Place the order for the selected date."""
    require_employee_id()
    rt = get_runtime()
    try:
        if rt.cart.view is None:
            await rt.cart.refresh()
    except GrandCentralError as e:
        raise to_http_error(e)

    outcome = await rt.cart.checkout()
    if outcome.status == CheckoutStatus.FAILED:
        raise HTTPException(status_code=502, detail="Failed to place order")
    if outcome.status == CheckoutStatus.PAYMENT_REQUIRED:
        rt.payment = outcome.payment
    return {**outcome.model_dump(exclude={"payment"}), "toasts": rt.drain_toasts()}


# Payment endpoints
@app.post("/payment/navigation")
async def payment_navigation(request: NavigationRequest):
    """Report a URL the payment page navigated to."""
    rt = get_runtime()
    if rt.payment is None:
        raise HTTPException(status_code=409, detail="No payment in progress")
    return payment_payload(await rt.payment.on_navigation(request.url))


@app.post("/payment/cancel")
async def cancel_payment(request: CancelPaymentRequest):
    """Cancel the payment in progress; requires confirm=true."""
    rt = get_runtime()
    if rt.payment is None:
        raise HTTPException(status_code=409, detail="No payment in progress")
    result = await rt.payment.request_cancel(lambda title, message: request.confirm)
    return payment_payload(result)


# Order endpoints
@app.get("/orders")
async def get_orders(date: Optional[str] = None, pending_only: bool = False):
    """List orders for a date (default: today)."""
    employee_id = require_employee_id()
    rt = get_runtime()
    try:
        order_date = await rt.order_date(date)
        if pending_only:
            orders = await rt.client.pending_orders(employee_id, order_date)
        else:
            orders = await rt.client.orders_by_date(employee_id, order_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GrandCentralError as e:
        logger.error(f"Get orders error: {e}")
        raise to_http_error(e)
    return {"orders": [order.model_dump() for order in orders.orders], "count": len(orders.orders)}


@app.post("/orders/history")
async def order_history(request: HistoryRequest):
    """List past orders."""
    employee_id = require_employee_id()
    try:
        rt = get_runtime()
        on_date = await rt.order_date(request.date) if request.date else None
        orders = await rt.client.order_history(employee_id, on_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GrandCentralError as e:
        logger.error(f"Order history error: {e}")
        raise to_http_error(e)
    return {"orders": [order.model_dump() for order in orders.orders], "count": len(orders.orders)}


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the HTTP server."""
    import uvicorn

    if reload:
        uvicorn.run("grandcentral_server.http_server:app", host=host, port=port, reload=True, log_level="info")
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
