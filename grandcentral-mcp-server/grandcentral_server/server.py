"""MCP Server for Grand Central Bakery and Kitchen meal ordering."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .dates import display_date, format_date
from .errors import GrandCentralError, NotAuthenticatedError, error_message
from .models import OrderList
from .payment import CheckoutStatus
from .reconciliation import CartView
from .runtime import Runtime

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("grandcentral-mcp-server")

# Initialize server
app = Server("grandcentral-mcp-server")

# Global state
runtime: Runtime

NOT_AUTHENTICATED = "Error: Not authenticated. Use grandcentral_send_otp and grandcentral_verify_otp first."


def format_cart(view: Optional[CartView], language: str = "en") -> str:
    """Render a cart view as readable text."""
    if view is None:
        return "No cart loaded"

    lines = [f"Cart for {display_date(view.preorder_date)} ({format_date(view.preorder_date)})"]
    if not view.items:
        lines.append("\nYour cart is empty")
    else:
        lines.append(f"Cart ID: {view.cart_id}, {view.item_count} item(s):")
        for i, item in enumerate(view.items, 1):
            lines.append(f"\n{i}. {item.display_name(language)}")
            lines.append(f"   Product ID: {item.product_id}")
            lines.append(f"   Price: QAR {item.price}")
            lines.append(f"   Quantity: {item.quantity}")

    lines.append(f"\n{'=' * 50}")
    lines.append(f"Subtotal: QAR {view.subtotal}")
    lines.append(f"Daily allowance: QAR {view.daily_allowance}")
    lines.append(f"Used allowance: QAR {view.used_allowance}")
    lines.append(f"Remaining allowance: QAR {view.remaining_allowance} ({view.progress:.0f}%)")
    lines.append(f"Extra payment: QAR {view.extra_payment}")
    return "\n".join(lines)


def format_orders(orders: OrderList, language: str = "en") -> str:
    if not orders.orders:
        return "No orders found"

    lines = [f"Found {len(orders.orders)} order(s):\n"]
    for i, order in enumerate(orders.orders, 1):
        lines.append(f"\n{i}. Order #{order.unique_id or order.id}")
        if order.order_date:
            lines.append(f"   Date: {order.order_date}")
        if order.tracking_status_text:
            lines.append(f"   Status: {order.tracking_status_text}")
        if order.payment_status_text:
            lines.append(f"   Payment: {order.payment_status_text}")
        lines.append(f"   Total: QAR {order.grand_total or '0'}")
        lines.append(f"   Allowance used: QAR {order.allowance_used or '0'}")
        if order.items:
            lines.append(f"   Items ({len(order.items)}):")
            for item in order.items:
                lines.append(f"     - {item.display_name(language)} x{item.quantity}")
    return "\n".join(lines)


def respond(text: str) -> list[TextContent]:
    """Wrap text, appending any toasts raised while handling the call."""
    toasts = runtime.drain_toasts()
    if toasts:
        text = text + "\n\n" + "\n".join(str(toast) for toast in toasts)
    return [TextContent(type="text", text=text)]


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = []

    # If authenticated, provide cart and allowance as resources
    if runtime.auth_manager.is_authenticated():
        resources.extend(
            [
                Resource(
                    uri=AnyUrl("grandcentral://cart"),
                    name="Cart",
                    mimeType="application/json",
                    description="Cart for the selected preorder date",
                ),
                Resource(
                    uri=AnyUrl("grandcentral://allowance"),
                    name="Allowance",
                    mimeType="application/json",
                    description="Meal allowance for the selected preorder date",
                ),
            ]
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "grandcentral://cart":
        if not runtime.auth_manager.is_authenticated():
            return "Error: Not authenticated. Please login first."

        view = await runtime.cart.refresh()
        if view is None:
            return json.dumps(None)
        return json.dumps(
            {
                "preorder_date": format_date(view.preorder_date),
                "cart_id": view.cart_id,
                "items": [item.model_dump() for item in view.items],
                "subtotal": view.subtotal,
                "extra_payment": view.extra_payment,
            },
            indent=2,
            default=str,
        )

    elif uri_str == "grandcentral://allowance":
        if not runtime.auth_manager.is_authenticated():
            return "Error: Not authenticated. Please login first."

        view = await runtime.cart.refresh()
        if view is None:
            return json.dumps(None)
        return json.dumps(
            {
                "preorder_date": format_date(view.preorder_date),
                "daily_allowance": view.daily_allowance,
                "remaining_allowance": view.remaining_allowance,
                "used_allowance": view.used_allowance,
                "progress": view.progress,
            },
            indent=2,
        )

    raise ValueError(f"Unknown resource: {uri}")


DATE_PROPERTY = {
    "type": "string",
    "description": "Preorder date (YYYY-MM-DD). Defaults to the selected date.",
}


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="grandcentral_send_otp",
            description="Request a login code. Uses GRANDCENTRAL_LOGIN_ID and GRANDCENTRAL_PASSWORD if not provided.",
            inputSchema={
                "type": "object",
                "properties": {
                    "login_id": {
                        "type": "string",
                        "description": "Email address or 8-digit phone number",
                    },
                    "password": {
                        "type": "string",
                        "description": "Account password (at least 6 characters)",
                    },
                    "method": {
                        "type": "string",
                        "enum": ["email", "phone"],
                        "description": "Login method; inferred from login_id when omitted",
                    },
                },
            },
        ),
        Tool(
            name="grandcentral_verify_otp",
            description="Verify the 6-digit code sent by grandcentral_send_otp and store the session",
            inputSchema={
                "type": "object",
                "properties": {
                    "code": {"type": "string", "description": "6-digit code"},
                },
                "required": ["code"],
            },
        ),
        Tool(
            name="grandcentral_logout",
            description="Logout and clear the stored session",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="grandcentral_status",
            description="Show login state, employee and selected preorder date",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="grandcentral_search_products",
            description="Search the menu by product name",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search term (optional)"},
                },
            },
        ),
        Tool(
            name="grandcentral_get_cart",
            description="Show the cart and allowance for a preorder date",
            inputSchema={"type": "object", "properties": {"date": DATE_PROPERTY}},
        ),
        Tool(
            name="grandcentral_select_date",
            description="Select the preorder date (tomorrow or later) or step a day forward/back",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": DATE_PROPERTY,
                    "step": {
                        "type": "string",
                        "enum": ["next", "previous"],
                        "description": "Move one day instead of giving a date",
                    },
                },
            },
        ),
        Tool(
            name="grandcentral_add_to_cart",
            description="Add a product to the cart for the selected preorder date",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "integer", "description": "Product ID"},
                    "quantity": {
                        "type": "integer",
                        "description": "Quantity (default: 1)",
                        "default": 1,
                        "minimum": 1,
                    },
                    "date": DATE_PROPERTY,
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="grandcentral_update_cart_quantity",
            description="Set the quantity of a cart item (at least 1; use grandcentral_remove_from_cart to remove)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "integer", "description": "Product ID"},
                    "quantity": {"type": "integer", "description": "New quantity", "minimum": 1},
                },
                "required": ["product_id", "quantity"],
            },
        ),
        Tool(
            name="grandcentral_remove_from_cart",
            description="Remove a product from the cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "integer", "description": "Product ID"},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="grandcentral_checkout",
            description="Place the order for the selected date. Returns a payment URL when the order exceeds the allowance.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="grandcentral_payment_navigation",
            description="Report a URL the payment page navigated to",
            inputSchema={
                "type": "object",
                "properties": {
                    "url": {"type": "string", "description": "Navigated URL"},
                },
                "required": ["url"],
            },
        ),
        Tool(
            name="grandcentral_cancel_payment",
            description="Cancel the payment in progress. Requires confirm=true.",
            inputSchema={
                "type": "object",
                "properties": {
                    "confirm": {
                        "type": "boolean",
                        "description": "Confirm discarding the payment",
                        "default": False,
                    },
                },
            },
        ),
        Tool(
            name="grandcentral_get_orders",
            description="List orders for a date",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": {"type": "string", "description": "Order date (YYYY-MM-DD), default today"},
                    "pending_only": {
                        "type": "boolean",
                        "description": "Only pending orders",
                        "default": False,
                    },
                },
            },
        ),
        Tool(
            name="grandcentral_order_history",
            description="List past orders, optionally for one date",
            inputSchema={
                "type": "object",
                "properties": {
                    "date": {"type": "string", "description": "Order date (YYYY-MM-DD), optional"},
                },
            },
        ),
        Tool(
            name="grandcentral_repeat_order",
            description="Copy a past order's items into the cart for the selected date",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "integer", "description": "Order ID"},
                    "date": DATE_PROPERTY,
                },
                "required": ["order_id"],
            },
        ),
        Tool(
            name="grandcentral_notifications",
            description="List notifications",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    language = runtime.auth_manager.language

    try:
        if name == "grandcentral_send_otp":
            sent = await runtime.send_otp(
                arguments.get("login_id"),
                arguments.get("password"),
                arguments.get("method"),
            )
            if sent:
                return respond(
                    f"Code sent to {runtime.handshake.identifier}. Call grandcentral_verify_otp with the 6-digit code."
                )
            return respond("Could not send the code.")

        elif name == "grandcentral_verify_otp":
            verified = await runtime.verify_otp(str(arguments["code"]))
            if verified:
                return respond(f"Logged in as employee {runtime.auth_manager.get_employee_id()}")
            return respond("Verification failed.")

        elif name == "grandcentral_logout":
            runtime.logout()
            return respond("Successfully logged out")

        elif name == "grandcentral_status":
            user = runtime.auth_manager.get_user() or {}
            lines = [
                f"Authenticated: {'Yes' if runtime.auth_manager.is_authenticated() else 'No'}",
                f"Employee ID: {runtime.auth_manager.get_employee_id()}",
                f"Name: {user.get('name_en') or '-'}",
                f"Login step: {runtime.handshake.state.value}",
                f"Selected date: {format_date(runtime.cart.preorder_date)}",
                f"Language: {language}",
            ]
            if runtime.payment is not None:
                lines.append(
                    f"Payment for order {runtime.payment.order_id}: {runtime.payment.status.value}"
                )
            return respond("\n".join(lines))

        # Everything below needs a session
        employee_id = runtime.require_employee_id()

        if name == "grandcentral_search_products":
            query = arguments.get("query")
            products = await runtime.client.products(employee_id, search_term=query)

            if not products:
                return respond(f"No products found for: {query}")

            result_lines = [f"Found {len(products)} product(s):\n"]
            for i, product in enumerate(products, 1):
                result_lines.append(f"\n{i}. {product.display_name(language)}")
                result_lines.append(f"   ID: {product.id}")
                result_lines.append(f"   Price: QAR {product.effective_price}")
                if product.effective_price != product.price:
                    result_lines.append(f"   Original Price: QAR {product.price} (OFFER)")
                result_lines.append(f"   Available: {'Yes' if product.in_stock else 'No'}")

            return respond("\n".join(result_lines))

        elif name == "grandcentral_get_cart":
            if arguments.get("date"):
                view = await runtime.cart.select_date(arguments["date"])
            else:
                view = await runtime.cart.refresh()
            return respond(format_cart(view, language))

        elif name == "grandcentral_select_date":
            step = arguments.get("step")
            if step == "next":
                view = await runtime.cart.next_day()
            elif step == "previous":
                view = await runtime.cart.previous_day()
            elif arguments.get("date"):
                view = await runtime.cart.select_date(arguments["date"])
            else:
                return respond("Provide a date or a step")
            return respond(format_cart(view, language))

        elif name == "grandcentral_add_to_cart":
            if arguments.get("date"):
                await runtime.cart.select_date(arguments["date"])
            product_id = int(arguments["product_id"])
            quantity = int(arguments.get("quantity", 1))

            if await runtime.cart.add_item(product_id, quantity):
                return respond(
                    f"Successfully added product {product_id} (quantity: {quantity}) to cart\n\n"
                    + format_cart(runtime.cart.view, language)
                )
            return respond(f"Failed to add product {product_id} to cart")

        elif name == "grandcentral_update_cart_quantity":
            product_id = int(arguments["product_id"])
            quantity = int(arguments["quantity"])
            view = runtime.cart.view or await runtime.cart.refresh()
            item = view.find_item(product_id) if view else None
            if item is None:
                return respond(f"Product {product_id} is not in the cart")

            if await runtime.cart.update_quantity(item, quantity - item.quantity):
                return respond(
                    f"Successfully updated product {product_id} to quantity {quantity}\n\n"
                    + format_cart(runtime.cart.view, language)
                )
            return respond(f"Failed to update product {product_id} quantity")

        elif name == "grandcentral_remove_from_cart":
            product_id = int(arguments["product_id"])
            if await runtime.cart.remove_item(product_id):
                return respond(
                    f"Successfully removed product {product_id} from cart\n\n"
                    + format_cart(runtime.cart.view, language)
                )
            return respond(f"Failed to remove product {product_id} from cart")

        elif name == "grandcentral_checkout":
            if runtime.cart.view is None:
                await runtime.cart.refresh()
            outcome = await runtime.cart.checkout()

            if outcome.status == CheckoutStatus.PAYMENT_REQUIRED:
                runtime.payment = outcome.payment
                return respond(
                    f"Order {outcome.order_id} needs an extra payment of QAR {outcome.amount}.\n"
                    f"Open: {outcome.payment_url}\n"
                    "Report each page URL with grandcentral_payment_navigation."
                )
            if outcome.status == CheckoutStatus.PLACED:
                return respond(f"Order placed. Next: {outcome.navigate_to}")
            return respond("Checkout failed")

        elif name == "grandcentral_payment_navigation":
            if runtime.payment is None:
                return respond("No payment in progress")
            result = await runtime.payment.on_navigation(arguments["url"])
            text = f"Payment for order {result.order_id}: {result.status.value}"
            if result.navigate_to:
                text += f"\nNext: {result.navigate_to}"
            return respond(text)

        elif name == "grandcentral_cancel_payment":
            if runtime.payment is None:
                return respond("No payment in progress")
            confirmed = bool(arguments.get("confirm", False))
            result = await runtime.payment.request_cancel(lambda title, message: confirmed)
            if result.navigate_to:
                return respond(f"Payment for order {result.order_id} cancelled. Next: {result.navigate_to}")
            return respond("Payment not cancelled. Pass confirm=true to discard it.")

        elif name == "grandcentral_get_orders":
            order_date = await runtime.order_date(arguments.get("date"))
            if arguments.get("pending_only"):
                orders = await runtime.client.pending_orders(employee_id, order_date)
            else:
                orders = await runtime.client.orders_by_date(employee_id, order_date)
            return respond(format_orders(orders, language))

        elif name == "grandcentral_order_history":
            on_date = await runtime.order_date(arguments["date"]) if arguments.get("date") else None
            orders = await runtime.client.order_history(employee_id, on_date)
            return respond(format_orders(orders, language))

        elif name == "grandcentral_repeat_order":
            if arguments.get("date"):
                await runtime.cart.select_date(arguments["date"])
            order_id = int(arguments["order_id"])
            result = await runtime.client.repeat_order(employee_id, order_id, runtime.cart.preorder_date)
            runtime.notifier.success(result.message or "Order items added to cart successfully!")
            view = await runtime.cart.refresh(force=True)
            return respond(format_cart(view, language))

        elif name == "grandcentral_notifications":
            notifications = await runtime.client.notifications(employee_id)
            if not notifications:
                return respond("No notifications")

            result_lines = [f"{len(notifications)} notification(s):\n"]
            for notification in notifications:
                result_lines.append(f"- {notification.title}")
                if notification.message:
                    result_lines.append(f"  {notification.message}")
            return respond("\n".join(result_lines))

        else:
            return respond(f"Unknown tool: {name}")

    except NotAuthenticatedError:
        return respond(NOT_AUTHENTICATED)
    except GrandCentralError as e:
        logger.error(f"Error executing tool {name}: {e}")
        return respond(f"Error: {error_message(e)}")
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return respond(f"Error: {str(e)}")


async def main() -> None:
    """Main entry point for the MCP server."""
    global runtime

    runtime = Runtime.from_env()

    if runtime.settings.has_credentials:
        logger.info(f"Credentials loaded from environment for: {runtime.settings.login_id}")
    else:
        logger.warning("No credentials found in environment variables (GRANDCENTRAL_LOGIN_ID, GRANDCENTRAL_PASSWORD)")
        logger.warning("grandcentral_send_otp will need login_id and password arguments")

    logger.info("Starting Grand Central MCP Server...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await runtime.close()


if __name__ == "__main__":
    asyncio.run(main())
