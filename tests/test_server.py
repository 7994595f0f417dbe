from datetime import date

import pytest

from fake_backend import EMAIL, OTP, PASSWORD
from grandcentral_server import server
from grandcentral_server.runtime import Runtime


@pytest.fixture
async def runtime(settings, backend, monkeypatch):
    rt = Runtime(settings, transport=backend.transport(), current=date(2024, 6, 9))
    monkeypatch.setattr(server, "runtime", rt, raising=False)
    yield rt
    await rt.close()


async def call(name, arguments=None):
    result = await server.call_tool(name, arguments or {})
    return result[0].text


async def test_tools_are_listed(runtime):
    names = {tool.name for tool in await server.list_tools()}
    assert {"grandcentral_send_otp", "grandcentral_get_cart", "grandcentral_checkout"} <= names


async def test_cart_tools_need_login(runtime):
    assert (await call("grandcentral_get_cart")).startswith("Error: Not authenticated")
    assert await server.list_resources() == []


async def test_login_and_order(runtime):
    text = await call("grandcentral_send_otp", {"login_id": EMAIL, "password": PASSWORD})
    assert "Code sent to employee@example.com" in text
    assert "✅ OTP sent successfully" in text

    text = await call("grandcentral_verify_otp", {"code": OTP})
    assert "Logged in as employee 42" in text

    text = await call("grandcentral_add_to_cart", {"product_id": 7, "quantity": 3})
    assert "Remaining allowance: QAR 12.50 (25%)" in text
    assert "✅ Added to cart" in text

    text = await call("grandcentral_update_cart_quantity", {"product_id": 7, "quantity": 0})
    assert "Failed to update product 7 quantity" in text

    text = await call("grandcentral_checkout")
    assert text.startswith("Order placed. Next: Home")

    text = await call("grandcentral_get_orders", {"date": "2024-06-10"})
    assert "Found 1 order(s)" in text
    assert "Croissant x3" in text


async def test_search_products(runtime):
    await call("grandcentral_send_otp", {"login_id": EMAIL, "password": PASSWORD})
    await call("grandcentral_verify_otp", {"code": OTP})

    text = await call("grandcentral_search_products", {"query": "sandwich"})
    assert "Found 1 product(s)" in text
    assert "Club Sandwich" in text


async def test_select_date_respects_preorder_limit(runtime):
    await call("grandcentral_send_otp", {"login_id": EMAIL, "password": PASSWORD})
    await call("grandcentral_verify_otp", {"code": OTP})

    text = await call("grandcentral_select_date", {"date": "2024-12-31"})

    assert runtime.cart.preorder_date == date(2024, 6, 30)
    assert "(2024-06-30)" in text
    assert (await call("grandcentral_get_orders")).startswith("No orders found")
    assert (await call("grandcentral_get_orders", {"date": "later"})).startswith("Error: Invalid date")
