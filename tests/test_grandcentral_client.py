from datetime import date

import httpx
import pytest

from fake_backend import EMAIL, EMPLOYEE_ID, OTP, PASSWORD, PHONE, TOKEN
from grandcentral_server.errors import GuardRejection, ValidationError


async def test_get_cart_is_cached_until_a_mutation(client, logged_in, backend):
    cart = await client.get_cart(EMPLOYEE_ID, date(2024, 6, 10))
    assert cart.current is None
    await client.get_cart(EMPLOYEE_ID, "2024-06-10")
    assert backend.count("/employee/cart/get") == 1

    await client.add_to_cart(EMPLOYEE_ID, 7, 2, "2024-06-10")
    cart = await client.get_cart(EMPLOYEE_ID, "2024-06-10")

    assert backend.count("/employee/cart/get") == 2
    assert cart.current.find_item(7).quantity == 2
    assert cart.current.subtotal == "25.00"


async def test_carts_are_scoped_by_date(client, logged_in):
    await client.add_to_cart(EMPLOYEE_ID, 7, 1, "2024-06-10")
    assert (await client.get_cart(EMPLOYEE_ID, "2024-06-11")).current is None
    assert (await client.get_cart(EMPLOYEE_ID, "2024-06-10")).current.item_count == 1


async def test_quantity_guard_sends_nothing(client, logged_in, backend):
    with pytest.raises(GuardRejection):
        await client.update_cart_quantity(EMPLOYEE_ID, 100, 7, 0)
    with pytest.raises(GuardRejection):
        await client.add_to_cart(EMPLOYEE_ID, 7, 0, "2024-06-10")
    assert backend.calls == []


async def test_allowance_sends_date_as_form_field(client, logged_in, backend):
    seen = []

    async def record(request: httpx.Request) -> None:
        seen.append(request)

    client.api.client.event_hooks["request"].append(record)
    allowance = await client.get_allowance(EMPLOYEE_ID, date(2024, 6, 10))

    assert allowance.daily_meal_allowance == "50.00"
    assert seen[0].headers["content-type"] == "application/x-www-form-urlencoded"
    assert seen[0].content == b"preorder_date=2024-06-10"


async def test_place_order_invalidates_cart_and_allowance(client, logged_in, backend):
    await client.add_to_cart(EMPLOYEE_ID, 7, 1, "2024-06-10")
    cart = (await client.get_cart(EMPLOYEE_ID, "2024-06-10")).current
    await client.get_allowance(EMPLOYEE_ID, "2024-06-10")

    result = await client.place_order(EMPLOYEE_ID, cart.cart_id)

    assert result.success
    assert not result.requires_payment
    assert client.cache.get("getCartList", {"employee_id": EMPLOYEE_ID, "preorder_date": "2024-06-10"}).stale
    assert client.cache.get("getAllowances", {"employee_id": EMPLOYEE_ID, "preorder_date": "2024-06-10"}).stale
    assert (await client.get_cart(EMPLOYEE_ID, "2024-06-10")).current is None


async def test_send_and_verify_otp(client, auth_manager):
    sent = await client.send_otp(EMAIL, PASSWORD)
    assert sent.success
    assert sent.employee_id == EMPLOYEE_ID

    verified = await client.verify_otp(OTP, PHONE, sent.employee_id)
    assert verified.token == TOKEN
    assert verified.resolved_employee_id == EMPLOYEE_ID


async def test_send_otp_field_error(client):
    with pytest.raises(ValidationError) as exc_info:
        await client.send_otp(EMAIL, "wrong-password")
    assert exc_info.value.errors["password"] == ["The password is incorrect."]


async def test_preorder_settings_are_unwrapped(client):
    settings = await client.get_preorder_settings()
    assert settings.max_date == date(2024, 6, 30)


async def test_refresh_home_fetches_everything(client, logged_in, backend):
    home = await client.refresh_home(EMPLOYEE_ID, "2024-06-10")

    assert home.profile.name == "Test Employee"
    assert [d.name_en for d in home.departments] == ["Bakery", "Kitchen"]
    assert len(home.products) == 3
    assert home.products_in(2)[0].id == 8
    assert home.allowance.daily_meal_allowance == "50.00"


async def test_repeat_order_fills_cart(client, logged_in):
    await client.add_to_cart(EMPLOYEE_ID, 8, 1, "2024-06-10")
    cart = (await client.get_cart(EMPLOYEE_ID, "2024-06-10")).current
    await client.place_order(EMPLOYEE_ID, cart.cart_id)
    order = (await client.orders_by_date(EMPLOYEE_ID, "2024-06-10")).orders[0]

    await client.repeat_order(EMPLOYEE_ID, order.id, "2024-06-12")

    repeated = (await client.get_cart(EMPLOYEE_ID, "2024-06-12")).current
    assert repeated.find_item(8).quantity == 1
