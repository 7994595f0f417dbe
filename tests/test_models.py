from datetime import date

from grandcentral_server.models import (
    Cart,
    CartList,
    OrderList,
    PlaceOrderResult,
    PreorderSettings,
    Product,
    SessionData,
    VerifyOtpResult,
    amount_value,
)


def test_amounts_stay_strings():
    cart = Cart.model_validate({"id": 5, "subtotal": 37.5, "daily_allowance": "50.00", "items": []})
    assert cart.cart_id == 5
    assert cart.subtotal == "37.5"
    assert cart.daily_allowance == "50.00"
    assert cart.remaining_allowance is None


def test_missing_subtotal_defaults_to_zero():
    cart = Cart.model_validate({"cart_id": 1, "subtotal": None})
    assert cart.subtotal == "0"


def test_amount_value_tolerates_garbage():
    assert amount_value("12.50") == 12.5
    assert amount_value(None) == 0.0
    assert amount_value("n/a") == 0.0


def test_cart_list_accepts_single_cart_shape():
    assert CartList.model_validate({"cart": None}).current is None
    cart_list = CartList.model_validate({"cart": {"cart_id": 3, "items": []}})
    assert cart_list.current.cart_id == 3
    assert CartList.model_validate(None).carts == []


def test_cart_items():
    cart = Cart.model_validate(
        {
            "cart_id": 1,
            "items": [
                {"product_id": 7, "quantity": 3, "price": "12.50", "product_name": "Croissant"},
                {"product_id": 8, "quantity": 1, "price": "30.00"},
            ],
        }
    )
    assert cart.item_count == 4
    assert cart.find_item(7).line_total == 37.5
    assert cart.find_item(8).display_name() == "Product 8"
    assert cart.find_item(99) is None


def test_product_effective_price_and_language():
    product = Product.model_validate(
        {"id": 7, "name": "Croissant", "name_ar": "كرواسون", "price": "12.50", "offer_price": "10.00", "stock": 0}
    )
    assert product.effective_price == "10.00"
    assert product.display_name("ar") == "كرواسون"
    assert product.display_name("en") == "Croissant"
    assert not product.in_stock


def test_place_order_result_payment_url():
    result = PlaceOrderResult.model_validate(
        {
            "success": True,
            "requires_payment": True,
            "data": {"order_id": 9, "unique_id": 123, "extra_payment": "7.50", "payment_url": "https://pay/x"},
        }
    )
    assert result.payment_url == "https://pay/x"
    assert result.data.unique_id == "123"
    assert PlaceOrderResult.model_validate({"success": True}).payment_url is None


def test_preorder_settings_max_date():
    assert PreorderSettings.model_validate({"max_preorder_date": "2024-06-30"}).max_date == date(2024, 6, 30)
    assert PreorderSettings.model_validate({}).max_date is None


def test_verify_result_reads_nested_data():
    result = VerifyOtpResult.model_validate({"success": True, "data": {"token": "t", "employee": {"id": 42}}})
    assert result.token == "t"
    assert result.resolved_employee_id == 42


def test_order_list_accepts_plain_list():
    orders = OrderList.model_validate([{"order_id": 1, "preorder_date": "2024-06-10", "unique_id": 55}])
    assert orders.orders[0].id == 1
    assert orders.orders[0].order_date == "2024-06-10"
    assert orders.orders[0].unique_id == "55"


def test_session_data_uses_storage_keys():
    session = SessionData(auth_token="abc", employee_id=42)
    dumped = session.model_dump(by_alias=True)
    assert dumped["@auth_token"] == "abc"
    assert dumped["@employee_id"] == 42
    assert dumped["@language"] == "en"
    assert SessionData.model_validate(dumped).auth_token == "abc"
