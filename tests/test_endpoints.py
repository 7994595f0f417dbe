import json
from datetime import date

import httpx
import pytest

from grandcentral_server.api_client import ApiClient
from grandcentral_server.errors import GuardRejection
from grandcentral_server.grandcentral_client import GrandCentralClient

RESPONSES = {
    "/api/v1/employee/messages/conversations": [{"id": 1, "message": "Hello", "subject": "Hi"}],
    "/api/v1/employee/loyalty-points/42": {"total_loyalty_points": 120, "points_history": []},
    "/api/v1/about": {"about_en": "Bakery and kitchen"},
    "/api/v1/employers": [{"id": 3, "name": "Grand Central"}],
    "/api/v1/employee/allowance-usage/today/42": {
        "daily_meal_allowance": "50.00",
        "remaining_allowance_today": "37.50",
        "total_allowance_used_today": 12.5,
    },
    "/api/v1/products/offer/5": [{"id": 7, "name": "Croissant", "price": "12.50", "offer_price": "10.00"}],
    "/api/v1/terms": {"terms_en": "Orders close at midnight."},
    "/api/v1/contact": {"phone": "44440000", "email": "hello@example.com"},
}


@pytest.fixture
def sent():
    return []


@pytest.fixture
async def recording_client(settings, logged_in, sent):
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json={"success": True, "data": RESPONSES.get(request.url.path)})

    api = ApiClient(settings, logged_in, transport=httpx.MockTransport(handler))
    yield GrandCentralClient(api)
    await api.aclose()


async def test_wishlist_invalidates_home(recording_client, sent):
    await recording_client.products(42)
    await recording_client.add_to_wishlist(42, 7)
    await recording_client.products(42)

    assert [r.url.path for r in sent] == [
        "/api/v1/products",
        "/api/v1/employee/wishlist/add",
        "/api/v1/products",
    ]
    assert json.loads(sent[1].content) == {"employee_id": 42, "product_id": 7}


async def test_messages_cached_until_sent(recording_client, sent):
    messages = await recording_client.messages(42)
    assert messages[0].subject == "Hi"
    await recording_client.messages(42)
    assert len(sent) == 1

    await recording_client.send_message(42, 3, "Lunch was great", subject="Feedback")
    body = json.loads(sent[1].content)
    assert body["status"] == 1
    assert body["is_read"] == 0

    await recording_client.messages(42)
    assert len(sent) == 3


async def test_empty_message_is_rejected(recording_client, sent):
    with pytest.raises(GuardRejection):
        await recording_client.send_message(42, 3, "   ")
    assert sent == []


async def test_update_profile_is_form_encoded(recording_client, sent):
    await recording_client.update_profile(42, {"name_en": "New Name", "photo": None})

    assert sent[0].headers["content-type"] == "application/x-www-form-urlencoded"
    assert sorted(sent[0].content.decode().split("&")) == ["employee_id=42", "name_en=New+Name"]


async def test_reads(recording_client, sent):
    assert (await recording_client.loyalty_points(42)).total_loyalty_points == 120
    assert (await recording_client.about()).about_en == "Bakery and kitchen"
    assert (await recording_client.employers())[0].name_en == "Grand Central"
    assert "bearer" not in sent[-1].headers


async def test_order_dates_are_normalised(recording_client, sent):
    await recording_client.orders_by_date(42, "2024-6-1")
    await recording_client.order_history(42, date(2024, 5, 31))

    assert json.loads(sent[0].content)["order_date"] == "2024-06-01"
    assert json.loads(sent[1].content)["date"] == "2024-05-31"


async def test_malformed_order_date_is_not_sent(recording_client, sent):
    with pytest.raises(ValueError):
        await recording_client.pending_orders(42, "tomorrow")
    assert sent == []


async def test_register_is_sent_without_token(recording_client, sent):
    payload = {"name_en": "New Employee", "email": "new@example.com", "employer_id": 3}
    await recording_client.register(payload)

    assert sent[0].url.path == "/api/v1/employee/register"
    assert json.loads(sent[0].content) == payload
    assert "bearer" not in sent[0].headers


async def test_allowance_usage_refetched_after_wishlist_change(recording_client, sent):
    usage = await recording_client.allowance_usage_today(42)
    assert usage.remaining_allowance_today == "37.50"
    assert usage.total_allowance_used_today == "12.5"
    await recording_client.allowance_usage_today(42)
    assert len(sent) == 1

    await recording_client.remove_from_wishlist(42, 7)
    assert sent[1].url.path == "/api/v1/employee/wishlist/remove"
    assert json.loads(sent[1].content) == {"employee_id": 42, "product_id": 7}

    await recording_client.allowance_usage_today(42)
    assert len(sent) == 3


async def test_offer_products_cached_per_offer(recording_client, sent):
    products = await recording_client.offer_products(5)
    assert products[0].effective_price == "10.00"
    await recording_client.offer_products(5)
    assert [r.url.path for r in sent] == ["/api/v1/products/offer/5"]


async def test_submit_feedback_body(recording_client, sent):
    await recording_client.submit_feedback(3, 42, 7, "Flaky and warm", 5, "product", "2024-6-9")

    assert sent[0].url.path == "/api/v1/employee/feedback/save"
    assert json.loads(sent[0].content) == {
        "employer_id": 3,
        "employee_id": 42,
        "product_id": 7,
        "feedback": "Flaky and warm",
        "rating": 5,
        "feedback_type": "product",
        "feedback_date": "2024-06-09",
    }


async def test_static_pages(recording_client, sent):
    assert (await recording_client.terms()).terms_en == "Orders close at midnight."
    assert (await recording_client.contact()).phone == "44440000"
    assert [r.url.path for r in sent] == ["/api/v1/terms", "/api/v1/contact"]
