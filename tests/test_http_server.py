from datetime import date

import httpx
import pytest

from fake_backend import EMAIL, OTP, PASSWORD
from grandcentral_server import http_server
from grandcentral_server.runtime import Runtime


@pytest.fixture
async def ac_client(settings, backend, monkeypatch):
    runtime = Runtime(settings, transport=backend.transport(), current=date(2024, 6, 9))
    monkeypatch.setattr(http_server, "runtime", runtime)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=http_server.app), base_url="http://server") as ac:
        yield ac
    await runtime.close()


async def login(ac_client):
    resp = await ac_client.post("/auth/send-otp", json={"login_id": EMAIL, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    assert resp.json()["success"]
    resp = await ac_client.post("/auth/verify-otp", json={"code": OTP})
    assert resp.json()["success"], resp.text


async def test_health(ac_client):
    resp = await ac_client.get("/health")
    assert resp.json() == {"status": "healthy", "authenticated": False}


async def test_cart_requires_login(ac_client):
    resp = await ac_client.get("/cart")
    assert resp.status_code == 401


async def test_send_otp_failure_reports_toast(ac_client):
    resp = await ac_client.post("/auth/send-otp", json={"login_id": EMAIL, "password": "wrong-password"})
    payload = resp.json()
    assert not payload["success"]
    assert payload["toasts"][0]["message"] == "The password is incorrect."


async def test_cart_flow(ac_client):
    await login(ac_client)

    resp = await ac_client.post("/cart/add", json={"product_id": 7, "quantity": 3})
    assert resp.status_code == 200, resp.text
    cart = resp.json()["cart"]
    assert cart["preorder_date"] == "2024-06-10"
    assert cart["remaining_allowance"] == "12.50"
    assert cart["progress"] == 25.0

    resp = await ac_client.post("/cart/update", json={"product_id": 7, "quantity": 0})
    assert resp.status_code == 400

    resp = await ac_client.post("/cart/update", json={"product_id": 7, "quantity": 1})
    assert resp.json()["cart"]["subtotal"] == "12.50"

    resp = await ac_client.get("/cart", params={"date": "2024-06-11"})
    assert resp.json()["cart"]["items"] == []

    resp = await ac_client.get("/cart", params={"date": "June 11"})
    assert resp.status_code == 400


async def test_checkout_with_payment(ac_client):
    await login(ac_client)
    await ac_client.post("/cart/add", json={"product_id": 8, "quantity": 2})

    resp = await ac_client.post("/cart/checkout")
    outcome = resp.json()
    assert outcome["status"] == "payment_required"
    assert outcome["amount"] == "10.00"
    assert "payment" not in outcome

    resp = await ac_client.post("/payment/cancel", json={"confirm": False})
    assert resp.json()["status"] == "pending"

    resp = await ac_client.post("/payment/navigation", json={"url": "https://pay.example.com/payment/success"})
    assert resp.json()["navigate_to"] == "Orders"

    resp = await ac_client.get("/orders", params={"date": "2024-06-10"})
    assert resp.json()["count"] == 1


async def test_payment_without_checkout(ac_client):
    resp = await ac_client.post("/payment/navigation", json={"url": "https://pay.example.com/payment/success"})
    assert resp.status_code == 409


async def test_cart_date_respects_preorder_limit(ac_client):
    await login(ac_client)

    resp = await ac_client.get("/cart", params={"date": "2024-12-31"})
    assert resp.json()["cart"]["preorder_date"] == "2024-06-30"


async def test_orders_default_to_today(ac_client):
    await login(ac_client)
    await ac_client.post("/cart/add", json={"product_id": 7, "quantity": 1})
    await ac_client.post("/cart/checkout")

    assert (await ac_client.get("/orders")).json()["count"] == 0
    assert (await ac_client.get("/orders", params={"date": "2024-6-10"})).json()["count"] == 1

    resp = await ac_client.get("/orders", params={"date": "soon"})
    assert resp.status_code == 400
    resp = await ac_client.post("/orders/history", json={"date": "soon"})
    assert resp.status_code == 400
