from services.payment_service.provider import PaymentProviderError

from conftest import INTERNAL_HEADERS, auth_headers, make_product, make_user, shipping_address


def cod_payload(product, quantity=2):
    return {
        "shipping_address": shipping_address(),
        "payment_method": "cash-on-delivery",
        "items": [
            {"product_id": product.id, "quantity": quantity, "price": str(product.price), "farmer_id": product.user_id}
        ],
    }


async def test_health(client):
    resp = await client.get("/orders/health")
    assert resp.json() == {"service": "order", "status": "running"}


async def test_register_login_and_profile(client):
    resp = await client.post(
        "/auth/register",
        json={"email": "joe@harvestmarket.io", "password": "harvest-2024", "full_name": "Joe", "role": "farmer"},
    )
    assert resp.status_code == 201
    assert resp.json()["role"] == "farmer"

    resp = await client.post("/auth/login", json={"email": "joe@harvestmarket.io", "password": "harvest-2024"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert "list-crops" in resp.json()["capabilities"]
    assert "manage-users" not in resp.json()["capabilities"]


async def test_login_with_wrong_password(client):
    await client.post("/auth/register", json={"email": "amy@harvestmarket.io", "password": "password-1"})
    resp = await client.post("/auth/login", json={"email": "amy@harvestmarket.io", "password": "nope-nope"})
    assert resp.status_code == 401


async def test_only_farmers_list_products(client, farmer, buyer):
    product = {"name": "Maize", "price": "3.10", "quantity": 40, "category": "Grains", "location": "Eldoret"}

    resp = await client.post("/products/", json=product, headers=auth_headers(buyer))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Missing permission: list-crops"

    resp = await client.post("/products/", json=product, headers=auth_headers(farmer))
    assert resp.status_code == 201
    assert resp.json()["user_id"] == farmer.id

    resp = await client.get("/products/", params={"category": "Grains", "sort_by": "price-low"})
    assert [p["name"] for p in resp.json()] == ["Maize"]


async def test_bad_product_filter_is_rejected(client):
    resp = await client.get("/products/", params={"sort_by": "cheapest"})
    assert resp.status_code == 422


async def test_cart_endpoints(client, buyer, wheat):
    headers = auth_headers(buyer)
    resp = await client.post("/cart/items", json={"product_id": wheat.id, "quantity": 2}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["totalItems"] == 2
    assert body["totalPrice"] == "14.50"

    resp = await client.patch(f"/cart/items/{wheat.id}", json={"quantity": 0}, headers=headers)
    assert resp.json()["totalItems"] == 0


async def test_cash_on_delivery_checkout(client, buyer, farmer, wheat):
    await client.post("/cart/items", json={"product_id": wheat.id, "quantity": 2}, headers=auth_headers(buyer))

    resp = await client.post("/orders/", json=cod_payload(wheat), headers=auth_headers(buyer))
    assert resp.status_code == 201
    order_id = resp.json()["order_id"]

    cart = (await client.get("/cart/", headers=auth_headers(buyer))).json()
    assert cart["items"] == []
    assert cart["totalItems"] == 0

    resp = await client.get(f"/orders/{order_id}", headers=auth_headers(buyer))
    body = resp.json()
    assert body["status"] == "pending"
    assert body["total_amount"] == "14.50"
    assert body["shipping_address"]["fullName"] == "Amina Buyer"
    assert [(i["product_name"], i["quantity"]) for i in body["items"]] == [("Wheat", 2)]


async def test_card_methods_cannot_skip_payment(client, buyer, wheat):
    headers = auth_headers(buyer)
    await client.post("/cart/items", json={"product_id": wheat.id, "quantity": 2}, headers=headers)

    for method in ("credit-card", "stripe"):
        payload = cod_payload(wheat)
        payload["payment_method"] = method
        resp = await client.post("/orders/", json=payload, headers=headers)
        assert resp.status_code == 400
        assert "requires a payment session" in resp.json()["detail"]

    assert (await client.get("/orders/", headers=headers)).json() == []
    assert (await client.get("/cart/", headers=headers)).json()["totalItems"] == 2


async def test_buyers_cannot_read_other_orders(client, db, buyer, wheat):
    resp = await client.post("/orders/", json=cod_payload(wheat), headers=auth_headers(buyer))
    order_id = resp.json()["order_id"]
    other = await make_user(db, role="buyer")

    resp = await client.get(f"/orders/{order_id}", headers=auth_headers(other))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Order not found"


async def test_cash_order_with_unknown_product_is_400(client, buyer, wheat):
    payload = cod_payload(wheat)
    payload["items"][0]["product_id"] = "gone"
    payload["items"][0]["farmer_id"] = None

    resp = await client.post("/orders/", json=payload, headers=auth_headers(buyer))
    assert resp.status_code == 400


async def test_invalid_shipping_address_is_422(client, buyer, wheat):
    payload = cod_payload(wheat)
    payload["shipping_address"]["phone"] = "123"

    resp = await client.post("/orders/", json=payload, headers=auth_headers(buyer))
    assert resp.status_code == 422


async def test_farmer_dashboard_and_actions(client, db, buyer, farmer, other_farmer, wheat):
    rice = await make_product(db, other_farmer.id, name="Rice", price="5.00")
    payload = cod_payload(wheat)
    payload["items"].append({"product_id": rice.id, "quantity": 1, "price": "5.00", "farmer_id": other_farmer.id})
    order_id = (await client.post("/orders/", json=payload, headers=auth_headers(buyer))).json()["order_id"]

    resp = await client.get("/orders/farmer", headers=auth_headers(farmer))
    [view] = resp.json()
    assert [i["product_id"] for i in view["items"]] == [wheat.id]
    assert view["farmer_subtotal"] == "14.50"
    assert view["buyer"]["full_name"] == "Amina Buyer"

    resp = await client.post(f"/orders/{order_id}/actions/accept", headers=auth_headers(farmer))
    assert resp.status_code == 200
    assert resp.json()["status"] == "processing"
    assert resp.json()["message"] == "Order has been accepted and is now being processed"
    assert resp.json()["available_actions"] == ["ship"]

    resp = await client.post(f"/orders/{order_id}/actions/reject", json={"confirm": True}, headers=auth_headers(farmer))
    assert resp.status_code == 409

    stats = (await client.get("/orders/farmer/stats", headers=auth_headers(farmer))).json()
    assert stats["processing"] == 1
    assert stats["total_revenue"] == "14.50"


async def test_foreign_order_is_not_addressable_by_farmer(client, db, buyer, wheat):
    order_id = (await client.post("/orders/", json=cod_payload(wheat), headers=auth_headers(buyer))).json()["order_id"]
    stranger = await make_user(db, role="farmer")

    resp = await client.post(f"/orders/{order_id}/actions/accept", headers=auth_headers(stranger))
    assert resp.status_code == 404
    resp = await client.get(f"/orders/farmer/{order_id}", headers=auth_headers(stranger))
    assert resp.status_code == 404


async def test_buyers_cannot_change_status(client, buyer, wheat):
    order_id = (await client.post("/orders/", json=cod_payload(wheat), headers=auth_headers(buyer))).json()["order_id"]

    resp = await client.patch(f"/orders/{order_id}/status", json={"status": "processing"}, headers=auth_headers(buyer))
    assert resp.status_code == 403


async def test_reject_needs_confirmation_then_blocks_processing(client, buyer, farmer, wheat):
    order_id = (await client.post("/orders/", json=cod_payload(wheat), headers=auth_headers(buyer))).json()["order_id"]

    resp = await client.post(f"/orders/{order_id}/actions/reject", headers=auth_headers(farmer))
    assert resp.status_code == 400

    resp = await client.post(f"/orders/{order_id}/actions/reject", json={"confirm": True}, headers=auth_headers(farmer))
    assert resp.json()["status"] == "cancelled"

    resp = await client.patch(f"/orders/{order_id}/status", json={"status": "processing"}, headers=auth_headers(farmer))
    assert resp.status_code == 409


async def test_internal_endpoints_need_api_key(client, buyer, farmer, wheat):
    order = {
        "user_id": buyer.id,
        "total_amount": "7.25",
        "shipping_address": shipping_address(),
        "payment_method": "stripe",
    }
    resp = await client.post("/orders/internal/", json=order)
    assert resp.status_code == 403

    resp = await client.post("/orders/internal/", json=order, headers=INTERNAL_HEADERS)
    assert resp.status_code == 201
    order_id = resp.json()["order_id"]

    item = {"product_id": wheat.id, "quantity": 1, "price": "7.25", "farmer_id": farmer.id}
    resp = await client.post(f"/orders/internal/{order_id}/items", json=item, headers=INTERNAL_HEADERS)
    assert resp.status_code == 201
    assert resp.json()["farmer_id"] == farmer.id

    resp = await client.patch(
        f"/orders/internal/{order_id}/status", json={"status": "processing"}, headers=INTERNAL_HEADERS
    )
    assert resp.json()["status"] == "processing"


async def test_card_checkout_over_http(client, fake_provider, buyer, wheat):
    payload = cod_payload(wheat)
    payload["payment_method"] = "credit-card"

    resp = await client.post(
        "/payments/checkout-session",
        json={"order_data": payload},
        headers={**auth_headers(buyer), "Origin": "https://market.test"},
    )
    assert resp.status_code == 200
    session_id = resp.json()["session_id"]
    assert fake_provider.created[0]["cancel_url"] == "https://market.test/checkout?canceled=true"

    resp = await client.post("/payments/verify", json={"session_id": session_id})
    assert resp.json() == {"success": False, "order_id": None, "message": "Payment not completed"}

    fake_provider.mark_paid(session_id)
    first = (await client.post("/payments/verify", json={"session_id": session_id})).json()
    second = (await client.post("/payments/verify", json={"session_id": session_id})).json()
    assert first["success"] is True
    assert first["order_id"] == second["order_id"]

    orders = (await client.get("/orders/", headers=auth_headers(buyer))).json()
    assert [o["status"] for o in orders] == ["paid"]


async def test_provider_failure_is_502(client, fake_provider, buyer, wheat):
    fake_provider.fail_with = PaymentProviderError("Stripe configuration error", "API key not configured")

    resp = await client.post(
        "/payments/checkout-session", json={"order_data": cod_payload(wheat)}, headers=auth_headers(buyer)
    )
    assert resp.status_code == 502
    assert resp.json() == {"error": "Stripe configuration error", "details": "API key not configured"}


async def test_assistant_without_model_key(client):
    resp = await client.post("/assistant/chat", json={"message": "How do I grow wheat?"})
    assert resp.status_code == 200
    assert resp.json()["source"] == "unavailable"
