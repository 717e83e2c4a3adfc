import pytest
import stripe

from services.payment_service.provider import PaymentProviderError, StripeCheckoutProvider

KEY = "sk_test_123"


def stripe_session(**values):
    data = {
        "id": "cs_1",
        "object": "checkout.session",
        "url": "https://pay.test/cs_1",
        "payment_status": "unpaid",
        "metadata": {},
    }
    data.update(values)
    return stripe.checkout.Session.construct_from(data, KEY)


async def test_create_session_passes_checkout_params(monkeypatch):
    seen = {}

    async def create_async(**params):
        seen.update(params)
        return stripe_session(metadata={"cart_items_chunks": "1"})

    monkeypatch.setattr(stripe.checkout.Session, "create_async", create_async)

    session = await StripeCheckoutProvider(secret_key=KEY).create_session(
        line_items=[{"price_data": {"currency": "usd", "unit_amount": 725}, "quantity": 2}],
        metadata={"cart_items_chunks": "1"},
        success_url="https://market.test/ok",
        cancel_url="https://market.test/cancel",
    )

    assert session.id == "cs_1"
    assert session.url == "https://pay.test/cs_1"
    assert session.metadata == {"cart_items_chunks": "1"}
    assert seen["api_key"] == KEY
    assert seen["mode"] == "payment"
    assert seen["line_items"][0]["price_data"]["unit_amount"] == 725
    assert seen["cancel_url"] == "https://market.test/cancel"


async def test_retrieve_session_reads_payment_status(monkeypatch):
    async def retrieve_async(session_id, **params):
        assert params["api_key"] == KEY
        return stripe_session(id=session_id, payment_status="paid", url=None)

    monkeypatch.setattr(stripe.checkout.Session, "retrieve_async", retrieve_async)

    session = await StripeCheckoutProvider(secret_key=KEY).retrieve_session("cs_9")

    assert session.id == "cs_9"
    assert session.payment_status == "paid"


async def test_list_line_items_flattens_expanded_products(monkeypatch):
    seen = {}

    async def list_line_items_async(session_id, **params):
        seen.update(params)
        return stripe.ListObject.construct_from({
            "object": "list",
            "data": [{
                "object": "item",
                "id": "li_1",
                "quantity": 2,
                "description": "Wheat",
                "price": {
                    "object": "price",
                    "id": "price_1",
                    "unit_amount": 725,
                    "product": {
                        "object": "product",
                        "id": "prod_1",
                        "metadata": {"product_id": "p-1", "farmer_id": "f-1"},
                    },
                },
            }],
        }, KEY)

    monkeypatch.setattr(stripe.checkout.Session, "list_line_items_async", list_line_items_async)

    items = await StripeCheckoutProvider(secret_key=KEY).list_line_items("cs_1")

    assert seen["expand"] == ["data.price.product"]
    assert items == [{
        "quantity": 2,
        "description": "Wheat",
        "price": {"unit_amount": 725, "product": {"id": "prod_1", "metadata": {"product_id": "p-1", "farmer_id": "f-1"}}},
    }]


async def test_authentication_error_is_explained(monkeypatch):
    async def retrieve_async(session_id, **params):
        raise stripe.AuthenticationError("Invalid API key provided")

    monkeypatch.setattr(stripe.checkout.Session, "retrieve_async", retrieve_async)

    with pytest.raises(PaymentProviderError) as exc:
        await StripeCheckoutProvider(secret_key=KEY).retrieve_session("cs_1")

    assert exc.value.message == "Invalid API key provided"
    assert "Stripe configuration" in exc.value.details


async def test_connection_error_is_a_provider_error(monkeypatch):
    async def retrieve_async(session_id, **params):
        raise stripe.APIConnectionError("connection refused")

    monkeypatch.setattr(stripe.checkout.Session, "retrieve_async", retrieve_async)

    with pytest.raises(PaymentProviderError) as exc:
        await StripeCheckoutProvider(secret_key=KEY).retrieve_session("cs_1")
    assert exc.value.message == "Payment provider unreachable"


async def test_missing_key_fails_without_a_request(monkeypatch):
    async def retrieve_async(session_id, **params):
        raise AssertionError("no request expected")

    monkeypatch.setattr(stripe.checkout.Session, "retrieve_async", retrieve_async)

    with pytest.raises(PaymentProviderError) as exc:
        await StripeCheckoutProvider(secret_key="").retrieve_session("cs_1")
    assert exc.value.message == "Stripe configuration error"
