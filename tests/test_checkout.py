"""
Tests for the storefront checkout endpoints.
"""
import pytest

from chesapeake.core.config import Settings, get_settings
from chesapeake.core.exceptions import StripeAPIError
from chesapeake.models import Product
from chesapeake.schemas.payment import StandardSale, decode_payment_kind
from chesapeake.schemas.stripe import CreatedCheckoutSession
from chesapeake.services.stripe_client import get_stripe_client

CREATE_URL = "/api/checkout/create-session"


@pytest.fixture
async def products(session_factory):
    async with session_factory() as session:
        session.add_all([
            Product(
                id="p_bowl", name="Crab Bowl", slug="crab-bowl", price_cents=2000,
                stripe_price_id="price_bowl", is_one_off=False, quantity_available=2,
            ),
            Product(
                id="p_heron", name="Heron Mosaic", price_cents=9000,
                stripe_price_id="price_heron", is_one_off=True, quantity_available=1,
            ),
            Product(
                id="p_sold", name="Oyster Dish", price_cents=3000,
                stripe_price_id="price_sold", is_sold=True,
            ),
            Product(
                id="p_empty", name="Sea Glass", price_cents=1500,
                stripe_price_id="price_empty", is_one_off=False, quantity_available=0,
            ),
            Product(id="p_noprice", name="Draft Piece", price_cents=1200),
            Product(
                id="p_hidden", name="Retired Tray", price_cents=2500,
                stripe_price_id="price_hidden", is_active=False,
            ),
        ])
        await session.commit()


@pytest.fixture
def created(stripe_client):
    stripe_client.create_checkout_session.return_value = CreatedCheckoutSession(
        id="cs_new", client_secret="cs_new_secret"
    )
    return stripe_client.create_checkout_session


class TestCreateSession:
    async def test_creates_embedded_session(self, async_client, products, created):
        response = await async_client.post(CREATE_URL, json={"productId": "p_bowl", "quantity": 1})

        assert response.status_code == 200
        assert response.json() == {"clientSecret": "cs_new_secret", "sessionId": "cs_new"}

        kwargs = created.await_args.kwargs
        assert kwargs["price_id"] == "price_bowl"
        assert kwargs["quantity"] == 1
        assert kwargs["return_url"].endswith("/checkout/return?session_id={CHECKOUT_SESSION_ID}")
        assert kwargs["shipping_countries"] == ["US", "CA"]
        assert kwargs["metadata"] == {"product_id": "p_bowl", "product_slug": "crab-bowl", "quantity": "1"}

    async def test_metadata_decodes_as_catalog_sale(self, async_client, products, created):
        await async_client.post(CREATE_URL, json={"productId": "p_bowl", "quantity": 2})

        metadata = created.await_args.kwargs["metadata"]
        assert decode_payment_kind(metadata) == StandardSale(product_id="p_bowl", quantity=2)

    async def test_quantity_capped_at_stock(self, async_client, products, created):
        response = await async_client.post(CREATE_URL, json={"productId": "p_bowl", "quantity": 5})

        assert response.status_code == 200
        assert created.await_args.kwargs["quantity"] == 2

    async def test_one_off_sells_singly(self, async_client, products, created):
        await async_client.post(CREATE_URL, json={"productId": "p_heron", "quantity": 3})

        assert created.await_args.kwargs["quantity"] == 1

    @pytest.mark.parametrize("product_id, detail", [
        ("p_sold", "Product is already sold"),
        ("p_empty", "Product is sold out"),
        ("p_noprice", "This product has no Stripe price configured."),
        ("p_hidden", "Product is inactive"),
    ])
    async def test_unsellable_products_rejected(self, async_client, products, created, product_id, detail):
        response = await async_client.post(CREATE_URL, json={"productId": product_id})

        assert response.status_code == 400
        assert response.json()["detail"] == detail
        created.assert_not_awaited()

    async def test_unknown_product(self, async_client, products, created):
        response = await async_client.post(CREATE_URL, json={"productId": "p_nope"})

        assert response.status_code == 404
        created.assert_not_awaited()

    async def test_product_id_required(self, async_client, created):
        response = await async_client.post(CREATE_URL, json={"productId": "  "})

        assert response.status_code == 400
        assert response.json()["detail"] == "productId is required"

    async def test_stripe_failure(self, async_client, products, created):
        created.side_effect = StripeAPIError("HTTP error: 400", 400)

        response = await async_client.post(CREATE_URL, json={"productId": "p_bowl"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to create checkout session"

    async def test_missing_client_secret(self, async_client, products, created):
        created.return_value = CreatedCheckoutSession(id="cs_new")

        response = await async_client.post(CREATE_URL, json={"productId": "p_bowl"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Unable to create checkout session"




async def test_session_summary(async_client, stripe_client, make_checkout, line_item):
    stripe_client.retrieve_checkout_session.return_value = make_checkout(
        session_id="cs_summary",
        line_items=[line_item("prod_a", "Crab Bowl", 2000, quantity=2)],
        amount_total=4500,
    )

    response = await async_client.get("/api/checkout/session/cs_summary")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "cs_summary"
    assert data["amount_total"] == 4500
    assert data["customer_email"] == "buyer@example.com"
    assert data["shipping"]["name"] == "Pat Buyer"
    assert data["shipping"]["address"]["city"] == "Annapolis"
    assert data["line_items"] == [{"productName": "Crab Bowl", "quantity": 2, "lineTotal": 4000}]
    assert data["card_last4"] == "4242"
    stripe_client.retrieve_checkout_session.assert_awaited_once_with("cs_summary")


async def test_stripe_failure(async_client, stripe_client):
    stripe_client.retrieve_checkout_session.side_effect = StripeAPIError("HTTP error: 404", 404)

    response = await async_client.get("/api/checkout/session/cs_missing")

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch checkout session"


async def test_missing_secret_key(app, async_client):
    del app.dependency_overrides[get_stripe_client]
    app.dependency_overrides[get_settings] = lambda: Settings(stripe_secret_key=None)

    response = await async_client.get("/api/checkout/session/cs_1")

    assert response.status_code == 500
    assert response.json()["detail"] == "Stripe is not configured"
