"""
End-to-end tests for the Stripe webhook endpoint.
"""
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from chesapeake.core.config import Settings, get_settings
from chesapeake.core.exceptions import StripeAPIError
from chesapeake.models import CustomOrder, Order, OrderItem, Product
from chesapeake.repositories.order_counter import OrderCounterRepository
from chesapeake.services.stripe_client import get_webhook_stripe_client

WEBHOOK_URL = "/api/webhooks/stripe"


@pytest.fixture
async def catalog(session_factory):
    async with session_factory() as session:
        session.add_all([
            Product(id="p1", name="Crab Bowl", stripe_product_id="prod_a", quantity_available=3),
            Product(id="p2", name="Shell Dish", stripe_product_id="prod_b", quantity_available=2),
        ])
        await session.commit()


@pytest.fixture
async def custom_order(session_factory):
    async with session_factory() as session:
        session.add(CustomOrder(
            id="co_1",
            customer_name="Robin Tide",
            customer_email="robin@example.com",
            description="Heron mosaic",
            amount=5000,
            status="pending",
        ))
        await session.commit()


@pytest.fixture
def post_event(async_client, make_event, sign_payload):
    async def _post(session_id: str, event_type: str = "checkout.session.completed"):
        payload = make_event(session_id, event_type)
        return await async_client.post(
            WEBHOOK_URL,
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"},
        )

    return _post


async def _count(session_factory, model, *criteria) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(model)
        for criterion in criteria:
            stmt = stmt.where(criterion)
        return (await session.execute(stmt)).scalar_one()


async def _orders(session_factory) -> list[Order]:
    async with session_factory() as session:
        return list((await session.execute(select(Order))).scalars())


async def _items(session_factory) -> list[tuple[str, int, int]]:
    async with session_factory() as session:
        rows = (await session.execute(select(OrderItem).order_by(OrderItem.product_id))).scalars()
        return [(row.product_id, row.quantity, row.price_cents) for row in rows]


async def _stock(session_factory) -> dict[str, tuple[int, bool]]:
    async with session_factory() as session:
        rows = (await session.execute(select(Product))).scalars()
        return {row.stripe_product_id: (row.quantity_available, row.is_sold) for row in rows}


class TestCatalogCheckout:
    @pytest.fixture
    def catalog_checkout(self, stripe_client, make_checkout, line_item):
        checkout = make_checkout(
            session_id="cs_catalog",
            payment_intent="pi_123",
            line_items=[
                line_item("prod_a", "Crab Bowl", 2000),
                line_item("prod_b", "Shell Dish", 1500),
            ],
            amount_total=4000,
            shipping=500,
        )
        stripe_client.retrieve_checkout_session.return_value = checkout
        return checkout

    async def test_completed_checkout_creates_order(
        self, post_event, session_factory, catalog, catalog_checkout, notifications
    ):
        response = await post_event("cs_catalog")

        assert response.status_code == 200
        assert response.json() == {"received": True}

        orders = await _orders(session_factory)
        assert len(orders) == 1
        order = orders[0]
        assert order.total_cents == 4000
        assert order.shipping_cents == 500
        assert order.stripe_payment_intent_id == "pi_123"
        assert order.order_type == "standard"
        assert order.card_last4 == "4242"
        assert order.display_order_id == f"{datetime.now().year % 100:02d}-001"

        assert await _items(session_factory) == [("prod_a", 1, 2000), ("prod_b", 1, 1500)]
        assert await _stock(session_factory) == {"prod_a": (2, False), "prod_b": (1, False)}

        recipients = [call.kwargs["to"] for call in notifications.send_email.await_args_list]
        assert recipients == ["buyer@example.com", "owner@example.com"]

    async def test_redelivery_creates_nothing(
        self, post_event, session_factory, catalog, catalog_checkout, notifications
    ):
        await post_event("cs_catalog")
        sent = notifications.send_email.await_count

        response = await post_event("cs_catalog")

        assert response.status_code == 200
        assert await _count(session_factory, Order) == 1
        assert await _count(session_factory, OrderItem) == 2
        assert await _stock(session_factory) == {"prod_a": (2, False), "prod_b": (1, False)}
        assert notifications.send_email.await_count == sent

    async def test_email_failure_does_not_fail_webhook(
        self, post_event, session_factory, catalog, catalog_checkout, notifications
    ):
        notifications.send_email = AsyncMock(side_effect=RuntimeError("resend down"))

        response = await post_event("cs_catalog")

        assert response.status_code == 200
        assert await _count(session_factory, Order) == 1

    async def test_legacy_single_product_checkout(
        self, post_event, session_factory, catalog, stripe_client, make_checkout
    ):
        stripe_client.retrieve_checkout_session.return_value = make_checkout(
            session_id="cs_legacy",
            payment_intent="pi_legacy",
            line_items=[],
            amount_total=2500,
            shipping=500,
            metadata={"product_id": "p1"},
        )

        response = await post_event("cs_legacy")

        assert response.status_code == 200
        assert await _items(session_factory) == [("p1", 1, 2000)]
        assert (await _stock(session_factory))["prod_a"] == (2, False)


class TestCustomOrderCheckout:
    @pytest.fixture
    def custom_checkout(self, stripe_client, make_checkout, line_item):
        checkout = make_checkout(
            session_id="cs_custom",
            payment_intent="pi_custom",
            line_items=[line_item("prod_custom", "Heron mosaic", 5000)],
            amount_total=5500,
            shipping=500,
            metadata={"custom_order_id": "co_1"},
            email="robin@example.com",
        )
        stripe_client.retrieve_checkout_session.return_value = checkout
        return checkout

    async def test_custom_order_is_paid_and_recorded(
        self, post_event, session_factory, custom_order, custom_checkout
    ):
        response = await post_event("cs_custom")

        assert response.status_code == 200

        async with session_factory() as session:
            paid = await session.get(CustomOrder, "co_1")
        assert paid.status == "paid"
        assert paid.paid_at is not None
        assert paid.stripe_payment_intent_id == "pi_custom"
        assert paid.stripe_session_id == "cs_custom"
        assert paid.shipping_city == "Annapolis"

        orders = await _orders(session_factory)
        assert len(orders) == 1
        assert orders[0].order_type == "custom"
        assert orders[0].total_cents == 5500
        assert orders[0].shipping_cents == 500
        assert await _items(session_factory) == [
            ("custom_order:co_1", 1, 5000),
            ("shipping", 1, 500),
        ]

    async def test_second_delivery_is_a_no_op(
        self, post_event, session_factory, custom_order, custom_checkout, notifications
    ):
        await post_event("cs_custom")
        sent = notifications.send_email.await_count
        async with session_factory() as session:
            first_paid_at = (await session.get(CustomOrder, "co_1")).paid_at

        response = await post_event("cs_custom")

        assert response.status_code == 200
        assert await _count(session_factory, Order) == 1
        assert await _count(session_factory, OrderItem) == 2
        assert notifications.send_email.await_count == sent
        async with session_factory() as session:
            assert (await session.get(CustomOrder, "co_1")).paid_at == first_paid_at

    async def test_custom_display_id_is_reused(
        self, post_event, session_factory, custom_order, custom_checkout
    ):
        """Custom orders keep their own CO- numbering; the order counter is not touched."""
        async with session_factory() as session:
            (await session.get(CustomOrder, "co_1")).display_custom_order_id = "CO-26-050"
            await session.commit()

        await post_event("cs_custom")

        orders = await _orders(session_factory)
        assert orders[0].display_order_id == "CO-26-050"
        async with session_factory() as session:
            assert await OrderCounterRepository(session).as_dict() == {}

    async def test_missing_custom_order_is_acknowledged(
        self, post_event, session_factory, stripe_client, make_checkout
    ):
        stripe_client.retrieve_checkout_session.return_value = make_checkout(
            session_id="cs_orphan",
            metadata={"custom_order_id": "co_missing"},
        )

        response = await post_event("cs_orphan")

        assert response.status_code == 200
        assert await _count(session_factory, Order) == 0

    async def test_custom_order_leaves_inventory_alone(
        self, post_event, session_factory, catalog, custom_order, custom_checkout
    ):
        await post_event("cs_custom")

        assert await _stock(session_factory) == {"prod_a": (3, False), "prod_b": (2, False)}


async def test_invoice_payment_creates_untyped_order(
    post_event, session_factory, catalog, stripe_client, make_checkout, line_item
):
    stripe_client.retrieve_checkout_session.return_value = make_checkout(
        session_id="cs_invoice",
        payment_intent="pi_invoice",
        line_items=[line_item("prod_a", "Crab Bowl", 2000)],
        amount_total=2500,
        metadata={"invoice_id": "inv_7"},
    )

    response = await post_event("cs_invoice")

    assert response.status_code == 200
    orders = await _orders(session_factory)
    assert len(orders) == 1
    assert orders[0].order_type is None
    assert await _stock(session_factory) == {"prod_a": (3, False), "prod_b": (2, False)}


class TestWebhookRejections:
    async def test_missing_signature(self, async_client, make_event, session_factory):
        response = await async_client.post(WEBHOOK_URL, content=make_event("cs_1"))

        assert response.status_code == 400
        assert await _count(session_factory, Order) == 0

    async def test_invalid_signature(self, async_client, make_event, sign_payload, stripe_client):
        payload = make_event("cs_1")

        response = await async_client.post(
            WEBHOOK_URL,
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload, secret="whsec_wrong")},
        )

        assert response.status_code == 400
        stripe_client.retrieve_checkout_session.assert_not_awaited()

    async def test_stale_signature(self, async_client, make_event, sign_payload):
        payload = make_event("cs_1")

        response = await async_client.post(
            WEBHOOK_URL,
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload, timestamp=1_000_000_000)},
        )

        assert response.status_code == 400

    async def test_non_utf8_body_is_rejected(
        self, async_client, sign_payload, stripe_client, session_factory
    ):
        payload = b'{"id": "evt_\xff"}'

        response = await async_client.post(
            WEBHOOK_URL,
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload)},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"
        stripe_client.retrieve_checkout_session.assert_not_awaited()
        assert await _count(session_factory, Order) == 0

    async def test_missing_secrets_is_a_server_error(
        self, app, async_client, make_event, sign_payload, session_factory
    ):
        del app.dependency_overrides[get_webhook_stripe_client]
        app.dependency_overrides[get_settings] = lambda: Settings(
            stripe_secret_key="sk_test_chesapeake",
            stripe_webhook_secret=None,
        )
        payload = make_event("cs_1")

        response = await async_client.post(
            WEBHOOK_URL,
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload)},
        )

        assert response.status_code == 500
        assert response.json()["detail"] == "Stripe is not configured"
        assert await _count(session_factory, Order) == 0

    @pytest.mark.parametrize("event_type", [
        "checkout.session.expired",
        "payment_intent.succeeded",
        "payment_intent.payment_failed",
        "customer.created",
    ])
    async def test_other_events_are_acknowledged(
        self, post_event, event_type, stripe_client, session_factory
    ):
        response = await post_event("cs_1", event_type)

        assert response.status_code == 200
        stripe_client.retrieve_checkout_session.assert_not_awaited()
        assert await _count(session_factory, Order) == 0

    async def test_stripe_failure_asks_for_redelivery(self, post_event, stripe_client, session_factory):
        stripe_client.retrieve_checkout_session.side_effect = StripeAPIError("HTTP error: 503", 503)

        response = await post_event("cs_1")

        assert response.status_code == 500
        assert response.json()["detail"] == "Webhook handling failed"
        assert await _count(session_factory, Order) == 0
