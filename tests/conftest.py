"""
Shared fixtures: a throwaway SQLite database per test, the FastAPI app with
its Stripe, email and database dependencies overridden, and Stripe payload
factories.
"""
import hashlib
import hmac
import json
import os
import time
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_chesapeake"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_chesapeake"
os.environ["OWNER_EMAIL"] = "owner@example.com"
os.environ.pop("RESEND_API_KEY", None)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_chesapeake.db")

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

import chesapeake.models  # noqa: F401
from chesapeake.core.database import Base, get_db_session, make_async_engine, make_session_factory
from chesapeake.core.schema import SchemaCapabilities, get_schema_capabilities, set_schema_capabilities
from chesapeake.main import create_app
from chesapeake.repositories.order import OrderRepository
from chesapeake.schemas.stripe import CheckoutSession
from chesapeake.services.notification_service import get_notification_service
from chesapeake.services.stripe_client import (
    StripeClient,
    get_stripe_client,
    get_webhook_stripe_client,
)

WEBHOOK_SECRET = "whsec_test_chesapeake"


@pytest.fixture(autouse=True)
def full_schema_capabilities():
    """Every test starts from a fully migrated orders table."""
    set_schema_capabilities(SchemaCapabilities.full())
    yield
    set_schema_capabilities(SchemaCapabilities.full())


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'chesapeake_test.db'}"


@pytest.fixture
async def engine(database_url: str):
    engine = make_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def order_repo(db_session) -> OrderRepository:
    return OrderRepository(db_session, SchemaCapabilities.full())


@pytest.fixture
def stripe_client() -> StripeClient:
    """Real signature verification; Stripe API calls are mocked per test."""
    client = StripeClient(
        secret_key="sk_test_chesapeake",
        webhook_secret=WEBHOOK_SECRET,
        api_base="https://stripe.test",
    )
    client.retrieve_checkout_session = AsyncMock()
    client.create_checkout_session = AsyncMock()
    return client


@pytest.fixture
def notifications() -> MagicMock:
    service = MagicMock()
    service.send_email = AsyncMock(return_value=True)
    return service


@pytest.fixture
def app(session_factory, stripe_client, notifications):
    app = create_app()

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_schema_capabilities] = SchemaCapabilities.full
    app.dependency_overrides[get_webhook_stripe_client] = lambda: stripe_client
    app.dependency_overrides[get_stripe_client] = lambda: stripe_client
    app.dependency_overrides[get_notification_service] = lambda: notifications
    return app


@pytest.fixture
def client() -> TestClient:
    """Synchronous client for database-free endpoints; the lifespan is not run."""
    return TestClient(create_app())


@pytest.fixture
async def async_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def sign_payload() -> Callable[[bytes], str]:
    """Build a Stripe-Signature header for a payload, the way Stripe signs it."""

    def _sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
        timestamp = timestamp or int(time.time())
        signed = f"{timestamp}.".encode("utf-8") + payload
        signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    return _sign


@pytest.fixture
def make_event() -> Callable[..., bytes]:
    def _event(session_id: str, event_type: str = "checkout.session.completed") -> bytes:
        return json.dumps({
            "id": f"evt_{session_id}",
            "object": "event",
            "type": event_type,
            "data": {"object": {"id": session_id, "object": "checkout.session"}},
        }).encode("utf-8")

    return _event


def _line_item(
    product_id: str,
    name: str,
    unit_amount: int,
    quantity: int = 1,
) -> dict[str, Any]:
    return {
        "id": f"li_{product_id}",
        "description": name,
        "quantity": quantity,
        "amount_subtotal": unit_amount * quantity,
        "amount_total": unit_amount * quantity,
        "price": {
            "id": f"price_{product_id}",
            "unit_amount": unit_amount,
            "product": {"id": product_id, "name": name},
        },
    }


@pytest.fixture
def make_checkout() -> Callable[..., CheckoutSession]:
    """
    Checkout session as retrieved with line items, products and payment
    method expanded.
    """

    def _checkout(
        session_id: str = "cs_test_1",
        payment_intent: Optional[str] = "pi_123",
        line_items: Optional[list[dict[str, Any]]] = None,
        amount_total: int = 4000,
        shipping: int = 500,
        metadata: Optional[dict[str, Any]] = None,
        email: str = "buyer@example.com",
    ) -> CheckoutSession:
        items = line_items if line_items is not None else []
        return CheckoutSession.model_validate({
            "id": session_id,
            "amount_total": amount_total,
            "amount_subtotal": amount_total - shipping,
            "currency": "usd",
            "customer_details": {"email": email, "name": "Pat Buyer"},
            "shipping_details": {
                "name": "Pat Buyer",
                "address": {
                    "line1": "12 Bay Road",
                    "city": "Annapolis",
                    "state": "MD",
                    "postal_code": "21401",
                    "country": "US",
                },
            },
            "metadata": metadata or {},
            "payment_intent": {
                "id": payment_intent,
                "payment_method": {"id": "pm_1", "card": {"brand": "visa", "last4": "4242"}},
            } if payment_intent else None,
            "line_items": {"data": items},
            "total_details": {"amount_shipping": shipping},
        })

    return _checkout


@pytest.fixture
def line_item() -> Callable[..., dict[str, Any]]:
    return _line_item
