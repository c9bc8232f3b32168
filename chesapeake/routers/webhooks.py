"""
Stripe webhook endpoint.

Status codes drive Stripe's retry behaviour: 2xx acknowledges the event,
anything else gets it redelivered. Verification failures are 400, a
reconciliation that could not be completed is 500.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.database import get_db_session
from chesapeake.core.exceptions import ReconciliationError, WebhookVerificationError
from chesapeake.core.logging import get_logger
from chesapeake.core.schema import SchemaCapabilities, get_schema_capabilities
from chesapeake.repositories.order import OrderRepository
from chesapeake.schemas.stripe import StripeEvent
from chesapeake.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from chesapeake.services.order_emails import OrderEmailDispatcher, OrderEmailData
from chesapeake.services.reconciliation import CheckoutReconciler
from chesapeake.services.stripe_client import StripeClient, get_webhook_stripe_client

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
ACKNOWLEDGED_EVENTS = {
    "checkout.session.expired",
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
}


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_client: StripeClient = Depends(get_webhook_stripe_client),
    stripe_signature: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_db_session),
    capabilities: SchemaCapabilities = Depends(get_schema_capabilities),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict:
    """Receive a Stripe event and reconcile completed checkouts into orders."""
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")

    payload = await request.body()
    try:
        event = StripeEvent.model_validate(stripe_client.verify_event(payload, stripe_signature))
    except (WebhookVerificationError, ValidationError) as e:
        logger.warning("Stripe webhook signature verification failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    log = logger.bind(event_id=event.id, event_type=event.type)

    if event.type != CHECKOUT_COMPLETED:
        if event.type in ACKNOWLEDGED_EVENTS:
            log.info("Stripe event acknowledged")
        else:
            log.info("Unhandled Stripe event type")
        return {"received": True}

    session_id = event.data_object.get("id")
    if not session_id:
        log.warning("Checkout event without a session id")
        return {"received": True}

    try:
        checkout = await stripe_client.retrieve_checkout_session(session_id)
        reconciler = CheckoutReconciler(session, OrderRepository(session, capabilities))
        result = await reconciler.reconcile(checkout)
        await session.commit()
    except (ReconciliationError, SQLAlchemyError) as e:
        log.error(
            "Error handling Stripe webhook",
            session_id=session_id,
            error=str(e),
            exc_info=True,
        )
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handling failed",
        )

    log.info("Checkout session reconciled", session_id=session_id, status=result.status)
    await _send_order_emails(OrderEmailDispatcher(notifications), result.notifications)
    return {"received": True}


async def _send_order_emails(
    dispatcher: OrderEmailDispatcher,
    notifications: list[OrderEmailData],
) -> None:
    for data in notifications:
        try:
            await dispatcher.dispatch(data)
        except Exception as e:
            logger.error("Failed to send order emails", order=data.order_number, error=str(e))
