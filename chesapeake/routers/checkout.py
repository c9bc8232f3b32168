"""
Storefront checkout: embedded session creation and the checkout-return summary.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.config import Settings, get_settings
from chesapeake.core.database import get_db_session
from chesapeake.core.exceptions import StripeAPIError
from chesapeake.core.logging import get_logger
from chesapeake.models.product import Product
from chesapeake.repositories.product import ProductRepository
from chesapeake.schemas.checkout import (
    CheckoutSessionSummary,
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
)
from chesapeake.services.stripe_client import StripeClient, get_stripe_client

router = APIRouter(prefix="/checkout", tags=["checkout"])
logger = get_logger(__name__)

RETURN_PATH = "/checkout/return?session_id={CHECKOUT_SESSION_ID}"


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def checkout_quantity(product: Product, requested: int) -> int:
    """
    Quantity a session may be opened for.

    One-off pieces always sell singly; tracked stock caps the request.
    Raises HTTPException(400) when the product cannot be sold at all.
    """
    if product.is_active is False:
        raise _bad_request("Product is inactive")
    if product.is_sold:
        raise _bad_request("Product is already sold")
    if product.price_cents is None:
        raise _bad_request("Product is missing a price")
    if not product.stripe_price_id:
        raise _bad_request("This product has no Stripe price configured.")

    available = product.quantity_available
    if available is not None and available <= 0:
        raise _bad_request("Product is sold out")

    if product.is_one_off:
        return 1
    requested = max(1, requested)
    return requested if available is None else min(requested, available)


@router.post("/create-session", response_model=CreateCheckoutSessionResponse)
async def create_checkout_session(
    body: CreateCheckoutSessionRequest,
    stripe_client: StripeClient = Depends(get_stripe_client),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> CreateCheckoutSessionResponse:
    product_key = (body.product_id or "").strip()
    if not product_key:
        raise _bad_request("productId is required")

    product = await ProductRepository(session).get_by_key(product_key)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    quantity = checkout_quantity(product, body.quantity)

    try:
        created = await stripe_client.create_checkout_session(
            price_id=product.stripe_price_id,
            quantity=quantity,
            return_url=settings.public_site_url.rstrip("/") + RETURN_PATH,
            # Read back by the webhook as the single-product hint
            metadata={
                "product_id": product.id,
                "product_slug": product.slug or "",
                "quantity": str(quantity),
            },
            shipping_countries=settings.checkout_shipping_countries,
        )
    except StripeAPIError as e:
        logger.error("Failed to create checkout session", product_id=product.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session",
        )

    if not created.client_secret:
        logger.error("Stripe returned no client_secret", session_id=created.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to create checkout session",
        )

    logger.info(
        "Checkout session created",
        session_id=created.id,
        product_id=product.id,
        quantity=quantity,
    )
    return CreateCheckoutSessionResponse(client_secret=created.client_secret, session_id=created.id)


@router.get("/session/{session_id}", response_model=CheckoutSessionSummary)
async def get_checkout_session(
    session_id: str,
    stripe_client: StripeClient = Depends(get_stripe_client),
) -> CheckoutSessionSummary:
    try:
        checkout = await stripe_client.retrieve_checkout_session(session_id)
    except StripeAPIError as e:
        logger.error("Failed to retrieve checkout session", session_id=session_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch checkout session",
        )
    return CheckoutSessionSummary.from_session(checkout)
