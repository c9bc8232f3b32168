"""
Services package for business logic layer.
"""
from chesapeake.services.backfill import backfill_display_ids
from chesapeake.services.display_id import DisplayIdCounter, format_display_id
from chesapeake.services.idempotency import IdempotencyGuard
from chesapeake.services.inventory import InventoryService
from chesapeake.services.notification_service import NotificationService
from chesapeake.services.order_emails import OrderEmailDispatcher
from chesapeake.services.order_writer import OrderWriter
from chesapeake.services.reconciliation import CheckoutReconciler, ReconcileResult
from chesapeake.services.stripe_client import StripeClient

__all__ = [
    "CheckoutReconciler",
    "ReconcileResult",
    "DisplayIdCounter",
    "format_display_id",
    "IdempotencyGuard",
    "OrderWriter",
    "InventoryService",
    "backfill_display_ids",
    "StripeClient",
    "NotificationService",
    "OrderEmailDispatcher",
]
