"""
Django Fulfillment Selectors - Public read-only API for orders and balances.

Usage:
    from django_fulfillment.selectors import get_orders_for_user, get_transaction_history
"""
from datetime import datetime

from django.db.models import QuerySet

from django_fulfillment.models import (
    BalanceTransaction,
    CommentOrder,
    OrderKind,
    OrderStatus,
    VoteOrder,
)
from django_fulfillment.store import get_order_model


# =============================================================================
# ORDER SELECTORS
# =============================================================================

def get_orders_for_user(user, kind: str = OrderKind.VOTE) -> QuerySet:
    """Get a user's orders of one kind, newest first."""
    return get_order_model(kind).objects.for_owner(user)


def get_open_orders(kind: str = OrderKind.VOTE) -> QuerySet:
    """Get orders not yet completed or cancelled."""
    return get_order_model(kind).objects.open()


def get_orders_awaiting_submission(kind: str = OrderKind.VOTE) -> QuerySet:
    """Get orders parked because the provider was unreachable."""
    return get_order_model(kind).objects.filter(status=OrderStatus.PENDING_API_SUBMISSION)


def get_orders_needing_review() -> list:
    """Get orders whose automatic refund failed, both kinds, newest first."""
    orders = [
        *VoteOrder.objects.filter(status=OrderStatus.API_SUBMISSION_FAILED),
        *CommentOrder.objects.filter(status=OrderStatus.API_SUBMISSION_FAILED),
    ]
    return sorted(orders, key=lambda order: order.created_at, reverse=True)


def get_orders_due_for_refresh(
    kind: str = OrderKind.VOTE,
    checked_before: datetime | None = None,
    limit: int | None = None,
) -> QuerySet:
    """
    Get orders eligible for a status refresh, newest first.

    Args:
        kind: 'vote' or 'comment'.
        checked_before: Skip orders checked at or after this time.
        limit: Maximum number of orders.
    """
    queryset = get_order_model(kind).objects.eligible_for_refresh()
    if checked_before is not None:
        queryset = queryset.not_checked_since(checked_before)
    if limit is not None:
        queryset = queryset[:limit]
    return queryset


# =============================================================================
# BALANCE SELECTORS
# =============================================================================

def get_transaction_history(user, limit: int | None = None) -> QuerySet[BalanceTransaction]:
    """Get a user's balance transactions, newest first."""
    queryset = BalanceTransaction.objects.filter(user=user)
    if limit is not None:
        queryset = queryset[:limit]
    return queryset


def get_transactions_for_order(order) -> QuerySet[BalanceTransaction]:
    """Get the debit and any refund recorded for an order."""
    return BalanceTransaction.objects.for_order(order)


def get_refund_for_order(order) -> BalanceTransaction | None:
    """Get the refund transaction of an order, or None."""
    return BalanceTransaction.objects.for_order(order).refunds().first()
