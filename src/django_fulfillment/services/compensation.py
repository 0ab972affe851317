"""Compensation: reversing an order's debit and closing the order."""

import logging
from decimal import Decimal

from django.db import transaction

from django_fulfillment import ledger, store
from django_fulfillment.exceptions import NotRefundable, RefundFailed
from django_fulfillment.models import BalanceTransaction, OrderStatus
from django_fulfillment.results import ActionResult

logger = logging.getLogger(__name__)


def _lock_order(order):
    return type(order).objects.select_for_update().get(pk=order.pk)


def _refund(order, description: str, annotation: str) -> Decimal:
    """Credit back the order's debit and mark it cancelled.

    Must run inside transaction.atomic() with the order row locked.

    Returns:
        The amount credited.
    """
    transactions = BalanceTransaction.objects.for_order(order)
    if transactions.refunds().exists():
        raise NotRefundable(f"Order #{order.pk} was already refunded")

    debit_txn = transactions.debits().first()
    if debit_txn is None:
        raise NotRefundable(f"Order #{order.pk} has no recorded debit to refund")

    amount = -debit_txn.amount
    ledger.credit(order.owner, amount, description, related_order=order)

    if order.status != OrderStatus.CANCELLED:
        if not store.update_order_fields(order, status=OrderStatus.CANCELLED, error_annotation=annotation):
            raise NotRefundable(f"Order #{order.pk} is already {order.get_status_display()}")

    return amount


def auto_refund(order_id, kind: str, reason: str) -> str:
    """
    Refund an order whose submission to the provider failed.

    The credit and the move to cancelled happen in one transaction. If that
    transaction fails, the order is flagged api_submission_failed for an
    operator and RefundFailed is raised; refunds are never retried here.

    Args:
        order_id: The order to refund.
        kind: 'vote' or 'comment'.
        reason: The submission failure, recorded on the order.

    Returns:
        A message describing the refund.

    Raises:
        RefundFailed: If the refund could not be recorded.
    """
    order = store.get_order(kind, order_id)

    try:
        with transaction.atomic():
            order = _lock_order(order)
            amount = _refund(
                order,
                description=f"Automatic refund for {kind} order #{order.pk}: {reason}",
                annotation=f"API submission failed: {reason}. Customer automatically refunded.",
            )
    except Exception as e:
        order.refresh_from_db()
        store.update_order_fields(
            order,
            status=OrderStatus.API_SUBMISSION_FAILED,
            error_annotation=f"API submission failed: {reason}. Refund attempt failed: {e}",
        )
        logger.critical(
            f"Automatic refund failed for {kind} order {order.pk}; manual review required. "
            f"Submission error: {reason}. Refund error: {e}"
        )
        raise RefundFailed(order.pk, reason, str(e)) from e

    logger.info(f"Refunded {amount} for failed {kind} order {order.pk}")
    return f"Order #{order.pk} cancelled and {amount:.2f} refunded to the customer"


def manual_refund(order_id, kind: str, reason: str = "", actor=None) -> ActionResult:
    """
    Refund an order at an operator's discretion.

    Works on any order that is not completed, including one the customer
    already cancelled. Calling it again for an order that has a refund is a
    no-op.

    Raises:
        NotRefundable: If the order is completed or has no debit.
    """
    order = store.get_order(kind, order_id)
    reason = reason.strip() or "Refund by operator"

    with transaction.atomic():
        order = _lock_order(order)
        if BalanceTransaction.objects.for_order(order).refunds().exists():
            return ActionResult(ok=True, message=f"Order #{order.pk} was already refunded")
        if order.status == OrderStatus.COMPLETED:
            raise NotRefundable(f"Order #{order.pk} is completed and cannot be refunded")
        amount = _refund(
            order,
            description=f"Refund for {kind} order #{order.pk}: {reason}",
            annotation=f"Cancelled and refunded: {reason}",
        )

    actor_label = getattr(actor, "pk", None) or "system"
    logger.info(f"Manual refund of {amount} for {kind} order {order.pk} by {actor_label}")
    return ActionResult(ok=True, message=f"Order #{order.pk} refunded {amount:.2f}")
