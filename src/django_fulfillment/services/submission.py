"""Submission: local debit plus dispatch to the fulfillment provider."""

import logging

from django.db import transaction

from django_fulfillment import conf, ledger, pricing, store
from django_fulfillment.exceptions import (
    FulfillmentError,
    OrderValidationError,
    ProviderUnreachable,
    RefundFailed,
    SubmissionFailed,
)
from django_fulfillment.models import OrderKind, OrderStatus, ServiceKind
from django_fulfillment.providers import FulfillmentProvider, SubmissionReceipt
from django_fulfillment.results import (
    BulkSubmissionItem,
    BulkSubmissionResult,
    SubmissionResult,
)
from django_fulfillment.services.compensation import auto_refund
from django_fulfillment.services.reconciliation import refresh_status

logger = logging.getLogger(__name__)

UNREACHABLE_NOTE = (
    "The order is saved and paid for; it will be sent to the provider "
    "once the fulfillment service is reachable again."
)


def _send(order, provider: FulfillmentProvider) -> SubmissionReceipt:
    if order.kind == OrderKind.VOTE:
        return provider.submit_vote_order(
            order.target_link, order.quantity, order.service_kind, order.speed
        )
    return provider.submit_comment_order(order.target_link, order.content)


def _compensate(order, reason: str, error: Exception):
    try:
        auto_refund(order.pk, order.kind, reason)
    except RefundFailed as refund_error:
        raise SubmissionFailed(
            f"Order #{order.pk} failed and the automatic refund could not be recorded. "
            f"The order has been flagged for manual review: {reason}",
            order_id=order.pk,
            refunded=False,
        ) from refund_error
    raise SubmissionFailed(
        f"Order failed and customer has been automatically refunded: {reason}",
        order_id=order.pk,
        refunded=True,
    ) from error


def _dispatch(order, provider: FulfillmentProvider) -> SubmissionResult:
    """Hand a debited order to the provider and record the outcome.

    Transport failures park the order in pending_api_submission. Any other
    failure is compensated and raised as SubmissionFailed.
    """
    try:
        receipt = _send(order, provider)
    except ProviderUnreachable as e:
        store.update_order_fields(
            order,
            status=OrderStatus.PENDING_API_SUBMISSION,
            error_annotation=f"Fulfillment service unreachable: {e}. Order awaits resubmission.",
        )
        logger.warning(f"{order.kind.capitalize()} order {order.pk} parked for resubmission: {e}")
        return SubmissionResult(
            order_id=order.pk,
            kind=order.kind,
            status=order.status,
            message=f"Order #{order.pk} placed",
            note=UNREACHABLE_NOTE,
        )
    except Exception as e:
        reason = str(e) or e.__class__.__name__
        logger.exception(f"Submission of {order.kind} order {order.pk} failed: {reason}")
        _compensate(order, reason, e)

    fields = {'external_reference': receipt.reference, 'status': OrderStatus.PENDING}
    if order.error_annotation:
        # Keep the record of the earlier transport failure
        fields['error_annotation'] = (
            f"{order.error_annotation}\nResubmitted; accepted as {receipt.reference}."
        )
    store.update_order_fields(order, **fields)
    logger.info(f"{order.kind.capitalize()} order {order.pk} accepted as {receipt.reference}")

    # Seed status and delivery from the provider right away
    seed = refresh_status(order.pk, order.kind, provider=provider)

    return SubmissionResult(
        order_id=order.pk,
        kind=order.kind,
        status=seed.status or order.status,
        message=f"Order #{order.pk} submitted (provider reference {receipt.reference})",
        external_reference=receipt.reference,
    )


def submit_vote_order(
    user,
    target_link: str,
    quantity: int,
    service_kind: int,
    speed,
    provider: FulfillmentProvider | None = None,
) -> SubmissionResult:
    """
    Place a vote order: validate, debit, and hand it to the provider.

    The order row and its debit are created in one transaction, so either
    both exist or neither does.

    Args:
        user: The customer paying from their prepaid balance.
        target_link: Link to the post or comment.
        quantity: Number of votes.
        service_kind: ServiceKind value (1-4).
        speed: One of pricing.SPEED_OPTIONS.
        provider: Provider to submit to (defaults to the configured one).

    Returns:
        SubmissionResult with the local order id and, when the provider
        accepted the order, its reference.

    Raises:
        OrderValidationError: On invalid input (nothing is written).
        InsufficientFunds: If the balance does not cover the price.
        SubmissionFailed: If the provider refused the order.

    Usage:
        result = submit_vote_order(
            user, "https://www.reddit.com/r/python/comments/abc123/",
            quantity=10, service_kind=ServiceKind.POST_UPVOTES, speed="60",
        )
    """
    link, quantity, service_kind, speed = pricing.validate_vote_request(
        target_link, quantity, service_kind, speed
    )
    with conf.open_provider(provider) as provider:
        order = _place_vote_order(user, link, quantity, service_kind, speed)
        return _dispatch(order, provider)


def _place_vote_order(user, link, quantity, service_kind, speed):
    with transaction.atomic():
        price = pricing.price_vote_order(ledger.get_balance(user), service_kind, quantity)
        order = store.create_order(
            OrderKind.VOTE,
            owner=user,
            target_link=link,
            quantity=quantity,
            service_kind=service_kind,
            speed=speed,
            price=price,
        )
        ledger.debit(
            user,
            price,
            f"Vote order #{order.pk}: {quantity} x {ServiceKind(service_kind).label}",
            related_order=order,
        )

    logger.info(f"Vote order {order.pk} placed by user {user.pk} for {price}")
    return order


def submit_comment_order(
    user,
    target_link: str,
    content: str,
    provider: FulfillmentProvider | None = None,
) -> SubmissionResult:
    """Place a comment order. Same guarantees as submit_vote_order."""
    link, content = pricing.validate_comment_request(target_link, content)
    with conf.open_provider(provider) as provider:
        order = _place_comment_order(user, link, content)
        return _dispatch(order, provider)


def _place_comment_order(user, link, content):
    with transaction.atomic():
        price = pricing.price_comment_order()
        order = store.create_order(
            OrderKind.COMMENT,
            owner=user,
            target_link=link,
            content=content,
            price=price,
        )
        ledger.debit(user, price, f"Comment order #{order.pk}", related_order=order)

    logger.info(f"Comment order {order.pk} placed by user {user.pk} for {price}")
    return order


def submit_comment_orders_bulk(
    user,
    orders,
    provider: FulfillmentProvider | None = None,
) -> BulkSubmissionResult:
    """
    Submit several comment orders one after another.

    Each item is a dict with 'target_link' and 'content'. A failing item is
    recorded and the rest are still submitted. An item parked because the
    provider was unreachable is counted as parked, not as successful: it is
    paid for but the provider has not received it.

    Raises:
        OrderValidationError: If the batch is empty or too large.
    """
    orders = list(orders)
    maximum = conf.get_max_bulk_comments()
    if not orders:
        raise OrderValidationError("At least one comment order is required")
    if len(orders) > maximum:
        raise OrderValidationError(f"At most {maximum} comment orders can be submitted at once")

    result = BulkSubmissionResult()

    with conf.open_provider(provider) as provider:
        for item in orders:
            try:
                submitted = submit_comment_order(
                    user, item.get('target_link'), item.get('content'), provider=provider
                )
            except FulfillmentError as e:
                result.failed += 1
                result.results.append(
                    BulkSubmissionItem(success=False, order_id=getattr(e, 'order_id', None), error=str(e))
                )
                continue

            if submitted.status == OrderStatus.PENDING_API_SUBMISSION:
                result.parked += 1
                result.results.append(
                    BulkSubmissionItem(
                        success=False,
                        order_id=submitted.order_id,
                        status=submitted.status,
                        note=submitted.note,
                    )
                )
            else:
                result.successful += 1
                result.results.append(
                    BulkSubmissionItem(success=True, order_id=submitted.order_id, status=submitted.status)
                )

    logger.info(
        f"Bulk comment submission for user {user.pk}: "
        f"{result.successful} succeeded, {result.parked} parked, {result.failed} failed"
    )
    return result


def resubmit_order(
    order_id,
    kind: str = OrderKind.VOTE,
    provider: FulfillmentProvider | None = None,
) -> SubmissionResult:
    """
    Send an order parked in pending_api_submission to the provider again.

    The order was debited when it was placed, so no new debit is made.
    Outcomes are handled as on first submission.

    Raises:
        OrderNotFound: If the order does not exist.
        OrderValidationError: If the order is not awaiting submission.
        SubmissionFailed: If the provider refused the order.
    """
    order = store.get_order(kind, order_id)
    if order.status != OrderStatus.PENDING_API_SUBMISSION:
        raise OrderValidationError(
            f"Order #{order.pk} is {order.get_status_display()}; "
            f"only orders pending API submission can be resubmitted"
        )

    logger.info(f"Resubmitting {order.kind} order {order.pk}")
    with conf.open_provider(provider) as provider:
        return _dispatch(order, provider)
