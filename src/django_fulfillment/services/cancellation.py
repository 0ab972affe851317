"""Cancellation of in-flight vote orders at the provider."""

import logging

from django_fulfillment import conf, store
from django_fulfillment.exceptions import NotCancellable
from django_fulfillment.models import OrderKind, OrderStatus
from django_fulfillment.providers import FulfillmentProvider
from django_fulfillment.results import ActionResult

logger = logging.getLogger(__name__)


def cancel_order(
    order_id,
    kind: str = OrderKind.VOTE,
    provider: FulfillmentProvider | None = None,
) -> ActionResult:
    """
    Cancel an order at the provider, then locally.

    A provider failure is raised unchanged and the local order is left as
    it was. No refund is made; use manual_refund for that.

    Raises:
        OrderNotFound: If the order does not exist.
        NotCancellable: If the order has no provider reference, is a comment
            order, or is already completed or cancelled.
        ProviderError: If the provider call fails.
    """
    order = store.get_order(kind, order_id)

    if order.kind == OrderKind.COMMENT:
        raise NotCancellable("Comment orders cannot be cancelled")
    if not order.external_reference:
        raise NotCancellable(f"Order #{order.pk} has no tracking ID and cannot be cancelled")
    if order.is_terminal:
        raise NotCancellable(f"Order #{order.pk} is already {order.get_status_display()}")

    with conf.open_provider(provider) as provider:
        provider_message = provider.cancel_vote_order(order.external_reference)

    if not store.update_order_fields(order, status=OrderStatus.CANCELLED):
        # Reached a terminal status while the provider call was in flight
        return ActionResult(
            ok=False,
            message=f"Order #{order.pk} is already {order.get_status_display()}",
        )

    logger.info(f"Vote order {order.pk} cancelled at provider ({provider_message})")
    return ActionResult(ok=True, message=f"Order #{order.pk} cancelled: {provider_message}")
