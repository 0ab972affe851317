"""Order store: persistence and lifecycle writes for fulfillment orders.

Every lifecycle write is a single conditional UPDATE that skips rows already
in a terminal status, so Completed and Cancelled orders are never changed
once reached. The provider reference is write-once.
"""

from django.db.models import Q, QuerySet
from django.utils import timezone

from django_fulfillment.exceptions import (
    FulfillmentError,
    ImmutableOrderFieldError,
    OrderNotFound,
)
from django_fulfillment.models import (
    ORDER_MODELS,
    TERMINAL_STATUSES,
    FulfillmentOrder,
    OrderKind,
)

LIFECYCLE_FIELDS = frozenset({
    'status',
    'external_reference',
    'delivered_count',
    'last_checked_at',
    'error_annotation',
})


def get_order_model(kind: str):
    """Return the order model class for a kind ('vote' or 'comment')."""
    try:
        return ORDER_MODELS[OrderKind(kind)]
    except ValueError:
        raise FulfillmentError(f"Unknown order kind: {kind!r}")


def get_order(kind: str, order_id) -> FulfillmentOrder:
    """Get an order by id.

    Raises:
        OrderNotFound: If no order of that kind has the id.
    """
    model = get_order_model(kind)
    try:
        return model.objects.get(pk=order_id)
    except model.DoesNotExist:
        raise OrderNotFound(kind, order_id)


def create_order(kind: str, **fields) -> FulfillmentOrder:
    """Create an order row in status pending."""
    model = get_order_model(kind)
    return model.objects.create(**fields)


def update_order_fields(order: FulfillmentOrder, **fields) -> bool:
    """
    Apply lifecycle field changes to an order in one UPDATE.

    Only status, external_reference, delivered_count, last_checked_at and
    error_annotation may be written. delivered_count is clamped into
    [0, quantity]. The in-memory order is refreshed afterwards.

    Returns:
        True if the row was written, False if the order is terminal (no-op).

    Raises:
        ImmutableOrderFieldError: On clearing or replacing external_reference.

    Usage:
        update_order_fields(order, status=OrderStatus.IN_PROGRESS, delivered_count=4)
    """
    unknown = set(fields) - LIFECYCLE_FIELDS
    if unknown:
        raise FulfillmentError(f"Not lifecycle fields: {', '.join(sorted(unknown))}")

    model = type(order)
    queryset = model.objects.filter(pk=order.pk).exclude(status__in=TERMINAL_STATUSES)

    if 'external_reference' in fields:
        reference = fields['external_reference']
        if not reference:
            raise ImmutableOrderFieldError(
                f"Cannot clear the provider reference of {order.kind} order {order.pk}"
            )
        if order.external_reference and order.external_reference != reference:
            raise ImmutableOrderFieldError(
                f"{order.kind.capitalize()} order {order.pk} already has provider reference "
                f"{order.external_reference!r}"
            )
        queryset = queryset.filter(
            Q(external_reference__isnull=True)
            | Q(external_reference='')
            | Q(external_reference=reference)
        )

    if 'delivered_count' in fields:
        delivered = max(int(fields['delivered_count'] or 0), 0)
        fields['delivered_count'] = min(delivered, order.quantity)

    updated = queryset.update(updated_at=timezone.now(), **fields)
    order.refresh_from_db()
    return updated == 1


def list_eligible_for_refresh(user, kind: str = OrderKind.VOTE) -> QuerySet:
    """Return a user's orders that are tracked by the provider and not terminal."""
    return get_order_model(kind).objects.for_owner(user).eligible_for_refresh()
