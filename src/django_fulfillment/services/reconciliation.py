"""Reconciliation: merging provider order status into local orders.

Polling is caller-triggered. A per-order cooldown stored on the order
(last_checked_at) bounds how often the provider is asked about any one
order, whichever process asks.
"""

import asyncio
import logging
import time
from datetime import datetime

from asgiref.sync import async_to_sync
from django.utils import timezone

from django_fulfillment import conf, store
from django_fulfillment.exceptions import OrderNotFound, ProviderError
from django_fulfillment.models import OrderKind
from django_fulfillment.providers import FulfillmentProvider, ProviderOrderStatus
from django_fulfillment.results import BulkRefreshResult, RefreshResult

logger = logging.getLogger(__name__)


def _delivered(order):
    return getattr(order, 'delivered_count', None)


def _short_circuit(order, now: datetime) -> RefreshResult | None:
    """Return a not-updated result if the order must not be polled now."""
    if not order.external_reference:
        return RefreshResult(
            updated=False,
            message="Order has no tracking ID yet",
            status=order.status,
            delivered_count=_delivered(order),
        )

    if order.is_terminal:
        return RefreshResult(
            updated=False,
            message=f"Order is already {order.get_status_display()}",
            status=order.status,
            delivered_count=_delivered(order),
        )

    if order.last_checked_at:
        cooldown = conf.get_status_cooldown_seconds()
        elapsed = max((now - order.last_checked_at).total_seconds(), 0)
        if elapsed < cooldown:
            return RefreshResult(
                updated=False,
                message=f"Status checked {int(elapsed)}s ago",
                status=order.status,
                delivered_count=_delivered(order),
                retry_after=max(int(cooldown - elapsed), 1),
            )

    return None


def _apply_snapshot(order, snapshot: ProviderOrderStatus, now: datetime) -> RefreshResult:
    fields = {'status': snapshot.status, 'last_checked_at': now}
    if order.kind == OrderKind.VOTE and snapshot.delivered_count is not None:
        fields['delivered_count'] = snapshot.delivered_count

    previous = order.status
    if not store.update_order_fields(order, **fields):
        return RefreshResult(
            updated=False,
            message=f"Order is already {order.get_status_display()}",
            status=order.status,
            delivered_count=_delivered(order),
        )

    if previous != order.status:
        logger.info(f"{order.kind.capitalize()} order {order.pk}: {previous} -> {order.status}")

    return RefreshResult(
        updated=True,
        message=f"Status updated to {order.get_status_display()}",
        status=order.status,
        delivered_count=_delivered(order),
    )


def _record_failure(order, error: BaseException, now: datetime) -> RefreshResult:
    # Advance last_checked_at anyway so a failing endpoint is not hammered
    store.update_order_fields(order, last_checked_at=now)
    if isinstance(error, ProviderError):
        logger.warning(f"Status check failed for {order.kind} order {order.pk}: {error}")
    else:
        logger.error(
            f"Unexpected error checking {order.kind} order {order.pk}: {error!r}",
            exc_info=error,
        )
    return RefreshResult(
        updated=False,
        message=f"Status check failed: {error}",
        status=order.status,
        delivered_count=_delivered(order),
    )


def _fetch_status(provider: FulfillmentProvider, order) -> ProviderOrderStatus:
    if order.kind == OrderKind.VOTE:
        return provider.get_vote_order_status(order.external_reference)
    return provider.get_comment_order_status(order.external_reference)


def refresh_status(order_id, kind: str = OrderKind.VOTE, provider: FulfillmentProvider | None = None) -> RefreshResult:
    """
    Refresh one order from the provider.

    Never raises for provider trouble: failures come back as
    updated=False with the reason in the message.

    Args:
        order_id: The local order id.
        kind: 'vote' or 'comment'.
        provider: Provider to ask (defaults to the configured one).

    Returns:
        RefreshResult. updated is True only when provider state was merged.

    Usage:
        result = refresh_status(order.pk)
        if not result.updated:
            show(result.message)  # e.g. "Status checked 5s ago"
    """
    try:
        order = store.get_order(kind, order_id)
    except OrderNotFound as e:
        return RefreshResult(updated=False, message=str(e))

    now = timezone.now()
    skipped = _short_circuit(order, now)
    if skipped is not None:
        return skipped

    with conf.open_provider(provider) as provider:
        try:
            snapshot = _fetch_status(provider, order)
        except Exception as e:
            return _record_failure(order, e, now)

    return _apply_snapshot(order, snapshot, now)


async def _fetch_statuses(provider: FulfillmentProvider, kind: str, references: list[str]) -> list:
    """Ask the provider about several orders at once.

    Exceptions are returned in place of results, one slot per reference.
    """
    if kind == OrderKind.VOTE:
        fetch = provider.aget_vote_order_status
    else:
        fetch = provider.aget_comment_order_status
    return await asyncio.gather(*(fetch(reference) for reference in references), return_exceptions=True)


def _refresh_batch(order_ids: list, kind: str, provider: FulfillmentProvider) -> list[RefreshResult]:
    now = timezone.now()
    results: dict[int, RefreshResult] = {}
    to_poll = []

    for index, order_id in enumerate(order_ids):
        try:
            order = store.get_order(kind, order_id)
        except OrderNotFound as e:
            results[index] = RefreshResult(updated=False, message=str(e))
            continue
        skipped = _short_circuit(order, now)
        if skipped is not None:
            results[index] = skipped
        else:
            to_poll.append((index, order))

    if to_poll:
        references = [order.external_reference for _, order in to_poll]
        snapshots = async_to_sync(_fetch_statuses)(provider, kind, references)
        for (index, order), snapshot in zip(to_poll, snapshots):
            if isinstance(snapshot, BaseException):
                results[index] = _record_failure(order, snapshot, now)
            else:
                results[index] = _apply_snapshot(order, snapshot, now)

    return [results[index] for index in range(len(order_ids))]


def refresh_many(order_ids, kind: str = OrderKind.VOTE, provider: FulfillmentProvider | None = None) -> BulkRefreshResult:
    """
    Refresh many orders, a fixed-size batch at a time.

    The provider calls of one batch run concurrently; the batch is finished
    before the next starts, with a fixed pause in between. Orders that are
    skipped (cooldown, no tracking id) or fail count as failed; nothing
    aborts the run.

    Callers should pass orders from OrderQuerySet.eligible_for_refresh().
    """
    order_ids = list(order_ids)
    batch_size = conf.get_refresh_batch_size()
    pause = conf.get_refresh_batch_pause_seconds()
    result = BulkRefreshResult()

    if not order_ids:
        return result

    with conf.open_provider(provider) as provider:
        for start in range(0, len(order_ids), batch_size):
            if start:
                time.sleep(pause)
            batch = order_ids[start:start + batch_size]
            for outcome in _refresh_batch(batch, kind, provider):
                if outcome.updated:
                    result.updated_count += 1
                else:
                    result.failed_count += 1

    logger.info(
        f"Refreshed {len(order_ids)} {kind} orders: "
        f"{result.updated_count} updated, {result.failed_count} not updated"
    )
    return result
