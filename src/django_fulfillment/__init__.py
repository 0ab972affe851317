"""Django Fulfillment - Prepaid order submission and reconciliation against an external provider."""

__version__ = "0.1.0"


def submit_vote_order(user, target_link, quantity, service_kind, speed, provider=None):
    """Debit the user and submit a vote order to the provider."""
    from django_fulfillment.services import submit_vote_order as _submit_vote_order

    return _submit_vote_order(user, target_link, quantity, service_kind, speed, provider=provider)


def submit_comment_order(user, target_link, content, provider=None):
    """Debit the user and submit a comment order to the provider."""
    from django_fulfillment.services import submit_comment_order as _submit_comment_order

    return _submit_comment_order(user, target_link, content, provider=provider)


def refresh_status(order_id, kind="vote", provider=None):
    """Refresh one order's status from the provider."""
    from django_fulfillment.services import refresh_status as _refresh_status

    return _refresh_status(order_id, kind, provider=provider)


def refresh_many(order_ids, kind="vote", provider=None):
    """Refresh many orders in small concurrent batches."""
    from django_fulfillment.services import refresh_many as _refresh_many

    return _refresh_many(order_ids, kind, provider=provider)


def cancel_order(order_id, kind="vote", provider=None):
    """Cancel an in-flight vote order at the provider."""
    from django_fulfillment.services import cancel_order as _cancel_order

    return _cancel_order(order_id, kind, provider=provider)


__all__ = [
    "cancel_order",
    "refresh_many",
    "refresh_status",
    "submit_comment_order",
    "submit_vote_order",
]
