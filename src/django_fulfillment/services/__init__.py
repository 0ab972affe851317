"""django-fulfillment services.

Re-exports all services for convenient importing.
"""

from .cancellation import cancel_order
from .compensation import auto_refund, manual_refund
from .reconciliation import refresh_many, refresh_status
from .submission import (
    resubmit_order,
    submit_comment_order,
    submit_comment_orders_bulk,
    submit_vote_order,
)

__all__ = [
    # Submission services
    "resubmit_order",
    "submit_comment_order",
    "submit_comment_orders_bulk",
    "submit_vote_order",
    # Reconciliation services
    "refresh_many",
    "refresh_status",
    # Cancellation services
    "cancel_order",
    # Compensation services
    "auto_refund",
    "manual_refund",
]
