"""Exceptions for django-fulfillment."""


class FulfillmentError(Exception):
    """Base exception for fulfillment errors."""
    pass


class FulfillmentConfigError(FulfillmentError):
    """Raised when fulfillment configuration is invalid."""
    pass


class OrderValidationError(FulfillmentError):
    """Raised when an order request is rejected before any side effect."""
    pass


class InsufficientFunds(FulfillmentError):
    """Raised when a debit exceeds the available balance."""

    def __init__(self, required, available):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance: required {required}, available {available}"
        )


class NegativeBalanceError(FulfillmentError):
    """Raised when an adjustment would leave a negative balance."""
    pass


class OrderNotFound(FulfillmentError):
    """Raised when an order id does not exist."""

    def __init__(self, kind: str, order_id):
        self.kind = kind
        self.order_id = order_id
        super().__init__(f"{kind.capitalize()} order #{order_id} does not exist")


class NotCancellable(FulfillmentError):
    """Raised when an order cannot be cancelled at the provider."""
    pass


class NotRefundable(FulfillmentError):
    """Raised when an order is in a state that cannot be refunded."""
    pass


class RefundFailed(FulfillmentError):
    """Raised when an automatic refund could not be recorded.

    The order is left in api_submission_failed and needs manual review.
    """

    def __init__(self, order_id, original_error: str, refund_error: str):
        self.order_id = order_id
        self.original_error = original_error
        self.refund_error = refund_error
        super().__init__(
            f"Refund for order #{order_id} failed: {refund_error} "
            f"(original failure: {original_error})"
        )


class SubmissionFailed(FulfillmentError):
    """Raised when an order could not be handed to the provider.

    `refunded` tells the caller whether the customer's debit was reversed.
    """

    def __init__(self, message: str, order_id=None, refunded: bool = False):
        self.order_id = order_id
        self.refunded = refunded
        super().__init__(message)


class ImmutableOrderFieldError(FulfillmentError):
    """Raised when attempting to overwrite a write-once order field."""
    pass


class ImmutableTransactionError(FulfillmentError):
    """Raised when attempting to modify or delete a balance transaction."""
    pass


class OrderDeletionError(FulfillmentError):
    """Raised when attempting to delete an order (orders are an audit trail)."""
    pass


class ProviderError(FulfillmentError):
    """Provider-level failure (bad response, unknown status, etc.)."""
    pass


class ProviderUnreachable(ProviderError):
    """The fulfillment endpoint could not be reached (network, timeout)."""
    pass


class ProviderRejected(ProviderError):
    """The provider answered and refused the request."""

    def __init__(self, reason: str, status_code=None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)
