"""Configuration for django-fulfillment."""

from contextlib import contextmanager
from decimal import Decimal

from django.conf import settings
from django.utils.module_loading import import_string

from django_fulfillment.exceptions import FulfillmentConfigError

DEFAULT_PROVIDER_CLASS = "django_fulfillment.providers.BuyUpvotesProvider"
DEFAULT_PROVIDER_BASE_URL = "https://api.buyupvotes.io"


def get_provider_api_key() -> str:
    """Get the fulfillment provider API key.

    Reads FULFILLMENT_PROVIDER_API_KEY from Django settings.

    Raises:
        FulfillmentConfigError: If FULFILLMENT_PROVIDER_API_KEY is not configured
    """
    api_key = getattr(settings, "FULFILLMENT_PROVIDER_API_KEY", None)
    if not api_key:
        raise FulfillmentConfigError(
            "FULFILLMENT_PROVIDER_API_KEY setting is required. "
            "Set it to the API key issued by your fulfillment provider."
        )
    return api_key


def get_provider_base_url() -> str:
    base_url = getattr(settings, "FULFILLMENT_PROVIDER_BASE_URL", DEFAULT_PROVIDER_BASE_URL)
    return base_url.rstrip("/")


def get_provider_timeout() -> float:
    return float(getattr(settings, "FULFILLMENT_PROVIDER_TIMEOUT", 10.0))


def get_status_cooldown_seconds() -> int:
    """Minimum seconds between two status checks of the same order."""
    return int(getattr(settings, "FULFILLMENT_STATUS_COOLDOWN_SECONDS", 30))


def get_refresh_batch_size() -> int:
    batch_size = int(getattr(settings, "FULFILLMENT_REFRESH_BATCH_SIZE", 5))
    if batch_size < 1:
        raise FulfillmentConfigError("FULFILLMENT_REFRESH_BATCH_SIZE must be at least 1")
    return batch_size


def get_refresh_batch_pause_seconds() -> float:
    return float(getattr(settings, "FULFILLMENT_REFRESH_BATCH_PAUSE_SECONDS", 1.0))


def get_vote_quantity_bounds() -> tuple[int, int]:
    """Return the (min, max) quantity accepted for a vote order."""
    minimum = int(getattr(settings, "FULFILLMENT_VOTE_QUANTITY_MIN", 1))
    maximum = int(getattr(settings, "FULFILLMENT_VOTE_QUANTITY_MAX", 500))
    return minimum, maximum


def get_comment_price() -> Decimal:
    return Decimal(str(getattr(settings, "FULFILLMENT_COMMENT_PRICE", "2.50")))


def get_comment_max_length() -> int:
    return int(getattr(settings, "FULFILLMENT_COMMENT_MAX_LENGTH", 10000))


def get_max_bulk_comments() -> int:
    return int(getattr(settings, "FULFILLMENT_MAX_BULK_COMMENTS", 25))


def get_provider_class():
    """Resolve the configured provider class.

    Reads FULFILLMENT_PROVIDER_CLASS (dotted path) from Django settings.
    """
    path = getattr(settings, "FULFILLMENT_PROVIDER_CLASS", DEFAULT_PROVIDER_CLASS)
    try:
        return import_string(path)
    except ImportError as e:
        raise FulfillmentConfigError(
            f"FULFILLMENT_PROVIDER_CLASS '{path}' could not be imported: {e}"
        ) from e


def get_provider():
    """Build the configured fulfillment provider.

    The default provider needs FULFILLMENT_PROVIDER_API_KEY. Custom provider
    classes are instantiated without arguments.
    """
    provider_class = get_provider_class()
    path = getattr(settings, "FULFILLMENT_PROVIDER_CLASS", DEFAULT_PROVIDER_CLASS)
    if path == DEFAULT_PROVIDER_CLASS:
        return provider_class(
            api_key=get_provider_api_key(),
            base_url=get_provider_base_url(),
            timeout=get_provider_timeout(),
        )
    return provider_class()


@contextmanager
def open_provider(provider=None):
    """Yield the given provider, or build the configured one for the block.

    A provider built here is closed when the block exits. A provider passed
    in belongs to the caller and is left open.

    Usage:
        with open_provider(provider) as provider:
            provider.get_vote_order_status(reference)
    """
    if provider is not None:
        yield provider
        return

    provider = get_provider()
    try:
        yield provider
    finally:
        close = getattr(provider, "close", None)
        if close is not None:
            close()
