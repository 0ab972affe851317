"""Pricing tiers and order request validation."""

from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import urlparse

from django_fulfillment import conf
from django_fulfillment.exceptions import OrderValidationError
from django_fulfillment.models import ServiceKind

PRICE_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class PricingTier:
    name: str
    min_balance: Decimal
    post_vote: Decimal
    comment_vote: Decimal


# Highest threshold first
PRICING_TIERS = (
    PricingTier("Elite", Decimal("1000"), Decimal("0.04"), Decimal("0.032")),
    PricingTier("Pro", Decimal("750"), Decimal("0.06"), Decimal("0.048")),
    PricingTier("Standard", Decimal("250"), Decimal("0.08"), Decimal("0.064")),
    PricingTier("Basic", Decimal("100"), Decimal("0.10"), Decimal("0.08")),
    PricingTier("Starter", Decimal("0"), Decimal("0.20"), Decimal("0.16")),
)

POST_VOTE_SERVICES = (ServiceKind.POST_UPVOTES, ServiceKind.POST_DOWNVOTES)
COMMENT_VOTE_SERVICES = (ServiceKind.COMMENT_UPVOTES, ServiceKind.COMMENT_DOWNVOTES)

# Provider speed settings, slowest (1 vote/day) to fastest (5 votes/minute)
SPEED_OPTIONS = (
    Decimal("0.0414"),
    Decimal("0.0828"),
    Decimal("0.1242"),
    Decimal("0.1656"),
    Decimal("0.207"),
    Decimal("0.2484"),
    Decimal("12"),
    Decimal("30"),
    Decimal("60"),
    Decimal("120"),
    Decimal("180"),
    Decimal("240"),
    Decimal("300"),
)


def get_pricing_tier(balance: Decimal) -> PricingTier:
    """Return the tier a customer with the given balance buys at."""
    for tier in PRICING_TIERS:
        if balance >= tier.min_balance:
            return tier
    return PRICING_TIERS[-1]


def price_vote_order(balance: Decimal, service_kind: int, quantity: int) -> Decimal:
    """
    Price a vote order for a customer.

    Post votes and comment votes have separate per-vote rates, both
    discounted as the customer's balance tier rises.

    Usage:
        price = price_vote_order(Decimal('120.00'), ServiceKind.POST_UPVOTES, 50)
        # Basic tier: 50 * 0.10 = Decimal('5.0000')
    """
    tier = get_pricing_tier(balance)
    if service_kind in POST_VOTE_SERVICES:
        unit_price = tier.post_vote
    elif service_kind in COMMENT_VOTE_SERVICES:
        unit_price = tier.comment_vote
    else:
        raise OrderValidationError(f"Unknown service kind: {service_kind}")
    return (unit_price * quantity).quantize(PRICE_QUANTUM)


def price_comment_order() -> Decimal:
    return conf.get_comment_price().quantize(PRICE_QUANTUM)


def validate_link(link) -> str:
    if not link or not str(link).strip():
        raise OrderValidationError("A target link is required")
    link = str(link).strip()
    parsed = urlparse(link)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise OrderValidationError(f"Target link must be an http(s) URL: {link}")
    return link


def validate_vote_request(link, quantity, service_kind, speed) -> tuple[str, int, int, Decimal]:
    """
    Validate a vote order request and normalize its values.

    Returns:
        (link, quantity, service_kind, speed) ready for storage.

    Raises:
        OrderValidationError: On any invalid field.
    """
    link = validate_link(link)

    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise OrderValidationError(f"Quantity must be a whole number, got {quantity!r}")
    minimum, maximum = conf.get_vote_quantity_bounds()
    if quantity < minimum or quantity > maximum:
        raise OrderValidationError(f"Quantity must be between {minimum} and {maximum}")

    try:
        service_kind = int(service_kind)
    except (TypeError, ValueError):
        raise OrderValidationError(f"Unknown service kind: {service_kind!r}")
    if service_kind not in ServiceKind.values:
        raise OrderValidationError(f"Unknown service kind: {service_kind}")

    try:
        speed = Decimal(str(speed))
    except ArithmeticError:
        raise OrderValidationError(f"Invalid speed: {speed!r}")
    if speed not in SPEED_OPTIONS:
        raise OrderValidationError(f"Unsupported delivery speed: {speed}")

    return link, quantity, service_kind, speed


def validate_comment_request(link, content) -> tuple[str, str]:
    link = validate_link(link)
    if not content or not str(content).strip():
        raise OrderValidationError("Comment content is required")
    content = str(content).strip()
    max_length = conf.get_comment_max_length()
    if len(content) > max_length:
        raise OrderValidationError(f"Comment content exceeds {max_length} characters")
    return link, content
