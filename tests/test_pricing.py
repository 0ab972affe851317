"""Tests for pricing tiers and request validation."""

from decimal import Decimal

import pytest

from django_fulfillment.exceptions import OrderValidationError
from django_fulfillment.models import ServiceKind
from django_fulfillment.pricing import (
    get_pricing_tier,
    price_comment_order,
    price_vote_order,
    validate_comment_request,
    validate_link,
    validate_vote_request,
)

LINK = "https://www.reddit.com/r/python/comments/abc123/"


class TestPricingTiers:
    @pytest.mark.parametrize("balance,tier", [
        (Decimal('0'), "Starter"),
        (Decimal('99.99'), "Starter"),
        (Decimal('100'), "Basic"),
        (Decimal('250'), "Standard"),
        (Decimal('750'), "Pro"),
        (Decimal('999.99'), "Pro"),
        (Decimal('1000'), "Elite"),
        (Decimal('25000'), "Elite"),
    ])
    def test_tier_by_balance(self, balance, tier):
        assert get_pricing_tier(balance).name == tier

    def test_post_votes_price(self):
        price = price_vote_order(Decimal('120'), ServiceKind.POST_UPVOTES, 50)
        assert price == Decimal('5.0000')

    def test_comment_votes_price(self):
        price = price_vote_order(Decimal('1000'), ServiceKind.COMMENT_DOWNVOTES, 100)
        assert price == Decimal('3.2000')

    def test_starter_price(self):
        assert price_vote_order(Decimal('0'), ServiceKind.POST_DOWNVOTES, 10) == Decimal('2.0000')

    def test_unknown_service_kind(self):
        with pytest.raises(OrderValidationError):
            price_vote_order(Decimal('0'), 9, 10)

    def test_comment_price_from_settings(self, settings):
        assert price_comment_order() == Decimal('2.5000')

        settings.FULFILLMENT_COMMENT_PRICE = "3.10"
        assert price_comment_order() == Decimal('3.1000')


class TestValidateVoteRequest:
    """Test suite for validate_vote_request."""

    def test_normalizes_values(self):
        link, quantity, service_kind, speed = validate_vote_request(f"  {LINK} ", "10", "3", "60")

        assert link == LINK
        assert quantity == 10
        assert service_kind == 3
        assert speed == Decimal('60')

    @pytest.mark.parametrize("link", ["", "   ", None, "not a link", "ftp://example.com/x", "https://"])
    def test_bad_link(self, link):
        with pytest.raises(OrderValidationError):
            validate_vote_request(link, 10, 1, "60")

    @pytest.mark.parametrize("quantity", [0, 501, -5, "ten", None])
    def test_quantity_out_of_bounds(self, quantity):
        with pytest.raises(OrderValidationError):
            validate_vote_request(LINK, quantity, 1, "60")

    def test_quantity_bounds_from_settings(self, settings):
        settings.FULFILLMENT_VOTE_QUANTITY_MAX = 1000
        assert validate_vote_request(LINK, 800, 1, "60")[1] == 800

    @pytest.mark.parametrize("service_kind", [0, 5, "x"])
    def test_unknown_service_kind(self, service_kind):
        with pytest.raises(OrderValidationError):
            validate_vote_request(LINK, 10, service_kind, "60")

    @pytest.mark.parametrize("speed", ["61", "fast", "0"])
    def test_unsupported_speed(self, speed):
        with pytest.raises(OrderValidationError):
            validate_vote_request(LINK, 10, 1, speed)

    def test_fractional_speed_option(self):
        assert validate_vote_request(LINK, 10, 1, 0.0414)[3] == Decimal('0.0414')


class TestValidateCommentRequest:
    def test_strips_content(self):
        assert validate_comment_request(LINK, "  Nice one  ") == (LINK, "Nice one")

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_content_required(self, content):
        with pytest.raises(OrderValidationError):
            validate_comment_request(LINK, content)

    def test_content_too_long(self, settings):
        settings.FULFILLMENT_COMMENT_MAX_LENGTH = 5

        with pytest.raises(OrderValidationError):
            validate_comment_request(LINK, "Too long")

    def test_validate_link_accepts_http(self):
        assert validate_link("http://example.com/post/1") == "http://example.com/post/1"
