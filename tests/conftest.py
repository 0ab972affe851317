"""Shared fixtures for django-fulfillment tests."""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from django_fulfillment.ledger import deposit
from django_fulfillment.models import OrderStatus, ServiceKind, VoteOrder
from django_fulfillment.providers import (
    FulfillmentProvider,
    ProviderOrderStatus,
    SubmissionReceipt,
)

TARGET_LINK = "https://www.reddit.com/r/python/comments/abc123/"


class FakeProvider(FulfillmentProvider):
    """In-memory provider recording every call.

    Set submit_error / cancel_error to make those calls fail, and
    status_errors[reference] to make the status call for one order fail.
    """

    def __init__(self):
        self.reference = "ext-1"
        self.submit_error = None
        self.cancel_error = None
        self.status_errors = {}
        self.snapshot = ProviderOrderStatus(
            status=OrderStatus.IN_PROGRESS,
            raw_status="In progress",
            delivered_count=3,
        )
        self.calls = []

    def submit_vote_order(self, link, quantity, service_kind, speed):
        self.calls.append(("submit_vote_order", link, quantity, service_kind, speed))
        if self.submit_error:
            raise self.submit_error
        return SubmissionReceipt(reference=self.reference, message="Order received")

    def submit_comment_order(self, link, content):
        self.calls.append(("submit_comment_order", link, content))
        if self.submit_error:
            raise self.submit_error
        return SubmissionReceipt(reference=self.reference, message="Order received")

    def get_vote_order_status(self, reference):
        self.calls.append(("get_vote_order_status", reference))
        if reference in self.status_errors:
            raise self.status_errors[reference]
        return self.snapshot

    def get_comment_order_status(self, reference):
        self.calls.append(("get_comment_order_status", reference))
        if reference in self.status_errors:
            raise self.status_errors[reference]
        return ProviderOrderStatus(
            status=self.snapshot.status,
            raw_status=self.snapshot.raw_status,
        )

    def cancel_vote_order(self, reference):
        self.calls.append(("cancel_vote_order", reference))
        if self.cancel_error:
            raise self.cancel_error
        return "Order cancelled"

    async def aget_vote_order_status(self, reference):
        return self.get_vote_order_status(reference)

    async def aget_comment_order_status(self, reference):
        return self.get_comment_order_status(reference)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(username="customer", password="secret")


@pytest.fixture
def funded_user(user):
    """A customer with 50.00 on their balance (Starter tier)."""
    deposit(user, Decimal("50.00"))
    return user


@pytest.fixture
def make_vote_order(user):
    """Create a vote order row directly, bypassing submission."""

    def _make(**fields):
        values = {
            "owner": user,
            "target_link": TARGET_LINK,
            "quantity": 10,
            "service_kind": ServiceKind.POST_UPVOTES,
            "speed": Decimal("60"),
            "price": Decimal("2.00"),
        }
        values.update(fields)
        return VoteOrder.objects.create(**values)

    return _make
