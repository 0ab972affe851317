"""Tests for status reconciliation services."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from django_fulfillment.exceptions import ProviderError, ProviderUnreachable
from django_fulfillment.models import CommentOrder, OrderStatus, VoteOrder
from django_fulfillment.providers import ProviderOrderStatus
from django_fulfillment.services import reconciliation
from django_fulfillment.services.reconciliation import refresh_many, refresh_status


@pytest.mark.django_db
class TestRefreshStatus:
    """Test suite for refresh_status."""

    def test_merges_provider_snapshot(self, make_vote_order, provider):
        order = make_vote_order(external_reference="ext-1")

        result = refresh_status(order.pk, provider=provider)

        order.refresh_from_db()
        assert result.updated is True
        assert result.status == OrderStatus.IN_PROGRESS
        assert result.delivered_count == 3
        assert order.status == OrderStatus.IN_PROGRESS
        assert order.delivered_count == 3
        assert order.last_checked_at is not None

    def test_no_tracking_id(self, make_vote_order, provider):
        order = make_vote_order()

        result = refresh_status(order.pk, provider=provider)

        assert result.updated is False
        assert result.message == "Order has no tracking ID yet"
        assert provider.calls == []

    def test_missing_order(self, db, provider):
        result = refresh_status(404, provider=provider)

        assert result.updated is False
        assert "does not exist" in result.message

    def test_cooldown(self, make_vote_order, provider):
        """A second call five seconds later is refused, whatever the provider says."""
        order = make_vote_order(external_reference="ext-1")

        with freeze_time("2026-03-01 12:00:00") as frozen:
            first = refresh_status(order.pk, provider=provider)
            provider.snapshot = ProviderOrderStatus(
                status=OrderStatus.COMPLETED, raw_status="Completed", delivered_count=10
            )
            frozen.tick(timedelta(seconds=5))
            second = refresh_status(order.pk, provider=provider)

        assert first.updated is True
        assert second.updated is False
        assert second.message == "Status checked 5s ago"
        assert second.retry_after == 25
        assert len(provider.called("get_vote_order_status")) == 1
        order.refresh_from_db()
        assert order.status == OrderStatus.IN_PROGRESS

    def test_cooldown_message_rounds_down(self, make_vote_order, provider):
        order = make_vote_order(external_reference="ext-1")

        with freeze_time("2026-03-01 12:00:00") as frozen:
            refresh_status(order.pk, provider=provider)
            frozen.tick(timedelta(seconds=29.6))
            result = refresh_status(order.pk, provider=provider)

        assert result.updated is False
        assert result.message == "Status checked 29s ago"
        assert result.retry_after == 1

    def test_closes_configured_provider(self, make_vote_order):
        order = make_vote_order(external_reference="ext-1")
        configured = Mock()
        configured.get_vote_order_status.return_value = ProviderOrderStatus(
            status=OrderStatus.IN_PROGRESS, raw_status="In progress", delivered_count=2
        )

        with patch("django_fulfillment.conf.get_provider", return_value=configured):
            result = refresh_status(order.pk)

        assert result.updated is True
        configured.close.assert_called_once_with()

    def test_leaves_given_provider_open(self, make_vote_order):
        order = make_vote_order(external_reference="ext-1")
        given = Mock()
        given.get_vote_order_status.return_value = ProviderOrderStatus(
            status=OrderStatus.IN_PROGRESS, raw_status="In progress", delivered_count=2
        )

        refresh_status(order.pk, provider=given)

        given.close.assert_not_called()

    def test_cooldown_elapsed(self, make_vote_order, provider, settings):
        settings.FULFILLMENT_STATUS_COOLDOWN_SECONDS = 10
        order = make_vote_order(external_reference="ext-1")

        with freeze_time("2026-03-01 12:00:00") as frozen:
            refresh_status(order.pk, provider=provider)
            frozen.tick(timedelta(seconds=10))
            second = refresh_status(order.pk, provider=provider)

        assert second.updated is True

    def test_idempotent_merge(self, make_vote_order, provider):
        """The same snapshot applied twice leaves the order as after the first."""
        order = make_vote_order(external_reference="ext-1")

        with freeze_time("2026-03-01 12:00:00") as frozen:
            refresh_status(order.pk, provider=provider)
            order.refresh_from_db()
            after_first = (order.status, order.delivered_count, order.external_reference)

            frozen.tick(timedelta(seconds=31))
            result = refresh_status(order.pk, provider=provider)

        order.refresh_from_db()
        assert result.updated is True
        assert (order.status, order.delivered_count, order.external_reference) == after_first

    @pytest.mark.parametrize("status", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    def test_terminal_order_is_not_polled(self, make_vote_order, provider, status):
        order = make_vote_order(external_reference="ext-1", status=status, delivered_count=5)

        result = refresh_status(order.pk, provider=provider)

        order.refresh_from_db()
        assert result.updated is False
        assert result.message.startswith("Order is already")
        assert provider.calls == []
        assert order.status == status
        assert order.delivered_count == 5
        assert order.external_reference == "ext-1"

    @pytest.mark.parametrize("error", [
        ProviderUnreachable("timed out"),
        ProviderError("Unknown provider status: 'Partial'"),
        RuntimeError("unexpected"),
    ])
    def test_provider_failure_only_advances_last_checked(self, make_vote_order, provider, error):
        order = make_vote_order(
            external_reference="ext-1", status=OrderStatus.IN_PROGRESS, delivered_count=2
        )
        provider.status_errors["ext-1"] = error

        result = refresh_status(order.pk, provider=provider)

        order.refresh_from_db()
        assert result.updated is False
        assert str(error) in result.message
        assert order.status == OrderStatus.IN_PROGRESS
        assert order.delivered_count == 2
        assert order.last_checked_at is not None

    def test_delivered_count_is_clamped(self, make_vote_order, provider):
        order = make_vote_order(external_reference="ext-1", quantity=10)
        provider.snapshot = ProviderOrderStatus(
            status=OrderStatus.COMPLETED, raw_status="Completed", delivered_count=12
        )

        result = refresh_status(order.pk, provider=provider)

        assert result.delivered_count == 10

    def test_comment_order(self, user, provider):
        order = CommentOrder.objects.create(
            owner=user,
            target_link="https://www.reddit.com/r/python/comments/abc123/",
            content="Nice",
            price=Decimal("2.50"),
            external_reference="c-1",
        )

        result = refresh_status(order.pk, "comment", provider=provider)

        assert result.updated is True
        assert result.delivered_count is None
        assert provider.called("get_comment_order_status") == [("get_comment_order_status", "c-1")]


@pytest.mark.django_db
class TestRefreshMany:
    """Test suite for refresh_many."""

    @pytest.fixture
    def orders(self, make_vote_order):
        return [make_vote_order(external_reference=f"ext-{i}") for i in range(1, 13)]

    @patch("django_fulfillment.services.reconciliation.time.sleep")
    def test_runs_in_batches_of_five(self, mock_sleep, orders, provider):
        order_ids = [order.pk for order in orders]

        with patch.object(
            reconciliation, "_refresh_batch", wraps=reconciliation._refresh_batch
        ) as spy:
            result = refresh_many(order_ids, provider=provider)

        assert [len(call.args[0]) for call in spy.call_args_list] == [5, 5, 2]
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(1.0)
        assert result.updated_count + result.failed_count == 12
        assert result.updated_count == 12
        assert VoteOrder.objects.filter(status=OrderStatus.IN_PROGRESS).count() == 12

    @patch("django_fulfillment.services.reconciliation.time.sleep")
    def test_batch_calls_run_concurrently(self, mock_sleep, orders, provider):
        """All status calls of a batch are in flight together, and no more."""
        in_flight = 0
        peak = 0

        async def slow_status(reference):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return provider.snapshot

        provider.aget_vote_order_status = slow_status

        result = refresh_many([order.pk for order in orders], provider=provider)

        assert peak == 5
        assert result.updated_count == 12

    @patch("django_fulfillment.services.reconciliation.time.sleep")
    def test_failures_do_not_abort(self, mock_sleep, orders, provider):
        provider.status_errors["ext-2"] = ProviderUnreachable("timed out")
        provider.status_errors["ext-9"] = ProviderError("Unknown provider status: 'Partial'")

        result = refresh_many([order.pk for order in orders], provider=provider)

        assert result.updated_count == 10
        assert result.failed_count == 2
        failed = VoteOrder.objects.get(external_reference="ext-9")
        assert failed.status == OrderStatus.PENDING
        assert failed.last_checked_at is not None

    @patch("django_fulfillment.services.reconciliation.time.sleep")
    def test_short_circuited_orders_count_as_failed(self, mock_sleep, make_vote_order, provider):
        tracked = make_vote_order(external_reference="ext-1")
        untracked = make_vote_order()
        recent = make_vote_order(external_reference="ext-2", last_checked_at=timezone.now())

        result = refresh_many([tracked.pk, untracked.pk, recent.pk, 999], provider=provider)

        assert result.updated_count == 1
        assert result.failed_count == 3
        assert provider.called("get_vote_order_status") == [("get_vote_order_status", "ext-1")]
        mock_sleep.assert_not_called()

    def test_empty_list(self, db, provider):
        result = refresh_many([], provider=provider)

        assert result.updated_count == 0
        assert result.failed_count == 0

    @patch("django_fulfillment.services.reconciliation.time.sleep")
    def test_batch_size_from_settings(self, mock_sleep, orders, provider, settings):
        settings.FULFILLMENT_REFRESH_BATCH_SIZE = 4
        settings.FULFILLMENT_REFRESH_BATCH_PAUSE_SECONDS = 0.5

        refresh_many([order.pk for order in orders], provider=provider)

        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.5)
