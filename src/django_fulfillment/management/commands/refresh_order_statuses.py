"""Management command to refresh open orders from the fulfillment provider."""

from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from django_fulfillment.models import OrderKind
from django_fulfillment.selectors import get_orders_due_for_refresh
from django_fulfillment.services import refresh_many


class Command(BaseCommand):
    help = 'Poll the fulfillment provider for orders that are tracked and not yet finished'

    def add_arguments(self, parser):
        parser.add_argument(
            '--kind',
            choices=OrderKind.values,
            help='Only refresh this kind of order (default: both)'
        )
        parser.add_argument(
            '--min-age-minutes',
            type=int,
            default=120,
            help='Skip orders checked within this many minutes (default: 120)'
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=100,
            help='Refresh at most this many orders per kind, newest first (default: 100)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many orders would be refreshed without calling the provider'
        )

    def handle(self, *args, **options):
        kinds = [options['kind']] if options['kind'] else list(OrderKind.values)
        min_age = options['min_age_minutes']
        limit = options['limit']
        dry_run = options['dry_run']
        cutoff = timezone.now() - timedelta(minutes=min_age)

        for kind in kinds:
            order_ids = list(
                get_orders_due_for_refresh(kind, checked_before=cutoff, limit=limit)
                .values_list('pk', flat=True)
            )

            if dry_run:
                self.stdout.write(
                    f'Would refresh {len(order_ids)} {kind} orders '
                    f'(not checked in the last {min_age} minutes)'
                )
                continue

            if not order_ids:
                self.stdout.write(f'No {kind} orders due for refresh')
                continue

            result = refresh_many(order_ids, kind)
            self.stdout.write(
                self.style.SUCCESS(
                    f'Refreshed {kind} orders: {result.updated_count} updated, '
                    f'{result.failed_count} not updated'
                )
            )
