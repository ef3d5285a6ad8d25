"""
Poll providers once for open orders and converge their statuses.
Usage: python manage.py sync_order_statuses [--limit N]
"""
from django.core.management.base import BaseCommand

from apps.orders.services import reconcile_order_statuses


class Command(BaseCommand):
    help = 'Check dispatched pending/processing orders against their provider and update statuses'

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=None, help='Max orders to poll in this run')

    def handle(self, *args, **options):
        limit = options.get('limit')
        summary = reconcile_order_statuses(limit=max(1, limit) if limit else None)
        if summary.get('skipped'):
            self.stdout.write(self.style.WARNING('Another sync run is in progress, nothing done'))
            return
        if not summary['checked']:
            self.stdout.write('No orders to poll')
            return
        self.stdout.write(self.style.SUCCESS(
            f"Checked {summary['checked']}: {summary['updated']} updated, {summary['completed']} completed, "
            f"{summary['unchanged']} unchanged, {summary['unavailable']} unavailable, "
            f"{summary['unmapped']} unmapped, {summary['errors']} errors"
        ))
