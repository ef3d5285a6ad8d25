"""
Force-complete stale orders on networks whose providers never report status.
Usage: python manage.py complete_old_orders
"""
from django.conf import settings
from django.core.management.base import BaseCommand

from apps.orders.services import complete_stale_orders


class Command(BaseCommand):
    help = 'Mark pending/processing orders older than the stale threshold as completed (fallback networks only)'

    def handle(self, *args, **options):
        summary = complete_stale_orders()
        if summary.get('skipped'):
            self.stdout.write(self.style.WARNING('Another run is in progress, nothing done'))
            return
        networks = ', '.join(settings.STALE_FALLBACK_NETWORKS)
        self.stdout.write(
            f"Networks: {networks}; threshold: {settings.STALE_ORDER_THRESHOLD_MINUTES} minutes"
        )
        self.stdout.write(self.style.SUCCESS(
            f"Completed {summary['completed']} of {summary['checked']} stale orders ({summary['errors']} errors)"
        ))
