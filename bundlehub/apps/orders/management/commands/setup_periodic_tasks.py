"""
Create or update the beat entries for the order status jobs.
Usage: python manage.py setup_periodic_tasks
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from django_celery_beat.models import IntervalSchedule, PeriodicTask

JOBS = (
    ('Reconcile order statuses', 'apps.orders.tasks.reconcile_order_statuses', 'RECONCILE_INTERVAL_SECONDS'),
    ('Complete stale orders', 'apps.orders.tasks.complete_stale_orders', 'STALE_ORDER_INTERVAL_SECONDS'),
)


class Command(BaseCommand):
    help = 'Register the reconciliation and stale-order jobs with the database beat scheduler'

    def handle(self, *args, **options):
        for name, task, setting_name in JOBS:
            every = int(getattr(settings, setting_name))
            schedule, _ = IntervalSchedule.objects.get_or_create(every=every, period=IntervalSchedule.SECONDS)
            periodic, created = PeriodicTask.objects.update_or_create(
                name=name,
                defaults={'task': task, 'interval': schedule, 'enabled': True},
            )
            verb = 'Created' if created else 'Updated'
            self.stdout.write(self.style.SUCCESS(f'{verb} {periodic.name}: every {every}s -> {task}'))
