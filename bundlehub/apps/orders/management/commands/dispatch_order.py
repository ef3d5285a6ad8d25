"""
Manually (re)send orders to their provider.
Usage: python manage.py dispatch_order 101 102
"""
from django.core.management.base import BaseCommand, CommandError

from apps.orders.models import Order
from apps.orders.services import DispatchDisabled, OrderServiceError, redispatch_order


class Command(BaseCommand):
    help = 'Dispatch failed, disabled or never-dispatched orders to the first enabled provider'

    def add_arguments(self, parser):
        parser.add_argument('order_ids', nargs='+', type=int)

    def handle(self, *args, **options):
        failures = 0
        for order_id in options['order_ids']:
            try:
                result = redispatch_order(order_id)
            except Order.DoesNotExist:
                failures += 1
                self.stdout.write(self.style.ERROR(f'#{order_id}: not found'))
                continue
            except (DispatchDisabled, OrderServiceError) as exc:
                failures += 1
                self.stdout.write(self.style.WARNING(f'#{order_id}: {exc}'))
                continue
            line = f'#{order_id}: {result.result} via {result.provider}'
            if result.reference:
                line += f' (ref {result.reference})'
            if result.result == 'success':
                self.stdout.write(self.style.SUCCESS(line))
            else:
                failures += 1
                self.stdout.write(self.style.ERROR(f'{line}: {result.reason}'))
        if failures:
            raise CommandError(f'{failures} order(s) not dispatched')
