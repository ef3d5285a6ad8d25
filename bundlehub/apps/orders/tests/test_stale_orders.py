from unittest.mock import patch

from celery.exceptions import SoftTimeLimitExceeded
from django.core.cache import cache
from django.test import TestCase, override_settings

from apps.notifications import sms
from apps.orders import tasks
from apps.orders.models import Order
from apps.orders.services import complete_stale_orders

from .factories import create_dispatched_order, create_order


class CompleteStaleOrdersTests(TestCase):
    def setUp(self):
        sms.outbox.clear()
        cache.clear()

    def test_old_telecel_order_is_completed_once(self):
        order = create_dispatched_order(provider='codecraft', network='TELECEL', age_minutes=31)
        first = complete_stale_orders()
        second = complete_stale_orders()

        self.assertEqual(first['completed'], 1)
        self.assertEqual(second['checked'], 0)
        order.refresh_from_db()
        self.assertEqual(order.status, 'completed')
        self.assertEqual(len(sms.outbox), 1)

    def test_recent_order_is_left_alone(self):
        order = create_dispatched_order(provider='codecraft', network='TELECEL', age_minutes=29)
        complete_stale_orders()
        order.refresh_from_db()
        self.assertEqual(order.status, 'processing')

    def test_networks_with_status_channel_are_excluded(self):
        mtn = create_dispatched_order(network='MTN', age_minutes=120)
        ishare = create_dispatched_order(provider='codecraft', network='ISHARE', age_minutes=120)
        complete_stale_orders()
        for order in (mtn, ishare):
            order.refresh_from_db()
            self.assertEqual(order.status, 'processing')

    def test_final_orders_are_untouched(self):
        order = create_order(network='BIGTIME', status=Order.Status.CANCELLED, age_minutes=90)
        summary = complete_stale_orders()
        self.assertEqual(summary['checked'], 0)
        order.refresh_from_db()
        self.assertEqual(order.status, 'cancelled')

    def test_undispatched_order_is_also_completed(self):
        # selection is by network and age only
        order = create_order(network='BIGTIME', status=Order.Status.PENDING, age_minutes=45)
        complete_stale_orders()
        order.refresh_from_db()
        self.assertEqual(order.status, 'completed')

    @override_settings(STALE_ORDER_THRESHOLD_MINUTES=60, STALE_FALLBACK_NETWORKS=['BIGTIME'])
    def test_threshold_and_networks_come_from_settings(self):
        telecel = create_order(network='TELECEL', age_minutes=90)
        bigtime = create_order(network='BIGTIME', age_minutes=61)
        complete_stale_orders()
        telecel.refresh_from_db()
        bigtime.refresh_from_db()
        self.assertEqual(telecel.status, 'processing')
        self.assertEqual(bigtime.status, 'completed')

    def test_beat_task(self):
        create_order(network='TELECEL', age_minutes=31)
        summary = tasks.complete_stale_orders.apply().get()
        self.assertEqual(summary['completed'], 1)

    def test_force_completing_undispatched_order_is_logged(self):
        order = create_order(network='TELECEL', dispatch_status=Order.DispatchStatus.DISABLED, age_minutes=45)
        with self.assertLogs('apps.orders.services', level='WARNING') as logs:
            complete_stale_orders()
        record = logs.records[0]
        self.assertEqual(record.order_id, order.id)
        self.assertEqual(record.dispatch_status, 'disabled')

    def test_accepted_order_completes_without_warning(self):
        create_dispatched_order(provider='codecraft', network='TELECEL', age_minutes=45)
        with self.assertNoLogs('apps.orders.services', level='WARNING'):
            summary = complete_stale_orders()
        self.assertEqual(summary['completed'], 1)

    def test_soft_time_limit_propagates_and_frees_the_lock(self):
        create_order(network='TELECEL', age_minutes=45)
        with patch('apps.orders.services._transition', side_effect=SoftTimeLimitExceeded()):
            with self.assertRaises(SoftTimeLimitExceeded):
                complete_stale_orders()
        self.assertIsNone(cache.get('run-lock:orders:stale-fallback'))
