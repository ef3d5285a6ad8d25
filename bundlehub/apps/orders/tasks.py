"""
Celery beat tasks that converge order statuses.

``reconcile_order_statuses`` polls providers that report status;
``complete_stale_orders`` force-completes networks whose providers never do.
"""
import logging
from typing import Optional

from celery import shared_task

from . import services

logger = logging.getLogger(__name__)


@shared_task(ignore_result=False, soft_time_limit=240, time_limit=300)
def reconcile_order_statuses(limit: Optional[int] = None):
    summary = services.reconcile_order_statuses(limit=limit)
    if summary.get('skipped'):
        return summary
    logger.info(
        "[RECONCILE] cycle finished",
        extra={f'reconcile_{key}': value for key, value in summary.items()},
    )
    return summary


@shared_task(ignore_result=False, soft_time_limit=240, time_limit=300)
def complete_stale_orders():
    summary = services.complete_stale_orders()
    if summary.get('skipped'):
        return summary
    if summary.get('completed'):
        logger.info(
            "[STALE] orders force-completed",
            extra={f'stale_{key}': value for key, value in summary.items()},
        )
    return summary
