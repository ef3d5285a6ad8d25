"""
Celery task for dispatching orders to external providers (async).
"""
import logging
from typing import Any, Dict

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,
    retry_backoff=True,
)
def send_order_to_provider_async(self, order_id: int) -> Dict[str, Any]:
    """Run the dispatch coordinator for one order in the background.

    Provider failures are recorded on the order by ``dispatch_order`` and do
    not retry; only unexpected errors (database, broker) do.
    """
    from apps.orders.models import Order
    from apps.orders.services import dispatch_order

    try:
        result = dispatch_order(order_id)
    except Order.DoesNotExist:
        logger.error("Order vanished before dispatch", extra={"order_id": order_id})
        return {"order_id": order_id, "result": "missing"}
    except Exception as exc:
        logger.error("Async dispatch failed, will retry", extra={"order_id": order_id, "error": str(exc)})
        raise self.retry(exc=exc, countdown=10)

    logger.info("Async dispatch finished", extra={"order_id": order_id, "result": result.result})
    return result.as_dict()
