from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import asdict, dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from celery.exceptions import SoftTimeLimitExceeded
from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.core.locks import single_run
from apps.notifications.sms import send_sms
from apps.providers.adapters import get_registry
from apps.providers.adapters.base import DispatchOutcome, ProviderAdapter, Unavailable
from apps.providers.services import provider_toggles

from .models import Order, OrderItem

logger = logging.getLogger(__name__)


class OrderServiceError(Exception):
    """Base exception for order services."""


class OrderStatusError(OrderServiceError):
    """Raised for a status change the order lifecycle does not allow."""


class DispatchDisabled(OrderServiceError):
    """No enabled provider, or nothing in the order a provider can fulfil."""


class UnknownExternalStatus(OrderServiceError):
    """Provider returned a status string with no canonical mapping."""


PENDING = Order.Status.PENDING
PROCESSING = Order.Status.PROCESSING
COMPLETED = Order.Status.COMPLETED
CANCELLED = Order.Status.CANCELLED

OPEN_STATUSES = (PENDING, PROCESSING)
TERMINAL_STATUSES = (COMPLETED, CANCELLED)

_ALLOWED_TRANSITIONS: Dict[str, tuple] = {
    PENDING: (PROCESSING, COMPLETED, CANCELLED),
    PROCESSING: (COMPLETED, CANCELLED),
    COMPLETED: (),
    CANCELLED: (),
}


# -- Canonical state machine ---------------------------------------------

def allowed_sources(next_status: str) -> List[str]:
    return [source for source, targets in _ALLOWED_TRANSITIONS.items() if next_status in targets]


def apply_order_status_change(order_id: int, next_status: str, *, expected_status: Optional[str] = None) -> bool:
    """Move an order forward with a single conditional UPDATE.

    Returns ``True`` only when this call changed the row. A row that is
    already terminal, or that another writer moved first, matches nothing and
    gives ``False``. Transitions the lifecycle never allows raise
    ``OrderStatusError``.
    """
    if next_status not in _ALLOWED_TRANSITIONS:
        raise OrderStatusError(f'Unknown order status: {next_status!r}')
    if expected_status is not None and expected_status == next_status:
        return False

    sources = allowed_sources(next_status)
    if expected_status is not None:
        if expected_status in TERMINAL_STATUSES:
            return False
        if expected_status not in sources:
            raise OrderStatusError(f'Illegal transition {expected_status} -> {next_status}')
        sources = [expected_status]
    if not sources:
        raise OrderStatusError(f'No status may move to {next_status!r}')

    now = timezone.now()
    fields: Dict[str, Any] = {'status': next_status, 'updated_at': now}
    if next_status == COMPLETED:
        fields['completed_at'] = now
    updated = Order.objects.filter(id=order_id, status__in=sources).update(**fields)
    return updated == 1


def _transition(order: Order, next_status: str, *, origin: str) -> bool:
    previous = order.status
    if not apply_order_status_change(order.id, next_status, expected_status=previous):
        return False
    order.status = next_status
    logger.info(
        'Order status changed',
        extra={'order_id': order.id, 'from_status': previous, 'to_status': next_status, 'origin': origin},
    )
    if next_status == COMPLETED:
        order.completed_at = timezone.now()
        notify_order_completed(order)
    return True


# -- Notification ----------------------------------------------------------

def build_completion_message(order: Order) -> str:
    items = list(order.items.all())
    first = items[0] if items else None
    size = f'{first.variant_size.upper()} ' if first is not None and first.variant_size else ''
    product = first.product_name if first is not None and first.product_name else 'Data/Airtime'
    currency = getattr(settings, 'NOTIFICATION_CURRENCY', None) or order.currency or 'GHS'
    total = Decimal(order.total or 0)
    return (
        f'Your order #{order.id} for {size}{product} to {order.beneficiary_numbers or "N/A"} '
        f'({order.network}) has been completed. Total: {currency} {total:,.2f}'
    )


def notify_order_completed(order: Order) -> bool:
    phone = (order.customer_phone or '').strip()
    if not phone:
        logger.info('No customer phone on order, completion SMS skipped', extra={'order_id': order.id})
        return False
    return send_sms(phone, build_completion_message(order))


# -- Checkout --------------------------------------------------------------

def normalize_network(network: Any) -> str:
    key = str(network or '').strip().upper()
    if key not in Order.Network.values:
        raise OrderServiceError(f'Unsupported network: {network!r}')
    return key


def split_items_by_network(items: Iterable[Mapping[str, Any]]) -> 'OrderedDict[str, List[Dict[str, Any]]]':
    """Group cart lines so that every order targets exactly one network."""
    groups: 'OrderedDict[str, List[Dict[str, Any]]]' = OrderedDict()
    for item in items:
        line = dict(item)
        network = normalize_network(line.pop('network', None))
        groups.setdefault(network, []).append(line)
    return groups


def create_order(
    *,
    user_id: str,
    network: str,
    items: Iterable[Mapping[str, Any]],
    customer_name: str = '',
    customer_phone: str = '',
    status: str = PROCESSING,
    currency: Optional[str] = None,
) -> Order:
    lines = [dict(item) for item in items]
    if not lines:
        raise OrderServiceError('An order needs at least one line item')
    if status not in OPEN_STATUSES:
        raise OrderServiceError(f'New orders start pending or processing, not {status!r}')

    total = sum((Decimal(str(line.get('price') or 0)) for line in lines), Decimal('0'))
    with transaction.atomic():
        order = Order.objects.create(
            user_id=str(user_id),
            customer_name=customer_name or '',
            customer_phone=customer_phone or '',
            network=normalize_network(network),
            total=total,
            currency=currency or getattr(settings, 'NOTIFICATION_CURRENCY', 'GHS'),
            status=status,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_name=line.get('product_name') or '',
                variant_id=line.get('variant_id'),
                variant_size=line.get('variant_size') or '',
                quantity=int(line.get('quantity') or 1),
                price=Decimal(str(line.get('price') or 0)),
                beneficiary_number=line.get('beneficiary_number') or '',
            )
            for line in lines
        ])
    logger.info('Order created', extra={'order_id': order.id, 'network': order.network, 'items': len(lines)})
    return order


def _schedule_dispatch(order_id: int) -> None:
    if getattr(settings, 'ORDERS_ASYNC_DISPATCH', False):
        from .tasks_dispatch import send_order_to_provider_async

        transaction.on_commit(lambda: send_order_to_provider_async.delay(order_id))
        return
    try:
        dispatch_order(order_id)
    except Exception:
        # payment is already captured; the order stays not_dispatched for manual retry
        logger.exception('Dispatch raised after checkout', extra={'order_id': order_id})


def create_and_dispatch(
    *,
    user_id: str,
    items: Iterable[Mapping[str, Any]],
    customer_name: str = '',
    customer_phone: str = '',
    network: Optional[str] = None,
) -> List[Order]:
    """Checkout entry point: one order per network, each handed to dispatch."""
    if network:
        groups = OrderedDict([(normalize_network(network), [dict(i) for i in items])])
        for lines in groups.values():
            for line in lines:
                line.pop('network', None)
    else:
        groups = split_items_by_network(items)
    if not groups:
        raise OrderServiceError('An order needs at least one line item')

    orders = []
    with transaction.atomic():
        for group_network, lines in groups.items():
            orders.append(create_order(
                user_id=user_id,
                network=group_network,
                items=lines,
                customer_name=customer_name,
                customer_phone=customer_phone,
            ))
    for order in orders:
        _schedule_dispatch(order.id)
    for order in orders:
        order.refresh_from_db()
    return orders


# -- Dispatch coordinator --------------------------------------------------

@dataclass
class DispatchResult:
    order_id: int
    result: str
    provider: Optional[str] = None
    reference: Optional[str] = None
    reason: Optional[str] = None

    SKIPPED = 'skipped'

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _record_dispatch(order: Order, provider: str, outcome: DispatchOutcome) -> None:
    now = timezone.now()
    with transaction.atomic():
        locked = Order.objects.select_for_update().get(id=order.id)
        locked.dispatch_status = outcome.kind
        locked.provider = provider
        locked.provider_reference = outcome.reference if outcome.is_success else None
        locked.dispatch_note = outcome.reason or outcome.note
        locked.dispatched_at = now
        locked.save(update_fields=[
            'dispatch_status', 'provider', 'provider_reference', 'dispatch_note', 'dispatched_at', 'updated_at',
        ])
    order.dispatch_status = locked.dispatch_status
    order.provider = locked.provider
    order.provider_reference = locked.provider_reference
    order.dispatch_note = locked.dispatch_note
    order.dispatched_at = locked.dispatched_at


def dispatch_order(order_id: int) -> DispatchResult:
    """Hand one order to the first enabled provider for its network.

    Provider errors never escape: they end up as ``failed`` on the order and
    in the returned result. A missing order raises ``Order.DoesNotExist``.
    """
    order = Order.objects.prefetch_related('items').get(id=order_id)
    if order.is_terminal:
        return DispatchResult(order.id, DispatchResult.SKIPPED, reason=f'order is {order.status}')
    if order.dispatch_status == Order.DispatchStatus.SUCCESS:
        return DispatchResult(order.id, DispatchResult.SKIPPED, provider=order.provider,
                              reference=order.provider_reference, reason='already dispatched')

    registry = get_registry()
    candidates = registry.providers_for_network(order.network)
    binding = registry.resolve(order.network, provider_toggles(candidates))
    if binding is None:
        logger.info(
            'No enabled provider for network, order left undispatched',
            extra={'order_id': order.id, 'network': order.network, 'candidates': candidates},
        )
        return DispatchResult(order.id, DispatchResult.SKIPPED, reason='no enabled provider')

    adapter = binding.adapter
    try:
        outcome = adapter.push(order)
    except Exception as exc:
        logger.exception('Provider push raised', extra={'order_id': order.id, 'provider': binding.provider})
        outcome = DispatchOutcome.failed(f'{binding.provider}: {exc.__class__.__name__}: {exc}'[:1000])

    _record_dispatch(order, binding.provider, outcome)
    log_extra = {'order_id': order.id, 'provider': binding.provider, 'dispatch_status': outcome.kind}

    if outcome.is_success:
        logger.info('Order accepted by provider', extra={**log_extra, 'reference': outcome.reference})
        if adapter.completes_on_push:
            _transition(order, COMPLETED, origin='push')
        elif order.status == PENDING:
            _transition(order, PROCESSING, origin='push')
    elif outcome.kind == DispatchOutcome.FAILED:
        # no refund or cancellation here; the order waits for an operator
        logger.error('Dispatch failed, order needs manual attention', extra={**log_extra, 'reason': outcome.reason})
    else:
        logger.warning('Order has nothing the provider can fulfil', extra={**log_extra, 'reason': outcome.reason})

    return DispatchResult(
        order.id, outcome.kind, provider=binding.provider, reference=outcome.reference,
        reason=outcome.reason or outcome.note,
    )


def redispatch_order(order_id: int) -> DispatchResult:
    """Operator retry for failed, disabled or never-dispatched orders."""
    order = Order.objects.get(id=order_id)
    if order.is_terminal:
        raise OrderStatusError(f'Order #{order.id} is already {order.status}')
    if order.dispatch_status == Order.DispatchStatus.SUCCESS:
        raise OrderServiceError(f'Order #{order.id} was already accepted by {order.provider}')
    result = dispatch_order(order.id)
    if result.result in (DispatchResult.SKIPPED, DispatchOutcome.DISABLED):
        raise DispatchDisabled(result.reason or 'order cannot be dispatched')
    return result


# -- Reconciliation --------------------------------------------------------

def _canonical_status(adapter: ProviderAdapter, external_status: str) -> str:
    mapped = adapter.map_status(external_status)
    if mapped is None:
        raise UnknownExternalStatus(f'{adapter.name}: no mapping for {external_status!r}')
    return mapped


def select_orders_for_reconciliation(providers: Iterable[str], limit: int):
    """Open, accepted orders of the given providers, least recently polled first.

    Never-polled orders come before everything else, so a block of orders
    whose provider keeps failing cannot hold the batch forever.
    """
    return (
        Order.objects.filter(
            status__in=OPEN_STATUSES,
            dispatch_status=Order.DispatchStatus.SUCCESS,
            provider__in=list(providers),
            provider_reference__isnull=False,
        )
        .exclude(provider_reference='')
        .prefetch_related('items')
        .order_by(F('last_polled_at').asc(nulls_first=True), 'created_at', 'id')[:limit]
    )


def reconcile_order(order: Order, adapter: ProviderAdapter) -> str:
    """Poll one order and converge its status; returns what happened."""
    result = adapter.check_status(order)
    now = timezone.now()
    if isinstance(result, Unavailable):
        Order.objects.filter(id=order.id).update(last_polled_at=now)
        logger.warning(
            'Provider status unavailable',
            extra={'order_id': order.id, 'provider': adapter.name, 'reason': result.reason},
        )
        return 'unavailable'

    Order.objects.filter(id=order.id).update(
        last_external_status=str(result)[:120], last_synced_at=now, last_polled_at=now,
    )
    try:
        next_status = _canonical_status(adapter, result)
    except UnknownExternalStatus as exc:
        logger.info('Unmapped provider status', extra={'order_id': order.id, 'provider': adapter.name, 'reason': str(exc)})
        return 'unmapped'

    if next_status == order.status:
        return 'unchanged'
    if not _transition(order, next_status, origin='reconcile'):
        return 'unchanged'
    return 'completed' if next_status == COMPLETED else 'updated'


def _reconcile_batch(limit: Optional[int]) -> Dict[str, Any]:
    summary = {'checked': 0, 'updated': 0, 'completed': 0, 'unchanged': 0, 'unavailable': 0, 'unmapped': 0, 'errors': 0}
    registry = get_registry()
    polling = registry.polling_providers()
    toggles = provider_toggles(polling)
    active = [p for p in polling if toggles.get(p)]
    if not active:
        return summary

    batch = limit or getattr(settings, 'RECONCILE_BATCH_SIZE', 200)
    for order in select_orders_for_reconciliation(active, batch):
        summary['checked'] += 1
        try:
            outcome = reconcile_order(order, registry.get(order.provider))
        except SoftTimeLimitExceeded:
            logger.warning('Reconciliation hit its time limit, stopping early', extra={'order_id': order.id, **summary})
            raise
        except Exception:
            summary['errors'] += 1
            logger.exception('Failed to reconcile order', extra={'order_id': order.id, 'provider': order.provider})
            continue
        summary[outcome] += 1
    return summary


def reconcile_order_statuses(limit: Optional[int] = None) -> Dict[str, Any]:
    ttl = getattr(settings, 'RUN_LOCK_TTL_SECONDS', 300)
    with single_run('orders:reconcile', ttl=ttl) as acquired:
        if not acquired:
            logger.warning('Previous reconciliation run still active, skipping')
            return {'skipped': True}
        return _reconcile_batch(limit)


def refresh_order_status(order_id: int) -> str:
    """On-demand poll of a single order for the admin API."""
    order = Order.objects.prefetch_related('items').get(id=order_id)
    if order.is_terminal:
        return 'unchanged'
    if order.dispatch_status != Order.DispatchStatus.SUCCESS or not order.provider_reference:
        raise OrderServiceError(f'Order #{order.id} has not been accepted by a provider')
    adapter = get_registry().get(order.provider)
    if adapter is None:
        raise OrderServiceError(f'Unknown provider {order.provider!r} on order #{order.id}')
    return reconcile_order(order, adapter)


# -- Stale-order fallback --------------------------------------------------

def select_stale_orders(now=None):
    now = now or timezone.now()
    cutoff = now - timedelta(minutes=getattr(settings, 'STALE_ORDER_THRESHOLD_MINUTES', 30))
    networks = [str(n).upper() for n in getattr(settings, 'STALE_FALLBACK_NETWORKS', ())]
    return (
        Order.objects.filter(status__in=OPEN_STATUSES, created_at__lte=cutoff, network__in=networks)
        .prefetch_related('items')
        .order_by('created_at', 'id')
    )


def _complete_stale_batch(now) -> Dict[str, Any]:
    summary = {'checked': 0, 'completed': 0, 'errors': 0}
    for order in select_stale_orders(now):
        summary['checked'] += 1
        if order.dispatch_status != Order.DispatchStatus.SUCCESS:
            logger.warning(
                'Force-completing stale order that no provider accepted',
                extra={'order_id': order.id, 'network': order.network, 'dispatch_status': order.dispatch_status},
            )
        try:
            if _transition(order, COMPLETED, origin='stale_fallback'):
                summary['completed'] += 1
        except SoftTimeLimitExceeded:
            raise
        except Exception:
            summary['errors'] += 1
            logger.exception('Failed to complete stale order', extra={'order_id': order.id})
    return summary


def complete_stale_orders(now=None) -> Dict[str, Any]:
    """Force-complete open orders on networks whose providers never report back."""
    ttl = getattr(settings, 'RUN_LOCK_TTL_SECONDS', 300)
    with single_run('orders:stale-fallback', ttl=ttl) as acquired:
        if not acquired:
            logger.warning('Previous stale-order run still active, skipping')
            return {'skipped': True}
        return _complete_stale_batch(now)
