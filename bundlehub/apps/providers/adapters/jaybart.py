from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .base import (
    STATUS_TIMEOUT,
    MappingError,
    ProviderAdapter,
    ProviderRejected,
    UnparseableResponse,
    parse_size,
)


@dataclass(frozen=True)
class JaybartConfig:
    base_url: str | None = 'https://agent.jaybartservices.com/api/v1'
    api_key: str | None = None
    network_ids: Dict[str, int] = field(default_factory=lambda: {'MTN': 3})
    completes_on_push: bool = False


class JaybartAdapter(ProviderAdapter):
    name = 'jaybart'
    networks = ('MTN',)
    STATUS_MAP = {
        'successful': 'completed',
        'completed': 'completed',
        'delivered': 'completed',
        'processing': 'processing',
        'pending': 'processing',
        'failed': 'cancelled',
        'cancelled': 'cancelled',
    }

    def _headers(self) -> Dict[str, str]:
        key = (self.config.api_key or '').strip()
        if not key:
            raise MappingError('jaybart: api_key is not configured')
        return {'x-api-key': key, 'Accept': 'application/json', 'Content-Type': 'application/json'}

    def ensure_configured(self) -> None:
        self._base()
        self._headers()

    def build_item_request(self, order: Any, item: Any) -> Dict[str, Any]:
        network_id = self.config.network_ids.get(str(order.network or '').upper())
        if network_id is None:
            raise MappingError(f'jaybart: unsupported network {order.network!r}')
        size_mb = parse_size(item.variant_size) * 1000 * int(item.quantity or 1)
        return {
            'recipient_msisdn': self.format_phone(item.beneficiary_number),
            'network_id': network_id,
            'shared_bundle': int(size_mb),
        }

    def send_item(self, order: Any, item: Any, payload: Dict[str, Any]) -> Optional[str]:
        data = self._post(f'{self._base()}/buy-other-package', json=payload, headers=self._headers())
        if not isinstance(data, dict) or data.get('success') is not True:
            message = data.get('message') if isinstance(data, dict) else None
            raise ProviderRejected(f'jaybart: {message or "purchase not accepted"}')
        code = data.get('transaction_code')
        if not code:
            raise ProviderRejected('jaybart: response has no transaction_code')
        return str(code)

    def fetch_status(self, order: Any) -> str:
        reference = (order.provider_reference or '').strip()
        if not reference:
            raise MappingError('jaybart: order has no provider reference')
        data = self._post(
            f'{self._base()}/fetch-other-network-transaction',
            json={'transaction_id': reference},
            headers=self._headers(),
            timeout=STATUS_TIMEOUT,
        )
        items = data.get('order_items') if isinstance(data, dict) else None
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            raise UnparseableResponse('jaybart: status response has no order_items')
        status = items[0].get('status')
        if status in (None, ''):
            raise UnparseableResponse('jaybart: order item has no status')
        return str(status)
