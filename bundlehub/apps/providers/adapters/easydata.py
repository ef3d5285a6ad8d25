from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base import (
    MappingError,
    ProviderAdapter,
    ProviderRejected,
    UnparseableResponse,
    composite_reference,
    line_items,
    parse_size,
    whole_number,
)


@dataclass(frozen=True)
class EasyDataConfig:
    base_url: str | None = None
    username: str | None = None
    password: str | None = None
    network_code: str = 'mtn'
    completes_on_push: bool = False


class EasyDataAdapter(ProviderAdapter):
    name = 'easydata'
    networks = ('MTN',)
    STATUS_MAP = {
        'completed': 'completed',
        'success': 'completed',
        'pending': 'processing',
        'processing': 'processing',
        'failed': 'cancelled',
        'cancelled': 'cancelled',
    }

    def _headers(self) -> Dict[str, str]:
        user = self.config.username or ''
        password = self.config.password or ''
        if not user or not password:
            raise MappingError('easydata: username and password are required')
        token = base64.b64encode(f'{user}:{password}'.encode('utf-8')).decode('ascii')
        return {
            'Authorization': f'Basic {token}',
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }

    def ensure_configured(self) -> None:
        self._base()
        self._headers()

    def build_item_request(self, order: Any, item: Any) -> Dict[str, Any]:
        size = whole_number(parse_size(item.variant_size)) * int(item.quantity or 1)
        return {
            'network': self.config.network_code,
            'recipient': self.format_phone(item.beneficiary_number),
            'package_size': size,
            'order_id': composite_reference(order, item),
        }

    def send_item(self, order: Any, item: Any, payload: Dict[str, Any]) -> Optional[str]:
        data = self._post(f'{self._base()}/place-order', json=payload, headers=self._headers())
        if not isinstance(data, dict):
            raise ProviderRejected('easydata: response is not an object')
        flag = data.get('status')
        if flag is not True and str(flag).lower() != 'success':
            raise ProviderRejected(f'easydata: {data.get("message") or "order not accepted"}')
        reference = data.get('order_id') or data.get('order_reference') or payload['order_id']
        return str(reference)

    def status_key(self, order: Any) -> str:
        items = line_items(order)
        if not items:
            raise MappingError('easydata: order has no line items')
        return composite_reference(order, items[0])

    def fetch_status(self, order: Any) -> str:
        data = self._get(
            f'{self._base()}/order-status',
            params={'order_reference': self.status_key(order)},
            headers=self._headers(),
        )
        if not isinstance(data, dict) or str(data.get('status')).lower() != 'success':
            raise UnparseableResponse('easydata: status lookup did not succeed')
        status = data.get('order_status')
        if status in (None, ''):
            raise UnparseableResponse('easydata: response has no order_status')
        return str(status)
