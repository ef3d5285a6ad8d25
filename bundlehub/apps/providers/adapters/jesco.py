from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .base import (
    MappingError,
    ProviderAdapter,
    ProviderRejected,
    UnparseableResponse,
    composite_reference,
)

DEFAULT_SKUS = {f'{n}gb': f'MTN11-{n}GB' for n in (1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 15, 20, 25, 30, 40, 50, 100)}


@dataclass(frozen=True)
class JescoConfig:
    base_url: str | None = 'https://jesscostore.com/api/v1'
    api_key: str | None = None
    skus: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SKUS))
    completes_on_push: bool = False


class JescoAdapter(ProviderAdapter):
    name = 'jesco'
    networks = ('MTN',)
    STATUS_MAP = {
        'completed': 'completed',
        'pending': 'processing',
        'processing': 'processing',
        'failed': 'cancelled',
        'cancelled': 'cancelled',
    }

    def _headers(self) -> Dict[str, str]:
        token = (self.config.api_key or '').strip()
        if not token:
            raise MappingError('jesco: api_key is not configured')
        return {
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }

    def sku_for(self, variant_size: Any) -> str:
        key = re.sub(r'\s+', '', str(variant_size or '')).lower()
        sku = self.config.skus.get(key)
        if not sku:
            raise MappingError(f'jesco: no package for size {variant_size!r}')
        return sku

    def ensure_configured(self) -> None:
        self._base()
        self._headers()

    def build_item_request(self, order: Any, item: Any) -> Dict[str, Any]:
        return {
            'package': self.sku_for(item.variant_size),
            'phone': self.format_phone(item.beneficiary_number),
            'reference': composite_reference(order, item),
            'meta': {
                'order_id': order.id,
                'item_id': item.id,
                'customer_id': order.user_id,
            },
        }

    def send_item(self, order: Any, item: Any, payload: Dict[str, Any]) -> Optional[str]:
        data = self._post(f'{self._base()}/purchase', json=payload, headers=self._headers())
        if not isinstance(data, dict) or data.get('success') is not True or not data.get('data'):
            message = data.get('message') if isinstance(data, dict) else None
            raise ProviderRejected(f'jesco: {message or "purchase not accepted"}')
        body = data['data']
        purchase_id = body.get('id') if isinstance(body, dict) else None
        return str(purchase_id) if purchase_id not in (None, '') else None

    def fetch_status(self, order: Any) -> str:
        reference = (order.provider_reference or '').strip()
        if not reference.isdigit():
            raise MappingError(f'jesco: reference {reference!r} is not a purchase id')
        data = self._get(f'{self._base()}/purchases/{reference}', headers=self._headers())
        if not isinstance(data, dict) or data.get('success') is not True or not isinstance(data.get('data'), dict):
            raise UnparseableResponse('jesco: unexpected status response')
        status = data['data'].get('status')
        if status in (None, ''):
            raise UnparseableResponse('jesco: purchase has no status')
        return str(status)
