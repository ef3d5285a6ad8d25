from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .base import (
    MappingError,
    ProviderAdapter,
    ProviderRejected,
    UnparseableResponse,
    parse_size,
)

_ALPHABET = string.ascii_uppercase + string.digits
_SUCCESS_FLAGS = ('success', 'successful', 'ok', 'true', '200')


def generate_reference_id() -> str:
    """Caller-side reference, e.g. ``K3J9Q-AB12C-ZX81PQ-00M2D-48213``."""
    groups = [''.join(secrets.choice(_ALPHABET) for _ in range(n)) for n in (5, 5, 6, 5)]
    groups.append(str(10000 + secrets.randbelow(90000)))
    return '-'.join(groups).upper()


@dataclass(frozen=True)
class CodeCraftConfig:
    base_url: str | None = 'https://api.codecraftnetwork.com/api'
    api_key: str | None = None
    client_email: str | None = None
    network_codes: Dict[str, str] = field(default_factory=lambda: {
        'MTN': 'MTN',
        'TELECEL': 'TELECEL',
        'ISHARE': 'AT',
        'BIGTIME': 'AT_BIGTIME',
    })
    special_networks: Tuple[str, ...] = ('MTN_BIGTIME', 'AT_BIGTIME')
    completes_on_push: bool = False


class CodeCraftAdapter(ProviderAdapter):
    name = 'codecraft'
    networks = ('TELECEL', 'ISHARE', 'BIGTIME', 'MTN')
    STATUS_MAP = {
        'crediting successful': 'completed',
        'completed': 'completed',
        'delivered': 'completed',
        'processing': 'processing',
        'placed': 'processing',
        'failed': 'cancelled',
        'cancelled': 'cancelled',
    }

    def _credentials(self) -> Tuple[str, str]:
        key = (self.config.api_key or '').strip()
        email = (self.config.client_email or '').strip()
        if not key or not email:
            raise MappingError('codecraft: api_key and client_email are required')
        return key, email

    def ensure_configured(self) -> None:
        self._base()
        self._credentials()

    def network_code(self, order: Any, item: Any) -> str:
        network = str(order.network or '').upper()
        code = self.config.network_codes.get(network)
        if not code:
            raise MappingError(f'codecraft: unsupported network {order.network!r}')
        # big-time MTN bundles are sold as their own product on an MTN order
        if code == 'MTN' and 'big' in str(item.product_name or '').lower():
            code = 'MTN_BIGTIME'
        return code

    def build_item_request(self, order: Any, item: Any) -> Dict[str, Any]:
        api_key, email = self._credentials()
        code = self.network_code(order, item)
        size = parse_size(item.variant_size) * int(item.quantity or 1)
        phone = self.format_phone(item.beneficiary_number)
        payload: Dict[str, Any] = {
            'agent_api': api_key,
            'recipient_number': phone,
            'gig': str(size.normalize()) if size != size.to_integral_value() else str(int(size)),
            'reference_id': generate_reference_id(),
            'client_email': email,
        }
        if code in self.config.special_networks:
            payload['network'] = code.replace('_BIGTIME', '')
        else:
            payload['network'] = code
            payload['customer_name'] = order.customer_name or 'Customer'
            payload['customer_tel'] = self.format_phone(order.customer_phone) if order.customer_phone else phone
        payload['_endpoint'] = 'special.php' if code in self.config.special_networks else 'initiate.php'
        return payload

    def send_item(self, order: Any, item: Any, payload: Dict[str, Any]) -> Optional[str]:
        body = dict(payload)
        endpoint = body.pop('_endpoint')
        data = self._post(f'{self._base()}/{endpoint}', json=body, headers={'Accept': 'application/json'})
        if not isinstance(data, dict) or not _is_success_flag(data.get('status', data.get('success'))):
            message = data.get('message') if isinstance(data, dict) else None
            raise ProviderRejected(f'codecraft: {message or "order not accepted"}')
        return body['reference_id']

    def fetch_status(self, order: Any) -> str:
        reference = (order.provider_reference or '').strip()
        if not reference:
            raise MappingError('codecraft: order has no provider reference')
        _, email = self._credentials()
        data = self._get(
            f'{self._base()}/response_agent.php',
            params={'client_email': email, 'reference_id': reference},
            headers={'Accept': 'application/json'},
        )
        if not isinstance(data, dict):
            raise UnparseableResponse('codecraft: status response is not an object')
        status = data.get('order_status')
        if status in (None, ''):
            raise UnparseableResponse('codecraft: status response has no order_status')
        return str(status)


def _is_success_flag(value: Any) -> bool:
    if value is True:
        return True
    if value is None or value is False:
        return False
    return str(value).strip().lower() in _SUCCESS_FLAGS
