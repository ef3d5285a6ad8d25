from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple, Union

import requests
from requests import Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (5, 30)  # (connect, read) seconds
STATUS_TIMEOUT = (5, 20)

_HTML_MARKERS = ('<html', '<!doctype', 'fatal error', '<br />', '<br/>')


class AdapterError(Exception):
    pass


class MappingError(AdapterError):
    """A line item cannot be turned into a provider request."""


class TransportFailure(AdapterError):
    """Timeout, connection error or non-2xx answer."""


class UnparseableResponse(AdapterError):
    """HTML/PHP error page or malformed JSON where JSON was expected."""


class ProviderRejected(AdapterError):
    """2xx answer whose body does not pass the provider success check."""


@dataclass(frozen=True)
class DispatchOutcome:
    kind: str
    reference: Optional[str] = None
    reason: Optional[str] = None
    note: Optional[str] = None

    SUCCESS = 'success'
    FAILED = 'failed'
    DISABLED = 'disabled'

    @classmethod
    def succeeded(cls, reference: Optional[str], note: Optional[str] = None) -> 'DispatchOutcome':
        return cls(kind=cls.SUCCESS, reference=reference, note=note)

    @classmethod
    def failed(cls, reason: str) -> 'DispatchOutcome':
        return cls(kind=cls.FAILED, reason=reason)

    @classmethod
    def disabled(cls, reason: str = 'no mappable line items') -> 'DispatchOutcome':
        return cls(kind=cls.DISABLED, reason=reason)

    @property
    def is_success(self) -> bool:
        return self.kind == self.SUCCESS


@dataclass(frozen=True)
class Unavailable:
    reason: str


StatusResult = Union[str, Unavailable]


def normalize_phone(raw: Any) -> str:
    """Digits only; a 9-digit local number gains its leading zero.

    Applying it twice gives the same result as applying it once.
    """
    digits = re.sub(r'\D', '', str(raw or ''))
    if not digits:
        raise MappingError('missing beneficiary number')
    if len(digits) == 9:
        return '0' + digits
    return digits


def parse_size(raw: Any) -> Decimal:
    """First number found in a size attribute such as "5GB" or "1.5 GB"."""
    match = re.search(r'\d+(?:\.\d+)?', str(raw or ''))
    if not match:
        raise MappingError(f'cannot read bundle size from {raw!r}')
    try:
        size = Decimal(match.group(0))
    except InvalidOperation as exc:
        raise MappingError(f'cannot read bundle size from {raw!r}') from exc
    if size <= 0:
        raise MappingError(f'bundle size must be positive, got {raw!r}')
    return size


def whole_number(size: Decimal, *, what: str = 'bundle size') -> int:
    if size != size.to_integral_value():
        raise MappingError(f'{what} must be a whole number, got {size}')
    return int(size)


def looks_like_html(body: str) -> bool:
    head = (body or '').lstrip()[:2000].lower()
    if head.startswith('<'):
        return True
    return any(marker in head for marker in _HTML_MARKERS)


def composite_reference(order: Any, item: Any) -> str:
    return f'ORDER_{order.id}_{item.id}'


def line_items(order: Any) -> List[Any]:
    items = getattr(order, 'items', None)
    if items is None:
        return []
    if hasattr(items, 'all'):
        return list(items.all())
    return list(items)


class ProviderAdapter:
    """Contract every fulfillment provider implements.

    Subclasses provide ``build_item_request`` / ``send_item`` for dispatch and
    ``fetch_status`` for polling; aggregation, HTTP plumbing and status
    mapping live here.
    """

    name = ''
    networks: Tuple[str, ...] = ()
    supports_status_polling = True
    STATUS_MAP: Dict[str, str] = {}

    def __init__(self, config: Any) -> None:
        self.config = config

    @property
    def completes_on_push(self) -> bool:
        return bool(getattr(self.config, 'completes_on_push', False))

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.name}>'

    def format_phone(self, raw: Any) -> str:
        """Recipient number as this provider expects it; override per provider."""
        return normalize_phone(raw)

    # ---- status mapping ----
    def map_status(self, external_status: Any) -> Optional[str]:
        key = str(external_status or '').strip().lower()
        if not key:
            return None
        return self.STATUS_MAP.get(key)

    # ---- dispatch ----
    def ensure_configured(self) -> None:
        self._base()

    def build_item_request(self, order: Any, item: Any) -> Dict[str, Any]:
        raise NotImplementedError

    def send_item(self, order: Any, item: Any, payload: Dict[str, Any]) -> Optional[str]:
        raise NotImplementedError

    def push(self, order: Any) -> DispatchOutcome:
        try:
            self.ensure_configured()
        except MappingError as exc:
            logger.error(
                'Provider is not configured',
                extra={'provider': self.name, 'order_id': order.id, 'reason': str(exc)},
            )
            return DispatchOutcome.disabled(str(exc))

        prepared: List[Tuple[Any, Dict[str, Any]]] = []
        for item in line_items(order):
            try:
                prepared.append((item, self.build_item_request(order, item)))
            except MappingError as exc:
                logger.warning(
                    'Skipping line item that cannot be mapped',
                    extra={'provider': self.name, 'order_id': order.id, 'item_id': getattr(item, 'id', None), 'reason': str(exc)},
                )

        if not prepared:
            return DispatchOutcome.disabled()

        accepted: List[Optional[str]] = []
        failures: List[str] = []
        for item, payload in prepared:
            item_id = getattr(item, 'id', None)
            try:
                reference = self.send_item(order, item, payload)
            except AdapterError as exc:
                failures.append(f'item {item_id}: {exc}')
                logger.error(
                    'Provider rejected line item',
                    extra={'provider': self.name, 'order_id': order.id, 'item_id': item_id, 'reason': str(exc)},
                )
                continue
            except Exception as exc:
                failures.append(f'item {item_id}: {exc.__class__.__name__}: {exc}')
                logger.exception(
                    'Unexpected error pushing line item',
                    extra={'provider': self.name, 'order_id': order.id, 'item_id': item_id},
                )
                continue
            accepted.append(reference)

        if not accepted:
            return DispatchOutcome.failed('; '.join(failures)[:1000])

        reference = next((ref for ref in accepted if ref), None)
        if reference is None:
            logger.warning(
                'Provider accepted order without returning a reference',
                extra={'provider': self.name, 'order_id': order.id},
            )
        note = '; '.join(failures)[:1000] if failures else None
        return DispatchOutcome.succeeded(reference, note=note)

    # ---- status polling ----
    def fetch_status(self, order: Any) -> str:
        raise NotImplementedError

    def check_status(self, order: Any) -> StatusResult:
        if not self.supports_status_polling:
            return Unavailable(f'{self.name} has no status endpoint')
        try:
            return self.fetch_status(order)
        except AdapterError as exc:
            return Unavailable(str(exc))

    # ---- HTTP helpers ----
    def _base(self) -> str:
        base = (getattr(self.config, 'base_url', None) or '').rstrip('/')
        if not base:
            raise MappingError(f'{self.name}: base_url is not configured')
        return base

    def _post(self, url: str, *, timeout=DEFAULT_TIMEOUT, **kwargs) -> Any:
        return self._send(requests.post, url, timeout=timeout, **kwargs)

    def _get(self, url: str, *, timeout=STATUS_TIMEOUT, **kwargs) -> Any:
        return self._send(requests.get, url, timeout=timeout, **kwargs)

    def _send(self, call, url: str, **kwargs) -> Any:
        try:
            resp = call(url, **kwargs)
        except requests.RequestException as exc:
            raise TransportFailure(f'{self.name}: {exc.__class__.__name__}: {exc}') from exc
        if not 200 <= resp.status_code < 300:
            raise TransportFailure(f'{self.name}: HTTP {resp.status_code}: {(resp.text or "")[:200]}')
        return self._parse(resp)

    def _parse(self, resp: Response) -> Any:
        body = resp.text or ''
        if looks_like_html(body):
            raise UnparseableResponse(f'{self.name}: HTML error page instead of JSON')
        try:
            return resp.json()
        except ValueError as exc:
            raise UnparseableResponse(f'{self.name}: invalid JSON: {body[:200]}') from exc
