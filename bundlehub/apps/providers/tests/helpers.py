import json
from decimal import Decimal
from types import SimpleNamespace

import requests


def make_response(status_code=200, payload=None, text=None):
    resp = requests.Response()
    resp.status_code = status_code
    if text is None:
        text = json.dumps(payload if payload is not None else {})
        resp.headers['Content-Type'] = 'application/json'
    resp._content = text.encode('utf-8')
    resp.encoding = 'utf-8'
    return resp


def make_item(item_id=11, *, size='5GB', quantity=1, beneficiary='0241234567', product='MTN Data'):
    return SimpleNamespace(
        id=item_id,
        product_name=product,
        variant_id='v-1',
        variant_size=size,
        quantity=quantity,
        price=Decimal('25.00'),
        beneficiary_number=beneficiary,
    )


def make_order(order_id=101, *, network='MTN', items=None, reference=None, customer_phone='0209998888'):
    return SimpleNamespace(
        id=order_id,
        network=network,
        user_id='u-7',
        customer_name='Ama Mensah',
        customer_phone=customer_phone,
        provider_reference=reference,
        items=list(items if items is not None else [make_item()]),
    )
