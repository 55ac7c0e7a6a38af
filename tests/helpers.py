"""Shared builders for the test modules."""

from decimal import Decimal
from unittest.mock import MagicMock

from common.config import ShopContext, WarehouseConfig
from marketplace.models import Order, OrderLine, Recipient

SHOP = ShopContext(
    code='SG',
    label='シンガポール',
    partner_id=2001234,
    partner_key='test-partner-key',
    shop_id=55501,
    access_token='test-access-token',
    host='https://partner.example.com',
    timezone='UTC',
)

SHOP_MY = ShopContext(
    code='MY',
    label='マレーシア',
    partner_id=2001234,
    partner_key='test-partner-key',
    shop_id=55502,
    access_token='test-access-token-my',
    host='https://partner.example.com',
    timezone='UTC',
)

WAREHOUSE = WarehouseConfig(
    base_url='https://wms.example.com/api',
    merchant_id='42',
    access_token='wms-token',
    refresh_token='wms-refresh',
    client_id='cid',
    client_secret='csecret',
    default_payment_method='other',
    default_delivery_method='standard_default',
)


def make_order(order_sn='X001', status='READY_TO_SHIP', lines=2, total='50.00', shipping_fee='5.00'):
    order_lines = [
        OrderLine(
            name=f"Product {i + 1}",
            sku=f"SKU-{i + 1}",
            variation=f"Red,Size {i + 1}",
            quantity=i + 1,
            unit_price=Decimal('10.00'),
        )
        for i in range(lines)
    ]
    return Order(
        order_sn=order_sn,
        status=status,
        create_time=1700000000,
        shop_code='SG',
        buyer_username='buyer01',
        recipient=Recipient(name='Tan Ah Kow', phone='6591234567', zipcode='123456',
                            state='Singapore', city='Singapore', full_address='1 Test Road, Singapore 123456'),
        lines=order_lines,
        total_amount=Decimal(total),
        shipping_fee=Decimal(shipping_fee),
        payment_method='Credit Card',
        shipping_carrier='Ninja Van',
    )


def make_response(status_code=200, json_data=None, content=b'', headers=None, text=None):
    """A stand-in for `requests.Response`."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers if headers is not None else {'Content-Type': 'application/json'}
    response.content = content
    if json_data is None:
        response.json.side_effect = ValueError("No JSON")
        response.text = text if text is not None else ''
    else:
        response.json.return_value = json_data
        response.text = text if text is not None else str(json_data)
    return response
