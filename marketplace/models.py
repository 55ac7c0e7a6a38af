# -*- coding: utf-8 -*-
"""
Order objects built from marketplace `get_order_detail` payloads.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional


def to_decimal(value):
    """Converts an API amount (number or numeric string) to Decimal; blanks become 0."""
    if value is None or value == '':
        return Decimal('0')
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal('0')


@dataclass
class Recipient:
    name: str = ''
    phone: str = ''
    zipcode: str = ''
    region: str = ''
    state: str = ''
    city: str = ''
    district: str = ''
    town: str = ''
    full_address: str = ''


@dataclass
class OrderLine:
    name: str
    sku: str = ''
    variation: str = ''
    quantity: int = 1
    unit_price: Decimal = Decimal('0')

    @property
    def line_amount(self):
        return self.unit_price * self.quantity

    @property
    def variations(self):
        """The first two comma-separated parts of the variation name, padded with blanks."""
        parts = [p.strip() for p in (self.variation or '').split(',') if p.strip()]
        parts += ['', '']
        return parts[0], parts[1]


@dataclass
class Order:
    order_sn: str
    status: str
    create_time: int
    shop_code: str = ''
    buyer_username: str = ''
    recipient: Recipient = field(default_factory=Recipient)
    lines: List[OrderLine] = field(default_factory=list)
    total_amount: Decimal = Decimal('0')
    shipping_fee: Decimal = Decimal('0')
    payment_method: str = ''
    shipping_carrier: str = ''
    package_number: Optional[str] = None
    message_to_seller: str = ''


def order_from_api(data, shop_code=''):
    """
    Builds an `Order` from one entry of the `order_list` in a detail response.

    The shipping fee is the actual fee when the marketplace has settled it and
    the estimated fee otherwise. The line SKU prefers the model (variation)
    SKU over the parent item SKU.
    """
    address = data.get('recipient_address') or {}
    recipient = Recipient(
        name=address.get('name', ''),
        phone=address.get('phone', ''),
        zipcode=address.get('zipcode', ''),
        region=address.get('region', ''),
        state=address.get('state', ''),
        city=address.get('city', ''),
        district=address.get('district', ''),
        town=address.get('town', ''),
        full_address=address.get('full_address', ''),
    )

    lines = []
    for item in data.get('item_list') or []:
        price = item.get('model_discounted_price')
        if price in (None, '', 0):
            price = item.get('model_original_price')
        lines.append(OrderLine(
            name=item.get('item_name', ''),
            sku=item.get('model_sku') or item.get('item_sku') or '',
            variation=item.get('model_name', ''),
            quantity=int(item.get('model_quantity_purchased') or 0),
            unit_price=to_decimal(price),
        ))

    shipping_fee = data.get('actual_shipping_fee')
    if shipping_fee in (None, '', 0):
        shipping_fee = data.get('estimated_shipping_fee')

    packages = data.get('package_list') or []
    package_number = packages[0].get('package_number') if packages else None

    return Order(
        order_sn=str(data['order_sn']),
        status=data.get('order_status', ''),
        create_time=int(data.get('create_time') or 0),
        shop_code=shop_code,
        buyer_username=data.get('buyer_username', ''),
        recipient=recipient,
        lines=lines,
        total_amount=to_decimal(data.get('total_amount')),
        shipping_fee=to_decimal(shipping_fee),
        payment_method=data.get('payment_method', ''),
        shipping_carrier=data.get('shipping_carrier', ''),
        package_number=package_number or None,
        message_to_seller=data.get('message_to_seller', ''),
    )
