# -*- coding: utf-8 -*-
"""
================================================================================
Fulfillment Bridge
================================================================================
Purpose:
----------------
Registers marketplace orders as sales orders in the warehouse-management
system so the warehouse can pick and pack them.

Key Steps (per order):
1.  **Convert**: Build the sales-order payload. Payment method and carrier
    are mapped through fixed tables, falling back to the configured defaults
    for values the tables do not know. Line SKUs come from the ledger when a
    SKU has been recorded there (it may have been corrected by hand), and
    from the marketplace otherwise.
2.  **Validate**: Reject payloads the warehouse would refuse, before calling it.
3.  **Submit**: One order at a time with a fixed pause between calls.

One order's failure never stops the batch. Failures are collected as
(order_sn, message) pairs; an order the warehouse already holds gets a
dedicated message so operators know nothing needs to be redone.
----------------
"""

# =====================================================================================
# --- Imports ---
# =====================================================================================
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from common.errors import (
    RateLimitError, WarehouseApiError, WarehouseAuthError, DuplicateOrderError, SalesOrderValidationError
)
from marketplace.status import translate_status
from order_management.ledger import format_amount

logger = logging.getLogger(__name__)


# =====================================================================================
# --- Mapping Tables ---
# =====================================================================================
PAYMENT_METHOD_MAP = {
    'Credit Card': 'credit_card',
    'Credit Card/Debit Card': 'credit_card',
    'Cash on Delivery': 'cash_on_delivery',
    'COD': 'cash_on_delivery',
    'ShopeePay': 'electronic_money',
    'Bank Transfer': 'bank_transfer',
    'Convenience Store': 'convenience_store',
    'PayPay': 'electronic_money',
}

CARRIER_MAP = {
    'Yamato': 'yamato',
    'Yamato Transport': 'yamato',
    'Sagawa': 'sagawa',
    'Sagawa Express': 'sagawa',
    'Japan Post': 'japan_post',
    'Ninja Van': 'ninja_van',
    'J&T Express': 'jt_express',
    'Shopee Xpress': 'spx',
    'SPX Express': 'spx',
    'Standard Delivery': 'standard',
}

DUPLICATE_ORDER_MESSAGE = '既に倉庫システムに登録済みの注文です。再登録は不要です。'
RATE_LIMITED_MESSAGE = '倉庫APIのリクエスト上限に達しました。次回の実行で再送されます。'
MAX_RATE_LIMIT_WAIT_SECONDS = 60


@dataclass
class BridgeFailure:
    order_sn: str
    message: str


@dataclass
class BridgeResult:
    submitted: List[str] = field(default_factory=list)
    failures: List[BridgeFailure] = field(default_factory=list)


# =====================================================================================
# --- Conversion ---
# =====================================================================================

def _document_date(create_time, tz_name):
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc
    return datetime.fromtimestamp(create_time, tz).strftime('%Y-%m-%d')


def build_sales_order(order, ledger_rows, warehouse_config, shop):
    """
    Converts an order to the warehouse's sales-order payload.

    Args:
        order (Order): The marketplace order.
        ledger_rows (list[LedgerRow]): The order's ledger rows, in line order.
        warehouse_config (WarehouseConfig): Supplies defaults and the store code.
        shop (ShopContext): The shop the order came from.
    """
    recipient = order.recipient
    lines = []
    for index, line in enumerate(order.lines):
        recorded_sku = ledger_rows[index].sku if index < len(ledger_rows) else ''
        lines.append({
            'article_code': recorded_sku or line.sku,
            'article_name': line.name,
            'price': format_amount(line.unit_price),
            'quantity': line.quantity,
            'option': line.variation,
        })

    sales_order = {
        'code': order.order_sn,
        'document_date': _document_date(order.create_time, shop.timezone),
        'buyer_name': recipient.name or order.buyer_username,
        'recipient_name': recipient.name,
        'recipient_phone': recipient.phone,
        'recipient_post_code': recipient.zipcode,
        'recipient_prefecture': recipient.state,
        'recipient_address1': recipient.full_address or ' '.join(
            p for p in (recipient.city, recipient.district, recipient.town) if p
        ),
        'payment_method': PAYMENT_METHOD_MAP.get(order.payment_method, warehouse_config.default_payment_method),
        'delivery_method': CARRIER_MAP.get(order.shipping_carrier, warehouse_config.default_delivery_method),
        'delivery_fee': format_amount(order.shipping_fee),
        'total': format_amount(order.total_amount),
        'buyer_note': order.message_to_seller,
        'lines': lines,
        'attributes': {
            'marketplace_order_sn': order.order_sn,
            'marketplace_shop': shop.label,
            'marketplace_status': translate_status(order.status),
        },
    }
    if warehouse_config.store_code:
        sales_order['store'] = {'code': warehouse_config.store_code}
    return sales_order


def validate_sales_order(sales_order):
    """Raises SalesOrderValidationError listing every problem found in the payload."""
    problems = []
    if not sales_order.get('code'):
        problems.append('missing order code')
    if not sales_order.get('recipient_name'):
        problems.append('missing recipient name')
    if not sales_order.get('recipient_address1'):
        problems.append('missing recipient address')
    lines = sales_order.get('lines') or []
    if not lines:
        problems.append('no order lines')
    for number, line in enumerate(lines, start=1):
        if not line.get('article_code'):
            problems.append(f"line {number} has no SKU")
        if not isinstance(line.get('quantity'), int) or line['quantity'] <= 0:
            problems.append(f"line {number} has an invalid quantity")
    if problems:
        raise SalesOrderValidationError(sales_order.get('code', ''), problems)


# =====================================================================================
# --- Submission ---
# =====================================================================================

class FulfillmentBridge:
    """
    Args:
        client (WarehouseClient): Warehouse API client.
        ledger (OrderLedger): Source of the recorded SKUs.
        warehouse_config (WarehouseConfig): Mapping defaults.
        pause (float): Seconds between consecutive submissions.
    """

    def __init__(self, client, ledger, warehouse_config, pause=1.0, sleep=time.sleep, clock=time.time,
                 max_rate_limit_wait=MAX_RATE_LIMIT_WAIT_SECONDS):
        self.client = client
        self.ledger = ledger
        self.warehouse_config = warehouse_config
        self.pause = pause
        self.sleep = sleep
        self.clock = clock
        self.max_rate_limit_wait = max_rate_limit_wait

    def submit_orders(self, orders, shop):
        result = BridgeResult()
        if not orders:
            return result
        groups = self.ledger.load_groups()

        for index, order in enumerate(orders):
            if index > 0:
                self.sleep(self.pause)
            try:
                sales_order = build_sales_order(order, groups.get(order.order_sn, []), self.warehouse_config, shop)
                validate_sales_order(sales_order)
                self._submit_with_backoff(sales_order)
            except SalesOrderValidationError as e:
                logger.error(str(e))
                result.failures.append(BridgeFailure(order.order_sn, str(e)))
                continue
            except DuplicateOrderError as e:
                logger.info(f"Order {order.order_sn} is already registered in the warehouse: {e.message}")
                result.failures.append(BridgeFailure(order.order_sn, DUPLICATE_ORDER_MESSAGE))
                continue
            except RateLimitError as e:
                logger.warning(f"Order {order.order_sn} not submitted, rate limited twice: {e}")
                result.failures.append(BridgeFailure(order.order_sn, RATE_LIMITED_MESSAGE))
                continue
            except WarehouseAuthError:
                raise
            except WarehouseApiError as e:
                logger.error(f"Could not register order {order.order_sn}: {e}")
                result.failures.append(BridgeFailure(order.order_sn, e.message))
                continue

            result.submitted.append(order.order_sn)
            logger.info(f"Registered order {order.order_sn} in the warehouse.")

        logger.info(f"[{shop.code}] Warehouse submission finished: {len(result.submitted)} registered, "
                    f"{len(result.failures)} failed.")
        return result

    def _submit_with_backoff(self, sales_order):
        try:
            return self.client.create_sales_order(sales_order)
        except RateLimitError as e:
            wait = e.seconds_until_reset(self.clock())
            if wait is None:
                wait = self.pause
            wait = min(wait, self.max_rate_limit_wait)
            logger.warning(f"Warehouse rate limit reached; waiting {wait:.0f}s before retrying {sales_order['code']}.")
            self.sleep(wait)
            return self.client.create_sales_order(sales_order)
