# -*- coding: utf-8 -*-
"""
================================================================================
Order Ledger
================================================================================
Purpose:
----------------
Keeps the spreadsheet ledger in step with the marketplace. The ledger holds
one row per line item of every order ever seen, and the order id column is
the deduplication key.

Key Operations:
1.  **reconcile**: New orders are expanded to one row per line item (one
    placeholder row when an order has no lines). Known orders whose status
    changed get the new status and shipped flag written to all of their rows.
    Known orders whose status did not change are left untouched, so running
    the same batch twice changes nothing the second time.
2.  **find_missing_label**: Lists orders that are still awaiting shipment and
    have no label reference on any of their rows.
3.  **write_label**: Writes a label reference to every row of an order.

Money columns:
----------------
The order total and shipping fee are written once, on the first row of the
order, and are not divided across lines. Cost and profit columns are left
for manual entry and are never written here.

Rows are never deleted by this module.
----------------
"""

# =====================================================================================
# --- Imports ---
# =====================================================================================
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from marketplace.status import translate_status, is_shipped, is_awaiting_shipment

logger = logging.getLogger(__name__)


# =====================================================================================
# --- Layout ---
# =====================================================================================
# 1-based column numbers, in the fixed order of the ledger sheet.
COL_ORDER_DATE = 1
COL_STATUS = 2
COL_SHOP = 3
COL_ORDER_ID = 4
COL_PRODUCT = 5
COL_VARIATION_1 = 6
COL_VARIATION_2 = 7
COL_SKU = 8
COL_QUANTITY = 9
COL_LABEL = 10
COL_SHIPPED = 11
COL_NOTE = 12
COL_RESERVED = 13
COL_REVENUE = 14
COL_COMMISSION = 15
COL_SHIPPING_FEE = 16
COL_COST = 17
COL_PROFIT = 18
COL_PROFIT_WITH_REFUND = 19
COLUMN_COUNT = 19

LEDGER_HEADER = [
    '注文日', 'ステータス', '国', '注文番号', '商品名', 'バリエーション1', 'バリエーション2',
    'SKU', '数量', '配送ラベル', '発送済み', 'メモ', '', '売上', '手数料', '送料',
    '原価', '利益', '返金込み利益',
]

DATE_FORMAT = '%Y-%m-%d %H:%M'


@dataclass(frozen=True)
class RowRef:
    """Identifies one persisted ledger row. Only the store interprets `row_number`."""
    row_number: int


@dataclass
class LedgerRow:
    order_date: str = ''
    status: str = ''
    shop_label: str = ''
    order_sn: str = ''
    product: str = ''
    variation_1: str = ''
    variation_2: str = ''
    sku: str = ''
    quantity: object = ''
    label: str = ''
    shipped: bool = False
    note: str = ''
    revenue: str = ''
    commission: str = ''
    shipping_fee: str = ''
    cost: str = ''
    profit: str = ''
    profit_with_refund: str = ''
    ref: Optional[RowRef] = None

    def to_values(self):
        return [
            self.order_date, self.status, self.shop_label, self.order_sn, self.product,
            self.variation_1, self.variation_2, self.sku, self.quantity, self.label,
            self.shipped, self.note, '', self.revenue, self.commission, self.shipping_fee,
            self.cost, self.profit, self.profit_with_refund,
        ]

    @classmethod
    def from_values(cls, values, ref=None):
        values = list(values) + [''] * (COLUMN_COUNT - len(values))

        def text(column):
            value = values[column - 1]
            return '' if value is None else str(value).strip()

        return cls(
            order_date=text(COL_ORDER_DATE),
            status=text(COL_STATUS),
            shop_label=text(COL_SHOP),
            order_sn=text(COL_ORDER_ID),
            product=text(COL_PRODUCT),
            variation_1=text(COL_VARIATION_1),
            variation_2=text(COL_VARIATION_2),
            sku=text(COL_SKU),
            quantity=values[COL_QUANTITY - 1],
            label=text(COL_LABEL),
            shipped=parse_shipped_flag(values[COL_SHIPPED - 1]),
            note=text(COL_NOTE),
            revenue=text(COL_REVENUE),
            commission=text(COL_COMMISSION),
            shipping_fee=text(COL_SHIPPING_FEE),
            cost=text(COL_COST),
            profit=text(COL_PROFIT),
            profit_with_refund=text(COL_PROFIT_WITH_REFUND),
            ref=ref,
        )


@dataclass
class ReconcileResult:
    added: int = 0
    updated: int = 0
    updated_orders: list = field(default_factory=list)
    added_orders: list = field(default_factory=list)


@dataclass
class LabelCandidate:
    order_sn: str
    status: str
    shop_label: str
    rows: List[LedgerRow]


def parse_shipped_flag(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().upper() in ('TRUE', '1', 'YES')


def format_amount(amount):
    return f"{amount:.2f}"


def format_order_date(create_time, tz_name):
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{tz_name}'; using UTC for order dates.")
        tz = timezone.utc
    return datetime.fromtimestamp(create_time, tz).strftime(DATE_FORMAT)


def build_rows(order, shop):
    """
    Expands an order into its ledger rows.

    Args:
        order (Order): A marketplace order.
        shop (ShopContext): The shop the order belongs to; supplies the label
            and the timezone used for the order date.

    Returns:
        list[LedgerRow]: One row per line item, or one placeholder row when
        the order has no lines. Only the first row carries the revenue and
        shipping fee.
    """
    status = translate_status(order.status)
    shipped = is_shipped(order.status)
    order_date = format_order_date(order.create_time, shop.timezone)

    rows = []
    lines = order.lines or [None]
    for index, line in enumerate(lines):
        row = LedgerRow(
            order_date=order_date,
            status=status,
            shop_label=shop.label,
            order_sn=order.order_sn,
            shipped=shipped,
        )
        if line is not None:
            row.product = line.name
            row.variation_1, row.variation_2 = line.variations
            row.sku = line.sku
            row.quantity = line.quantity
        if index == 0:
            row.revenue = format_amount(order.total_amount)
            row.shipping_fee = format_amount(order.shipping_fee)
        rows.append(row)
    return rows


class OrderLedger:
    """
    Order-level view over a ledger row store.

    Args:
        store: A store from `database.sheet_store` (or anything with the same
            `read_rows` / `append_rows` / `update_cells` methods).
    """

    def __init__(self, store):
        self.store = store

    def load_groups(self):
        """Reads all rows and groups them by order id, keeping sheet order."""
        groups = OrderedDict()
        for row_number, values in self.store.read_rows():
            row = LedgerRow.from_values(values, ref=RowRef(row_number))
            if not row.order_sn:
                continue
            groups.setdefault(row.order_sn, []).append(row)
        return groups

    def rows_for_order(self, order_sn):
        return self.load_groups().get(str(order_sn), [])

    def reconcile(self, orders, shop):
        """
        Merges fetched orders into the ledger.

        Args:
            orders (list[Order]): Orders fetched from one shop. An order id
                that appears more than once keeps its last occurrence.
            shop (ShopContext): The shop the orders were fetched from.

        Returns:
            ReconcileResult: counts of added and updated orders plus the orders
            themselves.
        """
        result = ReconcileResult()
        groups = self.load_groups()

        incoming = OrderedDict()
        for order in orders:
            incoming[order.order_sn] = order

        new_rows = []
        updates = []
        for order_sn, order in incoming.items():
            existing = groups.get(order_sn)
            status = translate_status(order.status)

            if not existing:
                rows = build_rows(order, shop)
                new_rows.extend(rows)
                result.added += 1
                result.added_orders.append(order)
                logger.info(f"New order {order_sn} ({status}): {len(rows)} row(s).")
                continue

            if all(row.status == status for row in existing):
                continue

            previous = existing[0].status
            shipped = is_shipped(order.status)
            for index, row in enumerate(existing):
                updates.append((row.ref.row_number, COL_STATUS, status))
                updates.append((row.ref.row_number, COL_SHIPPED, shipped))
                if index == 0:
                    updates.append((row.ref.row_number, COL_REVENUE, format_amount(order.total_amount)))
                    updates.append((row.ref.row_number, COL_SHIPPING_FEE, format_amount(order.shipping_fee)))
            result.updated += 1
            result.updated_orders.append(order)
            logger.info(f"Order {order_sn} status changed: '{previous}' -> '{status}' ({len(existing)} row(s)).")

        if new_rows:
            self.store.append_rows([row.to_values() for row in new_rows])
        if updates:
            self.store.update_cells(updates)

        logger.info(f"[{shop.code}] Reconciled {len(incoming)} orders: {result.added} added, {result.updated} updated.")
        return result

    def find_missing_label(self, limit):
        """
        Returns up to `limit` orders that still need a shipping label.

        An order qualifies when none of its rows has a label reference and its
        status is in the awaiting-shipment set. Each candidate carries all of
        the order's rows so the label can be written to every one of them.
        """
        candidates = []
        if limit <= 0:
            return candidates
        for order_sn, rows in self.load_groups().items():
            if any(row.label for row in rows):
                continue
            status = rows[0].status
            if not is_awaiting_shipment(status):
                continue
            candidates.append(LabelCandidate(order_sn, status, rows[0].shop_label, rows))
            if len(candidates) >= limit:
                break
        return candidates

    def write_label(self, rows, url):
        """Sets the label reference on every given row (LedgerRow or RowRef). Rows already holding `url` are skipped."""
        updates = []
        for row in rows:
            if isinstance(row, LedgerRow):
                if row.label == url:
                    continue
                row.label = url
                ref = row.ref
            else:
                ref = row
            updates.append((ref.row_number, COL_LABEL, url))
        if updates:
            self.store.update_cells(updates)
        return len(updates)
