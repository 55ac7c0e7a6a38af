# -*- coding: utf-8 -*-
"""
Marketplace order status codes and their ledger display labels.

Two status groups are used by the rest of the project and are kept apart on
purpose:

- `SHIPPED_STATUSES` decides the ledger's shipped flag.
- `AWAITING_SHIPMENT_STATUSES` decides whether a label may still be generated.

Both contain the raw upstream codes and their translated labels, since rows
written by hand or by older versions of the sync may hold either.
"""

STATUS_LABELS = {
    'UNPAID': '未払い',
    'READY_TO_SHIP': '発送準備中',
    'PROCESSED': '処理済み',
    'RETRY_SHIP': '再発送待ち',
    'SHIPPED': '発送済み',
    'TO_CONFIRM_RECEIVE': '受取確認待ち',
    'IN_CANCEL': 'キャンセル申請中',
    'CANCELLED': 'キャンセル済み',
    'TO_RETURN': '返品処理中',
    'COMPLETED': '完了',
    'INVOICE_PENDING': '請求書待ち',
}

_SHIPPED_CODES = ('SHIPPED', 'COMPLETED', 'TO_RETURN')
_AWAITING_SHIPMENT_CODES = ('READY_TO_SHIP', 'PROCESSED')

SHIPPED_STATUSES = frozenset(_SHIPPED_CODES + tuple(STATUS_LABELS[c] for c in _SHIPPED_CODES))
AWAITING_SHIPMENT_STATUSES = frozenset(
    _AWAITING_SHIPMENT_CODES + tuple(STATUS_LABELS[c] for c in _AWAITING_SHIPMENT_CODES)
)


def translate_status(status):
    """Returns the display label for an upstream code; unknown codes pass through unchanged."""
    if status is None:
        return ''
    return STATUS_LABELS.get(status, status)


def is_shipped(status):
    return (status or '').strip() in SHIPPED_STATUSES


def is_awaiting_shipment(status):
    return (status or '').strip() in AWAITING_SHIPMENT_STATUSES
