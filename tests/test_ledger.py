import os
import sys
import unittest

# Add project root to Python path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.sheet_store import MemoryLedgerStore
from order_management import ledger as ledger_module
from order_management.ledger import OrderLedger, LedgerRow, RowRef, LEDGER_HEADER
from helpers import SHOP, make_order

COL = ledger_module


class TestReconcile(unittest.TestCase):

    def setUp(self):
        self.store = MemoryLedgerStore(LEDGER_HEADER)
        self.ledger = OrderLedger(self.store)

    def test_new_order_expands_to_one_row_per_line(self):
        """X001 with 2 lines and amount 50.00 adds 2 rows; only the first carries the money columns."""
        result = self.ledger.reconcile([make_order('X001', lines=2, total='50.00', shipping_fee='5.00')], SHOP)

        self.assertEqual(result.added, 1)
        self.assertEqual(result.updated, 0)
        self.assertEqual(len(self.store.rows), 2)
        first, second = self.store.rows
        self.assertEqual(first[COL.COL_ORDER_ID - 1], 'X001')
        self.assertEqual(second[COL.COL_ORDER_ID - 1], 'X001')
        self.assertEqual(first[COL.COL_REVENUE - 1], '50.00')
        self.assertEqual(second[COL.COL_REVENUE - 1], '')
        self.assertEqual(first[COL.COL_SHIPPING_FEE - 1], '5.00')
        self.assertEqual(second[COL.COL_SHIPPING_FEE - 1], '')
        self.assertEqual(first[COL.COL_STATUS - 1], '発送準備中')
        self.assertEqual(first[COL.COL_SHOP - 1], SHOP.label)
        self.assertEqual(first[COL.COL_ORDER_DATE - 1], '2023-11-14 22:13')
        self.assertEqual(first[COL.COL_VARIATION_1 - 1], 'Red')
        self.assertEqual(second[COL.COL_VARIATION_2 - 1], 'Size 2')
        self.assertEqual(second[COL.COL_QUANTITY - 1], 2)
        self.assertIs(first[COL.COL_SHIPPED - 1], False)
        self.assertEqual(len(first), COL.COLUMN_COUNT)

    def test_rows_per_order_match_line_count(self):
        orders = [make_order(f"N{n}", lines=n) for n in range(0, 4)]
        self.ledger.reconcile(orders, SHOP)

        groups = self.ledger.load_groups()
        for n in range(0, 4):
            rows = groups[f"N{n}"]
            self.assertEqual(len(rows), max(n, 1))
            self.assertTrue(rows[0].revenue)
            for row in rows[1:]:
                self.assertEqual(row.revenue, '')
                self.assertEqual(row.shipping_fee, '')

    def test_zero_line_order_gets_placeholder_row(self):
        self.ledger.reconcile([make_order('EMPTY', lines=0, total='12.00')], SHOP)
        self.assertEqual(len(self.store.rows), 1)
        row = self.store.rows[0]
        self.assertEqual(row[COL.COL_PRODUCT - 1], '')
        self.assertEqual(row[COL.COL_REVENUE - 1], '12.00')

    def test_reconcile_is_idempotent(self):
        orders = [make_order('X001'), make_order('X002', lines=1)]
        self.ledger.reconcile(orders, SHOP)
        snapshot = [list(r) for r in self.store.rows]

        second = self.ledger.reconcile(orders, SHOP)

        self.assertEqual(second.added, 0)
        self.assertEqual(second.updated, 0)
        self.assertEqual(self.store.rows, snapshot)

    def test_status_change_updates_every_row(self):
        """Re-fetching X001 as shipped updates both rows and creates none."""
        self.ledger.reconcile([make_order('X001', status='READY_TO_SHIP')], SHOP)
        result = self.ledger.reconcile([make_order('X001', status='SHIPPED', total='48.00')], SHOP)

        self.assertEqual(result.added, 0)
        self.assertEqual(result.updated, 1)
        self.assertEqual([o.order_sn for o in result.updated_orders], ['X001'])
        self.assertEqual(len(self.store.rows), 2)
        for row in self.store.rows:
            self.assertEqual(row[COL.COL_STATUS - 1], '発送済み')
            self.assertIs(row[COL.COL_SHIPPED - 1], True)
        self.assertEqual(self.store.rows[0][COL.COL_REVENUE - 1], '48.00')
        self.assertEqual(self.store.rows[1][COL.COL_REVENUE - 1], '')

    def test_shipped_flag_follows_new_status_only(self):
        self.ledger.reconcile([make_order('X001', status='SHIPPED')], SHOP)
        self.ledger.reconcile([make_order('X001', status='IN_CANCEL')], SHOP)
        for row in self.store.rows:
            self.assertEqual(row[COL.COL_STATUS - 1], 'キャンセル申請中')
            self.assertIs(row[COL.COL_SHIPPED - 1], False)

    def test_duplicate_ids_in_one_batch_add_one_row_set(self):
        result = self.ledger.reconcile([make_order('X001'), make_order('X001', status='PROCESSED')], SHOP)
        self.assertEqual(result.added, 1)
        self.assertEqual(len(self.store.rows), 2)
        self.assertEqual(self.store.rows[0][COL.COL_STATUS - 1], '処理済み')

    def test_manual_columns_are_preserved_on_update(self):
        self.ledger.reconcile([make_order('X001')], SHOP)
        self.store.rows[0][COL.COL_COST - 1] = '20'
        self.store.rows[0][COL.COL_NOTE - 1] = 'gift wrap'
        self.ledger.reconcile([make_order('X001', status='SHIPPED')], SHOP)
        self.assertEqual(self.store.rows[0][COL.COL_COST - 1], '20')
        self.assertEqual(self.store.rows[0][COL.COL_NOTE - 1], 'gift wrap')


class TestFindMissingLabel(unittest.TestCase):

    def setUp(self):
        self.store = MemoryLedgerStore(LEDGER_HEADER)
        self.ledger = OrderLedger(self.store)

    def test_limit_is_respected(self):
        self.ledger.reconcile([make_order(f"R{n}", lines=1) for n in range(8)], SHOP)
        candidates = self.ledger.find_missing_label(5)
        self.assertEqual(len(candidates), 5)
        self.assertEqual([c.order_sn for c in candidates], ['R0', 'R1', 'R2', 'R3', 'R4'])

    def test_excludes_labelled_and_non_awaiting_orders(self):
        self.ledger.reconcile([
            make_order('READY', status='READY_TO_SHIP'),
            make_order('LABELLED', status='READY_TO_SHIP'),
            make_order('DONE', status='SHIPPED'),
            make_order('UNPAID', status='UNPAID'),
            make_order('PROC', status='PROCESSED'),
        ], SHOP)
        # A label on only the second row still counts for the whole order.
        labelled_rows = self.ledger.rows_for_order('LABELLED')
        self.ledger.write_label([labelled_rows[1]], '/labels/LABELLED.pdf')

        candidates = self.ledger.find_missing_label(10)

        self.assertEqual([c.order_sn for c in candidates], ['READY', 'PROC'])
        for candidate in candidates:
            self.assertEqual(len(candidate.rows), 2)
            self.assertEqual(candidate.shop_label, SHOP.label)

    def test_raw_status_rows_qualify(self):
        values = LedgerRow(order_sn='MANUAL', status='READY_TO_SHIP', shop_label='SG').to_values()
        self.store.rows.append(values)
        candidates = self.ledger.find_missing_label(5)
        self.assertEqual([c.order_sn for c in candidates], ['MANUAL'])

    def test_zero_limit_returns_nothing(self):
        self.ledger.reconcile([make_order('X001')], SHOP)
        self.assertEqual(self.ledger.find_missing_label(0), [])


class TestWriteLabel(unittest.TestCase):

    def setUp(self):
        self.store = MemoryLedgerStore(LEDGER_HEADER)
        self.ledger = OrderLedger(self.store)
        self.ledger.reconcile([make_order('X001', lines=3)], SHOP)

    def test_label_is_written_to_all_rows(self):
        rows = self.ledger.find_missing_label(1)[0].rows
        written = self.ledger.write_label(rows, '/labels/X001.pdf')

        self.assertEqual(written, 3)
        for row in self.store.rows:
            self.assertEqual(row[COL.COL_LABEL - 1], '/labels/X001.pdf')
        self.assertEqual(self.ledger.find_missing_label(5), [])

    def test_write_label_is_idempotent(self):
        rows = self.ledger.rows_for_order('X001')
        self.ledger.write_label(rows, '/labels/X001.pdf')
        self.assertEqual(self.ledger.write_label(rows, '/labels/X001.pdf'), 0)

    def test_accepts_row_refs(self):
        self.ledger.write_label([RowRef(2), RowRef(3)], 'ref')
        self.assertEqual(self.store.rows[0][COL.COL_LABEL - 1], 'ref')
        self.assertEqual(self.store.rows[1][COL.COL_LABEL - 1], 'ref')
        self.assertEqual(self.store.rows[2][COL.COL_LABEL - 1], '')


class TestLedgerRow(unittest.TestCase):

    def test_from_sheet_values(self):
        values = ['2024-01-01 10:00', '発送済み', 'SG', 'X9', 'Cup', 'Red', '', 'CUP', '2', '', 'TRUE']
        row = LedgerRow.from_values(values, ref=RowRef(7))
        self.assertTrue(row.shipped)
        self.assertEqual(row.order_sn, 'X9')
        self.assertEqual(row.label, '')
        self.assertEqual(row.profit, '')
        self.assertEqual(row.ref, RowRef(7))


if __name__ == '__main__':
    unittest.main()
