import os
import sys
import unittest
from unittest.mock import patch, MagicMock

import gspread

# Add project root to Python path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from common.config import SheetConfig
from common.errors import LedgerStoreError
from database.sheet_store import SheetLedgerStore, SCOPES
from order_management.ledger import OrderLedger, LEDGER_HEADER, COL_ORDER_ID, COL_LABEL

HEADER = ['date', 'status', 'shop', 'order id']


class TestSheetLedgerStore(unittest.TestCase):

    def setUp(self):
        self.worksheet = MagicMock()
        self.store = SheetLedgerStore(self.worksheet, HEADER)

    def test_read_rows_skips_header_and_numbers_from_two(self):
        self.worksheet.get_all_values.return_value = [
            HEADER,
            ['2024-01-01 10:00', '発送準備中', 'SG', '240101AAA'],
            ['2024-01-01 10:00', '発送準備中', 'SG', '240101AAA'],
            ['2024-01-02 09:30', '発送済み', 'SG', '240102BBB'],
        ]
        rows = self.store.read_rows()
        self.assertEqual([number for number, _ in rows], [2, 3, 4])
        self.assertEqual(rows[2][1][3], '240102BBB')

    def test_append_rows_writes_raw_values_and_returns_row_numbers(self):
        self.worksheet.append_rows.return_value = {
            'updates': {'updatedRange': "'orders'!A5:S6", 'updatedRows': 2}
        }
        rows = [['2024-01-01', '', 'SG', '2401010001', '', '', '', '00123'], ['2024-01-01', '', 'SG', '2401010001']]

        numbers = self.store.append_rows(rows)

        self.assertEqual(numbers, [5, 6])
        self.worksheet.append_rows.assert_called_once_with(rows, value_input_option='RAW')

    def test_append_rows_without_updated_range(self):
        self.worksheet.append_rows.return_value = {}
        self.assertEqual(self.store.append_rows([['x']]), [])
        self.assertEqual(self.store.append_rows([]), [])
        self.worksheet.append_rows.assert_called_once()

    def test_update_cells_maps_to_gspread_cells(self):
        self.store.update_cells([(3, 2, '発送済み'), (3, 11, True)])

        args, kwargs = self.worksheet.update_cells.call_args
        cells = args[0]
        self.assertEqual([(c.row, c.col, c.value) for c in cells], [(3, 2, '発送済み'), (3, 11, True)])
        self.assertEqual(kwargs['value_input_option'], 'RAW')

    def test_update_cells_with_nothing_to_do(self):
        self.store.update_cells([])
        self.worksheet.update_cells.assert_not_called()

    def test_ensure_header_writes_only_to_empty_sheet(self):
        self.worksheet.row_values.return_value = []
        self.store.ensure_header()
        self.worksheet.update.assert_called_once_with(range_name='A1', values=[HEADER], value_input_option='RAW')

        self.worksheet.reset_mock()
        self.worksheet.row_values.return_value = HEADER
        self.store.ensure_header()
        self.worksheet.update.assert_not_called()

    def test_api_errors_become_ledger_store_errors(self):
        self.worksheet.get_all_values.side_effect = gspread.exceptions.GSpreadException('quota exceeded')
        self.worksheet.update_cells.side_effect = gspread.exceptions.GSpreadException('quota exceeded')
        with self.assertRaises(LedgerStoreError):
            self.store.read_rows()
        with self.assertRaises(LedgerStoreError):
            self.store.update_cells([(2, 10, '/labels/A.pdf')])

    def test_ledger_over_sheet_store_updates_the_right_rows(self):
        data = [''] * len(LEDGER_HEADER)
        first = list(data)
        first[COL_ORDER_ID - 1] = '2401010001'
        first[1] = '発送準備中'
        first[2] = 'SG'
        self.worksheet.get_all_values.return_value = [LEDGER_HEADER, first, list(first)]
        ledger = OrderLedger(SheetLedgerStore(self.worksheet, LEDGER_HEADER))

        ledger.write_label(ledger.rows_for_order('2401010001'), '/labels/2401010001.pdf')

        cells = self.worksheet.update_cells.call_args[0][0]
        self.assertEqual([(c.row, c.col) for c in cells], [(2, COL_LABEL), (3, COL_LABEL)])


class TestOpen(unittest.TestCase):

    @patch('database.sheet_store.gspread.authorize')
    @patch('database.sheet_store.Credentials')
    def test_open_creates_missing_worksheet_and_header(self, mock_credentials, mock_authorize):
        spreadsheet = mock_authorize.return_value.open_by_key.return_value
        spreadsheet.worksheet.side_effect = gspread.exceptions.WorksheetNotFound('orders')
        new_worksheet = spreadsheet.add_worksheet.return_value
        new_worksheet.row_values.return_value = []
        config = SheetConfig(sheet_id='sheet-123', worksheet='orders', service_account_file='/secrets/sa.json')

        store = SheetLedgerStore.open(config, LEDGER_HEADER)

        mock_credentials.from_service_account_file.assert_called_once_with('/secrets/sa.json', scopes=SCOPES)
        mock_authorize.return_value.open_by_key.assert_called_once_with('sheet-123')
        spreadsheet.add_worksheet.assert_called_once_with(title='orders', rows=1000, cols=len(LEDGER_HEADER))
        self.assertIs(store.worksheet, new_worksheet)
        new_worksheet.update.assert_called_once()


if __name__ == '__main__':
    unittest.main()
