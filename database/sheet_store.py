# -*- coding: utf-8 -*-
"""
================================================================================
Ledger Row Stores
================================================================================
Purpose:
----------------
The order ledger lives in a spreadsheet: row 1 is the header and every other
row is one line item of one order. This module hides the spreadsheet behind a
small store interface so that `order_management.ledger` never deals with
positional row numbers or the Google Sheets API directly.

Store interface:
- `read_rows()` -> list of (row_number, values) for every data row, in sheet order.
- `append_rows(rows)` -> list of row numbers assigned to the appended rows.
- `update_cells(updates)` where `updates` is a list of (row_number, column, value)
  with 1-based column numbers.

The spreadsheet store raises `LedgerStoreError` when the Sheets API call fails.

Two implementations are provided:
- `SheetLedgerStore`: a gspread worksheet.
- `MemoryLedgerStore`: a list of lists, used by tests and dry runs.
----------------
"""

import re
import logging

import gspread
import requests
from google.oauth2.service_account import Credentials

from common.errors import LedgerStoreError

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']
# Values are stored exactly as sent; USER_ENTERED would turn numeric order ids
# and SKUs such as "00123" into numbers or dates.
VALUE_INPUT_OPTION = 'RAW'
STORE_ERRORS = (gspread.exceptions.GSpreadException, requests.exceptions.RequestException)
_UPDATED_RANGE = re.compile(r"^(?:.*!)?([A-Z]+\d+)(?::([A-Z]+\d+))?$")


class MemoryLedgerStore:
    def __init__(self, header, rows=None):
        self.header = list(header)
        self.rows = [list(r) for r in (rows or [])]

    def read_rows(self):
        # Row 1 is the header, so the first data row is row 2.
        return [(index + 2, list(values)) for index, values in enumerate(self.rows)]

    def append_rows(self, rows):
        start = len(self.rows) + 2
        for values in rows:
            self.rows.append(list(values))
        return list(range(start, start + len(rows)))

    def update_cells(self, updates):
        for row_number, column, value in updates:
            values = self.rows[row_number - 2]
            if len(values) < column:
                values.extend([''] * (column - len(values)))
            values[column - 1] = value


class SheetLedgerStore:
    """
    Ledger rows kept in a Google Sheets worksheet.

    Args:
        worksheet: A `gspread.Worksheet`.
        header (list): Column titles written to row 1 when the sheet is empty.
    """

    def __init__(self, worksheet, header):
        self.worksheet = worksheet
        self.header = list(header)

    @classmethod
    def open(cls, sheet_config, header):
        """Authorizes with the service account file and opens the configured worksheet."""
        credentials = Credentials.from_service_account_file(
            sheet_config.service_account_file,
            scopes=SCOPES
        )
        gc = gspread.authorize(credentials)
        spreadsheet = gc.open_by_key(sheet_config.sheet_id)
        try:
            worksheet = spreadsheet.worksheet(sheet_config.worksheet)
        except gspread.exceptions.WorksheetNotFound:
            logger.info(f"Worksheet '{sheet_config.worksheet}' not found; creating it.")
            worksheet = spreadsheet.add_worksheet(title=sheet_config.worksheet, rows=1000, cols=len(header))
        store = cls(worksheet, header)
        store.ensure_header()
        return store

    def ensure_header(self):
        first_row = self.worksheet.row_values(1)
        if not any(first_row):
            self.worksheet.update(range_name='A1', values=[self.header], value_input_option=VALUE_INPUT_OPTION)
            logger.info("Wrote ledger header row.")

    def read_rows(self):
        try:
            values = self.worksheet.get_all_values()
        except STORE_ERRORS as e:
            raise LedgerStoreError(f"Could not read the ledger: {e}")
        # get_all_values() starts at row 1 (the header); data rows start at 2.
        return [(index + 1, row) for index, row in enumerate(values) if index > 0]

    def append_rows(self, rows):
        if not rows:
            return []
        try:
            response = self.worksheet.append_rows(rows, value_input_option=VALUE_INPUT_OPTION)
        except STORE_ERRORS as e:
            raise LedgerStoreError(f"Could not append {len(rows)} ledger rows: {e}")
        updated_range = ((response or {}).get('updates') or {}).get('updatedRange', '')
        match = _UPDATED_RANGE.match(updated_range)
        if not match:
            return []
        start_row, _ = gspread.utils.a1_to_rowcol(match.group(1))
        return list(range(start_row, start_row + len(rows)))

    def update_cells(self, updates):
        if not updates:
            return
        cells = [gspread.Cell(row_number, column, value) for row_number, column, value in updates]
        try:
            self.worksheet.update_cells(cells, value_input_option=VALUE_INPUT_OPTION)
        except STORE_ERRORS as e:
            raise LedgerStoreError(f"Could not update {len(cells)} ledger cells: {e}")
