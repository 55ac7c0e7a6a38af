#!/usr/bin/env python3

"""
Main entry point for the Order Sync cycle.

Fetches the latest marketplace orders for every configured shop, reconciles
them into the spreadsheet ledger, registers new orders with the warehouse
(when enabled), generates missing shipping labels and posts a summary.

All of the logic lives in `order_management.workflow`.
"""

import sys
import os

# Ensure the project root is in the Python path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from order_management.workflow import main as order_sync_main

if __name__ == '__main__':
    order_sync_main()
