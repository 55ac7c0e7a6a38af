#!/usr/bin/env python3

"""
Main entry point for the Shipping Label workflow.

Generates shipping labels for ledger orders that are awaiting shipment and
have no label yet, then writes the label reference to every row of the order.
"""

import sys
import os

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from order_management.workflow import labels_main

if __name__ == '__main__':
    labels_main()
