#!/usr/bin/env python3

"""
Registers specific marketplace orders with the warehouse system.

Usage:
    python3 main_fulfillment.py SG 240101ABCDEF12 240101ABCDEF13
"""

import sys
import os

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from order_management.workflow import fulfillment_main

if __name__ == '__main__':
    fulfillment_main()
