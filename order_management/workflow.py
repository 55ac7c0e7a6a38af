# -*- coding: utf-8 -*-
"""
================================================================================
Order Sync Workflow Entry Points
================================================================================
Purpose:
----------------
Functions called by the `main_*.py` scripts in the project root. Each one
loads the configuration once, sets up logging in its `LOG_DIR`, builds the
orchestrator and runs one stage:

- `main()`: the full cycle (fetch, reconcile, warehouse, labels, notify).
- `labels_main()`: only the shipping label pass.
- `fulfillment_main(argv)`: register specific orders with the warehouse.

A configuration error stops the process before any network call is made.
----------------
"""

import os
import sys
import argparse
import logging

from common.config import load_config, PROJECT_ROOT
from common.errors import ConfigurationError
from common.logging_utils import setup_logging
from order_management.orchestrator import build_orchestrator

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = os.path.join(PROJECT_ROOT, 'logs')


def start_run(name, secrets_path=None):
    """
    Loads the configuration and sets up logging in the configured `LOG_DIR`.

    A configuration error is logged to the default log directory and ends the
    process with exit code 1.
    """
    try:
        config = load_config(secrets_path)
    except ConfigurationError as e:
        setup_logging(DEFAULT_LOG_DIR, name=name)
        logger.critical(f"CRITICAL: {e}")
        sys.exit(1)
    setup_logging(config.run.log_dir, name=name)
    return config


def main(secrets_path=None):
    """Runs one full order sync cycle."""
    config = start_run('order_sync', secrets_path)
    orchestrator = build_orchestrator(config)
    return orchestrator.run_cycle()


def labels_main(secrets_path=None):
    """Runs only the shipping label pass."""
    config = start_run('labels', secrets_path)
    orchestrator = build_orchestrator(config)
    summary = orchestrator.run_labels()
    logger.info("--- Label Summary ---")
    logger.info(f"Created: {summary.ok}  Skipped: {summary.skipped}  Failed: {summary.failed}  Deferred: {summary.deferred}")
    for result in summary.failures:
        logger.info(f"  FAILED {result.order_sn}: {result.reason}")
    return summary


def fulfillment_main(argv=None):
    """Registers the given orders of one shop with the warehouse."""
    parser = argparse.ArgumentParser(description="Register marketplace orders in the warehouse system.")
    parser.add_argument('shop', help="Shop code, e.g. SG")
    parser.add_argument('order_sns', nargs='+', help="Marketplace order numbers")
    parser.add_argument('--secrets', default=None, help="Path to secrets.txt")
    args = parser.parse_args(argv)

    config = start_run('fulfillment', args.secrets)
    shop = next((s for s in config.shops if s.code == args.shop.upper()), None)
    if shop is None:
        logger.critical(f"CRITICAL: Shop '{args.shop}' is not configured.")
        sys.exit(1)
    if config.warehouse is None:
        logger.critical("CRITICAL: Warehouse settings are not configured.")
        sys.exit(1)

    orchestrator = build_orchestrator(config)
    result = orchestrator.run_fulfillment(shop, args.order_sns)
    logger.info(f"Registered: {len(result.submitted)}  Failed: {len(result.failures)}")
    for failure in result.failures:
        logger.info(f"  {failure.order_sn}: {failure.message}")
    return result


# This block ensures that the 'main' function is called only when the script is
# executed directly (not when it's imported as a module).
if __name__ == '__main__':
    main()
