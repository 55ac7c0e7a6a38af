# -*- coding: utf-8 -*-
"""
================================================================================
Order Sync Orchestrator
================================================================================
Purpose:
----------------
Runs one periodic cycle over all configured shops:

1.  Fetch the latest orders of each shop and reconcile them into the ledger.
2.  Register newly added orders that are awaiting shipment with the
    warehouse (when fulfillment is enabled).
3.  Generate shipping labels for ledger orders that still lack one.
4.  Post a summary notification when something changed or failed.

A failure fetching one shop is reported and the other shops still run,
except for authentication failures, which stop the cycle. Any exception that
escapes the cycle is reported through the notifier before it is re-raised.

Only one cycle may run against a ledger at a time; the host scheduler is
responsible for that.
----------------
"""

# =====================================================================================
# --- Imports ---
# =====================================================================================
import time
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from common.errors import MarketplaceApiError, MarketplaceAuthError, RateLimitError
from database.sheet_store import SheetLedgerStore
from fulfillment.bridge import FulfillmentBridge, BridgeResult, BridgeFailure
from fulfillment.warehouse_client import WarehouseClient, WarehouseTokenSource
from marketplace.client import MarketplaceClient
from marketplace.status import is_awaiting_shipment
from notifications.notifier import (
    Notifier, reconcile_attachment, label_attachment, bridge_attachment
)
from order_management.ledger import OrderLedger, LEDGER_HEADER
from shipping.label_storage import LabelDirectory
from shipping.label_workflow import LabelWorkflow, LabelRunSummary, process_missing_labels

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    reconciled: Dict[str, object] = field(default_factory=dict)
    fetch_errors: Dict[str, str] = field(default_factory=dict)
    fulfillment: Dict[str, BridgeResult] = field(default_factory=dict)
    labels: Optional[LabelRunSummary] = None


class Orchestrator:
    """
    Args:
        config (AppConfig): The configuration loaded at process start.
        ledger (OrderLedger): The order ledger.
        notifier (Notifier): Notification channel.
        client_factory: Builds a `MarketplaceClient` for a shop; injectable for tests.
        bridge (FulfillmentBridge, optional): Built from `config.warehouse`
            when omitted and fulfillment is enabled.
        label_storage (LabelDirectory, optional): Defaults to `config.run.labels_dir`.
    """

    def __init__(self, config, ledger, notifier, client_factory=MarketplaceClient,
                 bridge=None, label_storage=None, sleep=time.sleep):
        self.config = config
        self.ledger = ledger
        self.notifier = notifier
        self.client_factory = client_factory
        self.label_storage = label_storage or LabelDirectory(config.run.labels_dir)
        self.sleep = sleep
        self._clients = {}
        self._bridge = bridge

    def client_for(self, shop):
        if shop.code not in self._clients:
            self._clients[shop.code] = self.client_factory(shop, request_interval=self.config.run.request_interval)
        return self._clients[shop.code]

    @property
    def bridge(self):
        if self._bridge is None and self.config.warehouse is not None:
            warehouse = self.config.warehouse
            client = WarehouseClient(warehouse, WarehouseTokenSource(warehouse))
            self._bridge = FulfillmentBridge(client, self.ledger, warehouse, pause=self.config.run.fulfillment_pause)
        return self._bridge

    # ---------------------------------------------------------------------
    # Cycle
    # ---------------------------------------------------------------------

    def run_cycle(self):
        logger.info(f"--- Starting order sync cycle for {len(self.config.shops)} shop(s) ---")
        try:
            report = self._run_cycle()
        except Exception as e:
            logger.exception("Order sync cycle aborted.")
            self.notifier.notify(f"Order sync run failed: {type(e).__name__}: {e}")
            raise
        self._notify_report(report)
        logger.info("--- Order sync cycle finished ---")
        return report

    def _run_cycle(self):
        report = CycleReport()
        run = self.config.run

        for shop in self.config.shops:
            client = self.client_for(shop)
            try:
                orders = client.get_latest_orders(limit=run.order_limit, days_back=run.days_back)
            except MarketplaceAuthError:
                raise
            except (MarketplaceApiError, RateLimitError) as e:
                logger.error(f"[{shop.code}] Could not fetch orders: {e}")
                report.fetch_errors[shop.code] = str(e)
                continue

            result = self.ledger.reconcile(orders, shop)
            report.reconciled[shop.code] = result

            if run.fulfillment_enabled and self.bridge is not None:
                to_submit = [o for o in result.added_orders if is_awaiting_shipment(o.status)]
                if to_submit:
                    report.fulfillment[shop.code] = self.bridge.submit_orders(to_submit, shop)

        report.labels = self.run_labels()
        return report

    def run_labels(self):
        """Generates labels for up to `label_limit` ledger orders across all shops."""
        run = self.config.run
        workflows_by_label = {
            shop.label: LabelWorkflow(
                self.client_for(shop),
                self.label_storage,
                poll_interval=run.label_poll_interval,
                max_wait=run.label_max_wait,
                sleep=self.sleep,
            )
            for shop in self.config.shops
        }
        return process_missing_labels(self.ledger, workflows_by_label, run.label_limit)

    def run_fulfillment(self, shop, order_sns):
        """
        Registers specific orders of one shop with the warehouse.

        The orders are fetched fresh from the marketplace; orders that cannot
        be fetched are reported as failures alongside the warehouse results.
        """
        if self.bridge is None:
            raise RuntimeError("Warehouse settings are not configured.")
        client = self.client_for(shop)
        orders = []
        fetch_failures = []
        for index, order_sn in enumerate(order_sns):
            if index > 0:
                self.sleep(self.config.run.request_interval)
            try:
                orders.append(client.get_order_detail(order_sn))
            except MarketplaceAuthError:
                raise
            except (MarketplaceApiError, RateLimitError) as e:
                logger.error(f"[{shop.code}] Could not fetch order {order_sn}: {e}")
                fetch_failures.append((order_sn, str(e)))

        result = self.bridge.submit_orders(orders, shop)
        for order_sn, message in fetch_failures:
            result.failures.append(BridgeFailure(order_sn, message))
        return result

    # ---------------------------------------------------------------------
    # Reporting
    # ---------------------------------------------------------------------

    def _notify_report(self, report):
        attachments = []
        for shop in self.config.shops:
            if shop.code in report.reconciled:
                attachment = reconcile_attachment(shop, report.reconciled[shop.code])
                if attachment:
                    attachments.append(attachment)
            if shop.code in report.fulfillment:
                attachment = bridge_attachment(shop, report.fulfillment[shop.code])
                if attachment:
                    attachments.append(attachment)
            if shop.code in report.fetch_errors:
                attachments.append({
                    'color': 'danger',
                    'title': f"Could not fetch orders for shop {shop.label}",
                    'text': report.fetch_errors[shop.code],
                })
        if report.labels is not None:
            attachment = label_attachment(report.labels)
            if attachment:
                attachments.append(attachment)

        if not attachments:
            logger.info("Nothing changed this cycle; no notification sent.")
            return
        self.notifier.notify("Order sync summary", attachments)


def build_orchestrator(config):
    """Wires the spreadsheet ledger, notifier and clients for a production run."""
    store = SheetLedgerStore.open(config.sheet, LEDGER_HEADER)
    return Orchestrator(config, OrderLedger(store), Notifier(config.notifier))
