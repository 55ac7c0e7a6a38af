# -*- coding: utf-8 -*-
"""
================================================================================
Shipping Label Workflow
================================================================================
Purpose:
----------------
Obtains the shipping document (label PDF) for one order by driving the
marketplace's asynchronous document protocol, and writes the resulting label
reference back to the ledger.

Key Steps (per order):
1.  **Tracking number**: An empty tracking number means the seller never
    arranged shipment. That is an expected state, so the order is skipped.
2.  **Document type**: The caller's choice, or the type the marketplace
    suggests for the order's logistics channel.
3.  **Create document**: Asks the marketplace to render the document. Calling
    this again for an order whose earlier attempt was lost is harmless.
4.  **Poll**: Checks the task every `poll_interval` seconds until it is READY,
    FAILED, or `max_wait` has elapsed. Running out of time raises
    `LabelTimeout`; the download is never attempted for an unfinished task.
5.  **Download**: Fetches the PDF and saves it as `<order_sn>.pdf`.

Outcomes:
----------------
- `ok`: the label was saved and its reference returned.
- `skipped`: an expected state (`NotArranged`, `AlreadyShipped`,
  `Unsupported`). Logged at INFO and never alerted on.
- `failed`: anything else (`LabelTimeout`, `LabelGenerationFailed`,
  `LabelSaveFailed`, other API errors). Counted for operator follow-up.

Authentication and rate-limit errors are not outcomes; they propagate.

Nothing here trusts state from a previous run: a half-polled task is simply
re-resolved from the marketplace the next time the workflow runs.
----------------
"""

# =====================================================================================
# --- Imports ---
# =====================================================================================
import time
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from common.errors import LedgerStoreError, MarketplaceApiError, MarketplaceAuthError, RateLimitError

logger = logging.getLogger(__name__)


# =====================================================================================
# --- Configuration ---
# =====================================================================================
DEFAULT_POLL_INTERVAL_SECONDS = 3
DEFAULT_MAX_WAIT_SECONDS = 30
FALLBACK_DOCUMENT_TYPE = 'THERMAL_AIR_WAYBILL'

# Workflow states.
START = 'START'
TRACKING_RESOLVED = 'TRACKING_RESOLVED'
DOCTYPE_RESOLVED = 'DOCTYPE_RESOLVED'
CREATE_REQUESTED = 'CREATE_REQUESTED'
POLLING = 'POLLING'
DOWNLOADED = 'DOWNLOADED'
ERROR = 'ERROR'

# Document task statuses reported by the marketplace.
TASK_PROCESSING = 'PROCESSING'
TASK_READY = 'READY'
TASK_FAILED = 'FAILED'

OUTCOME_OK = 'ok'
OUTCOME_SKIPPED = 'skipped'
OUTCOME_FAILED = 'failed'

# Substrings of upstream error codes/messages, lower-cased.
NOT_ARRANGED_MARKERS = (
    'ship_order_first',
    'not arranged',
    'arrange shipment',
    'tracking_number_not_exist',
    'tracking number is empty',
)
ALREADY_SHIPPED_MARKERS = (
    'already_shipped',
    'already shipped',
    'already picked',
    'has been picked up',
    'pickup_done',
)
UNSUPPORTED_MARKERS = (
    'not_support',
    'not support',
    'unsupported',
    'can not print',
    'cannot print',
)


# =====================================================================================
# --- Outcome Types ---
# =====================================================================================

class LabelSkip(Exception):
    """An expected state in which no label can or should be produced."""
    reason = 'skipped'


class NotArranged(LabelSkip):
    reason = 'shipment not arranged'


class AlreadyShipped(LabelSkip):
    reason = 'parcel already picked up'


class Unsupported(LabelSkip):
    reason = 'channel does not support printing'


class LabelFailure(Exception):
    reason = 'failed'


class LabelTimeout(LabelFailure):
    reason = 'document not ready in time'


class LabelGenerationFailed(LabelFailure):
    reason = 'document generation failed'


class LabelSaveFailed(LabelFailure):
    reason = 'label could not be saved'


def classify_label_error(code, message=''):
    """Maps an upstream error code/message to the skip or failure class it belongs to."""
    text = f"{code or ''} {message or ''}".lower()
    if any(marker in text for marker in NOT_ARRANGED_MARKERS):
        return NotArranged
    if any(marker in text for marker in ALREADY_SHIPPED_MARKERS):
        return AlreadyShipped
    if any(marker in text for marker in UNSUPPORTED_MARKERS):
        return Unsupported
    return LabelFailure


@dataclass
class LabelTask:
    order_sn: str
    package_number: str = ''
    tracking_number: str = ''
    document_type: str = ''
    status: str = ''
    attempts: int = 0
    state: str = START


@dataclass
class LabelResult:
    order_sn: str
    outcome: str
    label_ref: Optional[str] = None
    reason: str = ''
    task: Optional[LabelTask] = None


@dataclass
class LabelRunSummary:
    ok: int = 0
    skipped: int = 0
    failed: int = 0
    deferred: int = 0
    results: List[LabelResult] = field(default_factory=list)

    def add(self, result):
        self.results.append(result)
        if result.outcome == OUTCOME_OK:
            self.ok += 1
        elif result.outcome == OUTCOME_SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def failures(self):
        return [r for r in self.results if r.outcome == OUTCOME_FAILED]


# =====================================================================================
# --- Workflow ---
# =====================================================================================

class LabelWorkflow:
    """
    Args:
        client (MarketplaceClient): Client for the shop the order belongs to.
        storage (LabelDirectory): Where downloaded documents are saved.
        poll_interval (float): Seconds between document status checks.
        max_wait (float): Total seconds to wait for the document to be READY.
    """

    def __init__(self, client, storage, poll_interval=DEFAULT_POLL_INTERVAL_SECONDS,
                 max_wait=DEFAULT_MAX_WAIT_SECONDS, sleep=time.sleep):
        self.client = client
        self.storage = storage
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.sleep = sleep

    def run(self, order_sn, package_number='', document_type=None):
        task = LabelTask(order_sn=order_sn, package_number=package_number or '')
        try:
            label_ref = self._run(task, document_type)
        except LabelSkip as e:
            task.state = ERROR
            logger.info(f"Skipping label for order {order_sn}: {e.reason}. {e}")
            return LabelResult(order_sn, OUTCOME_SKIPPED, reason=f"{e.reason}: {e}" if str(e) else e.reason, task=task)
        except LabelFailure as e:
            task.state = ERROR
            logger.error(f"Label for order {order_sn} failed: {e.reason}. {e}")
            return LabelResult(order_sn, OUTCOME_FAILED, reason=f"{e.reason}: {e}" if str(e) else e.reason, task=task)
        except (MarketplaceAuthError, RateLimitError):
            raise
        except MarketplaceApiError as e:
            failed_state, task.state = task.state, ERROR
            error_class = classify_label_error(e.code, e.message)
            if issubclass(error_class, LabelSkip):
                logger.info(f"Skipping label for order {order_sn}: {error_class.reason}. {e}")
                return LabelResult(order_sn, OUTCOME_SKIPPED, reason=f"{error_class.reason}: {e}", task=task)
            logger.error(f"Label for order {order_sn} failed after {failed_state}: {e}")
            return LabelResult(order_sn, OUTCOME_FAILED, reason=str(e), task=task)
        return LabelResult(order_sn, OUTCOME_OK, label_ref=label_ref, task=task)

    def _run(self, task, document_type):
        # ---------------------------------------------------------------------
        # Step 1: Tracking number.
        # ---------------------------------------------------------------------
        task.tracking_number = self.client.get_tracking_number(task.order_sn, task.package_number)
        if not task.tracking_number:
            raise NotArranged("No tracking number; arrange shipment first.")
        task.state = TRACKING_RESOLVED

        # ---------------------------------------------------------------------
        # Step 2: Document type.
        # ---------------------------------------------------------------------
        if document_type:
            task.document_type = document_type
        else:
            parameter = self.client.get_shipping_document_parameter(task.order_sn, task.package_number)
            task.document_type = parameter.get('suggest_shipping_document_type') or FALLBACK_DOCUMENT_TYPE
        task.state = DOCTYPE_RESOLVED

        # ---------------------------------------------------------------------
        # Step 3: Create.
        # ---------------------------------------------------------------------
        self.client.create_shipping_document(
            task.order_sn, task.tracking_number, task.document_type, task.package_number
        )
        task.state = CREATE_REQUESTED

        # ---------------------------------------------------------------------
        # Step 4: Poll until READY.
        # ---------------------------------------------------------------------
        task.state = POLLING
        self._wait_until_ready(task)

        # ---------------------------------------------------------------------
        # Step 5: Download and save.
        # ---------------------------------------------------------------------
        content = self.client.download_shipping_document(task.order_sn, task.document_type, task.package_number)
        try:
            label_ref = self.storage.save(task.order_sn, content)
        except OSError as e:
            raise LabelSaveFailed(str(e))
        task.state = DOWNLOADED
        logger.info(f"Label ready for order {task.order_sn} (tracking {task.tracking_number}).")
        return label_ref

    def _wait_until_ready(self, task):
        waited = 0.0
        while True:
            task.attempts += 1
            result = self.client.get_shipping_document_result(task.order_sn, task.document_type, task.package_number)
            task.status = result.get('status', '')

            if task.status == TASK_READY:
                return
            if task.status == TASK_FAILED:
                fail_error = result.get('fail_error', '')
                fail_message = result.get('fail_message', '')
                error_class = classify_label_error(fail_error, fail_message)
                if issubclass(error_class, LabelSkip):
                    raise error_class(f"[{fail_error}] {fail_message}")
                raise LabelGenerationFailed(f"[{fail_error}] {fail_message}")

            if waited >= self.max_wait:
                raise LabelTimeout(
                    f"Status still '{task.status}' after {task.attempts} checks over {waited:g}s."
                )
            logger.debug(f"Document for order {task.order_sn} is {task.status}; checking again in {self.poll_interval}s.")
            self.sleep(self.poll_interval)
            waited += self.poll_interval


# =====================================================================================
# --- Batch ---
# =====================================================================================

def process_missing_labels(ledger, workflows_by_label, limit):
    """
    Runs the label workflow for up to `limit` ledger orders that have no label yet.

    Args:
        ledger (OrderLedger): The order ledger.
        workflows_by_label (dict): Shop label (as written in the ledger) ->
            `LabelWorkflow` bound to that shop's client.
        limit (int): Maximum number of orders to attempt.

    Returns:
        LabelRunSummary: Per-order results. One order's failure never stops
        the others; a rate-limit response stops the batch and the remaining
        orders are counted as deferred.
    """
    summary = LabelRunSummary()
    candidates = ledger.find_missing_label(limit)
    if not candidates:
        logger.info("No orders are waiting for a shipping label.")
        return summary

    logger.info(f"Found {len(candidates)} orders without a shipping label.")
    for index, candidate in enumerate(candidates):
        workflow = workflows_by_label.get(candidate.shop_label)
        if workflow is None:
            logger.warning(f"No shop configured for label '{candidate.shop_label}' (order {candidate.order_sn}).")
            summary.add(LabelResult(candidate.order_sn, OUTCOME_SKIPPED, reason=f"unknown shop '{candidate.shop_label}'"))
            continue

        try:
            result = workflow.run(candidate.order_sn)
        except RateLimitError as e:
            summary.deferred = len(candidates) - index
            logger.warning(f"Rate limited; leaving {summary.deferred} orders for the next run. {e}")
            break

        if result.outcome == OUTCOME_OK:
            try:
                ledger.write_label(candidate.rows, result.label_ref)
            except LedgerStoreError as e:
                logger.error(f"Label for order {candidate.order_sn} saved to {result.label_ref} but not recorded: {e}")
                result = LabelResult(candidate.order_sn, OUTCOME_FAILED, label_ref=result.label_ref,
                                     reason=f"ledger not updated: {e}", task=result.task)
        summary.add(result)

    logger.info(
        f"Label run finished: {summary.ok} created, {summary.skipped} skipped, "
        f"{summary.failed} failed, {summary.deferred} deferred."
    )
    return summary
