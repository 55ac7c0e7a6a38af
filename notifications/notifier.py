# -*- coding: utf-8 -*-
"""
Best-effort webhook notifications.

Notifications report what a run changed or what went wrong. They are never
allowed to fail the run itself: every error while posting is logged and
swallowed, and `notify` returns False.
"""

import logging

import requests

from marketplace.status import translate_status

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 20
MAX_LISTED_ORDERS = 20


class Notifier:
    def __init__(self, config, session=None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def enabled(self):
        return bool(self.config.webhook_url)

    def notify(self, text, attachments=None):
        """Posts `{text, attachments}` to the webhook. Returns True when the webhook accepted it."""
        if not self.enabled:
            logger.info(f"Notification webhook not configured; message not sent: {text[:80]}")
            return False
        payload = {'text': text, 'attachments': attachments or []}
        if self.config.channel_name:
            payload['channel'] = self.config.channel_name
        try:
            response = self.session.post(self.config.webhook_url, json=payload, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Could not send notification: {e}")
            return False


# =====================================================================================
# --- Message Builders ---
# =====================================================================================

def _order_list(order_sns):
    listed = list(order_sns)[:MAX_LISTED_ORDERS]
    text = '\n'.join(listed)
    if len(order_sns) > len(listed):
        text += f"\n... and {len(order_sns) - len(listed)} more"
    return text


def reconcile_attachment(shop, result):
    """Attachment summarising one shop's reconcile pass, or None when nothing changed."""
    if not result.added and not result.updated:
        return None
    fields = []
    if result.added:
        fields.append({'title': f"New orders ({result.added})",
                       'value': _order_list([o.order_sn for o in result.added_orders]), 'short': False})
    if result.updated:
        fields.append({'title': f"Status changes ({result.updated})",
                       'value': _order_list([f"{o.order_sn}: {translate_status(o.status)}" for o in result.updated_orders]),
                       'short': False})
    return {'color': 'good', 'title': f"Shop {shop.label}", 'fields': fields}


def label_attachment(summary):
    """Attachment listing label failures only; skips are expected and not reported."""
    failures = summary.failures
    if not failures:
        return None
    return {
        'color': 'danger',
        'title': f"Shipping label failures ({len(failures)})",
        'text': _order_list([f"{r.order_sn}: {r.reason}" for r in failures]),
    }


def bridge_attachment(shop, result):
    if not result.failures:
        return None
    return {
        'color': 'warning',
        'title': f"Warehouse registration failures, shop {shop.label} ({len(result.failures)})",
        'text': _order_list([f"{f.order_sn}: {f.message}" for f in result.failures]),
    }
