# -*- coding: utf-8 -*-
"""
================================================================================
Marketplace API Client
================================================================================
Purpose:
----------------
Authenticated transport for one marketplace shop. It lists and fetches
orders and exposes the individual calls of the shipping-document (label)
protocol. The order in which those label calls are made is decided by
`shipping.label_workflow`, not here.

Every request is signed with `marketplace.signer`. Responses are checked in
two places: the HTTP status and the payload's `error` field. Either one
failing raises a `MarketplaceApiError` (or one of its more specific
subclasses), and the caller decides whether to retry or skip.

Rate limiting:
----------------
The upstream allows only a small number of requests per second per shop.
`get_latest_orders` therefore pauses `request_interval` seconds between the
detail fetches it issues. The pause blocks; there is no background scheduler.
----------------
"""

# =====================================================================================
# --- Imports ---
# =====================================================================================
import time
import logging

import requests

from common.errors import MarketplaceApiError, MarketplaceAuthError, RateLimitError
from marketplace.models import order_from_api
from marketplace.signer import signed_params

logger = logging.getLogger(__name__)


# =====================================================================================
# --- Configuration ---
# =====================================================================================
ORDER_LIST_PATH = '/api/v2/order/get_order_list'
ORDER_DETAIL_PATH = '/api/v2/order/get_order_detail'
TRACKING_NUMBER_PATH = '/api/v2/logistics/get_tracking_number'
DOCUMENT_PARAMETER_PATH = '/api/v2/logistics/get_shipping_document_parameter'
CREATE_DOCUMENT_PATH = '/api/v2/logistics/create_shipping_document'
DOCUMENT_RESULT_PATH = '/api/v2/logistics/get_shipping_document_result'
DOWNLOAD_DOCUMENT_PATH = '/api/v2/logistics/download_shipping_document'

# The order list endpoint rejects windows longer than 15 days.
MAX_WINDOW_SECONDS = 15 * 24 * 60 * 60
MAX_DAYS_BACK = 15
MAX_PAGE_SIZE = 100
REQUEST_TIMEOUT_SECONDS = 30

DETAIL_OPTIONAL_FIELDS = ','.join([
    'buyer_username',
    'recipient_address',
    'item_list',
    'total_amount',
    'actual_shipping_fee',
    'estimated_shipping_fee',
    'payment_method',
    'shipping_carrier',
    'package_list',
    'message_to_seller',
])

AUTH_ERROR_CODES = frozenset([
    'error_auth',
    'error_sign',
    'error_permission',
    'invalid_access_token',
    'invalid_acceess_token',
])
RATE_LIMIT_ERROR_CODES = frozenset(['error_rate_limit', 'error_too_many_request'])


class MarketplaceClient:
    """
    Client bound to a single shop.

    Args:
        shop (ShopContext): Credentials, host and timezone of the shop.
        request_interval (float): Seconds to wait between consecutive detail
            fetches in `get_latest_orders`.
        session: A `requests.Session`-like object. A new session is created
            when omitted.
        clock / sleep: Injected for tests; default to `time.time` / `time.sleep`.
    """

    def __init__(self, shop, request_interval=1.0, timeout=REQUEST_TIMEOUT_SECONDS,
                 session=None, clock=time.time, sleep=time.sleep):
        self.shop = shop
        self.request_interval = request_interval
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock
        self.sleep = sleep

    # ---------------------------------------------------------------------
    # Transport
    # ---------------------------------------------------------------------

    def _request(self, method, path, params=None, body=None, binary=False):
        query = signed_params(self.shop, path, self.clock())
        if params:
            query.update(params)
        url = f"{self.shop.host.rstrip('/')}{path}"

        try:
            if method == 'GET':
                response = self.session.get(url, params=query, timeout=self.timeout)
            else:
                response = self.session.post(url, params=query, json=body or {}, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise MarketplaceApiError('network_error', f"{method} {path} failed: {e}")

        if response.status_code == 429:
            raise RateLimitError(f"Rate limited on {path}", reset_at=self._reset_at(response))

        content_type = response.headers.get('Content-Type', '')
        # Document downloads answer with a PDF body on success and JSON on error.
        if binary and 200 <= response.status_code < 300 and 'json' not in content_type.lower():
            return response.content

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get('error'):
            self._raise_payload_error(payload, response.status_code)

        if not 200 <= response.status_code < 300:
            message = response.text[:500] if response.text else f"HTTP {response.status_code}"
            if response.status_code in (401, 403):
                raise MarketplaceAuthError(f"http_{response.status_code}", message)
            raise MarketplaceApiError(f"http_{response.status_code}", message)

        if payload is None:
            raise MarketplaceApiError('invalid_response', f"{path} did not return JSON.")
        return payload

    def _reset_at(self, response):
        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return self.clock() + float(retry_after)
            except ValueError:
                return None
        return None

    def _raise_payload_error(self, payload, status_code):
        code = payload.get('error')
        message = payload.get('message', '')
        request_id = payload.get('request_id')
        if code in AUTH_ERROR_CODES or status_code in (401, 403):
            raise MarketplaceAuthError(code, message, request_id)
        if code in RATE_LIMIT_ERROR_CODES:
            raise RateLimitError(f"[{code}] {message}")
        raise MarketplaceApiError(code, message, request_id)

    @staticmethod
    def _order_entry(order_sn, package_number='', **extra):
        entry = {'order_sn': order_sn}
        if package_number:
            entry['package_number'] = package_number
        entry.update(extra)
        return entry

    @staticmethod
    def _first_result(payload, order_sn):
        """Returns the `result_list` entry for `order_sn`, raising on a per-order failure."""
        results = (payload.get('response') or {}).get('result_list') or []
        result = next((r for r in results if r.get('order_sn') == order_sn), None)
        if result is None:
            raise MarketplaceApiError('missing_result', f"No result returned for order {order_sn}.")
        if result.get('fail_error'):
            raise MarketplaceApiError(result['fail_error'], result.get('fail_message', ''))
        return result

    # ---------------------------------------------------------------------
    # Orders
    # ---------------------------------------------------------------------

    def list_orders(self, time_from, time_to, page_size=MAX_PAGE_SIZE, order_status=None, cursor=''):
        """
        Lists order ids created inside [time_from, time_to] (unix seconds).

        Returns:
            tuple: (list of order_sn strings, next cursor or None when there
                   are no more pages).

        Raises:
            ValueError: If the window is empty or longer than 15 days.
        """
        time_from, time_to = int(time_from), int(time_to)
        if time_to <= time_from:
            raise ValueError("time_to must be later than time_from.")
        if time_to - time_from > MAX_WINDOW_SECONDS:
            raise ValueError("The order list window cannot exceed 15 days.")
        page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))

        params = {
            'time_range_field': 'create_time',
            'time_from': time_from,
            'time_to': time_to,
            'page_size': page_size,
            'cursor': cursor or '',
        }
        if order_status:
            params['order_status'] = order_status

        payload = self._request('GET', ORDER_LIST_PATH, params=params)
        body = payload.get('response') or {}
        order_sns = [o['order_sn'] for o in body.get('order_list') or [] if o.get('order_sn')]
        next_cursor = body.get('next_cursor') if body.get('more') else None
        return order_sns, next_cursor

    def get_order_detail(self, order_sn):
        payload = self._request('GET', ORDER_DETAIL_PATH, params={
            'order_sn_list': order_sn,
            'response_optional_fields': DETAIL_OPTIONAL_FIELDS,
        })
        orders = (payload.get('response') or {}).get('order_list') or []
        for data in orders:
            if data.get('order_sn') == order_sn:
                return order_from_api(data, shop_code=self.shop.code)
        raise MarketplaceApiError('order_not_found', f"Order {order_sn} missing from detail response.")

    def get_latest_orders(self, limit=50, days_back=7):
        """
        Fetches up to `limit` orders created in the last `days_back` days with full detail.

        One detail request is issued per order, with `request_interval`
        seconds between them. A failure on a single order is logged and the
        order is left out; a rate-limit response ends the batch early with
        whatever was fetched so far. Authentication errors propagate.
        """
        if days_back > MAX_DAYS_BACK:
            logger.warning(f"days_back={days_back} exceeds the {MAX_DAYS_BACK}-day API window; clamping.")
            days_back = MAX_DAYS_BACK
        time_to = int(self.clock())
        time_from = time_to - int(days_back * 24 * 60 * 60)

        order_sns = []
        cursor = ''
        while len(order_sns) < limit:
            page, cursor = self.list_orders(time_from, time_to, page_size=min(limit, MAX_PAGE_SIZE), cursor=cursor)
            order_sns.extend(sn for sn in page if sn not in order_sns)
            if not cursor:
                break
        order_sns = order_sns[:limit]
        logger.info(f"[{self.shop.code}] {len(order_sns)} orders listed in the last {days_back} days.")

        orders = []
        for index, order_sn in enumerate(order_sns):
            if index > 0:
                self.sleep(self.request_interval)
            try:
                orders.append(self.get_order_detail(order_sn))
            except MarketplaceAuthError:
                raise
            except RateLimitError as e:
                logger.warning(f"[{self.shop.code}] Rate limited while fetching details; "
                               f"stopping after {len(orders)} of {len(order_sns)} orders. {e}")
                break
            except MarketplaceApiError as e:
                logger.error(f"[{self.shop.code}] Could not fetch detail for order {order_sn}: {e}")
        return orders

    # ---------------------------------------------------------------------
    # Shipping documents
    # ---------------------------------------------------------------------

    def get_tracking_number(self, order_sn, package_number=''):
        """Returns the tracking number, or '' when shipment has not been arranged yet."""
        params = {'order_sn': order_sn}
        if package_number:
            params['package_number'] = package_number
        payload = self._request('GET', TRACKING_NUMBER_PATH, params=params)
        return ((payload.get('response') or {}).get('tracking_number') or '').strip()

    def get_shipping_document_parameter(self, order_sn, package_number=''):
        payload = self._request('POST', DOCUMENT_PARAMETER_PATH, body={
            'order_list': [self._order_entry(order_sn, package_number)],
        })
        return self._first_result(payload, order_sn)

    def create_shipping_document(self, order_sn, tracking_number, document_type, package_number=''):
        payload = self._request('POST', CREATE_DOCUMENT_PATH, body={
            'order_list': [self._order_entry(
                order_sn, package_number,
                tracking_number=tracking_number,
                shipping_document_type=document_type,
            )],
        })
        return self._first_result(payload, order_sn)

    def get_shipping_document_result(self, order_sn, document_type, package_number=''):
        """
        Returns the task entry for `order_sn` (`status` is PROCESSING, READY or FAILED).

        A FAILED entry is returned as-is, with its `fail_error`, so the
        workflow can classify it.
        """
        payload = self._request('POST', DOCUMENT_RESULT_PATH, body={
            'order_list': [self._order_entry(order_sn, package_number, shipping_document_type=document_type)],
        })
        results = (payload.get('response') or {}).get('result_list') or []
        result = next((r for r in results if r.get('order_sn') == order_sn), None)
        if result is None:
            raise MarketplaceApiError('missing_result', f"No document status returned for order {order_sn}.")
        return result

    def download_shipping_document(self, order_sn, document_type, package_number=''):
        content = self._request('POST', DOWNLOAD_DOCUMENT_PATH, body={
            'shipping_document_type': document_type,
            'order_list': [self._order_entry(order_sn, package_number)],
        }, binary=True)
        if not isinstance(content, (bytes, bytearray)):
            raise MarketplaceApiError('invalid_document', f"Download for order {order_sn} returned JSON instead of a document.")
        return bytes(content)
