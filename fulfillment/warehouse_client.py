# -*- coding: utf-8 -*-
"""
Client for the warehouse-management API.

Requests are authenticated with a bearer token. A 401 response triggers one
token refresh followed by a single retry; a second 401 raises
`WarehouseAuthError`. A 429 response raises `RateLimitError` carrying the
reset time the server reported, so callers can back off instead of treating
the order as failed.
"""

import time
import logging

import requests

from common.errors import (
    RateLimitError, WarehouseApiError, WarehouseAuthError, DuplicateOrderError
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30
TOKEN_PATH = '/oauth/token'
SALES_ORDER_PATH = '/merchant/{merchant_id}/sales_orders/new'

# Fragments of an error body that mean "a sales order with this code exists".
DUPLICATE_MARKERS = (
    'already been taken',
    'already exists',
    'already registered',
    'duplicate',
    '既に存在',
    '重複',
)


class WarehouseTokenSource:
    """
    Holds the warehouse access token for one run.

    `refresh()` exchanges the refresh token for a new access token. Storing
    the refreshed pair between runs is left to whatever provisions the
    credentials.
    """

    def __init__(self, config, session=None):
        self.config = config
        self.session = session or requests.Session()
        self.access_token = config.access_token
        self.refresh_token = config.refresh_token

    def get_token(self):
        if not self.access_token:
            self.refresh()
        return self.access_token

    def refresh(self):
        if not self.refresh_token:
            raise WarehouseAuthError(401, "Access token rejected and no refresh token is configured.")
        logger.info("Refreshing warehouse access token.")
        try:
            response = self.session.post(
                f"{self.config.base_url}{TOKEN_PATH}",
                data={
                    'grant_type': 'refresh_token',
                    'refresh_token': self.refresh_token,
                    'client_id': self.config.client_id,
                    'client_secret': self.config.client_secret,
                },
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            raise WarehouseAuthError(None, f"Token refresh request failed: {e}")
        if response.status_code != 200:
            raise WarehouseAuthError(response.status_code, f"Token refresh failed: {response.text[:300]}")
        data = response.json()
        self.access_token = data['access_token']
        self.refresh_token = data.get('refresh_token', self.refresh_token)
        return self.access_token


class WarehouseClient:
    def __init__(self, config, token_source, session=None, clock=time.time):
        self.config = config
        self.token_source = token_source
        self.session = session or requests.Session()
        self.clock = clock

    def create_sales_order(self, sales_order):
        """Registers one sales order. Returns the created record as the API returns it."""
        path = SALES_ORDER_PATH.format(merchant_id=self.config.merchant_id)
        return self._post(path, {'sales_order': sales_order})

    def _post(self, path, body):
        url = f"{self.config.base_url}{path}"
        for attempt in (1, 2):
            headers = {
                'Authorization': f"Bearer {self.token_source.get_token()}",
                'Content-Type': 'application/json',
            }
            try:
                response = self.session.post(url, headers=headers, json=body, timeout=REQUEST_TIMEOUT_SECONDS)
            except requests.exceptions.RequestException as e:
                raise WarehouseApiError(None, f"POST {path} failed: {e}")

            if response.status_code == 401:
                if attempt == 1:
                    logger.warning("Warehouse API returned 401; refreshing the token and retrying once.")
                    self.token_source.refresh()
                    continue
                raise WarehouseAuthError(401, "Warehouse API rejected the refreshed token.", response.text)
            break

        if response.status_code == 429:
            raise RateLimitError("Warehouse API rate limit reached.", reset_at=self._reset_at(response))

        if 200 <= response.status_code < 300:
            try:
                return response.json()
            except ValueError:
                return {}

        text = response.text or ''
        message = self._error_message(response, text)
        if any(marker in text.lower() for marker in DUPLICATE_MARKERS):
            raise DuplicateOrderError(response.status_code, message, text)
        raise WarehouseApiError(response.status_code, message, text)

    def _reset_at(self, response):
        reset = response.headers.get('X-RateLimit-Reset')
        if reset:
            try:
                return float(reset)
            except ValueError:
                pass
        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return self.clock() + float(retry_after)
            except ValueError:
                pass
        return None

    @staticmethod
    def _error_message(response, text):
        try:
            data = response.json()
        except ValueError:
            return text[:300] or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            for key in ('message', 'error_description', 'error'):
                if data.get(key):
                    return str(data[key])
            if data.get('errors'):
                return str(data['errors'])
        return text[:300] or f"HTTP {response.status_code}"
