# -*- coding: utf-8 -*-
"""
Exception types shared by the marketplace, ledger and warehouse modules.

The classes are grouped by how a caller is expected to react to them:
configuration problems abort a run before any network call, authentication
problems propagate to the token layer, rate-limit problems carry the time at
which the caller may try again, and everything else is reported per order.
"""


class ConfigurationError(Exception):
    """Raised when required settings or credentials are missing or malformed."""

    def __init__(self, missing_keys):
        self.missing_keys = list(missing_keys)
        super().__init__(f"Missing or invalid configuration: {', '.join(self.missing_keys)}")


class LedgerStoreError(Exception):
    """The ledger spreadsheet could not be read or written."""


class RateLimitError(Exception):
    """
    Raised when an upstream API refuses a request because of its quota.

    Attributes:
        reset_at (float or None): Unix timestamp at which the quota resets,
            when the server reported one.
    """

    def __init__(self, message, reset_at=None):
        super().__init__(message)
        self.reset_at = reset_at

    def seconds_until_reset(self, now):
        if self.reset_at is None:
            return None
        return max(0.0, self.reset_at - now)


# =====================================================================================
# --- Marketplace ---
# =====================================================================================

class MarketplaceApiError(Exception):
    """A non-2xx response or a payload-level `error` field from the marketplace."""

    def __init__(self, code, message, request_id=None):
        self.code = code or ""
        self.message = message or ""
        self.request_id = request_id
        super().__init__(f"[{self.code}] {self.message}")


class MarketplaceAuthError(MarketplaceApiError):
    """Invalid or expired access token, or a rejected signature."""


# =====================================================================================
# --- Warehouse ---
# =====================================================================================

class WarehouseApiError(Exception):
    def __init__(self, status_code, message, body=None):
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(f"Warehouse API error {status_code}: {message}")


class WarehouseAuthError(WarehouseApiError):
    """The bearer token was rejected even after a refresh."""


class DuplicateOrderError(WarehouseApiError):
    """The warehouse already holds a sales order with the same code."""


class SalesOrderValidationError(ValueError):
    """A sales-order payload is missing fields the warehouse requires."""

    def __init__(self, order_sn, problems):
        self.order_sn = order_sn
        self.problems = list(problems)
        super().__init__(f"Order {order_sn} is not a valid sales order: {'; '.join(self.problems)}")
