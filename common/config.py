# -*- coding: utf-8 -*-
"""
Typed run configuration.

`load_config()` is called once at process start. It reads every setting the
run needs, validates that the required credentials are present and returns an
`AppConfig` that is then passed explicitly into each client, ledger and
workflow. Nothing in the project looks configuration up on its own.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from common.errors import ConfigurationError
from common.utils import read_secrets_file, get_secret, parse_bool

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DEFAULT_MARKETPLACE_HOST = 'https://partner.shopeemobile.com'
DEFAULT_TIMEZONE = 'Asia/Tokyo'
DEFAULT_WORKSHEET = 'orders'


@dataclass(frozen=True)
class ShopContext:
    """Credentials and locale of one marketplace shop."""
    code: str
    label: str
    partner_id: int
    partner_key: str
    shop_id: int
    access_token: str
    host: str = DEFAULT_MARKETPLACE_HOST
    timezone: str = DEFAULT_TIMEZONE


@dataclass(frozen=True)
class SheetConfig:
    sheet_id: str
    worksheet: str = DEFAULT_WORKSHEET
    service_account_file: Optional[str] = None


@dataclass(frozen=True)
class WarehouseConfig:
    base_url: str
    merchant_id: str
    access_token: str = ''
    refresh_token: str = ''
    client_id: str = ''
    client_secret: str = ''
    default_payment_method: str = 'other'
    default_delivery_method: str = 'other'
    store_code: str = ''


@dataclass(frozen=True)
class NotifierConfig:
    webhook_url: str = ''
    channel_name: str = ''


@dataclass(frozen=True)
class RunSettings:
    order_limit: int = 50
    days_back: int = 7
    request_interval: float = 1.0
    label_limit: int = 20
    label_poll_interval: float = 3.0
    label_max_wait: float = 30.0
    labels_dir: str = os.path.join(PROJECT_ROOT, 'labels')
    log_dir: str = os.path.join(PROJECT_ROOT, 'logs')
    fulfillment_enabled: bool = False
    fulfillment_pause: float = 1.0
    schedule_minutes: int = 15


@dataclass(frozen=True)
class AppConfig:
    shops: Tuple[ShopContext, ...]
    sheet: SheetConfig
    run: RunSettings = field(default_factory=RunSettings)
    warehouse: Optional[WarehouseConfig] = None
    notifier: NotifierConfig = field(default_factory=NotifierConfig)


# =====================================================================================
# --- Loading ---
# =====================================================================================

def _load_shop(code, secrets, missing):
    prefix = f"SHOP_{code}_"
    values = {}
    for name in ('PARTNER_ID', 'PARTNER_KEY', 'SHOP_ID', 'ACCESS_TOKEN'):
        value = get_secret(prefix + name, secrets)
        if not value:
            missing.append(prefix + name)
        values[name] = value
    if not all(values.values()):
        return None
    try:
        partner_id = int(values['PARTNER_ID'])
        shop_id = int(values['SHOP_ID'])
    except ValueError:
        missing.append(f"{prefix}PARTNER_ID/{prefix}SHOP_ID (must be integers)")
        return None
    return ShopContext(
        code=code,
        label=get_secret(prefix + 'LABEL', secrets, default=code),
        partner_id=partner_id,
        partner_key=values['PARTNER_KEY'],
        shop_id=shop_id,
        access_token=values['ACCESS_TOKEN'],
        host=get_secret(prefix + 'HOST', secrets, default=DEFAULT_MARKETPLACE_HOST),
        timezone=get_secret(prefix + 'TIMEZONE', secrets, default=DEFAULT_TIMEZONE),
    )


def _load_warehouse(secrets, missing):
    base_url = get_secret('WAREHOUSE_BASE_URL', secrets)
    merchant_id = get_secret('WAREHOUSE_MERCHANT_ID', secrets)
    access_token = get_secret('WAREHOUSE_ACCESS_TOKEN', secrets, default='')
    refresh_token = get_secret('WAREHOUSE_REFRESH_TOKEN', secrets, default='')
    if not base_url:
        missing.append('WAREHOUSE_BASE_URL')
    if not merchant_id:
        missing.append('WAREHOUSE_MERCHANT_ID')
    if not access_token and not refresh_token:
        missing.append('WAREHOUSE_ACCESS_TOKEN or WAREHOUSE_REFRESH_TOKEN')
    if not (base_url and merchant_id and (access_token or refresh_token)):
        return None
    return WarehouseConfig(
        base_url=base_url.rstrip('/'),
        merchant_id=merchant_id,
        access_token=access_token,
        refresh_token=refresh_token,
        client_id=get_secret('WAREHOUSE_CLIENT_ID', secrets, default=''),
        client_secret=get_secret('WAREHOUSE_CLIENT_SECRET', secrets, default=''),
        default_payment_method=get_secret('WAREHOUSE_DEFAULT_PAYMENT_METHOD', secrets, default='other'),
        default_delivery_method=get_secret('WAREHOUSE_DEFAULT_DELIVERY_METHOD', secrets, default='other'),
        store_code=get_secret('WAREHOUSE_STORE_CODE', secrets, default=''),
    )


def _number_setting(key, secrets, default, cast, problems, minimum=0, positive=False):
    raw = get_secret(key, secrets, default=default)
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        problems.append(f"{key} (must be a number, got '{raw}')")
        return default
    if value < minimum or (positive and value <= 0):
        problems.append(f"{key} (must be {'greater than' if positive else 'at least'} {minimum}, got {raw})")
        return default
    return value


def _load_run_settings(secrets, problems):
    defaults = RunSettings()
    return RunSettings(
        order_limit=_number_setting('ORDER_LIMIT', secrets, defaults.order_limit, int, problems, positive=True),
        days_back=_number_setting('DAYS_BACK', secrets, defaults.days_back, int, problems, positive=True),
        request_interval=_number_setting('REQUEST_INTERVAL_SECONDS', secrets, defaults.request_interval, float, problems),
        label_limit=_number_setting('LABEL_LIMIT', secrets, defaults.label_limit, int, problems),
        label_poll_interval=_number_setting(
            'LABEL_POLL_INTERVAL_SECONDS', secrets, defaults.label_poll_interval, float, problems, positive=True
        ),
        label_max_wait=_number_setting('LABEL_MAX_WAIT_SECONDS', secrets, defaults.label_max_wait, float, problems),
        labels_dir=get_secret('LABELS_DIR', secrets, default=defaults.labels_dir),
        log_dir=get_secret('LOG_DIR', secrets, default=defaults.log_dir),
        fulfillment_enabled=parse_bool(get_secret('FULFILLMENT_ENABLED', secrets), default=False),
        fulfillment_pause=_number_setting('FULFILLMENT_PAUSE_SECONDS', secrets, defaults.fulfillment_pause, float, problems),
        schedule_minutes=_number_setting('SCHEDULE_MINUTES', secrets, defaults.schedule_minutes, int, problems,
                                         positive=True),
    )


def load_config(path=None):
    """
    Builds the `AppConfig` for one process.

    Every missing or malformed key is collected first, so that a single
    `ConfigurationError` names all of them at once.

    Raises:
        ConfigurationError: If any shop credential, the sheet id, or (when
            fulfillment is enabled) a warehouse setting is missing, or a
            numeric run setting is malformed or out of range.
    """
    secrets = read_secrets_file(path)
    missing = []

    codes = [c.strip().upper() for c in (get_secret('SHOP_CODES', secrets) or '').split(',') if c.strip()]
    if not codes:
        missing.append('SHOP_CODES')
    shops = []
    for code in codes:
        shop = _load_shop(code, secrets, missing)
        if shop is not None:
            shops.append(shop)

    sheet_id = get_secret('SHEET_ID', secrets)
    if not sheet_id:
        missing.append('SHEET_ID')

    run = _load_run_settings(secrets, missing)
    warehouse = None
    if run.fulfillment_enabled:
        warehouse = _load_warehouse(secrets, missing)
    elif get_secret('WAREHOUSE_BASE_URL', secrets):
        # Available for manual submissions even when the cycle does not submit.
        warehouse = _load_warehouse(secrets, [])

    if missing:
        raise ConfigurationError(missing)

    return AppConfig(
        shops=tuple(shops),
        sheet=SheetConfig(
            sheet_id=sheet_id,
            worksheet=get_secret('SHEET_WORKSHEET', secrets, default=DEFAULT_WORKSHEET),
            service_account_file=get_secret('GOOGLE_SERVICE_ACCOUNT_JSON', secrets),
        ),
        run=run,
        warehouse=warehouse,
        notifier=NotifierConfig(
            webhook_url=get_secret('NOTIFY_WEBHOOK_URL', secrets, default=''),
            channel_name=get_secret('NOTIFY_CHANNEL', secrets, default=''),
        ),
    )
