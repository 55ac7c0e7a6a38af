# -*- coding: utf-8 -*-
"""
Request signing for the marketplace Open API.

Every shop-level call carries `partner_id`, `timestamp`, `access_token`,
`shop_id` and `sign` as query parameters. `sign` is the lowercase hex
HMAC-SHA256 of `partner_id + path + timestamp + access_token + shop_id`,
keyed by the partner key. The upstream rejects any request whose signature
differs by a single byte, so the concatenation order must not change.
"""

import hmac
import hashlib


def sign(partner_id, path, timestamp, access_token, shop_id, partner_key):
    base_string = f"{partner_id}{path}{timestamp}{access_token}{shop_id}"
    return hmac.new(
        partner_key.encode('utf-8'),
        base_string.encode('utf-8'),
        hashlib.sha256
    ).hexdigest()


def signed_params(shop, path, timestamp):
    """Returns the common query parameters for `path`, signed for `shop` (a ShopContext)."""
    timestamp = int(timestamp)
    return {
        'partner_id': shop.partner_id,
        'timestamp': timestamp,
        'access_token': shop.access_token,
        'shop_id': shop.shop_id,
        'sign': sign(shop.partner_id, path, timestamp, shop.access_token, shop.shop_id, shop.partner_key),
    }
