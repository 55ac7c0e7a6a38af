import os
import sys
import hmac
import hashlib
import unittest

# Add project root to Python path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from marketplace import signer
from helpers import SHOP


class TestSigner(unittest.TestCase):

    def test_signature_is_hmac_sha256_of_concatenated_fields(self):
        """The base string is partner_id + path + timestamp + access_token + shop_id."""
        expected = hmac.new(
            b'secret',
            b'2001234/api/v2/order/get_order_list1700000000token55501',
            hashlib.sha256
        ).hexdigest()
        result = signer.sign(2001234, '/api/v2/order/get_order_list', 1700000000, 'token', 55501, 'secret')
        self.assertEqual(result, expected)

    def test_signature_is_deterministic_lowercase_hex(self):
        first = signer.sign(1, '/p', 2, 'tok', 3, 'key')
        second = signer.sign(1, '/p', 2, 'tok', 3, 'key')
        self.assertEqual(first, second)
        self.assertEqual(len(first), 64)
        self.assertEqual(first, first.lower())
        int(first, 16)

    def test_signature_changes_with_any_field(self):
        base = signer.sign(1, '/p', 2, 'tok', 3, 'key')
        self.assertNotEqual(base, signer.sign(1, '/q', 2, 'tok', 3, 'key'))
        self.assertNotEqual(base, signer.sign(1, '/p', 2, 'tok', 4, 'key'))
        self.assertNotEqual(base, signer.sign(1, '/p', 2, 'tok', 3, 'other'))

    def test_signed_params_for_shop(self):
        params = signer.signed_params(SHOP, '/api/v2/order/get_order_detail', 1700000000.7)
        self.assertEqual(params['partner_id'], SHOP.partner_id)
        self.assertEqual(params['shop_id'], SHOP.shop_id)
        self.assertEqual(params['access_token'], SHOP.access_token)
        self.assertEqual(params['timestamp'], 1700000000)
        self.assertEqual(params['sign'], signer.sign(
            SHOP.partner_id, '/api/v2/order/get_order_detail', 1700000000,
            SHOP.access_token, SHOP.shop_id, SHOP.partner_key
        ))


if __name__ == '__main__':
    unittest.main()
