# Python Substrate Transaction Library
#
# Copyright 2018-2024 Stichting Polkascan (Polkascan Foundation).
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import unittest
from unittest.mock import MagicMock

from substratetx.receipt import ExtrinsicReceipt
from substratetx.scale.events import decode_events
from substratetx.tracker import TransactionStatus
from test.fixtures import create_registry, transfer_block_events, BLOCK_HASH, dispatch_info


def mock_event(module_id: str, event_id: str, attributes: dict = None, extrinsic_idx: int = 1):
    event = MagicMock()
    event.module_id = module_id
    event.event_id = event_id
    event.attributes = attributes
    event.extrinsic_idx = extrinsic_idx
    return event


class ExtrinsicReceiptTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.registry = create_registry()

    def create_receipt(self, events: list) -> ExtrinsicReceipt:
        return ExtrinsicReceipt(
            extrinsic_hash='0x' + 'ee' * 32, registry=self.registry, status=TransactionStatus('InBlock', BLOCK_HASH),
            block_hash=BLOCK_HASH, block_number=1000, extrinsic_idx=1, triggered_events=events
        )

    def test_success(self):
        receipt = self.create_receipt([
            mock_event('Balances', 'Deposit', {'who': '5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty', 'amount': 80}),
            mock_event('Treasury', 'Deposit', {'value': 20}),
            mock_event('System', 'ExtrinsicSuccess', {'dispatch_info': dispatch_info(1000)})
        ])

        self.assertTrue(receipt.is_success)
        self.assertIsNone(receipt.error_message)
        self.assertEqual(receipt.total_fee_amount, 100)
        self.assertEqual(receipt.weight, {'ref_time': 1000, 'proof_size': 0})

    def test_transaction_fee_paid(self):
        receipt = self.create_receipt([
            mock_event('Balances', 'Deposit', {'who': '5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty', 'amount': 80}),
            mock_event('TransactionPayment', 'TransactionFeePaid', {'who': '', 'actual_fee': 2500, 'tip': 0}),
            mock_event('System', 'ExtrinsicSuccess', {'dispatch_info': dispatch_info()})
        ])

        self.assertEqual(receipt.total_fee_amount, 2500)

    def test_module_error(self):
        receipt = self.create_receipt([
            mock_event('System', 'ExtrinsicFailed', {
                'dispatch_error': {'Module': {'index': 5, 'error': bytes([1, 0, 0, 0])}},
                'dispatch_info': dispatch_info()
            })
        ])

        self.assertFalse(receipt.is_success)
        self.assertEqual(receipt.error_message, {
            'type': 'Module',
            'name': 'LiquidityRestrictions',
            'docs': ['Account liquidity restrictions prevent withdrawal.']
        })

    def test_module_error_from_decoded_events(self):
        events = decode_events(transfer_block_events(self.registry, failed=True), self.registry)
        receipt = self.create_receipt([event for event in events if event.extrinsic_idx == 1])

        self.assertFalse(receipt.is_success)
        self.assertEqual(receipt.error_message, {
            'type': 'Module',
            'name': 'InsufficientBalance',
            'docs': ['Balance too low to send value.']
        })
        self.assertEqual(receipt.total_fee_amount, 125)

    def test_unknown_module_error(self):
        receipt = self.create_receipt([])

        self.assertEqual(
            receipt.get_dispatch_error_message({'Module': {'index': 9, 'error': 3}}),
            {'type': 'Module', 'name': 'Unknown error 9:3', 'docs': []}
        )

    def test_system_errors(self):
        receipt = self.create_receipt([])

        self.assertEqual(
            receipt.get_dispatch_error_message('BadOrigin'), {'type': 'System', 'name': 'BadOrigin', 'docs': None}
        )
        self.assertEqual(
            receipt.get_dispatch_error_message({'Token': 'FundsUnavailable'}),
            {'type': 'System', 'name': 'Token', 'docs': 'FundsUnavailable'}
        )

    def test_find_event(self):
        deposit = mock_event('Balances', 'Deposit', {'amount': 1})
        receipt = self.create_receipt([deposit])

        self.assertIs(receipt.find_event('Balances', 'Deposit'), deposit)
        self.assertIsNone(receipt.find_event('Balances', 'Transfer'))

    def test_extrinsic_identifier(self):
        self.assertEqual(self.create_receipt([]).get_extrinsic_identifier(), '1000-1')
        self.assertRaises(ValueError, ExtrinsicReceipt('0x00').get_extrinsic_identifier)

    def test_not_included(self):
        receipt = ExtrinsicReceipt('0x00', status=TransactionStatus(TransactionStatus.SUBMITTED))

        self.assertFalse(receipt.is_included)
        self.assertEqual(receipt.status_history, [TransactionStatus('Submitted')])

        with self.assertRaises(ValueError):
            receipt.is_success

    def test_set_inclusion_resets_outcome(self):
        receipt = self.create_receipt([mock_event('System', 'ExtrinsicSuccess', {'dispatch_info': dispatch_info()})])
        self.assertTrue(receipt.is_success)

        receipt.set_inclusion(BLOCK_HASH, 1000, 1, [
            mock_event('System', 'ExtrinsicFailed', {'dispatch_error': 'BadOrigin', 'dispatch_info': dispatch_info()})
        ], finalized=True)

        self.assertFalse(receipt.is_success)
        self.assertTrue(receipt.finalized)
        self.assertEqual(receipt.error_message['name'], 'BadOrigin')

    def test_clear_inclusion(self):
        receipt = self.create_receipt([])
        receipt.clear_inclusion()

        self.assertFalse(receipt.is_included)
        self.assertIsNone(receipt.triggered_events)


if __name__ == '__main__':
    unittest.main()
