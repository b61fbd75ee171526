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

import asyncio
import unittest
from unittest.mock import AsyncMock

from substratetx.exceptions import TrackingError, SubscriptionTerminated, SubstrateRequestException
from substratetx.rpc import Subscription
from substratetx.scale.events import decode_events
from substratetx.tracker import TransactionStatus, RetryPolicy, SubmissionTracker
from test.fixtures import MockRpc, create_registry, transfer_block_events, BLOCK_HASH, OTHER_BLOCK_HASH

EXTRINSIC_HASH = '0x' + 'ee' * 32


class TransactionStatusTestCase(unittest.TestCase):

    def test_from_rpc_string(self):
        self.assertEqual(TransactionStatus.from_rpc('ready').kind, TransactionStatus.READY)
        self.assertEqual(TransactionStatus.from_rpc('future').kind, TransactionStatus.FUTURE)
        self.assertEqual(TransactionStatus.from_rpc('Dropped').kind, TransactionStatus.DROPPED)

    def test_from_rpc_dict(self):
        status = TransactionStatus.from_rpc({'inBlock': BLOCK_HASH})

        self.assertEqual(status.kind, TransactionStatus.IN_BLOCK)
        self.assertEqual(status.block_hash, BLOCK_HASH)
        self.assertFalse(status.is_terminal)

        status = TransactionStatus.from_rpc({'finalityTimeout': BLOCK_HASH})
        self.assertEqual(status.block_hash, BLOCK_HASH)
        self.assertTrue(status.is_terminal)

        status = TransactionStatus.from_rpc({'broadcast': ['12D3KooW']})
        self.assertEqual(status.data, ['12D3KooW'])
        self.assertIsNone(status.block_hash)

    def test_from_rpc_invalid(self):
        self.assertRaises(TrackingError, TransactionStatus.from_rpc, 'unknown')
        self.assertRaises(TrackingError, TransactionStatus.from_rpc, {'inBlock': BLOCK_HASH, 'ready': None})
        self.assertRaises(TrackingError, TransactionStatus.from_rpc, 42)

    def test_terminal_statuses(self):
        for kind in ('Finalized', 'Dropped', 'Invalid', 'FinalityTimeout'):
            self.assertTrue(TransactionStatus(kind).is_terminal)

        for kind in ('Submitted', 'Future', 'Ready', 'Broadcast', 'InBlock', 'Retracted', 'Usurped'):
            self.assertFalse(TransactionStatus(kind).is_terminal)

    def test_equality(self):
        self.assertEqual(TransactionStatus('InBlock', BLOCK_HASH), TransactionStatus.from_rpc({'inBlock': BLOCK_HASH}))
        self.assertEqual(TransactionStatus('Ready'), 'Ready')
        self.assertNotEqual(TransactionStatus('InBlock', BLOCK_HASH), TransactionStatus('InBlock', OTHER_BLOCK_HASH))

    def test_str(self):
        self.assertEqual(str(TransactionStatus('Ready')), 'Ready')
        self.assertEqual(str(TransactionStatus('InBlock', BLOCK_HASH)), f'InBlock({BLOCK_HASH})')


class RetryPolicyTestCase(unittest.TestCase):

    def test_delays(self):
        retry_policy = RetryPolicy(max_attempts=4, backoff=0.5)

        self.assertEqual(
            [retry_policy.get_delay(attempt) for attempt in range(1, 5)], [0, 0.5, 1.0, 2.0]
        )

    def test_invalid_arguments(self):
        self.assertRaises(ValueError, RetryPolicy, max_attempts=0)
        self.assertRaises(ValueError, RetryPolicy, max_attempts=1.5)
        self.assertRaises(ValueError, RetryPolicy, backoff=-1)


class SubmissionTrackerTestCase(unittest.IsolatedAsyncioTestCase):

    @classmethod
    def setUpClass(cls):
        cls.registry = create_registry()
        cls.block_events = {
            BLOCK_HASH: decode_events(transfer_block_events(cls.registry, extrinsic_idx=1), cls.registry),
            OTHER_BLOCK_HASH: decode_events(transfer_block_events(cls.registry, extrinsic_idx=2), cls.registry)
        }
        cls.block_positions = {
            BLOCK_HASH: (1, 1000),
            OTHER_BLOCK_HASH: (2, 1001)
        }

    def setUp(self):
        self.rpc = MockRpc()

        self.substrate = AsyncMock()
        self.substrate.retrieve_extrinsic_index.side_effect = \
            lambda block_hash, extrinsic_hash: self.block_positions[block_hash]
        self.substrate.get_events.side_effect = lambda block_hash: self.block_events[block_hash]

    def create_subscription(self, statuses: list, end: bool = False) -> Subscription:
        subscription = Subscription(self.rpc, 'sub-1', 'author_unwatchExtrinsic')
        for status in statuses:
            subscription.push(status)
        if end:
            subscription.end()
        return subscription

    def create_tracker(self, subscription: Subscription, **kwargs) -> SubmissionTracker:
        return SubmissionTracker(
            substrate=self.substrate, subscription=subscription, extrinsic_hash=EXTRINSIC_HASH,
            registry=self.registry, **kwargs
        )

    def test_requires_wait_flag(self):
        self.assertRaises(ValueError, SubmissionTracker, self.substrate, None, EXTRINSIC_HASH)

    async def test_wait_for_inclusion(self):
        subscription = self.create_subscription(
            ['ready', {'broadcast': ['12D3KooW']}, {'inBlock': BLOCK_HASH}, {'finalized': BLOCK_HASH}]
        )

        receipt = await self.create_tracker(subscription, wait_for_inclusion=True).track()

        self.assertEqual(receipt.status, TransactionStatus('InBlock', BLOCK_HASH))
        self.assertEqual(receipt.block_hash, BLOCK_HASH)
        self.assertEqual(receipt.block_number, 1000)
        self.assertEqual(receipt.extrinsic_idx, 1)
        self.assertEqual(receipt.get_extrinsic_identifier(), '1000-1')
        self.assertFalse(receipt.finalized)
        self.assertTrue(receipt.is_success)

        # Finalized notification is left unconsumed
        self.assertEqual(subscription.update_nr, 3)
        self.assertEqual(self.rpc.unsubscribed, ['sub-1'])

    async def test_wait_for_finalization(self):
        subscription = self.create_subscription(
            ['ready', {'inBlock': BLOCK_HASH}, {'finalized': BLOCK_HASH}, 'ready']
        )

        receipt = await self.create_tracker(subscription, wait_for_finalization=True).track()

        self.assertEqual(receipt.status, TransactionStatus('Finalized', BLOCK_HASH))
        self.assertTrue(receipt.finalized)
        self.assertEqual(
            [status.kind for status in receipt.status_history], ['Submitted', 'Ready', 'InBlock', 'Finalized']
        )
        self.assertEqual(subscription.update_nr, 3)

        # Events of the including block are retrieved once
        self.assertEqual(self.substrate.retrieve_extrinsic_index.await_count, 1)
        self.assertEqual(self.substrate.get_events.await_count, 1)

    async def test_triggered_events_of_extrinsic(self):
        subscription = self.create_subscription([{'inBlock': BLOCK_HASH}])

        receipt = await self.create_tracker(subscription, wait_for_inclusion=True).track()

        self.assertEqual(
            [(event.module_id, event.event_id) for event in receipt.triggered_events],
            [('Balances', 'Deposit'), ('Balances', 'Transfer'), ('System', 'ExtrinsicSuccess')]
        )
        self.assertEqual(receipt.total_fee_amount, 125)
        self.assertEqual(receipt.weight, {'ref_time': 161994000, 'proof_size': 0})

    async def test_same_stream_same_outcome(self):
        statuses = [{'inBlock': BLOCK_HASH}, {'retracted': BLOCK_HASH}, {'inBlock': OTHER_BLOCK_HASH},
                    {'finalized': OTHER_BLOCK_HASH}]

        receipt_1 = await self.create_tracker(
            self.create_subscription(statuses), wait_for_finalization=True
        ).track()
        receipt_2 = await self.create_tracker(
            self.create_subscription(statuses), wait_for_inclusion=True, wait_for_finalization=True
        ).track()

        self.assertEqual(receipt_1.status, receipt_2.status)
        self.assertEqual(receipt_1.block_hash, receipt_2.block_hash)
        self.assertEqual(receipt_1.get_extrinsic_identifier(), receipt_2.get_extrinsic_identifier())

    async def test_retracted_block(self):
        subscription = self.create_subscription(
            [{'inBlock': BLOCK_HASH}, {'retracted': BLOCK_HASH}, {'inBlock': OTHER_BLOCK_HASH},
             {'finalized': OTHER_BLOCK_HASH}]
        )
        tracker = self.create_tracker(subscription, wait_for_finalization=True)

        receipt = await tracker.track()

        self.assertEqual(tracker.reorg_cycles, 1)
        self.assertEqual(receipt.status, TransactionStatus('Finalized', OTHER_BLOCK_HASH))
        self.assertEqual(receipt.block_hash, OTHER_BLOCK_HASH)
        self.assertEqual(receipt.get_extrinsic_identifier(), '1001-2')
        self.assertIn(TransactionStatus('Retracted', BLOCK_HASH), receipt.status_history)

    async def test_max_reorg_cycles(self):
        subscription = self.create_subscription(
            [{'inBlock': BLOCK_HASH}, {'retracted': BLOCK_HASH}, {'inBlock': OTHER_BLOCK_HASH},
             {'retracted': OTHER_BLOCK_HASH}, {'inBlock': BLOCK_HASH}]
        )

        receipt = await self.create_tracker(subscription, wait_for_finalization=True, max_reorg_cycles=1).track()

        self.assertEqual(receipt.status, TransactionStatus('Retracted', OTHER_BLOCK_HASH))
        self.assertFalse(receipt.is_included)
        self.assertEqual(subscription.update_nr, 4)

    async def test_usurped(self):
        subscription = self.create_subscription(['ready', {'usurped': '0x' + 'aa' * 32}])

        receipt = await self.create_tracker(subscription, wait_for_inclusion=True, max_reorg_cycles=0).track()

        self.assertEqual(receipt.status.kind, TransactionStatus.USURPED)
        self.assertFalse(receipt.is_included)

    async def test_dropped(self):
        subscription = self.create_subscription(['ready', 'dropped', {'inBlock': BLOCK_HASH}])

        receipt = await self.create_tracker(subscription, wait_for_inclusion=True).track()

        self.assertEqual(receipt.status, 'Dropped')
        self.assertTrue(receipt.status.is_terminal)
        self.assertFalse(receipt.is_included)
        self.substrate.get_events.assert_not_awaited()

    async def test_invalid(self):
        subscription = self.create_subscription(['invalid'])

        receipt = await self.create_tracker(subscription, wait_for_finalization=True).track()

        self.assertEqual(receipt.status, 'Invalid')

    async def test_timeout(self):
        subscription = self.create_subscription(['ready', {'inBlock': BLOCK_HASH}])

        receipt = await self.create_tracker(subscription, wait_for_finalization=True, timeout=0.1).track()

        self.assertEqual(receipt.status, 'FinalityTimeout')
        self.assertEqual(receipt.block_hash, BLOCK_HASH)
        self.assertEqual(self.rpc.unsubscribed, ['sub-1'])

    async def test_subscription_terminated(self):
        subscription = self.create_subscription(['ready', {'inBlock': BLOCK_HASH}], end=True)

        with self.assertRaises(SubscriptionTerminated):
            await self.create_tracker(subscription, wait_for_finalization=True).track()

        # Already closed by the connection
        self.assertEqual(self.rpc.unsubscribed, [])

    async def test_unknown_status_releases_subscription(self):
        subscription = self.create_subscription(['ready', {'weird': 1}])

        with self.assertRaises(TrackingError):
            await self.create_tracker(subscription, wait_for_inclusion=True).track()

        self.assertEqual(self.rpc.unsubscribed, ['sub-1'])
        self.assertTrue(subscription.closed)

    async def test_fetch_events_disabled(self):
        subscription = self.create_subscription([{'inBlock': BLOCK_HASH}])

        receipt = await self.create_tracker(subscription, wait_for_inclusion=True, fetch_events=False).track()

        self.assertEqual(receipt.block_hash, BLOCK_HASH)
        self.assertIsNone(receipt.triggered_events)
        self.substrate.retrieve_extrinsic_index.assert_not_awaited()
        self.assertRaises(ValueError, receipt.process_events)

    async def test_failed_extrinsic(self):
        self.substrate.get_events.side_effect = lambda block_hash: decode_events(
            transfer_block_events(self.registry, failed=True), self.registry
        )
        subscription = self.create_subscription([{'inBlock': BLOCK_HASH}])

        receipt = await self.create_tracker(subscription, wait_for_inclusion=True).track()

        self.assertTrue(receipt.is_included)
        self.assertFalse(receipt.is_success)
        self.assertEqual(receipt.error_message, {
            'type': 'Module', 'name': 'InsufficientBalance', 'docs': ['Balance too low to send value.']
        })

    async def test_request_timeout_is_not_finality_timeout(self):
        self.substrate.retrieve_extrinsic_index = AsyncMock(side_effect=SubstrateRequestException(
            'No response to RPC request #3 "chain_getBlock" within 5 seconds'
        ))
        subscription = self.create_subscription([{'inBlock': BLOCK_HASH}])
        tracker = self.create_tracker(subscription, wait_for_inclusion=True, timeout=10)

        with self.assertRaises(SubstrateRequestException):
            await tracker.track()

        self.assertEqual(tracker.status.kind, TransactionStatus.IN_BLOCK)

    async def test_unsubscribe_failure_is_logged(self):
        self.rpc.remove_subscription = AsyncMock(side_effect=SubstrateRequestException('Connection closed'))
        subscription = self.create_subscription([{'inBlock': BLOCK_HASH}])

        with self.assertLogs('substratetx.tracker', level='WARNING'):
            receipt = await self.create_tracker(subscription, wait_for_inclusion=True).track()

        self.assertEqual(receipt.status.kind, TransactionStatus.IN_BLOCK)

    async def test_cancel_stops_tracking(self):
        subscription = self.create_subscription(['ready'])
        task = asyncio.ensure_future(self.create_tracker(subscription, wait_for_finalization=True).track())

        await asyncio.sleep(0.05)
        task.cancel()

        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertEqual(self.rpc.unsubscribed, ['sub-1'])


if __name__ == '__main__':
    unittest.main()
