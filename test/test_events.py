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

from substratetx.exceptions import UnknownEvent, RemainingBytes, InsufficientBytes
from substratetx.scale.events import decode_events
from test.fixtures import create_registry, encode_events, transfer_block_events, dispatch_info, ALICE_ADDRESS, \
    BOB_ADDRESS


class DecodeEventsTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.registry = create_registry()
        cls.events = decode_events(transfer_block_events(cls.registry), cls.registry)

    def test_event_count_and_order(self):
        self.assertEqual(
            [(event.module_id, event.event_id) for event in self.events],
            [('System', 'ExtrinsicSuccess'), ('Balances', 'Deposit'), ('Balances', 'Transfer'),
             ('System', 'ExtrinsicSuccess'), ('Balances', 'Deposit')]
        )

    def test_phase(self):
        self.assertEqual(self.events[0].phase, {'ApplyExtrinsic': 0})
        self.assertEqual(self.events[0].extrinsic_idx, 0)
        self.assertEqual(self.events[2].extrinsic_idx, 1)
        self.assertEqual(self.events[4].phase, 'Finalization')
        self.assertIsNone(self.events[4].extrinsic_idx)

    def test_attributes(self):
        self.assertEqual(self.events[2].attributes, {'from': ALICE_ADDRESS, 'to': BOB_ADDRESS, 'amount': 1000})
        self.assertEqual(self.events[3].attributes, {'dispatch_info': dispatch_info()})

    def test_event_value(self):
        self.assertEqual(self.events[1].value, {
            'phase': {'ApplyExtrinsic': 1},
            'extrinsic_idx': 1,
            'event_index': '0x0507',
            'module_id': 'Balances',
            'event_id': 'Deposit',
            'attributes': {'who': BOB_ADDRESS, 'amount': 125},
            'topics': []
        })

    def test_failed_extrinsic_event(self):
        events = decode_events(transfer_block_events(self.registry, failed=True), self.registry)
        failed = [event for event in events if event.event_id == 'ExtrinsicFailed'][0]

        self.assertEqual(failed.attributes['dispatch_error'], {'Module': {'index': 5, 'error': '0x02000000'}})

    def test_no_events(self):
        self.assertEqual(decode_events('0x00', self.registry), [])

    def test_topics(self):
        topic = '0x' + '11' * 32
        data = self.registry.encode([{
            'phase': 'Initialization',
            'event': {'System': {'Remarked': {'sender': ALICE_ADDRESS, 'hash': topic}}},
            'topics': [topic]
        }], 38)

        events = decode_events(data, self.registry)

        self.assertEqual(events[0].topics, [topic])
        self.assertEqual(events[0].value['topics'], [topic])
        self.assertEqual(events[0].attributes, {'sender': ALICE_ADDRESS, 'hash': topic})

    def test_unknown_event_index(self):
        # One record: phase Finalization, event 0x0509
        self.assertRaises(UnknownEvent, decode_events, '0x04010509', self.registry)

    def test_remaining_bytes(self):
        data = encode_events(self.registry, [('Finalization', 'Balances', 'Deposit', {'who': BOB_ADDRESS, 'amount': 1})])
        self.assertRaises(RemainingBytes, decode_events, data + '00', self.registry)

    def test_truncated(self):
        data = encode_events(self.registry, [('Finalization', 'Balances', 'Deposit', {'who': BOB_ADDRESS, 'amount': 1})])
        self.assertRaises(InsufficientBytes, decode_events, data[:-10], self.registry)


if __name__ == '__main__':
    unittest.main()
