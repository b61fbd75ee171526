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
""" Runtime metadata and node responses used by the test cases, no live node required
"""

import copy

from substratetx.rpc import RpcInterface, Subscription
from substratetx.exceptions import SubstrateRequestException
from substratetx.scale.metadata import encode_metadata, resolve

ALICE_ADDRESS = '5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY'
ALICE_PUBLIC_KEY = bytes.fromhex('d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d')
BOB_ADDRESS = '5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty'
BOB_PUBLIC_KEY = bytes.fromhex('8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48')

GENESIS_HASH = '0x91b171bb158e2d3848fa23a9f1c25182fb8e20313b2c1eb49219da7a70ce90c3'
BLOCK_HASH = '0xe1781813275653a970b4260298b3858b36d38e072256dad674f7c786a0cae236'
OTHER_BLOCK_HASH = '0x4b2d1e5b7a9f0c3e8d6a1b4c7f2e9d0a3b6c5e8f1a2d4b7c0e3f6a9d2c5b8e1f'

SPEC_VERSION = 9430
TRANSACTION_VERSION = 24

# Type ids of the portable registry below
TYPE_ACCOUNT_ID = 2
TYPE_BALANCE = 3
TYPE_COMPACT_BALANCE = 4
TYPE_U32 = 5
TYPE_MULTI_ADDRESS = 7
TYPE_BYTES = 9
TYPE_MULTI_SIGNATURE = 13
TYPE_RUNTIME_CALL = 16
TYPE_ERA = 17
TYPE_DISPATCH_INFO = 25
TYPE_DISPATCH_ERROR = 30
TYPE_RUNTIME_EVENT = 34
TYPE_EVENT_RECORDS = 38
TYPE_ACCOUNT_INFO = 43
TYPE_OPTION_U32 = 46


def field(type_id: int, name: str = None, type_name: str = None) -> dict:
    return {'name': name, 'type': type_id, 'typeName': type_name, 'docs': []}


def variant(name: str, index: int, fields: list = None, docs: list = None) -> dict:
    return {'name': name, 'fields': fields or [], 'index': index, 'docs': docs or []}


def portable_type(type_id: int, definition: dict, path: list = None, params: list = None) -> dict:
    return {'id': type_id, 'type': {'path': path or [], 'params': params or [], 'def': definition, 'docs': []}}


def composite(*fields) -> dict:
    return {'composite': {'fields': list(fields)}}


def variants(*items) -> dict:
    return {'variant': {'variants': list(items)}}


def create_types() -> list:
    return [
        portable_type(0, {'primitive': 'u8'}),
        portable_type(1, {'array': {'len': 32, 'type': 0}}),
        portable_type(2, composite(field(1, type_name='[u8; 32]')), path=['sp_core', 'crypto', 'AccountId32']),
        portable_type(3, {'primitive': 'u128'}),
        portable_type(4, {'compact': {'type': 3}}),
        portable_type(5, {'primitive': 'u32'}),
        portable_type(6, {'compact': {'type': 5}}),
        portable_type(7, variants(
            variant('Id', 0, [field(2, type_name='AccountId')]),
            variant('Index', 1, [field(6, type_name='AccountIndex')]),
            variant('Raw', 2, [field(9, type_name='Vec<u8>')]),
            variant('Address32', 3, [field(1, type_name='[u8; 32]')]),
            variant('Address20', 4, [field(10, type_name='[u8; 20]')]),
        ), path=['sp_runtime', 'multiaddress', 'MultiAddress'],
            params=[{'name': 'AccountId', 'type': 2}, {'name': 'AccountIndex', 'type': 18}]),
        portable_type(8, {'primitive': 'u64'}),
        portable_type(9, {'sequence': {'type': 0}}),
        portable_type(10, {'array': {'len': 20, 'type': 0}}),
        portable_type(11, {'array': {'len': 64, 'type': 0}}),
        portable_type(12, {'array': {'len': 65, 'type': 0}}),
        portable_type(13, variants(
            variant('Ed25519', 0, [field(11, type_name='ed25519::Signature')]),
            variant('Sr25519', 1, [field(11, type_name='sr25519::Signature')]),
            variant('Ecdsa', 2, [field(12, type_name='ecdsa::Signature')]),
        ), path=['sp_runtime', 'MultiSignature']),
        portable_type(14, variants(
            variant('transfer', 0, [
                field(2, 'dest', 'AccountIdLookupOf<T>'), field(4, 'value', 'T::Balance')
            ], docs=['Transfer some liquid free balance to another account.']),
            variant('transfer_keep_alive', 3, [
                field(7, 'dest', 'AccountIdLookupOf<T>'), field(4, 'value', 'T::Balance')
            ]),
        ), path=['pallet_balances', 'pallet', 'Call'], params=[{'name': 'T', 'type': None}]),
        portable_type(15, variants(
            variant('remark', 0, [field(9, 'remark', 'Vec<u8>')], docs=['Make some on-chain remark.']),
            variant('remark_with_event', 7, [field(9, 'remark', 'Vec<u8>')]),
        ), path=['frame_system', 'pallet', 'Call'], params=[{'name': 'T', 'type': None}]),
        portable_type(16, variants(
            variant('System', 0, [field(15, type_name='CallableCallFor<System, Runtime>')]),
            variant('Balances', 5, [field(14, type_name='CallableCallFor<Balances, Runtime>')]),
        ), path=['node_runtime', 'RuntimeCall']),
        portable_type(17, variants(
            variant('Immortal', 0),
            variant('Mortal1', 1, [field(0)]),
        ), path=['sp_runtime', 'generic', 'era', 'Era']),
        portable_type(18, {'tuple': []}),
        portable_type(19, composite(field(6, type_name='T::Index')),
                      path=['frame_system', 'extensions', 'check_nonce', 'CheckNonce']),
        portable_type(20, composite(field(4, type_name='BalanceOf<T>')),
                      path=['pallet_transaction_payment', 'ChargeTransactionPayment']),
        portable_type(21, composite(field(1, type_name='[u8; 32]')), path=['primitive_types', 'H256']),
        portable_type(22, composite(field(17, type_name='Era')),
                      path=['frame_system', 'extensions', 'check_mortality', 'CheckMortality']),
        portable_type(23, variants(
            variant('ExtrinsicSuccess', 0, [field(25, 'dispatch_info', 'DispatchInfo')]),
            variant('ExtrinsicFailed', 1, [
                field(30, 'dispatch_error', 'DispatchError'), field(25, 'dispatch_info', 'DispatchInfo')
            ]),
            variant('Remarked', 7, [field(2, 'sender', 'T::AccountId'), field(21, 'hash', 'T::Hash')]),
        ), path=['frame_system', 'pallet', 'Event']),
        portable_type(24, composite(field(31, 'ref_time', 'u64'), field(31, 'proof_size', 'u64')),
                      path=['sp_weights', 'weight_v2', 'Weight']),
        portable_type(25, composite(
            field(24, 'weight', 'Weight'), field(26, 'class', 'DispatchClass'), field(27, 'pays_fee', 'Pays')
        ), path=['frame_support', 'dispatch', 'DispatchInfo']),
        portable_type(26, variants(
            variant('Normal', 0), variant('Operational', 1), variant('Mandatory', 2)
        ), path=['frame_support', 'dispatch', 'DispatchClass']),
        portable_type(27, variants(variant('Yes', 0), variant('No', 1)), path=['frame_support', 'dispatch', 'Pays']),
        portable_type(28, composite(field(0, 'index', 'u8'), field(32, 'error', '[u8; 4]')),
                      path=['sp_runtime', 'ModuleError']),
        portable_type(29, variants(
            variant('FundsUnavailable', 0), variant('OnlyProvider', 1)
        ), path=['sp_runtime', 'TokenError']),
        portable_type(30, variants(
            variant('Other', 0),
            variant('CannotLookup', 1),
            variant('BadOrigin', 2),
            variant('Module', 3, [field(28, type_name='ModuleError')]),
            variant('ConsumerRemaining', 4),
            variant('NoProviders', 5),
            variant('TooManyConsumers', 6),
            variant('Token', 7, [field(29, type_name='TokenError')]),
        ), path=['sp_runtime', 'DispatchError']),
        portable_type(31, {'compact': {'type': 8}}),
        portable_type(32, {'array': {'len': 4, 'type': 0}}),
        portable_type(33, variants(
            variant('Endowed', 0, [field(2, 'account', 'T::AccountId'), field(3, 'free_balance', 'T::Balance')]),
            variant('Transfer', 2, [
                field(2, 'from', 'T::AccountId'), field(2, 'to', 'T::AccountId'), field(3, 'amount', 'T::Balance')
            ]),
            variant('Deposit', 7, [field(2, 'who', 'T::AccountId'), field(3, 'amount', 'T::Balance')]),
        ), path=['pallet_balances', 'pallet', 'Event']),
        portable_type(34, variants(
            variant('System', 0, [field(23, type_name='frame_system::Event<Runtime>')]),
            variant('Balances', 5, [field(33, type_name='pallet_balances::Event<Runtime>')]),
        ), path=['node_runtime', 'RuntimeEvent']),
        portable_type(35, variants(
            variant('ApplyExtrinsic', 0, [field(5, type_name='u32')]),
            variant('Finalization', 1),
            variant('Initialization', 2),
        ), path=['frame_system', 'Phase']),
        portable_type(36, composite(
            field(35, 'phase', 'Phase'), field(34, 'event', 'E'), field(37, 'topics', 'Vec<T>')
        ), path=['frame_system', 'EventRecord'], params=[{'name': 'E', 'type': 34}, {'name': 'T', 'type': 21}]),
        portable_type(37, {'sequence': {'type': 21}}),
        portable_type(38, {'sequence': {'type': 36}}),
        portable_type(39, variants(
            variant('VestingBalance', 0, docs=['Vesting balance too high to send value.']),
            variant('LiquidityRestrictions', 1, docs=['Account liquidity restrictions prevent withdrawal.']),
            variant('InsufficientBalance', 2, docs=['Balance too low to send value.']),
        ), path=['pallet_balances', 'pallet', 'Error']),
        portable_type(40, composite(field(9)), path=[
            'sp_runtime', 'generic', 'unchecked_extrinsic', 'UncheckedExtrinsic'
        ], params=[
            {'name': 'Address', 'type': 7}, {'name': 'Call', 'type': 16}, {'name': 'Signature', 'type': 13},
            {'name': 'Extra', 'type': 41}
        ]),
        portable_type(41, {'tuple': [18, 18, 18, 22, 19, 18, 20]}),
        portable_type(42, variants(
            variant('Balances', 5, [field(39, type_name='pallet_balances::Error<Runtime>')]),
        ), path=['node_runtime', 'RuntimeError']),
        portable_type(43, composite(
            field(5, 'nonce', 'Index'), field(5, 'consumers', 'RefCount'), field(5, 'providers', 'RefCount'),
            field(5, 'sufficients', 'RefCount'), field(44, 'data', 'AccountData')
        ), path=['frame_system', 'AccountInfo']),
        portable_type(44, composite(
            field(3, 'free', 'Balance'), field(3, 'reserved', 'Balance'), field(3, 'frozen', 'Balance'),
            field(45, 'flags', 'ExtraFlags')
        ), path=['pallet_balances', 'types', 'AccountData']),
        portable_type(45, composite(field(3, type_name='u128')), path=['pallet_balances', 'types', 'ExtraFlags']),
        portable_type(46, variants(
            variant('None', 0),
            variant('Some', 1, [field(5)]),
        ), path=['Option'], params=[{'name': 'T', 'type': 5}]),
        portable_type(47, {'primitive': 'u16'}),
        portable_type(48, composite(), path=['node_runtime', 'Runtime']),
    ]


SIGNED_EXTENSIONS = [
    {'identifier': 'CheckSpecVersion', 'ty': 18, 'additional_signed': 5},
    {'identifier': 'CheckTxVersion', 'ty': 18, 'additional_signed': 5},
    {'identifier': 'CheckGenesis', 'ty': 18, 'additional_signed': 21},
    {'identifier': 'CheckMortality', 'ty': 22, 'additional_signed': 21},
    {'identifier': 'CheckNonce', 'ty': 19, 'additional_signed': 18},
    {'identifier': 'CheckWeight', 'ty': 18, 'additional_signed': 18},
    {'identifier': 'ChargeTransactionPayment', 'ty': 20, 'additional_signed': 18},
]


def create_pallets() -> list:
    return [
        {
            'name': 'System',
            'storage': {
                'prefix': 'System',
                'entries': [
                    {
                        'name': 'Account',
                        'modifier': 'Default',
                        'type': {'Map': {'hashers': ['Blake2_128Concat'], 'key': 2, 'value': 43}},
                        'default': bytes(80),
                        'documentation': [' The full account information for a particular account ID.']
                    },
                    {
                        'name': 'Number',
                        'modifier': 'Default',
                        'type': {'Plain': 5},
                        'default': bytes(4),
                        'documentation': [' The current block number being processed.']
                    },
                    {
                        'name': 'Events',
                        'modifier': 'Default',
                        'type': {'Plain': 38},
                        'default': b'\x00',
                        'documentation': [' Events deposited for the current block.']
                    },
                    {
                        'name': 'ExtrinsicCount',
                        'modifier': 'Optional',
                        'type': {'Plain': 5},
                        'default': b'\x00',
                        'documentation': []
                    },
                ]
            },
            'calls': {'ty': 15},
            'event': {'ty': 23},
            'constants': [
                {'name': 'SS58Prefix', 'type': 47, 'value': (42).to_bytes(2, 'little'), 'documentation': []}
            ],
            'error': None,
            'index': 0
        },
        {
            'name': 'Balances',
            'storage': {
                'prefix': 'Balances',
                'entries': [
                    {
                        'name': 'TotalIssuance',
                        'modifier': 'Default',
                        'type': {'Plain': 3},
                        'default': bytes(16),
                        'documentation': [' The total units issued in the system.']
                    },
                ]
            },
            'calls': {'ty': 14},
            'event': {'ty': 33},
            'constants': [
                {'name': 'ExistentialDeposit', 'type': 3, 'value': (500).to_bytes(16, 'little'), 'documentation': []}
            ],
            'error': {'ty': 39},
            'index': 5
        }
    ]


def create_metadata_v14() -> dict:
    return {
        'types': {'types': create_types()},
        'pallets': create_pallets(),
        'extrinsic': {'ty': 40, 'version': 4, 'signed_extensions': copy.deepcopy(SIGNED_EXTENSIONS)},
        'runtime_type': 48
    }


def create_metadata_v15() -> dict:
    pallets = create_pallets()
    for pallet in pallets:
        pallet['docs'] = []

    return {
        'types': {'types': create_types()},
        'pallets': pallets,
        'extrinsic': {
            'version': 4,
            'address_type': 7,
            'call_type': 16,
            'signature_type': 13,
            'extra_type': 41,
            'signed_extensions': copy.deepcopy(SIGNED_EXTENSIONS)
        },
        'runtime_type': 48,
        'apis': [
            {
                'name': 'AccountNonceApi',
                'methods': [
                    {'name': 'account_nonce', 'inputs': [{'name': 'account', 'type': 2}], 'output': 5, 'docs': []}
                ],
                'docs': []
            }
        ],
        'outer_enums': {'call_type': 16, 'event_type': 34, 'error_type': 42},
        'custom': []
    }


METADATA_V14 = encode_metadata(14, create_metadata_v14())
METADATA_V15 = encode_metadata(15, create_metadata_v15())


def create_registry(version: int = 14):
    return resolve(METADATA_V14 if version == 14 else METADATA_V15)


def dispatch_info(ref_time: int = 161994000, class_name: str = 'Normal') -> dict:
    return {'weight': {'ref_time': ref_time, 'proof_size': 0}, 'class': class_name, 'pays_fee': 'Yes'}


def encode_events(registry, records: list) -> str:
    """
    Encodes `(phase, module, event, attributes)` tuples as the value of the System.Events storage item
    """
    value = [
        {
            'phase': phase,
            'event': {module: {event: attributes} if attributes is not None else event},
            'topics': []
        }
        for phase, module, event, attributes in records
    ]
    return f'0x{registry.encode(value, TYPE_EVENT_RECORDS).hex()}'


def transfer_block_events(registry, extrinsic_idx: int = 1, failed: bool = False) -> str:
    """
    Events of a block with a timestamp-like extrinsic at index 0 and a balance transfer at `extrinsic_idx`
    """
    if failed:
        outcome = ('ExtrinsicFailed', {
            'dispatch_error': {'Module': {'index': 5, 'error': '0x02000000'}},
            'dispatch_info': dispatch_info()
        })
    else:
        outcome = ('ExtrinsicSuccess', {'dispatch_info': dispatch_info()})

    records = [
        ({'ApplyExtrinsic': 0}, 'System', 'ExtrinsicSuccess', {'dispatch_info': dispatch_info(260558000, 'Mandatory')}),
        ({'ApplyExtrinsic': extrinsic_idx}, 'Balances', 'Deposit', {'who': BOB_ADDRESS, 'amount': 125}),
    ]

    if not failed:
        records.append(({'ApplyExtrinsic': extrinsic_idx}, 'Balances', 'Transfer', {
            'from': ALICE_ADDRESS, 'to': BOB_ADDRESS, 'amount': 1000
        }))

    records += [
        ({'ApplyExtrinsic': extrinsic_idx}, 'System', outcome[0], outcome[1]),
        ('Finalization', 'Balances', 'Deposit', {'who': ALICE_ADDRESS, 'amount': 1}),
    ]

    return encode_events(registry, records)


class MockRpc(RpcInterface):
    """
    In-memory node: `responses` maps RPC methods to a result or to a function of the params returning the result.
    Subscriptions replay `status_stream` and end afterwards when `end_stream` is set.
    """

    def __init__(self, responses: dict = None, status_stream: list = None, end_stream: bool = True,
                 submit_errors: list = None):
        self.responses = dict(responses or {})
        self.status_stream = list(status_stream or [])
        self.end_stream = end_stream
        self.submit_errors = list(submit_errors or [])
        self.requests = []
        self.subscriptions = []
        self.unsubscribed = []
        self.closed = False

    async def rpc_request(self, method: str, params: list) -> any:
        self.requests.append((method, params))

        if method in ('author_submitExtrinsic',) and self.submit_errors:
            raise SubstrateRequestException(self.submit_errors.pop(0))

        if method not in self.responses:
            raise SubstrateRequestException({'code': -32601, 'message': 'Method not found'})

        response = self.responses[method]
        if callable(response):
            return response(params)
        return response

    async def subscribe(self, method: str, params: list, unsubscribe_method: str = None) -> Subscription:
        self.requests.append((method, params))

        if self.submit_errors:
            raise SubstrateRequestException(self.submit_errors.pop(0))

        subscription = Subscription(self, f'sub-{len(self.subscriptions) + 1}', unsubscribe_method)
        for item in self.status_stream:
            subscription.push(item)
        if self.end_stream:
            subscription.end()

        self.subscriptions.append(subscription)
        return subscription

    async def remove_subscription(self, subscription: Subscription):
        self.unsubscribed.append(subscription.subscription_id)

    async def close(self):
        self.closed = True

    def count_requests(self, method: str) -> int:
        return len([request for request in self.requests if request[0] == method])


def create_node_responses(metadata: bytes = METADATA_V14, blocks: dict = None, storage: dict = None,
                          nonce: int = 0, block_number: int = 1000) -> dict:
    """
    Responses of a node at block `block_number`; `blocks` maps block hashes to `chain_getBlock` results and
    `storage` maps storage keys to values
    """
    blocks = blocks if blocks is not None else {}
    storage = storage if storage is not None else {}

    def get_block_hash(params):
        if params and params[0] == 0:
            return GENESIS_HASH
        return BLOCK_HASH

    def get_block(params):
        return blocks.get(params[0] if params else BLOCK_HASH)

    def get_storage(params):
        return storage.get(params[0])

    return {
        'state_getRuntimeVersion': {'specVersion': SPEC_VERSION, 'transactionVersion': TRANSACTION_VERSION},
        'state_getMetadata': f'0x{metadata.hex()}',
        'chain_getBlockHash': get_block_hash,
        'chain_getHead': BLOCK_HASH,
        'chain_getFinalizedHead': BLOCK_HASH,
        'chain_getHeader': {'number': hex(block_number), 'parentHash': GENESIS_HASH},
        'chain_getBlock': get_block,
        'state_getStorage': get_storage,
        'system_accountNextIndex': nonce,
        'author_unwatchExtrinsic': True,
    }


def create_block(extrinsics: list, number: int = 1000) -> dict:
    return {
        'block': {
            'header': {'number': hex(number), 'parentHash': GENESIS_HASH},
            'extrinsics': extrinsics
        },
        'justifications': None
    }
