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
import logging
from typing import Optional, Union

from .builder import ExtrinsicBuilder, ChainInfo, SignedExtrinsic
from .constants import DEFAULT_EXTRINSIC_VERSION
from .exceptions import SubstrateRequestException, SubmissionError, BlockNotFound, ExtrinsicNotFound, \
    ConfigurationError, TypeMismatch
from .keypair import Keypair
from .receipt import ExtrinsicReceipt
from .registry import Registry
from .rpc import RpcInterface, create_rpc
from .scale.events import decode_events
from .scale.extrinsic import Call, Era, decode_extrinsic
from .scale.metadata import resolve
from .storage import StorageKey
from .tracker import SubmissionTracker, TransactionStatus, RetryPolicy
from .utils.hasher import blake2_256

__all__ = ['SubstrateClient']

logger = logging.getLogger(__name__)


class SubstrateClient:

    def __init__(self, url: str = None, rpc: RpcInterface = None, ss58_format: int = None, ws_options: dict = None,
                 auto_reconnect: bool = True, request_timeout: float = None, retry_policy: RetryPolicy = None):
        """
        A client to compose, sign, submit and track extrinsics on a Substrate node.

        Parameters
        ----------
        url: the URL to the substrate node, either in format https://127.0.0.1:9933 or wss://127.0.0.1:9944
        rpc: an existing RpcInterface to use instead of connecting to `url`
        ss58_format: The address type which account IDs will be SS58-encoded to Substrate addresses. When omitted the
            SS58Prefix constant of the runtime is used
        ws_options: dict of options to pass to `websockets.connect()`
        auto_reconnect: reconnect the websocket when a request is sent on a closed connection
        request_timeout: seconds to wait for an RPC response
        retry_policy: RetryPolicy for submissions rejected because of a nonce conflict
        """

        if (not url and not rpc) or (url and rpc):
            raise ValueError("Either 'url' or 'rpc' must be provided")

        self.url = url
        self.rpc = rpc or create_rpc(
            url, ws_options=ws_options, auto_reconnect=auto_reconnect, request_timeout=request_timeout
        )

        self.__ss58_format = ss58_format

        self.registry: Optional[Registry] = None
        self.runtime_version = None
        self.transaction_version = None

        self.__genesis_hash = None
        self.__registry_cache = {}

        self.config = {
            'ss58_format': ss58_format,
            'auto_reconnect': auto_reconnect,
            'request_timeout': request_timeout,
            'retry_policy': retry_policy or RetryPolicy()
        }

    async def close(self):
        """
        Closes the connection to the node
        """
        await self.rpc.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @staticmethod
    def debug_message(message: str):
        """
        Submits a message to the debug logger

        Parameters
        ----------
        message: str Debug message
        """
        logger.debug(message)

    async def rpc_request(self, method: str, params: list) -> any:
        """
        Performs a JSON-RPC request on the connected node, returns the `result` of the response
        """
        return await self.rpc.rpc_request(method, params)

    @property
    def ss58_format(self) -> Optional[int]:
        if self.__ss58_format is None and self.registry:
            return self.registry.ss58_format
        return self.__ss58_format

    # Chain state

    async def get_chain_head(self) -> str:
        return await self.rpc_request("chain_getHead", [])

    async def get_chain_finalised_head(self) -> str:
        return await self.rpc_request("chain_getFinalizedHead", [])

    async def get_block_hash(self, block_id: int = None) -> Optional[str]:
        """
        A pass-though to existing JSONRPC method `chain_getBlockHash`
        """
        return await self.rpc_request("chain_getBlockHash", [block_id])

    async def get_genesis_hash(self) -> str:
        if self.__genesis_hash is None:
            self.__genesis_hash = await self.get_block_hash(0)

            if self.__genesis_hash is None:
                raise BlockNotFound('Genesis block not found')

        return self.__genesis_hash

    async def get_block_header(self, block_hash: str = None) -> dict:
        header = await self.rpc_request("chain_getHeader", [block_hash] if block_hash else [])

        if header is None:
            raise BlockNotFound(f'Block not found for "{block_hash}"')

        return header

    async def get_block_number(self, block_hash: str) -> int:
        """
        A convenience method to get the block number for given block_hash

        Parameters
        ----------
        block_hash

        Returns
        -------
        int
        """
        header = await self.get_block_header(block_hash)
        return int(header['number'], 16)

    async def get_block(self, block_hash: str = None) -> dict:
        """
        Retrieves a block with `chain_getBlock`, extrinsics are returned encoded

        Returns
        -------
        dict with `header` and `extrinsics`
        """
        response = await self.rpc_request("chain_getBlock", [block_hash] if block_hash else [])

        if response is None:
            raise BlockNotFound(f'Block not found for "{block_hash}"')

        return response['block']

    async def get_extrinsics(self, block_hash: str = None) -> list:
        """
        Decoded extrinsics of given block
        """
        block = await self.get_block(block_hash)
        registry = await self.init_runtime(block_hash=block_hash)

        return [decode_extrinsic(extrinsic, registry) for extrinsic in block['extrinsics']]

    async def retrieve_extrinsic_index(self, block_hash: str, extrinsic_hash: str) -> tuple:
        """
        Position of an extrinsic in a block, found by comparing extrinsic hashes

        Parameters
        ----------
        block_hash
        extrinsic_hash

        Returns
        -------
        tuple (extrinsic index, block number)
        """
        block = await self.get_block(block_hash)

        for idx, extrinsic in enumerate(block['extrinsics']):
            if f'0x{blake2_256(bytes.fromhex(extrinsic[2:])).hex()}' == extrinsic_hash:
                return idx, int(block['header']['number'], 16)

        raise ExtrinsicNotFound(f'Extrinsic {extrinsic_hash} not found in block {block_hash}')

    async def get_account_nonce(self, account_address: str) -> int:
        """
        Returns current nonce for given account address, including transactions in the transaction pool

        Parameters
        ----------
        account_address: SS58 formatted address

        Returns
        -------
        int
        """
        return await self.rpc_request("system_accountNextIndex", [account_address]) or 0

    # Runtime

    async def get_block_runtime_version(self, block_hash: str = None) -> dict:
        runtime_info = await self.rpc_request("state_getRuntimeVersion", [block_hash] if block_hash else [])

        if runtime_info is None:
            raise SubstrateRequestException(f"No runtime information for block '{block_hash}'")

        return runtime_info

    async def init_runtime(self, block_hash: str = None) -> Registry:
        """
        Retrieves the runtime version at given block and the Registry for that runtime. Because resolving metadata
        is relatively heavy, registries are cached per spec version. Without block_hash the runtime of the chain tip
        becomes the active runtime of the client, used to compose and sign extrinsics.

        Parameters
        ----------
        block_hash

        Returns
        -------
        Registry
        """
        runtime_info = await self.get_block_runtime_version(block_hash)
        spec_version = runtime_info.get("specVersion")

        if spec_version in self.__registry_cache:
            self.debug_message('Retrieved metadata for {} from memory'.format(spec_version))
            registry = self.__registry_cache[spec_version]
        else:
            raw_metadata = await self.rpc_request("state_getMetadata", [block_hash] if block_hash else [])
            registry = resolve(raw_metadata, ss58_format=self.__ss58_format)
            self.debug_message('Retrieved metadata for {} from Substrate node'.format(spec_version))

            self.__registry_cache[spec_version] = registry

        if block_hash is None:
            self.registry = registry
            self.runtime_version = spec_version
            self.transaction_version = runtime_info.get("transactionVersion")

        return registry

    async def get_chain_info(self) -> ChainInfo:
        if self.registry is None:
            await self.init_runtime()

        return ChainInfo(
            spec_version=self.runtime_version,
            transaction_version=self.transaction_version,
            genesis_hash=await self.get_genesis_hash()
        )

    async def get_constant(self, module_name: str, constant_name: str, block_hash: str = None) -> any:
        """
        Returns the decoded value of a runtime constant

        Parameters
        ----------
        module_name: Name of the module e.g. Balances
        constant_name: Name of the constant e.g. ExistentialDeposit
        block_hash: Use runtime at given block

        Returns
        -------
        Decoded value
        """
        registry = await self.init_runtime(block_hash=block_hash)
        return registry.get_constant(module_name, constant_name).value

    # Storage

    async def create_storage_key(self, pallet: str, storage_function: str, params: Optional[list] = None,
                                 block_hash: str = None) -> StorageKey:
        registry = await self.init_runtime(block_hash=block_hash)
        return StorageKey.create(registry, pallet, storage_function, params)

    async def get_storage_by_key(self, block_hash: Optional[str], storage_key: str) -> Optional[str]:
        """
        A pass-though to existing JSONRPC method `state_getStorage`
        """
        return await self.rpc_request("state_getStorage", [storage_key, block_hash])

    async def query(self, module: str, storage_function: str, params: list = None, block_hash: str = None) -> any:
        """
        Retrieves the storage entry for given module, function and optional parameters at given block hash

        Parameters
        ----------
        module: The module name in the metadata, e.g. System or Balances
        storage_function: The storage function name, e.g. Account
        params: list of params, in the decoded format of the key types
        block_hash: Optional block hash, when omitted the chain tip will be used

        Returns
        -------
        Decoded value, None for a missing `Optional` entry
        """
        params = params or []

        storage_key = await self.create_storage_key(module, storage_function, params, block_hash=block_hash)

        if storage_key.is_partial:
            raise ValueError(f'Storage function requires all key parameters, {len(params)} given')

        raw = await self.get_storage_by_key(block_hash, storage_key.to_hex())
        return storage_key.decode_value(raw)

    async def get_events(self, block_hash: str = None) -> list:
        """
        Convenience method to get events for a certain block (storage call for module 'System' and function 'Events')

        Parameters
        ----------
        block_hash

        Returns
        -------
        list of EventRecord
        """
        if not block_hash:
            block_hash = await self.get_chain_head()

        registry = await self.init_runtime(block_hash=block_hash)
        storage_key = StorageKey.create(registry, 'System', 'Events')

        raw = await self.get_storage_by_key(block_hash, storage_key.to_hex())

        if raw is None:
            return []

        return decode_events(raw, registry)

    # Extrinsics

    async def get_builder(self) -> ExtrinsicBuilder:
        return ExtrinsicBuilder(await self.init_runtime())

    async def compose_call(self, call_module: str, call_function: str, call_params: Union[dict, list] = None) -> Call:
        """
        Composes a call payload which can be used in an extrinsic.

        Parameters
        ----------
        call_module: Name of the runtime module e.g. Balances
        call_function: Name of the call function e.g. transfer
        call_params: This is a dict containing the params of the call. e.g.
            `{'dest': 'EaG2CRhJWPb7qmdcJvy3LiWdh26Jreu9Dx6R1rXxPmYXoDk', 'value': 1000000000000}`

        Returns
        -------
        Call
        """
        builder = await self.get_builder()
        return builder.compose_call(call_module, call_function, call_params)

    async def create_signed_extrinsic(self, call: Call, keypair: Keypair, era: dict = None, nonce: int = None,
                                      tip: int = 0, tip_asset_id: any = None, signature: Union[bytes, str] = None,
                                      extension_values: dict = None) -> SignedExtrinsic:
        """
        Creates a extrinsic signed by given account details

        Parameters
        ----------
        call: Call to create extrinsic for
        keypair: Keypair used to sign the extrinsic
        era: Specify mortality in blocks in follow format: {'period': [amount_blocks]} If omitted the extrinsic is
            immortal
        nonce: nonce to include in extrinsics, if omitted the current nonce is retrieved on-chain
        tip: The tip for the block author to gain priority during network congestion
        tip_asset_id: Optional asset ID with which to pay the tip
        signature: Optionally provide signature if externally signed
        extension_values: values for signed extensions unknown to the builder

        Returns
        -------
        SignedExtrinsic
        """
        if not isinstance(call, Call):
            raise TypeError("'call' must be of type Call")

        builder = await self.get_builder()

        if builder.registry.extrinsic_version != DEFAULT_EXTRINSIC_VERSION:
            raise ConfigurationError(f'Extrinsic version {builder.registry.extrinsic_version} not supported')

        # Retrieve nonce
        if nonce is None:
            nonce = await self.get_account_nonce(keypair.ss58_address)

        if type(era) is dict and 'period' in era and 'current' not in era and 'phase' not in era:
            # Retrieve current block id
            era = dict(era, current=await self.get_block_number(await self.get_chain_finalised_head()))

        era_current = era.get('current') if type(era) is dict else None

        try:
            era = Era.from_value(era)
        except ValueError as e:
            raise TypeMismatch('era', f'Era ({e})', era)

        block_hash = None

        if not era.is_immortal():
            if era_current is None:
                era_current = await self.get_block_number(await self.get_chain_finalised_head())

            # Checkpoint is the first block of the era
            block_hash = await self.get_block_hash(era.birth(era_current))

        payload = builder.build_unsigned_payload(
            call=call, nonce=nonce, era=era, tip=tip, chain_info=await self.get_chain_info(), block_hash=block_hash,
            asset_id=tip_asset_id, extension_values=extension_values
        )

        return builder.sign(payload, keypair, signature=signature)

    async def create_unsigned_extrinsic(self, call: Call) -> SignedExtrinsic:
        """
        Create unsigned extrinsic for given `Call`

        Parameters
        ----------
        call: Call the extrinsic should contain

        Returns
        -------
        SignedExtrinsic
        """
        builder = await self.get_builder()
        return builder.create_unsigned_extrinsic(call)

    async def submit_extrinsic(self, extrinsic: SignedExtrinsic, wait_for_inclusion: bool = False,
                               wait_for_finalization: bool = False, timeout: float = None,
                               max_reorg_cycles: int = 3, fetch_events: bool = True) -> ExtrinsicReceipt:
        """
        Submit an extrinsic to the connected node, with the possibility to wait until the extrinsic is included
        in a block and/or the block is finalized. The receipt returned provides information about the block and
        triggered events

        Parameters
        ----------
        extrinsic: SignedExtrinsic The extrinsic to be sent to the network
        wait_for_inclusion: wait until extrinsic is included in a block (only works for websocket connections)
        wait_for_finalization: wait until extrinsic is finalized (only works for websocket connections)
        timeout: seconds to wait, after which the receipt has status `FinalityTimeout`
        max_reorg_cycles: number of `Retracted`/`Usurped` notifications tolerated while waiting
        fetch_events: retrieve the events triggered by the extrinsic once included

        Returns
        -------
        ExtrinsicReceipt

        Raises
        ------
        SubmissionError: the node rejected the extrinsic
        """
        if not isinstance(extrinsic, SignedExtrinsic):
            raise TypeError("'extrinsic' must be of type SignedExtrinsic")

        extrinsic_hash = f'0x{extrinsic.extrinsic_hash.hex()}'

        logger.info(f'Submitting extrinsic {extrinsic_hash}')

        if not wait_for_inclusion and not wait_for_finalization:
            try:
                result = await self.rpc_request("author_submitExtrinsic", [extrinsic.to_hex()])
            except SubstrateRequestException as e:
                if e.args and type(e.args[0]) is dict:
                    raise SubmissionError.from_rpc_error(e.args[0]) from e
                raise

            return ExtrinsicReceipt(
                extrinsic_hash=result,
                registry=self.registry,
                status=TransactionStatus(TransactionStatus.SUBMITTED)
            )

        try:
            subscription = await self.rpc.subscribe(
                "author_submitAndWatchExtrinsic", [extrinsic.to_hex()], unsubscribe_method="author_unwatchExtrinsic"
            )
        except SubstrateRequestException as e:
            # Only errors returned by the node are rejections, transport failures propagate as they are
            if e.args and type(e.args[0]) is dict:
                raise SubmissionError.from_rpc_error(e.args[0]) from e
            raise

        tracker = SubmissionTracker(
            substrate=self,
            subscription=subscription,
            extrinsic_hash=extrinsic_hash,
            wait_for_inclusion=wait_for_inclusion,
            wait_for_finalization=wait_for_finalization,
            timeout=timeout,
            max_reorg_cycles=max_reorg_cycles,
            fetch_events=fetch_events,
            registry=self.registry
        )

        return await tracker.track()

    async def sign_and_submit(self, call: Call, keypair: Keypair, era: dict = None, tip: int = 0,
                              tip_asset_id: any = None, wait_for_inclusion: bool = False,
                              wait_for_finalization: bool = False, timeout: float = None,
                              retry_policy: RetryPolicy = None) -> ExtrinsicReceipt:
        """
        Signs the call with the current nonce of the keypair and submits it. When the node rejects the extrinsic
        because of a nonce conflict, the nonce is retrieved again and the call is re-signed and resubmitted, up to
        `retry_policy.max_attempts` attempts in total

        Parameters
        ----------
        call: Call to submit
        keypair: Keypair used to sign the extrinsic
        era: Specify mortality in blocks in follow format: {'period': [amount_blocks]}
        tip: The tip for the block author
        tip_asset_id: Optional asset ID with which to pay the tip
        wait_for_inclusion: wait until extrinsic is included in a block
        wait_for_finalization: wait until extrinsic is finalized
        timeout: seconds to wait for inclusion or finalization
        retry_policy: overrides the RetryPolicy of the client

        Returns
        -------
        ExtrinsicReceipt
        """
        retry_policy = retry_policy or self.config['retry_policy']

        for attempt in range(1, retry_policy.max_attempts + 1):
            delay = retry_policy.get_delay(attempt)
            if delay:
                await asyncio.sleep(delay)

            extrinsic = await self.create_signed_extrinsic(
                call, keypair, era=era, tip=tip, tip_asset_id=tip_asset_id
            )

            try:
                return await self.submit_extrinsic(
                    extrinsic, wait_for_inclusion=wait_for_inclusion, wait_for_finalization=wait_for_finalization,
                    timeout=timeout
                )
            except SubmissionError as e:
                if not e.is_nonce_conflict or attempt == retry_policy.max_attempts:
                    raise

                logger.info(f'Nonce conflict for {keypair.ss58_address} (attempt {attempt}): {e.message}')
