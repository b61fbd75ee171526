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
""" Submission tracking: follows the status subscription of a submitted extrinsic until a terminal status
"""

import asyncio
import logging
from typing import Optional

from .exceptions import TrackingError, SubscriptionTerminated, SubstrateRequestException
from .receipt import ExtrinsicReceipt

__all__ = ['TransactionStatus', 'RetryPolicy', 'SubmissionTracker']

logger = logging.getLogger(__name__)


class TransactionStatus:
    """
    Status notification of `author_submitAndWatchExtrinsic`. `data` holds the block hash (InBlock, Retracted,
    FinalityTimeout, Finalized), the peers (Broadcast) or the hash of the replacing transaction (Usurped).
    """

    SUBMITTED = 'Submitted'
    FUTURE = 'Future'
    READY = 'Ready'
    BROADCAST = 'Broadcast'
    IN_BLOCK = 'InBlock'
    RETRACTED = 'Retracted'
    FINALITY_TIMEOUT = 'FinalityTimeout'
    FINALIZED = 'Finalized'
    USURPED = 'Usurped'
    DROPPED = 'Dropped'
    INVALID = 'Invalid'

    TERMINAL = (FINALIZED, DROPPED, INVALID, FINALITY_TIMEOUT)
    REORG = (RETRACTED, USURPED)

    RPC_KINDS = {
        'future': FUTURE,
        'ready': READY,
        'broadcast': BROADCAST,
        'inblock': IN_BLOCK,
        'retracted': RETRACTED,
        'finalitytimeout': FINALITY_TIMEOUT,
        'finalized': FINALIZED,
        'usurped': USURPED,
        'dropped': DROPPED,
        'invalid': INVALID,
    }

    def __init__(self, kind: str, data: any = None):
        self.kind = kind
        self.data = data

    @classmethod
    def from_rpc(cls, result) -> 'TransactionStatus':
        """
        Parses a notification, either a bare status string ("ready") or a single key dict ({"inBlock": "0x..."})

        Parameters
        ----------
        result: `result` of the subscription notification

        Returns
        -------
        TransactionStatus
        """
        if type(result) is str:
            name, data = result, None
        elif type(result) is dict and len(result) == 1:
            name, data = list(result.items())[0]
        else:
            raise TrackingError(f'Unexpected transaction status notification: {result}')

        kind = cls.RPC_KINDS.get(name.lower())

        if kind is None:
            raise TrackingError(f'Unknown transaction status "{name}"')

        return cls(kind, data)

    @property
    def is_terminal(self) -> bool:
        return self.kind in self.TERMINAL

    @property
    def block_hash(self) -> Optional[str]:
        if self.kind in (self.IN_BLOCK, self.RETRACTED, self.FINALITY_TIMEOUT, self.FINALIZED):
            return self.data

    def __eq__(self, other):
        if isinstance(other, TransactionStatus):
            return self.kind == other.kind and self.data == other.data
        if type(other) is str:
            return self.kind == other
        return False

    def __str__(self):
        if self.data is None:
            return self.kind
        return f'{self.kind}({self.data})'

    def __repr__(self):
        return f'<TransactionStatus {self}>'


class RetryPolicy:

    def __init__(self, max_attempts: int = 3, backoff: float = 0.5):
        """
        Bounded retry of submissions rejected because of a nonce conflict

        Parameters
        ----------
        max_attempts: total number of submission attempts, 1 disables retrying
        backoff: seconds to wait before the second attempt, doubled for each following attempt
        """
        if type(max_attempts) is not int or max_attempts < 1:
            raise ValueError('max_attempts must be a positive integer')

        if backoff < 0:
            raise ValueError('backoff cannot be negative')

        self.max_attempts = max_attempts
        self.backoff = backoff

    def get_delay(self, attempt: int) -> float:
        """
        Seconds to wait before given attempt (1-based)
        """
        if attempt <= 1:
            return 0
        return self.backoff * 2 ** (attempt - 2)

    def __repr__(self):
        return f'<RetryPolicy max_attempts={self.max_attempts} backoff={self.backoff}>'


class SubmissionTracker:

    def __init__(self, substrate, subscription, extrinsic_hash: str, wait_for_inclusion: bool = False,
                 wait_for_finalization: bool = False, timeout: float = None, max_reorg_cycles: int = 3,
                 fetch_events: bool = True, registry=None):
        """
        Consumes the status subscription of one submitted extrinsic. Every transition is driven by the next
        notification; the tracker never polls the node.

        Parameters
        ----------
        substrate: handle providing `retrieve_extrinsic_index(block_hash, extrinsic_hash)` and `get_events(block_hash)`
        subscription: status subscription returned by `author_submitAndWatchExtrinsic`
        extrinsic_hash: hash of the submitted extrinsic
        wait_for_inclusion: resolve when the extrinsic is included in a block
        wait_for_finalization: resolve when the including block is finalized
        timeout: seconds to wait for the terminal status, after which the receipt has status `FinalityTimeout`
        max_reorg_cycles: number of `Retracted`/`Usurped` notifications tolerated before giving up
        fetch_events: retrieve the events of the extrinsic once included
        registry: Registry used by the receipt to resolve module errors
        """
        if not wait_for_inclusion and not wait_for_finalization:
            raise ValueError('Tracking requires wait_for_inclusion or wait_for_finalization')

        self.substrate = substrate
        self.subscription = subscription
        self.wait_for_inclusion = wait_for_inclusion
        self.wait_for_finalization = wait_for_finalization
        self.timeout = timeout
        self.max_reorg_cycles = max_reorg_cycles
        self.fetch_events = fetch_events

        self.reorg_cycles = 0
        self.receipt = ExtrinsicReceipt(
            extrinsic_hash=extrinsic_hash,
            registry=registry,
            status=TransactionStatus(TransactionStatus.SUBMITTED)
        )

    @property
    def status(self) -> TransactionStatus:
        return self.receipt.status

    async def track(self) -> ExtrinsicReceipt:
        """
        Waits for the terminal status of the extrinsic. Cancelling the wait only stops following the subscription,
        the transaction is not removed from the transaction pool of the node.

        Returns
        -------
        ExtrinsicReceipt
        """
        try:
            if self.timeout is None:
                await self.__consume()
            else:
                await asyncio.wait_for(self.__consume(), timeout=self.timeout)

        except asyncio.TimeoutError:
            logger.info(f'Timeout while waiting for extrinsic {self.receipt.extrinsic_hash}')
            self.__transition(TransactionStatus(TransactionStatus.FINALITY_TIMEOUT))

        finally:
            await self.__release()

        return self.receipt

    async def __consume(self):
        async for result in self.subscription:
            status = TransactionStatus.from_rpc(result)
            self.__transition(status)

            if status.kind == TransactionStatus.IN_BLOCK:
                await self.__process_block(status.block_hash, finalized=False)

                if not self.wait_for_finalization:
                    return

            elif status.kind == TransactionStatus.FINALIZED:
                await self.__process_block(status.block_hash, finalized=True)
                return

            elif status.kind in TransactionStatus.REORG:
                self.reorg_cycles += 1

                if status.kind == TransactionStatus.RETRACTED:
                    self.receipt.clear_inclusion()

                if self.reorg_cycles > self.max_reorg_cycles:
                    logger.info(f'Extrinsic {self.receipt.extrinsic_hash}: giving up after {self.reorg_cycles} '
                                f'reorganisations')
                    return

            elif status.is_terminal:
                return

        raise SubscriptionTerminated(
            f'Status subscription of extrinsic {self.receipt.extrinsic_hash} ended while in state {self.status}'
        )

    def __transition(self, status: TransactionStatus):
        logger.debug(f'Extrinsic {self.receipt.extrinsic_hash}: {self.status} -> {status}')
        self.receipt.update_status(status)

    async def __process_block(self, block_hash: str, finalized: bool):
        if block_hash == self.receipt.block_hash and self.receipt.triggered_events is not None:
            # Same block as the InBlock notification
            self.receipt.finalized = finalized
            return

        if not self.fetch_events:
            self.receipt.set_inclusion(block_hash, None, None, None, finalized=finalized)
            return

        extrinsic_idx, block_number = await self.substrate.retrieve_extrinsic_index(
            block_hash, self.receipt.extrinsic_hash
        )
        events = await self.substrate.get_events(block_hash)

        self.receipt.set_inclusion(
            block_hash=block_hash,
            block_number=block_number,
            extrinsic_idx=extrinsic_idx,
            triggered_events=[event for event in events if event.extrinsic_idx == extrinsic_idx],
            finalized=finalized
        )

    async def __release(self):
        if self.subscription.closed:
            return

        try:
            await self.subscription.unsubscribe()
        except SubstrateRequestException as e:
            logger.warning(f'Unsubscribe of {self.subscription} failed: {e}')
