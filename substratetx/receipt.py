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
from typing import Optional, Union

from .scale.events import EventRecord

__all__ = ['ExtrinsicReceipt']


class ExtrinsicReceipt:
    """
    Outcome of a submitted extrinsic. Inclusion (the extrinsic is in a block) and success (the call did not fail
    while executing) are separate: an included extrinsic can still have failed, see `is_success`.
    """

    def __init__(self, extrinsic_hash: str, registry: 'Registry' = None, status: 'TransactionStatus' = None,
                 block_hash: str = None, block_number: int = None, extrinsic_idx: int = None,
                 finalized: bool = False, triggered_events: list = None):
        """
        Parameters
        ----------
        extrinsic_hash: hash of the submitted extrinsic
        registry: Registry used to resolve module errors
        status: last TransactionStatus received for the extrinsic
        block_hash: block the extrinsic is included in
        block_number: number of that block
        extrinsic_idx: position of the extrinsic in that block
        finalized: True when the including block is finalized
        triggered_events: events emitted by the extrinsic
        """
        self.extrinsic_hash = extrinsic_hash
        self.registry = registry
        self.status = status
        self.status_history = [status] if status else []
        self.block_hash = block_hash
        self.block_number = block_number
        self.extrinsic_idx = extrinsic_idx
        self.finalized = finalized
        self.triggered_events = triggered_events

        self.__is_success = None
        self.__error_message = None
        self.__weight = None
        self.__total_fee_amount = None

    def update_status(self, status: 'TransactionStatus'):
        self.status = status
        self.status_history.append(status)

    def set_inclusion(self, block_hash: str, block_number: Optional[int], extrinsic_idx: Optional[int],
                      triggered_events: Optional[list], finalized: bool = False):
        self.block_hash = block_hash
        self.block_number = block_number
        self.extrinsic_idx = extrinsic_idx
        self.triggered_events = triggered_events
        self.finalized = finalized

        self.__is_success = None
        self.__error_message = None
        self.__weight = None
        self.__total_fee_amount = None

    def clear_inclusion(self):
        self.set_inclusion(None, None, None, None)

    @property
    def is_included(self) -> bool:
        return self.block_hash is not None

    def get_extrinsic_identifier(self) -> str:
        """
        Returns the on-chain identifier for this extrinsic in format "[block_number]-[extrinsic_idx]" e.g. 134324-2

        Returns
        -------
        str
        """
        if self.block_number is None or self.extrinsic_idx is None:
            raise ValueError('Cannot create extrinsic identifier: extrinsic is not included in a known block')

        return f'{self.block_number}-{self.extrinsic_idx}'

    def find_event(self, module_id: str, event_id: str) -> Optional[EventRecord]:
        """
        First event with given module and name triggered by this extrinsic, None when not triggered
        """
        for event in self.triggered_events or []:
            if event.module_id == module_id and event.event_id == event_id:
                return event

    def process_events(self):
        if self.triggered_events is None:
            raise ValueError("ExtrinsicReceipt has no events: the extrinsic is not included in a block or events "
                             "were not retrieved")

        self.__total_fee_amount = 0

        # Process fees
        has_transaction_fee_paid_event = False

        for event in self.triggered_events:
            if event.module_id == 'TransactionPayment' and event.event_id == 'TransactionFeePaid':
                self.__total_fee_amount = event.attributes['actual_fee']
                has_transaction_fee_paid_event = True

        # Process other events
        for event in self.triggered_events:

            if event.module_id == 'System' and event.event_id == 'ExtrinsicSuccess':
                self.__is_success = True
                self.__error_message = None
                self.__weight = event.attributes['dispatch_info']['weight']

            elif event.module_id == 'System' and event.event_id == 'ExtrinsicFailed':
                self.__is_success = False
                self.__weight = event.attributes['dispatch_info']['weight']
                self.__error_message = self.get_dispatch_error_message(event.attributes['dispatch_error'])

            elif not has_transaction_fee_paid_event:

                if event.module_id == 'Treasury' and event.event_id == 'Deposit':
                    self.__total_fee_amount += event.attributes['value']

                elif event.module_id == 'Balances' and event.event_id == 'Deposit':
                    self.__total_fee_amount += event.attributes['amount']

    def get_dispatch_error_message(self, dispatch_error: Union[str, dict]) -> dict:
        """
        Converts a DispatchError into `{'type': ..., 'name': ..., 'docs': ...}`, module errors are resolved with the
        error variants of the registry
        """
        if type(dispatch_error) is dict and 'Module' in dispatch_error:
            module_error = dispatch_error['Module']
            error_index = module_error['error']

            # Actual error index is first u8 in [u8; 4] format
            if type(error_index) is str and error_index[0:2] == '0x':
                error_index = bytes.fromhex(error_index[2:])[0]
            elif type(error_index) is bytes:
                error_index = error_index[0]

            error = self.registry.get_error_by_index(module_error['index'], error_index) if self.registry else None

            if error is None:
                return {
                    'type': 'Module',
                    'name': f"Unknown error {module_error['index']}:{error_index}",
                    'docs': []
                }

            return {'type': 'Module', 'name': error.name, 'docs': error.docs}

        if type(dispatch_error) is dict:
            name, detail = list(dispatch_error.items())[0]
            return {'type': 'System', 'name': name, 'docs': detail}

        return {'type': 'System', 'name': dispatch_error, 'docs': None}

    @property
    def is_success(self) -> bool:
        """
        Returns `True` if `ExtrinsicSuccess` event is triggered, `False` in case of `ExtrinsicFailed`
        In case of False `error_message` will contain more details about the error

        Returns
        -------
        bool
        """
        if self.__is_success is None:
            self.process_events()

        return self.__is_success

    @property
    def error_message(self) -> Optional[dict]:
        """
        Returns the error message if the extrinsic failed in format e.g.:

        `{'type': 'System', 'name': 'BadOrigin', 'docs': None}`

        Returns
        -------
        dict
        """
        if self.is_success:
            return None
        return self.__error_message

    @property
    def weight(self) -> Union[int, dict]:
        """
        Contains the actual weight when executing this extrinsic

        Returns
        -------
        int (WeightV1) or dict (WeightV2)
        """
        if self.__weight is None:
            self.process_events()
        return self.__weight

    @property
    def total_fee_amount(self) -> int:
        """
        Contains the total fee costs deducted when executing this extrinsic. This includes fee for the validator
        (`Balances.Deposit` event) and the fee deposited for the treasury (`Treasury.Deposit` event)

        Returns
        -------
        int
        """
        if self.__total_fee_amount is None:
            self.process_events()
        return self.__total_fee_amount

    def __repr__(self):
        return f'<ExtrinsicReceipt {self.extrinsic_hash} ({self.status})>'
