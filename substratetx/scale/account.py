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
from typing import Union

from scalecodec.types import GenericAccountId, GenericMultiAddress
from scalecodec.utils.ss58 import ss58_decode

from substratetx.exceptions import TypeMismatch
from .checked import CheckedType, CheckedEnum

__all__ = ['CheckedAccountId', 'CheckedMultiAddress', 'account_public_key', 'ACCOUNT_TYPES']


def account_public_key(value: Union[str, bytes], length: int = 32) -> bytes:
    """
    Returns the raw public key of an account given as SS58 address, 0x-prefixed hex string or bytes

    Raises
    ------
    ValueError: when the value is not a valid account
    """
    if type(value) is str and value[0:2] == '0x':
        value = bytes.fromhex(value[2:])
    elif type(value) is str:
        value = bytes.fromhex(ss58_decode(value))
    elif type(value) is bytearray:
        value = bytes(value)

    if type(value) is not bytes or len(value) != length:
        raise ValueError(f'Account must be {length} bytes')

    return value


class CheckedAccountId(CheckedType, GenericAccountId):
    """
    32 byte account, decoded as SS58 address of the configured `ss58_format`. Encodes from an SS58 address,
    0x-prefixed hex string or bytes.
    """

    def process(self):
        self.check_remaining(32, 'AccountId')
        return super().process()

    def process_encode(self, value):
        try:
            public_key = account_public_key(value)
        except (ValueError, TypeError):
            raise self.mismatch('SS58 address or 32 byte public key', value)

        if type(value) is str and value[0:2] != '0x':
            self.ss58_address = value

        self.public_key = f'0x{public_key.hex()}'
        return super(GenericAccountId, self).process_encode(self.public_key)


class CheckedMultiAddress(GenericMultiAddress, CheckedEnum):
    """
    MultiAddress enum of the runtime; a bare account or account index is accepted as shorthand for the matching
    variant
    """

    def process_encode(self, value):
        if type(value) in (bytes, bytearray):
            if len(value) == 32:
                value = {'Id': f'0x{bytes(value).hex()}'}
            elif len(value) == 20 and self.get_variant_index('Address20') is not None:
                value = {'Address20': f'0x{bytes(value).hex()}'}
            else:
                raise self.mismatch('SS58 address, public key or MultiAddress variant', value)

        elif type(value) is str and len(value) == 42 and value[0:2] == '0x' \
                and self.get_variant_index('Address20') is None:
            raise self.mismatch('SS58 address, public key or MultiAddress variant', value)

        try:
            return super().process_encode(value)
        except TypeMismatch:
            raise
        except (ValueError, NotImplementedError):
            raise self.mismatch('SS58 address, public key or MultiAddress variant', value)


ACCOUNT_TYPES = {
    'AccountId': 'CheckedAccountId',
    'sp_core::crypto::AccountId32': 'CheckedAccountId',
    'MultiAddress': 'CheckedMultiAddress',
    'sp_runtime::multiaddress::MultiAddress': 'CheckedMultiAddress',
}
