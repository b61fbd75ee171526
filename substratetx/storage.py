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
""" Storage keys: hashed locations of storage items, and decoding of the values stored there
"""

from typing import Optional, Union

from .registry import Registry, StorageEntryDescriptor
from .scale.base import to_scale_bytes
from .utils.hasher import xxh128, storage_hasher, concat_hash_len

__all__ = ['StorageKey']


class StorageKey:
    """
    A storage key for a storage item, optionally including the parameters of a map entry
    """

    def __init__(self, registry: Registry, storage_function: StorageEntryDescriptor, params: list, data: bytes):
        self.registry = registry
        self.storage_function = storage_function
        self.params = params
        self.data = data

    @property
    def pallet(self) -> str:
        return self.storage_function.module.name

    @property
    def value_type_id(self) -> int:
        return self.storage_function.value_type_id

    @classmethod
    def create(cls, registry: Registry, pallet: str, storage_function: str, params: Optional[list] = None) \
            -> 'StorageKey':
        """
        Create a StorageKey instance providing storage function details

        Parameters
        ----------
        registry: Registry of the runtime
        pallet: name of pallet
        storage_function: name of storage function
        params: Optional list of parameters in case of a Mapped storage function

        Returns
        -------
        StorageKey
        """
        params = params or []

        module = registry.get_module(pallet)
        storage_item = registry.get_storage_function(pallet, storage_function)

        param_type_ids = storage_item.get_params_type_ids(registry)

        if len(params) > len(param_type_ids):
            raise ValueError(
                f'Storage function {storage_item.get_identifier()} requires {len(param_type_ids)} parameters, '
                f'{len(params)} given'
            )

        # Storage prefix, followed by a hash of each given parameter
        data = xxh128(module.storage_prefix.encode()) + xxh128(storage_function.encode())

        for idx, param in enumerate(params):
            param_data = registry.encode(param, param_type_ids[idx])
            data += storage_hasher(storage_item.hashers[idx])(param_data)

        return cls(registry=registry, storage_function=storage_item, params=params, data=data)

    @property
    def is_partial(self) -> bool:
        """
        True for a key prefix of a map: not all parameters are provided
        """
        return len(self.params) < len(self.storage_function.get_params_type_ids(self.registry))

    def decode_value(self, raw: Optional[Union[str, bytes]]) -> any:
        """
        Decodes a value retrieved with `state_getStorage`. A missing value is replaced by the default of the storage
        function when its modifier is `Default`, otherwise None is returned

        Parameters
        ----------
        raw: hex string or bytes of the value, None when absent

        Returns
        -------
        Decoded value
        """
        if raw is None:
            if self.storage_function.modifier != 'Default':
                return None
            raw = self.storage_function.default

        value, _ = self.registry.decode(raw, self.value_type_id)
        return value

    def decode_params(self, storage_key: Union[str, bytes]) -> list:
        """
        Recovers the parameters of a full storage key of this storage function; only parameters stored with a
        concat hasher (`Blake2_128Concat`, `Twox64Concat`, `Identity`) can be recovered

        Parameters
        ----------
        storage_key: hex string or bytes of a key returned by e.g. `state_getKeysPaged`

        Returns
        -------
        list
        """
        data = to_scale_bytes(storage_key)
        # Skip pallet and storage function prefix
        data.get_next_bytes(32)

        param_type_ids = self.storage_function.get_params_type_ids(self.registry)
        params = []

        for idx, type_id in enumerate(param_type_ids):
            data.get_next_bytes(concat_hash_len(self.storage_function.hashers[idx]))
            value, _ = self.registry.decode(data, type_id, check_remaining=False)
            params.append(value)

        return params

    def to_hex(self) -> str:
        return f'0x{self.data.hex()}'

    def __eq__(self, other):
        if isinstance(other, StorageKey):
            return self.data == other.data
        return False

    def __repr__(self):
        return f'<StorageKey {self.storage_function.get_identifier()} {self.to_hex()}>'
