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

""" Dynamic value codec: encode and decode plain Python values against a type id of a runtime's registry
"""

from typing import Union

from .base import ScaleBytes

__all__ = ['encode', 'decode']


def encode(value: any, type_id: int, registry: 'Registry') -> bytes:
    """
    Encodes `value` against the type definition of `type_id`

    Parameters
    ----------
    value: plain Python value (int, bool, str, bytes, dict, list, tuple or None) shaped like the type
    type_id: type id in the registry
    registry: Registry of the runtime

    Returns
    -------
    bytes

    Raises
    ------
    TypeMismatch: with the path (field name, variant name or [index]) where value and type diverge
    """
    return registry.encode(value, type_id)


def decode(data: Union[bytes, str, ScaleBytes], type_id: int, registry: 'Registry',
           check_remaining: bool = True) -> tuple:
    """
    Decodes `data` against the type definition of `type_id`

    Parameters
    ----------
    data: bytes, 0x-prefixed hex string or a ScaleBytes cursor
    type_id: type id in the registry
    registry: Registry of the runtime
    check_remaining: when True, bytes left after decoding raise RemainingBytes

    Returns
    -------
    tuple (value, amount of bytes consumed)
    """
    return registry.decode(data, type_id, check_remaining=check_remaining)
