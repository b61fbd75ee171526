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

from scalecodec.base import ScaleBytes

from substratetx.exceptions import InvalidEncoding

__all__ = ['ScaleBytes', 'to_scale_bytes', 'scale_bytes_to_bytes']


def to_scale_bytes(data: Union[ScaleBytes, bytes, bytearray, str]) -> ScaleBytes:
    """
    Wraps raw input into a `ScaleBytes` cursor, existing cursors are returned as-is so decoding can continue
    at their current offset
    """
    if isinstance(data, ScaleBytes):
        return data
    if isinstance(data, (bytes, bytearray)):
        return ScaleBytes(bytearray(data))
    if isinstance(data, str) and data[0:2] == '0x':
        try:
            return ScaleBytes(data)
        except ValueError:
            raise InvalidEncoding(f"'{data[:18]}...' is not a valid hex string")

    raise TypeError(f'Cannot decode data of type {type(data).__name__}, expected bytes or a 0x-prefixed hex string')


def scale_bytes_to_bytes(data: Union[ScaleBytes, bytes, bytearray]) -> bytes:
    """
    Encoded output of a scale object: `ScaleBytes` for most types, plain bytes for some (e.g. `CallBytes`)
    """
    if isinstance(data, ScaleBytes):
        return bytes(data.data)
    return bytes(data)
