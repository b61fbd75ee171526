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
import re
from hashlib import blake2b

from scalecodec.types import Bytes

from substratetx.scale.base import scale_bytes_to_bytes

RE_JUNCTION = r'(\/\/?)([^/]+)'
JUNCTION_ID_LEN = 32


class DeriveJunction:
    """
    One step of a derivation path: `//name` is a hard junction, `/name` a soft junction
    """
    def __init__(self, chain_code: bytes, is_hard: bool = False):
        self.chain_code = chain_code
        self.is_hard = is_hard

    @classmethod
    def from_derive_path(cls, path: str, is_hard: bool = False) -> 'DeriveJunction':

        if path.isnumeric():
            chain_code = int(path).to_bytes(8, 'little').ljust(JUNCTION_ID_LEN, b'\x00')

        else:
            path_scale = scale_bytes_to_bytes(Bytes().encode(path.encode()))

            if len(path_scale) > JUNCTION_ID_LEN:
                chain_code = blake2b(path_scale, digest_size=32).digest()
            else:
                chain_code = path_scale.ljust(JUNCTION_ID_LEN, b'\x00')

        return cls(chain_code=chain_code, is_hard=is_hard)

    def __repr__(self):
        return f'<DeriveJunction {"hard" if self.is_hard else "soft"} 0x{self.chain_code.hex()}>'


def extract_derive_path(derive_path: str) -> list:
    """
    Splits a derivation path like `//Alice/stash` into its junctions

    Returns
    -------
    list of DeriveJunction
    """
    path_check = ''
    junctions = []
    paths = re.findall(RE_JUNCTION, derive_path)

    if paths:
        path_check = ''.join(''.join(path) for path in paths)

        for path_separator, path_value in paths:
            junctions.append(DeriveJunction.from_derive_path(
                path=path_value, is_hard=path_separator == '//')
            )

    if path_check != derive_path:
        raise ValueError('Reconstructed path "{}" does not match input'.format(path_check))

    return junctions
