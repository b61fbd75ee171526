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

""" Hash functions used for storage keys, extrinsic hashes and long signing payloads
"""

from hashlib import blake2b

import xxhash


def blake2_256(data: bytes) -> bytes:
    """
    32 bytes Blake2b hash, used for extrinsic hashes and signing payloads longer than 256 bytes

    Parameters
    ----------
    data

    Returns
    -------
    bytes
    """
    return blake2b(data, digest_size=32).digest()


def blake2_128(data: bytes) -> bytes:
    return blake2b(data, digest_size=16).digest()


def blake2_128_concat(data: bytes) -> bytes:
    """
    16 bytes Blake2b hash concatenated with the data itself, so the original key can be recovered from the
    storage key
    """
    return blake2b(data, digest_size=16).digest() + data


def xxh64(data: bytes, seed: int = 0) -> bytes:
    # xxhash digests are big-endian, Substrate uses the little-endian representation
    return xxhash.xxh64(data, seed=seed).digest()[::-1]


def xxh128(data: bytes) -> bytes:
    """
    Twox128: two concatenated xxh64 hashes with seed 0 and 1, used for pallet and storage item prefixes

    Parameters
    ----------
    data

    Returns
    -------
    bytes
    """
    return xxh64(data, seed=0) + xxh64(data, seed=1)


def xxh256(data: bytes) -> bytes:
    return b''.join(xxh64(data, seed=seed) for seed in range(4))


def two_x64_concat(data: bytes) -> bytes:
    return xxh64(data) + data


def identity(data: bytes) -> bytes:
    return data


STORAGE_HASHERS = {
    'Blake2_128': blake2_128,
    'Blake2_256': blake2_256,
    'Blake2_128Concat': blake2_128_concat,
    'Twox128': xxh128,
    'Twox256': xxh256,
    'Twox64Concat': two_x64_concat,
    'Identity': identity
}


def storage_hasher(name: str):
    """
    Returns the hash function for a storage hasher name as listed in the metadata
    """
    if name not in STORAGE_HASHERS:
        raise ValueError(f'Unsupported storage hasher "{name}"')
    return STORAGE_HASHERS[name]


def concat_hash_len(key_hasher: str) -> int:
    """
    Length of the hash part for hashers that append the original key, used when decoding storage keys
    """
    if key_hasher == "Blake2_128Concat":
        return 16
    elif key_hasher == "Twox64Concat":
        return 8
    elif key_hasher == "Identity":
        return 0
    else:
        raise ValueError('Unsupported hash type')
