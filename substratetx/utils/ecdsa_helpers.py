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

""" ECDSA (secp256k1) helpers for Ethereum compatible accounts: BIP32 key derivation from a BIP39 mnemonic,
signing and verification with recovery of the 20 byte account address
"""

import hashlib
import hmac
import re
import struct

from eth_keys.datatypes import PrivateKey, Signature

BIP39_PBKDF2_ROUNDS = 2048
BIP39_SALT_MODIFIER = 'mnemonic'
BIP32_PRIVDEV = 0x80000000
BIP32_SEED_MODIFIER = b'Bitcoin seed'
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
ETH_DERIVATION_PATH = "m/44'/60'/0'/0/0"


def mnemonic_to_bip39seed(mnemonic: str, passphrase: str) -> bytes:
    mnemonic = bytes(mnemonic, 'utf8')
    salt = bytes(BIP39_SALT_MODIFIER + passphrase, 'utf8')
    return hashlib.pbkdf2_hmac('sha512', mnemonic, salt, BIP39_PBKDF2_ROUNDS)


def bip39seed_to_bip32masternode(seed: bytes) -> tuple:
    h = hmac.new(BIP32_SEED_MODIFIER, seed, hashlib.sha512).digest()
    return h[:32], h[32:]


def derive_bip32childkey(parent_key: bytes, parent_chain_code: bytes, index: int) -> tuple:
    if index & BIP32_PRIVDEV:
        key = b'\x00' + parent_key
    else:
        key = PrivateKey(parent_key).public_key.to_compressed_bytes()

    h = hmac.new(parent_chain_code, key + struct.pack('>L', index), hashlib.sha512).digest()
    child_key = (int.from_bytes(h[:32], 'big') + int.from_bytes(parent_key, 'big')) % SECP256K1_ORDER

    return child_key.to_bytes(32, 'big'), h[32:]


def parse_derivation_path(str_derivation_path: str) -> list:
    """
    Parses a BIP32 path like `m/44'/60'/0'/0/0`, hardened indices are marked with an apostrophe
    """
    if not str_derivation_path.startswith('m/'):
        raise ValueError("Can't recognize derivation path. It should look like \"m/44'/60/0'/0\".")

    path = []
    for component in str_derivation_path[2:].split('/'):
        if not re.match(r"^\d+'?$", component):
            raise ValueError(f'Invalid derivation path component "{component}"')
        if component.endswith("'"):
            path.append(int(component[:-1]) + BIP32_PRIVDEV)
        else:
            path.append(int(component))
    return path


def mnemonic_to_ecdsa_private_key(mnemonic: str, str_derivation_path: str = None, passphrase: str = '') -> bytes:
    if str_derivation_path is None:
        str_derivation_path = ETH_DERIVATION_PATH

    seed = mnemonic_to_bip39seed(mnemonic, passphrase)
    private_key, chain_code = bip39seed_to_bip32masternode(seed)

    for index in parse_derivation_path(str_derivation_path):
        private_key, chain_code = derive_bip32childkey(private_key, chain_code, index)

    return private_key


def ecdsa_sign(private_key: bytes, message: bytes) -> bytes:
    return PrivateKey(private_key).sign_msg(message).to_bytes()


def ecdsa_verify(signature: bytes, data: bytes, address: bytes) -> bool:
    recovered_public_key = Signature(signature).recover_public_key_from_msg(data)
    return recovered_public_key.to_canonical_address() == address
