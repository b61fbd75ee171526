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
from typing import Union, Optional

from scalecodec.base import ScaleBytes
from scalecodec.utils.ss58 import ss58_encode, ss58_decode

from bip39 import bip39_to_mini_secret, bip39_generate, bip39_validate
from eth_keys.datatypes import PrivateKey
import sr25519
import ed25519_zebra

from .constants import DEV_PHRASE, DEFAULT_SS58_FORMAT
from .exceptions import ConfigurationError
from .key import extract_derive_path
from .utils.ecdsa_helpers import mnemonic_to_ecdsa_private_key, ecdsa_verify, ecdsa_sign

__all__ = ['Keypair', 'KeypairType', 'MnemonicLanguageCode']

SURI_REGEX = re.compile(r'^(?P<phrase>.[^/]+( .[^/]+)*)(?P<path>(//?[^/]+)*)(///(?P<password>.*))?$')


class KeypairType:
    """
    Signature scheme of a `Keypair`. The values are the variant indices of `MultiSignature`, so they are used
    unchanged as the signature variant of a signed extrinsic.
    """
    ED25519 = 0
    SR25519 = 1
    ECDSA = 2

    NAMES = {ED25519: 'Ed25519', SR25519: 'Sr25519', ECDSA: 'Ecdsa'}

    # (public key length, signature length)
    KEY_LENGTHS = {ED25519: (32, 64), SR25519: (32, 64), ECDSA: (20, 65)}


class MnemonicLanguageCode:
    """
    Available language codes to generate mnemonics
    """
    ENGLISH = 'en'
    CHINESE_SIMPLIFIED = 'zh-hans'
    CHINESE_TRADITIONAL = 'zh-hant'
    FRENCH = 'fr'
    ITALIAN = 'it'
    JAPANESE = 'ja'
    KOREAN = 'ko'
    SPANISH = 'es'


def to_message_bytes(data: Union[ScaleBytes, bytes, str]) -> bytes:
    if type(data) is ScaleBytes:
        return bytes(data.data)
    if type(data) is str:
        return bytes.fromhex(data[2:]) if data[0:2] == '0x' else data.encode()
    return bytes(data)


def sr25519_sign(keypair: 'Keypair', message: bytes) -> bytes:
    return sr25519.sign((keypair.public_key, keypair.private_key), message)


def ed25519_sign(keypair: 'Keypair', message: bytes) -> bytes:
    return ed25519_zebra.ed_sign(keypair.private_key, message)


def ecdsa_keypair_sign(keypair: 'Keypair', message: bytes) -> bytes:
    return ecdsa_sign(keypair.private_key, message)


SIGN_FUNCTIONS = {
    KeypairType.SR25519: sr25519_sign,
    KeypairType.ED25519: ed25519_sign,
    KeypairType.ECDSA: ecdsa_keypair_sign,
}

VERIFY_FUNCTIONS = {
    KeypairType.SR25519: sr25519.verify,
    KeypairType.ED25519: ed25519_zebra.ed_verify,
    KeypairType.ECDSA: ecdsa_verify,
}


class Keypair:
    """
    Signer of extrinsics. The extrinsic builder only relies on `public_key`, `crypto_type` and `sign()`, so any
    object offering those can sign in place of a Keypair (e.g. a hardware wallet adapter).
    """

    def __init__(self, ss58_address: str = None, public_key: Union[bytes, str] = None,
                 private_key: Union[bytes, str] = None, ss58_format: int = None, seed_hex: Union[str, bytes] = None,
                 crypto_type: int = KeypairType.SR25519):
        """
        Parameters
        ----------
        ss58_address: SS58 address, used to derive the public key when `public_key` is omitted
        public_key: public key as bytes or hex string
        private_key: private key as bytes or hex string, required to sign
        ss58_format: address format, 42 when omitted
        seed_hex: seed the keys were created from
        crypto_type: one of the `KeypairType` values
        """
        if crypto_type not in KeypairType.KEY_LENGTHS:
            raise ConfigurationError(f'crypto_type "{crypto_type}" not supported')

        self.crypto_type = crypto_type
        self.seed_hex = seed_hex
        self.derive_path = None
        self.mnemonic = None

        if type(private_key) is str:
            private_key = bytes.fromhex(private_key.replace('0x', ''))

        if crypto_type == KeypairType.ECDSA:
            if private_key:
                # Ethereum style account: 20 byte address derived from the secp256k1 public key
                eth_public_key = PrivateKey(private_key).public_key
                public_key = eth_public_key.to_canonical_address()
                ss58_address = eth_public_key.to_checksum_address()
        else:
            if ss58_address and not public_key:
                public_key = ss58_decode(ss58_address, valid_ss58_format=ss58_format)

            if private_key and crypto_type == KeypairType.SR25519:
                if len(private_key) != 64:
                    raise ValueError('Secret key should be 64 bytes long')
                if not public_key:
                    public_key = sr25519.public_from_secret_key(private_key)

        if not public_key:
            raise ValueError('No SS58 formatted address or public key provided')

        if type(public_key) is str:
            public_key = bytes.fromhex(public_key.replace('0x', ''))

        if len(public_key) != self.public_key_length:
            raise ValueError(f'Public key should be {self.public_key_length} bytes long')

        if not ss58_address and crypto_type != KeypairType.ECDSA:
            ss58_address = ss58_encode(public_key, ss58_format=ss58_format or DEFAULT_SS58_FORMAT)

        self.ss58_format: int = ss58_format
        self.public_key: bytes = public_key
        self.ss58_address: str = ss58_address
        self.private_key: bytes = private_key

    @property
    def public_key_length(self) -> int:
        return KeypairType.KEY_LENGTHS[self.crypto_type][0]

    @property
    def signature_length(self) -> int:
        return KeypairType.KEY_LENGTHS[self.crypto_type][1]

    @property
    def key_type(self) -> str:
        """
        Name of the `MultiSignature` variant this keypair signs with
        """
        return KeypairType.NAMES[self.crypto_type]

    @classmethod
    def generate_mnemonic(cls, words: int = 12, language_code: str = MnemonicLanguageCode.ENGLISH) -> str:
        """
        New BIP39 seed phrase of 12, 15, 18, 21 or 24 words
        """
        return bip39_generate(words, language_code)

    @classmethod
    def validate_mnemonic(cls, mnemonic: str, language_code: str = MnemonicLanguageCode.ENGLISH) -> bool:
        return bip39_validate(mnemonic, language_code)

    @classmethod
    def create_from_mnemonic(cls, mnemonic: str, ss58_format: int = DEFAULT_SS58_FORMAT,
                             crypto_type: int = KeypairType.SR25519,
                             language_code: str = MnemonicLanguageCode.ENGLISH) -> 'Keypair':
        """
        Keypair for a BIP39 seed phrase. SR25519 and ED25519 keys use the substrate mini secret of the phrase, ECDSA
        keys the BIP44 path m/44'/60'/0'/0/0.

        Parameters
        ----------
        mnemonic: seed phrase
        ss58_format: address format
        crypto_type: one of the `KeypairType` values
        language_code: see `MnemonicLanguageCode`, ECDSA only supports english

        Returns
        -------
        Keypair
        """
        if crypto_type == KeypairType.ECDSA:
            if language_code != MnemonicLanguageCode.ENGLISH:
                raise ValueError("ECDSA mnemonic only supports english")

            keypair = cls.create_from_private_key(
                mnemonic_to_ecdsa_private_key(mnemonic), ss58_format=ss58_format, crypto_type=crypto_type
            )
        else:
            mini_secret = bip39_to_mini_secret(mnemonic, "", language_code)
            keypair = cls.create_from_seed(bytes(mini_secret), ss58_format=ss58_format, crypto_type=crypto_type)

        keypair.mnemonic = mnemonic
        return keypair

    @classmethod
    def create_from_seed(cls, seed_hex: Union[bytes, str], ss58_format: Optional[int] = DEFAULT_SS58_FORMAT,
                         crypto_type: int = KeypairType.SR25519) -> 'Keypair':
        """
        Keypair for a 32 byte seed (bytes or hex string), only for SR25519 and ED25519
        """
        if type(seed_hex) is str:
            seed_hex = bytes.fromhex(seed_hex.replace('0x', ''))

        if crypto_type == KeypairType.SR25519:
            public_key, private_key = sr25519.pair_from_seed(seed_hex)
        elif crypto_type == KeypairType.ED25519:
            private_key, public_key = ed25519_zebra.ed_from_seed(seed_hex)
        else:
            raise ConfigurationError(f'Keypairs of crypto_type "{crypto_type}" cannot be created from a seed')

        return cls(
            ss58_address=ss58_encode(public_key, ss58_format), public_key=public_key, private_key=private_key,
            ss58_format=ss58_format, crypto_type=crypto_type, seed_hex=seed_hex
        )

    @classmethod
    def create_from_uri(cls, suri: str, ss58_format: Optional[int] = DEFAULT_SS58_FORMAT,
                        crypto_type: int = KeypairType.SR25519,
                        language_code: str = MnemonicLanguageCode.ENGLISH) -> 'Keypair':
        """
        Keypair for a secret URI `[mnemonic][/soft-path][//hard-path][///password]`. A URI starting with a path, like
        the well-known development accounts `//Alice` and `//Bob`, is derived from the development phrase.

        Parameters
        ----------
        suri: secret URI
        ss58_format: address format
        crypto_type: one of the `KeypairType` values; derivation paths are supported for SR25519 and, as BIP44
            paths, for ECDSA
        language_code: see `MnemonicLanguageCode`

        Returns
        -------
        Keypair
        """
        if suri and suri.startswith('/'):
            suri = DEV_PHRASE + suri

        match = SURI_REGEX.match(suri)

        if match is None:
            raise ValueError('Invalid secret URI')

        phrase, path, password = match.group('phrase'), match.group('path'), match.group('password')

        if crypto_type == KeypairType.ECDSA:
            if language_code != MnemonicLanguageCode.ENGLISH:
                raise ValueError("ECDSA mnemonic only supports english")

            private_key = mnemonic_to_ecdsa_private_key(
                mnemonic=phrase, str_derivation_path=path[1:] or None, passphrase=password or ''
            )
            return cls.create_from_private_key(private_key, ss58_format=ss58_format, crypto_type=crypto_type)

        if password:
            raise NotImplementedError(f"Passwords in suri not supported for crypto_type '{crypto_type}'")

        keypair = cls.create_from_mnemonic(
            phrase, ss58_format=ss58_format, crypto_type=crypto_type, language_code=language_code
        )

        if path:
            if crypto_type != KeypairType.SR25519:
                raise NotImplementedError('Derivation paths for this crypto type not supported')

            keypair = cls.__derive_sr25519(keypair, path, ss58_format)

        return keypair

    @classmethod
    def __derive_sr25519(cls, keypair: 'Keypair', path: str, ss58_format: Optional[int]) -> 'Keypair':
        public_key, private_key = keypair.public_key, keypair.private_key

        for junction in extract_derive_path(path):
            derive = sr25519.hard_derive_keypair if junction.is_hard else sr25519.derive_keypair
            _, public_key, private_key = derive((junction.chain_code, public_key, private_key), b'')

        derived = cls(public_key=public_key, private_key=private_key, ss58_format=ss58_format)
        derived.derive_path = path
        return derived

    @classmethod
    def create_from_private_key(cls, private_key: Union[bytes, str], public_key: Union[bytes, str] = None,
                                ss58_address: str = None, ss58_format: int = None,
                                crypto_type: int = KeypairType.SR25519) -> 'Keypair':
        return cls(
            ss58_address=ss58_address, public_key=public_key, private_key=private_key,
            ss58_format=ss58_format, crypto_type=crypto_type
        )

    def sign(self, data: Union[ScaleBytes, bytes, str]) -> bytes:
        """
        Signs `data` (ScaleBytes, bytes, hex string or text)

        Returns
        -------
        signature bytes of `signature_length`

        Raises
        ------
        ConfigurationError: keypair without private key
        """
        if not self.private_key:
            raise ConfigurationError('No private key set to create signatures')

        return SIGN_FUNCTIONS[self.crypto_type](self, to_message_bytes(data))

    def verify(self, data: Union[ScaleBytes, bytes, str], signature: Union[bytes, str]) -> bool:
        """
        True when `signature` (bytes or hex string) is a valid signature of this keypair for `data`
        """
        if type(signature) is str and signature[0:2] == '0x':
            signature = bytes.fromhex(signature[2:])

        if type(signature) is not bytes:
            raise TypeError("Signature should be of type bytes or a hex-string")

        return VERIFY_FUNCTIONS[self.crypto_type](signature, to_message_bytes(data), self.public_key)

    def __repr__(self):
        if self.ss58_address:
            return '<Keypair (address={})>'.format(self.ss58_address)
        return '<Keypair (public_key=0x{})>'.format(self.public_key.hex())
