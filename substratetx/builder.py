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

from scalecodec.types import Enum

from .constants import DEFAULT_EXTRINSIC_VERSION, SIGNATURE_PAYLOAD_HASH_THRESHOLD
from .exceptions import EncodeError, SigningError, ConfigurationError, TypeMismatch
from .registry import Registry
from .scale.base import scale_bytes_to_bytes
from .scale.extrinsic import Era, Call
from .utils.hasher import blake2_256

__all__ = ['ChainInfo', 'UnsignedPayload', 'SignedExtrinsic', 'ExtrinsicBuilder']


def hash_to_bytes(value: Union[bytes, str, None], name: str) -> Optional[bytes]:
    if value is None:
        return None

    if type(value) is str and value[0:2] == '0x':
        try:
            value = bytes.fromhex(value[2:])
        except ValueError:
            raise ValueError(f'{name} must be a 32 byte hash, got {value!r}')

    if type(value) is not bytes or len(value) != 32:
        raise ValueError(f'{name} must be a 32 byte hash, got {value!r}')
    return value


class ChainInfo:
    """
    Runtime and chain details every signed extrinsic commits to
    """

    def __init__(self, spec_version: int, transaction_version: int, genesis_hash: Union[bytes, str]):
        self.spec_version = spec_version
        self.transaction_version = transaction_version
        self.genesis_hash = hash_to_bytes(genesis_hash, 'genesis_hash')

    def __repr__(self):
        return f'<ChainInfo spec_version={self.spec_version} transaction_version={self.transaction_version}>'


class UnsignedPayload:
    """
    Everything that is signed for an extrinsic. A payload can only be signed once.
    """

    def __init__(self, call: bytes, nonce: int, era: Era, tip: int, chain_info: ChainInfo,
                 block_hash: Optional[bytes] = None, asset_id: any = None, extension_values: dict = None):
        self.__call = call
        self.__nonce = nonce
        self.__era = era
        self.__tip = tip
        self.__chain_info = chain_info
        self.__block_hash = block_hash
        self.__asset_id = asset_id
        self.__extension_values = dict(extension_values or {})
        self.__signed = False

    @property
    def call(self) -> bytes:
        return self.__call

    @property
    def nonce(self) -> int:
        return self.__nonce

    @property
    def era(self) -> Era:
        return self.__era

    @property
    def tip(self) -> int:
        return self.__tip

    @property
    def chain_info(self) -> ChainInfo:
        return self.__chain_info

    @property
    def asset_id(self) -> any:
        return self.__asset_id

    @property
    def extension_values(self) -> dict:
        return dict(self.__extension_values)

    @property
    def block_hash(self) -> bytes:
        """
        Hash of the block the era is checked against: the checkpoint block for mortal eras, the genesis block for
        immortal eras
        """
        if self.__era.is_immortal():
            return self.__chain_info.genesis_hash
        return self.__block_hash

    @property
    def is_signed(self) -> bool:
        return self.__signed

    def mark_signed(self):
        if self.__signed:
            raise SigningError('Payload is already signed, build a new payload to sign again')
        self.__signed = True

    def __repr__(self):
        return f'<UnsignedPayload nonce={self.__nonce} era={self.__era.value} tip={self.__tip}>'


class SignedExtrinsic:
    """
    Encoded extrinsic ready for submission, with the values it was composed of
    """

    def __init__(self, data: bytes, call: bytes, version: int = DEFAULT_EXTRINSIC_VERSION, address: any = None,
                 signature: bytes = None, crypto_type: int = None, era: Era = None, nonce: int = None,
                 tip: int = None):
        self.data = data
        self.call = call
        self.version = version
        self.address = address
        self.signature = signature
        self.crypto_type = crypto_type
        self.era = era
        self.nonce = nonce
        self.tip = tip

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    @property
    def extrinsic_hash(self) -> bytes:
        return blake2_256(self.data)

    def to_hex(self) -> str:
        return f'0x{self.data.hex()}'

    def __repr__(self):
        return f'<SignedExtrinsic 0x{self.extrinsic_hash.hex()}>'


class ExtrinsicBuilder:
    """
    Builds calls, signing payloads and extrinsic envelopes for the runtime described by `registry`.

    The signer is any object with a `public_key` (bytes), a `crypto_type` (`KeypairType`) and a `sign(data)`
    method returning the signature bytes, like `Keypair`. The builder itself performs no cryptography.
    """

    def __init__(self, registry: Registry):
        self.registry = registry

    def compose_call(self, call_module: str, call_function: str, call_params: Union[dict, list] = None) -> Call:
        """
        Composes a call of given module and function

        Parameters
        ----------
        call_module: Name of the runtime module e.g. Balances
        call_function: Name of the call function e.g. transfer
        call_params: Arguments by name or as a list in declared order

        Returns
        -------
        Call
        """
        return Call(self.registry, call_module, call_function, call_params)

    def build_call(self, call_module: str, call_function: str, call_params: Union[dict, list] = None) -> bytes:
        """
        Encoded call: module index, call index and the arguments in the order the metadata declares them

        Raises
        ------
        UnknownCall: when module or call function does not exist
        TypeMismatch: when an argument does not match its declared type
        """
        return self.compose_call(call_module, call_function, call_params).data

    def build_unsigned_payload(self, call: Union[Call, bytes], nonce: int, era: Union[Era, dict, str, None],
                               tip: int, chain_info: ChainInfo, block_hash: Union[bytes, str] = None,
                               asset_id: any = None, extension_values: dict = None) -> UnsignedPayload:
        """
        Collects the values that will be signed for an extrinsic

        Parameters
        ----------
        call: composed Call or encoded call bytes
        nonce: account nonce
        era: `Era`, era value (e.g. `{'period': 64, 'current': 1000}`) or None for an immortal era
        tip: tip for the block author
        chain_info: ChainInfo of the runtime
        block_hash: hash of the checkpoint block, required for mortal eras
        asset_id: asset to pay fees with (`ChargeAssetTxPayment`)
        extension_values: values for other signed extensions as
            `{identifier: {'extrinsic': value, 'additional_signed': value}}`

        Returns
        -------
        UnsignedPayload
        """
        if isinstance(call, Call):
            call = call.data

        if type(call) is not bytes:
            raise TypeMismatch('call', 'Call or encoded call bytes', call)

        try:
            era = Era.from_value(era)
        except ValueError as e:
            raise TypeMismatch('era', f'Era ({e})', era)

        try:
            block_hash = hash_to_bytes(block_hash, 'block_hash')
        except ValueError:
            raise TypeMismatch('block_hash', '32 byte hash', block_hash)

        if not era.is_immortal() and block_hash is None:
            raise EncodeError('A mortal era requires the hash of its checkpoint block')

        for name, value in (('nonce', nonce), ('tip', tip)):
            if type(value) is not int or value < 0:
                raise TypeMismatch(name, 'unsigned integer', value)

        return UnsignedPayload(
            call=call, nonce=nonce, era=era, tip=tip, chain_info=chain_info, block_hash=block_hash,
            asset_id=asset_id, extension_values=extension_values
        )

    def get_signed_extension_values(self, identifier: str, payload: UnsignedPayload) -> dict:
        """
        Values of a known signed extension, as `{'extrinsic': ..., 'additional_signed': ...}`
        """
        chain_info = payload.chain_info

        if identifier in ('CheckMortality', 'CheckEra'):
            return {'extrinsic': payload.era, 'additional_signed': payload.block_hash}
        elif identifier == 'CheckNonce':
            return {'extrinsic': payload.nonce}
        elif identifier == 'ChargeTransactionPayment':
            return {'extrinsic': payload.tip}
        elif identifier == 'ChargeAssetTxPayment':
            return {'extrinsic': {'tip': payload.tip, 'asset_id': payload.asset_id}}
        elif identifier == 'CheckMetadataHash':
            return {'extrinsic': {'mode': 'Disabled'}, 'additional_signed': None}
        elif identifier == 'CheckSpecVersion':
            return {'additional_signed': chain_info.spec_version}
        elif identifier == 'CheckTxVersion':
            return {'additional_signed': chain_info.transaction_version}
        elif identifier == 'CheckGenesis':
            return {'additional_signed': chain_info.genesis_hash}
        return {}

    def signed_extension_values(self, payload: UnsignedPayload) -> tuple:
        """
        Values of all signed extensions of the runtime that hold data, in metadata order

        Returns
        -------
        tuple (extra values included in the extrinsic, additional signed values only included in the signing
        payload), both keyed by extension identifier
        """
        extra = {}
        additional_signed = {}
        extension_values = payload.extension_values

        for signed_extension in self.registry.signed_extensions:
            values = self.get_signed_extension_values(signed_extension.identifier, payload)
            values.update(extension_values.get(signed_extension.identifier, {}))

            for key, type_id, target in (('extrinsic', signed_extension.type_id, extra),
                                         ('additional_signed', signed_extension.additional_signed_type_id,
                                          additional_signed)):
                if self.registry.is_zero_sized(type_id):
                    continue

                if key not in values:
                    raise EncodeError(
                        f'No value for signed extension "{signed_extension.identifier}" ({key}), '
                        f'provide one with extension_values'
                    )

                target[signed_extension.identifier] = values[key]

        return extra, additional_signed

    def encode_signed_extensions(self, payload: UnsignedPayload) -> tuple:
        """
        Encodes all signed extensions of the runtime in metadata order

        Returns
        -------
        tuple (extra bytes included in the extrinsic, additional signed bytes only included in the signing payload)
        """
        extra, additional_signed = self.signed_extension_values(payload)
        extra_data = b''
        additional_signed_data = b''

        for signed_extension in self.registry.signed_extensions:
            identifier = signed_extension.identifier
            try:
                if identifier in extra:
                    extra_data += self.registry.encode(extra[identifier], signed_extension.type_id)
                if identifier in additional_signed:
                    additional_signed_data += self.registry.encode(
                        additional_signed[identifier], signed_extension.additional_signed_type_id
                    )
            except TypeMismatch as e:
                e.prefix_path(identifier)
                raise

        return extra_data, additional_signed_data

    def signature_payload(self, payload: UnsignedPayload) -> bytes:
        """
        The bytes the signer signs: call, signed extensions and their additional signed data. Payloads longer than
        256 bytes are replaced by their blake2b-256 hash.

        Parameters
        ----------
        payload: UnsignedPayload

        Returns
        -------
        bytes
        """
        extra, additional_signed = self.signed_extension_values(payload)

        signature_payload = self.registry.create_scale_object('ExtrinsicPayloadValue')

        # Base signature payload
        signature_payload.type_mapping = [['call', 'CallBytes']]
        payload_value = {'call': f'0x{payload.call.hex()}'}

        for signed_extension in self.registry.signed_extensions:
            if signed_extension.identifier in extra:
                signature_payload.type_mapping.append(
                    [signed_extension.identifier, f'scale_info::{signed_extension.type_id}']
                )
                payload_value[signed_extension.identifier] = extra[signed_extension.identifier]

        for signed_extension in self.registry.signed_extensions:
            if signed_extension.identifier in additional_signed:
                key = f'{signed_extension.identifier}.additional_signed'
                signature_payload.type_mapping.append(
                    [key, f'scale_info::{signed_extension.additional_signed_type_id}']
                )
                payload_value[key] = additional_signed[signed_extension.identifier]

        data = scale_bytes_to_bytes(signature_payload.encode(payload_value))

        if len(data) > SIGNATURE_PAYLOAD_HASH_THRESHOLD:
            return blake2_256(data)

        return data

    def signature_value(self, signature: bytes, crypto_type: int) -> any:
        """
        Signature as value of the signature type of the runtime, e.g. `{'Sr25519': signature}` for MultiSignature
        """
        signature_type = self.registry.get_type_def(self.registry.signature_type_id)

        if issubclass(signature_type, Enum) and signature_type.type_mapping:
            if crypto_type >= len(signature_type.type_mapping) or signature_type.type_mapping[crypto_type][0] is None:
                raise ConfigurationError(f'Crypto type {crypto_type} not supported by the signature type of the runtime')
            value = {signature_type.type_mapping[crypto_type][0]: signature}
        else:
            value = signature

        try:
            self.registry.encode(value, self.registry.signature_type_id)
        except EncodeError as e:
            raise SigningError(f'Signature does not match the signature type of the runtime: {e}') from e

        return value

    def encode_signature(self, signature: bytes, crypto_type: int) -> bytes:
        return self.registry.encode(self.signature_value(signature, crypto_type), self.registry.signature_type_id)

    def sign(self, payload: UnsignedPayload, signer: 'Keypair', signature: Union[bytes, str] = None) -> SignedExtrinsic:
        """
        Signs the payload and assembles the signed extrinsic: version byte, signer address, signature, signed
        extensions and the call, prefixed with the total length

        Parameters
        ----------
        payload: UnsignedPayload, consumed by signing
        signer: Keypair or other signer
        signature: existing signature for the payload, the signer is then only used for its public key

        Returns
        -------
        SignedExtrinsic
        """
        if payload.is_signed:
            raise SigningError('Payload is already signed, build a new payload to sign again')

        if signature is None:
            signature_payload = self.signature_payload(payload)
            try:
                signature = signer.sign(signature_payload)
            except ConfigurationError:
                raise
            except Exception as e:
                raise SigningError(f'Signer failed to sign payload: {e}') from e

        elif type(signature) is str and signature[0:2] == '0x':
            signature = bytes.fromhex(signature[2:])

        if type(signature) is not bytes:
            raise SigningError(f'Signature must be bytes, got {type(signature).__name__}')

        signature_value = self.signature_value(signature, signer.crypto_type)
        extra, _ = self.signed_extension_values(payload)

        payload.mark_signed()

        data = self.registry.encode_type('Extrinsic', {
            'address': signer.public_key,
            'signature': signature_value,
            **extra,
            'call': payload.call
        })

        return SignedExtrinsic(
            data=data,
            call=payload.call,
            address=signer.public_key,
            signature=signature,
            crypto_type=signer.crypto_type,
            era=payload.era,
            nonce=payload.nonce,
            tip=payload.tip
        )

    def create_unsigned_extrinsic(self, call: Union[Call, bytes]) -> SignedExtrinsic:
        """
        Unsigned extrinsic (inherent or unsigned transaction) for given call
        """
        if isinstance(call, Call):
            call = call.data

        data = self.registry.encode_type('Extrinsic', {'call': call})

        return SignedExtrinsic(data=data, call=call)
