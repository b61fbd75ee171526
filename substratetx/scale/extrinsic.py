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
from typing import Union, Optional

from scalecodec.base import ScaleBytes
from scalecodec.types import Era as EraType, GenericCall

from substratetx.constants import UNMASK_VERSION, DEFAULT_EXTRINSIC_VERSION
from substratetx.exceptions import InvalidEncoding, InsufficientBytes, TypeMismatch, UnknownCall, MetadataError, \
    join_path
from substratetx.utils.hasher import blake2_256
from .base import to_scale_bytes, scale_bytes_to_bytes
from .checked import CheckedType, CheckedStruct, decode_compact, is_zero_sized

__all__ = ['Era', 'CheckedEra', 'Call', 'CheckedCall', 'SignedExtrinsicV4', 'decode_extrinsic', 'EXTRINSIC_TYPES']

# Value keys of well-known signed extensions in a decoded extrinsic
EXTENSION_VALUE_KEYS = {
    'CheckMortality': 'era',
    'CheckEra': 'era',
    'CheckNonce': 'nonce',
    'ChargeTransactionPayment': 'tip',
    'ChargeAssetTxPayment': 'tip',
    'CheckMetadataHash': 'mode'
}


class Era:
    """
    Transaction mortality. An immortal era is valid forever, a mortal era is valid for `period` blocks starting from
    the block where `current % period == phase`.
    """

    def __init__(self, period: int = None, phase: int = None):
        if period is not None:
            if type(period) is not int or type(phase) is not int:
                raise ValueError('Phase and period must be ints')
            if period < 4 or period > 1 << 16 or period & (period - 1) != 0:
                raise ValueError('Period must be a power of two between 4 and 2**16')
            if not 0 <= phase < period:
                raise ValueError('Phase must be less than period')
        self.period = period
        self.phase = phase

    @classmethod
    def immortal(cls) -> 'Era':
        return cls()

    @classmethod
    def mortal(cls, period: int, current: int) -> 'Era':
        """
        Mortal era of at least `period` blocks, starting at block number `current`

        Parameters
        ----------
        period: requested mortality length, rounded up to a power of two between 4 and 2**16
        current: block number of the checkpoint block

        Returns
        -------
        Era
        """
        era_obj = EraType()
        era_obj.encode({'period': period, 'current': current})
        return cls(era_obj.period, era_obj.phase)

    @classmethod
    def from_value(cls, value: Union['Era', str, dict, tuple, None]) -> 'Era':
        """
        Accepts `'00'` or `'Immortal'`, a `(period, phase)` tuple, `{'period': p, 'current': n}`,
        `{'period': p, 'phase': n}`, `{'Mortal': (period, phase)}` or an `Era` instance
        """
        if isinstance(value, Era):
            return value

        if value is None or value in ('00', 'Immortal') or value == {'Immortal': None}:
            return cls()

        if type(value) is dict:
            if 'Mortal' in value:
                value = value['Mortal']

            if type(value) is dict:
                if 'period' not in value:
                    raise ValueError("Value missing required field 'period' in dict Era")
                if 'phase' in value:
                    return cls(value['period'], value['phase'])
                if 'current' not in value:
                    raise ValueError("Dict Era must have one of the fields 'phase' or 'current'")
                return cls.mortal(value['period'], value['current'])

        if type(value) in (tuple, list) and len(value) == 2:
            return cls(value[0], value[1])

        raise ValueError('Incorrect value for Era')

    @property
    def value(self) -> Union[str, tuple]:
        if self.is_immortal():
            return '00'
        return self.period, self.phase

    def is_immortal(self) -> bool:
        """Returns true if the era is immortal, false if mortal."""
        return self.period is None

    def create_scale_object(self) -> EraType:
        era_obj = EraType()
        era_obj.encode(self.value)
        return era_obj

    def encode(self) -> bytes:
        return scale_bytes_to_bytes(self.create_scale_object().data)

    def birth(self, current: int) -> int:
        """Gets the block number of the start of the era given, with `current`
        as the reference block number for the era, normally included as part
        of the transaction.
        """
        return self.create_scale_object().birth(current)

    def death(self, current: int) -> int:
        """Gets the block number of the first block at which the era has ended.

        If the era is immortal, 2**64 - 1 (the maximum unsigned 64-bit integer) is returned.
        """
        return self.create_scale_object().death(current)

    def __eq__(self, other):
        if isinstance(other, Era):
            return self.period == other.period and self.phase == other.phase
        return NotImplemented

    def __repr__(self):
        return f'<Era: {self.value}>'


class CheckedEra(CheckedType, EraType):
    """
    `sp_runtime::generic::Era`: one zero byte for immortal, two bytes for mortal eras. Decodes to `'00'` or
    `(period, phase)`.
    """

    def process(self):
        self.check_remaining(1, 'Era')
        if self.data.data[self.data.offset] != 0:
            self.check_remaining(2, 'Era')
        return super().process()

    def process_encode(self, value):
        try:
            era = Era.from_value(value)
        except (ValueError, TypeError) as e:
            raise self.mismatch(f'Era ({e})', value)

        return super().process_encode(era.value)


class Call:
    """
    A call composed against a registry: module and function are resolved by name and the arguments are encoded
    in the order the metadata declares them, regardless of the order in which they are supplied.
    """

    def __init__(self, registry: 'Registry', call_module: str, call_function: str, call_args: Union[dict, list] = None):
        self.registry = registry
        self.call_function = registry.get_call(call_module, call_function)
        self.module = registry.get_module(call_module)
        self.call_args = self.normalize_args(call_args)
        self.data = self.encode()

    def normalize_args(self, call_args: Union[dict, list, tuple, None]) -> dict:
        path = f'{self.module.name}.{self.call_function.name}'
        arg_names = [arg.name for arg in self.call_function.args]

        if call_args is None:
            call_args = {}

        if type(call_args) in (list, tuple):
            if len(call_args) != len(arg_names):
                raise TypeMismatch(path, f'{len(arg_names)} arguments ({", ".join(arg_names)})', call_args)
            return dict(zip(arg_names, call_args))

        if type(call_args) is not dict:
            raise TypeMismatch(path, 'dict or list of arguments', call_args)

        for name in call_args.keys():
            if name not in arg_names:
                raise TypeMismatch(join_path(path, name), f'one of arguments {", ".join(arg_names)}', call_args[name])

        for name in arg_names:
            if name not in call_args:
                raise TypeMismatch(join_path(path, name), f'value for argument "{name}"', None)

        return {name: call_args[name] for name in arg_names}

    def encode(self) -> bytes:
        return self.registry.encode_type('Call', {
            'call_module': self.module.name,
            'call_function': self.call_function.name,
            'call_args': self.call_args
        })

    @property
    def call_index(self) -> str:
        return f'0x{self.data[0:2].hex()}'

    @property
    def call_hash(self) -> str:
        return f'0x{blake2_256(self.data).hex()}'

    @property
    def value(self) -> dict:
        return {
            'call_index': self.call_index,
            'call_module': self.module.name,
            'call_function': self.call_function.name,
            'call_args': self.call_args
        }

    def __eq__(self, other):
        if isinstance(other, Call):
            return self.data == other.data
        return NotImplemented

    def __repr__(self):
        return f'<Call: {self.module.name}.{self.call_function.name}>'


class CheckedCall(CheckedType, GenericCall):
    """
    Outer call enum of the runtime (`RuntimeCall`): pallet index, call index and the arguments of that call.
    Decodes to a dict with `call_index`, `call_module`, `call_function`, `call_args` and `call_hash`.
    """

    def get_call_enum(self, pallet) -> Optional[str]:
        calls = pallet['calls'].value_object
        if calls is not None:
            return calls.get_type_string()

    def process(self):
        if self.metadata is None:
            raise MetadataError('Calls can only be decoded with metadata')

        offset = self.data.offset
        self.check_remaining(2, 'call index')
        pallet_index, function_index = self.data.data[offset], self.data.data[offset + 1]

        try:
            self.call_module = self.metadata.get_pallet_by_index(pallet_index)
        except ValueError:
            self.call_module = None

        call_type_string = self.get_call_enum(self.call_module) if self.call_module else None
        call_enum = self.runtime_config.get_decoder_class(call_type_string) if call_type_string else None

        if call_enum is None or function_index >= len(call_enum.type_mapping) \
                or call_enum.type_mapping[function_index][0] is None:
            raise InvalidEncoding(f'Call index 0x{pallet_index:02x}{function_index:02x} not found', offset=offset)

        self.get_next_bytes(1)
        call_obj = self.decode_member(call_type_string, self.call_module.name)

        self.call_function, args_obj = call_obj.value_object
        self.call_args = args_obj.value if args_obj is not None else {}
        self.call_index = f'{pallet_index:02x}{function_index:02x}'
        self.call_hash = f'0x{blake2_256(bytes(self.data.data[offset:self.data.offset])).hex()}'

        return {
            'call_index': f'0x{self.call_index}',
            'call_module': self.call_module.name,
            'call_function': self.call_function,
            'call_args': self.call_args,
            'call_hash': self.call_hash
        }

    def process_encode(self, value):
        if isinstance(value, Call):
            return ScaleBytes(bytearray(value.data))

        if type(value) in (bytes, bytearray):
            # Already encoded call
            return ScaleBytes(bytearray(value))

        if type(value) is not dict or 'call_module' not in value or 'call_function' not in value:
            raise self.mismatch('Call, encoded call or dict with call_module, call_function and call_args', value)

        if self.metadata is None:
            raise MetadataError('Calls can only be encoded with metadata')

        pallet = self.metadata.get_metadata_pallet(value['call_module'])
        call_type_string = self.get_call_enum(pallet) if pallet else None

        if call_type_string is None:
            raise UnknownCall(f'Module "{value["call_module"]}" not found or has no calls')

        call_enum = self.runtime_config.get_decoder_class(call_type_string)
        variant_types = {name: variant_type for name, variant_type in call_enum.type_mapping if name is not None}

        if value['call_function'] not in variant_types:
            raise UnknownCall(f'Call "{value["call_module"]}.{value["call_function"]}" not found')

        call_args = value.get('call_args') or {}

        if type(call_args) is list:
            call_args = {call_arg['name']: call_arg['value'] for call_arg in call_args}

        if variant_types[value['call_function']] in (None, 'Null') and not call_args:
            call_value = value['call_function']
        else:
            call_value = {value['call_function']: call_args}

        call_obj = self.encode_member(call_type_string, call_value, pallet.name)

        self.call_module = pallet
        self.call_function = value['call_function']
        self.call_args = call_args
        self.call_index = f'{pallet["index"].value:02x}{call_obj.index:02x}'

        return ScaleBytes(bytearray([pallet['index'].value])) + call_obj.data


class SignedExtrinsicV4(CheckedStruct):
    """
    Body of a signed extrinsic: signer address, signature, the signed extensions of the runtime that hold data (in
    metadata order, keyed by identifier) and the call
    """

    def __init__(self, data=None, **kwargs):
        metadata = kwargs.get('metadata')

        if metadata is not None:
            runtime_config = kwargs.get('runtime_config') or self.runtime_config

            self.type_mapping = [['address', 'Address'], ['signature', 'ExtrinsicSignature']]

            for identifier, signed_extension in metadata.get_signed_extensions().items():
                if not is_zero_sized(runtime_config, signed_extension['extrinsic']):
                    self.type_mapping.append([identifier, signed_extension['extrinsic']])

            self.type_mapping.append(['call', 'Call'])

        super().__init__(data, **kwargs)


def decode_extrinsic(data: Union[bytes, str, ScaleBytes], registry: 'Registry') -> dict:
    """
    Decodes a length-prefixed extrinsic as found in the body of a block

    Parameters
    ----------
    data: extrinsic bytes including the compact length prefix
    registry: registry of the runtime the extrinsic was created for

    Returns
    -------
    dict with `extrinsic_hash`, `version`, `signed`, `call` and, for signed extrinsics, `address`, `signature`,
    `extensions` and the era, nonce and tip
    """
    data = to_scale_bytes(data)
    start_offset = data.offset

    length = decode_compact(data, 'extrinsic')
    if length != data.length - data.offset:
        raise InvalidEncoding(
            f'Extrinsic length prefix {length} does not match {data.length - data.offset} bytes',
            offset=start_offset, path='extrinsic'
        )

    if length == 0:
        raise InsufficientBytes('Expected extrinsic version, no bytes remaining', offset=data.offset, path='version')

    version = data.data[data.offset] & UNMASK_VERSION
    if version != DEFAULT_EXTRINSIC_VERSION:
        raise InvalidEncoding(f'Unsupported extrinsic version {version}', offset=data.offset, path='version')

    extrinsic = registry.decode_object('Extrinsic', bytes(data.data[start_offset:]))
    data.offset = data.length

    value_object = extrinsic.value_object

    value = {
        'extrinsic_hash': extrinsic.value['extrinsic_hash'],
        'version': version,
        'signed': extrinsic.signed
    }

    if extrinsic.signed:
        value['address'] = value_object['address'].value
        value['signature'] = value_object['signature'].value
        value['extensions'] = {}

        for extension in registry.signed_extensions:
            extension_obj = value_object.get(extension.identifier)
            extension_value = extension_obj.value if extension_obj is not None else None
            value['extensions'][extension.identifier] = extension_value

            key = EXTENSION_VALUE_KEYS.get(extension.identifier)
            if key == 'tip' and type(extension_value) is dict:
                value['tip'] = extension_value.get('tip')
                value['asset_id'] = extension_value.get('asset_id')
            elif key:
                value[key] = extension_value

    value['call'] = value_object['call'].value

    return value


EXTRINSIC_TYPES = {
    'Era': 'CheckedEra',
    'sp_runtime::generic::era::Era': 'CheckedEra',
    'Call': 'CheckedCall',
    '*::Call': 'CheckedCall',
    '*::RuntimeCall': 'CheckedCall',
    '*::runtime::Call': 'CheckedCall',
    'ExtrinsicV4': 'SignedExtrinsicV4',
    'Inherent': {
        'type': 'struct',
        'base_class': 'CheckedStruct',
        'type_mapping': [['call', 'Call']]
    },
    'ExtrinsicPayloadValue': {
        'type': 'struct',
        'base_class': 'CheckedStruct',
        'type_mapping': [['call', 'CallBytes']]
    },
}
