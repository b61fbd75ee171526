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

from scalecodec.base import RuntimeConfigurationObject, ScaleBytes, ScaleType, ScalePrimitive
from scalecodec.exceptions import RemainingScaleBytesNotEmptyException, InvalidScaleTypeValueException
from scalecodec.types import Compact, Struct, Tuple, Enum, Option, Vec, BoundedVec, FixedLengthArray, Null, Bool, \
    Str, H256, U8, U16, U32, U64, U128, U256, I8, I16, I32, I64, I128, I256

from substratetx.constants import MAX_VEC_LENGTH, MAX_ZERO_SIZED_ELEMENTS
from substratetx.exceptions import TypeMismatch, EncodeError, DecodeError, InsufficientBytes, InvalidEncoding
from .base import to_scale_bytes, scale_bytes_to_bytes

__all__ = [
    'CheckedType', 'StrictCompact', 'CheckedStruct', 'CheckedTuple', 'CheckedEnum', 'CheckedOption', 'CheckedVec',
    'CheckedBoundedVec', 'CheckedArray', 'CheckedH256', 'StrictStr', 'Char', 'CHECKED_TYPES', 'encode_value',
    'decode_value', 'encode_compact', 'decode_compact', 'is_zero_sized', 'describe_type', 'type_id_of'
]

COMPACT_MAX_BYTES = 67

INTEGER_BOUNDS = {
    U8: (0, 2 ** 8 - 1),
    U16: (0, 2 ** 16 - 1),
    U32: (0, 2 ** 32 - 1),
    U64: (0, 2 ** 64 - 1),
    U128: (0, 2 ** 128 - 1),
    U256: (0, 2 ** 256 - 1),
    I8: (-2 ** 7, 2 ** 7 - 1),
    I16: (-2 ** 15, 2 ** 15 - 1),
    I32: (-2 ** 31, 2 ** 31 - 1),
    I64: (-2 ** 63, 2 ** 63 - 1),
    I128: (-2 ** 127, 2 ** 127 - 1),
    I256: (-2 ** 255, 2 ** 255 - 1),
}


def type_id_of(type_string: Union[str, dict, None]) -> Optional[int]:
    """
    Portable registry id of a `scale_info::<id>` type string
    """
    if type(type_string) is str and type_string.startswith('scale_info::'):
        return int(type_string[12:])


def describe_type(decoder_class) -> str:
    """
    Human readable name of a decoder class, used in error messages
    """
    scale_info_type = decoder_class.scale_info_type
    if scale_info_type is not None:
        definition = scale_info_type.value
        if definition['path']:
            return '::'.join(definition['path'])

        kind, detail = list(definition['def'].items())[0]
        if kind == 'primitive':
            return detail
        return kind

    return decoder_class.type_string or decoder_class.__name__


def integer_bounds(runtime_config: RuntimeConfigurationObject, type_string: Union[str, dict, None]) -> Optional[tuple]:
    """
    Bounds of the integer `type_string` resolves to, following single field wrappers like `Perbill(u32)`
    """
    if type_string is None:
        return None

    decoder_class = runtime_config.get_decoder_class(type_string)
    if decoder_class is None:
        return None

    for integer_class, bounds in INTEGER_BOUNDS.items():
        if issubclass(decoder_class, integer_class):
            return bounds

    if issubclass(decoder_class, Struct) and decoder_class.type_mapping and len(decoder_class.type_mapping) == 1:
        return integer_bounds(runtime_config, decoder_class.type_mapping[0][1])

    if issubclass(decoder_class, Tuple) and decoder_class.type_mapping and len(decoder_class.type_mapping) == 1:
        return integer_bounds(runtime_config, decoder_class.type_mapping[0])


def check_integer(decoder_class, value: any, path: str, type_id: Optional[int] = None):
    """
    Integer primitives only accept `int` values within their range; `bool`, `str` and `float` are rejected
    """
    for integer_class, (minimum, maximum) in INTEGER_BOUNDS.items():
        if issubclass(decoder_class, integer_class):
            if type(value) is not int or not minimum <= value <= maximum:
                raise TypeMismatch(
                    path, f'{integer_class.__name__.lower()} integer ({minimum} to {maximum})', value, type_id=type_id
                )
            return


def is_zero_sized(runtime_config: RuntimeConfigurationObject, type_string: Union[str, dict, None],
                  seen: set = None) -> bool:
    """
    True when values of `type_string` encode to zero bytes: `()`, empty composites and tuples or arrays of
    zero-sized elements
    """
    if type_string is None or type_string == 'Null':
        return True

    decoder_class = runtime_config.get_decoder_class(type_string)

    if decoder_class is None:
        return False

    if issubclass(decoder_class, Null):
        return True

    if issubclass(decoder_class, FixedLengthArray):
        return decoder_class.element_count == 0 or is_zero_sized(runtime_config, decoder_class.sub_type, seen)

    if issubclass(decoder_class, Struct):
        members = [member_type for _, member_type in decoder_class.type_mapping or []]
    elif issubclass(decoder_class, Tuple):
        members = list(decoder_class.type_mapping or [])
    else:
        return False

    if type(type_string) is str:
        seen = set(seen or ())
        if type_string in seen:
            # Recursive types always hold data somewhere
            return False
        seen.add(type_string)

    return all(is_zero_sized(runtime_config, member_type, seen) for member_type in members)


def encode_value(runtime_config: RuntimeConfigurationObject, type_string: Union[str, dict], value: any,
                 path: str = '', metadata: 'GenericMetadataVersioned' = None) -> ScaleType:
    """
    Encodes `value` as `type_string` and returns the encoded scale object; `obj.data` holds the bytes.

    Raises
    ------
    TypeMismatch: when the value does not fit the type, `path` is the location of the offending member
    """
    type_id = type_id_of(type_string)

    scale_obj = runtime_config.create_scale_object(
        type_string, metadata=metadata, runtime_config=runtime_config
    )

    check_integer(scale_obj.__class__, value, path, type_id)

    try:
        scale_obj.encode(value)
    except TypeMismatch as e:
        e.prefix_path(path)
        raise
    except EncodeError:
        raise
    except (ValueError, TypeError, KeyError, IndexError, NotImplementedError, InvalidScaleTypeValueException) as e:
        raise TypeMismatch(path, f'{describe_type(scale_obj.__class__)} ({e})', value, type_id=type_id) from e

    return scale_obj


def decode_value(runtime_config: RuntimeConfigurationObject, type_string: Union[str, dict], data: ScaleBytes,
                 path: str = '', metadata: 'GenericMetadataVersioned' = None) -> ScaleType:
    """
    Decodes one value of `type_string` at the current offset of `data`, bytes after the value are left for the
    caller

    Raises
    ------
    InsufficientBytes: input ends before the value does
    InvalidEncoding: bytes are not a valid encoding of the type
    """
    offset = data.offset

    scale_obj = runtime_config.create_scale_object(
        type_string, data=data, metadata=metadata, runtime_config=runtime_config
    )

    try:
        scale_obj.decode(check_remaining=False)
    except DecodeError as e:
        e.prefix_path(path)
        raise
    except RemainingScaleBytesNotEmptyException:
        raise InsufficientBytes(
            f'Input ended while decoding {describe_type(scale_obj.__class__)}', offset=offset, path=path
        )
    except (ValueError, TypeError, KeyError, IndexError, InvalidScaleTypeValueException) as e:
        raise InvalidEncoding(
            f'Invalid {describe_type(scale_obj.__class__)}: {e}', offset=offset, path=path
        ) from e

    return scale_obj


class CheckedType:
    """
    Mixin for scale types that encode and decode their members through `encode_value()` and `decode_value()`, so
    errors carry the dotted path of the offending member
    """

    def encode_member(self, type_string: Union[str, dict], value: any, name: str) -> ScaleType:
        return encode_value(self.runtime_config, type_string, value, path=name, metadata=self.metadata)

    def decode_member(self, type_string: Union[str, dict], name: str) -> ScaleType:
        return decode_value(self.runtime_config, type_string, self.data, path=name, metadata=self.metadata)

    def check_remaining(self, length: int, expected: str):
        remaining = self.data.length - self.data.offset
        if length > remaining:
            raise InsufficientBytes(
                f'Expected {length} bytes for {expected}, only {remaining} remaining', offset=self.data.offset
            )

    def mismatch(self, expected: str, value: any) -> TypeMismatch:
        return TypeMismatch('', expected, value, type_id=type_id_of(self.__class__.__name__))


class StrictCompact(CheckedType, Compact):
    """
    Compact integer that only decodes the smallest possible encoding of a value and only encodes unsigned
    integers within the bounds of its inner type
    """

    def process(self):
        offset = self.data.offset
        self.check_remaining(1, 'Compact')

        first_byte = self.data.data[offset]
        mode = first_byte & 0b11
        byte_length = (1, 2, 4)[mode] if mode < 0b11 else (first_byte >> 2) + 5

        self.check_remaining(byte_length, 'Compact')

        value = super().process()

        if mode == 0b01:
            minimum = 1 << 6
        elif mode == 0b10:
            minimum = 1 << 14
        elif mode == 0b11:
            minimum = max(1 << 30, 1 << (8 * (byte_length - 2)))
        else:
            minimum = 0

        if value < minimum:
            raise InvalidEncoding(f'Compact value {value} is not encoded in its minimal mode', offset=offset)

        bounds = integer_bounds(self.runtime_config, self.sub_type)
        if bounds and value > bounds[1]:
            raise InvalidEncoding(f'Compact value {value} exceeds the maximum of {bounds[1]}', offset=offset)

        return value

    def process_encode(self, value):
        if type(value) is dict and len(value) == 1:
            # Single field wrapper e.g. Compact<Perbill>
            value = list(value.values())[0]

        if type(value) is not int or value < 0:
            raise self.mismatch('unsigned integer', value)

        bounds = integer_bounds(self.runtime_config, self.sub_type)
        if bounds and value > bounds[1]:
            raise self.mismatch(f'unsigned integer up to {bounds[1]}', value)

        if value.bit_length() > 8 * COMPACT_MAX_BYTES:
            raise EncodeError(f'Value {value} is too large for compact encoding')

        return super().process_encode(value)


def encode_compact(value: int, path: str = '') -> bytes:
    """
    SCALE compact encoding. The two least significant bits of the first byte select the mode:
    0b00 single byte (< 2**6), 0b01 two bytes (< 2**14), 0b10 four bytes (< 2**30) and 0b11 big-integer mode,
    where the upper six bits hold the amount of following bytes minus four.
    """
    compact = StrictCompact()
    try:
        return scale_bytes_to_bytes(compact.encode(value))
    except TypeMismatch as e:
        e.prefix_path(path)
        raise


def decode_compact(data: Union[ScaleBytes, bytes, str], path: str = '') -> int:
    """
    Decodes a compact integer at the current offset and rejects encodings that do not use the smallest possible
    mode
    """
    data = to_scale_bytes(data)
    compact = StrictCompact(data)
    try:
        return compact.decode(check_remaining=False)
    except DecodeError as e:
        e.prefix_path(path)
        raise


class CheckedStruct(CheckedType, Struct):
    """
    Struct with named fields. Encoding requires exactly the declared fields; a tuple is accepted in declaration
    order, and for single field structs the bare field value.
    """

    def process(self):
        result = {}
        self.value_object = {}

        for key, data_type in self.type_mapping:
            field_obj = self.decode_member(data_type or 'Null', key)
            self.value_object[key] = field_obj
            result[key] = field_obj.value

        return result

    def process_encode(self, value):
        field_names = [key for key, _ in self.type_mapping]
        self.value_object = {}

        if len(field_names) == 0:
            if value not in (None, (), [], {}):
                raise self.mismatch('empty value', value)
            return ScaleBytes(bytearray())

        if type(value) is tuple:
            if len(value) != len(field_names):
                raise self.mismatch(f'tuple of {len(field_names)} elements ({", ".join(field_names)})', value)
            value = dict(zip(field_names, value))

        elif type(value) is not dict and len(field_names) == 1:
            value = {field_names[0]: value}

        if type(value) is not dict:
            raise self.mismatch(f'dict with fields {", ".join(field_names)}', value)

        for key in value:
            if key not in field_names:
                raise TypeMismatch(key, f'one of fields {", ".join(field_names)}', value[key])

        data = ScaleBytes(bytearray())

        for key, data_type in self.type_mapping:
            if key not in value:
                raise TypeMismatch(key, f'value for required field "{key}"', None)

            field_obj = self.encode_member(data_type or 'Null', value[key], key)
            self.value_object[key] = field_obj
            data += field_obj.data

        return data


class CheckedTuple(CheckedType, Tuple):
    """
    Tuple of unnamed members: `()` decodes to None and a single member tuple is transparent
    """

    def process(self):
        if len(self.type_mapping) == 0:
            self.value_object = ()
            return None

        if len(self.type_mapping) == 1:
            member_obj = self.decode_member(self.type_mapping[0], '')
            self.value_object = member_obj.value_object
            return member_obj.value

        result = ()
        self.value_object = ()

        for idx, member_type in enumerate(self.type_mapping):
            member_obj = self.decode_member(member_type or 'Null', f'[{idx}]')
            self.value_object += (member_obj,)
            result += (member_obj.value,)

        return result

    def process_encode(self, value):
        member_count = len(self.type_mapping)

        if member_count == 0:
            if value not in (None, (), []):
                raise self.mismatch('empty tuple', value)
            self.value_object = ()
            return ScaleBytes(bytearray())

        if member_count == 1:
            member_obj = self.encode_member(self.type_mapping[0], value, '')
            self.value_object = (member_obj,)
            return member_obj.data

        if type(value) not in (list, tuple) or len(value) != member_count:
            raise self.mismatch(f'tuple of {member_count} elements', value)

        data = ScaleBytes(bytearray())
        self.value_object = ()

        for idx, (member_type, member_value) in enumerate(zip(self.type_mapping, value)):
            member_obj = self.encode_member(member_type or 'Null', member_value, f'[{idx}]')
            self.value_object += (member_obj,)
            data += member_obj.data

        return data


class CheckedEnum(CheckedType, Enum):
    """
    Enum of the runtime. Unit variants are given as their name, other variants as `{name: value}`.
    """

    def get_variant_index(self, name: str) -> Optional[int]:
        for idx, (variant_name, _) in enumerate(self.type_mapping or []):
            if variant_name is not None and variant_name == name:
                return idx

    def process(self):
        offset = self.data.offset
        self.check_remaining(1, 'enum variant index')

        if not self.type_mapping:
            return super().process()

        self.index = self.get_next_bytes(1)[0]

        if self.index >= len(self.type_mapping) or self.type_mapping[self.index][0] is None:
            raise InvalidEncoding(
                f'Variant index {self.index} is not defined for {describe_type(self.__class__)}', offset=offset
            )

        variant_name, variant_type = self.type_mapping[self.index]

        if variant_type is None or variant_type == 'Null':
            self.value_object = (variant_name, None)
            return variant_name

        variant_obj = self.decode_member(variant_type, variant_name)
        self.value_object = (variant_name, variant_obj)

        return {variant_name: variant_obj.value}

    def process_encode(self, value):
        if not self.type_mapping:
            return super().process_encode(value)

        variant_names = [name for name, _ in self.type_mapping if name is not None]

        if type(value) is str:
            value = {value: None}

        if type(value) is not dict or len(value) != 1:
            raise self.mismatch(f'one of variants {", ".join(variant_names)}', value)

        variant_name, variant_value = list(value.items())[0]
        self.index = self.get_variant_index(variant_name)

        if self.index is None:
            raise self.mismatch(f'one of variants {", ".join(variant_names)}', variant_name)

        variant_type = self.type_mapping[self.index][1]

        if variant_type is None or variant_type == 'Null':
            if variant_value is not None:
                raise TypeMismatch(variant_name, 'no value for unit variant', variant_value)
            self.value_object = (variant_name, None)
            return ScaleBytes(bytearray([self.index]))

        variant_obj = self.encode_member(variant_type, variant_value, variant_name)
        self.value_object = (variant_name, variant_obj)

        return ScaleBytes(bytearray([self.index])) + variant_obj.data


class CheckedOption(CheckedType, Option):
    """
    Option: 0x00 for None, 0x01 followed by the value for Some. `Option<bool>` uses a single byte, 0x01 for true
    and 0x02 for false.
    """

    def is_option_bool(self) -> bool:
        decoder_class = self.runtime_config.get_decoder_class(self.sub_type)
        return decoder_class is not None and issubclass(decoder_class, Bool)

    def process(self):
        offset = self.data.offset
        self.check_remaining(1, 'Option')
        flag = self.get_next_bytes(1)[0]

        if flag == 0:
            return None

        if self.is_option_bool():
            if flag in (1, 2):
                return flag == 1
        elif flag == 1:
            self.value_object = self.decode_member(self.sub_type, '')
            return self.value_object.value

        raise InvalidEncoding(f'Invalid Option flag {flag}', offset=offset)

    def process_encode(self, value):
        if value is None:
            return ScaleBytes('0x00')

        if self.is_option_bool():
            if type(value) is not bool:
                raise self.mismatch('bool or None', value)
            return ScaleBytes('0x01' if value else '0x02')

        self.value_object = self.encode_member(self.sub_type, value, '')
        return ScaleBytes('0x01') + self.value_object.data


class CheckedVec(CheckedType, Vec):
    """
    Sequence with a compact length prefix. The prefix is checked against the remaining input before elements are
    decoded, sequences of zero-sized elements are capped at `MAX_ZERO_SIZED_ELEMENTS`. `Vec<u8>` decodes to a
    0x-prefixed hex string.
    """

    def is_bytes(self) -> bool:
        decoder_class = self.runtime_config.get_decoder_class(self.sub_type)
        return decoder_class is not None and issubclass(decoder_class, U8)

    def process(self):
        offset = self.data.offset
        element_count = self.decode_member('Compact<u32>', '').value

        if element_count > MAX_VEC_LENGTH:
            raise InvalidEncoding(f'Sequence length {element_count} exceeds {MAX_VEC_LENGTH}', offset=offset)

        remaining = self.data.length - self.data.offset

        if self.is_bytes():
            self.check_remaining(element_count, 'Vec<u8>')
            self.value_object = self.get_next_bytes(element_count)
            return f'0x{self.value_object.hex()}'

        if is_zero_sized(self.runtime_config, self.sub_type):
            if element_count > MAX_ZERO_SIZED_ELEMENTS:
                raise InvalidEncoding(
                    f'Sequence length {element_count} exceeds the limit of {MAX_ZERO_SIZED_ELEMENTS} zero-sized '
                    f'elements', offset=offset
                )
        elif element_count > remaining:
            raise InvalidEncoding(
                f'Sequence length {element_count} exceeds the {remaining} remaining bytes', offset=offset
            )

        result = []
        self.elements = []

        for idx in range(element_count):
            element = self.decode_member(self.sub_type, f'[{idx}]')
            self.elements.append(element)
            result.append(element.value)

        self.value_object = self.elements

        return result

    def process_encode(self, value):
        if self.is_bytes():
            if type(value) is str:
                value = bytes.fromhex(value[2:]) if value[0:2] == '0x' else value.encode()
            elif type(value) in (bytearray, list):
                value = bytes(value)

            if type(value) is not bytes:
                raise self.mismatch('bytes, 0x-prefixed hex string or str', value)

            self.value_object = value
            return self.encode_member('Compact<u32>', len(value), '').data + value

        if type(value) not in (list, tuple):
            raise self.mismatch('list', value)

        data = self.encode_member('Compact<u32>', len(value), '').data
        self.elements = []

        for idx, element_value in enumerate(value):
            element = self.encode_member(self.sub_type, element_value, f'[{idx}]')
            self.elements.append(element)
            data += element.data

        self.value_object = self.elements

        return data


class CheckedBoundedVec(BoundedVec, CheckedVec):
    pass


class CheckedArray(CheckedType, FixedLengthArray):
    """
    Fixed length array, `[u8; N]` is represented as 0x-prefixed hex string
    """

    def is_bytes(self) -> bool:
        decoder_class = self.runtime_config.get_decoder_class(self.sub_type)
        return decoder_class is not None and issubclass(decoder_class, U8)

    def process(self):
        if self.is_bytes():
            self.check_remaining(self.element_count, f'[u8; {self.element_count}]')
            self.value_object = self.get_next_bytes(self.element_count)
            return f'0x{self.value_object.hex()}'

        result = []
        self.value_object = []

        for idx in range(self.element_count):
            element = self.decode_member(self.sub_type, f'[{idx}]')
            self.value_object.append(element)
            result.append(element.value)

        return result

    def process_encode(self, value):
        if self.is_bytes():
            if type(value) is str and value[0:2] == '0x':
                value = bytes.fromhex(value[2:])
            elif type(value) in (bytearray, list):
                value = bytes(value)

            if type(value) is not bytes or len(value) != self.element_count:
                raise self.mismatch(f'{self.element_count} bytes as bytes or 0x-prefixed hex string', value)

            self.value_object = value
            return ScaleBytes(bytearray(value))

        if type(value) not in (list, tuple) or len(value) != self.element_count:
            raise self.mismatch(f'sequence of {self.element_count} elements', value)

        data = ScaleBytes(bytearray())
        self.value_object = []

        for idx, element_value in enumerate(value):
            element = self.encode_member(self.sub_type, element_value, f'[{idx}]')
            self.value_object.append(element)
            data += element.data

        return data


class CheckedH256(CheckedType, H256):

    def process(self):
        self.check_remaining(32, 'H256')
        return super().process()

    def process_encode(self, value):
        if type(value) in (bytes, bytearray):
            value = f'0x{bytes(value).hex()}'

        if type(value) is not str or value[0:2] != '0x' or len(value) != 66:
            raise self.mismatch('32 byte hash as bytes or 0x-prefixed hex string', value)

        return super().process_encode(value)


class StrictStr(CheckedType, Str):
    """
    UTF-8 string, invalid UTF-8 input is rejected instead of returned as hex
    """

    def process(self):
        offset = self.data.offset
        length = self.decode_member('Compact<u32>', '').value
        self.check_remaining(length, 'str')
        self.value_object = self.get_next_bytes(length)

        try:
            return self.value_object.decode()
        except UnicodeDecodeError:
            raise InvalidEncoding('String is not valid UTF-8', offset=offset)

    def process_encode(self, value):
        if type(value) is not str:
            raise self.mismatch('str', value)

        value = value.encode()
        return self.encode_member('Compact<u32>', len(value), '').data + value


class Char(ScalePrimitive):
    """
    Unicode scalar value, encoded as u32
    """

    def process(self):
        return chr(int.from_bytes(self.get_next_bytes(4), byteorder='little'))

    def process_encode(self, value):
        if type(value) is not str or len(value) != 1:
            raise ValueError('Value should be a single character')
        return ScaleBytes(bytearray(ord(value).to_bytes(4, byteorder='little')))


BOUNDED_VEC_PATHS = (
    'sp_core::bounded::bounded_vec::BoundedVec',
    'sp_core::bounded::weak_bounded_vec::WeakBoundedVec',
    'frame_support::storage::bounded_vec::BoundedVec',
    'frame_support::storage::weak_bounded_vec::WeakBoundedVec',
)

# Container and primitive classes replaced in the type registry, registered before the type registry presets so
# every type built from them is checked
CHECKED_TYPES = {
    'Compact': 'StrictCompact',
    'Struct': 'CheckedStruct',
    'Tuple': 'CheckedTuple',
    'Enum': 'CheckedEnum',
    'Option': 'CheckedOption',
    'Vec': 'CheckedVec',
    'BoundedVec': 'CheckedBoundedVec',
    'FixedLengthArray': 'CheckedArray',
    'str': 'StrictStr',
    'H256': 'CheckedH256',
    'Hash': 'CheckedH256',
    'primitive_types::H256': 'CheckedH256',
    **{path: 'CheckedBoundedVec' for path in BOUNDED_VEC_PATHS},
}
