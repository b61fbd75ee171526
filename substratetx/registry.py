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

from substratetx.constants import DEFAULT_SS58_FORMAT, DEFAULT_EXTRINSIC_VERSION
from substratetx.exceptions import DanglingTypeReference, MalformedMetadata, ModuleNotFound, UnknownCall, \
    UnknownEvent, StorageFunctionNotFound, ConstantNotFound, RemainingBytes
from substratetx.scale.base import ScaleBytes, to_scale_bytes, scale_bytes_to_bytes
from substratetx.scale.checked import encode_value, decode_value, is_zero_sized
from substratetx.scale.events import CheckedScaleInfoEvent, CheckedEventRecord
from substratetx.scale.extrinsic import CheckedCall

__all__ = [
    'Registry', 'RegistryType', 'ModuleMetadata', 'CallArgument', 'CallDescriptor', 'EventDescriptor',
    'ErrorDescriptor', 'StorageEntryDescriptor', 'ConstantDescriptor', 'SignedExtensionDescriptor'
]


class RegistryType:
    """
    One entry of the portable type registry, as declared in the metadata
    """

    def __init__(self, type_id: int, path: list, params: list, definition: dict, docs: list = None):
        self.type_id = type_id
        self.path = path
        self.params = params
        self.definition = definition
        self.docs = docs or []

    @property
    def kind(self) -> str:
        return list(self.definition.keys())[0]

    @property
    def detail(self) -> any:
        return list(self.definition.values())[0]

    @property
    def type_string(self) -> str:
        if self.path:
            return '::'.join(self.path)
        return self.kind

    def get_param_type_id(self, name: str) -> Optional[int]:
        for param in self.params:
            if param['name'] == name:
                return param['type']

    def referenced_type_ids(self) -> list:
        """
        Returns (type id, description) pairs of all types this type refers to
        """
        kind, detail = self.kind, self.detail
        references = [(p['type'], f"param '{p['name']}'") for p in self.params if p['type'] is not None]

        if kind == 'composite':
            references += [(f['type'], f"field '{f['name'] or idx}'") for idx, f in enumerate(detail['fields'])]
        elif kind == 'variant':
            for variant in detail['variants']:
                references += [
                    (f['type'], f"variant '{variant['name']}' field '{f['name'] or idx}'")
                    for idx, f in enumerate(variant['fields'])
                ]
        elif kind in ('sequence', 'array', 'compact'):
            references.append((detail['type'], kind))
        elif kind == 'tuple':
            references += [(element, f'tuple[{idx}]') for idx, element in enumerate(detail)]
        elif kind == 'bitsequence':
            references += [(detail['bit_store_type'], 'bit store'), (detail['bit_order_type'], 'bit order')]

        return references

    def __repr__(self):
        return f'<RegistryType {self.type_id}: {self.type_string}>'


class CallArgument:

    def __init__(self, name: Optional[str], type_id: int, type_name: Optional[str] = None, docs: list = None):
        self.name = name
        self.type_id = type_id
        self.type_name = type_name
        self.docs = docs or []

    def serialize(self) -> dict:
        return {'name': self.name, 'type': self.type_id, 'type_name': self.type_name}

    def __eq__(self, other):
        if isinstance(other, CallArgument):
            return self.serialize() == other.serialize()
        return NotImplemented

    def __repr__(self):
        return f'<CallArgument {self.name}: {self.type_name or self.type_id}>'


class VariantDescriptor:
    """
    Call, event or error of a module: a variant of the module's call/event/error enum
    """

    def __init__(self, module: 'ModuleMetadata', index: int, name: str, args: list, docs: list):
        self.module = module
        self.index = index
        self.name = name
        self.args = args
        self.docs = docs

    @property
    def module_index(self) -> int:
        return self.module.index

    @property
    def lookup(self) -> str:
        return f'0x{self.module.index:02x}{self.index:02x}'

    def get_identifier(self) -> str:
        return f'{self.module.name}.{self.name}'

    def serialize(self) -> dict:
        return {
            'module_index': self.module.index,
            'index': self.index,
            'name': self.name,
            'args': [arg.serialize() for arg in self.args]
        }

    def __eq__(self, other):
        if type(other) is type(self):
            return self.serialize() == other.serialize()
        return NotImplemented

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.get_identifier()} ({self.lookup})>'


class CallDescriptor(VariantDescriptor):
    pass


class EventDescriptor(VariantDescriptor):
    pass


class ErrorDescriptor(VariantDescriptor):
    pass


class StorageEntryDescriptor:

    def __init__(self, module: 'ModuleMetadata', name: str, modifier: str, entry_type: dict, default: bytes,
                 docs: list):
        self.module = module
        self.name = name
        self.modifier = modifier
        self.default = default
        self.docs = docs

        if 'Plain' in entry_type:
            self.hashers = []
            self.key_type_id = None
            self.value_type_id = entry_type['Plain']
        else:
            self.hashers = entry_type['Map']['hashers']
            self.key_type_id = entry_type['Map']['key']
            self.value_type_id = entry_type['Map']['value']

    @property
    def is_map(self) -> bool:
        return self.key_type_id is not None

    def get_params_type_ids(self, registry: 'Registry') -> list:
        """
        Type ids of the key parameters; maps with several hashers have a tuple as key type
        """
        if not self.is_map:
            return []

        if len(self.hashers) == 1:
            return [self.key_type_id]

        key_type = registry.get_registry_type(self.key_type_id)
        if key_type.kind != 'tuple' or len(key_type.detail) != len(self.hashers):
            raise MalformedMetadata(
                f'Storage function {self.get_identifier()} has {len(self.hashers)} hashers but key type '
                f'{key_type.type_string}'
            )
        return list(key_type.detail)

    def get_identifier(self) -> str:
        return f'{self.module.name}.{self.name}'

    def serialize(self) -> dict:
        return {
            'name': self.name,
            'modifier': self.modifier,
            'hashers': self.hashers,
            'key': self.key_type_id,
            'value': self.value_type_id
        }

    def __repr__(self):
        return f'<StorageEntryDescriptor {self.get_identifier()}>'


class ConstantDescriptor:

    def __init__(self, registry: 'Registry', module: 'ModuleMetadata', name: str, type_id: int, value_bytes: bytes,
                 docs: list):
        self.registry = registry
        self.module = module
        self.name = name
        self.type_id = type_id
        self.value_bytes = value_bytes
        self.docs = docs

    @property
    def value(self) -> any:
        return self.registry.decode(self.value_bytes, self.type_id)[0]

    def serialize(self) -> dict:
        return {'name': self.name, 'type': self.type_id, 'value': f'0x{self.value_bytes.hex()}'}

    def __repr__(self):
        return f'<ConstantDescriptor {self.module.name}.{self.name}>'


class SignedExtensionDescriptor:

    def __init__(self, identifier: str, type_id: int, additional_signed_type_id: int):
        self.identifier = identifier
        self.type_id = type_id
        self.additional_signed_type_id = additional_signed_type_id

    def serialize(self) -> dict:
        return {
            'identifier': self.identifier,
            'extrinsic': self.type_id,
            'additional_signed': self.additional_signed_type_id
        }

    def __repr__(self):
        return f'<SignedExtensionDescriptor {self.identifier}>'


class ModuleMetadata:
    """
    A pallet of the runtime with its calls, events, errors, storage functions and constants, each indexed by name
    and by index
    """

    def __init__(self, name: str, index: int, docs: list = None, storage_prefix: str = None):
        self.name = name
        self.index = index
        self.docs = docs or []
        self.storage_prefix = storage_prefix or name

        self.calls = []
        self.events = []
        self.errors = []
        self.storage = []
        self.constants = []

        self.calls_type_id = None
        self.event_type_id = None
        self.error_type_id = None

        self.__calls_by_name = {}
        self.__calls_by_index = {}
        self.__events_by_name = {}
        self.__events_by_index = {}
        self.__errors_by_index = {}
        self.__storage_by_name = {}
        self.__constants_by_name = {}

    def add_call(self, call: CallDescriptor):
        self._add_variant(call, self.calls, self.__calls_by_name, self.__calls_by_index)

    def add_event(self, event: EventDescriptor):
        self._add_variant(event, self.events, self.__events_by_name, self.__events_by_index)

    def add_error(self, error: ErrorDescriptor):
        self._add_variant(error, self.errors, {}, self.__errors_by_index)

    def _add_variant(self, descriptor: VariantDescriptor, items: list, by_name: dict, by_index: dict):
        if descriptor.index in by_index:
            raise MalformedMetadata(
                f'Duplicate index {descriptor.index} for {descriptor.__class__.__name__} {descriptor.get_identifier()}'
            )
        items.append(descriptor)
        by_name[descriptor.name] = descriptor
        by_index[descriptor.index] = descriptor

    def add_storage_function(self, storage_function: StorageEntryDescriptor):
        self.storage.append(storage_function)
        self.__storage_by_name[storage_function.name] = storage_function

    def add_constant(self, constant: ConstantDescriptor):
        self.constants.append(constant)
        self.__constants_by_name[constant.name] = constant

    def get_call(self, name: str) -> Optional[CallDescriptor]:
        return self.__calls_by_name.get(name)

    def get_call_by_index(self, index: int) -> Optional[CallDescriptor]:
        return self.__calls_by_index.get(index)

    def get_event(self, name: str) -> Optional[EventDescriptor]:
        return self.__events_by_name.get(name)

    def get_event_by_index(self, index: int) -> Optional[EventDescriptor]:
        return self.__events_by_index.get(index)

    def get_error_by_index(self, index: int) -> Optional[ErrorDescriptor]:
        return self.__errors_by_index.get(index)

    def get_storage_function(self, name: str) -> Optional[StorageEntryDescriptor]:
        return self.__storage_by_name.get(name)

    def get_constant(self, name: str) -> Optional[ConstantDescriptor]:
        return self.__constants_by_name.get(name)

    def serialize(self) -> dict:
        return {
            'name': self.name,
            'index': self.index,
            'calls': [call.serialize() for call in self.calls],
            'events': [event.serialize() for event in self.events],
            'errors': [error.serialize() for error in self.errors],
            'storage': [storage.serialize() for storage in self.storage],
            'constants': [constant.serialize() for constant in self.constants]
        }

    def __repr__(self):
        return f'<ModuleMetadata {self.index}: {self.name}>'




class Registry:
    """
    In-memory registry of a runtime's metadata: the decoded metadata, the scale type registry built from its
    portable types, the modules with their calls, events, errors, storage functions and constants, and the
    extrinsic format.

    A registry is immutable once created and can be shared between concurrent operations. A runtime upgrade
    requires a new registry.
    """

    def __init__(self, metadata_obj: 'GenericMetadataVersioned', runtime_config: 'RuntimeConfigurationObject',
                 ss58_format: int = None):
        self.metadata_obj = metadata_obj
        self.runtime_config = runtime_config

        self.metadata_version = metadata_obj.value_object[1].index
        self.metadata = metadata_obj.value[1][f'V{self.metadata_version}']

        self.types = {}
        self.modules = []
        self.signed_extensions = []

        self.__modules_by_name = {}
        self.__modules_by_index = {}

        for portable_type in self.metadata['types']['types']:
            type_info = portable_type['type']
            self.types[portable_type['id']] = RegistryType(
                portable_type['id'], type_info['path'], type_info['params'], type_info['def'], type_info['docs']
            )

        self.__validate_type_references()

        self.__process_extrinsic_metadata(self.metadata['extrinsic'])

        for pallet_obj in metadata_obj.pallets:
            self.__process_pallet(pallet_obj)

        if ss58_format is None:
            ss58_format = self.__get_ss58_prefix()
        self.ss58_format = ss58_format

        self.events_type_id = self.__get_events_type_id()

        self.__update_runtime_config()

    def __check_reference(self, type_id: Optional[int], referenced_by: str):
        if type_id is not None and type_id not in self.types:
            raise DanglingTypeReference(type_id, referenced_by)

    def __validate_type_references(self):
        for type_id, registry_type in self.types.items():
            for referenced_type_id, description in registry_type.referenced_type_ids():
                self.__check_reference(referenced_type_id, f'type {type_id} {description}')

    def __process_extrinsic_metadata(self, extrinsic: dict):
        self.extrinsic_version = extrinsic.get('version', DEFAULT_EXTRINSIC_VERSION)

        if self.metadata_version >= 15:
            self.address_type_id = extrinsic['address_type']
            self.call_type_id = extrinsic['call_type']
            self.signature_type_id = extrinsic['signature_type']
            self.extra_type_id = extrinsic['extra_type']
            self.extrinsic_type_id = None
            self.event_type_id = self.metadata['outer_enums']['event_type']
            self.error_type_id = self.metadata['outer_enums']['error_type']

            self.__check_reference(self.metadata['outer_enums']['call_type'], 'outer_enums.call_type')
            self.__check_reference(self.event_type_id, 'outer_enums.event_type')
            self.__check_reference(self.error_type_id, 'outer_enums.error_type')

            for api in self.metadata['apis']:
                for method in api['methods']:
                    self.__check_reference(method['output'], f"apis.{api['name']}.{method['name']}")
                    for param in method['inputs']:
                        self.__check_reference(param['type'], f"apis.{api['name']}.{method['name']}.{param['name']}")
        else:
            # V14 only references the UncheckedExtrinsic type, its type parameters define the envelope
            self.extrinsic_type_id = extrinsic['ty']
            self.__check_reference(self.extrinsic_type_id, 'extrinsic.ty')

            extrinsic_type = self.types[self.extrinsic_type_id]
            self.address_type_id = extrinsic_type.get_param_type_id('Address')
            self.call_type_id = extrinsic_type.get_param_type_id('Call')
            self.signature_type_id = extrinsic_type.get_param_type_id('Signature')
            self.extra_type_id = extrinsic_type.get_param_type_id('Extra')
            self.event_type_id = None
            self.error_type_id = None

        for name in ('address_type_id', 'call_type_id', 'signature_type_id', 'extra_type_id'):
            if getattr(self, name) is None:
                raise MalformedMetadata(f'Extrinsic metadata does not define {name}')
            self.__check_reference(getattr(self, name), f'extrinsic.{name}')

        for signed_extension in extrinsic['signed_extensions']:
            descriptor = SignedExtensionDescriptor(
                signed_extension['identifier'], signed_extension['ty'], signed_extension['additional_signed']
            )
            self.__check_reference(descriptor.type_id, f'signed_extensions.{descriptor.identifier}')
            self.__check_reference(
                descriptor.additional_signed_type_id, f'signed_extensions.{descriptor.identifier}.additional_signed'
            )
            self.signed_extensions.append(descriptor)

    def __process_pallet(self, pallet_obj: 'ScaleInfoPalletMetadata'):
        pallet = pallet_obj.value

        if pallet['index'] in self.__modules_by_index:
            raise MalformedMetadata(f"Duplicate pallet index {pallet['index']} for pallet {pallet['name']}")

        module = ModuleMetadata(
            name=pallet['name'],
            index=pallet['index'],
            docs=pallet.get('docs'),
            storage_prefix=pallet['storage']['prefix'] if pallet['storage'] else None
        )

        if pallet['calls']:
            module.calls_type_id = pallet['calls']['ty']
            for variant in self.__get_variants(pallet['calls']['ty'], f'{module.name}.calls'):
                module.add_call(CallDescriptor(module, variant['index'], variant['name'],
                                               self.__create_args(variant), variant['docs']))

        if pallet['event']:
            module.event_type_id = pallet['event']['ty']
            for variant in self.__get_variants(pallet['event']['ty'], f'{module.name}.event'):
                module.add_event(EventDescriptor(module, variant['index'], variant['name'],
                                                 self.__create_args(variant), variant['docs']))

        if pallet['error']:
            module.error_type_id = pallet['error']['ty']
            for variant in self.__get_variants(pallet['error']['ty'], f'{module.name}.error'):
                module.add_error(ErrorDescriptor(module, variant['index'], variant['name'],
                                                 self.__create_args(variant), variant['docs']))

        if pallet['storage']:
            entry_objs = pallet_obj['storage'].value_object['entries'].value_object

            for entry, entry_obj in zip(pallet['storage']['entries'], entry_objs):
                storage_function = StorageEntryDescriptor(
                    module, entry['name'], entry['modifier'], entry['type'], bytes(entry_obj['default'].value_object),
                    entry['documentation']
                )
                referenced_by = f'{module.name}.storage.{storage_function.name}'
                self.__check_reference(storage_function.key_type_id, referenced_by)
                self.__check_reference(storage_function.value_type_id, referenced_by)
                module.add_storage_function(storage_function)

        for constant, constant_obj in zip(pallet['constants'], pallet_obj['constants'].value_object):
            self.__check_reference(constant['type'], f"{module.name}.constants.{constant['name']}")
            module.add_constant(
                ConstantDescriptor(self, module, constant['name'], constant['type'],
                                   bytes(constant_obj['value'].value_object), constant['documentation'])
            )

        self.modules.append(module)
        self.__modules_by_name[module.name] = module
        self.__modules_by_index[module.index] = module

    def __get_variants(self, type_id: int, referenced_by: str) -> list:
        self.__check_reference(type_id, referenced_by)
        registry_type = self.types[type_id]

        if registry_type.kind != 'variant':
            raise MalformedMetadata(
                f'Type {type_id} referenced by {referenced_by} must be a variant, not {registry_type.kind}'
            )
        return registry_type.detail['variants']

    @staticmethod
    def __create_args(variant: dict) -> list:
        return [
            CallArgument(field['name'], field['type'], field['typeName'], field['docs']) for field in variant['fields']
        ]

    def __get_ss58_prefix(self) -> int:
        module = self.__modules_by_name.get('System')
        constant = module.get_constant('SS58Prefix') if module else None

        if constant is None or len(constant.value_bytes) not in (1, 2):
            return DEFAULT_SS58_FORMAT

        return int.from_bytes(constant.value_bytes, byteorder='little')

    def __get_events_type_id(self) -> Optional[int]:
        module = self.__modules_by_name.get('System')
        storage_function = module.get_storage_function('Events') if module else None

        if storage_function is not None and not storage_function.is_map:
            return storage_function.value_type_id

    def __install_decoder_class(self, type_id: Optional[int], base_class: type):
        """
        Makes sure the decoder class of `type_id` derives from `base_class`, runtimes with unconventional paths do
        not match the path based overrides
        """
        if type_id is None:
            return

        type_string = f'scale_info::{type_id}'
        decoder_class = self.runtime_config.get_decoder_class(type_string)

        if not issubclass(decoder_class, base_class):
            decoder_class = type(type_string, (base_class,), {
                'type_mapping': decoder_class.type_mapping,
                'scale_info_type': decoder_class.scale_info_type
            })
            decoder_class.runtime_config = self.runtime_config
            self.runtime_config.type_registry['types'][type_string] = decoder_class

    def __update_runtime_config(self):
        self.runtime_config.ss58_format = self.ss58_format
        self.runtime_config.implements_scale_info = True

        self.runtime_config.update_from_scale_info_types(
            self.metadata_obj.portable_registry.value_object['types'].value_object
        )

        self.__install_decoder_class(self.call_type_id, CheckedCall)

        if self.events_type_id is not None:
            events_type = self.types[self.events_type_id]

            if events_type.kind == 'sequence':
                record_type_id = events_type.detail['type']
                self.__install_decoder_class(record_type_id, CheckedEventRecord)

                for field in self.types[record_type_id].detail.get('fields', []):
                    if field['name'] == 'event':
                        self.__install_decoder_class(field['type'], CheckedScaleInfoEvent)

        self.__install_decoder_class(self.event_type_id, CheckedScaleInfoEvent)

        address_type = self.types[self.address_type_id]
        account_id_type_id = address_type.get_param_type_id('AccountId')

        self.runtime_config.update_type_registry_types({
            'Address': f'scale_info::{self.address_type_id}',
            'LookupSource': f'scale_info::{self.address_type_id}',
            'AccountId': f'scale_info::{account_id_type_id if account_id_type_id is not None else self.address_type_id}',
            'ExtrinsicSignature': f'scale_info::{self.signature_type_id}'
        })

    # Scale types

    def get_registry_type(self, type_id: int) -> RegistryType:
        if type_id not in self.types:
            raise DanglingTypeReference(type_id, 'registry lookup')
        return self.types[type_id]

    def get_type_def(self, type_id: int) -> type:
        """
        Returns the scale decoder class used to encode and decode values of given type id

        Parameters
        ----------
        type_id: type id in the portable registry

        Returns
        -------
        ScaleType subclass
        """
        if type_id not in self.types:
            raise DanglingTypeReference(type_id, 'registry lookup')
        return self.runtime_config.get_decoder_class(f'scale_info::{type_id}')

    def create_scale_object(self, type_string: str, data: Union[bytes, str, ScaleBytes] = None) -> 'ScaleType':
        """
        Creates a scale object for `type_string` (e.g. 'scale_info::5', 'Extrinsic' or 'Compact<u32>') bound to the
        metadata of this registry
        """
        if data is not None:
            data = to_scale_bytes(data)

        return self.runtime_config.create_scale_object(
            type_string, data=data, metadata=self.metadata_obj, runtime_config=self.runtime_config
        )

    def is_zero_sized(self, type_id: int) -> bool:
        self.get_type_def(type_id)
        return is_zero_sized(self.runtime_config, f'scale_info::{type_id}')

    # Value codec

    def encode_type(self, type_string: str, value: any) -> bytes:
        return scale_bytes_to_bytes(
            encode_value(self.runtime_config, type_string, value, metadata=self.metadata_obj).data
        )

    def encode(self, value: any, type_id: int) -> bytes:
        """
        Encodes a value against the type definition of given type id

        Raises
        ------
        TypeMismatch: when the value does not match the shape of the type, with the path of the offending field
        """
        self.get_type_def(type_id)
        return self.encode_type(f'scale_info::{type_id}', value)

    def decode_object(self, type_string: str, data: Union[bytes, str, ScaleBytes],
                      check_remaining: bool = True) -> 'ScaleType':
        """
        Decodes `type_string` at the current offset of `data` and returns the decoded scale object

        Raises
        ------
        RemainingBytes: when `check_remaining` is set and bytes are left after the value
        """
        data = to_scale_bytes(data)

        scale_obj = decode_value(self.runtime_config, type_string, data, metadata=self.metadata_obj)

        if check_remaining and data.offset < data.length:
            raise RemainingBytes(
                f'{data.length - data.offset} bytes remaining after decoding {type_string}', offset=data.offset
            )

        return scale_obj

    def decode(self, data: Union[bytes, str, ScaleBytes], type_id: int, check_remaining: bool = True) -> tuple:
        """
        Decodes data against the type definition of given type id

        Returns
        -------
        tuple (value, amount of bytes consumed)
        """
        self.get_type_def(type_id)

        data = to_scale_bytes(data)
        start_offset = data.offset

        scale_obj = self.decode_object(f'scale_info::{type_id}', data, check_remaining=check_remaining)

        return scale_obj.value, data.offset - start_offset

    # Modules

    def get_module(self, name: str) -> ModuleMetadata:
        if name not in self.__modules_by_name:
            raise ModuleNotFound(f'Module "{name}" not found')
        return self.__modules_by_name[name]

    def get_module_by_index(self, index: int) -> Optional[ModuleMetadata]:
        return self.__modules_by_index.get(index)

    def get_call(self, module_name: str, call_name: str) -> CallDescriptor:
        module = self.__modules_by_name.get(module_name)
        call = module.get_call(call_name) if module else None

        if call is None:
            raise UnknownCall(f'Call "{module_name}.{call_name}" not found')
        return call

    def get_call_by_index(self, module_index: int, call_index: int) -> Optional[CallDescriptor]:
        module = self.__modules_by_index.get(module_index)
        if module:
            return module.get_call_by_index(call_index)

    def get_event(self, module_name: str, event_name: str) -> EventDescriptor:
        module = self.__modules_by_name.get(module_name)
        event = module.get_event(event_name) if module else None

        if event is None:
            raise UnknownEvent(f'Event "{module_name}.{event_name}" not found')
        return event

    def get_event_by_index(self, module_index: int, event_index: int) -> Optional[EventDescriptor]:
        module = self.__modules_by_index.get(module_index)
        if module:
            return module.get_event_by_index(event_index)

    def get_error_by_index(self, module_index: int, error_index: int) -> Optional[ErrorDescriptor]:
        module = self.__modules_by_index.get(module_index)
        if module:
            return module.get_error_by_index(error_index)

    def get_storage_function(self, module_name: str, storage_name: str) -> StorageEntryDescriptor:
        storage_function = self.get_module(module_name).get_storage_function(storage_name)

        if storage_function is None:
            raise StorageFunctionNotFound(f'Storage function "{module_name}.{storage_name}" not found')
        return storage_function

    def get_constant(self, module_name: str, constant_name: str) -> ConstantDescriptor:
        constant = self.get_module(module_name).get_constant(constant_name)

        if constant is None:
            raise ConstantNotFound(f'Constant "{module_name}.{constant_name}" not found')
        return constant

    def get_signed_extension(self, identifier: str) -> Optional[SignedExtensionDescriptor]:
        for signed_extension in self.signed_extensions:
            if signed_extension.identifier == identifier:
                return signed_extension

    def serialize(self) -> dict:
        return {
            'metadata_version': self.metadata_version,
            'modules': [module.serialize() for module in self.modules],
            'signed_extensions': [signed_extension.serialize() for signed_extension in self.signed_extensions]
        }

    def pretty(self) -> str:
        """
        Overview of the modules with their storage functions (s), calls (c) and events (e)
        """
        string = ''
        for module in self.modules:
            string += module.name + '\n'
            for storage_function in module.storage:
                string += ' s  ' + storage_function.name + '\n'
            for call in module.calls:
                string += ' c  ' + call.name + '\n'
            for event in module.events:
                string += ' e  ' + event.name + '\n'
        return string

    def __repr__(self):
        return f'<Registry V{self.metadata_version}: {len(self.modules)} modules, {len(self.types)} types>'
