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

from scalecodec.base import RuntimeConfigurationObject
from scalecodec.type_registry import load_type_registry_preset
from scalecodec.types import GenericMetadataVersioned

from substratetx.constants import METADATA_MAGIC, SUPPORTED_METADATA_VERSIONS
from substratetx.exceptions import DecodeError, MalformedMetadata, UnsupportedVersion
from substratetx.registry import Registry
from .account import ACCOUNT_TYPES
from .base import ScaleBytes, to_scale_bytes, scale_bytes_to_bytes
from .checked import CHECKED_TYPES, decode_compact, decode_value
from .events import EVENT_TYPES
from .extrinsic import EXTRINSIC_TYPES

__all__ = ['METADATA_TYPES', 'create_runtime_config', 'decode_metadata', 'encode_metadata', 'resolve']

# Metadata V15 on top of the V14 definitions of the core type registry preset
METADATA_TYPES = {
    'MetadataAll': {
        'type': 'enum',
        'base_class': 'GenericMetadataAll',
        'type_mapping': [[f'V{version}', f'TypeNotSupported<MetadataV{version}>'] for version in range(0, 9)] + [
            [f'V{version}', f'MetadataV{version}'] for version in range(9, 16)
        ]
    },
    'MetadataV15': {
        'type': 'struct',
        'type_mapping': [
            ['types', 'PortableRegistry'],
            ['pallets', 'Vec<PalletMetadataV15>'],
            ['extrinsic', 'ExtrinsicMetadataV15'],
            ['runtime_type', 'SiLookupTypeId'],
            ['apis', 'Vec<RuntimeApiMetadataV15>'],
            ['outer_enums', 'OuterEnumsV15'],
            ['custom', 'Vec<(Text, CustomValueMetadataV15)>']
        ]
    },
    'PalletMetadataV15': {
        'type': 'struct',
        'base_class': 'ScaleInfoPalletMetadata',
        'type_mapping': [
            ['name', 'Text'],
            ['storage', 'Option<StorageMetadataV14>'],
            ['calls', 'Option<PalletCallMetadataV14>'],
            ['event', 'Option<PalletEventMetadataV14>'],
            ['constants', 'Vec<PalletConstantMetadataV14>'],
            ['error', 'Option<PalletErrorMetadataV14>'],
            ['index', 'u8'],
            ['docs', 'Vec<Text>']
        ]
    },
    'ExtrinsicMetadataV15': {
        'type': 'struct',
        'type_mapping': [
            ['version', 'u8'],
            ['address_type', 'SiLookupTypeId'],
            ['call_type', 'SiLookupTypeId'],
            ['signature_type', 'SiLookupTypeId'],
            ['extra_type', 'SiLookupTypeId'],
            ['signed_extensions', 'Vec<SignedExtensionMetadataV14>']
        ]
    },
    'OuterEnumsV15': {
        'type': 'struct',
        'type_mapping': [
            ['call_type', 'SiLookupTypeId'],
            ['event_type', 'SiLookupTypeId'],
            ['error_type', 'SiLookupTypeId']
        ]
    },
    'CustomValueMetadataV15': {
        'type': 'struct',
        'type_mapping': [
            ['type', 'SiLookupTypeId'],
            ['value', 'Bytes']
        ]
    },
    'RuntimeApiMetadataV15': {
        'type': 'struct',
        'type_mapping': [
            ['name', 'Text'],
            ['methods', 'Vec<RuntimeApiMethodMetadataV15>'],
            ['docs', 'Vec<Text>']
        ]
    },
    'RuntimeApiMethodMetadataV15': {
        'type': 'struct',
        'type_mapping': [
            ['name', 'Text'],
            ['inputs', 'Vec<RuntimeApiMethodParamMetadataV15>'],
            ['output', 'SiLookupTypeId'],
            ['docs', 'Vec<Text>']
        ]
    },
    'RuntimeApiMethodParamMetadataV15': {
        'type': 'struct',
        'type_mapping': [
            ['name', 'Text'],
            ['type', 'SiLookupTypeId']
        ]
    },
}


def create_runtime_config(ss58_format: int = None) -> RuntimeConfigurationObject:
    """
    Type registry for one runtime: the checked container types, the core preset, metadata V15 and the account,
    extrinsic and event types. Container types are registered first, the preset resolves its definitions against
    them.
    """
    runtime_config = RuntimeConfigurationObject(ss58_format=ss58_format)

    runtime_config.update_type_registry_types(CHECKED_TYPES)
    runtime_config.update_type_registry(load_type_registry_preset('core'))
    runtime_config.update_type_registry_types(METADATA_TYPES)
    runtime_config.update_type_registry_types(ACCOUNT_TYPES)
    runtime_config.update_type_registry_types(EXTRINSIC_TYPES)
    runtime_config.update_type_registry_types(EVENT_TYPES)

    return runtime_config


def decode_metadata(raw: Union[bytes, str, ScaleBytes],
                    runtime_config: RuntimeConfigurationObject = None) -> GenericMetadataVersioned:
    """
    Decodes a metadata blob

    Parameters
    ----------
    raw: metadata bytes or hex string, either starting with the magic number or prefixed with a compact length
    runtime_config: type registry to decode with, a new one is created when omitted

    Returns
    -------
    GenericMetadataVersioned
    """
    if runtime_config is None:
        runtime_config = create_runtime_config()

    try:
        data = to_scale_bytes(raw)

        if bytes(data.data[data.offset:data.offset + len(METADATA_MAGIC)]) != METADATA_MAGIC:
            # Opaque metadata (runtime API) carries a compact length prefix
            offset = data.offset
            length = decode_compact(data, 'metadata')
            if length != data.length - data.offset:
                raise MalformedMetadata(
                    f'Length prefix {length} does not match the {data.length - data.offset} bytes of metadata',
                    offset=offset
                )

        header = bytes(data.data[data.offset:data.offset + len(METADATA_MAGIC) + 1])

        if header[:len(METADATA_MAGIC)] != METADATA_MAGIC:
            raise MalformedMetadata(f'Invalid metadata magic 0x{header[:len(METADATA_MAGIC)].hex()}',
                                    offset=data.offset)

        if len(header) <= len(METADATA_MAGIC):
            raise MalformedMetadata('Metadata version missing', offset=data.offset + len(METADATA_MAGIC))

        if header[-1] not in SUPPORTED_METADATA_VERSIONS:
            raise UnsupportedVersion(header[-1])

        metadata_obj = decode_value(runtime_config, 'MetadataVersioned', data, path='metadata')

    except (MalformedMetadata, UnsupportedVersion):
        raise
    except DecodeError as e:
        raise MalformedMetadata(e.reason, offset=e.offset, path=e.path) from e

    if data.offset != data.length:
        raise MalformedMetadata(f'{data.length - data.offset} bytes remaining after metadata', offset=data.offset)

    return metadata_obj


def encode_metadata(version: int, metadata: dict) -> bytes:
    """
    Encodes a metadata dict (as found in `Registry.metadata`) into a metadata blob
    """
    if version not in SUPPORTED_METADATA_VERSIONS:
        raise UnsupportedVersion(version)

    metadata_obj = create_runtime_config().create_scale_object('MetadataVersioned')
    metadata_obj.encode((f'0x{METADATA_MAGIC.hex()}', {f'V{version}': metadata}))

    return scale_bytes_to_bytes(metadata_obj.data)


def resolve(raw: Union[bytes, str, ScaleBytes], ss58_format: int = None) -> Registry:
    """
    Decodes a metadata blob and builds the type registry for it

    Parameters
    ----------
    raw: metadata blob
    ss58_format: address format for decoded accounts; the SS58Prefix constant of the System pallet is used when omitted

    Returns
    -------
    Registry
    """
    runtime_config = create_runtime_config()
    metadata_obj = decode_metadata(raw, runtime_config)
    return Registry(metadata_obj, runtime_config, ss58_format=ss58_format)
