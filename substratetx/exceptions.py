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
from typing import Optional

from .constants import RPC_ERROR_PRIORITY_TOO_LOW, RPC_ERROR_INVALID_TRANSACTION


def join_path(parent: str, child: str) -> str:
    if not child:
        return parent
    if not parent:
        return child
    if child.startswith('['):
        return parent + child
    return f'{parent}.{child}'


class ScaleCodecError(ValueError):
    pass


class EncodeError(ScaleCodecError):
    pass


class TypeMismatch(EncodeError):
    """
    Value supplied by the caller does not match the shape of the type it is encoded against
    """
    def __init__(self, path: str, expected: str, value: any, type_id: Optional[int] = None):
        self.path = path
        self.expected = expected
        self.value = value
        self.type_id = type_id
        super().__init__(self.format_message())

    def format_message(self) -> str:
        location = f"'{self.path}'" if self.path else 'root'
        type_info = f' (type id {self.type_id})' if self.type_id is not None else ''

        return f'Type mismatch at {location}{type_info}: expected {self.expected}, ' \
               f'got {type(self.value).__name__} {self.value!r}'

    def prefix_path(self, name: str):
        """
        Places the path of the mismatch under member `name` of the enclosing value
        """
        self.path = join_path(name, self.path)
        self.args = (self.format_message(),)


class UnknownCall(EncodeError):
    pass


class DecodeError(ScaleCodecError):
    """
    Binary input could not be decoded; `offset` is the byte position where decoding stopped
    """
    def __init__(self, message: str, offset: Optional[int] = None, path: str = ''):
        self.offset = offset
        self.path = path
        self.reason = message
        super().__init__(self.format_message())

    def format_message(self) -> str:
        details = []
        if self.offset is not None:
            details.append(f'offset {self.offset}')
        if self.path:
            details.append(f"at '{self.path}'")

        if details:
            return f"{self.reason} ({', '.join(details)})"
        return self.reason

    def prefix_path(self, name: str):
        self.path = join_path(name, self.path)
        self.args = (self.format_message(),)


class InsufficientBytes(DecodeError):
    pass


class RemainingBytes(DecodeError):
    pass


class InvalidEncoding(DecodeError):
    pass


class UnknownEvent(DecodeError):
    pass


class MetadataError(Exception):
    pass


class UnsupportedVersion(MetadataError):
    def __init__(self, version: int):
        self.version = version
        super().__init__(f'Metadata version {version} is not supported')


class MalformedMetadata(MetadataError, DecodeError):
    def __init__(self, message: str, offset: Optional[int] = None, path: str = ''):
        DecodeError.__init__(self, message, offset=offset, path=path)


class DanglingTypeReference(MetadataError):
    def __init__(self, type_id: int, referenced_by: str):
        self.type_id = type_id
        self.referenced_by = referenced_by
        super().__init__(f"Type id {type_id} referenced by '{referenced_by}' is not present in the registry")


class ModuleNotFound(MetadataError):
    pass


class StorageFunctionNotFound(MetadataError):
    pass


class ConstantNotFound(MetadataError):
    pass


class SigningError(Exception):
    pass


class ConfigurationError(Exception):
    pass


class SubstrateRequestException(Exception):
    pass


class SubmissionError(SubstrateRequestException):
    """
    The node rejected an extrinsic; code, message and data are kept exactly as reported
    """
    def __init__(self, code: Optional[int] = None, message: str = None, data: any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__({'code': code, 'message': message, 'data': data})

    @classmethod
    def from_rpc_error(cls, error: any) -> 'SubmissionError':
        if isinstance(error, dict):
            return cls(code=error.get('code'), message=error.get('message'), data=error.get('data'))
        return cls(message=str(error))

    @property
    def is_nonce_conflict(self) -> bool:
        if self.code == RPC_ERROR_PRIORITY_TOO_LOW:
            return True

        if self.code == RPC_ERROR_INVALID_TRANSACTION:
            reason = f'{self.message} {self.data}'.lower()
            return 'outdated' in reason or 'stale' in reason

        return False


class TrackingError(Exception):
    pass


class SubscriptionTerminated(TrackingError):
    pass


class BlockNotFound(Exception):
    pass


class ExtrinsicNotFound(Exception):
    pass
