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

DEV_PHRASE = 'bottom drive obey lake curtain smoke basket hold race lonely fit walk'

DEFAULT_SS58_FORMAT = 42

# Extrinsic envelope
DEFAULT_EXTRINSIC_VERSION = 4
UNMASK_VERSION = 0b01111111

# Signing payloads longer than this are hashed with blake2b-256 before signing
SIGNATURE_PAYLOAD_HASH_THRESHOLD = 256

# Runtime metadata
METADATA_MAGIC = b'meta'
SUPPORTED_METADATA_VERSIONS = (14, 15)

# Node error codes (author RPC) that indicate a nonce conflict
RPC_ERROR_INVALID_TRANSACTION = 1010
RPC_ERROR_PRIORITY_TOO_LOW = 1014

# Length prefixes of sequences are checked against these before any element is decoded
MAX_VEC_LENGTH = 2 ** 32 - 1
MAX_ZERO_SIZED_ELEMENTS = 1 << 16

# Notifications buffered for subscriptions that are not registered (yet) on a websocket connection
MAX_EARLY_NOTIFICATIONS = 256
MAX_EARLY_SUBSCRIPTIONS = 64
