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

from .base import *
from .builder import *
from .keypair import *
from .receipt import *
from .rpc import *
from .storage import *
from .tracker import *
from .scale.extrinsic import Call, Era
from .scale.metadata import resolve

__all__ = (base.__all__ + builder.__all__ + keypair.__all__ + receipt.__all__ + rpc.__all__ + storage.__all__ +
           tracker.__all__ + ['Call', 'Era', 'resolve'])
