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

from scalecodec.types import GenericScaleInfoEvent, GenericEventRecord

from substratetx.exceptions import UnknownEvent
from .base import ScaleBytes
from .checked import CheckedEnum, CheckedStruct, describe_type

__all__ = ['EventRecord', 'CheckedScaleInfoEvent', 'CheckedEventRecord', 'decode_events', 'EVENT_TYPES']


class CheckedScaleInfoEvent(GenericScaleInfoEvent, CheckedEnum):
    """
    Outer event enum of the runtime (`RuntimeEvent`): pallet index followed by the event of that pallet
    """

    def process(self):
        offset = self.data.offset
        self.check_remaining(2, 'event index')
        module_index, event_index = self.data.data[offset], self.data.data[offset + 1]

        event_enum = None
        if module_index < len(self.type_mapping) and self.type_mapping[module_index][0] is not None:
            event_enum = self.runtime_config.get_decoder_class(self.type_mapping[module_index][1])

        if event_enum is None or not event_enum.type_mapping or event_index >= len(event_enum.type_mapping) \
                or event_enum.type_mapping[event_index][0] is None:
            raise UnknownEvent(
                f'Event index 0x{module_index:02x}{event_index:02x} not found in {describe_type(self.__class__)}',
                offset=offset
            )

        return super().process()


class CheckedEventRecord(GenericEventRecord, CheckedStruct):
    pass


class EventRecord:
    """
    Event emitted in a block: the phase in which it was emitted, the event itself with its decoded attributes and
    the topics it was indexed under
    """

    def __init__(self, phase: Union[str, dict], event: 'EventDescriptor', attributes: any, topics: list):
        self.phase = phase
        self.event = event
        self.attributes = attributes
        self.topics = topics

    @classmethod
    def from_scale_object(cls, record_obj: CheckedEventRecord, registry: 'Registry') -> 'EventRecord':
        event_obj = record_obj.value_object['event']
        module_index, event_index = event_obj.index, event_obj.value_object[1].index

        return cls(
            phase=record_obj.value_object['phase'].value,
            event=registry.get_event_by_index(module_index, event_index),
            attributes=record_obj.value['attributes'],
            topics=record_obj.value['topics']
        )

    @property
    def extrinsic_idx(self) -> Optional[int]:
        if type(self.phase) is dict and 'ApplyExtrinsic' in self.phase:
            return self.phase['ApplyExtrinsic']

    @property
    def module_id(self) -> str:
        return self.event.module.name

    @property
    def event_id(self) -> str:
        return self.event.name

    @property
    def event_index(self) -> str:
        return self.event.lookup

    @property
    def value(self) -> dict:
        return {
            'phase': self.phase,
            'extrinsic_idx': self.extrinsic_idx,
            'event_index': self.event_index,
            'module_id': self.module_id,
            'event_id': self.event_id,
            'attributes': self.attributes,
            'topics': self.topics
        }

    def __repr__(self):
        return f'<EventRecord {self.module_id}.{self.event_id} (phase {self.phase})>'


def decode_events(data: Union[bytes, str, ScaleBytes], registry: 'Registry') -> list:
    """
    Decodes the value of the `System.Events` storage item: a compact length followed by the event records in the
    order they were emitted

    Parameters
    ----------
    data: raw storage value
    registry: registry of the runtime of the block the events belong to

    Returns
    -------
    list of EventRecord
    """
    events_obj = registry.decode_object(f'scale_info::{registry.events_type_id}', data)

    return [EventRecord.from_scale_object(record_obj, registry) for record_obj in events_obj.value_object]


EVENT_TYPES = {
    '*::Event': 'CheckedScaleInfoEvent',
    '*::RuntimeEvent': 'CheckedScaleInfoEvent',
    '*::runtime::Event': 'CheckedScaleInfoEvent',
    '*::EventRecord': 'CheckedEventRecord',
}
