import json
from collections import namedtuple
from typing import List, Optional, Union

from expclient.impl.model import EventDefinition, Experiment, Variation

# These records are the input to the EventProcessor, not the payload that is sent; see
# log_event.py for the wire format. A record is created per impression or conversion, so these
# classes use slots rather than dictionaries.

EventContext = namedtuple('EventContext', ['account_id', 'project_id', 'revision', 'client_name', 'client_version', 'anonymize_ip', 'bot_filtering'])
"""
The dispatch context shared by every record in a batch. Records with different contexts are never
batched together.
"""

VisitorAttribute = namedtuple('VisitorAttribute', ['entity_id', 'key', 'value'])


class EventRecord:
    __slots__ = ['context', 'timestamp', 'uuid', 'user_id', 'attributes']

    def __init__(self, context: EventContext, timestamp: int, uuid: str, user_id: str, attributes: List[VisitorAttribute]):
        self.context = context
        self.timestamp = timestamp
        self.uuid = uuid
        self.user_id = user_id
        self.attributes = attributes

    def __repr__(self) -> str:  # used only in test debugging
        return "%s(%s)" % (self.__class__.__name__, json.dumps(self.to_debugging_dict()))

    def __eq__(self, other) -> bool:  # used only in tests
        return isinstance(other, EventRecord) and self.to_debugging_dict() == other.to_debugging_dict()

    def to_debugging_dict(self) -> dict:
        return {
            "context": self.context._asdict(),
            "timestamp": self.timestamp,
            "uuid": self.uuid,
            "user_id": self.user_id,
            "attributes": [a._asdict() for a in self.attributes],
        }


class ImpressionEvent(EventRecord):
    __slots__ = ['layer_id', 'experiment', 'variation', 'flag_key', 'rule_key', 'rule_type', 'enabled']

    def __init__(
        self,
        context: EventContext,
        timestamp: int,
        uuid: str,
        user_id: str,
        attributes: List[VisitorAttribute],
        experiment: Optional[Experiment],
        variation: Optional[Variation],
        flag_key: str,
        rule_key: str,
        rule_type: str,
        enabled: bool,
    ):
        super().__init__(context, timestamp, uuid, user_id, attributes)
        self.layer_id = None if experiment is None else experiment.layer_id
        self.experiment = experiment
        self.variation = variation
        self.flag_key = flag_key
        self.rule_key = rule_key
        self.rule_type = rule_type
        self.enabled = enabled

    def to_debugging_dict(self) -> dict:
        out = super().to_debugging_dict()
        out.update({
            "type": "impression",
            "layer_id": self.layer_id,
            "experiment_id": None if self.experiment is None else self.experiment.id,
            "variation_id": None if self.variation is None else self.variation.id,
            "flag_key": self.flag_key,
            "rule_key": self.rule_key,
            "rule_type": self.rule_type,
            "enabled": self.enabled,
        })
        return out


class ConversionEvent(EventRecord):
    __slots__ = ['event', 'tags', 'revenue', 'value']

    def __init__(
        self,
        context: EventContext,
        timestamp: int,
        uuid: str,
        user_id: str,
        attributes: List[VisitorAttribute],
        event: EventDefinition,
        tags: Optional[dict],
        revenue: Optional[int] = None,
        value: Optional[float] = None,
    ):
        super().__init__(context, timestamp, uuid, user_id, attributes)
        self.event = event
        self.tags = tags
        self.revenue = revenue
        self.value = value

    def to_debugging_dict(self) -> dict:
        out = super().to_debugging_dict()
        out.update({
            "type": "conversion",
            "event_id": self.event.id,
            "event_key": self.event.key,
            "tags": self.tags,
            "revenue": self.revenue,
            "value": self.value,
        })
        return out


AnyEventRecord = Union[ImpressionEvent, ConversionEvent]
