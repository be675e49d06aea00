"""
Translation of queued event records into the JSON payload accepted by the events endpoint.
"""

import json
from typing import Dict, List, Optional

from expclient.impl.events.types import (AnyEventRecord, ConversionEvent,
                                         EventRecord, ImpressionEvent)

ACTIVATE_EVENT_KEY = 'campaign_activated'
CUSTOM_ATTRIBUTE_FEATURE_TYPE = 'custom'
BOT_FILTERING_KEY = '$opt_bot_filtering'


class LogEvent:
    """
    A batch that is ready for delivery: the destination and the request body.
    """

    __slots__ = ['__url', '__params', '__http_verb', '__headers']

    def __init__(self, url: str, params: dict, http_verb: str = 'POST', headers: Optional[Dict[str, str]] = None):
        self.__url = url
        self.__params = params
        self.__http_verb = http_verb
        self.__headers = headers or {'Content-Type': 'application/json'}

    @property
    def url(self) -> str:
        return self.__url

    @property
    def params(self) -> dict:
        return self.__params

    @property
    def http_verb(self) -> str:
        return self.__http_verb

    @property
    def headers(self) -> Dict[str, str]:
        return self.__headers

    @property
    def visitor_count(self) -> int:
        return len(self.__params.get('visitors', []))

    def to_json(self) -> str:
        return json.dumps(self.__params, separators=(',', ':'))

    def __repr__(self) -> str:
        return 'LogEvent(%s, %s)' % (self.__url, self.to_json())


def _make_visitor(record: EventRecord) -> dict:
    attributes = [{
        'entity_id': a.entity_id,
        'key': a.key,
        'type': CUSTOM_ATTRIBUTE_FEATURE_TYPE,
        'value': a.value,
    } for a in record.attributes]
    if isinstance(record.context.bot_filtering, bool):
        attributes.append({
            'entity_id': BOT_FILTERING_KEY,
            'key': BOT_FILTERING_KEY,
            'type': CUSTOM_ATTRIBUTE_FEATURE_TYPE,
            'value': record.context.bot_filtering,
        })
    return {'visitor_id': record.user_id, 'attributes': attributes, 'snapshots': []}


def _make_decision_snapshot(record: ImpressionEvent) -> dict:
    return {
        'decisions': [{
            'campaign_id': record.layer_id,
            'experiment_id': None if record.experiment is None else record.experiment.id,
            'variation_id': None if record.variation is None else record.variation.id,
            'metadata': {
                'flag_key': record.flag_key,
                'rule_key': record.rule_key,
                'rule_type': record.rule_type,
                'variation_key': None if record.variation is None else record.variation.key,
                'enabled': record.enabled,
            },
        }],
        'events': [{
            'entity_id': record.layer_id,
            'timestamp': record.timestamp,
            'key': ACTIVATE_EVENT_KEY,
            'uuid': record.uuid,
        }],
    }


def _make_conversion_snapshot(record: ConversionEvent) -> dict:
    event = {
        'entity_id': record.event.id,
        'key': record.event.key,
        'timestamp': record.timestamp,
        'uuid': record.uuid,
    }
    if record.tags:
        event['tags'] = record.tags
    if record.revenue is not None:
        event['revenue'] = record.revenue
    if record.value is not None:
        event['value'] = record.value
    return {'events': [event]}


def make_batch_payload(records: List[AnyEventRecord]) -> dict:
    """
    Builds the payload for a non-empty list of records sharing one dispatch context. Consecutive or
    interleaved records for the same user with the same attributes are merged into one visitor
    entry whose snapshots keep arrival order. A record whose attributes differ gets its own entry.
    """
    context = records[0].context
    visitors = []  # type: List[dict]
    visitors_by_key = {}  # type: Dict[tuple, dict]
    for record in records:
        key = (record.user_id, tuple((a.entity_id, a.key, type(a.value), a.value) for a in record.attributes))
        visitor = visitors_by_key.get(key)
        if visitor is None:
            visitor = _make_visitor(record)
            visitors_by_key[key] = visitor
            visitors.append(visitor)
        if isinstance(record, ImpressionEvent):
            visitor['snapshots'].append(_make_decision_snapshot(record))
        elif isinstance(record, ConversionEvent):
            visitor['snapshots'].append(_make_conversion_snapshot(record))
    return {
        'account_id': context.account_id,
        'project_id': context.project_id,
        'revision': context.revision,
        'client_name': context.client_name,
        'client_version': context.client_version,
        'anonymize_ip': context.anonymize_ip,
        'enrich_decisions': True,
        'visitors': visitors,
    }


def build_log_event(records: List[AnyEventRecord], events_uri: str) -> LogEvent:
    return LogEvent(events_uri, make_batch_payload(records))
