from typing import Callable, List, Optional

from expclient.impl.events.types import (ConversionEvent, EventContext,
                                         ImpressionEvent, VisitorAttribute)
from expclient.impl.model import Experiment, Variation
from expclient.impl.project_config import ProjectConfig
from expclient.impl.util import (current_time_millis, is_finite_number,
                                 is_number, log, new_uuid)
from expclient.impl.validators import is_attribute_valid

REVENUE_TAG = 'revenue'
VALUE_TAG = 'value'

# Event records are built here so that the client only deals with decisions. Like the rest of the
# pipeline, nothing here raises for bad attribute or tag values; such values are left out.


def get_revenue_value(event_tags: Optional[dict]) -> Optional[int]:
    if not event_tags or REVENUE_TAG not in event_tags:
        return None
    raw = event_tags[REVENUE_TAG]
    if isinstance(raw, bool) or not isinstance(raw, int) or not is_finite_number(raw):
        log.info('Failed to parse revenue value "%s" from event tags.' % (raw,))
        return None
    log.info('Parsed revenue value "%d" from event tags.' % raw)
    return raw


def get_numeric_value(event_tags: Optional[dict]) -> Optional[float]:
    if not event_tags or VALUE_TAG not in event_tags:
        return None
    raw = event_tags[VALUE_TAG]
    if not is_number(raw) or not is_finite_number(raw):
        log.info('Failed to parse numeric value "%s" from event tags.' % (raw,))
        return None
    log.info('Parsed numeric value "%s" from event tags.' % raw)
    return float(raw)


class EventFactory:
    def __init__(self, client_name: str, client_version: str,
                 timestamp_fn: Callable[[], int] = current_time_millis,
                 uuid_fn: Callable[[], str] = new_uuid):
        self._client_name = client_name
        self._client_version = client_version
        self._timestamp_fn = timestamp_fn
        self._uuid_fn = uuid_fn

    def context_for(self, config: ProjectConfig) -> EventContext:
        return EventContext(
            config.account_id,
            config.project_id,
            config.revision,
            self._client_name,
            self._client_version,
            config.anonymize_ip,
            config.bot_filtering,
        )

    @staticmethod
    def visitor_attributes(config: ProjectConfig, attributes: Optional[dict]) -> List[VisitorAttribute]:
        out = []
        for key, value in (attributes or {}).items():
            if not is_attribute_valid(key, value):
                continue
            attribute_id = config.get_attribute_id(key)
            if attribute_id is not None:
                out.append(VisitorAttribute(attribute_id, key, value))
        return out

    def new_impression_event(self, config: ProjectConfig, experiment: Optional[Experiment], variation: Optional[Variation],
                             flag_key: str, rule_key: str, rule_type: str, enabled: bool,
                             user_id: str, attributes: Optional[dict]) -> ImpressionEvent:
        return ImpressionEvent(
            self.context_for(config),
            self._timestamp_fn(),
            self._uuid_fn(),
            user_id,
            self.visitor_attributes(config, attributes),
            experiment,
            variation,
            flag_key,
            rule_key,
            rule_type,
            enabled,
        )

    def new_conversion_event(self, config: ProjectConfig, event_key: str, user_id: str, attributes: Optional[dict],
                             event_tags: Optional[dict]) -> Optional[ConversionEvent]:
        """
        Returns None if the event key is not defined in the configuration.
        """
        event = config.get_event(event_key)
        if event is None:
            log.info('Event key "%s" is not in datafile.' % event_key)
            return None
        return ConversionEvent(
            self.context_for(config),
            self._timestamp_fn(),
            self._uuid_fn(),
            user_id,
            self.visitor_attributes(config, attributes),
            event,
            event_tags or None,
            get_revenue_value(event_tags),
            get_numeric_value(event_tags),
        )
