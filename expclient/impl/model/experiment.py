from typing import Dict, List, Optional

from expclient.impl.model.condition import (ConditionNode,
                                            parse_targeting_expression)
from expclient.impl.model.entity import *

RUNNING_STATUS = 'Running'
RANDOM_GROUP_POLICY = 'random'

MAX_TRAFFIC_VALUE = 10000


class TrafficAllocation:
    __slots__ = ['_entity_id', '_end_of_range']

    def __init__(self, data: dict):
        self._entity_id = req_str(data, 'entityId')
        self._end_of_range = req_int(data, 'endOfRange')

    @property
    def entity_id(self) -> str:
        """A variation id, or a member experiment id when the table belongs to a group."""
        return self._entity_id

    @property
    def end_of_range(self) -> int:
        """Exclusive upper bound of this entry's range, cumulative over [0, 10000)."""
        return self._end_of_range

    def __eq__(self, other) -> bool:
        return isinstance(other, TrafficAllocation) and self._entity_id == other._entity_id and self._end_of_range == other._end_of_range

    def __repr__(self) -> str:
        return 'TrafficAllocation(%s, %d)' % (self._entity_id, self._end_of_range)


def traffic_allocation_list(data: dict, name: str) -> List[TrafficAllocation]:
    entries = list(TrafficAllocation(item) for item in opt_dict_list(data, name))
    last_end = -1
    for entry in entries:
        if entry.end_of_range < last_end:
            raise ValueError('error in configuration data: ranges in "%s" must not decrease' % name)
        last_end = entry.end_of_range
    return entries


class VariableUsage:
    __slots__ = ['_id', '_value']

    def __init__(self, data: dict):
        self._id = req_str(data, 'id')
        self._value = req_str(data, 'value')

    @property
    def id(self) -> str:
        return self._id

    @property
    def value(self) -> str:
        """The variable value as encoded in the configuration; see ``cast_variable_value``."""
        return self._value


class Variation:
    __slots__ = ['_id', '_key', '_feature_enabled', '_variables']

    def __init__(self, data: dict):
        self._id = req_str(data, 'id')
        self._key = req_str(data, 'key')
        self._feature_enabled = opt_bool(data, 'featureEnabled')
        self._variables = dict((usage.id, usage) for usage in (VariableUsage(item) for item in opt_dict_list(data, 'variables')))

    @property
    def id(self) -> str:
        return self._id

    @property
    def key(self) -> str:
        return self._key

    @property
    def feature_enabled(self) -> bool:
        return self._feature_enabled

    @property
    def variables(self) -> Dict[str, VariableUsage]:
        """Variable usages keyed by variable id."""
        return self._variables

    def __eq__(self, other) -> bool:
        return isinstance(other, Variation) and self._id == other._id and self._key == other._key

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return 'Variation(%s, %s)' % (self._id, self._key)


class Experiment(ModelEntity):
    """
    An experiment, a feature test, or a rule of a rollout. All three share the same shape.
    """

    __slots__ = [
        '_data',
        '_id',
        '_key',
        '_status',
        '_layer_id',
        '_group_id',
        '_audience_ids',
        '_audience_conditions',
        '_targeting',
        '_traffic_allocation',
        '_variations',
        '_variations_by_key',
        '_variations_by_id',
        '_forced_variations',
    ]

    def __init__(self, data: dict, group_id: Optional[str] = None):
        super().__init__(data)
        data = self._data
        self._id = req_str(data, 'id')
        self._key = req_str(data, 'key')
        self._status = opt_str(data, 'status') or ''
        self._layer_id = opt_str(data, 'layerId')
        self._group_id = group_id or opt_str(data, 'groupId')
        self._audience_ids = opt_str_list(data, 'audienceIds')
        self._audience_conditions = opt_list(data, 'audienceConditions') if 'audienceConditions' in data else None
        self._targeting = parse_targeting_expression(self._audience_conditions, self._audience_ids)
        self._traffic_allocation = traffic_allocation_list(data, 'trafficAllocation')
        self._variations = list(Variation(item) for item in opt_dict_list(data, 'variations'))
        self._variations_by_key = dict((v.key, v) for v in self._variations)
        self._variations_by_id = dict((v.id, v) for v in self._variations)
        forced = opt_dict(data, 'forcedVariations') or {}
        for user_id, variation_key in forced.items():
            if not isinstance(variation_key, str):
                raise ValueError('error in configuration data: forced variation for user "%s" should be a variation key' % user_id)
        self._forced_variations = forced

    @property
    def id(self) -> str:
        return self._id

    @property
    def key(self) -> str:
        return self._key

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == RUNNING_STATUS

    @property
    def layer_id(self) -> Optional[str]:
        return self._layer_id

    @property
    def group_id(self) -> Optional[str]:
        return self._group_id

    @property
    def audience_ids(self) -> List[str]:
        return self._audience_ids

    @property
    def audience_conditions(self) -> Optional[list]:
        """The raw ``audienceConditions`` expression, or None if the experiment uses ``audienceIds``."""
        return self._audience_conditions

    @property
    def targeting(self) -> Optional[ConditionNode]:
        """Decoded targeting expression over audience ids; None means everyone matches."""
        return self._targeting

    @property
    def traffic_allocation(self) -> List[TrafficAllocation]:
        return self._traffic_allocation

    @property
    def variations(self) -> List[Variation]:
        return self._variations

    @property
    def forced_variations(self) -> Dict[str, str]:
        """The author-configured whitelist: user id to variation key."""
        return self._forced_variations

    def get_variation_by_key(self, key: str) -> Optional[Variation]:
        return self._variations_by_key.get(key)

    def get_variation_by_id(self, variation_id: str) -> Optional[Variation]:
        return self._variations_by_id.get(variation_id)


class Group(ModelEntity):
    __slots__ = ['_data', '_id', '_policy', '_traffic_allocation', '_experiments']

    def __init__(self, data: dict):
        super().__init__(data)
        data = self._data
        self._id = req_str(data, 'id')
        self._policy = req_str(data, 'policy')
        self._traffic_allocation = traffic_allocation_list(data, 'trafficAllocation')
        self._experiments = list(Experiment(item, group_id=self._id) for item in opt_dict_list(data, 'experiments'))

    @property
    def id(self) -> str:
        return self._id

    @property
    def policy(self) -> str:
        return self._policy

    @property
    def is_mutually_exclusive(self) -> bool:
        return self._policy == RANDOM_GROUP_POLICY

    @property
    def traffic_allocation(self) -> List[TrafficAllocation]:
        """Allocation over member experiment ids."""
        return self._traffic_allocation

    @property
    def experiments(self) -> List[Experiment]:
        return self._experiments
