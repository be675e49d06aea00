from typing import List, Optional

from expclient.impl.model.entity import *
from expclient.impl.model.experiment import Experiment

VARIABLE_TYPE_BOOLEAN = 'boolean'
VARIABLE_TYPE_INTEGER = 'integer'
VARIABLE_TYPE_DOUBLE = 'double'
VARIABLE_TYPE_STRING = 'string'
VARIABLE_TYPE_JSON = 'json'

VARIABLE_TYPES = (VARIABLE_TYPE_BOOLEAN, VARIABLE_TYPE_INTEGER, VARIABLE_TYPE_DOUBLE, VARIABLE_TYPE_STRING, VARIABLE_TYPE_JSON)


class Variable:
    __slots__ = ['_id', '_key', '_type', '_default_value']

    def __init__(self, data: dict):
        self._id = req_str(data, 'id')
        self._key = req_str(data, 'key')
        self._type = req_str(data, 'type')
        # older configurations declare JSON variables as a string with a "json" sub-type
        if self._type == VARIABLE_TYPE_STRING and opt_str(data, 'subType') == VARIABLE_TYPE_JSON:
            self._type = VARIABLE_TYPE_JSON
        if self._type not in VARIABLE_TYPES:
            raise ValueError('error in configuration data: variable "%s" has unknown type "%s"' % (self._key, self._type))
        self._default_value = req_str(data, 'defaultValue')

    @property
    def id(self) -> str:
        return self._id

    @property
    def key(self) -> str:
        return self._key

    @property
    def type(self) -> str:
        return self._type

    @property
    def default_value(self) -> str:
        return self._default_value


class FeatureFlag(ModelEntity):
    __slots__ = ['_data', '_id', '_key', '_experiment_ids', '_rollout_id', '_variables', '_variables_by_key']

    def __init__(self, data: dict):
        super().__init__(data)
        data = self._data
        self._id = req_str(data, 'id')
        self._key = req_str(data, 'key')
        self._experiment_ids = opt_str_list(data, 'experimentIds')
        self._rollout_id = opt_str(data, 'rolloutId') or None
        self._variables = list(Variable(item) for item in opt_dict_list(data, 'variables'))
        self._variables_by_key = dict((v.key, v) for v in self._variables)

    @property
    def id(self) -> str:
        return self._id

    @property
    def key(self) -> str:
        return self._key

    @property
    def experiment_ids(self) -> List[str]:
        """Ids of the feature tests attached to this feature, in evaluation order."""
        return self._experiment_ids

    @property
    def rollout_id(self) -> Optional[str]:
        return self._rollout_id

    @property
    def variables(self) -> List[Variable]:
        return self._variables

    def get_variable(self, key: str) -> Optional[Variable]:
        return self._variables_by_key.get(key)


class Rollout(ModelEntity):
    __slots__ = ['_data', '_id', '_rules']

    def __init__(self, data: dict):
        super().__init__(data)
        data = self._data
        self._id = req_str(data, 'id')
        self._rules = list(Experiment(item) for item in opt_dict_list(data, 'experiments'))

    @property
    def id(self) -> str:
        return self._id

    @property
    def rules(self) -> List[Experiment]:
        """Targeting rules in evaluation order; the last one is the "Everyone Else" rule."""
        return self._rules
