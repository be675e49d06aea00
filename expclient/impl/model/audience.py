import json
from typing import Optional

from expclient.impl.model.condition import (ConditionNode,
                                            parse_audience_conditions)
from expclient.impl.model.entity import *


class Audience(ModelEntity):
    __slots__ = ['_data', '_id', '_name', '_conditions']

    def __init__(self, data: dict):
        super().__init__(data)
        data = self._data
        self._id = req_str(data, 'id')
        self._name = opt_str(data, 'name')
        raw_conditions = data.get('conditions')
        if isinstance(raw_conditions, str):
            # legacy audiences carry their condition tree as an encoded JSON string
            try:
                raw_conditions = json.loads(raw_conditions)
            except ValueError:
                raise ValueError('error in configuration data: conditions of audience "%s" are not valid JSON' % self._id)
        if raw_conditions is None:
            raise ValueError('error in configuration data: required property "conditions" is missing')
        self._conditions = parse_audience_conditions(raw_conditions)

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def conditions(self) -> ConditionNode:
        return self._conditions
