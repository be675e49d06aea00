from typing import List

from expclient.impl.model.entity import *


class Attribute:
    __slots__ = ['_id', '_key']

    def __init__(self, data: dict):
        self._id = req_str(data, 'id')
        self._key = req_str(data, 'key')

    @property
    def id(self) -> str:
        return self._id

    @property
    def key(self) -> str:
        return self._key


class EventDefinition:
    """A conversion event declared in the configuration."""

    __slots__ = ['_id', '_key', '_experiment_ids']

    def __init__(self, data: dict):
        self._id = req_str(data, 'id')
        self._key = req_str(data, 'key')
        self._experiment_ids = opt_str_list(data, 'experimentIds')

    @property
    def id(self) -> str:
        return self._id

    @property
    def key(self) -> str:
        return self._key

    @property
    def experiment_ids(self) -> List[str]:
        return self._experiment_ids
