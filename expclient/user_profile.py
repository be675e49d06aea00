"""
This submodule contains the user profile type used for sticky bucketing and a simple in-memory
implementation of :class:`expclient.interfaces.UserProfileStore`.
"""

import json
from typing import Dict, Optional

from expclient.impl.rwlock import ReadWriteLock
from expclient.interfaces import UserProfileStore

USER_ID_KEY = 'user_id'
EXPERIMENT_BUCKET_MAP_KEY = 'experiment_bucket_map'
VARIATION_ID_KEY = 'variation_id'


class UserProfile:
    """
    The variations a single user has been bucketed into, keyed by experiment id.
    """

    def __init__(self, user_id: str, experiment_bucket_map: Optional[Dict[str, dict]] = None):
        self.user_id = user_id
        self.experiment_bucket_map = experiment_bucket_map or {}

    @staticmethod
    def from_dict(data: dict) -> 'UserProfile':
        """
        Decodes a profile returned by a store.

        :raises ValueError: if the data does not have the profile shape
        """
        if not isinstance(data, dict):
            raise ValueError('user profile should be a dict but was %s' % data.__class__)
        user_id = data.get(USER_ID_KEY)
        bucket_map = data.get(EXPERIMENT_BUCKET_MAP_KEY)
        if not isinstance(user_id, str) or not isinstance(bucket_map, dict):
            raise ValueError('user profile is missing "%s" or "%s"' % (USER_ID_KEY, EXPERIMENT_BUCKET_MAP_KEY))
        return UserProfile(user_id, dict((k, dict(v)) for k, v in bucket_map.items() if isinstance(v, dict)))

    def get_variation_for_experiment(self, experiment_id: str) -> Optional[str]:
        decision = self.experiment_bucket_map.get(experiment_id)
        if decision is None:
            return None
        variation_id = decision.get(VARIATION_ID_KEY)
        return variation_id if isinstance(variation_id, str) else None

    def save_variation_for_experiment(self, experiment_id: str, variation_id: str):
        self.experiment_bucket_map[experiment_id] = {VARIATION_ID_KEY: variation_id}

    def to_json_dict(self) -> dict:
        return {
            USER_ID_KEY: self.user_id,
            EXPERIMENT_BUCKET_MAP_KEY: dict((k, dict(v)) for k, v in self.experiment_bucket_map.items()),
        }

    def __eq__(self, other) -> bool:
        return isinstance(other, UserProfile) and self.to_json_dict() == other.to_json_dict()

    def __repr__(self) -> str:
        return 'UserProfile(%s)' % json.dumps(self.to_json_dict())


class InMemoryUserProfileStore(UserProfileStore):
    """
    A user profile store that keeps profiles in a dict for the life of the process. Safe for
    concurrent use.
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._profiles = {}  # type: Dict[str, dict]

    def lookup(self, user_id: str) -> Optional[dict]:
        with self._lock.read():
            profile = self._profiles.get(user_id)
            return None if profile is None else json.loads(json.dumps(profile))

    def save(self, user_profile: dict):
        copied = json.loads(json.dumps(user_profile))
        with self._lock.write():
            self._profiles[copied[USER_ID_KEY]] = copied

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._profiles)
