"""
Deterministic placement of users into traffic allocation ranges. The hash function, seed and
scaling must stay identical to every other SDK that reads the same configuration, otherwise a
user would see different variations depending on which SDK decided for them.
"""

import math
from typing import List, Optional

import mmh3

from expclient.impl.model.experiment import (MAX_TRAFFIC_VALUE, Experiment,
                                             TrafficAllocation, Variation)
from expclient.impl.util import log

HASH_SEED = 1
MAX_HASH_VALUE = 2 ** 32


def generate_bucket_value(bucketing_key: str) -> int:
    """Maps a key onto [0, 10000) with 32-bit MurmurHash3 (x86 variant, seed 1)."""
    hash_value = mmh3.hash(bucketing_key, HASH_SEED, signed=False)
    ratio = hash_value / MAX_HASH_VALUE
    return int(math.floor(ratio * MAX_TRAFFIC_VALUE))


def find_bucket(bucket_value: int, traffic_allocation: List[TrafficAllocation]) -> Optional[str]:
    for entry in traffic_allocation:
        if bucket_value < entry.end_of_range:
            # an empty entity id reserves a range for "no variation"
            return entry.entity_id or None
    return None


def bucket(bucketing_id: str, entity_id: str, traffic_allocation: List[TrafficAllocation]) -> Optional[str]:
    """
    Places a bucketing id into a traffic allocation table.

    :param bucketing_id: the user's bucketing id
    :param entity_id: the id of the experiment or group that owns the table
    :param traffic_allocation: cumulative ranges over [0, 10000)
    :return: the entity id of the matching range, or None if the user falls outside every range
    """
    bucket_value = generate_bucket_value(bucketing_id + entity_id)
    log.debug('Assigned bucket %d to bucketing id "%s" for entity "%s"' % (bucket_value, bucketing_id, entity_id))
    return find_bucket(bucket_value, traffic_allocation)


class Bucketer:
    """
    Buckets users into experiments, resolving mutually exclusive groups first.
    """

    def bucket(self, config, experiment: Experiment, user_id: str, bucketing_id: str,
               reasons: Optional[List[str]] = None) -> Optional[Variation]:
        """
        :param config: the :class:`expclient.impl.project_config.ProjectConfig` the experiment came from
        :param experiment: the experiment to bucket into
        :param user_id: used only for log messages
        :param bucketing_id: the string that is hashed
        :param reasons: if not None, human-readable explanations are appended to it
        :return: the variation, or None if the user is not bucketed
        """
        def note(message: str):
            log.info(message)
            if reasons is not None:
                reasons.append(message)

        if experiment.group_id:
            group = config.get_group(experiment.group_id)
            if group is None:
                note('Group "%s" referenced by experiment "%s" does not exist.' % (experiment.group_id, experiment.key))
                return None
            if group.is_mutually_exclusive:
                chosen_id = bucket(bucketing_id, group.id, group.traffic_allocation)
                if chosen_id is None:
                    note('User "%s" is not in any experiment of group %s.' % (user_id, group.id))
                    return None
                if chosen_id != experiment.id:
                    note('User "%s" is not in experiment "%s" of group %s.' % (user_id, experiment.key, group.id))
                    return None
                note('User "%s" is in experiment "%s" of group %s.' % (user_id, experiment.key, group.id))

        variation_id = bucket(bucketing_id, experiment.id, experiment.traffic_allocation)
        if variation_id is None:
            return None
        variation = experiment.get_variation_by_id(variation_id)
        if variation is None:
            log.warning('Bucketed into an invalid variation ID "%s" in experiment "%s".' % (variation_id, experiment.key))
            return None
        return variation
