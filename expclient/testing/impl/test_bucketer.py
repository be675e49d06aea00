import pytest

from expclient.impl.bucketer import (Bucketer, bucket, find_bucket,
                                     generate_bucket_value)
from expclient.impl.model import TrafficAllocation
from expclient.impl.project_config import ProjectConfig
from expclient.testing.builders import *
from expclient.testing.datafiles import datafile


def allocation(*entries):
    return [TrafficAllocation({'entityId': e, 'endOfRange': r}) for e, r in entries]


@pytest.fixture
def config():
    return ProjectConfig.from_datafile(datafile())


class TestBucketValue:
    @pytest.mark.parametrize("key,expected", [
        ('ppid1' + '1886780721', 5254),
        ('ppid2' + '1886780721', 4299),
        ('ppid2' + '1886780722', 2434),
        ('ppid3' + '1886780721', 5439),
    ])
    def test_known_bucket_values(self, key, expected):
        assert generate_bucket_value(key) == expected

    def test_bucket_value_is_deterministic(self):
        values = set(generate_bucket_value('some_user' + '111127') for _ in range(20))
        assert len(values) == 1

    def test_bucket_value_is_in_range(self):
        for i in range(500):
            value = generate_bucket_value('user%d' % i + 'exp')
            assert 0 <= value < 10000


class TestFindBucket:
    def test_concrete_ranges(self):
        table = allocation(('111128', 5000), ('111129', 10000))
        assert find_bucket(4000, table) == '111128'
        assert find_bucket(7000, table) == '111129'

    def test_end_of_range_is_exclusive(self):
        table = allocation(('a', 5000), ('b', 10000))
        assert find_bucket(4999, table) == 'a'
        assert find_bucket(5000, table) == 'b'

    def test_value_past_last_range_is_not_bucketed(self):
        table = allocation(('a', 4000), ('b', 9000))
        assert find_bucket(9000, table) is None
        assert find_bucket(9999, table) is None

    def test_empty_entity_id_is_not_bucketed(self):
        table = allocation(('a', 5000), ('', 10000))
        assert find_bucket(6000, table) is None

    def test_empty_table_is_not_bucketed(self):
        assert find_bucket(0, []) is None

    def test_unallocated_traffic_fraction(self):
        table = allocation(('a', 3000), ('b', 7500))
        not_bucketed = len([v for v in range(10000) if find_bucket(v, table) is None])
        assert not_bucketed == 10000 - 7500


class TestBucketer:
    def test_bucket_hashes_bucketing_id_with_entity_id(self):
        table = allocation(('x', 5254), ('y', 10000))
        assert bucket('ppid1', '1886780721', table) == 'y'
        table = allocation(('x', 5255), ('y', 10000))
        assert bucket('ppid1', '1886780721', table) == 'x'

    def test_user_id_is_bucketed(self, config):
        experiment = config.get_experiment_from_key('testExperiment')
        variation = Bucketer().bucket(config, experiment, 'testBucketingIdControl', 'testBucketingIdControl')
        assert variation.id == '111128'

    def test_bucketing_id_changes_bucket(self, config):
        experiment = config.get_experiment_from_key('testExperiment')
        variation = Bucketer().bucket(config, experiment, 'testBucketingIdControl', '123456789')
        assert variation.id == '111129'

    def test_mutually_exclusive_group_is_resolved_first(self, config):
        bucketer = Bucketer()
        in_group = config.get_experiment_from_key('groupExperiment2')
        other = config.get_experiment_from_key('groupExperiment1')
        assert bucketer.bucket(config, in_group, 'testBucketingIdControl', '123456789') is not None
        reasons = []
        assert bucketer.bucket(config, other, 'testBucketingIdControl', '123456789', reasons) is None
        assert len(reasons) > 0

    def test_overlapping_group_skips_group_bucketing(self, config):
        experiment = config.get_experiment_from_key('overlappingGroupExperiment1')
        for i in range(20):
            assert Bucketer().bucket(config, experiment, 'user%d' % i, 'user%d' % i) is not None

    def test_missing_group_is_not_bucketed(self):
        config = DatafileBuilder().experiments(
            ExperimentBuilder('1').variation('v1').allocation('v1', 10000)
        ).build()
        experiment = Experiment(dict(config.get_experiment_from_key('1').to_json_dict(), groupId='404'))
        assert Bucketer().bucket(config, experiment, 'user', 'user') is None

    def test_invalid_variation_id_is_not_bucketed(self):
        config = DatafileBuilder().experiments(
            ExperimentBuilder('1').variation('v1').allocation('no_such_variation', 10000)
        ).build()
        experiment = config.get_experiment_from_key('1')
        assert Bucketer().bucket(config, experiment, 'user', 'user') is None

    def test_same_inputs_always_give_same_variation(self, config):
        experiment = config.get_experiment_from_key('testExperiment')
        bucketer = Bucketer()
        results = set()
        for _ in range(10):
            v = bucketer.bucket(config, experiment, 'repeat_user', 'repeat_user')
            results.add(None if v is None else v.id)
        assert len(results) == 1
