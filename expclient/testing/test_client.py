import pytest

from expclient.client import ExpClient
from expclient.config import Config
from expclient.config_source import StaticConfigSource
from expclient.decision import DecideOption, FlagDecision
from expclient.errors import ConfigError, InputValidationError
from expclient.impl.events.types import ConversionEvent, ImpressionEvent
from expclient.notifications import NotificationType
from expclient.testing.datafiles import datafile
from expclient.testing.mock_components import (MockEventProcessor,
                                               RecordingDispatcher,
                                               RecordingErrorHandler,
                                               RecordingProfileStore)

FIREFOX = {'browser_type': 'firefox'}
CHROME = {'browser_type': 'chrome'}


def make_client(document=None, **kwargs):
    kwargs.setdefault('event_processor_class', MockEventProcessor)
    kwargs.setdefault('event_dispatcher', RecordingDispatcher())
    return ExpClient(datafile() if document is None else document, Config(**kwargs))


def flag_decisions_datafile():
    document = datafile()
    document['sendFlagDecisions'] = True
    return document


def get_events(client):
    return client._event_processor.events


def listen(client, notification_type):
    received = []
    client.notification_center.add_notification_listener(notification_type, received.append)
    return received


class TestConstruction:
    def test_client_with_datafile_is_valid(self):
        client = make_client()
        assert client.is_valid()

    def test_invalid_datafile_raises(self):
        with pytest.raises(ConfigError):
            ExpClient('not json', Config(send_events=False))

    def test_client_without_configuration_returns_defaults(self):
        client = ExpClient(config=Config(send_events=False), config_source=StaticConfigSource())
        assert client.is_valid() is False
        assert client.activate('testExperiment', 'user1') is None
        assert client.get_variation('testExperiment', 'user1') is None
        assert client.is_feature_enabled('test_feature_in_rollout', 'user') is False
        assert client.get_enabled_features('user') == []
        assert client.get_feature_variable('test_feature_in_rollout', 'message', 'user') is None
        assert client.get_all_feature_variables('test_feature_in_rollout', 'user') is None
        assert client.set_forced_variation('testExperiment', 'user', 'control') is False
        assert client.decide('user', 'test_feature_in_rollout').reasons == ['Configuration is not available.']
        assert client.decide_all('user') == {}
        client.track('testEvent', 'user')

    def test_config_update_is_picked_up_and_notified(self):
        source = StaticConfigSource()
        client = ExpClient(config=Config(send_events=False), config_source=source)
        updates = listen(client, NotificationType.CONFIG_UPDATE)
        source.update(datafile())
        assert client.is_valid()
        assert updates == [{'revision': '42'}]
        assert client.activate('testExperiment', 'user1') == 'control'

    def test_close_unsubscribes_from_config_updates(self):
        source = StaticConfigSource(datafile())
        client = ExpClient(config=Config(send_events=False), config_source=source)
        updates = listen(client, NotificationType.CONFIG_UPDATE)
        client.close().result(5)
        document = datafile()
        document['revision'] = '43'
        source.update(document)
        assert updates == []

    def test_close_closes_event_processor(self):
        client = make_client()
        client.close()
        assert client._event_processor.closed is True

    def test_client_can_be_used_in_with_statement(self):
        with make_client() as client:
            assert client.activate('testExperiment', 'user1') == 'control'
        assert client._event_processor.closed is True

    def test_flush_is_forwarded_to_event_processor(self):
        client = make_client()
        client.flush().result(5)
        assert client._event_processor.flush_count == 1


class TestExperiments:
    def test_activate_records_impression(self):
        client = make_client()
        assert client.activate('testExperiment', 'user1', FIREFOX) == 'control'
        events = get_events(client)
        assert len(events) == 1
        e = events[0]
        assert isinstance(e, ImpressionEvent)
        assert e.user_id == 'user1'
        assert e.experiment.key == 'testExperiment'
        assert e.variation.key == 'control'
        assert (e.flag_key, e.rule_key, e.rule_type, e.enabled) == ('', 'testExperiment', 'experiment', True)
        assert [a.key for a in e.attributes] == ['browser_type']

    def test_activate_sends_activate_notification(self):
        client = make_client()
        activations = listen(client, NotificationType.ACTIVATE)
        client.activate('testExperiment', 'user1')
        assert len(activations) == 1
        assert activations[0]['user_id'] == 'user1'
        assert activations[0]['experiment'].key == 'testExperiment'
        assert activations[0]['variation'].key == 'control'
        assert activations[0]['event'] is get_events(client)[0]

    def test_activate_without_variation_records_nothing(self):
        client = make_client()
        assert client.activate('testExperimentNotRunning', 'user1') is None
        assert client.activate('testExperimentWithAudiences', 'someone', CHROME) is None
        assert client.activate('nonexistent', 'user1') is None
        assert get_events(client) == []

    def test_activate_with_invalid_input_reports_error(self):
        errors = RecordingErrorHandler()
        client = make_client(error_handler=errors)
        assert client.activate('testExperiment', None) is None
        assert client.activate('', 'user1') is None
        assert client.activate('testExperiment', 'user1', 'not a dict') is None
        assert len(errors.errors) == 3
        assert all(isinstance(e, InputValidationError) for e in errors.errors)
        assert get_events(client) == []

    def test_failing_error_handler_does_not_raise(self):
        class FailingHandler(RecordingErrorHandler):
            def handle_error(self, error):
                raise Exception("deliberate error")

        client = make_client(error_handler=FailingHandler())
        assert client.activate('testExperiment', None) is None

    def test_get_variation_records_no_impression(self):
        client = make_client()
        assert client.get_variation('testExperiment', 'user2') == 'variation'
        assert get_events(client) == []

    def test_get_variation_sends_decision_notification(self):
        client = make_client()
        decisions = listen(client, NotificationType.DECISION)
        client.get_variation('testExperiment', 'user1')
        client.get_variation('featureExperiment', 'forced_on')
        assert decisions[0] == {
            'type': 'ab-test',
            'user_id': 'user1',
            'attributes': {},
            'decision_info': {'experiment_key': 'testExperiment', 'variation_key': 'control'},
        }
        assert decisions[1]['type'] == 'feature-test'

    def test_forced_variation(self):
        client = make_client()
        assert client.set_forced_variation('testExperiment', 'user1', 'variation') is True
        assert client.get_forced_variation('testExperiment', 'user1') == 'variation'
        assert client.activate('testExperiment', 'user1') == 'variation'
        assert client.set_forced_variation('testExperiment', 'user1', None) is True
        assert client.get_forced_variation('testExperiment', 'user1') is None
        assert client.activate('testExperiment', 'user1') == 'control'

    def test_invalid_forced_variation(self):
        client = make_client()
        assert client.set_forced_variation('testExperiment', 'user1', 'nonexistent') is False
        assert client.set_forced_variation('nonexistent', 'user1', 'control') is False
        assert client.set_forced_variation('testExperiment', 'user1', '') is False

    def test_user_profile_store_is_used(self):
        store = RecordingProfileStore()
        client = make_client(user_profile_store=store)
        client.activate('testExperiment', 'testBucketingIdControl')
        assert store.saves == [{
            'user_id': 'testBucketingIdControl',
            'experiment_bucket_map': {'111127': {'variation_id': '111128'}},
        }]


class TestTrack:
    def test_track_records_conversion(self):
        client = make_client()
        tracks = listen(client, NotificationType.TRACK)
        client.track('Total Revenue', 'user', FIREFOX, {'revenue': 4200})
        events = get_events(client)
        assert len(events) == 1
        e = events[0]
        assert isinstance(e, ConversionEvent)
        assert e.event.key == 'Total Revenue'
        assert e.revenue == 4200
        assert len(tracks) == 1
        assert tracks[0]['event_key'] == 'Total Revenue'
        assert tracks[0]['event_tags'] == {'revenue': 4200}
        assert tracks[0]['event'] is e

    def test_unknown_event_is_not_tracked(self):
        client = make_client()
        client.track('nonexistent', 'user')
        assert get_events(client) == []

    def test_invalid_event_tags_are_rejected(self):
        errors = RecordingErrorHandler()
        client = make_client(error_handler=errors)
        client.track('testEvent', 'user', None, 'not a dict')
        assert get_events(client) == []
        assert len(errors.errors) == 1


class TestFeatures:
    def test_feature_test_decision_records_impression(self):
        client = make_client()
        assert client.is_feature_enabled('test_feature_in_experiment', 'forced_on') is True
        e = get_events(client)[0]
        assert (e.flag_key, e.rule_key, e.rule_type, e.enabled) == ('test_feature_in_experiment', 'featureExperiment', 'feature-test', True)

    def test_disabled_variation_records_impression(self):
        client = make_client()
        assert client.is_feature_enabled('test_feature_in_experiment', 'forced_off') is False
        assert get_events(client)[0].enabled is False

    def test_rollout_decision_records_no_impression_by_default(self):
        client = make_client()
        assert client.is_feature_enabled('test_feature_in_rollout', 'user', FIREFOX) is True
        assert get_events(client) == []

    def test_rollout_decision_records_impression_when_flag_decisions_are_sent(self):
        client = make_client(flag_decisions_datafile())
        assert client.is_feature_enabled('test_feature_in_rollout', 'user', FIREFOX) is True
        assert client.is_feature_enabled('test_feature_off', 'user') is False
        events = get_events(client)
        assert len(events) == 2
        assert (events[0].rule_key, events[0].rule_type, events[0].variation.key) == ('211127', 'rollout', '211129')
        assert events[1].experiment is None
        assert events[1].variation is None
        assert events[1].enabled is False

    def test_feature_decision_notification(self):
        client = make_client()
        decisions = listen(client, NotificationType.DECISION)
        client.is_feature_enabled('test_feature_in_experiment', 'forced_on')
        client.is_feature_enabled('test_feature_in_rollout', 'user', CHROME)
        assert decisions[0]['type'] == 'feature'
        assert decisions[0]['decision_info'] == {
            'feature_key': 'test_feature_in_experiment',
            'feature_enabled': True,
            'source': 'feature-test',
            'source_info': {'experiment_key': 'featureExperiment', 'variation_key': 'feature_on'},
        }
        assert decisions[1]['decision_info']['source'] == 'rollout'
        assert decisions[1]['decision_info']['source_info'] == {}

    def test_unknown_feature_is_disabled(self):
        client = make_client()
        assert client.is_feature_enabled('nonexistent', 'user') is False

    def test_get_enabled_features(self):
        client = make_client()
        assert client.get_enabled_features('forced_on', CHROME) == [
            'test_feature_in_experiment',
            'test_feature_in_rollout',
            'test_feature_in_experiment_and_rollout',
        ]
        assert client.get_enabled_features('forced_off', CHROME) == [
            'test_feature_in_rollout',
            'test_feature_in_experiment_and_rollout',
        ]


class TestFeatureVariables:
    def test_typed_variables_from_experiment_variation(self):
        client = make_client()
        assert client.get_feature_variable_boolean('test_feature_in_experiment', 'is_working', 'forced_on') is False
        assert client.get_feature_variable_integer('test_feature_in_experiment', 'count', 'forced_on') == 42

    def test_disabled_feature_returns_default_values(self):
        client = make_client()
        assert client.get_feature_variable_boolean('test_feature_in_experiment', 'is_working', 'forced_off') is True
        assert client.get_feature_variable_integer('test_feature_in_experiment', 'count', 'forced_off') == 10

    def test_variables_from_rollout_rule(self):
        client = make_client()
        assert client.get_feature_variable_string('test_feature_in_rollout', 'message', 'user', FIREFOX) == 'firefox rule'
        assert client.get_feature_variable_string('test_feature_in_rollout', 'message', 'user', CHROME) == 'everyone'
        assert client.get_feature_variable_double('test_feature_in_rollout', 'price', 'user', FIREFOX) == 9.99
        assert client.get_feature_variable_json('test_feature_in_rollout', 'settings', 'user', FIREFOX) == {'color': 'orange'}
        assert client.get_feature_variable_json('test_feature_in_rollout', 'settings', 'user', CHROME) == {'color': 'blue'}

    def test_untyped_getter_uses_declared_type(self):
        client = make_client()
        assert client.get_feature_variable('test_feature_in_rollout', 'settings', 'user', FIREFOX) == {'color': 'orange'}
        assert client.get_feature_variable('test_feature_in_experiment', 'count', 'forced_on') == 42

    def test_type_mismatch_returns_none(self):
        client = make_client()
        assert client.get_feature_variable_integer('test_feature_in_rollout', 'message', 'user') is None
        assert client.get_feature_variable_string('test_feature_in_rollout', 'settings', 'user') is None

    def test_unknown_feature_or_variable_returns_none(self):
        client = make_client()
        assert client.get_feature_variable('nonexistent', 'message', 'user') is None
        assert client.get_feature_variable('test_feature_in_rollout', 'nonexistent', 'user') is None

    def test_variable_decision_notification(self):
        client = make_client()
        decisions = listen(client, NotificationType.DECISION)
        client.get_feature_variable_string('test_feature_in_rollout', 'message', 'user', CHROME)
        assert decisions[0]['type'] == 'feature-variable'
        info = decisions[0]['decision_info']
        assert info['variable_key'] == 'message'
        assert info['variable_value'] == 'everyone'
        assert info['variable_type'] == 'string'
        assert info['feature_enabled'] is True

    def test_get_all_feature_variables(self):
        client = make_client()
        decisions = listen(client, NotificationType.DECISION)
        assert client.get_all_feature_variables('test_feature_in_rollout', 'user', CHROME) == {
            'message': 'everyone',
            'price': 9.99,
            'settings': {'color': 'blue'},
        }
        assert decisions[0]['type'] == 'all-feature-variables'
        assert client.get_all_feature_variables('nonexistent', 'user') is None

    def test_variable_reads_record_no_impression(self):
        client = make_client()
        client.get_feature_variable('test_feature_in_experiment', 'count', 'forced_on')
        client.get_all_feature_variables('test_feature_in_experiment', 'forced_on')
        assert get_events(client) == []


class TestDecide:
    def test_decide_feature_test(self):
        client = make_client()
        decision = client.decide('forced_on', 'test_feature_in_experiment')
        assert decision == FlagDecision('feature_on', True, {'is_working': False, 'count': 42}, 'featureExperiment',
                                        'test_feature_in_experiment', 'forced_on', [])
        events = get_events(client)
        assert len(events) == 1
        assert events[0].rule_type == 'feature-test'

    def test_decide_rollout(self):
        client = make_client()
        decision = client.decide('user', 'test_feature_in_rollout', CHROME)
        assert decision.variation_key == '211149'
        assert decision.rule_key == '211147'
        assert decision.enabled is True
        assert decision.variables == {'message': 'everyone', 'price': 9.99, 'settings': {'color': 'blue'}}
        assert get_events(client) == []

    def test_decide_flag_with_nothing_to_decide(self):
        client = make_client()
        decision = client.decide('user', 'test_feature_off')
        assert decision.variation_key is None
        assert decision.rule_key is None
        assert decision.enabled is False
        assert decision.variables == {}

    def test_disable_decision_event(self):
        client = make_client()
        decisions = listen(client, NotificationType.DECISION)
        client.decide('forced_on', 'test_feature_in_experiment', None, [DecideOption.DISABLE_DECISION_EVENT])
        assert get_events(client) == []
        assert decisions[0]['decision_info']['decision_event_dispatched'] is False

    def test_decision_notification(self):
        client = make_client()
        decisions = listen(client, NotificationType.DECISION)
        client.decide('forced_on', 'test_feature_in_experiment')
        assert decisions[0]['type'] == 'flag'
        assert decisions[0]['decision_info'] == {
            'flag_key': 'test_feature_in_experiment',
            'enabled': True,
            'variables': {'is_working': False, 'count': 42},
            'variation_key': 'feature_on',
            'rule_key': 'featureExperiment',
            'reasons': [],
            'decision_event_dispatched': True,
        }

    def test_exclude_variables(self):
        client = make_client()
        decision = client.decide('forced_on', 'test_feature_in_experiment', None, ['EXCLUDE_VARIABLES'])
        assert decision.variables == {}

    def test_include_reasons(self):
        client = make_client()
        assert client.decide('forced_on', 'test_feature_in_experiment').reasons == []
        decision = client.decide('forced_on', 'test_feature_in_experiment', None, [DecideOption.INCLUDE_REASONS])
        assert any('forced in variation "feature_on"' in r for r in decision.reasons)

    def test_default_decide_options_are_applied(self):
        client = make_client(default_decide_options=[DecideOption.EXCLUDE_VARIABLES, DecideOption.DISABLE_DECISION_EVENT])
        decision = client.decide('forced_on', 'test_feature_in_experiment')
        assert decision.variables == {}
        assert get_events(client) == []

    def test_invalid_option_gives_error_decision(self):
        errors = RecordingErrorHandler()
        client = make_client(error_handler=errors)
        decision = client.decide('user', 'test_feature_in_rollout', None, ['NOT_AN_OPTION'])
        assert decision.variation_key is None
        assert decision.enabled is False
        assert len(decision.reasons) == 1
        assert 'NOT_AN_OPTION' in decision.reasons[0]
        assert len(errors.errors) == 1

    def test_unknown_flag_gives_error_decision(self):
        client = make_client()
        decision = client.decide('user', 'nonexistent')
        assert decision == FlagDecision.error('nonexistent', 'user', 'No flag was found for key "nonexistent".')

    def test_ignore_user_profile_option(self):
        store = RecordingProfileStore()
        client = make_client(user_profile_store=store)
        client.decide('someone', 'test_feature_in_experiment_and_rollout', FIREFOX, [DecideOption.IGNORE_USER_PROFILE_SERVICE])
        assert store.lookups == []
        client.decide('someone', 'test_feature_in_experiment_and_rollout', FIREFOX)
        assert store.lookups == ['someone']
        assert len(store.saves) == 1

    def test_decide_all(self):
        client = make_client()
        decisions = client.decide_all('forced_off', CHROME)
        assert sorted(decisions.keys()) == sorted([
            'test_feature_in_experiment',
            'test_feature_in_rollout',
            'test_feature_in_experiment_and_rollout',
            'test_feature_off',
        ])
        assert decisions['test_feature_in_experiment'].variation_key == 'feature_off'

    def test_decide_all_enabled_flags_only(self):
        client = make_client()
        decisions = client.decide_all('forced_off', CHROME, [DecideOption.ENABLED_FLAGS_ONLY])
        assert sorted(decisions.keys()) == ['test_feature_in_experiment_and_rollout', 'test_feature_in_rollout']

    def test_decide_for_keys_skips_unknown_flags(self):
        client = make_client()
        decisions = client.decide_for_keys('forced_on', ['test_feature_in_experiment', 'nonexistent'])
        assert list(decisions.keys()) == ['test_feature_in_experiment']

    def test_decide_all_with_invalid_user_id(self):
        errors = RecordingErrorHandler()
        client = make_client(error_handler=errors)
        assert client.decide_all(None) == {}
        assert len(errors.errors) == 1

    @pytest.mark.parametrize('flag_keys', [None, 'test_feature_in_experiment', ['test_feature_in_experiment', 5]])
    def test_decide_for_keys_with_invalid_flag_keys(self, flag_keys):
        errors = RecordingErrorHandler()
        client = make_client(error_handler=errors)
        assert client.decide_for_keys('user', flag_keys) == {}
        assert len(errors.errors) == 1
        assert isinstance(errors.errors[0], InputValidationError)
        assert get_events(client) == []


class TestForcedDecisions:
    def test_flag_forced_decision(self):
        client = make_client()
        assert client.set_forced_decision('user', 'test_feature_in_rollout', '211139') is True
        assert client.get_forced_decision('user', 'test_feature_in_rollout') == '211139'
        decision = client.decide('user', 'test_feature_in_rollout', CHROME)
        assert decision.variation_key == '211139'
        assert decision.rule_key is None
        assert decision.enabled is True
        assert decision.variables['message'] == 'premium rule'
        events = get_events(client)
        assert len(events) == 1
        assert events[0].rule_type == 'feature-test'
        assert events[0].experiment is None

    def test_rule_forced_decision(self):
        client = make_client()
        assert client.set_forced_decision('user', 'test_feature_in_rollout', '211129', '211147') is True
        assert client.get_forced_decision('user', 'test_feature_in_rollout', '211147') == '211129'
        assert client.get_forced_decision('user', 'test_feature_in_rollout') is None
        decision = client.decide('user', 'test_feature_in_rollout', CHROME)
        assert decision.variation_key == '211129'
        assert decision.rule_key == '211147'
        assert get_events(client) == []

    def test_flag_forced_decision_applies_to_is_feature_enabled(self):
        client = make_client()
        decisions = listen(client, NotificationType.DECISION)
        client.set_forced_decision('forced_on', 'test_feature_in_experiment', 'feature_off')
        assert client.is_feature_enabled('test_feature_in_experiment', 'forced_on') is False
        assert decisions[0]['decision_info']['source_info'] == {'experiment_key': None, 'variation_key': 'feature_off'}

    def test_remove_forced_decisions(self):
        client = make_client()
        client.set_forced_decision('user', 'test_feature_in_rollout', '211139')
        client.set_forced_decision('user', 'test_feature_in_rollout', '211129', '211147')
        assert client.remove_forced_decision('user', 'test_feature_in_rollout') is True
        assert client.remove_forced_decision('user', 'test_feature_in_rollout') is False
        assert client.decide('user', 'test_feature_in_rollout', CHROME).variation_key == '211129'
        assert client.remove_all_forced_decisions('user') is True
        assert client.get_forced_decision('user', 'test_feature_in_rollout', '211147') is None
        assert client.decide('user', 'test_feature_in_rollout', CHROME).variation_key == '211149'

    @pytest.mark.parametrize('user_id, flag_key, variation_key, rule_key', [
        (None, 'test_feature_in_rollout', '211139', None),
        ('user', '', '211139', None),
        ('user', 'test_feature_in_rollout', None, None),
        ('user', 'test_feature_in_rollout', '211139', ''),
    ])
    def test_invalid_forced_decision_arguments(self, user_id, flag_key, variation_key, rule_key):
        errors = RecordingErrorHandler()
        client = make_client(error_handler=errors)
        assert client.set_forced_decision(user_id, flag_key, variation_key, rule_key) is False
        assert len(errors.errors) == 1
        assert isinstance(errors.errors[0], InputValidationError)


class TestEventDelivery:
    def test_events_are_not_recorded_when_sending_is_disabled(self):
        client = ExpClient(datafile(), Config(send_events=False))
        activations = listen(client, NotificationType.ACTIVATE)
        assert client.activate('testExperiment', 'user1') == 'control'
        assert len(activations) == 1
        assert client.flush().result(5) is None
        assert client.close().result(5) is None

    def test_batch_is_delivered_on_flush(self):
        dispatcher = RecordingDispatcher()
        client = ExpClient(datafile(), Config(event_dispatcher=dispatcher))
        log_events = listen(client, NotificationType.LOG_EVENT)
        try:
            client.activate('testExperiment', 'user1')
            client.track('testEvent', 'user1')
            client.flush().result(5)
            assert len(dispatcher.log_events) == 1
            payload = dispatcher.log_events[0].params
            assert len(payload['visitors']) == 1
            assert len(payload['visitors'][0]['snapshots']) == 2
            assert log_events == [{'log_event': dispatcher.log_events[0]}]
        finally:
            client.close()

    def test_close_delivers_pending_events(self):
        dispatcher = RecordingDispatcher()
        client = ExpClient(datafile(), Config(event_dispatcher=dispatcher))
        client.activate('testExperiment', 'user1')
        client.close().result(5)
        assert len(dispatcher.log_events) == 1
