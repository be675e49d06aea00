"""
This submodule contains the client class that provides most of the SDK functionality.
"""

from concurrent.futures import Future
from typing import Any, Dict, Iterable, List, Optional, Union

from expclient.config import Config
from expclient.config_source import StaticConfigSource
from expclient.decision import DecideOption, DecisionSource, FlagDecision
from expclient.errors import InputValidationError
from expclient.event_dispatcher import DefaultEventDispatcher
from expclient.impl import validators
from expclient.impl.decision_service import Decision, DecisionService
from expclient.impl.events.event_factory import EventFactory
from expclient.impl.events.event_processor import BatchEventProcessor
from expclient.impl.model import (VARIABLE_TYPE_BOOLEAN, VARIABLE_TYPE_DOUBLE,
                                  VARIABLE_TYPE_INTEGER, VARIABLE_TYPE_JSON,
                                  VARIABLE_TYPE_STRING, Experiment,
                                  FeatureFlag, Variable, Variation)
from expclient.impl.project_config import ProjectConfig, cast_variable_value
from expclient.impl.util import log
from expclient.interfaces import ConfigSource, EventProcessor
from expclient.notifications import NotificationCenter, NotificationType

DECISION_TYPE_AB_TEST = 'ab-test'
DECISION_TYPE_FEATURE_TEST = 'feature-test'
DECISION_TYPE_FEATURE = 'feature'
DECISION_TYPE_FEATURE_VARIABLE = 'feature-variable'
DECISION_TYPE_ALL_FEATURE_VARIABLES = 'all-feature-variables'
DECISION_TYPE_FLAG = 'flag'


def _completed_future() -> Future:
    future = Future()  # type: Future
    future.set_result(None)
    return future


class ExpClient:
    """The SDK client object.

    Applications should configure the client at startup time and continue to use it throughout the lifetime
    of the application, rather than creating instances on the fly. The best way to do this is with the
    singleton methods :func:`expclient.set_config()` and :func:`expclient.get()`. However, you may also call
    the constructor directly if you need to maintain multiple instances.

    Client instances are thread-safe. Every public method reads the current configuration snapshot once,
    so a configuration update in the middle of a call never produces a mixed result. None of the decision
    methods raise: invalid arguments are reported to the configured error handler and a safe default is
    returned.
    """

    def __init__(self, datafile: Optional[Union[str, bytes, dict]] = None, config: Optional[Config] = None,
                 config_source: Optional[ConfigSource] = None):
        """Constructs a new client instance.

        :param datafile: the configuration document, as JSON text or a decoded dict; ignored if
            ``config_source`` is given
        :param config: optional custom configuration
        :param config_source: where the client gets its configuration snapshots from; by default a
            :class:`expclient.config_source.StaticConfigSource` holding ``datafile``
        :raises expclient.errors.ConfigError: if ``datafile`` is not a valid configuration document
        """
        self._config = config or Config()
        self._notification_center = NotificationCenter()

        if config_source is None:
            config_source = StaticConfigSource(datafile, self._config.skip_json_validation)
        self._config_source = config_source
        self._unsubscribe = self._config_source.on_update(self._on_config_update)
        self._config_source.start()

        self._decision_service = DecisionService(self._config.user_profile_store, self._config.error_handler)
        self._event_factory = EventFactory(self._config.client_name, self._config.client_version)
        self._owned_dispatcher = None  # type: Optional[DefaultEventDispatcher]
        self._event_processor = self._make_event_processor(self._config)

    def _make_event_processor(self, config: Config) -> Optional[EventProcessor]:
        if not config.send_events:
            log.info('Event sending is disabled')
            return None
        dispatcher = config.event_dispatcher
        if dispatcher is None:
            self._owned_dispatcher = DefaultEventDispatcher(config)
            dispatcher = self._owned_dispatcher
        if config.event_processor_class is not None:
            return config.event_processor_class(config, dispatcher)
        return BatchEventProcessor(config, dispatcher, on_dispatch=self._on_dispatch)

    def _on_dispatch(self, log_event):
        self._notification_center.send_notifications(NotificationType.LOG_EVENT, {'log_event': log_event})

    def _on_config_update(self, project_config: ProjectConfig):
        self._notification_center.send_notifications(NotificationType.CONFIG_UPDATE, {'revision': project_config.revision})

    @property
    def notification_center(self) -> NotificationCenter:
        """Returns the notification center, through which the application can observe decisions and
        events made by this client.
        """
        return self._notification_center

    def is_valid(self) -> bool:
        """Returns true if the client has a configuration snapshot to make decisions with."""
        return self._config_source.get() is not None

    def close(self) -> Future:
        """Releases all threads and network connections used by the client.

        Any buffered events are sent first.

        :return: a future that completes when the final event batch has been delivered, or fails
            with :class:`expclient.errors.DispatchError` if it could not be
        """
        log.info("Closing experimentation client..")
        self._unsubscribe()
        self._config_source.stop()
        if self._event_processor is None:
            return _completed_future()
        future = self._event_processor.close()
        if self._owned_dispatcher is not None:
            dispatcher = self._owned_dispatcher
            future.add_done_callback(lambda f: dispatcher.close())
        return future

    # These magic methods allow a client object to be automatically cleaned up by the "with" scope operator
    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    def flush(self) -> Future:
        """Sends all buffered events now instead of waiting for the batch to fill up or the flush
        interval to pass.

        :return: a future that completes when the batch has been delivered
        """
        if self._event_processor is None:
            return _completed_future()
        return self._event_processor.flush()

    def _handle_error(self, error: Exception):
        log.error(str(error))
        if self._config.error_handler is None:
            return
        try:
            self._config.error_handler.handle_error(error)
        except Exception as e:
            log.warning('Error handler raised an exception: %s' % e)

    def _current_config(self, method_name: str) -> Optional[ProjectConfig]:
        project_config = self._config_source.get()
        if project_config is None:
            log.error('Configuration is not available. Failing "%s".' % method_name)
        return project_config

    def _send_impression(self, project_config: ProjectConfig, experiment: Optional[Experiment], variation: Optional[Variation],
                         flag_key: str, rule_key: str, rule_type: str, enabled: bool, user_id: str, attributes: dict):
        event = self._event_factory.new_impression_event(project_config, experiment, variation, flag_key, rule_key,
                                                         rule_type, enabled, user_id, attributes)
        if self._event_processor is not None:
            log.info('Activating user "%s" in experiment "%s".' % (user_id, rule_key))
            self._event_processor.process(event)
        self._notification_center.send_notifications(NotificationType.ACTIVATE, {
            'experiment': experiment,
            'user_id': user_id,
            'attributes': attributes,
            'variation': variation,
            'event': event,
        })

    def _send_decision(self, decision_type: str, user_id: str, attributes: dict, decision_info: dict):
        self._notification_center.send_notifications(NotificationType.DECISION, {
            'type': decision_type,
            'user_id': user_id,
            'attributes': attributes,
            'decision_info': decision_info,
        })

    # Experiments

    def _experiment_decision(self, project_config: ProjectConfig, experiment_key: str, user_id: str,
                             attributes: dict) -> Optional[Decision]:
        experiment = project_config.get_experiment_from_key(experiment_key)
        if experiment is None:
            log.info('Experiment key "%s" is invalid. Not activating user "%s".' % (experiment_key, user_id))
            return None
        decision = self._decision_service.get_variation(project_config, experiment, user_id, attributes)
        if project_config.get_feature_ids_for_experiment(experiment.id):
            decision_type = DECISION_TYPE_FEATURE_TEST
        else:
            decision_type = DECISION_TYPE_AB_TEST
        self._send_decision(decision_type, user_id, attributes, {
            'experiment_key': experiment_key,
            'variation_key': None if decision.variation is None else decision.variation.key,
        })
        return decision if decision.variation is not None else None

    def activate(self, experiment_key: str, user_id: str, attributes: Optional[dict] = None) -> Optional[str]:
        """Buckets a user into a variation of an experiment and records an impression for it.

        :param experiment_key: the experiment key
        :param user_id: the user ID
        :param attributes: the user's attributes
        :return: the key of the variation the user is in, or None if the user is in no variation
        """
        project_config = self._current_config('activate')
        if project_config is None:
            return None
        try:
            validators.validate_non_empty_string(experiment_key, 'experiment_key')
            validators.validate_user_id(user_id)
            attributes = validators.validate_attributes(attributes)
        except InputValidationError as e:
            self._handle_error(e)
            return None

        decision = self._experiment_decision(project_config, experiment_key, user_id, attributes)
        if decision is None:
            log.info('Not activating user "%s".' % user_id)
            return None
        self._send_impression(project_config, decision.experiment, decision.variation, '', decision.experiment.key,
                              DecisionSource.EXPERIMENT.value, True, user_id, attributes)
        return decision.variation.key

    def get_variation(self, experiment_key: str, user_id: str, attributes: Optional[dict] = None) -> Optional[str]:
        """Returns the key of the variation a user is in, without recording an impression.

        :param experiment_key: the experiment key
        :param user_id: the user ID
        :param attributes: the user's attributes
        :return: the variation key, or None if the user is in no variation
        """
        project_config = self._current_config('get_variation')
        if project_config is None:
            return None
        try:
            validators.validate_non_empty_string(experiment_key, 'experiment_key')
            validators.validate_user_id(user_id)
            attributes = validators.validate_attributes(attributes)
        except InputValidationError as e:
            self._handle_error(e)
            return None

        decision = self._experiment_decision(project_config, experiment_key, user_id, attributes)
        return None if decision is None else decision.variation.key

    def track(self, event_key: str, user_id: str, attributes: Optional[dict] = None, event_tags: Optional[dict] = None):
        """Records a conversion event for a user.

        :param event_key: the key of an event defined in the configuration
        :param user_id: the user ID
        :param attributes: the user's attributes
        :param event_tags: additional values for the event; a numeric ``revenue`` or ``value`` tag is
            reported as the event's revenue or value
        """
        project_config = self._current_config('track')
        if project_config is None:
            return
        try:
            validators.validate_non_empty_string(event_key, 'event_key')
            validators.validate_user_id(user_id)
            attributes = validators.validate_attributes(attributes)
            event_tags = validators.validate_event_tags(event_tags)
        except InputValidationError as e:
            self._handle_error(e)
            return

        event = self._event_factory.new_conversion_event(project_config, event_key, user_id, attributes, event_tags)
        if event is None:
            log.info('Not tracking user "%s" for event "%s".' % (user_id, event_key))
            return
        if self._event_processor is not None:
            log.info('Tracking event "%s" for user "%s".' % (event_key, user_id))
            self._event_processor.process(event)
        self._notification_center.send_notifications(NotificationType.TRACK, {
            'event_key': event_key,
            'user_id': user_id,
            'attributes': attributes,
            'event_tags': event_tags,
            'event': event,
        })

    def set_forced_variation(self, experiment_key: str, user_id: str, variation_key: Optional[str]) -> bool:
        """Forces a user into a variation of an experiment for the lifetime of this client, or removes
        the override if ``variation_key`` is None.

        :return: True if the override was set or removed
        """
        project_config = self._current_config('set_forced_variation')
        if project_config is None:
            return False
        try:
            validators.validate_non_empty_string(experiment_key, 'experiment_key')
            validators.validate_user_id(user_id)
            if variation_key is not None:
                validators.validate_non_empty_string(variation_key, 'variation_key')
        except InputValidationError as e:
            self._handle_error(e)
            return False
        return self._decision_service.set_forced_variation(project_config, experiment_key, user_id, variation_key)

    def get_forced_variation(self, experiment_key: str, user_id: str) -> Optional[str]:
        """Returns the key of the variation a user has been forced into, if any."""
        project_config = self._current_config('get_forced_variation')
        if project_config is None:
            return None
        try:
            validators.validate_non_empty_string(experiment_key, 'experiment_key')
            validators.validate_user_id(user_id)
        except InputValidationError as e:
            self._handle_error(e)
            return None
        variation = self._decision_service.get_forced_variation(project_config, experiment_key, user_id)
        return None if variation is None else variation.key

    def _validate_forced_decision_target(self, user_id: str, flag_key: str, rule_key: Optional[str]) -> bool:
        try:
            validators.validate_user_id(user_id)
            validators.validate_non_empty_string(flag_key, 'flag_key')
            if rule_key is not None:
                validators.validate_non_empty_string(rule_key, 'rule_key')
        except InputValidationError as e:
            self._handle_error(e)
            return False
        return True

    def set_forced_decision(self, user_id: str, flag_key: str, variation_key: str, rule_key: Optional[str] = None) -> bool:
        """Forces the decision of a feature flag for a user, for the lifetime of this client.

        Without a ``rule_key`` the variation replaces the whole flag decision. With one, it applies
        only when that experiment or rollout rule of the flag is evaluated. The variation may be any
        variation of the flag; one the configuration does not have is ignored when deciding.

        :return: True if the override was set
        """
        if not self._validate_forced_decision_target(user_id, flag_key, rule_key):
            return False
        try:
            validators.validate_non_empty_string(variation_key, 'variation_key')
        except InputValidationError as e:
            self._handle_error(e)
            return False
        return self._decision_service.set_forced_decision(flag_key, rule_key, user_id, variation_key)

    def get_forced_decision(self, user_id: str, flag_key: str, rule_key: Optional[str] = None) -> Optional[str]:
        """Returns the variation key a flag or rule has been forced to for a user, if any."""
        if not self._validate_forced_decision_target(user_id, flag_key, rule_key):
            return None
        return self._decision_service.get_forced_decision(flag_key, rule_key, user_id)

    def remove_forced_decision(self, user_id: str, flag_key: str, rule_key: Optional[str] = None) -> bool:
        """Removes a forced decision.

        :return: True if there was a forced decision to remove
        """
        if not self._validate_forced_decision_target(user_id, flag_key, rule_key):
            return False
        return self._decision_service.remove_forced_decision(flag_key, rule_key, user_id)

    def remove_all_forced_decisions(self, user_id: str) -> bool:
        """Removes every forced decision set for a user."""
        try:
            validators.validate_user_id(user_id)
        except InputValidationError as e:
            self._handle_error(e)
            return False
        return self._decision_service.remove_all_forced_decisions(user_id)

    # Feature flags

    def _feature_decision(self, project_config: ProjectConfig, feature: FeatureFlag, user_id: str, attributes: dict,
                          options: Iterable[DecideOption] = ()) -> Decision:
        return self._decision_service.get_variation_for_feature(project_config, feature, user_id, attributes, options)

    @staticmethod
    def _source_info(decision: Decision) -> dict:
        if decision.source != DecisionSource.FEATURE_TEST:
            return {}
        experiment_key = None if decision.experiment is None else decision.experiment.key
        return {'experiment_key': experiment_key, 'variation_key': decision.variation.key}

    def _is_feature_enabled(self, project_config: ProjectConfig, feature: FeatureFlag, user_id: str, attributes: dict) -> bool:
        decision = self._feature_decision(project_config, feature, user_id, attributes)
        enabled = decision.variation is not None and decision.variation.feature_enabled
        if decision.source == DecisionSource.FEATURE_TEST or project_config.send_flag_decisions:
            rule_key = '' if decision.experiment is None else decision.experiment.key
            self._send_impression(project_config, decision.experiment, decision.variation, feature.key, rule_key,
                                  decision.source.value, enabled, user_id, attributes)
        if enabled:
            log.info('Feature "%s" is enabled for user "%s".' % (feature.key, user_id))
        else:
            log.info('Feature "%s" is not enabled for user "%s".' % (feature.key, user_id))
        self._send_decision(DECISION_TYPE_FEATURE, user_id, attributes, {
            'feature_key': feature.key,
            'feature_enabled': enabled,
            'source': decision.source.value,
            'source_info': self._source_info(decision),
        })
        return enabled

    def is_feature_enabled(self, feature_key: str, user_id: str, attributes: Optional[dict] = None) -> bool:
        """Returns whether a feature flag is on for a user.

        An impression is recorded when the decision came from an experiment, and also for rollout
        decisions when the configuration asks for flag decisions to be sent.

        :param feature_key: the feature flag key
        :param user_id: the user ID
        :param attributes: the user's attributes
        """
        project_config = self._current_config('is_feature_enabled')
        if project_config is None:
            return False
        try:
            validators.validate_non_empty_string(feature_key, 'feature_key')
            validators.validate_user_id(user_id)
            attributes = validators.validate_attributes(attributes)
        except InputValidationError as e:
            self._handle_error(e)
            return False

        feature = project_config.get_feature_from_key(feature_key)
        if feature is None:
            log.error('Feature key "%s" is not in datafile.' % feature_key)
            return False
        return self._is_feature_enabled(project_config, feature, user_id, attributes)

    def get_enabled_features(self, user_id: str, attributes: Optional[dict] = None) -> List[str]:
        """Returns the keys of all feature flags that are on for a user."""
        project_config = self._current_config('get_enabled_features')
        if project_config is None:
            return []
        try:
            validators.validate_user_id(user_id)
            attributes = validators.validate_attributes(attributes)
        except InputValidationError as e:
            self._handle_error(e)
            return []
        return [f.key for f in project_config.feature_flags if self._is_feature_enabled(project_config, f, user_id, attributes)]

    def _variable_value(self, project_config: ProjectConfig, feature: FeatureFlag, variable: Variable,
                        decision: Decision, user_id: str) -> Any:
        enabled = decision.variation is not None and decision.variation.feature_enabled
        if enabled:
            raw = project_config.get_variable_value(decision.variation, variable)
            log.info('Got variable value "%s" for variable "%s" of feature flag "%s".' % (raw, variable.key, feature.key))
        else:
            raw = variable.default_value
            log.info('Feature "%s" is not enabled for user "%s". Returning the default variable value "%s".' % (feature.key, user_id, raw))
        result = cast_variable_value(raw, variable.type)
        if not result.is_success():
            log.error(result.error)
            return None
        return result.value

    def _get_feature_variable_for_type(self, method_name: str, feature_key: str, variable_key: str, variable_type: Optional[str],
                                       user_id: str, attributes: Optional[dict]) -> Any:
        project_config = self._current_config(method_name)
        if project_config is None:
            return None
        try:
            validators.validate_non_empty_string(feature_key, 'feature_key')
            validators.validate_non_empty_string(variable_key, 'variable_key')
            validators.validate_user_id(user_id)
            attributes = validators.validate_attributes(attributes)
        except InputValidationError as e:
            self._handle_error(e)
            return None

        feature = project_config.get_feature_from_key(feature_key)
        if feature is None:
            log.error('Feature key "%s" is not in datafile.' % feature_key)
            return None
        variable = feature.get_variable(variable_key)
        if variable is None:
            log.error('Variable with key "%s" not found in the datafile.' % variable_key)
            return None
        if variable_type is not None and variable.type != variable_type:
            log.warning('Requested variable type "%s", but variable is of type "%s". Use correct API to retrieve value. Returning None.'
                        % (variable_type, variable.type))
            return None

        decision = self._feature_decision(project_config, feature, user_id, attributes)
        value = self._variable_value(project_config, feature, variable, decision, user_id)
        self._send_decision(DECISION_TYPE_FEATURE_VARIABLE, user_id, attributes, {
            'feature_key': feature_key,
            'feature_enabled': decision.variation is not None and decision.variation.feature_enabled,
            'source': decision.source.value,
            'variable_key': variable_key,
            'variable_value': value,
            'variable_type': variable.type,
            'source_info': self._source_info(decision),
        })
        return value

    def get_feature_variable(self, feature_key: str, variable_key: str, user_id: str, attributes: Optional[dict] = None) -> Any:
        """Returns the value of a feature variable for a user, converted to the variable's type.

        The variable's default value is used when the feature is off for the user.

        :return: the value, or None if the feature or variable does not exist
        """
        return self._get_feature_variable_for_type('get_feature_variable', feature_key, variable_key, None, user_id, attributes)

    def get_feature_variable_boolean(self, feature_key: str, variable_key: str, user_id: str, attributes: Optional[dict] = None) -> Optional[bool]:
        """Like :func:`get_feature_variable`, but returns None unless the variable is a boolean."""
        return self._get_feature_variable_for_type('get_feature_variable_boolean', feature_key, variable_key, VARIABLE_TYPE_BOOLEAN, user_id, attributes)

    def get_feature_variable_integer(self, feature_key: str, variable_key: str, user_id: str, attributes: Optional[dict] = None) -> Optional[int]:
        """Like :func:`get_feature_variable`, but returns None unless the variable is an integer."""
        return self._get_feature_variable_for_type('get_feature_variable_integer', feature_key, variable_key, VARIABLE_TYPE_INTEGER, user_id, attributes)

    def get_feature_variable_double(self, feature_key: str, variable_key: str, user_id: str, attributes: Optional[dict] = None) -> Optional[float]:
        """Like :func:`get_feature_variable`, but returns None unless the variable is a double."""
        return self._get_feature_variable_for_type('get_feature_variable_double', feature_key, variable_key, VARIABLE_TYPE_DOUBLE, user_id, attributes)

    def get_feature_variable_string(self, feature_key: str, variable_key: str, user_id: str, attributes: Optional[dict] = None) -> Optional[str]:
        """Like :func:`get_feature_variable`, but returns None unless the variable is a string."""
        return self._get_feature_variable_for_type('get_feature_variable_string', feature_key, variable_key, VARIABLE_TYPE_STRING, user_id, attributes)

    def get_feature_variable_json(self, feature_key: str, variable_key: str, user_id: str, attributes: Optional[dict] = None) -> Any:
        """Like :func:`get_feature_variable`, but returns None unless the variable is JSON."""
        return self._get_feature_variable_for_type('get_feature_variable_json', feature_key, variable_key, VARIABLE_TYPE_JSON, user_id, attributes)

    def get_all_feature_variables(self, feature_key: str, user_id: str, attributes: Optional[dict] = None) -> Optional[Dict[str, Any]]:
        """Returns the values of all variables of a feature flag for a user, keyed by variable key."""
        project_config = self._current_config('get_all_feature_variables')
        if project_config is None:
            return None
        try:
            validators.validate_non_empty_string(feature_key, 'feature_key')
            validators.validate_user_id(user_id)
            attributes = validators.validate_attributes(attributes)
        except InputValidationError as e:
            self._handle_error(e)
            return None

        feature = project_config.get_feature_from_key(feature_key)
        if feature is None:
            log.error('Feature key "%s" is not in datafile.' % feature_key)
            return None
        decision = self._feature_decision(project_config, feature, user_id, attributes)
        values = dict((v.key, self._variable_value(project_config, feature, v, decision, user_id)) for v in feature.variables)
        self._send_decision(DECISION_TYPE_ALL_FEATURE_VARIABLES, user_id, attributes, {
            'feature_key': feature_key,
            'feature_enabled': decision.variation is not None and decision.variation.feature_enabled,
            'variable_values': values,
            'source': decision.source.value,
            'source_info': self._source_info(decision),
        })
        return values

    # Flag decisions

    def _decide_options(self, options: Optional[Iterable[Any]]) -> List[DecideOption]:
        merged = list(self._config.default_decide_options)
        for option in validators.validate_decide_options(options):
            if option not in merged:
                merged.append(option)
        return merged

    def _decide(self, project_config: ProjectConfig, feature: FeatureFlag, user_id: str, attributes: dict,
                options: List[DecideOption]) -> FlagDecision:
        decision = self._feature_decision(project_config, feature, user_id, attributes, options)
        variation = decision.variation
        enabled = variation is not None and variation.feature_enabled
        rule_key = None if decision.experiment is None else decision.experiment.key

        decision_event_dispatched = False
        if DecideOption.DISABLE_DECISION_EVENT not in options:
            if decision.source == DecisionSource.FEATURE_TEST or project_config.send_flag_decisions:
                self._send_impression(project_config, decision.experiment, variation, feature.key, rule_key or '',
                                      decision.source.value, enabled, user_id, attributes)
                decision_event_dispatched = True

        variables = {}  # type: Dict[str, Any]
        if DecideOption.EXCLUDE_VARIABLES not in options:
            for variable in feature.variables:
                variables[variable.key] = self._variable_value(project_config, feature, variable, decision, user_id)

        reasons = list(decision.reasons) if DecideOption.INCLUDE_REASONS in options else []
        variation_key = None if variation is None else variation.key
        self._send_decision(DECISION_TYPE_FLAG, user_id, attributes, {
            'flag_key': feature.key,
            'enabled': enabled,
            'variables': variables,
            'variation_key': variation_key,
            'rule_key': rule_key,
            'reasons': reasons,
            'decision_event_dispatched': decision_event_dispatched,
        })
        return FlagDecision(variation_key, enabled, variables, rule_key, feature.key, user_id, reasons)

    def decide(self, user_id: str, flag_key: str, attributes: Optional[dict] = None,
               options: Optional[Iterable[Union[DecideOption, str]]] = None) -> FlagDecision:
        """Decides a feature flag for a user.

        :param user_id: the user ID
        :param flag_key: the feature flag key
        :param attributes: the user's attributes
        :param options: :class:`expclient.decision.DecideOption` values, in addition to
            :func:`expclient.config.Config.default_decide_options`
        :return: the decision; if no decision could be made, its ``reasons`` hold the error
        """
        project_config = self._current_config('decide')
        if project_config is None:
            return FlagDecision.error(flag_key, user_id, 'Configuration is not available.')
        try:
            validators.validate_user_id(user_id)
            validators.validate_non_empty_string(flag_key, 'flag_key')
            attributes = validators.validate_attributes(attributes)
            merged = self._decide_options(options)
        except InputValidationError as e:
            self._handle_error(e)
            return FlagDecision.error(flag_key, user_id, str(e))

        feature = project_config.get_feature_from_key(flag_key)
        if feature is None:
            log.error('No flag was found for key "%s".' % flag_key)
            return FlagDecision.error(flag_key, user_id, 'No flag was found for key "%s".' % flag_key)
        return self._decide(project_config, feature, user_id, attributes, merged)

    def decide_for_keys(self, user_id: str, flag_keys: List[str], attributes: Optional[dict] = None,
                        options: Optional[Iterable[Union[DecideOption, str]]] = None) -> Dict[str, FlagDecision]:
        """Decides several feature flags for a user at once.

        Unknown keys are left out of the result. With ``ENABLED_FLAGS_ONLY``, so are flags that are
        off for the user.
        """
        project_config = self._current_config('decide_for_keys')
        if project_config is None:
            return {}
        return self._decide_for_keys(project_config, user_id, flag_keys, attributes, options)

    def _decide_for_keys(self, project_config: ProjectConfig, user_id: str, flag_keys: List[str],
                         attributes: Optional[dict], options: Optional[Iterable[Any]]) -> Dict[str, FlagDecision]:
        try:
            validators.validate_user_id(user_id)
            flag_keys = validators.validate_flag_keys(flag_keys)
            attributes = validators.validate_attributes(attributes)
            merged = self._decide_options(options)
        except InputValidationError as e:
            self._handle_error(e)
            return {}

        decisions = {}  # type: Dict[str, FlagDecision]
        for flag_key in flag_keys:
            feature = project_config.get_feature_from_key(flag_key)
            if feature is None:
                log.error('No flag was found for key "%s".' % flag_key)
                continue
            decision = self._decide(project_config, feature, user_id, attributes, merged)
            if DecideOption.ENABLED_FLAGS_ONLY in merged and not decision.enabled:
                continue
            decisions[flag_key] = decision
        return decisions

    def decide_all(self, user_id: str, attributes: Optional[dict] = None,
                   options: Optional[Iterable[Union[DecideOption, str]]] = None) -> Dict[str, FlagDecision]:
        """Decides every feature flag in the configuration for a user.

        :return: decisions keyed by flag key
        """
        project_config = self._current_config('decide_all')
        if project_config is None:
            return {}
        flag_keys = [f.key for f in project_config.feature_flags]
        return self._decide_for_keys(project_config, user_id, flag_keys, attributes, options)


__all__ = ['ExpClient', 'Config']
