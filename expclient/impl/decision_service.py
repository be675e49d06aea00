"""
Internal implementation of the decision pipeline: which variation of an experiment, or which
rule of a feature flag, applies to a user.
"""

from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

from expclient.decision import DecideOption, DecisionSource
from expclient.errors import ProfileStoreError
from expclient.impl import audience_evaluator
from expclient.impl.bucketer import Bucketer
from expclient.impl.model import Experiment, FeatureFlag, Variation
from expclient.impl.project_config import ProjectConfig
from expclient.impl.util import log
from expclient.interfaces import ErrorHandler, UserProfileStore
from expclient.user_profile import UserProfile

BUCKETING_ID_ATTRIBUTE = '$opt_bucketing_id'
STICKY_BUCKETING_ATTRIBUTE = '$opt_experiment_bucket_map'
EVERYONE_ELSE_RULE_NAME = 'Everyone Else'


class Decision:
    """
    The outcome of one decision request. ``experiment`` and ``variation`` are both None when no
    experiment or rule applied.
    """

    __slots__ = ['__experiment', '__variation', '__source', '__reasons']

    def __init__(self, experiment: Optional[Experiment], variation: Optional[Variation],
                 source: DecisionSource, reasons: Optional[List[str]] = None):
        self.__experiment = experiment
        self.__variation = variation
        self.__source = source
        self.__reasons = tuple(reasons or ())

    @property
    def experiment(self) -> Optional[Experiment]:
        return self.__experiment

    @property
    def variation(self) -> Optional[Variation]:
        return self.__variation

    @property
    def source(self) -> DecisionSource:
        return self.__source

    @property
    def reasons(self) -> Tuple[str, ...]:
        return self.__reasons

    def __eq__(self, other) -> bool:
        return isinstance(other, Decision) and \
            self.__source == other.__source and \
            self.__variation == other.__variation and \
            (self.__experiment is None) == (other.__experiment is None) and \
            (self.__experiment is None or self.__experiment.id == other.__experiment.id)

    def __repr__(self) -> str:
        return 'Decision(experiment=%s, variation=%r, source=%s)' % (
            None if self.__experiment is None else self.__experiment.key, self.__variation, self.__source.value)


class _Reasons:
    """
    Logs the steps of a decision, and keeps their messages only when the caller asked for them.
    """

    def __init__(self, include: bool = False):
        self.include = include
        self.messages = []  # type: List[str]

    @property
    def sink(self) -> Optional[List[str]]:
        return self.messages if self.include else None

    def _note(self, log_fn, message: str):
        log_fn(message)
        if self.include:
            self.messages.append(message)

    def info(self, message: str):
        self._note(log.info, message)

    def debug(self, message: str):
        self._note(log.debug, message)

    def warning(self, message: str):
        self._note(log.warning, message)

    def error(self, message: str):
        self._note(log.error, message)


class UserProfileTracker:
    """
    Loads a user's profile at most once and saves it at most once, however many experiments are
    decided in between. A failing store is reported and then treated as empty.
    """

    def __init__(self, store: Optional[UserProfileStore], user_id: str, on_error=None):
        self._store = store
        self._user_id = user_id
        self._on_error = on_error
        self._profile = None  # type: Optional[UserProfile]
        self._dirty = False

    @property
    def profile(self) -> UserProfile:
        if self._profile is None:
            self._profile = self._load()
        return self._profile

    def _load(self) -> UserProfile:
        if self._store is None:
            return UserProfile(self._user_id)
        try:
            data = self._store.lookup(self._user_id)
            if data is None:
                return UserProfile(self._user_id)
            return UserProfile.from_dict(data)
        except Exception as e:
            self._fail('Unable to look up user profile for user "%s": %s' % (self._user_id, e), e)
            return UserProfile(self._user_id)

    def update(self, experiment: Experiment, variation: Variation):
        profile = self.profile
        if profile.get_variation_for_experiment(experiment.id) != variation.id:
            profile.save_variation_for_experiment(experiment.id, variation.id)
            self._dirty = True

    def save(self):
        if self._store is None or not self._dirty:
            return
        try:
            self._store.save(self.profile.to_json_dict())
            self._dirty = False
            log.info('Saved user profile for user "%s".' % self._user_id)
        except Exception as e:
            self._fail('Unable to save user profile for user "%s": %s' % (self._user_id, e), e)

    def _fail(self, message: str, cause: Exception):
        log.error(message)
        if self._on_error is not None:
            self._on_error(ProfileStoreError(message, cause))


class DecisionService:
    """
    Decides variations for experiments and feature flags. Each instance owns its own forced
    variation and forced decision maps; the configuration snapshot is passed in on every call.
    """

    def __init__(self, user_profile_store: Optional[UserProfileStore] = None, error_handler: Optional[ErrorHandler] = None):
        self._user_profile_store = user_profile_store
        self._error_handler = error_handler
        self._bucketer = Bucketer()
        self._forced_variations_lock = Lock()
        self._forced_variations = {}  # type: Dict[Tuple[str, str], str]
        self._forced_decisions_lock = Lock()
        self._forced_decisions = {}  # type: Dict[Tuple[str, Optional[str], str], str]

    def _report_error(self, error: Exception):
        if self._error_handler is None:
            return
        try:
            self._error_handler.handle_error(error)
        except Exception as e:
            log.warning('Error handler raised an exception: %s' % e)

    def new_profile_tracker(self, user_id: str, options: Iterable[DecideOption] = ()) -> Optional[UserProfileTracker]:
        if DecideOption.IGNORE_USER_PROFILE_SERVICE in options:
            return None
        return UserProfileTracker(self._user_profile_store, user_id, self._report_error)

    # Forced variations

    def set_forced_variation(self, config: ProjectConfig, experiment_key: str, user_id: str, variation_key: Optional[str]) -> bool:
        """
        Forces a user into a variation of an experiment, or removes the override when
        ``variation_key`` is None.

        :return: True if the map was updated
        """
        experiment = config.get_experiment_from_key(experiment_key)
        if experiment is None:
            log.error('Experiment key "%s" is not in datafile.' % experiment_key)
            return False
        map_key = (experiment.id, user_id)
        if variation_key is None:
            with self._forced_variations_lock:
                self._forced_variations.pop(map_key, None)
            log.debug('Variation mapped to experiment "%s" has been removed for user "%s".' % (experiment_key, user_id))
            return True
        if experiment.get_variation_by_key(variation_key) is None:
            log.error('Provided variation key "%s" is not in experiment "%s".' % (variation_key, experiment_key))
            return False
        with self._forced_variations_lock:
            self._forced_variations[map_key] = variation_key
        log.debug('Set variation "%s" for experiment "%s" and user "%s" in the forced variation map.' % (variation_key, experiment_key, user_id))
        return True

    def get_forced_variation(self, config: ProjectConfig, experiment_key: str, user_id: str) -> Optional[Variation]:
        experiment = config.get_experiment_from_key(experiment_key)
        if experiment is None:
            log.error('Experiment key "%s" is not in datafile.' % experiment_key)
            return None
        return self._find_forced_variation(experiment, user_id, _Reasons())

    def _find_forced_variation(self, experiment: Experiment, user_id: str, reasons: _Reasons) -> Optional[Variation]:
        with self._forced_variations_lock:
            variation_key = self._forced_variations.get((experiment.id, user_id))
        if variation_key is None:
            return None
        variation = experiment.get_variation_by_key(variation_key)
        if variation is None:
            reasons.warning('Forced variation "%s" no longer exists in experiment "%s".' % (variation_key, experiment.key))
            return None
        reasons.info('Variation "%s" is mapped to experiment "%s" and user "%s" in the forced variation map.' % (variation_key, experiment.key, user_id))
        return variation

    # Forced decisions

    def set_forced_decision(self, flag_key: str, rule_key: Optional[str], user_id: str, variation_key: str) -> bool:
        """
        Forces the decision of a feature flag for a user. With a ``rule_key`` the override applies
        only when that experiment or rollout rule of the flag is reached; without one it replaces
        the whole flag decision.

        The variation key is resolved against the flag's variations each time the flag is decided,
        so an override naming a variation the configuration does not have is skipped then.
        """
        with self._forced_decisions_lock:
            self._forced_decisions[(flag_key, rule_key, user_id)] = variation_key
        log.debug('Set variation "%s" for flag "%s", rule "%s" and user "%s" in the forced decision map.' % (variation_key, flag_key, rule_key, user_id))
        return True

    def get_forced_decision(self, flag_key: str, rule_key: Optional[str], user_id: str) -> Optional[str]:
        with self._forced_decisions_lock:
            return self._forced_decisions.get((flag_key, rule_key, user_id))

    def remove_forced_decision(self, flag_key: str, rule_key: Optional[str], user_id: str) -> bool:
        """
        :return: True if there was an override to remove
        """
        with self._forced_decisions_lock:
            return self._forced_decisions.pop((flag_key, rule_key, user_id), None) is not None

    def remove_all_forced_decisions(self, user_id: str) -> bool:
        with self._forced_decisions_lock:
            for map_key in [k for k in self._forced_decisions if k[2] == user_id]:
                del self._forced_decisions[map_key]
        return True

    def _find_forced_decision(self, config: ProjectConfig, flag_key: str, rule_key: Optional[str], user_id: str,
                              reasons: _Reasons) -> Optional[Variation]:
        with self._forced_decisions_lock:
            variation_key = self._forced_decisions.get((flag_key, rule_key, user_id))
        if variation_key is None:
            return None
        if rule_key is None:
            target = 'flag "%s"' % flag_key
        else:
            target = 'flag "%s" and rule "%s"' % (flag_key, rule_key)
        for variation in config.get_flag_variations(flag_key):
            if variation.key == variation_key:
                reasons.info('Variation "%s" is mapped to %s and user "%s" in the forced decision map.' % (variation_key, target, user_id))
                return variation
        reasons.info('Invalid variation is mapped to %s and user "%s" in the forced decision map.' % (target, user_id))
        return None

    # Experiments

    def get_bucketing_id(self, user_id: str, attributes: Optional[dict], reasons: Optional[_Reasons] = None) -> str:
        if attributes is None or BUCKETING_ID_ATTRIBUTE not in attributes:
            return user_id
        bucketing_id = attributes[BUCKETING_ID_ATTRIBUTE]
        if isinstance(bucketing_id, str):
            log.debug('Setting the bucketing ID to "%s".' % bucketing_id)
            return bucketing_id
        message = 'Bucketing ID attribute is not a string. Defaulted to user ID.'
        if reasons is not None:
            reasons.warning(message)
        else:
            log.warning(message)
        return user_id

    def _whitelisted_variation(self, experiment: Experiment, user_id: str, reasons: _Reasons) -> Optional[Variation]:
        variation_key = experiment.forced_variations.get(user_id)
        if variation_key is None:
            return None
        variation = experiment.get_variation_by_key(variation_key)
        if variation is None:
            reasons.error('Variation "%s" is not in the datafile. Not activating user "%s".' % (variation_key, user_id))
            return None
        reasons.info('User "%s" is forced in variation "%s".' % (user_id, variation_key))
        return variation

    def _is_in_audience(self, config: ProjectConfig, experiment: Experiment, attributes: Optional[dict],
                        reasons: _Reasons, logging_key: Optional[str] = None) -> bool:
        label = logging_key or experiment.key
        reasons.debug('Evaluating audiences for "%s": %r.' % (label, experiment.audience_conditions if experiment.audience_conditions is not None else experiment.audience_ids))
        result = audience_evaluator.is_match(experiment.targeting, config.audiences_by_id, attributes)
        reasons.info('Audiences for "%s" collectively evaluated to %s.' % (label, str(result).upper()))
        return result

    def _stored_variation(self, config: ProjectConfig, experiment: Experiment, user_id: str, profile: UserProfile,
                          attributes: Optional[dict], reasons: _Reasons) -> Optional[Variation]:
        variation_id = None
        override = (attributes or {}).get(STICKY_BUCKETING_ATTRIBUTE)
        if isinstance(override, dict) and isinstance(override.get(experiment.id), dict):
            variation_id = override[experiment.id].get('variation_id')
        if variation_id is None:
            variation_id = profile.get_variation_for_experiment(experiment.id)
        if variation_id is None:
            return None
        variation = experiment.get_variation_by_id(variation_id)
        if variation is None:
            reasons.info('User "%s" was previously bucketed into variation with ID "%s" for experiment "%s", but no matching variation was found.'
                         % (user_id, variation_id, experiment.key))
            return None
        reasons.info('Returning previously activated variation "%s" of experiment "%s" for user "%s" from user profile.'
                     % (variation.key, experiment.key, user_id))
        return variation

    def _variation_for_experiment(self, config: ProjectConfig, experiment: Experiment, user_id: str, attributes: Optional[dict],
                                  tracker: Optional[UserProfileTracker], reasons: _Reasons) -> Optional[Variation]:
        if not experiment.is_running:
            reasons.info('Experiment "%s" is not running.' % experiment.key)
            return None

        variation = self._find_forced_variation(experiment, user_id, reasons)
        if variation is not None:
            return variation

        variation = self._whitelisted_variation(experiment, user_id, reasons)
        if variation is not None:
            return variation

        if not self._is_in_audience(config, experiment, attributes, reasons):
            reasons.info('User "%s" does not meet conditions to be in experiment "%s".' % (user_id, experiment.key))
            return None

        if tracker is not None:
            variation = self._stored_variation(config, experiment, user_id, tracker.profile, attributes, reasons)
            if variation is not None:
                return variation

        bucketing_id = self.get_bucketing_id(user_id, attributes, reasons)
        variation = self._bucketer.bucket(config, experiment, user_id, bucketing_id, reasons.sink)
        if variation is None:
            reasons.info('User "%s" is in no variation of experiment "%s".' % (user_id, experiment.key))
            return None
        reasons.info('User "%s" is in variation "%s" of experiment "%s".' % (user_id, variation.key, experiment.key))
        if tracker is not None:
            tracker.update(experiment, variation)
        return variation

    def get_variation(self, config: ProjectConfig, experiment: Experiment, user_id: str, attributes: Optional[dict] = None,
                      options: Iterable[DecideOption] = ()) -> Decision:
        """
        Decides the variation of a single experiment for a user.

        Steps are tried in order and the first that produces a variation wins: the experiment must
        be running; then the forced variation map; then the experiment's whitelist; then the
        audience check; then the user profile store; then bucketing, whose result is saved back to
        the store. Nothing here raises: any failure yields a decision without a variation.
        """
        options = list(options)
        reasons = _Reasons(DecideOption.INCLUDE_REASONS in options)
        tracker = self.new_profile_tracker(user_id, options)
        variation = self._variation_for_experiment(config, experiment, user_id, attributes, tracker, reasons)
        if tracker is not None:
            tracker.save()
        if variation is None:
            return Decision(None, None, DecisionSource.NONE, reasons.messages)
        return Decision(experiment, variation, DecisionSource.EXPERIMENT, reasons.messages)

    # Feature flags

    def _feature_test_decision(self, config: ProjectConfig, feature: FeatureFlag, user_id: str, attributes: Optional[dict],
                               tracker: Optional[UserProfileTracker], reasons: _Reasons) -> Optional[Decision]:
        if len(feature.experiment_ids) == 0:
            reasons.debug('Feature "%s" is not attached to any experiments.' % feature.key)
            return None
        for experiment_id in feature.experiment_ids:
            experiment = config.get_experiment_from_id(experiment_id)
            if experiment is None:
                reasons.error('Experiment ID "%s" referenced by feature "%s" is not in datafile.' % (experiment_id, feature.key))
                continue
            variation = self._find_forced_decision(config, feature.key, experiment.key, user_id, reasons)
            if variation is None:
                variation = self._variation_for_experiment(config, experiment, user_id, attributes, tracker, reasons)
            if variation is not None:
                reasons.debug('User "%s" is in variation "%s" of experiment "%s" for feature "%s".' % (user_id, variation.key, experiment.key, feature.key))
                return Decision(experiment, variation, DecisionSource.FEATURE_TEST)
        return None

    def _rollout_decision(self, config: ProjectConfig, feature: FeatureFlag, user_id: str, attributes: Optional[dict],
                          reasons: _Reasons) -> Decision:
        not_found = Decision(None, None, DecisionSource.ROLLOUT)
        if not feature.rollout_id:
            reasons.debug('There is no rollout of feature "%s".' % feature.key)
            return not_found
        rollout = config.get_rollout_from_id(feature.rollout_id)
        if rollout is None:
            reasons.error('Invalid rollout ID "%s" attached to feature "%s".' % (feature.rollout_id, feature.key))
            return not_found
        rules = rollout.rules
        if len(rules) == 0:
            reasons.error('Rollout "%s" has no experiments.' % rollout.id)
            return not_found

        bucketing_id = self.get_bucketing_id(user_id, attributes, reasons)
        everyone_else_index = len(rules) - 1
        index = 0
        while index < everyone_else_index:
            rule = rules[index]
            rule_label = str(index + 1)
            variation = self._find_forced_decision(config, feature.key, rule.key, user_id, reasons)
            if variation is not None:
                return Decision(rule, variation, DecisionSource.ROLLOUT)
            if not self._is_in_audience(config, rule, attributes, reasons, rule_label):
                reasons.debug('User "%s" does not meet conditions for targeting rule %s.' % (user_id, rule_label))
                index += 1
                continue
            reasons.debug('User "%s" meets conditions for targeting rule %s.' % (user_id, rule_label))
            variation = self._bucketer.bucket(config, rule, user_id, bucketing_id, reasons.sink)
            if variation is not None:
                reasons.debug('User "%s" bucketed into targeting rule %s.' % (user_id, rule_label))
                return Decision(rule, variation, DecisionSource.ROLLOUT)
            # a matching rule that does not bucket the user skips the remaining targeted rules
            reasons.debug('User "%s" not bucketed into targeting rule %s due to traffic allocation. Trying everyone rule.' % (user_id, rule_label))
            break

        everyone_else = rules[everyone_else_index]
        variation = self._find_forced_decision(config, feature.key, everyone_else.key, user_id, reasons)
        if variation is not None:
            return Decision(everyone_else, variation, DecisionSource.ROLLOUT)
        if self._is_in_audience(config, everyone_else, attributes, reasons, EVERYONE_ELSE_RULE_NAME):
            reasons.debug('User "%s" meets conditions for targeting rule "%s".' % (user_id, EVERYONE_ELSE_RULE_NAME))
            variation = self._bucketer.bucket(config, everyone_else, user_id, bucketing_id, reasons.sink)
            if variation is not None:
                reasons.debug('User "%s" bucketed into everyone targeting rule.' % user_id)
                return Decision(everyone_else, variation, DecisionSource.ROLLOUT)
            reasons.debug('User "%s" not bucketed into everyone targeting rule due to traffic allocation.' % user_id)
        return not_found

    def get_variation_for_feature(self, config: ProjectConfig, feature: FeatureFlag, user_id: str, attributes: Optional[dict] = None,
                                  options: Iterable[DecideOption] = ()) -> Decision:
        """
        Decides which experiment or rollout rule of a feature flag applies to a user.

        A forced decision for the whole flag wins outright, as a ``FEATURE_TEST`` decision with no
        experiment. Otherwise the feature's experiments are tried first, in order. If none produces a
        variation, the rollout's targeted rules are tried in order, then its final "Everyone Else"
        rule. A forced decision for a rule is honored when that rule is reached, ahead of its own
        checks. If nothing applies the result is a ``ROLLOUT`` decision with no variation, meaning
        the feature is off.
        """
        options = list(options)
        reasons = _Reasons(DecideOption.INCLUDE_REASONS in options)
        variation = self._find_forced_decision(config, feature.key, None, user_id, reasons)
        if variation is not None:
            return Decision(None, variation, DecisionSource.FEATURE_TEST, reasons.messages)
        tracker = self.new_profile_tracker(user_id, options)
        decision = self._feature_test_decision(config, feature, user_id, attributes, tracker, reasons)
        if tracker is not None:
            tracker.save()
        if decision is None:
            decision = self._rollout_decision(config, feature, user_id, attributes, reasons)
            if decision.variation is not None:
                reasons.debug('User "%s" is in rollout of feature "%s".' % (user_id, feature.key))
            else:
                reasons.debug('User "%s" is not in rollout of feature "%s".' % (user_id, feature.key))
        return Decision(decision.experiment, decision.variation, decision.source, reasons.messages)
