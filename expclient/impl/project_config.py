"""
Internal implementation of the configuration index: turns a raw configuration document into
an immutable snapshot with the lookup tables the decision pipeline needs.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Union

from expclient.errors import ConfigError
from expclient.impl.model import *
from expclient.impl.util import Result, log

SUPPORTED_VERSIONS = ('2', '3', '4')
RESERVED_ATTRIBUTE_PREFIX = '$opt_'


def _build_all(kind: str, items: list, factory: Callable[[dict], Any], strict: bool) -> list:
    out = []
    for item in items:
        try:
            out.append(factory(item))
        except ValueError as e:
            if strict:
                raise
            log.warning("Skipping invalid %s in configuration: %s" % (kind, e))
    return out


class ProjectConfig:
    """
    A read-only snapshot of one revision of the configuration document.

    Instances are never modified after construction; a configuration update builds a new
    instance. Use :func:`ProjectConfig.from_datafile` to create one.
    """

    def __init__(self, datafile: dict, skip_json_validation: bool = False):
        strict = not skip_json_validation
        version = datafile.get('version')
        if version is not None and str(version) not in SUPPORTED_VERSIONS:
            raise ValueError('configuration version "%s" is not supported' % version)

        self.__version = None if version is None else str(version)
        self.__revision = str(datafile.get('revision', ''))
        self.__account_id = str(datafile.get('accountId', ''))
        self.__project_id = str(datafile.get('projectId', ''))
        self.__anonymize_ip = opt_bool(datafile, 'anonymizeIP')
        self.__bot_filtering = opt_type(datafile, 'botFiltering', bool)
        self.__send_flag_decisions = opt_bool(datafile, 'sendFlagDecisions')

        audiences = _build_all('audience', opt_dict_list(datafile, 'audiences'), Audience, strict)
        typed_audiences = _build_all('audience', opt_dict_list(datafile, 'typedAudiences'), Audience, strict)
        self.__audience_id_map = dict((a.id, a) for a in audiences)
        # typed audiences take precedence over string-encoded ones with the same id
        self.__audience_id_map.update((a.id, a) for a in typed_audiences)

        self.__attribute_key_map = dict((a.key, a) for a in _build_all('attribute', opt_dict_list(datafile, 'attributes'), Attribute, strict))
        self.__event_key_map = dict((e.key, e) for e in _build_all('event', opt_dict_list(datafile, 'events'), EventDefinition, strict))

        groups = _build_all('group', opt_dict_list(datafile, 'groups'), Group, strict)
        self.__group_id_map = dict((g.id, g) for g in groups)

        experiments = _build_all('experiment', opt_dict_list(datafile, 'experiments'), Experiment, strict)
        for group in groups:
            experiments.extend(group.experiments)
        self.__experiment_key_map = dict((e.key, e) for e in experiments)
        self.__experiment_id_map = dict((e.id, e) for e in experiments)

        rollouts = _build_all('rollout', opt_dict_list(datafile, 'rollouts'), Rollout, strict)
        self.__rollout_id_map = dict((r.id, r) for r in rollouts)

        self.__variation_id_map = {}  # type: Dict[str, Variation]
        for experiment in experiments:
            for variation in experiment.variations:
                self.__variation_id_map[variation.id] = variation
        for rollout in rollouts:
            for rule in rollout.rules:
                # rollout rules are only reachable by id through their rollout, never by key
                self.__experiment_id_map.setdefault(rule.id, rule)
                for variation in rule.variations:
                    self.__variation_id_map[variation.id] = variation

        features = _build_all('feature flag', opt_dict_list(datafile, 'featureFlags'), FeatureFlag, strict)
        self.__feature_key_map = dict((f.key, f) for f in features)
        self.__experiment_feature_map = {}  # type: Dict[str, List[str]]
        self.__flag_variations_map = {}  # type: Dict[str, List[Variation]]
        for feature in features:
            for experiment_id in feature.experiment_ids:
                self.__experiment_feature_map.setdefault(experiment_id, []).append(feature.id)
            variations = []  # type: List[Variation]
            seen = set()
            for rule in self._rules_for_feature(feature):
                for variation in rule.variations:
                    if variation.id not in seen:
                        seen.add(variation.id)
                        variations.append(variation)
            self.__flag_variations_map[feature.key] = variations

    @staticmethod
    def from_datafile(datafile: Union[str, bytes, dict], skip_json_validation: bool = False) -> 'ProjectConfig':
        """
        Builds a configuration snapshot from a raw document, given either as JSON text or as an
        already-decoded dict. The input is never modified and nothing in the result aliases it.

        :param datafile: the configuration document
        :param skip_json_validation: if True, entities that fail validation are dropped with a
            warning instead of rejecting the whole document
        :raises ConfigError: if the document is not valid
        """
        try:
            if isinstance(datafile, (str, bytes)):
                data = json.loads(datafile)
            else:
                data = datafile
            if not isinstance(data, dict):
                raise ValueError('configuration document should be a JSON object')
            return ProjectConfig(data, skip_json_validation)
        except ValueError as e:
            raise ConfigError('Invalid configuration document: %s' % e) from e
        except TypeError as e:
            raise ConfigError('Invalid configuration document: %s' % e) from e

    def _rules_for_feature(self, feature: FeatureFlag) -> List[Experiment]:
        rules = [self.__experiment_id_map[i] for i in feature.experiment_ids if i in self.__experiment_id_map]
        rollout = self.__rollout_id_map.get(feature.rollout_id) if feature.rollout_id else None
        if rollout is not None:
            rules.extend(rollout.rules)
        return rules

    @property
    def version(self) -> Optional[str]:
        return self.__version

    @property
    def revision(self) -> str:
        return self.__revision

    @property
    def account_id(self) -> str:
        return self.__account_id

    @property
    def project_id(self) -> str:
        return self.__project_id

    @property
    def anonymize_ip(self) -> bool:
        return self.__anonymize_ip

    @property
    def bot_filtering(self) -> Optional[bool]:
        return self.__bot_filtering

    @property
    def send_flag_decisions(self) -> bool:
        """Whether impressions are also recorded for rollout decisions, not only for experiments."""
        return self.__send_flag_decisions

    @property
    def audiences_by_id(self) -> Dict[str, Audience]:
        return self.__audience_id_map

    @property
    def experiments(self) -> List[Experiment]:
        return list(self.__experiment_key_map.values())

    @property
    def feature_flags(self) -> List[FeatureFlag]:
        return list(self.__feature_key_map.values())

    def get_experiment_from_key(self, key: str) -> Optional[Experiment]:
        return self.__experiment_key_map.get(key)

    def get_experiment_from_id(self, experiment_id: str) -> Optional[Experiment]:
        return self.__experiment_id_map.get(experiment_id)

    def get_feature_from_key(self, key: str) -> Optional[FeatureFlag]:
        return self.__feature_key_map.get(key)

    def get_feature_ids_for_experiment(self, experiment_id: str) -> List[str]:
        return self.__experiment_feature_map.get(experiment_id, [])

    def get_audience(self, audience_id: str) -> Optional[Audience]:
        return self.__audience_id_map.get(audience_id)

    def get_group(self, group_id: str) -> Optional[Group]:
        return self.__group_id_map.get(group_id)

    def get_rollout_from_id(self, rollout_id: str) -> Optional[Rollout]:
        return self.__rollout_id_map.get(rollout_id)

    def get_variation_from_id(self, variation_id: str) -> Optional[Variation]:
        return self.__variation_id_map.get(variation_id)

    def get_variation_from_key(self, experiment_key: str, variation_key: str) -> Optional[Variation]:
        experiment = self.__experiment_key_map.get(experiment_key)
        return None if experiment is None else experiment.get_variation_by_key(variation_key)

    def get_flag_variations(self, feature_key: str) -> List[Variation]:
        return self.__flag_variations_map.get(feature_key, [])

    def get_event(self, event_key: str) -> Optional[EventDefinition]:
        return self.__event_key_map.get(event_key)

    def get_attribute_id(self, attribute_key: str) -> Optional[str]:
        """
        Returns the id to report a visitor attribute under, or None if the attribute is unknown. Keys
        with the reserved ``$opt_`` prefix are reported under their own key.
        """
        attribute = self.__attribute_key_map.get(attribute_key)
        has_reserved_prefix = attribute_key.startswith(RESERVED_ATTRIBUTE_PREFIX)
        if attribute is not None:
            if has_reserved_prefix:
                log.warning('Attribute %s unexpectedly has reserved prefix %s; using attribute ID instead of reserved attribute name.' % (attribute_key, RESERVED_ATTRIBUTE_PREFIX))
            return attribute.id
        if has_reserved_prefix:
            return attribute_key
        log.debug('Unrecognized attribute %s provided. Pruning before sending event.' % attribute_key)
        return None

    def get_variable_value(self, variation: Optional[Variation], variable: Variable) -> str:
        """
        The encoded value of a variable for a variation, falling back to the variable's default when
        the variation does not override it.
        """
        if variation is not None:
            usage = variation.variables.get(variable.id)
            if usage is not None:
                return usage.value
        return variable.default_value


def cast_variable_value(value: str, variable_type: str) -> Result:
    """
    Converts the string encoding of a variable value to its declared type. Never raises: a value
    that cannot be converted yields a failed :class:`Result` so that the caller can fall back to a
    default.
    """
    try:
        if variable_type == VARIABLE_TYPE_BOOLEAN:
            if value == 'true':
                return Result.success(True)
            if value == 'false':
                return Result.success(False)
            return Result.fail('"%s" is not a boolean' % value)
        if variable_type == VARIABLE_TYPE_INTEGER:
            return Result.success(int(value))
        if variable_type == VARIABLE_TYPE_DOUBLE:
            return Result.success(float(value))
        if variable_type == VARIABLE_TYPE_JSON:
            return Result.success(json.loads(value))
        if variable_type == VARIABLE_TYPE_STRING:
            return Result.success(value)
    except (ValueError, TypeError) as e:
        return Result.fail('Unable to cast value "%s" to type "%s"' % (value, variable_type), e)
    return Result.fail('Unknown variable type "%s"' % variable_type)
