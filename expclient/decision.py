"""
This submodule contains the public types describing the outcome of a decision.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class DecisionSource(Enum):
    """
    Where a decision came from. The value is the ``rule_type`` reported in impression events.
    """

    NONE = "none"
    """
    No experiment or rule produced a variation.
    """

    EXPERIMENT = "experiment"
    """
    The decision was made for a plain experiment requested by key.
    """

    FEATURE_TEST = "feature-test"
    """
    The decision came from an experiment attached to a feature flag.
    """

    ROLLOUT = "rollout"
    """
    The decision came from a rule of the feature flag's rollout, or no rule matched.
    """


class DecideOption(Enum):
    """
    Options that modify the behavior of :func:`expclient.client.ExpClient.decide`. Options passed
    to a call are combined with :func:`expclient.config.Config.default_decide_options`.
    """

    DISABLE_DECISION_EVENT = "DISABLE_DECISION_EVENT"
    """
    Do not queue an impression event for the decision.
    """

    ENABLED_FLAGS_ONLY = "ENABLED_FLAGS_ONLY"
    """
    For :func:`expclient.client.ExpClient.decide_all`, omit flags that are disabled for the user.
    """

    IGNORE_USER_PROFILE_SERVICE = "IGNORE_USER_PROFILE_SERVICE"
    """
    Neither read nor write the user profile store. Bucketing is computed from scratch.
    """

    INCLUDE_REASONS = "INCLUDE_REASONS"
    """
    Populate :func:`FlagDecision.reasons` with an explanation of how the decision was made.
    """

    EXCLUDE_VARIABLES = "EXCLUDE_VARIABLES"
    """
    Do not compute the flag's variable values.
    """

    @staticmethod
    def from_str(option: str) -> Optional['DecideOption']:
        """
        Returns the option with the given name, or None if there is no such option.
        """
        try:
            return next(e for e in DecideOption if e.value == option)
        except StopIteration:
            return None


class FlagDecision:
    """
    The result of :func:`expclient.client.ExpClient.decide`: the variation a user gets for a
    feature flag, with the flag's variable values for that variation.
    """

    __slots__ = ['__variation_key', '__enabled', '__variables', '__rule_key', '__flag_key', '__user_id', '__reasons']

    def __init__(self, variation_key: Optional[str], enabled: bool, variables: Dict[str, Any],
                 rule_key: Optional[str], flag_key: str, user_id: str, reasons: Optional[List[str]] = None):
        self.__variation_key = variation_key
        self.__enabled = enabled
        self.__variables = variables
        self.__rule_key = rule_key
        self.__flag_key = flag_key
        self.__user_id = user_id
        self.__reasons = reasons or []

    @staticmethod
    def error(flag_key: str, user_id: str, message: str) -> 'FlagDecision':
        """
        A decision that carries only an error message, used when no decision could be made.
        """
        return FlagDecision(None, False, {}, None, flag_key, user_id, [message])

    @property
    def variation_key(self) -> Optional[str]:
        """The key of the chosen variation, or None if the user was not bucketed."""
        return self.__variation_key

    @property
    def enabled(self) -> bool:
        return self.__enabled

    @property
    def variables(self) -> Dict[str, Any]:
        """Variable values keyed by variable key, already converted to their declared types."""
        return self.__variables

    @property
    def rule_key(self) -> Optional[str]:
        """The key of the experiment or rollout rule that produced the decision."""
        return self.__rule_key

    @property
    def flag_key(self) -> str:
        return self.__flag_key

    @property
    def user_id(self) -> str:
        return self.__user_id

    @property
    def reasons(self) -> List[str]:
        """
        Human-readable explanation of the decision. Empty unless
        :class:`DecideOption.INCLUDE_REASONS` was requested, except for errors.
        """
        return self.__reasons

    def to_json_dict(self) -> dict:
        return {
            'variation_key': self.__variation_key,
            'enabled': self.__enabled,
            'variables': self.__variables,
            'rule_key': self.__rule_key,
            'flag_key': self.__flag_key,
            'user_id': self.__user_id,
            'reasons': self.__reasons,
        }

    def __eq__(self, other) -> bool:
        return isinstance(other, FlagDecision) and self.to_json_dict() == other.to_json_dict()

    def __repr__(self) -> str:
        return "FlagDecision(%s)" % self.to_json_dict()
