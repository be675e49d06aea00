from typing import Dict, Optional

from expclient.impl import condition_evaluator
from expclient.impl.model.audience import Audience
from expclient.impl.model.condition import AudienceReference, ConditionNode
from expclient.impl.util import log


def _evaluate_audience(node: ConditionNode, audiences_by_id: Dict[str, Audience], attributes: Optional[dict]) -> Optional[bool]:
    if not isinstance(node, AudienceReference):
        log.warning('Unexpected node %r in targeting expression' % (node,))
        return None
    audience = audiences_by_id.get(node.audience_id)
    if audience is None:
        log.warning('Targeting expression refers to unknown audience "%s"' % node.audience_id)
        return None
    result = condition_evaluator.evaluate(audience.conditions, attributes)
    log.debug('Audience "%s" evaluated to %s' % (node.audience_id, 'UNKNOWN' if result is None else str(result).upper()))
    return result


def evaluate_targeting(targeting: Optional[ConditionNode], audiences_by_id: Dict[str, Audience], attributes: Optional[dict]) -> Optional[bool]:
    """
    The three-valued result of a targeting expression, before unknown is collapsed to False. An
    empty expression matches everyone.
    """
    if targeting is None:
        return True
    return condition_evaluator.evaluate_tree(targeting, lambda node: _evaluate_audience(node, audiences_by_id, attributes))


def is_match(targeting: Optional[ConditionNode], audiences_by_id: Dict[str, Audience], attributes: Optional[dict]) -> bool:
    """
    Decides whether a user satisfies an experiment's or rule's targeting expression. A result that
    cannot be determined counts as not matching.
    """
    return evaluate_targeting(targeting, audiences_by_id, attributes) is True
