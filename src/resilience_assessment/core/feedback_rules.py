"""Conditional area feedback selected by sub-area levels.

Each area owns an admin-ordered list of rules. A rule matches when every one
of its conditions holds against the resolved sub-area levels; the first
matching rule by ascending priority supplies the area's conditional feedback.
"""

from collections.abc import Iterable, Mapping, Sequence

from resilience_assessment.core.entities import FeedbackCondition, FeedbackRule
from resilience_assessment.observability import get_logger

logger = get_logger(__name__)


def condition_matches(
    condition: FeedbackCondition,
    sub_area_levels: Mapping[str, str],
) -> bool:
    """Check one condition against resolved sub-area level codes.

    Args:
        condition: Sub-area id plus the accepted level codes (empty = any).
        sub_area_levels: Resolved level code per scored sub-area.

    Returns:
        False if the sub-area was not scored, or if it was scored at a level
        outside a non-empty ``level_codes`` set; True otherwise.
    """
    level_code = sub_area_levels.get(condition.sub_area_id)
    if level_code is None:
        return False
    if condition.level_codes and level_code not in condition.level_codes:
        return False
    return True


def rule_matches(rule: FeedbackRule, sub_area_levels: Mapping[str, str]) -> bool:
    """A rule matches when all its conditions match; no conditions always matches."""
    return all(condition_matches(c, sub_area_levels) for c in rule.conditions)


def match_feedback_rule(
    area_id: str,
    sub_area_levels: Mapping[str, str],
    rules: Iterable[FeedbackRule],
) -> str | None:
    """Return the feedback text of the first matching rule for an area.

    Inactive rules and rules owned by other areas are ignored. Remaining rules
    are scanned in ascending priority; ties keep their input order.

    Args:
        area_id: The area being scored.
        sub_area_levels: Resolved level code per scored sub-area of that area.
        rules: Candidate rules, in any order.

    Returns:
        The matching rule's feedback text, or None when no rule matches.
    """
    candidates = sorted(
        (r for r in rules if r.area_id == area_id and r.is_active),
        key=lambda r: r.priority,
    )
    for rule in candidates:
        if rule_matches(rule, sub_area_levels):
            logger.debug(
                "Feedback rule matched",
                area_id=area_id,
                rule_id=rule.id,
                priority=rule.priority,
            )
            return rule.feedback_text
    return None


def renumber_priorities(
    ordered_rule_ids: Sequence[str],
) -> tuple[list[tuple[str, int]], list[tuple[str, int]]]:
    """Plan a two-phase priority rewrite for a new rule order.

    Phase one parks every rule on a distinct negative placeholder so the
    final write never collides with a priority still held by another rule.
    Phase two assigns priorities ``1..n`` in the requested order.

    Args:
        ordered_rule_ids: Rule ids of one area in their new order.

    Returns:
        ``(placeholder_updates, final_updates)`` as lists of (rule_id, priority).

    Raises:
        ValueError: If a rule id appears more than once.
    """
    if len(set(ordered_rule_ids)) != len(ordered_rule_ids):
        raise ValueError("rule order must not contain duplicate rule ids")

    placeholders = [(rule_id, -(index + 1)) for index, rule_id in enumerate(ordered_rule_ids)]
    final = [(rule_id, index + 1) for index, rule_id in enumerate(ordered_rule_ids)]
    return placeholders, final
