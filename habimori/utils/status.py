"""Goal period status resolution."""
from datetime import datetime

from habimori.models.goal import Goal, GoalStatus, TargetOp


def resolve_status(
    goal: Goal,
    actual_value: float,
    period_end: datetime,
    now: datetime,
) -> GoalStatus:
    """
    Resolve the status of a goal period.

    Reaching the target exactly counts in the goal's favour for both
    operators: ``gte`` succeeds at the target, ``lte`` only fails above it.

    Args:
        goal: Goal (needs is_archived, target_op, target_value)
        actual_value: Accumulated value for the period
        period_end: Exclusive end of the period
        now: Reference time

    Returns:
        GoalStatus
    """
    if goal.is_archived:
        return GoalStatus.ARCHIVED

    period_open = now < period_end

    if goal.target_op == TargetOp.GTE:
        if actual_value >= goal.target_value:
            return GoalStatus.SUCCESS
        return GoalStatus.IN_PROGRESS if period_open else GoalStatus.FAIL

    if actual_value > goal.target_value:
        return GoalStatus.FAIL
    return GoalStatus.IN_PROGRESS if period_open else GoalStatus.SUCCESS
