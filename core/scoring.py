# ABOUTME: Pure scoring: tactic score -> weekly score -> overall cycle progress, all in [0, 100].
# ABOUTME: Works on any object exposing type, assigned_weeks and completions (DB rows or API records).

from typing import Any, Iterable

from core.completions import TacticType, completion_for_week
from core.config import DAYS_PER_WEEK


def _is_assigned(tactic: Any, week_num: int) -> bool:
    return week_num in (tactic.assigned_weeks or [])


def tactic_score(tactic: Any, week_num: int) -> float:
    """Completion percentage of one tactic in one week. Missing or malformed values count as incomplete."""
    value = completion_for_week(tactic.completions, week_num)
    if tactic.type == TacticType.DAILY:
        days = list(value)[:DAYS_PER_WEEK] if isinstance(value, (list, tuple)) else []
        done = sum(1 for day in days if day is True)
        return 100 * done / DAYS_PER_WEEK
    return 100.0 if value is True else 0.0


def weekly_score(tactics: Iterable[Any], week_num: int) -> float:
    """Unweighted mean of tactic scores over tactics assigned to the week; 0 when none are assigned."""
    active = [t for t in tactics if _is_assigned(t, week_num)]
    if not active:
        return 0.0
    return sum(tactic_score(t, week_num) for t in active) / len(active)


def previous_week_score(tactics: Iterable[Any], week_num: int) -> float | None:
    """Score of the week before week_num, or None in week 1."""
    if week_num <= 1:
        return None
    return weekly_score(tactics, week_num - 1)


def overall_progress(tactics: Iterable[Any], current_week: int) -> float:
    """Cumulative completion across weeks 1..current_week; each tactic-week pairing is worth 100."""
    tactics = list(tactics)
    achieved = 0.0
    possible = 0
    for week in range(1, current_week + 1):
        for tactic in tactics:
            if _is_assigned(tactic, week):
                achieved += tactic_score(tactic, week)
                possible += 100
    if possible == 0:
        return 0.0
    return 100 * achieved / possible


def score_summary(tactics: Iterable[Any], week_num: int, current_week: int) -> dict[str, Any]:
    """Dashboard numbers for a viewed week; overall progress always runs to the actual current week."""
    tactics = list(tactics)
    return {
        "week": week_num,
        "actual_week": current_week,
        "weekly_score": weekly_score(tactics, week_num),
        "previous_week_score": previous_week_score(tactics, week_num),
        "overall_progress": overall_progress(tactics, current_week),
        "tactic_scores": {
            t.id: tactic_score(t, week_num) for t in tactics if _is_assigned(t, week_num)
        },
    }
