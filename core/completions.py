# ABOUTME: Tactic completion shapes: daily -> 7 booleans (Mon..Sun), weekly -> one boolean.
# ABOUTME: Normalizes stored JSON at the storage boundary and enforces the confirm-before-erase type switch.

from enum import Enum
from typing import Any, Union

from core.config import CYCLE_WEEKS, DAYS_PER_WEEK
from core.errors import ConfirmationRequired


class TacticType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


# The sibling `type` field is the tag of this union.
CompletionValue = Union[list[bool], bool]
Completions = dict[int, CompletionValue]


def empty_value(tactic_type: TacticType | str) -> CompletionValue:
    """Default value for a week with nothing recorded."""
    if TacticType(tactic_type) == TacticType.DAILY:
        return [False] * DAYS_PER_WEEK
    return False


def completion_for_week(completions: Any, week_num: int) -> Any:
    """Look up a week's stored value; JSON round-trips turn int keys into strings."""
    if not isinstance(completions, dict):
        return None
    if week_num in completions:
        return completions[week_num]
    return completions.get(str(week_num))


def normalize_value(tactic_type: TacticType | str, raw: Any) -> CompletionValue | None:
    """Coerce one stored value to the shape the tag demands, or None when it cannot be read as that shape.

    Daily arrays are padded/truncated to 7 and non-True entries become False. A bare boolean under a
    daily tactic (or an array under a weekly one) is stale data from before a type switch and is dropped.
    """
    if TacticType(tactic_type) == TacticType.DAILY:
        if not isinstance(raw, (list, tuple)):
            return None
        days = [day is True for day in list(raw)[:DAYS_PER_WEEK]]
        return days + [False] * (DAYS_PER_WEEK - len(days))
    if isinstance(raw, bool):
        return raw
    return None


def normalize_completions(tactic_type: TacticType | str, raw: Any) -> Completions:
    """Validate a whole completions mapping read from storage. Unknown weeks and unreadable values are dropped."""
    if not isinstance(raw, dict):
        return {}
    result: Completions = {}
    for key, value in raw.items():
        try:
            week = int(key)
        except (TypeError, ValueError):
            continue
        if not 1 <= week <= CYCLE_WEEKS:
            continue
        normalized = normalize_value(tactic_type, value)
        if normalized is not None:
            result[week] = normalized
    return result


def validate_value(tactic_type: TacticType | str, value: Any) -> CompletionValue:
    """Strict check for values written by clients. Raises ValueError on the wrong shape."""
    if TacticType(tactic_type) == TacticType.DAILY:
        if (
            not isinstance(value, list)
            or len(value) != DAYS_PER_WEEK
            or not all(isinstance(day, bool) for day in value)
        ):
            raise ValueError(f"Daily tactics take a list of {DAYS_PER_WEEK} booleans (Mon..Sun)")
        return list(value)
    if not isinstance(value, bool):
        raise ValueError("Weekly tactics take a single boolean")
    return value


def has_recorded_progress(completions: Any) -> bool:
    """True when any week holds at least one True value, whatever its shape."""
    if not isinstance(completions, dict):
        return False
    for value in completions.values():
        if isinstance(value, (list, tuple)):
            if any(day is True for day in value):
                return True
        elif value is True:
            return True
    return False


def requires_type_switch_confirmation(
    current_type: TacticType | str, new_type: TacticType | str, completions: Any
) -> bool:
    return TacticType(current_type) != TacticType(new_type) and has_recorded_progress(completions)


def switch_type(
    current_type: TacticType | str,
    new_type: TacticType | str,
    completions: Any,
    confirmed: bool = False,
) -> Completions:
    """Return the completions a tactic keeps after changing type.

    Same type: unchanged. Different type: always cleared, but only after confirmation when history
    holds progress (raises ConfirmationRequired otherwise).
    """
    if TacticType(current_type) == TacticType(new_type):
        return normalize_completions(current_type, completions)
    if requires_type_switch_confirmation(current_type, new_type, completions) and not confirmed:
        raise ConfirmationRequired(
            "Switching type erases all recorded completions for this tactic. Confirm to continue."
        )
    return {}


def normalize_weeks(weeks: Any) -> list[int]:
    """Assigned weeks as a sorted, de-duplicated list. Raises ValueError for weeks outside 1..12."""
    result: set[int] = set()
    for week in weeks or []:
        if isinstance(week, bool) or not isinstance(week, int):
            raise ValueError("Assigned weeks must be integers")
        if not 1 <= week <= CYCLE_WEEKS:
            raise ValueError(f"Assigned weeks must be between 1 and {CYCLE_WEEKS}")
        result.add(week)
    return sorted(result)
