# ABOUTME: User-controlled ordering helpers for goals and tactics (drag moves, permutation checks, positions).
# ABOUTME: Reorders are permutations of the same id set; every member gets a fresh position.

from typing import Sequence


def move_item(ids: Sequence[str], from_index: int, to_index: int) -> list[str]:
    """Return ids with the item at from_index moved to to_index (a drag-and-drop gesture)."""
    result = list(ids)
    if not (0 <= from_index < len(result)) or not (0 <= to_index < len(result)):
        raise IndexError("Move indexes out of range")
    item = result.pop(from_index)
    result.insert(to_index, item)
    return result


def ensure_same_members(current_ids: Sequence[str], new_ids: Sequence[str]) -> None:
    """Raise ValueError unless new_ids is a permutation of current_ids."""
    if len(set(new_ids)) != len(new_ids):
        raise ValueError("Order contains duplicate ids")
    if set(new_ids) != set(current_ids):
        raise ValueError("Order must contain exactly the existing ids")


def positions_for(ids: Sequence[str]) -> dict[str, int]:
    return {item_id: index for index, item_id in enumerate(ids)}
