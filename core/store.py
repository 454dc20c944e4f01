# ABOUTME: User-scoped data store adapter over the SQLModel tables: goals, tactics, measurements, vision, cycle.
# ABOUTME: Every query filters by user_id; goal deletion cascades to measurements and tactics in application code.

from datetime import datetime
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlmodel import Session, select

from core.completions import (
    TacticType,
    normalize_completions,
    normalize_weeks,
    switch_type,
    validate_value,
)
from core.config import CYCLE_WEEKS
from core.cycle import actual_week, parse_start_date, reset_anchor, snap_to_monday
from core.database import Cycle, Goal, Measurement, Tactic, Vision
from core.errors import ConfirmationRequired, DuplicateIdError, NotFoundError
from core.ordering import ensure_same_members, positions_for
from core.schemas import (
    CycleRecord,
    GoalRecord,
    MeasurementConfigModel,
    MeasurementRecord,
    TacticRecord,
    VisionRecord,
)


def _check_week(week_num: int) -> None:
    if not 1 <= week_num <= CYCLE_WEEKS:
        raise ValueError(f"Week must be between 1 and {CYCLE_WEEKS}")


def _check_id_available(session: Session, model: Any, row_id: Optional[str]) -> None:
    """Client-chosen ids are global; the error never says whose row holds the id."""
    if row_id and session.get(model, row_id) is not None:
        raise DuplicateIdError("Id unavailable; choose another.")


def _dump_configs(configs: Iterable[Any]) -> list[dict[str, Any]]:
    return [MeasurementConfigModel.model_validate(c).model_dump() for c in configs]


# Records


def goal_record(goal: Goal) -> GoalRecord:
    return GoalRecord(
        id=goal.id,
        name=goal.name,
        description=goal.description,
        measurement_configs=goal.measurement_configs or [],
        position=goal.position,
    )


def tactic_record(tactic: Tactic) -> TacticRecord:
    return TacticRecord.model_validate(
        {
            "id": tactic.id,
            "goal_id": tactic.goal_id,
            "name": tactic.name,
            "type": tactic.type,
            "assigned_weeks": tactic.assigned_weeks,
            "completions": tactic.completions,
            "position": tactic.position,
        }
    )


def measurement_record(m: Measurement) -> MeasurementRecord:
    return MeasurementRecord(goal_id=m.goal_id, config_id=m.config_id, week_num=m.week_num, value=m.value)


def vision_record(vision: Vision) -> VisionRecord:
    return VisionRecord(long_term=vision.long_term, short_term=vision.short_term)


def cycle_record(cycle: Cycle, now: Optional[datetime] = None) -> CycleRecord:
    """Serve the cycle with its derived current week; reading never writes it back."""
    return CycleRecord(id=cycle.id, start_date=cycle.start_date, current_week=actual_week(cycle.start_date, now))


# Goals


def list_goals(session: Session, user_id: UUID) -> list[Goal]:
    stmt = select(Goal).where(Goal.user_id == user_id).order_by(Goal.position, Goal.id)
    return list(session.exec(stmt))


def get_goal(session: Session, user_id: UUID, goal_id: str) -> Goal:
    goal = session.get(Goal, goal_id)
    if goal is None or goal.user_id != user_id:
        raise NotFoundError("Goal not found.")
    return goal


def _next_position(rows: list[Any]) -> int:
    return max((r.position for r in rows), default=-1) + 1


def create_goal(
    session: Session,
    user_id: UUID,
    name: str = "",
    description: str = "",
    measurement_configs: Iterable[Any] = (),
    goal_id: Optional[str] = None,
) -> Goal:
    _check_id_available(session, Goal, goal_id)
    goal = Goal(
        user_id=user_id,
        name=name,
        description=description,
        measurement_configs=_dump_configs(measurement_configs),
        position=_next_position(list_goals(session, user_id)),
    )
    if goal_id:
        goal.id = goal_id
    session.add(goal)
    session.commit()
    session.refresh(goal)
    return goal


def update_goal(
    session: Session,
    user_id: UUID,
    goal_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    measurement_configs: Optional[Iterable[Any]] = None,
) -> Goal:
    """Apply the provided fields; None leaves a field unchanged."""
    goal = get_goal(session, user_id, goal_id)
    if name is not None:
        goal.name = name
    if description is not None:
        goal.description = description
    if measurement_configs is not None:
        goal.measurement_configs = _dump_configs(measurement_configs)
    session.add(goal)
    session.commit()
    session.refresh(goal)
    return goal


def delete_goal(session: Session, user_id: UUID, goal_id: str) -> None:
    """Delete a goal's measurements, then its tactics, then the goal itself."""
    goal = get_goal(session, user_id, goal_id)
    measurements = session.exec(
        select(Measurement).where(Measurement.user_id == user_id, Measurement.goal_id == goal_id)
    ).all()
    for m in measurements:
        session.delete(m)
    session.flush()
    tactics = session.exec(select(Tactic).where(Tactic.user_id == user_id, Tactic.goal_id == goal_id)).all()
    for t in tactics:
        session.delete(t)
    session.flush()
    session.delete(goal)
    session.commit()


def reorder_goals(session: Session, user_id: UUID, ordered_ids: list[str]) -> list[Goal]:
    """Persist a new order; ordered_ids must be a permutation of the user's goal ids."""
    goals = list_goals(session, user_id)
    ensure_same_members([g.id for g in goals], ordered_ids)
    positions = positions_for(ordered_ids)
    for goal in goals:
        goal.position = positions[goal.id]
        session.add(goal)
    session.commit()
    return list_goals(session, user_id)


# Tactics


def list_tactics(session: Session, user_id: UUID, goal_id: Optional[str] = None) -> list[Tactic]:
    stmt = select(Tactic).where(Tactic.user_id == user_id)
    if goal_id is not None:
        stmt = stmt.where(Tactic.goal_id == goal_id)
    return list(session.exec(stmt.order_by(Tactic.position, Tactic.id)))


def get_tactic(session: Session, user_id: UUID, tactic_id: str) -> Tactic:
    tactic = session.get(Tactic, tactic_id)
    if tactic is None or tactic.user_id != user_id:
        raise NotFoundError("Tactic not found.")
    return tactic


def create_tactic(
    session: Session,
    user_id: UUID,
    goal_id: str,
    name: str = "",
    tactic_type: TacticType | str = TacticType.WEEKLY,
    assigned_weeks: Optional[Iterable[int]] = None,
    tactic_id: Optional[str] = None,
) -> Tactic:
    """Create a tactic under one of the user's goals; assigned to every week unless told otherwise."""
    get_goal(session, user_id, goal_id)
    _check_id_available(session, Tactic, tactic_id)
    weeks = list(range(1, CYCLE_WEEKS + 1)) if assigned_weeks is None else normalize_weeks(assigned_weeks)
    tactic = Tactic(
        user_id=user_id,
        goal_id=goal_id,
        name=name,
        type=TacticType(tactic_type).value,
        assigned_weeks=weeks,
        completions={},
        position=_next_position(list_tactics(session, user_id)),
    )
    if tactic_id:
        tactic.id = tactic_id
    session.add(tactic)
    session.commit()
    session.refresh(tactic)
    return tactic


def update_tactic(
    session: Session,
    user_id: UUID,
    tactic_id: str,
    name: Optional[str] = None,
    assigned_weeks: Optional[Iterable[int]] = None,
    tactic_type: Optional[TacticType | str] = None,
    confirm_reset: bool = False,
) -> Tactic:
    """Update tactic metadata. A type change clears completions (ConfirmationRequired if history has progress)."""
    tactic = get_tactic(session, user_id, tactic_id)
    if tactic_type is not None and TacticType(tactic_type) != TacticType(tactic.type):
        tactic.completions = switch_type(tactic.type, tactic_type, tactic.completions, confirmed=confirm_reset)
        tactic.type = TacticType(tactic_type).value
    if name is not None:
        tactic.name = name
    if assigned_weeks is not None:
        tactic.assigned_weeks = normalize_weeks(assigned_weeks)
    session.add(tactic)
    session.commit()
    session.refresh(tactic)
    return tactic


def set_completion(session: Session, user_id: UUID, tactic_id: str, week_num: int, value: Any) -> Tactic:
    """Record one week's completion; the value must match the tactic's type."""
    _check_week(week_num)
    tactic = get_tactic(session, user_id, tactic_id)
    checked = validate_value(tactic.type, value)
    completions = {str(week): v for week, v in normalize_completions(tactic.type, tactic.completions).items()}
    completions[str(week_num)] = checked
    # Reassign so the JSON column is marked dirty.
    tactic.completions = completions
    session.add(tactic)
    session.commit()
    session.refresh(tactic)
    return tactic


def delete_tactic(session: Session, user_id: UUID, tactic_id: str) -> None:
    tactic = get_tactic(session, user_id, tactic_id)
    session.delete(tactic)
    session.commit()


def reorder_tactics(session: Session, user_id: UUID, goal_id: str, ordered_ids: list[str]) -> list[Tactic]:
    """Persist a new order for the tactics of one goal; ordered_ids must be a permutation of them."""
    get_goal(session, user_id, goal_id)
    tactics = list_tactics(session, user_id, goal_id=goal_id)
    ensure_same_members([t.id for t in tactics], ordered_ids)
    positions = positions_for(ordered_ids)
    for tactic in tactics:
        tactic.position = positions[tactic.id]
        session.add(tactic)
    session.commit()
    return list_tactics(session, user_id, goal_id=goal_id)


# Measurements


def list_measurements(session: Session, user_id: UUID) -> list[Measurement]:
    stmt = select(Measurement).where(Measurement.user_id == user_id).order_by(Measurement.week_num)
    return list(session.exec(stmt))


def upsert_measurement(
    session: Session, user_id: UUID, goal_id: str, config_id: str, week_num: int, value: float
) -> Measurement:
    """Insert or overwrite the single value for (user, config, week)."""
    _check_week(week_num)
    goal = get_goal(session, user_id, goal_id)
    if config_id not in {c.get("id") for c in goal.measurement_configs or []}:
        raise ValueError("Measurement config does not belong to this goal.")
    stmt = select(Measurement).where(
        Measurement.user_id == user_id,
        Measurement.config_id == config_id,
        Measurement.week_num == week_num,
    )
    row = session.exec(stmt).first()
    if row is None:
        row = Measurement(user_id=user_id, goal_id=goal_id, config_id=config_id, week_num=week_num, value=value)
    else:
        row.goal_id = goal_id
        row.value = value
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


# Vision


def get_vision(session: Session, user_id: UUID) -> Vision:
    """The user's vision, or an unsaved empty one."""
    return session.get(Vision, user_id) or Vision(user_id=user_id)


def upsert_vision(
    session: Session, user_id: UUID, long_term: Optional[str] = None, short_term: Optional[str] = None
) -> Vision:
    vision = get_vision(session, user_id)
    if long_term is not None:
        vision.long_term = long_term
    if short_term is not None:
        vision.short_term = short_term
    session.add(vision)
    session.commit()
    session.refresh(vision)
    return vision


# Cycle


def get_cycle(session: Session, user_id: UUID) -> Optional[Cycle]:
    return session.exec(select(Cycle).where(Cycle.user_id == user_id)).first()


def get_or_create_cycle(session: Session, user_id: UUID, now: Optional[datetime] = None) -> Cycle:
    """Return the user's cycle, creating one anchored to the Monday of the current week if missing."""
    cycle = get_cycle(session, user_id)
    if cycle is not None:
        return cycle
    cycle = Cycle(user_id=user_id, start_date=snap_to_monday(now).isoformat(), current_week=1)
    session.add(cycle)
    session.commit()
    session.refresh(cycle)
    return cycle


def set_cycle_start(session: Session, user_id: UUID, start_date: str, now: Optional[datetime] = None) -> Cycle:
    """Re-anchor the cycle; the given date is normalized to Monday 00:00 of its week."""
    cycle = get_or_create_cycle(session, user_id, now)
    cycle.start_date = snap_to_monday(parse_start_date(start_date)).isoformat()
    cycle.current_week = actual_week(cycle.start_date, now)
    session.add(cycle)
    session.commit()
    session.refresh(cycle)
    return cycle


def reset_cycle(session: Session, user_id: UUID, confirmed: bool, now: Optional[datetime] = None) -> Cycle:
    """Snap the start to this week's Monday and restart at week 1. Completions and measurements are kept."""
    if not confirmed:
        raise ConfirmationRequired("Resetting the cycle moves week 1 to the current week. Confirm to continue.")
    cycle = get_or_create_cycle(session, user_id, now)
    cycle.start_date = reset_anchor(now)
    cycle.current_week = 1
    session.add(cycle)
    session.commit()
    session.refresh(cycle)
    return cycle
