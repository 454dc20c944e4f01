# ABOUTME: In-memory copy of the signed-in user's plan with optimistic updates and deferred API writes.
# ABOUTME: Local state changes first; text fields and reorders are debounced, toggles are written immediately.

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from core.completions import TacticType, completion_for_week, empty_value, switch_type
from core.config import CYCLE_WEEKS, FIELD_DEBOUNCE_SECONDS, REORDER_DEBOUNCE_SECONDS
from core.cycle import actual_week, clamp_week, parse_start_date, reset_anchor, snap_to_monday
from core.database import new_id
from core.errors import ConfirmationRequired, NotFoundError
from core.measurements import latest_value, measurement_series, target_progress
from core.ordering import ensure_same_members, move_item
from core.schemas import (
    BRIEFING_FALLBACK_ERROR,
    CycleRecord,
    GoalRecord,
    MeasurementConfigModel,
    MeasurementRecord,
    TacticRecord,
    VisionRecord,
)
from core.scoring import score_summary
from ui.api_client import APIError, TrackerAPI
from ui.persistence import Debouncer, SaveStatusTracker
from ui.session import SIGNING_OUT

LOAD_FAILED_ALERT = (
    "Failed to load some of your data ({}). Showing what could be loaded; "
    "check that the API is running and that your account has access to its own rows."
)
GOAL_CREATE_FAILED_ALERT = (
    "Failed to save goal. Error: {}\n\nCheck that per-user access rules on the goals table allow this account to write."
)
TACTIC_CREATE_FAILED_ALERT = (
    "Failed to save tactic. Check that per-user access rules on the tactics table allow this account to write."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workspace:
    """Everything the screens read and edit. One instance per signed-in user."""

    def __init__(
        self,
        api: TrackerAPI,
        status: Optional[SaveStatusTracker] = None,
        field_debouncer: Optional[Debouncer] = None,
        reorder_debouncer: Optional[Debouncer] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.api = api
        self.status = status or SaveStatusTracker()
        self.fields = field_debouncer or Debouncer(FIELD_DEBOUNCE_SECONDS)
        self.reorders = reorder_debouncer or Debouncer(REORDER_DEBOUNCE_SECONDS)
        self._now = now
        self.goals: list[GoalRecord] = []
        self.tactics: list[TacticRecord] = []
        self.measurements: list[MeasurementRecord] = []
        self.vision = VisionRecord()
        self.cycle: Optional[CycleRecord] = None
        self.view_week = 1
        self.alerts: list[str] = []
        self.loaded = False

    # Loading

    def load(self) -> None:
        """Fetch every collection. A failed read leaves that collection empty and queues one alert."""
        failed: list[str] = []

        def fetch(label: str, call: Callable[[], Any]) -> Any:
            try:
                return call()
            except APIError as e:
                logging.warning("Loading %s failed: %s", label, e.message)
                failed.append(label)
                return None

        goals = fetch("goals", self.api.list_goals) or []
        tactics = fetch("tactics", self.api.list_tactics) or []
        measurements = fetch("measurements", self.api.list_measurements) or []
        vision = fetch("vision", self.api.get_vision)
        cycle = fetch("cycle", self.api.get_cycle)

        self.goals = sorted((GoalRecord.model_validate(g) for g in goals), key=lambda g: g.position)
        self.tactics = sorted((TacticRecord.model_validate(t) for t in tactics), key=lambda t: t.position)
        self.measurements = [MeasurementRecord.model_validate(m) for m in measurements]
        self.vision = VisionRecord.model_validate(vision) if vision else VisionRecord()
        self.cycle = CycleRecord.model_validate(cycle) if cycle else None
        self.view_week = self.actual_week
        if failed:
            self.alerts.append(LOAD_FAILED_ALERT.format(", ".join(failed)))
        self.loaded = True

    def take_alerts(self) -> list[str]:
        alerts, self.alerts = self.alerts, []
        return alerts

    def flush(self) -> None:
        """Send every deferred write now (before sign-out or leaving a screen)."""
        self.fields.flush()
        self.reorders.flush()

    def on_auth_change(self, event: str) -> bool:
        """Session listener. Returns True once this workspace belongs to a previous session.

        Pending writes are flushed while the outgoing token is still set; after any other
        auth change they are dropped, since they would go out under another account.
        """
        if event == SIGNING_OUT:
            self.flush()
            return False
        self.fields.cancel()
        self.reorders.cancel()
        return True

    # Lookups

    def goal(self, goal_id: str) -> GoalRecord:
        for g in self.goals:
            if g.id == goal_id:
                return g
        raise NotFoundError("Goal not found.")

    def tactic(self, tactic_id: str) -> TacticRecord:
        for t in self.tactics:
            if t.id == tactic_id:
                return t
        raise NotFoundError("Tactic not found.")

    def tactics_for_goal(self, goal_id: str) -> list[TacticRecord]:
        return [t for t in self.tactics if t.goal_id == goal_id]

    # Goals

    def add_goal(self, name: str = "New Goal", description: str = "") -> Optional[GoalRecord]:
        """Create a goal at the end of the list. A failed create is taken back out so later reorders stay valid."""
        goal = GoalRecord(id=new_id(), name=name, description=description, position=len(self.goals))
        self.goals.append(goal)
        try:
            self.status.begin()
            self.api.create_goal(goal.model_dump())
        except APIError as e:
            logging.error("Creating goal failed: %s", e.message)
            self.status.fail("Goal")
            self.alerts.append(GOAL_CREATE_FAILED_ALERT.format(e.message))
            self.goals = [g for g in self.goals if g.id != goal.id]
            return None
        else:
            self.status.succeed()
        return goal

    def update_goal(
        self,
        goal_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        measurement_configs: Optional[list[Any]] = None,
    ) -> GoalRecord:
        goal = self.goal(goal_id)
        if name is not None:
            goal.name = name
        if description is not None:
            goal.description = description
        if measurement_configs is not None:
            goal.measurement_configs = [MeasurementConfigModel.model_validate(c) for c in measurement_configs]
        self.fields.schedule(f"goal:{goal_id}", self._write_goal, goal_id)
        return goal

    def _write_goal(self, goal_id: str) -> None:
        try:
            goal = self.goal(goal_id)
        except NotFoundError:
            return
        body = goal.model_dump(include={"name", "description", "measurement_configs"})
        self.status.track("Goal", self.api.update_goal, goal_id, body)

    def add_measurement_config(
        self, goal_id: str, name: str = "", unit: str = "", target: Optional[float] = None
    ) -> MeasurementConfigModel:
        goal = self.goal(goal_id)
        config = MeasurementConfigModel(name=name, unit=unit, target=target)
        self.update_goal(goal_id, measurement_configs=[*goal.measurement_configs, config])
        return config

    def update_measurement_config(self, goal_id: str, config_id: str, **fields: Any) -> None:
        goal = self.goal(goal_id)
        configs = [
            c.model_copy(update=fields) if c.id == config_id else c for c in goal.measurement_configs
        ]
        self.update_goal(goal_id, measurement_configs=configs)

    def remove_measurement_config(self, goal_id: str, config_id: str) -> None:
        goal = self.goal(goal_id)
        self.update_goal(goal_id, measurement_configs=[c for c in goal.measurement_configs if c.id != config_id])

    def delete_goal(self, goal_id: str) -> None:
        """Remove the goal with its tactics and measurements locally, then on the server."""
        self.goal(goal_id)
        self.fields.cancel(f"goal:{goal_id}")
        for t in self.tactics_for_goal(goal_id):
            self.fields.cancel(f"tactic:{t.id}")
        self.reorders.cancel(f"reorder:tactics:{goal_id}")
        for m in self.measurements:
            if m.goal_id == goal_id:
                self.fields.cancel(f"measurement:{m.config_id}:{m.week_num}")
        self.measurements = [m for m in self.measurements if m.goal_id != goal_id]
        self.tactics = [t for t in self.tactics if t.goal_id != goal_id]
        self.goals = [g for g in self.goals if g.id != goal_id]
        self.status.track("Goal", self.api.delete_goal, goal_id)

    def move_goal(self, from_index: int, to_index: int) -> None:
        self.reorder_goals(move_item([g.id for g in self.goals], from_index, to_index))

    def reorder_goals(self, ordered_ids: list[str]) -> None:
        ensure_same_members([g.id for g in self.goals], ordered_ids)
        by_id = {g.id: g for g in self.goals}
        self.goals = [by_id[i] for i in ordered_ids]
        for index, goal in enumerate(self.goals):
            goal.position = index
        self.reorders.schedule("reorder:goals", self._write_goal_order)

    def _write_goal_order(self) -> None:
        self.status.track("Goal", self.api.reorder_goals, [g.id for g in self.goals])

    # Tactics

    def add_tactic(
        self,
        goal_id: str,
        name: str = "New Tactic",
        tactic_type: TacticType = TacticType.DAILY,
        assigned_weeks: Optional[list[int]] = None,
    ) -> Optional[TacticRecord]:
        self.goal(goal_id)
        tactic = TacticRecord(
            id=new_id(),
            goal_id=goal_id,
            name=name,
            type=tactic_type,
            assigned_weeks=assigned_weeks if assigned_weeks is not None else list(range(1, CYCLE_WEEKS + 1)),
            position=len(self.tactics),
        )
        self.tactics.append(tactic)
        body = tactic.model_dump(include={"id", "goal_id", "name", "type", "assigned_weeks"}, mode="json")
        try:
            self.status.begin()
            self.api.create_tactic(body)
        except APIError as e:
            logging.error("Creating tactic failed: %s", e.message)
            self.status.fail("Tactic")
            self.alerts.append(TACTIC_CREATE_FAILED_ALERT)
            self.tactics = [t for t in self.tactics if t.id != tactic.id]
            return None
        else:
            self.status.succeed()
        return tactic

    def update_tactic(
        self, tactic_id: str, name: Optional[str] = None, assigned_weeks: Optional[list[int]] = None
    ) -> TacticRecord:
        tactic = self.tactic(tactic_id)
        if name is not None:
            tactic.name = name
        if assigned_weeks is not None:
            tactic.assigned_weeks = sorted(set(assigned_weeks))
        self.fields.schedule(f"tactic:{tactic_id}", self._write_tactic, tactic_id)
        return tactic

    def _write_tactic(self, tactic_id: str) -> None:
        try:
            tactic = self.tactic(tactic_id)
        except NotFoundError:
            return
        body = {"name": tactic.name, "assigned_weeks": tactic.assigned_weeks}
        self.status.track("Tactic", self.api.update_tactic, tactic_id, body)

    def toggle_assigned_week(self, tactic_id: str, week_num: int) -> TacticRecord:
        tactic = self.tactic(tactic_id)
        weeks = set(tactic.assigned_weeks)
        weeks.symmetric_difference_update({week_num})
        return self.update_tactic(tactic_id, assigned_weeks=list(weeks))

    def change_tactic_type(self, tactic_id: str, new_type: TacticType, confirmed: bool = False) -> TacticRecord:
        """Switch daily/weekly. Raises ConfirmationRequired when recorded progress would be erased."""
        tactic = self.tactic(tactic_id)
        if TacticType(new_type) == tactic.type:
            return tactic
        tactic.completions = switch_type(tactic.type, new_type, tactic.completions, confirmed=confirmed)
        tactic.type = TacticType(new_type)
        self.status.track(
            "Tactic", self.api.update_tactic, tactic_id, {"type": tactic.type.value}, confirm_reset=True
        )
        return tactic

    def completion(self, tactic_id: str, week_num: int) -> Any:
        tactic = self.tactic(tactic_id)
        value = completion_for_week(tactic.completions, week_num)
        return value if value is not None else empty_value(tactic.type)

    def toggle_day(self, tactic_id: str, week_num: int, day_index: int) -> list[bool]:
        """Flip one day (0 = Monday) of a daily tactic."""
        tactic = self.tactic(tactic_id)
        if tactic.type != TacticType.DAILY:
            raise ValueError("Only daily tactics track individual days")
        days = list(self.completion(tactic_id, week_num))
        days[day_index] = not days[day_index]
        self._set_completion(tactic, week_num, days)
        return days

    def set_weekly_done(self, tactic_id: str, week_num: int, done: bool) -> None:
        tactic = self.tactic(tactic_id)
        if tactic.type != TacticType.WEEKLY:
            raise ValueError("Only weekly tactics are marked done for a whole week")
        self._set_completion(tactic, week_num, bool(done))

    def _set_completion(self, tactic: TacticRecord, week_num: int, value: Any) -> None:
        if not 1 <= week_num <= CYCLE_WEEKS:
            raise ValueError(f"Week must be between 1 and {CYCLE_WEEKS}")
        tactic.completions = {**tactic.completions, week_num: value}
        self.status.track("Tactic", self.api.set_completion, tactic.id, week_num, value)

    def delete_tactic(self, tactic_id: str) -> None:
        self.tactic(tactic_id)
        self.fields.cancel(f"tactic:{tactic_id}")
        self.tactics = [t for t in self.tactics if t.id != tactic_id]
        self.status.track("Tactic", self.api.delete_tactic, tactic_id)

    def move_tactic(self, goal_id: str, from_index: int, to_index: int) -> None:
        ids = [t.id for t in self.tactics_for_goal(goal_id)]
        self.reorder_tactics(goal_id, move_item(ids, from_index, to_index))

    def reorder_tactics(self, goal_id: str, ordered_ids: list[str]) -> None:
        members = self.tactics_for_goal(goal_id)
        ensure_same_members([t.id for t in members], ordered_ids)
        positions = {tactic_id: index for index, tactic_id in enumerate(ordered_ids)}
        for t in members:
            t.position = positions[t.id]
        others = [t for t in self.tactics if t.goal_id != goal_id]
        self.tactics = others + sorted(members, key=lambda t: t.position)
        self.reorders.schedule(f"reorder:tactics:{goal_id}", self._write_tactic_order, goal_id)

    def _write_tactic_order(self, goal_id: str) -> None:
        ids = [t.id for t in self.tactics_for_goal(goal_id)]
        self.status.track("Tactic", self.api.reorder_tactics, goal_id, ids)

    # Measurements

    def update_measurement(self, goal_id: str, config_id: str, week_num: int, value: float) -> MeasurementRecord:
        if not 1 <= week_num <= CYCLE_WEEKS:
            raise ValueError(f"Week must be between 1 and {CYCLE_WEEKS}")
        record = MeasurementRecord(goal_id=goal_id, config_id=config_id, week_num=week_num, value=value)
        self.measurements = [
            m for m in self.measurements if not (m.config_id == config_id and m.week_num == week_num)
        ] + [record]
        self.fields.schedule(
            f"measurement:{config_id}:{week_num}",
            self.status.track,
            "Measurement",
            self.api.upsert_measurement,
            goal_id,
            config_id,
            week_num,
            value,
        )
        return record

    def series(self, config_id: str) -> list[Optional[float]]:
        return measurement_series(self.measurements, config_id)

    def latest(self, config_id: str) -> float:
        return latest_value(self.measurements, config_id)

    def progress(self, config: MeasurementConfigModel) -> Optional[float]:
        return target_progress(config, self.latest(config.id))

    # Vision

    def update_vision(self, long_term: Optional[str] = None, short_term: Optional[str] = None) -> VisionRecord:
        if long_term is not None:
            self.vision.long_term = long_term
        if short_term is not None:
            self.vision.short_term = short_term
        self.fields.schedule("vision", self._write_vision)
        return self.vision

    def _write_vision(self) -> None:
        self.status.track("Vision", self.api.update_vision, self.vision.model_dump())

    # Cycle

    @property
    def actual_week(self) -> int:
        if self.cycle is None:
            return 1
        return actual_week(self.cycle.start_date, self._now())

    def set_view_week(self, week_num: int) -> int:
        """Browse another week. Never touches the stored cycle."""
        self.view_week = clamp_week(week_num)
        return self.view_week

    def reset_cycle(self, confirmed: bool = False) -> Optional[CycleRecord]:
        """Move week 1 to the current real-world week. Completions and measurements stay as they are."""
        if not confirmed:
            raise ConfirmationRequired("Resetting the cycle moves week 1 to the current week. Confirm to continue.")
        start = reset_anchor(self._now())
        self.cycle = CycleRecord(id=self.cycle.id if self.cycle else new_id(), start_date=start, current_week=1)
        self.view_week = 1
        self.status.track("Cycle", self.api.reset_cycle, True)
        return self.cycle

    def update_cycle_start_date(self, start_date: str) -> Optional[CycleRecord]:
        """Re-anchor the cycle to the Monday of the given date's week."""
        monday = snap_to_monday(parse_start_date(start_date)).isoformat()
        self.cycle = CycleRecord(
            id=self.cycle.id if self.cycle else new_id(),
            start_date=monday,
            current_week=actual_week(monday, self._now()),
        )
        self.view_week = self.cycle.current_week
        self.status.track("Cycle", self.api.set_cycle_start, monday)
        return self.cycle

    # Scores

    def scores(self) -> dict[str, Any]:
        return score_summary(self.tactics, self.view_week, self.actual_week)

    def briefing(self) -> str:
        """Ask the API for the AI briefing of the viewed week; unreachable API yields the fallback text."""
        try:
            return self.api.briefing(self.view_week).get("briefing") or BRIEFING_FALLBACK_ERROR
        except APIError as e:
            logging.warning("Briefing request failed: %s", e.message)
            return BRIEFING_FALLBACK_ERROR
