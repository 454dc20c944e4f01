# ABOUTME: Tracking routes: measurements upsert, vision, cycle (start date, reset), derived scores and AI briefing.
# ABOUTME: Cycle reads derive the current week from the start date; reset needs confirm=true (409 otherwise).

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from api.errors import error_response
from core import store
from core.auth import get_current_user
from core.config import CYCLE_WEEKS
from core.cycle import actual_week
from core.database import User, get_session
from core.schemas import BriefingModel, CycleRecord, MeasurementRecord, ScoresModel, VisionRecord
from core.scoring import score_summary
from execution_coach.agent import generate_briefing

tracking_router = APIRouter(tags=["tracking"])


class VisionUpdateRequest(BaseModel):
    long_term: Optional[str] = None
    short_term: Optional[str] = None


class StartDateRequest(BaseModel):
    start_date: str


class ResetRequest(BaseModel):
    confirm: bool = False


class BriefingRequest(BaseModel):
    week: Optional[int] = None


@tracking_router.get("/measurements")
def get_measurements(current_user: User = Depends(get_current_user)):
    """All logged KPI values for the user. Returns { measurements: [...] }."""
    try:
        with get_session() as session:
            rows = store.list_measurements(session, current_user.id)
            return {"measurements": [store.measurement_record(m) for m in rows]}
    except Exception as e:
        return error_response(e, "get_measurements", "Could not load measurements.")


@tracking_router.put("/measurements", response_model=MeasurementRecord)
def put_measurement(req: MeasurementRecord, current_user: User = Depends(get_current_user)):
    """Insert or overwrite the value for (config, week)."""
    try:
        with get_session() as session:
            row = store.upsert_measurement(
                session, current_user.id, req.goal_id, req.config_id, req.week_num, req.value
            )
            return store.measurement_record(row)
    except Exception as e:
        return error_response(e, "put_measurement", "Could not save measurement.")


@tracking_router.get("/vision", response_model=VisionRecord)
def get_vision(current_user: User = Depends(get_current_user)):
    try:
        with get_session() as session:
            return store.vision_record(store.get_vision(session, current_user.id))
    except Exception as e:
        return error_response(e, "get_vision", "Could not load vision.")


@tracking_router.put("/vision", response_model=VisionRecord)
def put_vision(req: VisionUpdateRequest, current_user: User = Depends(get_current_user)):
    try:
        with get_session() as session:
            vision = store.upsert_vision(
                session, current_user.id, long_term=req.long_term, short_term=req.short_term
            )
            return store.vision_record(vision)
    except Exception as e:
        return error_response(e, "put_vision", "Could not save vision.")


@tracking_router.get("/cycle", response_model=CycleRecord)
def get_cycle(current_user: User = Depends(get_current_user)):
    """The user's cycle; created on first read, anchored to this week's Monday."""
    try:
        with get_session() as session:
            return store.cycle_record(store.get_or_create_cycle(session, current_user.id))
    except Exception as e:
        return error_response(e, "get_cycle", "Could not load cycle.")


@tracking_router.put("/cycle/start-date", response_model=CycleRecord)
def put_cycle_start_date(req: StartDateRequest, current_user: User = Depends(get_current_user)):
    """Re-anchor the cycle. The date is moved back to the Monday of its week."""
    try:
        with get_session() as session:
            return store.cycle_record(store.set_cycle_start(session, current_user.id, req.start_date))
    except Exception as e:
        return error_response(e, "put_cycle_start_date", "Could not save cycle start date.")


@tracking_router.post("/cycle/reset", response_model=CycleRecord)
def post_cycle_reset(req: ResetRequest, current_user: User = Depends(get_current_user)):
    """Restart the cycle this week. Completions and measurements are kept."""
    try:
        with get_session() as session:
            return store.cycle_record(store.reset_cycle(session, current_user.id, confirmed=req.confirm))
    except Exception as e:
        return error_response(e, "post_cycle_reset", "Could not reset cycle.")


def _scores(session, user_id, week: Optional[int]) -> tuple[ScoresModel, list[str]]:
    cycle = store.get_or_create_cycle(session, user_id)
    current = actual_week(cycle.start_date)
    tactics = [store.tactic_record(t) for t in store.list_tactics(session, user_id)]
    goal_names = [g.name for g in store.list_goals(session, user_id)]
    summary = score_summary(tactics, week or current, current)
    return ScoresModel(**summary), goal_names


@tracking_router.get("/scores", response_model=ScoresModel)
def get_scores(
    week: Optional[int] = Query(None, ge=1, le=CYCLE_WEEKS),
    current_user: User = Depends(get_current_user),
):
    """Weekly score, last week's score and overall progress. week defaults to the actual current week."""
    try:
        with get_session() as session:
            scores, _ = _scores(session, current_user.id, week)
            return scores
    except Exception as e:
        return error_response(e, "get_scores", "Could not compute scores.")


@tracking_router.post("/briefing", response_model=BriefingModel)
def post_briefing(req: BriefingRequest, current_user: User = Depends(get_current_user)):
    """Short AI coaching summary of the current numbers. AI failures come back as fallback text, not errors."""
    if req.week is not None and not 1 <= req.week <= CYCLE_WEEKS:
        return error_response(ValueError(f"Week must be between 1 and {CYCLE_WEEKS}"), "post_briefing", "")
    try:
        with get_session() as session:
            scores, goal_names = _scores(session, current_user.id, req.week)
    except Exception as e:
        return error_response(e, "post_briefing", "Could not load data for the briefing.")
    return generate_briefing(scores.week, scores.weekly_score, scores.overall_progress, goal_names)
