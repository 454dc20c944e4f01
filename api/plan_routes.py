# ABOUTME: Planning routes: goals and tactics CRUD, reordering, and per-week tactic completions.
# ABOUTME: All routes are scoped to the confirmed current user; errors come back as {"message": ...}.

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from api.errors import error_response
from core import store
from core.auth import get_current_user
from core.completions import TacticType
from core.database import User, get_session
from core.schemas import GoalRecord, MeasurementConfigModel, TacticRecord

plan_router = APIRouter(tags=["plan"])


class GoalCreateRequest(BaseModel):
    id: Optional[str] = Field(default=None, description="Client-generated id for optimistic creates.")
    name: str = ""
    description: str = ""
    measurement_configs: list[MeasurementConfigModel] = Field(default_factory=list)


class GoalUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    measurement_configs: Optional[list[MeasurementConfigModel]] = None


class OrderRequest(BaseModel):
    ids: list[str]


class TacticCreateRequest(BaseModel):
    id: Optional[str] = None
    goal_id: str
    name: str = ""
    type: TacticType = TacticType.WEEKLY
    assigned_weeks: Optional[list[int]] = None


class TacticUpdateRequest(BaseModel):
    name: Optional[str] = None
    type: Optional[TacticType] = None
    assigned_weeks: Optional[list[int]] = None
    confirm_reset: bool = False


class CompletionRequest(BaseModel):
    # Shape is checked against the tactic's type in the store.
    value: Any


@plan_router.get("/goals")
def get_goals(current_user: User = Depends(get_current_user)):
    """List the user's goals in display order. Returns { goals: [...] }."""
    try:
        with get_session() as session:
            goals = store.list_goals(session, current_user.id)
            return {"goals": [store.goal_record(g) for g in goals]}
    except Exception as e:
        return error_response(e, "get_goals", "Could not load goals.")


@plan_router.post("/goals", status_code=201, response_model=GoalRecord)
def post_goals(req: GoalCreateRequest, current_user: User = Depends(get_current_user)):
    """Create a goal at the end of the list."""
    try:
        with get_session() as session:
            goal = store.create_goal(
                session,
                current_user.id,
                name=req.name,
                description=req.description,
                measurement_configs=req.measurement_configs,
                goal_id=req.id,
            )
            return store.goal_record(goal)
    except Exception as e:
        return error_response(e, "post_goals", "Could not save goal.")


@plan_router.put("/goals/order")
def put_goals_order(req: OrderRequest, current_user: User = Depends(get_current_user)):
    """Persist a full new goal order; ids must be exactly the user's goals."""
    try:
        with get_session() as session:
            goals = store.reorder_goals(session, current_user.id, req.ids)
            return {"goals": [store.goal_record(g) for g in goals]}
    except Exception as e:
        return error_response(e, "put_goals_order", "Could not save goal order.")


@plan_router.patch("/goals/{goal_id}", response_model=GoalRecord)
def patch_goal(goal_id: str, req: GoalUpdateRequest, current_user: User = Depends(get_current_user)):
    try:
        with get_session() as session:
            goal = store.update_goal(
                session,
                current_user.id,
                goal_id,
                name=req.name,
                description=req.description,
                measurement_configs=req.measurement_configs,
            )
            return store.goal_record(goal)
    except Exception as e:
        return error_response(e, "patch_goal", "Could not save goal.")


@plan_router.delete("/goals/{goal_id}", status_code=204)
def delete_goal(goal_id: str, current_user: User = Depends(get_current_user)):
    """Delete a goal along with its measurements and tactics."""
    try:
        with get_session() as session:
            store.delete_goal(session, current_user.id, goal_id)
    except Exception as e:
        return error_response(e, "delete_goal", "Could not delete goal.")
    return Response(status_code=204)


@plan_router.put("/goals/{goal_id}/tactics/order")
def put_tactics_order(goal_id: str, req: OrderRequest, current_user: User = Depends(get_current_user)):
    try:
        with get_session() as session:
            tactics = store.reorder_tactics(session, current_user.id, goal_id, req.ids)
            return {"tactics": [store.tactic_record(t) for t in tactics]}
    except Exception as e:
        return error_response(e, "put_tactics_order", "Could not save tactic order.")


@plan_router.get("/tactics")
def get_tactics(goal_id: Optional[str] = Query(None), current_user: User = Depends(get_current_user)):
    """List tactics, optionally for a single goal. Returns { tactics: [...] }."""
    try:
        with get_session() as session:
            tactics = store.list_tactics(session, current_user.id, goal_id=goal_id)
            return {"tactics": [store.tactic_record(t) for t in tactics]}
    except Exception as e:
        return error_response(e, "get_tactics", "Could not load tactics.")


@plan_router.post("/tactics", status_code=201, response_model=TacticRecord)
def post_tactics(req: TacticCreateRequest, current_user: User = Depends(get_current_user)):
    """Create a tactic under one of the user's goals; assigned to all 12 weeks by default."""
    try:
        with get_session() as session:
            tactic = store.create_tactic(
                session,
                current_user.id,
                req.goal_id,
                name=req.name,
                tactic_type=req.type,
                assigned_weeks=req.assigned_weeks,
                tactic_id=req.id,
            )
            return store.tactic_record(tactic)
    except Exception as e:
        return error_response(e, "post_tactics", "Could not save tactic.")


@plan_router.patch("/tactics/{tactic_id}", response_model=TacticRecord)
def patch_tactic(tactic_id: str, req: TacticUpdateRequest, current_user: User = Depends(get_current_user)):
    """Update a tactic. Changing type wipes completions; 409 unless confirm_reset when progress exists."""
    try:
        with get_session() as session:
            tactic = store.update_tactic(
                session,
                current_user.id,
                tactic_id,
                name=req.name,
                assigned_weeks=req.assigned_weeks,
                tactic_type=req.type,
                confirm_reset=req.confirm_reset,
            )
            return store.tactic_record(tactic)
    except Exception as e:
        return error_response(e, "patch_tactic", "Could not save tactic.")


@plan_router.delete("/tactics/{tactic_id}", status_code=204)
def delete_tactic(tactic_id: str, current_user: User = Depends(get_current_user)):
    try:
        with get_session() as session:
            store.delete_tactic(session, current_user.id, tactic_id)
    except Exception as e:
        return error_response(e, "delete_tactic", "Could not delete tactic.")
    return Response(status_code=204)


@plan_router.put("/tactics/{tactic_id}/completions/{week_num}", response_model=TacticRecord)
def put_completion(
    tactic_id: str,
    week_num: int,
    req: CompletionRequest,
    current_user: User = Depends(get_current_user),
):
    """Record one week: a bool for weekly tactics, a 7-item bool list (Mon..Sun) for daily ones."""
    try:
        with get_session() as session:
            tactic = store.set_completion(session, current_user.id, tactic_id, week_num, req.value)
            return store.tactic_record(tactic)
    except Exception as e:
        return error_response(e, "put_completion", "Could not save progress.")
