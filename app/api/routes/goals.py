"""
Goal Routes
CRUD and filtered listings for the caller's goals
"""
from fastapi import APIRouter, HTTPException, Depends, Query, Response

from app.models.goal import GoalPayload, Priority
from app.models.user import User
from app.api.routes.auth import get_current_user
from app.services.planner import GoalStore, goal_store


router = APIRouter()


def get_goal_store() -> GoalStore:
    return goal_store


@router.get("")
async def list_goals(
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    """All goals, active and completed, most recently updated first"""
    goals = await store.list_goals(current_user.user_id)
    return [goal.to_public() for goal in goals]


@router.get("/active")
async def list_active_goals(
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    goals = await store.list_active_goals(current_user.user_id)
    return [goal.to_public() for goal in goals]


@router.get("/category/{category}")
async def list_goals_by_category(
    category: str,
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    goals = await store.list_goals_by(current_user.user_id, category=category)
    return [goal.to_public() for goal in goals]


@router.get("/priority/{priority}")
async def list_goals_by_priority(
    priority: Priority,
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    goals = await store.list_goals_by(current_user.user_id, priority=priority)
    return [goal.to_public() for goal in goals]


@router.get("/search")
async def search_goals(
    q: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    """Match ``q`` against title, description, category and tags"""
    goals = await store.search_goals(current_user.user_id, q)
    return [goal.to_public() for goal in goals]


@router.get("/{goal_id}")
async def get_goal(
    goal_id: int,
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    goal = await store.get_goal(current_user.user_id, goal_id)
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal.to_public()


@router.post("", status_code=201)
async def create_goal(
    request: GoalPayload,
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    goal = await store.create_goal(current_user.user_id, request.to_fields())
    return goal.to_public()


@router.put("/{goal_id}")
async def update_goal(
    goal_id: int,
    request: GoalPayload,
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    goal = await store.update_goal(current_user.user_id, goal_id, request.to_fields())
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal.to_public()


@router.delete("/{goal_id}", status_code=204)
async def delete_goal(
    goal_id: int,
    current_user: User = Depends(get_current_user),
    store: GoalStore = Depends(get_goal_store),
):
    if not await store.delete_goal(current_user.user_id, goal_id):
        raise HTTPException(status_code=404, detail="Goal not found")
    return Response(status_code=204)
