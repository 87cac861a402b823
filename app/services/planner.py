"""
Planner store
Beanie-backed persistence for a user's notes and goals. Every query is
scoped to the owning user.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from app.models.counter import next_sequence
from app.models.goal import Goal
from app.models.note import Note


def goal_matches(goal: Any, term: str) -> bool:
    """Case-insensitive search over title, description, category and tags."""
    term = term.lower()
    fields = [goal.title, goal.description or "", goal.category or ""] + list(goal.tags or [])
    return any(term in field.lower() for field in fields)


class NoteStore:
    async def list_notes(self, user_id: int) -> List[Note]:
        return await Note.find(Note.user_id == user_id).sort("-updated_at").to_list()

    async def get_note(self, user_id: int, note_id: int) -> Optional[Note]:
        return await Note.find_one(Note.note_id == note_id, Note.user_id == user_id)

    async def create_note(self, user_id: int, title: str, content: str) -> Note:
        note = Note(
            note_id=await next_sequence("notes"),
            user_id=user_id,
            title=title,
            content=content,
        )
        await note.insert()
        return note

    async def update_note(self, user_id: int, note_id: int, title: str, content: str) -> Optional[Note]:
        note = await self.get_note(user_id, note_id)
        if not note:
            return None
        note.title = title
        note.content = content
        note.updated_at = datetime.utcnow()
        await note.save()
        return note

    async def delete_note(self, user_id: int, note_id: int) -> bool:
        note = await self.get_note(user_id, note_id)
        if not note:
            return False
        await note.delete()
        return True


class GoalStore:
    async def list_goals(self, user_id: int) -> List[Goal]:
        return await Goal.find(Goal.user_id == user_id).sort("-updated_at").to_list()

    async def list_active_goals(self, user_id: int) -> List[Goal]:
        return await Goal.find(
            Goal.user_id == user_id,
            Goal.completed == False,  # noqa: E712
        ).sort("-updated_at").to_list()

    async def list_goals_by(self, user_id: int, **filters: str) -> List[Goal]:
        """Goals whose fields equal ``filters``, e.g. ``category="health"``."""
        goals = await self.list_goals(user_id)
        return [g for g in goals if all(getattr(g, k) == v for k, v in filters.items())]

    async def search_goals(self, user_id: int, term: str) -> List[Goal]:
        goals = await self.list_goals(user_id)
        return [g for g in goals if goal_matches(g, term)]

    async def get_goal(self, user_id: int, goal_id: int) -> Optional[Goal]:
        return await Goal.find_one(Goal.goal_id == goal_id, Goal.user_id == user_id)

    async def create_goal(self, user_id: int, fields: Dict[str, Any]) -> Goal:
        goal = Goal(goal_id=await next_sequence("goals"), user_id=user_id, **fields)
        await goal.insert()
        return goal

    async def update_goal(self, user_id: int, goal_id: int, fields: Dict[str, Any]) -> Optional[Goal]:
        goal = await self.get_goal(user_id, goal_id)
        if not goal:
            return None
        for key, value in fields.items():
            setattr(goal, key, value)
        goal.updated_at = datetime.utcnow()
        await goal.save()
        return goal

    async def delete_goal(self, user_id: int, goal_id: int) -> bool:
        goal = await self.get_goal(user_id, goal_id)
        if not goal:
            return False
        await goal.delete()
        return True


note_store = NoteStore()
goal_store = GoalStore()
