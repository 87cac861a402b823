"""
Goal model
Personal goals tracked by the assistant, with optional due date,
reminder and recurrence.
"""
from datetime import datetime
from typing import List, Literal, Optional

from beanie import Document
from pydantic import BaseModel, Field

Priority = Literal["low", "medium", "high"]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Goal(Document):
    """Goal document model"""

    goal_id: int = Field(..., unique=True, index=True)
    user_id: int
    title: str
    description: str = ""
    completed: bool = False
    due_date: Optional[datetime] = None
    priority: Priority = "medium"
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    reminder_time: Optional[datetime] = None
    is_recurring: bool = False
    recurring_type: Optional[str] = None
    recurring_interval: Optional[int] = None
    recurring_end_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "goals"
        indexes = ["goal_id", "user_id", "completed", "updated_at"]

    def to_public(self) -> dict:
        return {
            "id": self.goal_id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "dueDate": _iso(self.due_date),
            "priority": self.priority,
            "category": self.category,
            "tags": self.tags,
            "reminderTime": _iso(self.reminder_time),
            "isRecurring": self.is_recurring,
            "recurringType": self.recurring_type,
            "recurringInterval": self.recurring_interval,
            "recurringEndDate": _iso(self.recurring_end_date),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class GoalPayload(BaseModel):
    """Create / update payload, camelCase as the client sends it"""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    completed: bool = False
    dueDate: Optional[datetime] = None
    priority: Priority = "medium"
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    reminderTime: Optional[datetime] = None
    isRecurring: bool = False
    recurringType: Optional[str] = None
    recurringInterval: Optional[int] = Field(None, ge=1)
    recurringEndDate: Optional[datetime] = None

    def to_fields(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "due_date": self.dueDate,
            "priority": self.priority,
            "category": self.category,
            "tags": self.tags,
            "reminder_time": self.reminderTime,
            "is_recurring": self.isRecurring,
            "recurring_type": self.recurringType,
            "recurring_interval": self.recurringInterval,
            "recurring_end_date": self.recurringEndDate,
        }
