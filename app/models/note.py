"""
Note model
Free-form notes a user keeps next to their chats.
"""
from datetime import datetime

from beanie import Document
from pydantic import Field


class Note(Document):
    note_id: int = Field(..., unique=True, index=True)
    user_id: int
    title: str
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "notes"
        indexes = ["note_id", "user_id", "updated_at"]

    def to_public(self) -> dict:
        return {
            "id": self.note_id,
            "userId": self.user_id,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
