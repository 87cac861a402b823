"""
Chat model
A conversation thread owned by one user. Voice mode writes into an existing chat.
"""
from datetime import datetime

from beanie import Document
from pydantic import Field


class Chat(Document):
    chat_id: int = Field(..., unique=True, index=True)
    user_id: int
    title: str = "New chat"
    type: str = "regular"
    db_type: str = "regular"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "chats"
        indexes = ["chat_id", "user_id", "created_at"]

    def to_public(self) -> dict:
        return {
            "id": self.chat_id,
            "userId": self.user_id,
            "title": self.title,
            "type": self.type,
            "dbType": self.db_type,
            "createdAt": self.created_at.isoformat(),
        }
