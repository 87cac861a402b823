"""
Chat message model
User and bot entries of a chat, tagged with the knowledge base that was consulted.
"""
from datetime import datetime

from beanie import Document
from pydantic import Field

REGULAR_DB = "regular"


class Message(Document):
    message_id: int = Field(..., unique=True, index=True)
    user_id: int
    chat_id: int
    content: str
    is_bot: bool
    db_type: str = REGULAR_DB
    vote: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "messages"
        indexes = ["message_id", "chat_id", "created_at"]

    def to_public(self) -> dict:
        """camelCase view sent over REST and the voice socket"""
        return {
            "id": self.message_id,
            "userId": self.user_id,
            "chatId": self.chat_id,
            "content": self.content,
            "isBot": self.is_bot,
            "dbType": self.db_type,
            "vote": self.vote,
            "timestamp": self.created_at.isoformat(),
        }
