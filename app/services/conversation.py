"""
Conversation
One exchange in a chat: persist the user's words, ask the assistant with the
recent history, persist the reply. Shared by the text chat route and voice mode.
"""
from __future__ import annotations

from typing import Any, List, Optional, Tuple

from app.ai.assistant import AssistantService, HistoryTurn
from app.config import settings
from app.models.message import REGULAR_DB
from app.services.chat_store import ChatStore

CITATION_MARKER = "###"


def trim_bot_content(text: str) -> str:
    """Drop the appended citation sections and collapse whitespace."""
    head = text.split(CITATION_MARKER, 1)[0]
    return " ".join(head.split())


def to_history_turn(message: Any) -> HistoryTurn:
    if message.is_bot:
        return HistoryTurn(role="assistant", text=trim_bot_content(message.content))
    return HistoryTurn(role="user", text=message.content)


def resolve_db_type(use_db: bool, db: Optional[str]) -> str:
    if use_db and db:
        return db
    return REGULAR_DB


class Conversation:
    def __init__(
        self,
        store: ChatStore,
        assistant: AssistantService,
        history_limit: Optional[int] = None,
    ):
        self.store = store
        self.assistant = assistant
        self.history_limit = history_limit if history_limit is not None else settings.VOICE_HISTORY_LIMIT

    async def exchange(
        self,
        user_id: int,
        chat_id: int,
        text: str,
        use_web: bool = False,
        use_db: bool = False,
        db_type: str = REGULAR_DB,
    ) -> Tuple[Any, Any]:
        """
        Run one turn and return ``(user_message, bot_message)``.

        The user message is stored before the assistant is called, so a failing
        upstream leaves the question in the chat without an answer.
        """
        user_message = await self.store.create_message(
            user_id, chat_id, text, is_bot=False, db_type=db_type
        )
        history = await self.load_history(chat_id, exclude_id=user_message.message_id)

        reply = await self.assistant.generate_reply(text, use_web, use_db, db_type, history)
        bot_message = await self.store.create_message(
            user_id, chat_id, reply, is_bot=True, db_type=db_type
        )
        return user_message, bot_message

    async def load_history(self, chat_id: int, exclude_id: Any) -> List[HistoryTurn]:
        """Up to ``history_limit`` prior messages of the chat, oldest first."""
        if self.history_limit <= 0:
            return []
        recent = await self.store.recent_messages(chat_id, self.history_limit + 1)
        prior = [m for m in recent if m.message_id != exclude_id][: self.history_limit]
        turns = [to_history_turn(m) for m in reversed(prior)]
        return [turn for turn in turns if turn.text]
